"""
API Dependencies

FastAPI providers wiring the report engine to the SQL repositories.
Tests override these with in-memory collaborators.
"""

from budget_reports.config import get_settings
from budget_reports.database.connection import get_session_factory
from budget_reports.database.repositories import (
    SqlBudgetDirectory,
    SqlCategoryDirectory,
    SqlOrderLedger,
)
from budget_reports.reporting.budgets import BudgetCalculator
from budget_reports.reporting.service import ReportService


def get_report_service() -> ReportService:
    session_factory = get_session_factory()
    return ReportService(
        ledger=SqlOrderLedger(session_factory),
        budgets=SqlBudgetDirectory(session_factory),
        categories=SqlCategoryDirectory(session_factory),
        settings=get_settings(),
    )


def get_budget_calculator() -> BudgetCalculator:
    return BudgetCalculator(
        SqlBudgetDirectory(get_session_factory()),
        get_settings().reporting,
    )
