"""
Budget-Aware Category Report Engine

The service layer (``budget_reports.reporting.service``) composes these
components; it is imported explicitly by callers.
"""
from .assembler import assemble_report, summarize_orders
from .budgets import BudgetCalculator, BudgetMap, CensusPolicy, calculate_budget
from .entities import decode_entities
from .errors import (
    DataQualityWarning,
    InvalidPeriod,
    MissingFilter,
    ReportError,
    UpstreamLookupFailure,
    WarningCode,
)
from .netting import net_refunds
from .periods import LedgerQuery, PeriodPredicate, PeriodRequest, ReportFilters, resolve_period
from .reconciler import reconcile

__all__ = [
    "assemble_report",
    "summarize_orders",
    "BudgetCalculator",
    "BudgetMap",
    "CensusPolicy",
    "calculate_budget",
    "decode_entities",
    "DataQualityWarning",
    "InvalidPeriod",
    "MissingFilter",
    "ReportError",
    "UpstreamLookupFailure",
    "WarningCode",
    "net_refunds",
    "LedgerQuery",
    "PeriodPredicate",
    "PeriodRequest",
    "ReportFilters",
    "resolve_period",
    "reconcile",
]
