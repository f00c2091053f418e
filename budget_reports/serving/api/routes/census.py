"""
Census API Endpoints

Census lookups as the budget calculator sees them.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
import structlog

from budget_reports.reporting.budgets import BudgetCalculator, days_in_month
from budget_reports.reporting.errors import InvalidPeriod
from budget_reports.reporting.periods import format_budget_month, parse_budget_month
from budget_reports.serving.api.dependencies import get_budget_calculator

router = APIRouter()
logger = structlog.get_logger(__name__)


class CensusResponse(BaseModel):
    """Census reading for a location and month"""
    location_id: str
    budget_month: str
    found: bool
    census_amount: Optional[float]
    defaulted: bool
    days_in_month: int
    policy: str


@router.get("/{location_id}/{budget_month}", response_model=CensusResponse)
async def get_census(
    location_id: str,
    budget_month: str,
    calculator: BudgetCalculator = Depends(get_budget_calculator),
):
    """
    Get the census used for a location's budgets in a month.

    ``defaulted`` is true when no census exists and the sentinel policy
    substituted the configured value.
    """
    try:
        month, year = parse_budget_month(budget_month)
    except InvalidPeriod as e:
        raise HTTPException(status_code=400, detail=str(e))

    tag = format_budget_month(month, year)
    try:
        reading = await calculator.resolve_census(location_id, tag)
    except Exception as e:
        logger.error("Census lookup failed", location_id=location_id, budget_month=tag, error=str(e))
        raise HTTPException(status_code=502, detail=f"census lookup failed: {e}")

    return CensusResponse(
        location_id=location_id,
        budget_month=tag,
        found=reading is not None and not reading.defaulted,
        census_amount=float(reading.amount) if reading is not None else None,
        defaulted=reading.defaulted if reading is not None else False,
        days_in_month=days_in_month(month, year),
        policy=calculator.policy.value,
    )
