"""
Census-Based Budget Calculator

Builds the per-location, per-category budget map for a report. With a
budget month the figure is derived as::

    budget = census x days in month x PPD rate

where the category allocation is read as a per-patient-day (PPD) rate.
Without a budget month, or with census budgets disabled, the allocation
amount is used as-is.
"""

import asyncio
import calendar
from collections import OrderedDict
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterator, List, Optional, Union

import structlog

from budget_reports.config.settings import ReportingSettings

from .entities import canonical_category
from .errors import DataQualityWarning, WarningCode
from .models import BudgetEntry, BudgetSource, CategoryAllocation, CensusReading
from .periods import format_budget_month, parse_budget_month
from .ports import BudgetDirectory

logger = structlog.get_logger(__name__)

CENTS = Decimal("0.01")

Number = Union[int, float, str, Decimal]


class CensusPolicy(str, Enum):
    """Behaviour when a location has no census for the budget month"""
    SENTINEL = "sentinel"
    SKIP = "skip"


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def days_in_month(month: int, year: int) -> int:
    return calendar.monthrange(year, month)[1]


def calculate_budget(census: Number, days: int, ppd_rate: Number) -> Decimal:
    """
    Census-derived budget, rounded half-up to cents.

    >>> calculate_budget(10, 30, 2.5)
    Decimal('750.00')
    """
    amount = _to_decimal(census) * days * _to_decimal(ppd_rate)
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


class BudgetMap:
    """
    Category budgets keyed by canonical category name.

    Keys are decoded once on insert, so lookups never need to try raw and
    decoded variants. Iteration follows insertion (configuration) order.
    """

    def __init__(self, entries: Optional[List[BudgetEntry]] = None):
        self._entries: "OrderedDict[str, BudgetEntry]" = OrderedDict()
        self.warnings: List[DataQualityWarning] = []
        for entry in entries or []:
            self.add(entry)

    def add(self, entry: BudgetEntry) -> None:
        key = canonical_category(entry.category_key)
        if key in self._entries:
            logger.warning(
                "Duplicate budget category, keeping last",
                category=key,
                location_id=entry.location_id,
            )
            del self._entries[key]
        if key != entry.category_key:
            entry = BudgetEntry(
                category_key=key,
                location_id=entry.location_id,
                amount=entry.amount,
                source=entry.source,
                raw_name=entry.raw_name or entry.category_key,
                ppd_rate=entry.ppd_rate,
                census_amount=entry.census_amount,
                days_in_month=entry.days_in_month,
            )
        self._entries[key] = entry

    def get(self, category: str) -> Optional[BudgetEntry]:
        return self._entries.get(canonical_category(category))

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def entries(self) -> List[BudgetEntry]:
        return list(self._entries.values())

    def __contains__(self, category: object) -> bool:
        return isinstance(category, str) and canonical_category(category) in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class BudgetCalculator:
    """
    Builds budget maps from the budget directory.

    Lookup failures never propagate: they are logged and produce an empty
    map, the same result as a location without budget configuration.
    """

    def __init__(self, directory: BudgetDirectory, settings: Optional[ReportingSettings] = None):
        self.directory = directory
        self.settings = settings or ReportingSettings()
        self.policy = CensusPolicy(self.settings.census_missing_policy)

    async def _call(self, awaitable):
        return await asyncio.wait_for(awaitable, timeout=self.settings.lookup_timeout_seconds)

    async def resolve_census(self, location_id: str, budget_month: str) -> Optional[CensusReading]:
        """
        Census reading for a location and month.

        Returns the configured sentinel reading (``defaulted=True``) when no
        census exists under the sentinel policy, ``None`` under the skip policy.
        """
        month, year = parse_budget_month(budget_month)
        tag = format_budget_month(month, year)
        amount = await self._call(self.directory.fetch_census(location_id, tag))

        if amount is not None:
            return CensusReading(location_id=location_id, budget_month=tag, amount=_to_decimal(amount))

        if self.policy is CensusPolicy.SKIP:
            logger.info("No census for location, skipping census budgets", location_id=location_id, budget_month=tag)
            return None

        logger.warning(
            "No census for location, using sentinel",
            location_id=location_id,
            budget_month=tag,
            sentinel=str(self.settings.census_sentinel_value),
        )
        return CensusReading(
            location_id=location_id,
            budget_month=tag,
            amount=self.settings.census_sentinel_value,
            defaulted=True,
        )

    async def build_budget_map(self, location_id: Optional[str], budget_month: Optional[str] = None) -> BudgetMap:
        """
        Budget map for a location.

        Args:
            location_id: Budget location; an empty map is returned without one
            budget_month: ``MM-YYYY``; selects the census-derived path

        Returns:
            BudgetMap, empty when nothing is configured or a lookup failed
        """
        if not location_id:
            return BudgetMap()

        lookup = "census"
        try:
            census: Optional[CensusReading] = None
            use_census = bool(budget_month) and self.settings.census_budgets_enabled
            if use_census:
                census = await self.resolve_census(location_id, budget_month)
                if census is None:
                    return BudgetMap()

            lookup = "allocations"
            allocations = await self._call(self.directory.fetch_category_allocations(location_id))

            if census is not None:
                budget_map = self._census_map(location_id, allocations, census)
            else:
                budget_map = self._static_map(location_id, allocations)

        except Exception as e:
            logger.error(
                "Budget lookup failed",
                location_id=location_id,
                budget_month=budget_month,
                lookup=lookup,
                error=str(e) or type(e).__name__,
            )
            return BudgetMap()

        logger.debug(
            "Budget map built",
            location_id=location_id,
            budget_month=budget_month,
            categories=len(budget_map),
        )
        return budget_map

    def _static_map(self, location_id: str, allocations: List[CategoryAllocation]) -> BudgetMap:
        budget_map = BudgetMap()
        for allocation in allocations:
            budget_map.add(
                BudgetEntry(
                    category_key=allocation.category_name,
                    location_id=location_id,
                    amount=_to_decimal(allocation.amount).quantize(CENTS, rounding=ROUND_HALF_UP),
                    source=BudgetSource.STATIC,
                    raw_name=allocation.category_name,
                )
            )
        return budget_map

    def _census_map(
        self,
        location_id: str,
        allocations: List[CategoryAllocation],
        census: CensusReading,
    ) -> BudgetMap:
        month, year = parse_budget_month(census.budget_month)
        days = days_in_month(month, year)

        budget_map = BudgetMap()
        if census.defaulted:
            budget_map.warnings.append(
                DataQualityWarning(
                    code=WarningCode.CENSUS_DEFAULTED,
                    message=(
                        f"No census for location {location_id} in {census.budget_month}; "
                        f"budgets use census {census.amount}"
                    ),
                    context={
                        "location_id": location_id,
                        "budget_month": census.budget_month,
                        "census_amount": str(census.amount),
                    },
                )
            )

        for allocation in allocations:
            ppd_rate = _to_decimal(allocation.amount)
            budget_map.add(
                BudgetEntry(
                    category_key=allocation.category_name,
                    location_id=location_id,
                    amount=calculate_budget(census.amount, days, ppd_rate),
                    source=BudgetSource.CENSUS_DERIVED,
                    raw_name=allocation.category_name,
                    ppd_rate=ppd_rate,
                    census_amount=census.amount,
                    days_in_month=days,
                )
            )
        return budget_map
