"""
Period Resolver

Turns a requested month/year (or an explicit budget month) into a typed
predicate over orders: an order is in scope when its budget month tag
matches, or when it has no tag and was created in the calendar month.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Optional, Tuple

from .errors import InvalidPeriod, MissingFilter

_BUDGET_MONTH = re.compile(r"^\s*(\d{1,2})-(\d{4})\s*$")

MIN_YEAR = 2020


def format_budget_month(month: int, year: int) -> str:
    """Zero-padded ``MM-YYYY`` tag"""
    return f"{month:02d}-{year:04d}"


def parse_budget_month(value: str) -> Tuple[int, int]:
    """
    Parse an ``M-YYYY`` or ``MM-YYYY`` budget month.

    Raises:
        InvalidPeriod: If the string is malformed or the month is out of range
    """
    match = _BUDGET_MONTH.match(value or "")
    if not match:
        raise InvalidPeriod(f"Malformed budget month: {value!r} (expected MM-YYYY)")
    month, year = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise InvalidPeriod(f"Invalid month in budget month {value!r}")
    return month, year


@dataclass(frozen=True)
class PeriodRequest:
    """Caller supplied period"""
    month: Optional[int] = None
    year: Optional[int] = None
    budget_month: Optional[str] = None


@dataclass(frozen=True)
class PeriodPredicate:
    """
    Order selection rule for one budget month.

    The tag branch and the calendar branch are mutually exclusive: the
    calendar branch only applies to orders without a tag.
    """
    tag: str
    month: int
    year: int

    @property
    def start(self) -> datetime:
        return datetime(self.year, self.month, 1)

    @property
    def end(self) -> datetime:
        """Exclusive upper bound of the calendar month"""
        if self.month == 12:
            return datetime(self.year + 1, 1, 1)
        return datetime(self.year, self.month + 1, 1)

    def matches(self, tag: Optional[str], created_at: Optional[datetime]) -> bool:
        if tag is not None and tag.strip():
            return tag.strip() == self.tag
        if created_at is None:
            return False
        return created_at.year == self.year and created_at.month == self.month


@dataclass(frozen=True)
class ReportPeriod:
    """Resolved period for a report"""
    month: int
    year: int
    budget_month: str
    predicate: PeriodPredicate


def resolve_period(
    request: PeriodRequest,
    today: Optional[date] = None,
    min_year: int = MIN_YEAR,
) -> ReportPeriod:
    """
    Resolve a period request into a report period.

    An explicit budget month wins over month/year. Missing month or year
    default to today's.

    Raises:
        InvalidPeriod: Month outside 1..12, year outside
            ``min_year..today.year + 1`` or a malformed budget month
    """
    today = today or date.today()

    if request.budget_month:
        month, year = parse_budget_month(request.budget_month)
    else:
        month = request.month if request.month is not None else today.month
        year = request.year if request.year is not None else today.year

    if not 1 <= month <= 12:
        raise InvalidPeriod(f"Month must be between 1 and 12, got {month}")
    if year < min_year or year > today.year + 1:
        raise InvalidPeriod(f"Year must be between {min_year} and {today.year + 1}, got {year}")

    tag = format_budget_month(month, year)
    return ReportPeriod(
        month=month,
        year=year,
        budget_month=tag,
        predicate=PeriodPredicate(tag=tag, month=month, year=year),
    )


# =============================================================================
# FILTERS
# =============================================================================

@dataclass(frozen=True)
class ReportFilters:
    """Which orders a report covers"""
    customer_id: Optional[str] = None
    location_id: Optional[str] = None
    company_location_id: Optional[str] = None

    def require_identifier(self) -> None:
        """
        Raises:
            MissingFilter: If no identifier was supplied
        """
        if not (self.customer_id or self.location_id or self.company_location_id):
            raise MissingFilter(
                "At least one of customer_id, location_id or company_location_id is required"
            )

    @property
    def budget_location(self) -> Optional[str]:
        return self.location_id or self.company_location_id

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "customer_id": self.customer_id,
            "location_id": self.location_id,
            "company_location_id": self.company_location_id,
        }


@dataclass(frozen=True)
class LedgerQuery:
    """Typed query handed to order ledger implementations"""
    filters: ReportFilters
    period: PeriodPredicate

    @property
    def customer_id(self) -> Optional[str]:
        return self.filters.customer_id

    @property
    def location_id(self) -> Optional[str]:
        return self.filters.location_id

    @property
    def company_location_id(self) -> Optional[str]:
        return self.filters.company_location_id
