"""
Test Suite Configuration
"""
import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

import pytest

from budget_reports.config import ReportingSettings, Settings
from budget_reports.reporting.models import CategoryAllocation, OrderLine, RefundLine
from budget_reports.reporting.periods import LedgerQuery


# =============================================================================
# BUILDERS
# =============================================================================

def make_line(
    line_id: str,
    order_id: str,
    product_id: Optional[str] = "prod-1",
    quantity: int = 1,
    unit_price: str = "10.00",
    variant_id: Optional[str] = "var-1",
    category_key: Optional[str] = None,
    budget_month: Optional[str] = None,
    created_at: Optional[datetime] = None,
    name: Optional[str] = None,
) -> OrderLine:
    return OrderLine(
        order_id=order_id,
        line_id=line_id,
        product_id=product_id,
        variant_id=variant_id,
        product_name=name or product_id,
        sku=f"SKU-{product_id}" if product_id else None,
        vendor="Medline",
        quantity=quantity,
        unit_price=Decimal(unit_price),
        category_key=category_key,
        budget_month=budget_month,
        created_at=created_at,
    )


def make_refund(refund_id: str, order_line_id: str, quantity: int = 1, subtotal: str = "10.00") -> RefundLine:
    return RefundLine(
        refund_id=refund_id,
        order_line_id=order_line_id,
        quantity=quantity,
        subtotal=Decimal(subtotal),
    )


def make_settings(**reporting) -> Settings:
    """Settings with reporting overrides and data quality checks on"""
    base = Settings()
    return base.model_copy(
        update={
            "app_env": "testing",
            "reporting": ReportingSettings(**reporting),
            "data_quality": base.data_quality.model_copy(update={"enable_data_quality_checks": True}),
        }
    )


# =============================================================================
# IN-MEMORY COLLABORATORS
# =============================================================================

class FakeOrderLedger:
    """Applies the period predicate in memory; refunds follow their order lines"""

    def __init__(
        self,
        order_lines: Iterable[OrderLine] = (),
        refund_lines: Iterable[RefundLine] = (),
        fail_on: Optional[str] = None,
        delay: float = 0.0,
    ):
        self.order_lines = list(order_lines)
        self.refund_lines = list(refund_lines)
        self.fail_on = fail_on
        self.delay = delay
        self.queries: List[LedgerQuery] = []

    async def _maybe_fail(self, source: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on == source:
            raise ConnectionError(f"{source} unavailable")

    def _in_scope(self, query: LedgerQuery) -> List[OrderLine]:
        return [line for line in self.order_lines if query.period.matches(line.budget_month, line.created_at)]

    async def fetch_order_lines(self, query: LedgerQuery) -> List[OrderLine]:
        self.queries.append(query)
        await self._maybe_fail("order_lines")
        return self._in_scope(query)

    async def fetch_refund_lines(self, query: LedgerQuery) -> List[RefundLine]:
        await self._maybe_fail("refund_lines")
        line_ids = {line.line_id for line in self._in_scope(query)}
        return [r for r in self.refund_lines if r.order_line_id in line_ids]


class FakeBudgetDirectory:
    def __init__(
        self,
        allocations: Optional[Dict[str, List[CategoryAllocation]]] = None,
        census: Optional[Dict[Tuple[str, str], Decimal]] = None,
        fail_on: Optional[str] = None,
    ):
        self.allocations = allocations or {}
        self.census = census or {}
        self.fail_on = fail_on
        self.census_calls: List[Tuple[str, str]] = []
        self.allocation_calls: List[str] = []

    async def fetch_category_allocations(self, location_id: str) -> List[CategoryAllocation]:
        self.allocation_calls.append(location_id)
        if self.fail_on == "allocations":
            raise ConnectionError("budget database unavailable")
        return list(self.allocations.get(location_id, []))

    async def fetch_census(self, location_id: str, budget_month: str) -> Optional[Decimal]:
        self.census_calls.append((location_id, budget_month))
        if self.fail_on == "census":
            raise ConnectionError("census table unavailable")
        return self.census.get((location_id, budget_month))


class FakeCategoryDirectory:
    def __init__(self, categories: Optional[Dict[str, Optional[str]]] = None, fail: bool = False):
        self.categories = categories or {}
        self.fail = fail
        self.calls: List[List[str]] = []

    async def categories_for(self, product_ids: Iterable[str]) -> Dict[str, Optional[str]]:
        ids = list(product_ids)
        self.calls.append(ids)
        if self.fail:
            raise ConnectionError("catalog unavailable")
        return {pid: self.categories[pid] for pid in ids if pid in self.categories}


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def test_settings() -> Settings:
    """Create test settings"""
    return make_settings()


@pytest.fixture
def march_order_lines() -> List[OrderLine]:
    """
    Ledger for location loc-1 around March 2025.

    o1 tagged 03-2025 but created in February, o2 untagged in March,
    o3 untagged in April, o4 tagged 04-2025 but created in March.
    """
    return [
        make_line("l1", "o1", "prod-glove", 10, "5.00", budget_month="03-2025", created_at=datetime(2025, 2, 27)),
        make_line("l2", "o1", "prod-gauze", 4, "2.50", budget_month="03-2025", created_at=datetime(2025, 2, 27)),
        make_line("l3", "o2", "prod-glove", 5, "5.00", created_at=datetime(2025, 3, 15, 12, 30)),
        make_line("l4", "o2", "prod-sheet", 2, "20.00", created_at=datetime(2025, 3, 15, 12, 30)),
        make_line("l5", "o3", "prod-glove", 100, "5.00", created_at=datetime(2025, 4, 1)),
        make_line("l6", "o4", "prod-glove", 7, "5.00", budget_month="04-2025", created_at=datetime(2025, 3, 20)),
    ]


@pytest.fixture
def march_refund_lines() -> List[RefundLine]:
    return [
        make_refund("r1", "l1", quantity=2, subtotal="10.00"),
        make_refund("r2", "l5", quantity=1, subtotal="5.00"),
    ]


@pytest.fixture
def catalog() -> FakeCategoryDirectory:
    return FakeCategoryDirectory(
        {
            "prod-glove": "Gloves &amp; Masks",
            "prod-gauze": "Wound Care",
            "prod-sheet": "Linens",
        }
    )


@pytest.fixture
def budget_directory() -> FakeBudgetDirectory:
    return FakeBudgetDirectory(
        allocations={
            "loc-1": [
                CategoryAllocation("Gloves \\u0026 Masks", Decimal("1.50")),
                CategoryAllocation("Wound Care", Decimal("2.00")),
                CategoryAllocation("Incontinence", Decimal("0.75")),
            ],
        },
        census={("loc-1", "03-2025"): Decimal("10")},
    )


@pytest.fixture
def ledger(march_order_lines, march_refund_lines) -> FakeOrderLedger:
    return FakeOrderLedger(march_order_lines, march_refund_lines)
