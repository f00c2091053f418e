"""
Unit Tests - SQL Repositories
"""
from datetime import datetime
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from budget_reports.database import connection
from budget_reports.database.connection import create_session_factory
from budget_reports.database.models import (
    Base,
    Budget,
    BudgetAllocation,
    BudgetCategoryMaster,
    BudgetLocationAssignment,
    BudgetStatus,
    DimProduct,
    FactOrder,
    FactOrderLine,
    FactRefund,
    FactRefundLine,
    LocationCensus,
)
from budget_reports.database.repositories import (
    SqlBudgetDirectory,
    SqlCategoryDirectory,
    SqlOrderLedger,
)
from budget_reports.reporting.periods import LedgerQuery, PeriodRequest, ReportFilters, resolve_period
from budget_reports.reporting.service import ReportService
from tests.conftest import make_settings


def march_query(**filters) -> LedgerQuery:
    period = resolve_period(PeriodRequest(month=3, year=2025), today=datetime(2025, 6, 1).date())
    return LedgerQuery(filters=ReportFilters(**filters), period=period.predicate)


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite database seeded with a small ledger"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = create_session_factory(engine)
    async with factory() as session:
        session.add_all([
            DimProduct(product_id="prod-glove", title="Nitrile Gloves", category="Gloves &amp; Masks"),
            DimProduct(product_id="prod-gauze", title="Gauze Pads", category="Wound Care"),
            DimProduct(product_id="prod-sheet", title="Flat Sheet", category=None),
            FactOrder(order_id="o1", location_id="loc-1", customer_id="cust-1",
                      budget_month="03-2025", created_at=datetime(2025, 2, 27)),
            FactOrder(order_id="o2", location_id="loc-1", customer_id="cust-2",
                      budget_month=None, created_at=datetime(2025, 3, 15, 12, 30)),
            FactOrder(order_id="o3", location_id="loc-1", customer_id="cust-1",
                      budget_month=None, created_at=datetime(2025, 4, 1)),
            FactOrder(order_id="o4", location_id="loc-1", customer_id="cust-1",
                      budget_month="04-2025", created_at=datetime(2025, 3, 20)),
            FactOrder(order_id="o5", location_id="loc-2", customer_id="cust-3",
                      budget_month="03-2025", created_at=datetime(2025, 3, 2)),
        ])
        await session.flush()
        session.add_all([
            FactOrderLine(line_id="l1", order_id="o1", product_id="prod-glove", variant_id="v1",
                          name="Nitrile Gloves", quantity=10, price=Decimal("5.00")),
            FactOrderLine(line_id="l2", order_id="o1", product_id="prod-gauze", variant_id="v1",
                          name="Gauze Pads", quantity=4, price=Decimal("2.50")),
            FactOrderLine(line_id="l3", order_id="o2", product_id="prod-glove", variant_id="v1",
                          name="Nitrile Gloves", quantity=5, price=Decimal("5.00")),
            FactOrderLine(line_id="l4", order_id="o3", product_id="prod-glove", variant_id="v1",
                          name="Nitrile Gloves", quantity=100, price=Decimal("5.00")),
            FactOrderLine(line_id="l5", order_id="o4", product_id="prod-glove", variant_id="v1",
                          name="Nitrile Gloves", quantity=7, price=Decimal("5.00")),
            FactOrderLine(line_id="l6", order_id="o5", product_id="prod-sheet", variant_id="v1",
                          name="Flat Sheet", quantity=1, price=Decimal("20.00")),
            FactRefund(refund_id="r1", order_id="o1", created_at=datetime(2025, 5, 3)),
            FactRefund(refund_id="r2", order_id="o3", created_at=datetime(2025, 4, 5)),
        ])
        await session.flush()
        session.add_all([
            FactRefundLine(refund_line_id="rl1", refund_id="r1", order_line_id="l1",
                           quantity=2, subtotal=Decimal("10.00")),
            FactRefundLine(refund_line_id="rl2", refund_id="r2", order_line_id="l4",
                           quantity=1, subtotal=Decimal("5.00")),
        ])

        wound = BudgetCategoryMaster(category_name="Wound Care", sort_order=2)
        gloves = BudgetCategoryMaster(category_name="Gloves \\u0026 Masks", sort_order=1)
        retired = BudgetCategoryMaster(category_name="Retired", sort_order=3, is_active=False)
        active = Budget(name="FY25", status=BudgetStatus.ACTIVE)
        archived = Budget(name="FY24", status=BudgetStatus.ARCHIVED)
        session.add_all([wound, gloves, retired, active, archived])
        await session.flush()

        session.add_all([
            BudgetAllocation(budget_id=active.id, category_id=wound.id, allocated_amount=Decimal("2.00")),
            BudgetAllocation(budget_id=active.id, category_id=gloves.id, allocated_amount=Decimal("1.50")),
            BudgetAllocation(budget_id=active.id, category_id=retired.id, allocated_amount=Decimal("9.00")),
            BudgetAllocation(budget_id=archived.id, category_id=wound.id, allocated_amount=Decimal("99.00")),
            BudgetLocationAssignment(budget_id=active.id, location_id="loc-1", status=BudgetStatus.ACTIVE),
            BudgetLocationAssignment(budget_id=archived.id, location_id="loc-1", status=BudgetStatus.ACTIVE),
            BudgetLocationAssignment(budget_id=active.id, location_id="loc-2", status=BudgetStatus.INACTIVE),
            LocationCensus(location_id="loc-1", census_month="03-2025", census_amount=Decimal("10.00")),
        ])
        await session.commit()

    yield factory

    await engine.dispose()


class TestSqlOrderLedger:
    """Tests for SqlOrderLedger"""

    @pytest.mark.asyncio
    async def test_tag_or_untagged_calendar_month(self, session_factory):
        """Test tagged orders match by tag and untagged ones by creation month"""
        lines = await SqlOrderLedger(session_factory).fetch_order_lines(march_query(location_id="loc-1"))

        assert sorted(line.line_id for line in lines) == ["l1", "l2", "l3"]
        assert all(isinstance(line.unit_price, Decimal) for line in lines)

    @pytest.mark.asyncio
    async def test_filters_are_combined(self, session_factory):
        ledger = SqlOrderLedger(session_factory)

        by_customer = await ledger.fetch_order_lines(march_query(customer_id="cust-1"))
        both = await ledger.fetch_order_lines(march_query(customer_id="cust-2", location_id="loc-1"))

        assert sorted(line.line_id for line in by_customer) == ["l1", "l2"]
        assert [line.line_id for line in both] == ["l3"]

    @pytest.mark.asyncio
    async def test_refunds_follow_order_period(self, session_factory):
        """Test a refund issued in May nets against a March order"""
        refunds = await SqlOrderLedger(session_factory).fetch_refund_lines(march_query(location_id="loc-1"))

        assert [r.order_line_id for r in refunds] == ["l1"]
        assert refunds[0].subtotal == Decimal("10.00")
        assert refunds[0].order_id == "o1"


class TestSqlBudgetDirectory:
    """Tests for SqlBudgetDirectory"""

    @pytest.mark.asyncio
    async def test_active_allocations_in_order(self, session_factory):
        allocations = await SqlBudgetDirectory(session_factory).fetch_category_allocations("loc-1")

        assert [a.category_name for a in allocations] == ["Gloves \\u0026 Masks", "Wound Care"]
        assert allocations[1].amount == Decimal("2.00")
        assert allocations[1].budget_name == "FY25"

    @pytest.mark.asyncio
    async def test_inactive_assignment_ignored(self, session_factory):
        assert await SqlBudgetDirectory(session_factory).fetch_category_allocations("loc-2") == []

    @pytest.mark.asyncio
    async def test_census(self, session_factory):
        directory = SqlBudgetDirectory(session_factory)

        assert await directory.fetch_census("loc-1", "03-2025") == Decimal("10.00")
        assert await directory.fetch_census("loc-1", "04-2025") is None


class TestSqlCategoryDirectory:
    """Tests for SqlCategoryDirectory"""

    @pytest.mark.asyncio
    async def test_categories_for(self, session_factory):
        categories = await SqlCategoryDirectory(session_factory).categories_for(["prod-glove", "prod-sheet", "nope"])

        assert categories == {"prod-glove": "Gloves &amp; Masks", "prod-sheet": None}

    @pytest.mark.asyncio
    async def test_no_products(self, session_factory):
        assert await SqlCategoryDirectory(session_factory).categories_for([]) == {}


class TestReportOverSql:
    """The report pipeline over the SQL repositories"""

    @pytest.mark.asyncio
    async def test_category_report(self, session_factory):
        service = ReportService(
            SqlOrderLedger(session_factory),
            SqlBudgetDirectory(session_factory),
            SqlCategoryDirectory(session_factory),
            make_settings(),
        )

        report = await service.compute_category_report(
            ReportFilters(location_id="loc-1"),
            PeriodRequest(month=3, year=2025),
            today=datetime(2025, 6, 1).date(),
        )

        gloves, wound = report.categories
        assert gloves.category_key == "Gloves & Masks"
        assert gloves.budget_amount == Decimal("465.00")
        assert gloves.net_quantity == 13
        assert gloves.net_value == Decimal("65.00")
        assert wound.budget_amount == Decimal("620.00")
        assert wound.net_value == Decimal("10.00")
        assert report.summary.total_orders == 2
        assert report.summary.orders_with_refunds == 1


class TestConnection:
    """Tests for engine lifecycle helpers"""

    @pytest.mark.asyncio
    async def test_init_health_and_close(self):
        await connection.init_database("sqlite+aiosqlite:///:memory:")
        try:
            health = await connection.check_database_health()
            assert health["status"] == "healthy"
        finally:
            await connection.close_database()

        with pytest.raises(RuntimeError):
            connection.get_session_factory()

    @pytest.mark.asyncio
    async def test_failed_init_leaves_no_engine(self, tmp_path):
        """Test an unreachable database does not leave a half-initialized engine"""
        url = f"sqlite+aiosqlite:///{tmp_path}/missing/dir/ledger.db"

        with pytest.raises(Exception):
            await connection.init_database(url)

        with pytest.raises(RuntimeError):
            connection.get_session_factory()

    @pytest.mark.asyncio
    async def test_health_without_database(self):
        health = await connection.check_database_health()
        assert health["status"] == "unhealthy"
