"""
SQLAlchemy Repositories

Implementations of the report engine's collaborator interfaces on top of
the ledger and budget configuration tables.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from budget_reports.reporting.models import CategoryAllocation, OrderLine, RefundLine
from budget_reports.reporting.periods import LedgerQuery

from .models import (
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

logger = structlog.get_logger(__name__)


def _decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def ledger_conditions(query: LedgerQuery) -> list:
    """
    WHERE conditions on ``FactOrder`` for a ledger query.

    Orders match on their budget month tag, or on ``created_at`` when they
    have no tag.
    """
    conditions = []
    if query.customer_id:
        conditions.append(FactOrder.customer_id == query.customer_id)
    if query.location_id:
        conditions.append(FactOrder.location_id == query.location_id)
    if query.company_location_id:
        conditions.append(FactOrder.company_location_id == query.company_location_id)

    period = query.period
    untagged = or_(FactOrder.budget_month.is_(None), func.trim(FactOrder.budget_month) == "")
    conditions.append(
        or_(
            FactOrder.budget_month == period.tag,
            and_(
                untagged,
                FactOrder.created_at >= period.start,
                FactOrder.created_at < period.end,
            ),
        )
    )
    return conditions


class SqlOrderLedger:
    """Order ledger backed by the fact tables"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def fetch_order_lines(self, query: LedgerQuery) -> List[OrderLine]:
        stmt = (
            select(
                FactOrderLine.line_id,
                FactOrderLine.order_id,
                FactOrderLine.product_id,
                FactOrderLine.variant_id,
                FactOrderLine.name,
                FactOrderLine.sku,
                FactOrderLine.vendor,
                FactOrderLine.quantity,
                FactOrderLine.price,
                FactOrder.budget_month,
                FactOrder.created_at,
            )
            .join(FactOrder, FactOrder.order_id == FactOrderLine.order_id)
            .where(*ledger_conditions(query))
            .order_by(FactOrder.created_at, FactOrderLine.line_id)
        )

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        logger.debug("Fetched order lines", rows=len(rows), budget_month=query.period.tag)

        return [
            OrderLine(
                order_id=row.order_id,
                line_id=row.line_id,
                product_id=row.product_id,
                variant_id=row.variant_id,
                product_name=row.name,
                sku=row.sku,
                vendor=row.vendor,
                quantity=int(row.quantity or 0),
                unit_price=_decimal(row.price),
                budget_month=row.budget_month,
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def fetch_refund_lines(self, query: LedgerQuery) -> List[RefundLine]:
        """Refund lines of in-scope order lines, whenever the refund was issued"""
        stmt = (
            select(
                FactRefundLine.refund_id,
                FactRefundLine.order_line_id,
                FactRefundLine.quantity,
                FactRefundLine.subtotal,
                FactRefund.order_id,
            )
            .join(FactRefund, FactRefund.refund_id == FactRefundLine.refund_id)
            .join(FactOrderLine, FactOrderLine.line_id == FactRefundLine.order_line_id)
            .join(FactOrder, FactOrder.order_id == FactOrderLine.order_id)
            .where(*ledger_conditions(query))
            .order_by(FactRefundLine.refund_line_id)
        )

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        logger.debug("Fetched refund lines", rows=len(rows), budget_month=query.period.tag)

        return [
            RefundLine(
                refund_id=row.refund_id,
                order_line_id=row.order_line_id,
                quantity=int(row.quantity or 0),
                subtotal=_decimal(row.subtotal),
                order_id=row.order_id,
            )
            for row in rows
        ]


class SqlBudgetDirectory:
    """Budget allocations and census figures"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def fetch_category_allocations(self, location_id: str) -> List[CategoryAllocation]:
        stmt = (
            select(
                BudgetCategoryMaster.id,
                BudgetCategoryMaster.category_name,
                BudgetAllocation.allocated_amount,
                Budget.name,
            )
            .select_from(BudgetLocationAssignment)
            .join(Budget, Budget.id == BudgetLocationAssignment.budget_id)
            .join(BudgetAllocation, BudgetAllocation.budget_id == Budget.id)
            .join(BudgetCategoryMaster, BudgetCategoryMaster.id == BudgetAllocation.category_id)
            .where(
                BudgetLocationAssignment.location_id == location_id,
                BudgetLocationAssignment.status == BudgetStatus.ACTIVE,
                Budget.status == BudgetStatus.ACTIVE,
                BudgetCategoryMaster.is_active.is_(True),
            )
            .order_by(BudgetCategoryMaster.sort_order, BudgetCategoryMaster.category_name, Budget.id)
        )

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        return [
            CategoryAllocation(
                category_name=row.category_name,
                amount=_decimal(row.allocated_amount),
                category_id=str(row.id),
                budget_name=row.name,
            )
            for row in rows
        ]

    async def fetch_census(self, location_id: str, budget_month: str) -> Optional[Decimal]:
        stmt = select(LocationCensus.census_amount).where(
            LocationCensus.location_id == location_id,
            LocationCensus.census_month == budget_month,
        )

        async with self._session_factory() as session:
            amount = (await session.execute(stmt)).scalar_one_or_none()

        return None if amount is None else _decimal(amount)


class SqlCategoryDirectory:
    """Product category labels from the product dimension"""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def categories_for(self, product_ids: Iterable[str]) -> Dict[str, Optional[str]]:
        ids = list(product_ids)
        if not ids:
            return {}

        stmt = select(DimProduct.product_id, DimProduct.category).where(DimProduct.product_id.in_(ids))

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return {row.product_id: row.category for row in result.all()}
