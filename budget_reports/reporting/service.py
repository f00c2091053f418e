"""
Category Report Service

Runs the report pipeline for one request:

    validate -> {ledger fetch, budget map} -> category lookup ->
    ledger checks -> netting -> reconciliation -> assembly

Validation errors are raised before any lookup. Ledger and category
lookups are fatal on failure; budget lookups degrade to an empty map.
A fatal failure cancels the lookups still in flight.
"""

import asyncio
from dataclasses import replace
from datetime import date
from typing import Any, Awaitable, Dict, List, Optional, Tuple, TypeVar

import structlog

from budget_reports.config.settings import Settings, get_settings
from budget_reports.quality.validators import validate_ledger

from .assembler import assemble_product_report, assemble_report, summarize_orders
from .budgets import BudgetCalculator, BudgetMap
from .errors import DataQualityWarning, UpstreamLookupFailure
from .models import CategoryReport, OrderLine, ProductReport, RefundLine
from .netting import net_refunds
from .periods import LedgerQuery, PeriodRequest, ReportFilters, ReportPeriod, resolve_period
from .ports import BudgetDirectory, CategoryDirectory, OrderLedger
from .reconciler import reconcile

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _first_failure(failures: BaseExceptionGroup) -> BaseException:
    """The lookup failure to report from a failed task group"""
    leaves: List[BaseException] = []
    pending: List[BaseException] = [failures]
    while pending:
        exc = pending.pop(0)
        if isinstance(exc, BaseExceptionGroup):
            pending.extend(exc.exceptions)
        else:
            leaves.append(exc)
    for exc in leaves:
        if isinstance(exc, UpstreamLookupFailure):
            return exc
    return leaves[0]


class ReportService:
    """
    Budget-aware category report engine.

    Example:
        service = ReportService(ledger, budgets, categories)
        report = await service.compute_category_report(
            ReportFilters(location_id="loc-1"),
            PeriodRequest(month=3, year=2025),
        )
    """

    def __init__(
        self,
        ledger: OrderLedger,
        budgets: BudgetDirectory,
        categories: CategoryDirectory,
        settings: Optional[Settings] = None,
    ):
        self.ledger = ledger
        self.categories = categories
        self.settings = settings or get_settings()
        self.reporting = self.settings.reporting
        self.budget_calculator = BudgetCalculator(budgets, self.reporting)

    async def _lookup(self, source: str, awaitable: Awaitable[T], context: Dict[str, Any]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.reporting.lookup_timeout_seconds)
        except asyncio.TimeoutError:
            logger.error("Lookup timed out", lookup=source, timeout=self.reporting.lookup_timeout_seconds, **context)
            raise UpstreamLookupFailure(
                source, f"timed out after {self.reporting.lookup_timeout_seconds}s", context
            )
        except UpstreamLookupFailure:
            raise
        except Exception as e:
            logger.error("Lookup failed", lookup=source, error=str(e), **context)
            raise UpstreamLookupFailure(source, str(e) or type(e).__name__, context) from e

    async def _fetch_ledger(
        self, query: LedgerQuery, context: Dict[str, Any]
    ) -> Tuple[List[OrderLine], List[RefundLine]]:
        try:
            async with asyncio.TaskGroup() as group:
                orders = group.create_task(
                    self._lookup("order_lines", self.ledger.fetch_order_lines(query), context)
                )
                refunds = group.create_task(
                    self._lookup("refund_lines", self.ledger.fetch_refund_lines(query), context)
                )
        except ExceptionGroup as failures:
            raise _first_failure(failures)
        return list(orders.result()), list(refunds.result())

    async def _categorize(self, order_lines: List[OrderLine], context: Dict[str, Any]) -> List[OrderLine]:
        """Attach catalog categories to order lines"""
        product_ids = sorted({line.product_id for line in order_lines if line.product_id})
        labels: Dict[str, Optional[str]] = {}
        if product_ids:
            labels = await self._lookup("categories", self.categories.categories_for(product_ids), context)
            if not isinstance(labels, dict):
                raise UpstreamLookupFailure("categories", "malformed category mapping", context)

        fallback = self.reporting.uncategorized_label
        return [
            replace(
                line,
                category_key=(labels.get(line.product_id) if line.product_id else None)
                or line.category_key
                or fallback,
            )
            for line in order_lines
        ]

    def _prepare(self, filters: ReportFilters, period_request: PeriodRequest, today: Optional[date]) -> ReportPeriod:
        filters.require_identifier()
        return resolve_period(period_request, today=today, min_year=self.reporting.min_year)

    async def _load_lines(
        self, query: LedgerQuery, context: Dict[str, Any], budget_location: Optional[str], budget_month: Optional[str]
    ) -> Tuple[List[OrderLine], List[RefundLine], Optional[BudgetMap], List[DataQualityWarning]]:
        if budget_location is not None:
            try:
                async with asyncio.TaskGroup() as group:
                    ledger = group.create_task(self._fetch_ledger(query, context))
                    budgets = group.create_task(
                        self.budget_calculator.build_budget_map(budget_location, budget_month)
                    )
            except ExceptionGroup as failures:
                raise _first_failure(failures)
            order_lines, refund_lines = ledger.result()
            budget_map: Optional[BudgetMap] = budgets.result()
        else:
            order_lines, refund_lines = await self._fetch_ledger(query, context)
            budget_map = None

        order_lines = await self._categorize(order_lines, context)

        warnings: List[DataQualityWarning] = []
        if self.settings.data_quality.enable_data_quality_checks:
            warnings.extend(validate_ledger(order_lines, refund_lines))

        return order_lines, refund_lines, budget_map, warnings

    async def compute_category_report(
        self,
        filters: ReportFilters,
        period_request: PeriodRequest,
        today: Optional[date] = None,
    ) -> CategoryReport:
        """
        Build the budget-aware category report.

        Raises:
            MissingFilter: No customer, location or company location given
            InvalidPeriod: Month, year or budget month out of range
            UpstreamLookupFailure: Ledger or category lookup failed
        """
        period = self._prepare(filters, period_request, today)
        budget_location = filters.budget_location
        context = {**filters.to_dict(), "budget_month": period.budget_month}

        with structlog.contextvars.bound_contextvars(**context):
            query = LedgerQuery(filters=filters, period=period.predicate)
            order_lines, refund_lines, budget_map, warnings = await self._load_lines(
                query, context, budget_location, period.budget_month
            )
            if budget_map is None:
                budget_map = BudgetMap()

            label = self.reporting.uncategorized_label
            netting = net_refunds(order_lines, refund_lines, uncategorized_label=label)
            categories = reconcile(netting.categories, budget_map, uncategorized_label=label)
            summary = summarize_orders(order_lines, refund_lines, uncategorized_label=label)

            warnings = budget_map.warnings + netting.warnings + warnings

            logger.info(
                "Category report computed",
                order_lines=len(order_lines),
                refund_lines=len(refund_lines),
                budgeted_categories=len(categories),
                total_orders=summary.total_orders,
                warnings=len(warnings),
            )

            return assemble_report(categories, summary, period, filters, warnings)

    async def compute_product_report(
        self,
        filters: ReportFilters,
        period_request: PeriodRequest,
        today: Optional[date] = None,
    ) -> ProductReport:
        """Netted product list for every product in scope, budgeted or not"""
        period = self._prepare(filters, period_request, today)
        context = {**filters.to_dict(), "budget_month": period.budget_month}

        with structlog.contextvars.bound_contextvars(**context):
            query = LedgerQuery(filters=filters, period=period.predicate)
            order_lines, refund_lines, _, warnings = await self._load_lines(query, context, None, None)

            label = self.reporting.uncategorized_label
            netting = net_refunds(order_lines, refund_lines, uncategorized_label=label)
            summary = summarize_orders(order_lines, refund_lines, uncategorized_label=label)

            logger.info("Product report computed", products=len(netting.products), total_orders=summary.total_orders)

            return assemble_product_report(
                netting.products, summary, period, filters, netting.warnings + warnings
            )


async def compute_category_report(
    ledger: OrderLedger,
    budgets: BudgetDirectory,
    categories: CategoryDirectory,
    filters: ReportFilters,
    period_request: PeriodRequest,
    settings: Optional[Settings] = None,
    today: Optional[date] = None,
) -> CategoryReport:
    """Build a category report with a one-off ReportService"""
    service = ReportService(ledger, budgets, categories, settings)
    return await service.compute_category_report(filters, period_request, today=today)
