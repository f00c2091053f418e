"""
Report Assembler

Order-level summary statistics and the final report shape.
"""

from typing import Iterable, List, Optional, Sequence

from .entities import canonical_category
from .errors import DataQualityWarning
from .models import (
    ZERO,
    CategoryReport,
    OrderLine,
    ProductReport,
    ProductRollup,
    ReconciledCategory,
    RefundLine,
    ReportSummary,
)
from .periods import ReportFilters, ReportPeriod


def refund_rate(orders_with_refunds: int, total_orders: int) -> float:
    """Percentage of orders with at least one refund, 0 for no orders"""
    if total_orders <= 0:
        return 0.0
    return orders_with_refunds / total_orders * 100


def summarize_orders(
    order_lines: Iterable[OrderLine],
    refund_lines: Iterable[RefundLine],
    uncategorized_label: str = "Uncategorized",
) -> ReportSummary:
    """
    Summary over every order line in scope.

    Categories later dropped for lack of a budget still count here.
    """
    line_orders = {}
    order_ids = set()
    categories = set()
    gross_value = ZERO

    for line in order_lines:
        line_orders[line.line_id] = line.order_id
        order_ids.add(line.order_id)
        categories.add(canonical_category(line.category_key, default=uncategorized_label))
        gross_value += line.line_value

    refunded_orders = set()
    refunded_value = ZERO
    for refund in refund_lines:
        order_id = line_orders.get(refund.order_line_id)
        if order_id is None:
            continue
        refunded_orders.add(order_id)
        refunded_value += refund.subtotal

    return ReportSummary(
        total_orders=len(order_ids),
        orders_with_refunds=len(refunded_orders),
        total_categories=len(categories),
        gross_value=gross_value,
        refunded_value=refunded_value,
        net_value=gross_value - refunded_value,
        refund_rate=refund_rate(len(refunded_orders), len(order_ids)),
    )


def assemble_report(
    categories: List[ReconciledCategory],
    summary: ReportSummary,
    period: ReportPeriod,
    filters: ReportFilters,
    warnings: Optional[Sequence[DataQualityWarning]] = None,
) -> CategoryReport:
    return CategoryReport(
        categories=categories,
        summary=summary,
        month=period.month,
        year=period.year,
        budget_month=period.budget_month,
        filters=filters.to_dict(),
        warnings=list(warnings or []),
    )


def assemble_product_report(
    products: List[ProductRollup],
    summary: ReportSummary,
    period: ReportPeriod,
    filters: ReportFilters,
    warnings: Optional[Sequence[DataQualityWarning]] = None,
) -> ProductReport:
    return ProductReport(
        products=products,
        summary=summary,
        month=period.month,
        year=period.year,
        budget_month=period.budget_month,
        filters=filters.to_dict(),
        warnings=list(warnings or []),
    )
