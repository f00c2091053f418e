"""
Refund Netting Calculator

Nets gross order quantities and values against refunds at line item
granularity, then rolls product groups up into categories.
"""

from typing import Dict, Iterable, List

import structlog

from .errors import DataQualityWarning, WarningCode
from .models import (
    ZERO,
    CategoryAggregate,
    NettingResult,
    OrderLine,
    ProductKey,
    ProductRollup,
    RefundLine,
)

logger = structlog.get_logger(__name__)


def _negative_net_warning(product: ProductRollup) -> DataQualityWarning:
    return DataQualityWarning(
        code=WarningCode.NEGATIVE_NET,
        message=(
            f"Refunds exceed ordered amounts for product {product.product_id} "
            f"in category {product.category_key}"
        ),
        context={
            "product_id": product.product_id,
            "variant_id": product.variant_id,
            "category_key": product.category_key,
            "net_quantity": product.net_quantity,
            "net_value": str(product.net_value),
        },
    )


def net_refunds(
    order_lines: Iterable[OrderLine],
    refund_lines: Iterable[RefundLine],
    uncategorized_label: str = "Uncategorized",
) -> NettingResult:
    """
    Net refunds against order lines.

    Negative nets are passed through unchanged and reported as
    ``NEGATIVE_NET`` warnings. Refund lines referencing a line outside
    ``order_lines`` are ignored.

    Args:
        order_lines: Order lines in scope for the report
        refund_lines: Refund lines for those order lines
        uncategorized_label: Category used for lines without one

    Returns:
        NettingResult with category aggregates keyed by raw category key
    """
    groups: Dict[ProductKey, ProductRollup] = {}
    line_groups: Dict[str, ProductRollup] = {}
    line_orders: Dict[str, str] = {}

    for line in order_lines:
        category_key = line.category_key or uncategorized_label
        key = (line.product_id, line.variant_id, category_key)
        product = groups.get(key)
        if product is None:
            product = ProductRollup(
                product_id=line.product_id,
                variant_id=line.variant_id,
                category_key=category_key,
                product_name=line.product_name,
                sku=line.sku,
                vendor=line.vendor,
            )
            groups[key] = product

        product.gross_quantity += line.quantity
        product.gross_value += line.line_value
        product.line_item_count += 1
        product.order_ids.add(line.order_id)
        line_groups[line.line_id] = product
        line_orders[line.line_id] = line.order_id

    unmatched = 0
    for refund in refund_lines:
        product = line_groups.get(refund.order_line_id)
        if product is None:
            unmatched += 1
            continue
        product.refunded_quantity += refund.quantity
        product.refunded_value += refund.subtotal
        product.refunded_order_ids.add(line_orders[refund.order_line_id])

    if unmatched:
        logger.debug("Ignored refund lines without a matching order line", count=unmatched)

    categories: Dict[str, CategoryAggregate] = {}
    warnings: List[DataQualityWarning] = []
    for product in groups.values():
        aggregate = categories.get(product.category_key)
        if aggregate is None:
            aggregate = CategoryAggregate(category_key=product.category_key)
            categories[product.category_key] = aggregate
        aggregate.add_product(product)

        if product.net_quantity < 0 or product.net_value < ZERO:
            warnings.append(_negative_net_warning(product))

    for aggregate in categories.values():
        aggregate.sort_products()

    products = sorted(groups.values(), key=lambda p: (-p.net_quantity, -p.net_value))

    if warnings:
        logger.warning("Negative net figures after refunds", product_groups=len(warnings))

    return NettingResult(
        categories=categories,
        products=products,
        unmatched_refund_lines=unmatched,
        warnings=warnings,
    )
