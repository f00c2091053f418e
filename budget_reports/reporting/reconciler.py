"""
Category Reconciler

Joins netted category aggregates with the budget map. Only budgeted
categories are reported; a budgeted category without orders still appears
with zeroed figures.
"""

from typing import Dict, List, Mapping

import structlog

from .budgets import BudgetMap
from .entities import canonical_category
from .models import CategoryAggregate, ReconciledCategory

logger = structlog.get_logger(__name__)


def canonicalize_aggregates(
    aggregates: Mapping[str, CategoryAggregate],
    uncategorized_label: str = "Uncategorized",
) -> Dict[str, CategoryAggregate]:
    """Re-key aggregates by canonical category, merging keys that decode alike"""
    canonical: Dict[str, CategoryAggregate] = {}
    for raw_key, aggregate in aggregates.items():
        key = canonical_category(raw_key, default=uncategorized_label)
        existing = canonical.get(key)
        if existing is None:
            canonical[key] = aggregate if key == aggregate.category_key else _rekey(aggregate, key)
        else:
            canonical[key] = existing.merge(aggregate, category_key=key)
    return canonical


def _rekey(aggregate: CategoryAggregate, key: str) -> CategoryAggregate:
    rekeyed = CategoryAggregate(category_key=key)
    for product in aggregate.products:
        rekeyed.add_product(product)
    rekeyed.sort_products()
    return rekeyed


def reconcile(
    aggregates: Mapping[str, CategoryAggregate],
    budget_map: BudgetMap,
    uncategorized_label: str = "Uncategorized",
) -> List[ReconciledCategory]:
    """
    Reconcile category aggregates against the budget map.

    The result has exactly one entry per budget map key, in budget
    configuration order. Aggregates for unbudgeted categories are dropped.
    """
    canonical = canonicalize_aggregates(aggregates, uncategorized_label)

    reconciled: List[ReconciledCategory] = []
    for entry in budget_map.entries():
        reconciled.append(
            ReconciledCategory(
                category_key=entry.category_key,
                budget=entry,
                aggregate=canonical.get(entry.category_key),
                has_budget=True,
            )
        )

    dropped = [key for key in canonical if key not in budget_map]
    if dropped:
        logger.debug("Dropped categories without budget", categories=dropped)

    return reconciled
