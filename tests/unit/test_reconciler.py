"""
Unit Tests - Category Reconciler
"""
from decimal import Decimal

from budget_reports.reporting.budgets import BudgetMap
from budget_reports.reporting.models import BudgetEntry, BudgetSource
from budget_reports.reporting.netting import net_refunds
from budget_reports.reporting.reconciler import canonicalize_aggregates, reconcile
from tests.conftest import make_line, make_refund


def budget(name, amount):
    return BudgetEntry(
        category_key=name,
        location_id="loc-1",
        amount=Decimal(amount),
        source=BudgetSource.STATIC,
    )


class TestReconcile:
    """Tests for reconcile"""

    def test_only_budgeted_categories_returned(self):
        """Test output size equals budget keys and unbudgeted categories drop"""
        aggregates = net_refunds(
            [
                make_line("l1", "o1", "prod-1", 2, "5.00", category_key="Wound Care"),
                make_line("l2", "o1", "prod-2", 1, "30.00", category_key="Linens"),
            ],
            [],
        ).categories
        budget_map = BudgetMap([budget("Wound Care", "300.00"), budget("Incontinence", "50.00")])

        result = reconcile(aggregates, budget_map)

        assert [c.category_key for c in result] == ["Wound Care", "Incontinence"]
        assert all(c.has_budget for c in result)
        assert "Linens" not in [c.category_key for c in result]

    def test_budgeted_category_without_orders_is_zeroed(self):
        result = reconcile({}, BudgetMap([budget("Wound Care", "300.00")]))

        wound = result[0]
        assert wound.net_quantity == 0
        assert wound.net_value == Decimal("0")
        assert wound.order_count == 0
        assert wound.products == []
        assert wound.remaining_budget == Decimal("300.00")

    def test_remaining_budget(self):
        aggregates = net_refunds(
            [make_line("l1", "o1", "prod-1", 10, "5.00", category_key="Gloves")],
            [make_refund("r1", "l1", quantity=2, subtotal="10.00")],
        ).categories

        result = reconcile(aggregates, BudgetMap([budget("Gloves", "100.00")]))

        assert result[0].net_value == Decimal("40.00")
        assert result[0].remaining_budget == Decimal("60.00")

    def test_encoded_keys_match_decoded_budget(self):
        """Test catalog and budget spellings of the same category join"""
        aggregates = net_refunds(
            [make_line("l1", "o1", "prod-1", 1, "5.00", category_key="Gloves &amp; Masks")],
            [],
        ).categories

        result = reconcile(aggregates, BudgetMap([budget("Gloves \\u0026 Masks", "10.00")]))

        assert result[0].category_key == "Gloves & Masks"
        assert result[0].gross_quantity == 1

    def test_colliding_keys_are_merged(self):
        aggregates = net_refunds(
            [
                make_line("l1", "o1", "prod-1", 1, "5.00", category_key="Gloves &amp; Masks"),
                make_line("l2", "o2", "prod-2", 2, "5.00", category_key="Gloves & Masks"),
            ],
            [],
        ).categories

        merged = canonicalize_aggregates(aggregates)
        result = reconcile(aggregates, BudgetMap([budget("Gloves & Masks", "100.00")]))

        assert list(merged) == ["Gloves & Masks"]
        assert result[0].gross_quantity == 3
        assert result[0].order_count == 2
        assert len(result[0].products) == 2

    def test_empty_budget_map(self):
        aggregates = net_refunds([make_line("l1", "o1", category_key="Gloves")], []).categories
        assert reconcile(aggregates, BudgetMap()) == []
