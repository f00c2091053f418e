"""
Report Data Model

Read-only snapshots taken from the order ledger and budget configuration,
plus the ephemeral aggregates built from them for a single report request.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from .errors import DataQualityWarning

ZERO = Decimal("0")


# =============================================================================
# LEDGER SNAPSHOTS
# =============================================================================

@dataclass(frozen=True)
class OrderLine:
    """Single ordered line item"""
    order_id: str
    line_id: str
    product_id: Optional[str]
    variant_id: Optional[str]
    product_name: Optional[str]
    sku: Optional[str]
    vendor: Optional[str]
    quantity: int
    unit_price: Decimal
    category_key: Optional[str] = None
    budget_month: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def line_value(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class RefundLine:
    """Refunded portion of an order line"""
    refund_id: str
    order_line_id: str
    quantity: int
    subtotal: Decimal
    order_id: Optional[str] = None


# =============================================================================
# NETTED AGGREGATES
# =============================================================================

ProductKey = Tuple[Optional[str], Optional[str], str]


@dataclass
class ProductRollup:
    """Gross, refunded and net figures for one (product, variant, category) group"""
    product_id: Optional[str]
    variant_id: Optional[str]
    category_key: str
    product_name: Optional[str] = None
    sku: Optional[str] = None
    vendor: Optional[str] = None
    gross_quantity: int = 0
    refunded_quantity: int = 0
    gross_value: Decimal = ZERO
    refunded_value: Decimal = ZERO
    line_item_count: int = 0
    order_ids: Set[str] = field(default_factory=set)
    refunded_order_ids: Set[str] = field(default_factory=set)

    @property
    def key(self) -> ProductKey:
        return (self.product_id, self.variant_id, self.category_key)

    @property
    def net_quantity(self) -> int:
        return self.gross_quantity - self.refunded_quantity

    @property
    def net_value(self) -> Decimal:
        return self.gross_value - self.refunded_value

    @property
    def average_price(self) -> Decimal:
        # Refunds never change the price paid per unit
        if self.gross_quantity == 0:
            return ZERO
        return self.gross_value / self.gross_quantity

    @property
    def order_count(self) -> int:
        return len(self.order_ids)

    @property
    def orders_with_refunds(self) -> int:
        return len(self.refunded_order_ids)


@dataclass
class CategoryAggregate:
    """Product rollups summed into a single category"""
    category_key: str
    gross_quantity: int = 0
    refunded_quantity: int = 0
    gross_value: Decimal = ZERO
    refunded_value: Decimal = ZERO
    order_ids: Set[str] = field(default_factory=set)
    products: List[ProductRollup] = field(default_factory=list)

    @property
    def net_quantity(self) -> int:
        return self.gross_quantity - self.refunded_quantity

    @property
    def net_value(self) -> Decimal:
        return self.gross_value - self.refunded_value

    @property
    def average_price(self) -> Decimal:
        if self.gross_quantity == 0:
            return ZERO
        return self.gross_value / self.gross_quantity

    @property
    def order_count(self) -> int:
        return len(self.order_ids)

    def add_product(self, product: ProductRollup) -> None:
        self.products.append(product)
        self.gross_quantity += product.gross_quantity
        self.refunded_quantity += product.refunded_quantity
        self.gross_value += product.gross_value
        self.refunded_value += product.refunded_value
        self.order_ids |= product.order_ids

    def merge(self, other: "CategoryAggregate", category_key: Optional[str] = None) -> "CategoryAggregate":
        """Combine two aggregates into a new one"""
        merged = CategoryAggregate(category_key=category_key or self.category_key)
        for product in self.products + other.products:
            merged.add_product(product)
        merged.sort_products()
        return merged

    def sort_products(self) -> None:
        self.products.sort(key=lambda p: (-p.net_quantity, -p.net_value))


@dataclass
class NettingResult:
    """Output of the refund netting calculator"""
    categories: Dict[str, CategoryAggregate]
    products: List[ProductRollup]
    unmatched_refund_lines: int = 0
    warnings: List[DataQualityWarning] = field(default_factory=list)


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetSource(str, Enum):
    """Where a budget figure came from"""
    STATIC = "static"
    CENSUS_DERIVED = "census_derived"


@dataclass(frozen=True)
class CategoryAllocation:
    """Budget configuration row for one category assigned to a location"""
    category_name: str
    amount: Decimal
    category_id: Optional[str] = None
    budget_name: Optional[str] = None


@dataclass(frozen=True)
class CensusReading:
    """Census figure for a location and budget month"""
    location_id: str
    budget_month: str
    amount: Decimal
    defaulted: bool = False


@dataclass(frozen=True)
class BudgetEntry:
    """Budget figure for one category at one location"""
    category_key: str
    location_id: str
    amount: Decimal
    source: BudgetSource
    raw_name: Optional[str] = None
    ppd_rate: Optional[Decimal] = None
    census_amount: Optional[Decimal] = None
    days_in_month: Optional[int] = None


# =============================================================================
# REPORT OUTPUT
# =============================================================================

@dataclass
class ReconciledCategory:
    """A budgeted category joined with its netted order activity"""
    category_key: str
    budget: BudgetEntry
    aggregate: Optional[CategoryAggregate] = None
    has_budget: bool = True

    @property
    def budget_amount(self) -> Decimal:
        return self.budget.amount

    @property
    def gross_quantity(self) -> int:
        return self.aggregate.gross_quantity if self.aggregate else 0

    @property
    def refunded_quantity(self) -> int:
        return self.aggregate.refunded_quantity if self.aggregate else 0

    @property
    def net_quantity(self) -> int:
        return self.aggregate.net_quantity if self.aggregate else 0

    @property
    def gross_value(self) -> Decimal:
        return self.aggregate.gross_value if self.aggregate else ZERO

    @property
    def refunded_value(self) -> Decimal:
        return self.aggregate.refunded_value if self.aggregate else ZERO

    @property
    def net_value(self) -> Decimal:
        return self.aggregate.net_value if self.aggregate else ZERO

    @property
    def average_price(self) -> Decimal:
        return self.aggregate.average_price if self.aggregate else ZERO

    @property
    def order_count(self) -> int:
        return self.aggregate.order_count if self.aggregate else 0

    @property
    def products(self) -> List[ProductRollup]:
        return list(self.aggregate.products) if self.aggregate else []

    @property
    def remaining_budget(self) -> Decimal:
        return self.budget.amount - self.net_value


@dataclass(frozen=True)
class ReportSummary:
    """Order-level statistics for everything in scope"""
    total_orders: int
    orders_with_refunds: int
    total_categories: int
    gross_value: Decimal
    refunded_value: Decimal
    net_value: Decimal
    refund_rate: float


@dataclass
class CategoryReport:
    """Final category report returned to callers"""
    categories: List[ReconciledCategory]
    summary: ReportSummary
    month: int
    year: int
    budget_month: str
    filters: Dict[str, Optional[str]]
    warnings: List[DataQualityWarning] = field(default_factory=list)

    @property
    def total_budget(self) -> Decimal:
        return sum((c.budget_amount for c in self.categories), ZERO)


@dataclass
class ProductReport:
    """Netted product list for the same scope as a category report"""
    products: List[ProductRollup]
    summary: ReportSummary
    month: int
    year: int
    budget_month: str
    filters: Dict[str, Optional[str]]
    warnings: List[DataQualityWarning] = field(default_factory=list)
