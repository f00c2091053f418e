"""
Database Models - Order Ledger and Budget Configuration

Fact Tables:
- FactOrder / FactOrderLine: Orders and their line items
- FactRefund / FactRefundLine: Refunds and the order lines they reverse

Dimension and Configuration Tables:
- DimProduct: Product catalog with its budget category label
- BudgetCategoryMaster: Budget categories
- Budget / BudgetAllocation: Budgets and per-category allocations (PPD rates)
- BudgetLocationAssignment: Which budget applies to which location
- LocationCensus: Monthly census per location
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# =============================================================================
# ENUMERATIONS
# =============================================================================

class BudgetStatus(str, Enum):
    """Budget and assignment status"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


# =============================================================================
# DIMENSION TABLES
# =============================================================================

class DimProduct(Base):
    """
    Product Dimension Table

    ``category`` holds the catalog label exactly as synced, which may
    contain escaped characters.
    """
    __tablename__ = "dim_products"

    product_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[Optional[str]] = mapped_column(String(255))
    vendor: Mapped[Optional[str]] = mapped_column(String(255))
    product_type: Mapped[Optional[str]] = mapped_column(String(255))
    category: Mapped[Optional[str]] = mapped_column(String(255))
    status: Mapped[Optional[str]] = mapped_column(String(50))

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_dim_products_category", "category"),
    )


# =============================================================================
# FACT TABLES
# =============================================================================

class FactOrder(Base):
    """
    Order Fact Table

    ``budget_month`` is the ``MM-YYYY`` tag assigned at checkout; older
    orders have none and fall back to ``created_at``.
    """
    __tablename__ = "fact_orders"

    order_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_name: Mapped[Optional[str]] = mapped_column(String(50))
    customer_id: Mapped[Optional[str]] = mapped_column(String(64))
    location_id: Mapped[Optional[str]] = mapped_column(String(64))
    company_location_id: Mapped[Optional[str]] = mapped_column(String(64))
    budget_month: Mapped[Optional[str]] = mapped_column(String(7))
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    lines: Mapped[List["FactOrderLine"]] = relationship(back_populates="order")

    __table_args__ = (
        Index("ix_fact_orders_customer", "customer_id"),
        Index("ix_fact_orders_location", "location_id"),
        Index("ix_fact_orders_company_location", "company_location_id"),
        Index("ix_fact_orders_budget_month", "budget_month"),
        Index("ix_fact_orders_created_at", "created_at"),
    )


class FactOrderLine(Base):
    """Order Line Fact Table"""
    __tablename__ = "fact_order_lines"

    line_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("fact_orders.order_id"), nullable=False
    )
    product_id: Mapped[Optional[str]] = mapped_column(String(64))
    variant_id: Mapped[Optional[str]] = mapped_column(String(64))
    name: Mapped[Optional[str]] = mapped_column(String(255))
    sku: Mapped[Optional[str]] = mapped_column(String(100))
    vendor: Mapped[Optional[str]] = mapped_column(String(255))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)

    order: Mapped["FactOrder"] = relationship(back_populates="lines")

    __table_args__ = (
        Index("ix_fact_order_lines_order", "order_id"),
        Index("ix_fact_order_lines_product", "product_id"),
    )


class FactRefund(Base):
    """Refund Fact Table"""
    __tablename__ = "fact_refunds"

    refund_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    order_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("fact_orders.order_id"), nullable=False
    )
    note: Mapped[Optional[str]] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    lines: Mapped[List["FactRefundLine"]] = relationship(back_populates="refund")

    __table_args__ = (
        Index("ix_fact_refunds_order", "order_id"),
    )


class FactRefundLine(Base):
    """Refund Line Fact Table"""
    __tablename__ = "fact_refund_lines"

    refund_line_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    refund_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("fact_refunds.refund_id"), nullable=False
    )
    order_line_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("fact_order_lines.line_id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)

    refund: Mapped["FactRefund"] = relationship(back_populates="lines")

    __table_args__ = (
        Index("ix_fact_refund_lines_order_line", "order_line_id"),
    )


# =============================================================================
# BUDGET CONFIGURATION
# =============================================================================

class BudgetCategoryMaster(Base):
    """Budget Category Table"""
    __tablename__ = "budget_categories_master"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    category_name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    category_code: Mapped[Optional[str]] = mapped_column(String(50))
    parent_category_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("budget_categories_master.id")
    )
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Budget(Base):
    """Budget Header Table"""
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(1000))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    status: Mapped[BudgetStatus] = mapped_column(
        SQLEnum(BudgetStatus), default=BudgetStatus.ACTIVE
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    allocations: Mapped[List["BudgetAllocation"]] = relationship(back_populates="budget")


class BudgetAllocation(Base):
    """
    Budget Category Allocation Table

    ``allocated_amount`` is a flat amount for static budgets and a
    per-patient-day rate for census-derived budgets.
    """
    __tablename__ = "budget_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    budget_id: Mapped[int] = mapped_column(Integer, ForeignKey("budgets.id"), nullable=False)
    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("budget_categories_master.id"), nullable=False
    )
    allocated_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)

    budget: Mapped["Budget"] = relationship(back_populates="allocations")
    category: Mapped["BudgetCategoryMaster"] = relationship()

    __table_args__ = (
        UniqueConstraint("budget_id", "category_id", name="uq_budget_categories_budget_category"),
    )


class BudgetLocationAssignment(Base):
    """Budget to Location Assignment Table"""
    __tablename__ = "budget_location_assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    budget_id: Mapped[int] = mapped_column(Integer, ForeignKey("budgets.id"), nullable=False)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[BudgetStatus] = mapped_column(
        SQLEnum(BudgetStatus), default=BudgetStatus.ACTIVE
    )
    assigned_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        Index("ix_budget_location_assignments_location", "location_id", "status"),
    )


class LocationCensus(Base):
    """
    Location Census Table

    One census figure per location and ``MM-YYYY`` month.
    """
    __tablename__ = "location_census"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    census_month: Mapped[str] = mapped_column(String(7), nullable=False)
    census_amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("location_id", "census_month", name="uq_location_census_location_month"),
        Index("ix_location_census_location", "location_id"),
    )
