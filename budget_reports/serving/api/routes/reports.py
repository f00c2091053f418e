"""
Report API Endpoints

Budget-aware category spend reports and the netted product list.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
import structlog

from budget_reports.reporting.errors import (
    DataQualityWarning,
    InvalidPeriod,
    MissingFilter,
    UpstreamLookupFailure,
)
from budget_reports.reporting.models import ProductRollup, ReconciledCategory, ReportSummary
from budget_reports.reporting.periods import PeriodRequest, ReportFilters
from budget_reports.reporting.service import ReportService
from budget_reports.serving.api.dependencies import get_report_service

router = APIRouter()
logger = structlog.get_logger(__name__)


class ProductResponse(BaseModel):
    """Netted product group"""
    product_id: Optional[str]
    variant_id: Optional[str]
    category: str
    product_name: Optional[str]
    sku: Optional[str]
    vendor: Optional[str]
    gross_quantity: int
    refunded_quantity: int
    net_quantity: int
    gross_value: float
    refunded_value: float
    net_value: float
    average_price: float
    order_count: int
    orders_with_refunds: int
    line_item_count: int


class CategoryResponse(BaseModel):
    """Budgeted category with its netted spend"""
    category: str
    has_budget: bool
    budget: float
    remaining_budget: float
    budget_source: str
    ppd_rate: Optional[float] = None
    census_amount: Optional[float] = None
    days_in_month: Optional[int] = None
    gross_quantity: int
    refunded_quantity: int
    net_quantity: int
    gross_value: float
    refunded_value: float
    net_value: float
    average_price: float
    order_count: int
    products: List[ProductResponse]


class SummaryResponse(BaseModel):
    """Order-level summary"""
    total_orders: int
    orders_with_refunds: int
    total_categories: int
    gross_value: float
    refunded_value: float
    net_value: float
    refund_rate: float
    total_budget: Optional[float] = None


class WarningResponse(BaseModel):
    """Data quality warning"""
    code: str
    message: str
    context: Dict[str, Any]


class CategoryReportResponse(BaseModel):
    """Category report response"""
    month: int
    year: int
    budget_month: str
    filters: Dict[str, Optional[str]]
    categories: List[CategoryResponse]
    summary: SummaryResponse
    warnings: List[WarningResponse]


class ProductReportResponse(BaseModel):
    """Product report response"""
    month: int
    year: int
    budget_month: str
    filters: Dict[str, Optional[str]]
    products: List[ProductResponse]
    summary: SummaryResponse
    warnings: List[WarningResponse]


def _optional_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def _product_response(product: ProductRollup) -> ProductResponse:
    return ProductResponse(
        product_id=product.product_id,
        variant_id=product.variant_id,
        category=product.category_key,
        product_name=product.product_name,
        sku=product.sku,
        vendor=product.vendor,
        gross_quantity=product.gross_quantity,
        refunded_quantity=product.refunded_quantity,
        net_quantity=product.net_quantity,
        gross_value=float(product.gross_value),
        refunded_value=float(product.refunded_value),
        net_value=float(product.net_value),
        average_price=round(float(product.average_price), 2),
        order_count=product.order_count,
        orders_with_refunds=product.orders_with_refunds,
        line_item_count=product.line_item_count,
    )


def _category_response(category: ReconciledCategory) -> CategoryResponse:
    budget = category.budget
    return CategoryResponse(
        category=category.category_key,
        has_budget=category.has_budget,
        budget=float(category.budget_amount),
        remaining_budget=float(category.remaining_budget),
        budget_source=budget.source.value,
        ppd_rate=_optional_float(budget.ppd_rate),
        census_amount=_optional_float(budget.census_amount),
        days_in_month=budget.days_in_month,
        gross_quantity=category.gross_quantity,
        refunded_quantity=category.refunded_quantity,
        net_quantity=category.net_quantity,
        gross_value=float(category.gross_value),
        refunded_value=float(category.refunded_value),
        net_value=float(category.net_value),
        average_price=round(float(category.average_price), 2),
        order_count=category.order_count,
        products=[_product_response(p) for p in category.products],
    )


def _summary_response(summary: ReportSummary, total_budget=None) -> SummaryResponse:
    return SummaryResponse(
        total_orders=summary.total_orders,
        orders_with_refunds=summary.orders_with_refunds,
        total_categories=summary.total_categories,
        gross_value=float(summary.gross_value),
        refunded_value=float(summary.refunded_value),
        net_value=float(summary.net_value),
        refund_rate=round(summary.refund_rate, 2),
        total_budget=_optional_float(total_budget),
    )


def _warning_responses(warnings: List[DataQualityWarning]) -> List[WarningResponse]:
    return [WarningResponse(**w.to_dict()) for w in warnings]


def _report_inputs(
    customer_id: Optional[str],
    location_id: Optional[str],
    company_location_id: Optional[str],
    month: Optional[int],
    year: Optional[int],
    budget_month: Optional[str],
):
    filters = ReportFilters(
        customer_id=customer_id,
        location_id=location_id,
        company_location_id=company_location_id,
    )
    period = PeriodRequest(month=month, year=year, budget_month=budget_month)
    return filters, period


@router.get("/categories", response_model=CategoryReportResponse)
async def get_category_report(
    customer_id: Optional[str] = None,
    location_id: Optional[str] = None,
    company_location_id: Optional[str] = None,
    month: Optional[int] = Query(None, description="Report month, defaults to the current month"),
    year: Optional[int] = Query(None, description="Report year, defaults to the current year"),
    budget_month: Optional[str] = Query(None, description="Explicit budget month (MM-YYYY)"),
    service: ReportService = Depends(get_report_service),
):
    """
    Get the budget-aware category report.

    Only budgeted categories are returned; budgeted categories without
    orders appear with zero spend.
    """
    filters, period = _report_inputs(customer_id, location_id, company_location_id, month, year, budget_month)

    try:
        report = await service.compute_category_report(filters, period)
    except (InvalidPeriod, MissingFilter) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamLookupFailure as e:
        logger.error("Category report failed", source=e.source, **e.context)
        raise HTTPException(status_code=502, detail=str(e))

    return CategoryReportResponse(
        month=report.month,
        year=report.year,
        budget_month=report.budget_month,
        filters=report.filters,
        categories=[_category_response(c) for c in report.categories],
        summary=_summary_response(report.summary, report.total_budget),
        warnings=_warning_responses(report.warnings),
    )


@router.get("/products", response_model=ProductReportResponse)
async def get_product_report(
    customer_id: Optional[str] = None,
    location_id: Optional[str] = None,
    company_location_id: Optional[str] = None,
    month: Optional[int] = Query(None, description="Report month, defaults to the current month"),
    year: Optional[int] = Query(None, description="Report year, defaults to the current year"),
    budget_month: Optional[str] = Query(None, description="Explicit budget month (MM-YYYY)"),
    service: ReportService = Depends(get_report_service),
):
    """Get every netted product in scope, ordered by net quantity."""
    filters, period = _report_inputs(customer_id, location_id, company_location_id, month, year, budget_month)

    try:
        report = await service.compute_product_report(filters, period)
    except (InvalidPeriod, MissingFilter) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except UpstreamLookupFailure as e:
        logger.error("Product report failed", source=e.source, **e.context)
        raise HTTPException(status_code=502, detail=str(e))

    return ProductReportResponse(
        month=report.month,
        year=report.year,
        budget_month=report.budget_month,
        filters=report.filters,
        products=[_product_response(p) for p in report.products],
        summary=_summary_response(report.summary),
        warnings=_warning_responses(report.warnings),
    )
