"""
Ledger Validation Module

Rule-based data quality checks over the order and refund line snapshots
fetched for a report. Failed checks never block a report; they are
returned as ``LEDGER_VALIDATION`` warnings.

Features:
- Null checks on identifiers
- Uniqueness checks
- Range checks on quantities and amounts
- Referential integrity between refund lines and order lines
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

import polars as pl
import structlog

from budget_reports.reporting.errors import DataQualityWarning, WarningCode
from budget_reports.reporting.models import OrderLine, RefundLine

logger = structlog.get_logger(__name__)


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Percentage of passed checks"""
        if self.total_checks == 0:
            return 100.0
        return (self.passed_checks / self.total_checks) * 100

    @property
    def failures(self) -> List[ValidationCheck]:
        return [c for c in self.checks if not c.passed]


class DataValidator:
    """
    Rule-based validator over polars DataFrames.

    Example:
        validator = DataValidator("order_lines")
        validator.add_not_null_check("line_id")
        validator.add_range_check("quantity", min_value=0)
        result = validator.validate(df)
    """

    def __init__(self, dataset: str = "dataset", strict_mode: bool = False):
        self.dataset = dataset
        self.strict_mode = strict_mode  # Fail on any warning
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    @staticmethod
    def _missing_column(name: str, column: str, severity: ValidationSeverity) -> ValidationCheck:
        return ValidationCheck(
            name=name,
            passed=False,
            severity=severity,
            message=f"Column '{column}' not found",
        )

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for null values in column"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"not_null_{column}"
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            null_count = df[column].null_count()
            total = len(df)
            passed = null_count == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {null_count} null values" if not passed else f"Column '{column}' has no null values",
                details={"null_count": null_count},
                failed_rows=null_count,
                total_rows=total,
            )

        self._checks.append(check)
        return self

    def add_unique_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for uniqueness of non-null column values"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"unique_{column}"
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            values = df[column].drop_nulls()
            duplicate_count = len(values) - values.n_unique()
            passed = duplicate_count == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {duplicate_count} duplicate values" if not passed else f"Column '{column}' values are unique",
                details={"duplicate_count": duplicate_count},
                failed_rows=duplicate_count,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_range_check(
        self,
        column: str,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check for values within specified range"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"range_{column}"
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            conditions = []
            if min_value is not None:
                conditions.append(pl.col(column) < min_value)
            if max_value is not None:
                conditions.append(pl.col(column) > max_value)

            if not conditions:
                return ValidationCheck(name=name, passed=True, severity=severity, message="No range specified")

            combined = conditions[0]
            for cond in conditions[1:]:
                combined = combined | cond

            out_of_range = df.filter(combined).height
            passed = out_of_range == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {out_of_range} values outside range [{min_value}, {max_value}]" if not passed else "All values in range",
                details={"min": min_value, "max": max_value, "out_of_range_count": out_of_range},
                failed_rows=out_of_range,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def add_non_negative_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        return self.add_range_check(column, min_value=0, severity=severity)

    def add_referential_integrity_check(
        self,
        column: str,
        reference_df: pl.DataFrame,
        reference_column: str,
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check that every value in ``column`` exists in the reference frame"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            name = f"ref_integrity_{column}"
            if column not in df.columns:
                return self._missing_column(name, column, severity)

            ref_values = reference_df[reference_column].drop_nulls().unique()
            if len(ref_values) == 0:
                orphans = df.filter(pl.col(column).is_not_null()).height
            else:
                orphans = df.filter(
                    ~pl.col(column).is_in(ref_values.to_list()) & pl.col(column).is_not_null()
                ).height
            passed = orphans == 0

            return ValidationCheck(
                name=name,
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {orphans} orphan records" if not passed else "Referential integrity maintained",
                details={"orphan_count": orphans},
                failed_rows=orphans,
                total_rows=len(df),
            )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all validation checks on DataFrame.

        Args:
            df: DataFrame to validate

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.now(timezone.utc)
        results = [check_func(df) for check_func in self._checks]

        for result in results:
            if not result.passed:
                logger.warning(
                    "Validation failed",
                    dataset=self.dataset,
                    check=result.name,
                    message=result.message,
                    severity=result.severity.value,
                )

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0 and self.strict_mode:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        logger.debug(
            "Validation complete",
            dataset=self.dataset,
            status=status.value,
            rows=len(df),
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )

        return ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )


# =============================================================================
# LEDGER FRAMES
# =============================================================================

ORDER_LINE_SCHEMA = {
    "order_id": pl.Utf8,
    "line_id": pl.Utf8,
    "product_id": pl.Utf8,
    "variant_id": pl.Utf8,
    "category_key": pl.Utf8,
    "quantity": pl.Int64,
    "unit_price": pl.Float64,
}

REFUND_LINE_SCHEMA = {
    "refund_id": pl.Utf8,
    "order_line_id": pl.Utf8,
    "quantity": pl.Int64,
    "subtotal": pl.Float64,
}


def order_lines_frame(order_lines: Sequence[OrderLine]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "order_id": [line.order_id for line in order_lines],
            "line_id": [line.line_id for line in order_lines],
            "product_id": [line.product_id for line in order_lines],
            "variant_id": [line.variant_id for line in order_lines],
            "category_key": [line.category_key for line in order_lines],
            "quantity": [line.quantity for line in order_lines],
            "unit_price": [float(line.unit_price) for line in order_lines],
        },
        schema=ORDER_LINE_SCHEMA,
    )


def refund_lines_frame(refund_lines: Sequence[RefundLine]) -> pl.DataFrame:
    return pl.DataFrame(
        {
            "refund_id": [r.refund_id for r in refund_lines],
            "order_line_id": [r.order_line_id for r in refund_lines],
            "quantity": [r.quantity for r in refund_lines],
            "subtotal": [float(r.subtotal) for r in refund_lines],
        },
        schema=REFUND_LINE_SCHEMA,
    )


# Pre-built validators for ledger snapshots
def create_order_lines_validator() -> DataValidator:
    """Create pre-configured validator for order lines"""
    return (
        DataValidator("order_lines")
        .add_not_null_check("order_id")
        .add_not_null_check("line_id")
        .add_unique_check("line_id")
        .add_not_null_check("product_id", severity=ValidationSeverity.WARNING)
        .add_non_negative_check("quantity")
        .add_non_negative_check("unit_price")
    )


def create_refund_lines_validator(order_lines: Optional[pl.DataFrame] = None) -> DataValidator:
    """Create pre-configured validator for refund lines"""
    validator = (
        DataValidator("refund_lines")
        .add_not_null_check("refund_id")
        .add_not_null_check("order_line_id")
        .add_non_negative_check("quantity")
        .add_non_negative_check("subtotal")
    )
    if order_lines is not None:
        validator.add_referential_integrity_check(
            "order_line_id", order_lines, "line_id", severity=ValidationSeverity.WARNING
        )
    return validator


def validate_ledger(
    order_lines: Sequence[OrderLine],
    refund_lines: Sequence[RefundLine],
) -> List[DataQualityWarning]:
    """
    Validate ledger snapshots and convert failed checks into warnings.

    Returns:
        One ``LEDGER_VALIDATION`` warning per failed check
    """
    orders_df = order_lines_frame(order_lines)
    refunds_df = refund_lines_frame(refund_lines)

    results = [
        create_order_lines_validator().validate(orders_df),
        create_refund_lines_validator(orders_df).validate(refunds_df),
    ]

    warnings: List[DataQualityWarning] = []
    for dataset, result in zip(("order_lines", "refund_lines"), results):
        for check in result.failures:
            warnings.append(
                DataQualityWarning(
                    code=WarningCode.LEDGER_VALIDATION,
                    message=f"{dataset}: {check.message}",
                    context={
                        "dataset": dataset,
                        "check": check.name,
                        "severity": check.severity.value,
                        "failed_rows": check.failed_rows,
                        "total_rows": check.total_rows,
                    },
                )
            )
    return warnings
