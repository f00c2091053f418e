"""
Report Errors and Data Quality Signals

Fatal errors raise; data quality problems are collected as warnings and
returned alongside the report.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ReportError(ValueError):
    """Base class for category report errors"""


class InvalidPeriod(ReportError):
    """Month, year or budget month outside the reportable range"""


class MissingFilter(ReportError):
    """No customer, location or company location filter supplied"""


class UpstreamLookupFailure(ReportError):
    """
    A collaborator lookup failed, timed out or returned malformed data.

    Attributes:
        source: Which sub-lookup failed (order_lines, refund_lines, categories, ...)
        context: Filter and period values needed to reproduce the failure
    """

    def __init__(self, source: str, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(f"{source} lookup failed: {message}")
        self.source = source
        self.context = context or {}


class WarningCode(str, Enum):
    """Data quality warning codes"""
    NEGATIVE_NET = "negative_net"
    CENSUS_DEFAULTED = "census_defaulted"
    LEDGER_VALIDATION = "ledger_validation"


@dataclass(frozen=True)
class DataQualityWarning:
    """Non-fatal data quality signal surfaced with a report"""
    code: WarningCode
    message: str
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "context": dict(self.context)}
