"""
Data Quality Module
"""
from .validators import DataValidator, ValidationResult, validate_ledger

__all__ = [
    "DataValidator",
    "ValidationResult",
    "validate_ledger",
]
