"""Validation package."""

from mymoney.validation.validator import (
    PASSWORD_CRITERIA,
    LedgerValidator,
    ValidationError,
    ValidationIssue,
    password_strength,
    validate_amount,
)

__all__ = [
    "PASSWORD_CRITERIA",
    "LedgerValidator",
    "ValidationError",
    "ValidationIssue",
    "password_strength",
    "validate_amount",
]
