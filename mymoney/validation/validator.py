"""
Input Validation for Ledger Operations

DESIGN DECISION: Validation collects every issue it finds before
raising, so a form can show all problems at once.

IMPORTANT: Validation NEVER silently fixes input.
It reports issues; the caller decides what to show the user.
"""

import string
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, Field

from mymoney.config import AppSettings, get_settings
from mymoney.models.ledger import PaymentMethod, to_money


class ValidationIssue(BaseModel):
    """A single validation issue found."""
    
    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'duplicate', 'in_use')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
    )
    suggested_fix: Optional[str] = None


class ValidationError(Exception):
    """
    A user-correctable rejection.
    
    Raised for duplicate categories, cards or categories still in use,
    bad amounts and rejected passwords.
    """
    
    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))
    
    @classmethod
    def single(
        cls,
        field: str,
        issue_type: str,
        message: str,
        suggested_fix: Optional[str] = None,
    ) -> "ValidationError":
        return cls([ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=message,
            suggested_fix=suggested_fix,
        )])
    
    @property
    def message(self) -> str:
        return str(self)


PASSWORD_CRITERIA = (
    ("length", "At least 8 characters", lambda p: len(p) >= 8),
    ("lowercase", "A lowercase letter", lambda p: any(c.islower() for c in p)),
    ("uppercase", "An uppercase letter", lambda p: any(c.isupper() for c in p)),
    ("digit", "A number", lambda p: any(c.isdigit() for c in p)),
    ("symbol", "A symbol", lambda p: any(c in string.punctuation for c in p)),
)


def password_strength(password: str) -> tuple[int, list[str]]:
    """
    Score a password against PASSWORD_CRITERIA.
    
    Returns:
        (score, descriptions of the criteria that were not met)
    """
    missing = [label for _, label, check in PASSWORD_CRITERIA if not check(password)]
    return len(PASSWORD_CRITERIA) - len(missing), missing


def validate_amount(
    amount: Union[Decimal, int, str, float],
    field: str = "amount",
) -> Decimal:
    """Parse `amount` into a positive two-place Decimal."""
    try:
        value = to_money(amount)
    except ValueError:
        raise ValidationError.single(field, "invalid_format", f"Not a valid amount: {amount!r}")
    # Precision is judged on the value as given, before rounding;
    # trailing zeros ("100.000") are exact and allowed
    raw = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    if raw.normalize().as_tuple().exponent < -2:
        raise ValidationError.single(
            field,
            "invalid_precision",
            "Amount cannot have more than two decimal places",
        )
    if value <= 0:
        raise ValidationError.single(field, "invalid_value", "Amount must be greater than zero")
    return value


class LedgerValidator:
    """Checks that need configuration (password rules) or card context."""
    
    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app
    
    def validate_signup(self, password: str, confirm_password: str) -> None:
        issues = []
        if password != confirm_password:
            issues.append(ValidationIssue(
                field="confirm_password",
                issue_type="mismatch",
                message="Passwords don't match!",
            ))
        if len(password) < self._settings.min_password_length:
            issues.append(ValidationIssue(
                field="password",
                issue_type="too_short",
                message=(
                    f"Password must be at least "
                    f"{self._settings.min_password_length} characters long."
                ),
            ))
        if issues:
            raise ValidationError(issues)
    
    def validate_password_change(
        self,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> None:
        if not current_password or not new_password or not confirm_password:
            raise ValidationError.single(
                "password", "missing", "Please fill in all password fields."
            )
        if new_password != confirm_password:
            raise ValidationError.single(
                "confirm_password", "mismatch", "New passwords do not match."
            )
        
        score, missing = password_strength(new_password)
        if score < self._settings.min_password_strength:
            raise ValidationError.single(
                "new_password",
                "too_weak",
                (
                    f"Password is too weak. Please meet at least "
                    f"{self._settings.min_password_strength} criteria."
                ),
                suggested_fix="Add: " + ", ".join(missing),
            )
    
    def validate_payment_source(
        self,
        payment_method: Union[PaymentMethod, str],
        card_id: Optional[str],
        known_card_ids: Optional[set[str]] = None,
    ) -> None:
        """Card payments must name a card, and a known one when cards are given."""
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError.single(
                "payment_method", "invalid_value", f"Unknown payment method: {payment_method}"
            )
        if method == PaymentMethod.CARD and not card_id:
            raise ValidationError.single(
                "card_id", "missing", "Select the card used for this payment"
            )
        if method == PaymentMethod.CASH and card_id:
            raise ValidationError.single(
                "card_id", "unexpected", "Cash payments cannot reference a card"
            )
        if card_id and known_card_ids is not None and card_id not in known_card_ids:
            raise ValidationError.single(
                "card_id", "unknown", f"Card {card_id} does not exist"
            )
