"""Tests for input validation."""

from decimal import Decimal

import pytest

from mymoney.config import AppSettings
from mymoney.validation import (
    LedgerValidator,
    ValidationError,
    password_strength,
    validate_amount,
)


@pytest.fixture
def validator():
    return LedgerValidator(AppSettings(min_password_length=6, min_password_strength=4))


class TestValidateAmount:
    """Tests for validate_amount()."""
    
    def test_accepts_positive_amounts(self):
        assert validate_amount("12.5") == Decimal("12.50")
        assert validate_amount(3) == Decimal("3.00")
    
    def test_trailing_zeros_are_exact(self):
        assert validate_amount("100.000") == Decimal("100.00")
        assert validate_amount(Decimal("2.500")) == Decimal("2.50")
    
    @pytest.mark.parametrize("amount,issue", [
        ("0", "invalid_value"),
        ("-1", "invalid_value"),
        ("1.001", "invalid_precision"),
        ("0.004", "invalid_precision"),
        ("abc", "invalid_format"),
    ])
    def test_rejects(self, amount, issue):
        with pytest.raises(ValidationError) as exc_info:
            validate_amount(amount)
        assert exc_info.value.issues[0].issue_type == issue
        assert exc_info.value.issues[0].field == "amount"


class TestPasswords:
    """Tests for sign-up and password-change rules."""
    
    def test_strength_counts_criteria(self):
        assert password_strength("abc")[0] == 1
        assert password_strength("Abcdefg1!")[0] == 5
        score, missing = password_strength("abcdefgh")
        assert score == 2
        assert "A symbol" in missing
    
    def test_signup_mismatch_and_length_reported_together(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_signup("abc", "abd")
        messages = [issue.message for issue in exc_info.value.issues]
        assert "Passwords don't match!" in messages
        assert "Password must be at least 6 characters long." in messages
    
    def test_signup_accepts_six_characters(self, validator):
        validator.validate_signup("abcdef", "abcdef")
    
    def test_change_requires_all_fields(self, validator):
        with pytest.raises(ValidationError, match="Please fill in all password fields."):
            validator.validate_password_change("", "Abcdefg1!", "Abcdefg1!")
    
    def test_change_requires_match(self, validator):
        with pytest.raises(ValidationError, match="New passwords do not match."):
            validator.validate_password_change("old", "Abcdefg1!", "Abcdefg1?")
    
    def test_change_rejects_weak_password(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_password_change("old", "abcdefgh", "abcdefgh")
        issue = exc_info.value.issues[0]
        assert issue.issue_type == "too_weak"
        assert issue.message == "Password is too weak. Please meet at least 4 criteria."
    
    def test_change_accepts_four_criteria(self, validator):
        validator.validate_password_change("old", "Abcdefg1", "Abcdefg1")


class TestPaymentSource:
    """Tests for validate_payment_source()."""
    
    def test_cash_without_card(self, validator):
        validator.validate_payment_source("cash", None)
    
    def test_card_requires_card_id(self, validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate_payment_source("card", None)
        assert exc_info.value.issues[0].issue_type == "missing"
    
    def test_cash_with_card_id_rejected(self, validator):
        with pytest.raises(ValidationError):
            validator.validate_payment_source("cash", "c1")
    
    def test_unknown_card_rejected(self, validator):
        with pytest.raises(ValidationError):
            validator.validate_payment_source("card", "c9", known_card_ids={"c1"})
    
    def test_unknown_method_rejected(self, validator):
        with pytest.raises(ValidationError):
            validator.validate_payment_source("cheque", None)
