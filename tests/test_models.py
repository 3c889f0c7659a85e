"""
Tests for MyMoney models

Test strategy:
1. Unit tests for individual components (models, validators, balances)
2. Integration tests for ledger flows against the in-memory store
3. No real API calls in tests (use in-memory backends)
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

from mymoney.models.ledger import (
    CardDraft,
    CreditEntry,
    CreditHistoryItem,
    CreditHistoryType,
    CreditReceivedEntry,
    CreditReceivedHistoryItem,
    CreditStatus,
    PaymentMethod,
    TransactionDraft,
    TransactionType,
    derive_credit_status,
    to_money,
)
from mymoney.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _history(kind, amount):
    return CreditHistoryItem(
        id=str(uuid4()),
        date=NOW,
        amount=amount,
        type=kind,
        payment_method=PaymentMethod.CASH,
    )


class TestMoney:
    """Tests for to_money()."""
    
    def test_quantizes_to_two_places(self):
        """Test that amounts are quantized to cents."""
        assert to_money("10") == Decimal("10.00")
        assert to_money("10.005") == Decimal("10.01")
    
    def test_float_goes_through_str(self):
        """Test that 0.1 does not pick up binary noise."""
        assert to_money(0.1) == Decimal("0.10")
    
    def test_rejects_garbage(self):
        """Test that non-numeric input is rejected."""
        with pytest.raises(ValueError):
            to_money("ten")
        with pytest.raises(ValueError):
            to_money("NaN")


class TestTransactionModels:
    """Tests for transaction models."""
    
    def test_transaction_draft_creation(self):
        """Test TransactionDraft model creation."""
        draft = TransactionDraft(
            type=TransactionType.EXPENSE,
            category="  Food  ",
            amount="12.5",
            date=NOW,
            payment_method=PaymentMethod.CASH,
        )
        assert draft.category == "Food"
        assert draft.amount == Decimal("12.50")
        assert draft.is_ledger_owned is False
    
    def test_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            TransactionDraft(type="expense", category="Food", amount="0", date=NOW)
        with pytest.raises(ValueError):
            TransactionDraft(type="expense", category="Food", amount="-1", date=NOW)
    
    def test_rejects_both_link_groups(self):
        """Test that a transaction cannot mirror both credit directions."""
        with pytest.raises(ValueError):
            TransactionDraft(
                type="income",
                category="Credit Return",
                amount="5",
                date=NOW,
                credit_id="c1",
                credit_received_id="r1",
            )
    
    def test_history_link_requires_entry_link(self):
        """Test that a history id needs its entry id."""
        with pytest.raises(ValueError):
            TransactionDraft(
                type="income",
                category="Credit Return",
                amount="5",
                date=NOW,
                credit_history_id="h1",
            )
    
    def test_linked_draft_is_ledger_owned(self):
        draft = TransactionDraft(
            type="expense",
            category="Credit",
            amount="5",
            date=NOW,
            credit_id="c1",
            credit_history_id="h1",
        )
        assert draft.is_ledger_owned is True


class TestCardModels:
    """Tests for card models."""
    
    def test_card_draft_creation(self):
        card = CardDraft(
            card_name="Daily",
            card_number="4111 1111 1111 1234",
            expiry_date="08/27",
        )
        assert card.card_type.value == "visa"
        assert card.last_four == "1234"
    
    @pytest.mark.parametrize("expiry", ["13/25", "1/25", "2025-01", ""])
    def test_rejects_bad_expiry(self, expiry):
        with pytest.raises(ValueError):
            CardDraft(card_name="Daily", card_number="4111111111111234", expiry_date=expiry)


class TestCreditModels:
    """Tests for derived credit totals."""
    
    def test_derive_credit_status(self):
        """Test the three status thresholds."""
        amount = Decimal("100")
        assert derive_credit_status(amount, Decimal("0")) == CreditStatus.ACTIVE
        assert derive_credit_status(amount, Decimal("0.01")) == CreditStatus.PARTIALLY_RETURNED
        assert derive_credit_status(amount, Decimal("100")) == CreditStatus.FULLY_RETURNED
        assert derive_credit_status(amount, Decimal("150")) == CreditStatus.FULLY_RETURNED
    
    def test_credit_entry_derives_from_returned_items_only(self):
        """Test that the given item does not count as returned."""
        entry = CreditEntry(
            id="c1",
            person_name="Alice",
            amount="100",
            given_date=NOW,
            due_date=date(2024, 6, 1),
            history=[
                _history(CreditHistoryType.GIVEN, "100"),
                _history(CreditHistoryType.RETURNED, "40"),
            ],
            initial_payment_method="cash",
        )
        assert entry.returned_amount == Decimal("40.00")
        assert entry.outstanding_amount == Decimal("60.00")
        assert entry.status == CreditStatus.PARTIALLY_RETURNED
        assert entry.given_item.amount == Decimal("100.00")
    
    def test_credit_received_entry_sums_all_history(self):
        entry = CreditReceivedEntry(
            id="r1",
            person_name="Bob",
            amount="50",
            received_date=NOW,
            return_date=date(2024, 6, 1),
            history=[
                CreditReceivedHistoryItem(
                    id="h1", date=NOW, amount="50", payment_method="cash"
                ),
            ],
            initial_payment_method="cash",
        )
        assert entry.returned_amount == Decimal("50.00")
        assert entry.status == CreditStatus.FULLY_RETURNED


class TestAuditModels:
    """Tests for audit-related models."""
    
    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.CARD_DELETED,
            description="Card deleted",
        )
        assert event.event_type == AuditEventType.CARD_DELETED
        assert event.severity == AuditSeverity.INFO
    
    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.CREDIT_CREATED,
            description="Credit given",
            details={"person_name": "Alice", "amount": "100.00"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "credit_created"
        assert log_dict["details"]["person_name"] == "Alice"
    
    def test_audit_event_to_sheets_row(self):
        """Test conversion to sheets row."""
        event = AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            description="Category deleted",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "category_deleted"
        assert row[11] == "True"
    
    def test_audit_event_builder_credit_created(self):
        """Test AuditEventBuilder.credit_created."""
        correlation_id = uuid4()
        
        event = AuditEventBuilder.credit_created(
            user_id="u1",
            entry_id="c1",
            person_name="Alice",
            amount="100.00",
            correlation_id=correlation_id,
        )
        
        assert event.event_type == AuditEventType.CREDIT_CREATED
        assert event.entity_id == "c1"
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True
    
    def test_audit_event_builder_partial_write_is_critical(self):
        event = AuditEventBuilder.partial_write(
            user_id="u1",
            operation="create_credit_entry",
            leftover=["credit_history:h1"],
            error_message="boom",
        )
        assert event.severity == AuditSeverity.CRITICAL
        assert event.details["leftover"] == ["credit_history:h1"]
