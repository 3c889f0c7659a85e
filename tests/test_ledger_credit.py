"""
Tests for the credit operations of LedgerService.

Covers the mirrored-transaction invariant, derived status, cascade
deletes and saga compensation on store failures.
"""

import asyncio
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from mymoney.ledger import PartialWriteError, compute_balances
from mymoney.models.audit import AuditEventType
from mymoney.models.ledger import (
    CREDIT_GIVEN_CATEGORY,
    CREDIT_RECEIVED_CATEGORY,
    CREDIT_RETURN_CATEGORY,
    CREDIT_RETURN_PAID_CATEGORY,
    CreditHistoryType,
    CreditStatus,
    TransactionType,
)
from mymoney.services.entities import CardService, CreditService, TransactionService
from mymoney.services.storage import NotFoundError, StoreError
from mymoney.validation import ValidationError

from conftest import USER_ID


DUE = date.today() + timedelta(days=30)


def _transactions(store):
    return asyncio.run(TransactionService(store).list_transactions(USER_ID))


def _lend(ledger, amount="100", **kwargs):
    kwargs.setdefault("initial_payment_method", "cash")
    return asyncio.run(ledger.create_credit_entry(USER_ID, "Alice", amount, DUE, **kwargs))


class TestCreateCreditEntry:
    """Lending money."""
    
    def test_creates_entry_history_and_expense(self, ledger, store):
        entry = _lend(ledger)
        
        assert entry.status == CreditStatus.ACTIVE
        assert entry.returned_amount == Decimal("0.00")
        assert len(entry.history) == 1
        assert entry.given_item.type == CreditHistoryType.GIVEN
        
        transactions = _transactions(store)
        assert len(transactions) == 1
        txn = transactions[0]
        assert txn.type == TransactionType.EXPENSE
        assert txn.category == CREDIT_GIVEN_CATEGORY
        assert txn.amount == Decimal("100.00")
        assert txn.note == "Credit given to Alice"
        assert txn.credit_id == entry.id
        assert txn.credit_history_id == entry.given_item.id
    
    def test_stored_totals_start_at_zero(self, ledger, store):
        entry = _lend(ledger)
        rows = asyncio.run(store.select("credit_entries", {"id": entry.id}))
        assert rows[0]["returned_amount"] == "0.00"
        assert rows[0]["status"] == "active"
    
    def test_card_payment_is_linked_to_card(self, ledger, store, card):
        entry = _lend(ledger, initial_payment_method="card", initial_card_id=card.id)
        
        txn = _transactions(store)[0]
        assert txn.card_id == card.id
        assert entry.initial_card_id == card.id
        assert compute_balances(_transactions(store), [card])[card.id] == Decimal("-100.00")
    
    def test_card_payment_requires_card(self, ledger, store):
        with pytest.raises(ValidationError):
            _lend(ledger, initial_payment_method="card")
        assert store.row_count("credit_entries") == 0
    
    def test_unknown_card_rejected(self, ledger, store):
        with pytest.raises(ValidationError):
            _lend(ledger, initial_payment_method="card", initial_card_id="no-such-card")
        assert store.row_count("credit_entries") == 0
    
    @pytest.mark.parametrize("amount", ["0", "-5", "abc", "1.234"])
    def test_bad_amount_rejected_before_writing(self, ledger, store, amount):
        with pytest.raises(ValidationError):
            _lend(ledger, amount=amount)
        assert store.row_count("credit_entries") == 0
        assert store.row_count("transactions") == 0
    
    def test_blank_person_rejected(self, ledger):
        with pytest.raises(ValidationError):
            asyncio.run(ledger.create_credit_entry(USER_ID, "  ", "10", DUE, "cash"))
    
    def test_audit_event_logged(self, ledger, audit_storage):
        _lend(ledger)
        types = [e.event_type for e in audit_storage.events]
        assert AuditEventType.CREDIT_CREATED in types


class TestCreditReturns:
    """Recording money coming back."""
    
    def test_partial_then_full_return(self, ledger, store):
        entry = _lend(ledger)
        
        after_first = asyncio.run(ledger.add_credit_return(USER_ID, entry.id, "40", "cash"))
        assert after_first.returned_amount == Decimal("40.00")
        assert after_first.status == CreditStatus.PARTIALLY_RETURNED
        
        income = [t for t in _transactions(store) if t.type == TransactionType.INCOME]
        assert len(income) == 1
        assert income[0].amount == Decimal("40.00")
        assert income[0].category == CREDIT_RETURN_CATEGORY
        assert income[0].note == "Credit return from Alice"
        
        after_second = asyncio.run(ledger.add_credit_return(USER_ID, entry.id, "60", "cash"))
        assert after_second.returned_amount == Decimal("100.00")
        assert after_second.status == CreditStatus.FULLY_RETURNED
        
        rows = asyncio.run(store.select("credit_entries", {"id": entry.id}))
        assert rows[0]["returned_amount"] == "100.00"
        assert rows[0]["status"] == "fully_returned"
    
    def test_cash_nets_to_zero_after_full_return(self, ledger, store):
        entry = _lend(ledger)
        asyncio.run(ledger.add_credit_return(USER_ID, entry.id, "40", "cash"))
        asyncio.run(ledger.add_credit_return(USER_ID, entry.id, "60", "cash"))
        assert compute_balances(_transactions(store), [])["cash"] == Decimal("0.00")
    
    def test_over_return_is_fully_returned(self, ledger):
        entry = _lend(ledger)
        updated = asyncio.run(ledger.add_credit_return(USER_ID, entry.id, "150", "cash"))
        assert updated.status == CreditStatus.FULLY_RETURNED
        assert updated.outstanding_amount == Decimal("0.00")
    
    def test_every_history_item_has_one_transaction(self, ledger, store):
        entry = _lend(ledger)
        asyncio.run(ledger.add_credit_return(USER_ID, entry.id, "10", "cash"))
        asyncio.run(ledger.add_credit_return(USER_ID, entry.id, "20", "cash"))
        
        history = asyncio.run(CreditService(store).get_history(entry.id))
        transactions = _transactions(store)
        assert len(history) == 3
        for item in history:
            linked = [t for t in transactions if t.credit_history_id == item.id]
            assert len(linked) == 1
            assert linked[0].amount == item.amount
        assert all(t.credit_history_id for t in transactions)
    
    def test_missing_entry_fails_without_writes(self, ledger, store):
        with pytest.raises(NotFoundError):
            asyncio.run(ledger.add_credit_return(USER_ID, "missing", "10", "cash"))
        assert store.row_count("credit_history") == 0
        assert store.row_count("transactions") == 0
    
    def test_status_derived_from_history_not_stored_column(self, ledger, store):
        entry = _lend(ledger)
        asyncio.run(ledger.add_credit_return(USER_ID, entry.id, "40", "cash"))
        asyncio.run(store.update("credit_entries", entry.id, {
            "returned_amount": "0.00",
            "status": "active",
        }))
        
        reloaded = asyncio.run(CreditService(store).get_entry(USER_ID, entry.id))
        assert reloaded.returned_amount == Decimal("40.00")
        assert reloaded.status == CreditStatus.PARTIALLY_RETURNED


class TestDeleteCredit:
    """Cascade deletes of credit records."""
    
    def test_delete_entry_removes_everything(self, ledger, store):
        entry = _lend(ledger)
        asyncio.run(ledger.add_credit_return(USER_ID, entry.id, "40", "cash"))
        
        asyncio.run(ledger.delete_credit_entry(USER_ID, entry.id))
        
        assert store.row_count("credit_entries") == 0
        assert store.row_count("credit_history") == 0
        assert not [t for t in _transactions(store) if t.credit_id == entry.id]
    
    def test_delete_entry_keeps_other_transactions(self, ledger, store):
        asyncio.run(ledger.create_transaction(USER_ID, "expense", "Food", "12", payment_method="cash"))
        entry = _lend(ledger)
        
        asyncio.run(ledger.delete_credit_entry(USER_ID, entry.id))
        
        remaining = _transactions(store)
        assert len(remaining) == 1
        assert remaining[0].category == "Food"
    
    def test_delete_missing_entry(self, ledger):
        with pytest.raises(NotFoundError):
            asyncio.run(ledger.delete_credit_entry(USER_ID, "missing"))
    
    def test_delete_return_rewrites_totals(self, ledger, store):
        entry = _lend(ledger)
        updated = asyncio.run(ledger.add_credit_return(USER_ID, entry.id, "40", "cash"))
        returned = next(h for h in updated.history if h.type == CreditHistoryType.RETURNED)
        
        after = asyncio.run(ledger.delete_credit_return(USER_ID, entry.id, returned.id))
        
        assert after.status == CreditStatus.ACTIVE
        assert store.row_count("credit_history") == 1
        assert len(_transactions(store)) == 1
        rows = asyncio.run(store.select("credit_entries", {"id": entry.id}))
        assert rows[0]["returned_amount"] == "0.00"
        assert rows[0]["status"] == "active"
    
    def test_given_item_cannot_be_deleted_alone(self, ledger, store):
        entry = _lend(ledger)
        with pytest.raises(ValidationError):
            asyncio.run(ledger.delete_credit_return(USER_ID, entry.id, entry.given_item.id))
        assert store.row_count("credit_history") == 1


class TestCreditSaga:
    """Failures part-way through a credit operation."""
    
    def test_failed_transaction_insert_is_compensated(self, ledger, store, audit_storage):
        store.fail_insert.add("transactions")
        
        with pytest.raises(StoreError) as exc_info:
            _lend(ledger)
        
        assert not isinstance(exc_info.value, PartialWriteError)
        assert store.row_count("credit_entries") == 0
        assert store.row_count("credit_history") == 0
        assert AuditEventType.SAGA_COMPENSATED in [e.event_type for e in audit_storage.events]
    
    def test_failed_compensation_raises_partial_write(self, ledger, store, audit_storage):
        store.fail_insert.add("transactions")
        store.fail_delete.add("credit_history")
        
        with pytest.raises(PartialWriteError) as exc_info:
            _lend(ledger)
        
        leftover = exc_info.value.leftover
        assert len(leftover) == 1
        assert leftover[0].startswith("credit_history:")
        assert AuditEventType.PARTIAL_WRITE in [e.event_type for e in audit_storage.events]
    
    def test_failed_totals_write_undoes_return(self, ledger, store):
        entry = _lend(ledger)
        store.fail_update.add("credit_entries")
        
        with pytest.raises(StoreError):
            asyncio.run(ledger.add_credit_return(USER_ID, entry.id, "40", "cash"))
        
        assert store.row_count("credit_history") == 1
        assert len(_transactions(store)) == 1
        reloaded = asyncio.run(CreditService(store).get_entry(USER_ID, entry.id))
        assert reloaded.status == CreditStatus.ACTIVE


class TestCreditReceived:
    """Borrowed money and repayments."""
    
    def _borrow(self, ledger, amount="200"):
        return asyncio.run(ledger.create_credit_received_entry(
            USER_ID, "Bob", amount, DUE, "cash"
        ))
    
    def test_create_records_income(self, ledger, store):
        entry = self._borrow(ledger)
        
        assert entry.status == CreditStatus.ACTIVE
        assert entry.history == []
        txn = _transactions(store)[0]
        assert txn.type == TransactionType.INCOME
        assert txn.category == CREDIT_RECEIVED_CATEGORY
        assert txn.note == "Credit received from Bob"
        assert txn.credit_received_id == entry.id
        assert txn.credit_received_history_id is None
        assert txn.payment_method.value == "cash"
    
    def test_repayments_update_status(self, ledger, store):
        entry = self._borrow(ledger)
        
        partial = asyncio.run(ledger.add_credit_received_return(USER_ID, entry.id, "50", "cash"))
        assert partial.status == CreditStatus.PARTIALLY_RETURNED
        
        expense = [t for t in _transactions(store) if t.type == TransactionType.EXPENSE][0]
        assert expense.category == CREDIT_RETURN_PAID_CATEGORY
        assert expense.note == "Repayment to Bob"
        assert expense.credit_received_history_id == partial.history[0].id
        
        full = asyncio.run(ledger.add_credit_received_return(USER_ID, entry.id, "150", "cash"))
        assert full.returned_amount == Decimal("200.00")
        assert full.status == CreditStatus.FULLY_RETURNED
        
        rows = asyncio.run(store.select("credit_received", {"id": entry.id}))
        assert rows[0]["status"] == "fully_returned"
    
    def test_delete_entry_removes_everything(self, ledger, store):
        entry = self._borrow(ledger)
        asyncio.run(ledger.add_credit_received_return(USER_ID, entry.id, "50", "cash"))
        
        asyncio.run(ledger.delete_credit_received_entry(USER_ID, entry.id))
        
        assert store.row_count("credit_received") == 0
        assert store.row_count("credit_received_history") == 0
        assert _transactions(store) == []
    
    def test_delete_repayment(self, ledger, store):
        entry = self._borrow(ledger)
        partial = asyncio.run(ledger.add_credit_received_return(USER_ID, entry.id, "50", "cash"))
        
        after = asyncio.run(ledger.delete_credit_received_return(
            USER_ID, entry.id, partial.history[0].id
        ))
        
        assert after.status == CreditStatus.ACTIVE
        assert len(_transactions(store)) == 1
    
    def test_failed_transaction_insert_is_compensated(self, ledger, store):
        store.fail_insert.add("transactions")
        with pytest.raises(StoreError):
            self._borrow(ledger)
        assert store.row_count("credit_received") == 0


class TestPlainTransactions:
    """The non-credit transaction path."""
    
    def test_ledger_owned_transaction_cannot_be_edited(self, ledger, store):
        _lend(ledger)
        txn = _transactions(store)[0]
        
        with pytest.raises(ValidationError):
            asyncio.run(ledger.update_transaction(USER_ID, txn.id, amount="5"))
        with pytest.raises(ValidationError):
            asyncio.run(ledger.delete_transaction(USER_ID, txn.id))
        assert _transactions(store)[0].amount == Decimal("100.00")
    
    def test_update_switching_to_cash_drops_card(self, ledger, store, card):
        txn = asyncio.run(ledger.create_transaction(
            USER_ID, "expense", "Food", "10", payment_method="card", card_id=card.id
        ))
        
        updated = asyncio.run(ledger.update_transaction(USER_ID, txn.id, payment_method="cash"))
        
        assert updated.card_id is None
        assert updated.payment_method.value == "cash"
    
    def test_update_parses_date_and_note(self, ledger, store):
        txn = asyncio.run(ledger.create_transaction(USER_ID, "expense", "Food", "10"))
        
        updated = asyncio.run(ledger.update_transaction(
            USER_ID, txn.id, date="2024-06-01T10:00:00", note="  lunch  "
        ))
        
        assert updated.date == datetime(2024, 6, 1, 10, tzinfo=timezone.utc)
        assert updated.note == "lunch"
        assert _transactions(store)[0].date == updated.date
    
    def test_update_rejects_bad_date_before_writing(self, ledger, store):
        txn = asyncio.run(ledger.create_transaction(USER_ID, "expense", "Food", "10"))
        
        with pytest.raises(ValueError):
            asyncio.run(ledger.update_transaction(USER_ID, txn.id, date="not a date"))
        with pytest.raises(ValueError):
            asyncio.run(ledger.update_transaction(USER_ID, txn.id, colour="red"))
        assert _transactions(store)[0].date == txn.date
    
    def test_delete_user_transaction(self, ledger, store):
        txn = asyncio.run(ledger.create_transaction(USER_ID, "income", "Salary", "1000"))
        asyncio.run(ledger.delete_transaction(USER_ID, txn.id))
        assert _transactions(store) == []
    
    def test_unknown_type_rejected(self, ledger):
        with pytest.raises(ValidationError):
            asyncio.run(ledger.create_transaction(USER_ID, "transfer", "Food", "10"))
