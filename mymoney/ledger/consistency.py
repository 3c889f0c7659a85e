"""
Ledger Consistency Layer

Keeps the transaction log, the credit histories and the stored credit
totals consistent with one another.

GUARANTEES:
- Every credit movement (given, returned, received, repaid) has exactly
  one mirrored transaction carrying its back-references, and every
  mirrored transaction has its movement.
- Stored returned_amount/status columns are rewritten by every path
  that changes a history; reads derive them from history regardless.
- Multi-step writes either complete or are compensated. When the
  compensation itself fails, PartialWriteError names what was left.
- Transactions that mirror credit movements can only be changed through
  the credit operations here, never through the plain transaction path.

Every operation takes the acting user's id explicitly; the store is
additionally bound to that user for row-level authorization.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

from mymoney.audit import AuditLogger
from mymoney.models.audit import AuditEventBuilder
from mymoney.models.ledger import (
    CREDIT_GIVEN_CATEGORY,
    CREDIT_RECEIVED_CATEGORY,
    CREDIT_RETURN_CATEGORY,
    CREDIT_RETURN_PAID_CATEGORY,
    CreditEntry,
    CreditHistoryType,
    CreditReceivedEntry,
    PaymentMethod,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from mymoney.ledger.saga import PartialWriteError, Saga
from mymoney.services.entities import (
    CardService,
    CreditReceivedService,
    CreditService,
    TransactionService,
)
from mymoney.services.entities.mapping import utcnow
from mymoney.services.entities.transactions import UPDATABLE_FIELDS
from mymoney.services.storage import NotFoundError, RemoteStoreInterface, StoreError
from mymoney.validation import LedgerValidator, ValidationError, validate_amount


Amount = Union[Decimal, int, str, float]


class LedgerService:
    """
    Credit operations and ledger-aware transaction CRUD.
    
    The four credit families (create lent, return lent, create received,
    repay received) each run as a saga over the entity services.
    """
    
    def __init__(
        self,
        store: RemoteStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
    ):
        self._transactions = TransactionService(store)
        self._credit = CreditService(store)
        self._credit_received = CreditReceivedService(store)
        self._cards = CardService(store)
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or LedgerValidator()
    
    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    
    async def _check_payment_source(
        self,
        user_id: str,
        payment_method: Union[PaymentMethod, str],
        card_id: Optional[str],
    ) -> PaymentMethod:
        self._validator.validate_payment_source(payment_method, card_id)
        if card_id and await self._cards.get_card(user_id, card_id) is None:
            raise ValidationError.single(
                "card_id", "unknown", f"Card {card_id} does not exist"
            )
        return PaymentMethod(payment_method)
    
    @staticmethod
    def _check_person(person_name: str) -> str:
        name = (person_name or "").strip()
        if not name:
            raise ValidationError.single("person_name", "missing", "Person name is required")
        return name
    
    async def _abort(
        self,
        saga: Saga,
        user_id: str,
        error: Exception,
        correlation_id: Optional[UUID],
    ) -> None:
        """Undo a failed saga and raise the appropriate StoreError."""
        undone, leftover = await saga.rollback()
        if leftover:
            await self._audit.log(AuditEventBuilder.partial_write(
                user_id=user_id,
                operation=saga.operation,
                leftover=leftover,
                error_message=str(error),
                correlation_id=correlation_id,
            ))
            raise PartialWriteError(
                f"{saga.operation} failed and could not be undone: {error}",
                leftover,
            ) from error
        
        await self._audit.log(AuditEventBuilder.saga_compensated(
            user_id=user_id,
            operation=saga.operation,
            undone=undone,
            error_message=str(error),
            correlation_id=correlation_id,
        ))
        if isinstance(error, StoreError):
            raise error
        raise StoreError(f"{saga.operation} failed: {error}") from error
    
    async def _mirror(self, saga: Saga, user_id: str, draft: TransactionDraft) -> Transaction:
        transaction = await self._transactions.create_transaction(user_id, draft)
        saga.record(
            f"transactions:{transaction.id}",
            lambda tid=transaction.id: self._transactions.delete_transaction(tid),
        )
        return transaction
    
    async def _require_credit(self, user_id: str, credit_id: str) -> CreditEntry:
        entry = await self._credit.get_entry(user_id, credit_id)
        if entry is None:
            raise NotFoundError(f"Credit entry not found: {credit_id}")
        return entry
    
    async def _require_credit_received(
        self,
        user_id: str,
        entry_id: str,
    ) -> CreditReceivedEntry:
        entry = await self._credit_received.get_entry(user_id, entry_id)
        if entry is None:
            raise NotFoundError(f"Credit received entry not found: {entry_id}")
        return entry
    
    # ------------------------------------------------------------------
    # Credit lent
    # ------------------------------------------------------------------
    
    async def create_credit_entry(
        self,
        user_id: str,
        person_name: str,
        amount: Amount,
        due_date: date,
        initial_payment_method: Union[PaymentMethod, str],
        initial_card_id: Optional[str] = None,
        initial_note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CreditEntry:
        """
        Lend money: entry row, its `given` history item, and the
        mirrored expense transaction.
        
        Args:
            user_id: Acting user
            person_name: Borrower
            amount: Amount lent, positive with at most two decimals
            due_date: When the money is expected back
            initial_payment_method: "cash" or "card"
            initial_card_id: Card the money left from, for card payments
            initial_note: Optional note for the history item
            correlation_id: Groups the audit events of this action
            
        Returns:
            The created entry with its one-item history
            
        Raises:
            ValidationError: If the amount, person or payment source is invalid
            PartialWriteError: If a failed write could not be undone
        """
        amount = validate_amount(amount)
        person_name = self._check_person(person_name)
        method = await self._check_payment_source(user_id, initial_payment_method, initial_card_id)
        given_date = utcnow()
        
        saga = Saga("create_credit_entry")
        try:
            entry = await self._credit.create_entry(
                user_id, person_name, amount, due_date, given_date,
                method, initial_card_id, initial_note,
            )
            saga.record(
                f"credit_entries:{entry.id}",
                lambda eid=entry.id: self._credit.delete_entry(eid),
            )
            
            given = await self._credit.add_history_item(
                entry.id, CreditHistoryType.GIVEN, given_date, amount,
                method, initial_card_id, initial_note,
            )
            saga.record(
                f"credit_history:{given.id}",
                lambda hid=given.id: self._credit.delete_history_item(hid),
            )
            
            await self._mirror(saga, user_id, TransactionDraft(
                type=TransactionType.EXPENSE,
                category=CREDIT_GIVEN_CATEGORY,
                amount=amount,
                date=given_date,
                note=f"Credit given to {person_name}",
                payment_method=method,
                card_id=initial_card_id,
                credit_id=entry.id,
                credit_history_id=given.id,
            ))
        except Exception as e:
            await self._abort(saga, user_id, e, correlation_id)
        
        entry = entry.model_copy(update={"history": [given]})
        await self._audit.log(AuditEventBuilder.credit_created(
            user_id=user_id,
            entry_id=entry.id,
            person_name=person_name,
            amount=str(amount),
            correlation_id=correlation_id,
        ))
        return entry
    
    async def add_credit_return(
        self,
        user_id: str,
        credit_id: str,
        amount: Amount,
        payment_method: Union[PaymentMethod, str],
        card_id: Optional[str] = None,
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CreditEntry:
        """
        Record money coming back from a borrower.
        
        Returns:
            The entry with the new history item and refreshed totals
        """
        amount = validate_amount(amount)
        method = await self._check_payment_source(user_id, payment_method, card_id)
        entry = await self._require_credit(user_id, credit_id)
        now = utcnow()
        
        saga = Saga("add_credit_return")
        try:
            item = await self._credit.add_history_item(
                credit_id, CreditHistoryType.RETURNED, now, amount,
                method, card_id, note,
            )
            saga.record(
                f"credit_history:{item.id}",
                lambda hid=item.id: self._credit.delete_history_item(hid),
            )
            
            await self._mirror(saga, user_id, TransactionDraft(
                type=TransactionType.INCOME,
                category=CREDIT_RETURN_CATEGORY,
                amount=amount,
                date=now,
                note=f"Credit return from {entry.person_name}",
                payment_method=method,
                card_id=card_id,
                credit_id=credit_id,
                credit_history_id=item.id,
            ))
            
            updated = entry.model_copy(update={"history": [item, *entry.history]})
            await self._credit.write_totals(credit_id, updated.returned_amount, updated.status)
        except Exception as e:
            await self._abort(saga, user_id, e, correlation_id)
        
        await self._audit.log(AuditEventBuilder.credit_return_recorded(
            user_id=user_id,
            entry_id=credit_id,
            history_id=item.id,
            amount=str(amount),
            status=updated.status.value,
            correlation_id=correlation_id,
        ))
        return updated
    
    async def delete_credit_entry(
        self,
        user_id: str,
        credit_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Delete linked transactions, then history, then the entry."""
        entry = await self._require_credit(user_id, credit_id)
        
        linked = await self._transactions.find_transactions(user_id, credit_id=credit_id)
        for transaction in linked:
            await self._transactions.delete_transaction(transaction.id)
        for item in entry.history:
            await self._credit.delete_history_item(item.id)
        await self._credit.delete_entry(credit_id)
        
        await self._audit.log(AuditEventBuilder.credit_deleted(
            user_id=user_id,
            entry_id=credit_id,
            transactions_removed=len(linked),
            history_removed=len(entry.history),
            correlation_id=correlation_id,
        ))
    
    async def delete_credit_return(
        self,
        user_id: str,
        credit_id: str,
        history_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> CreditEntry:
        """Remove one recorded return and its mirrored transaction."""
        entry = await self._require_credit(user_id, credit_id)
        item = next((h for h in entry.history if h.id == history_id), None)
        if item is None:
            raise NotFoundError(f"History item not found: {history_id}")
        if item.type == CreditHistoryType.GIVEN:
            raise ValidationError.single(
                "history_id",
                "not_allowed",
                "The original loan cannot be removed; delete the whole credit entry instead",
            )
        
        for transaction in await self._transactions.find_transactions(
            user_id, credit_history_id=history_id
        ):
            await self._transactions.delete_transaction(transaction.id)
        await self._credit.delete_history_item(history_id)
        
        updated = entry.model_copy(
            update={"history": [h for h in entry.history if h.id != history_id]}
        )
        await self._credit.write_totals(credit_id, updated.returned_amount, updated.status)
        
        await self._audit.log(AuditEventBuilder.history_item_deleted(
            user_id=user_id,
            entry_id=credit_id,
            history_id=history_id,
            correlation_id=correlation_id,
        ))
        return updated
    
    # ------------------------------------------------------------------
    # Credit received
    # ------------------------------------------------------------------
    
    async def create_credit_received_entry(
        self,
        user_id: str,
        person_name: str,
        amount: Amount,
        return_date: date,
        initial_payment_method: Union[PaymentMethod, str],
        initial_card_id: Optional[str] = None,
        initial_note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CreditReceivedEntry:
        """Borrow money: entry row and the mirrored income transaction."""
        amount = validate_amount(amount)
        person_name = self._check_person(person_name)
        method = await self._check_payment_source(user_id, initial_payment_method, initial_card_id)
        received_date = utcnow()
        
        saga = Saga("create_credit_received_entry")
        try:
            entry = await self._credit_received.create_entry(
                user_id, person_name, amount, return_date, received_date,
                method, initial_card_id, initial_note,
            )
            saga.record(
                f"credit_received:{entry.id}",
                lambda eid=entry.id: self._credit_received.delete_entry(eid),
            )
            
            await self._mirror(saga, user_id, TransactionDraft(
                type=TransactionType.INCOME,
                category=CREDIT_RECEIVED_CATEGORY,
                amount=amount,
                date=received_date,
                note=f"Credit received from {person_name}",
                payment_method=method,
                card_id=initial_card_id,
                credit_received_id=entry.id,
            ))
        except Exception as e:
            await self._abort(saga, user_id, e, correlation_id)
        
        await self._audit.log(AuditEventBuilder.credit_created(
            user_id=user_id,
            entry_id=entry.id,
            person_name=person_name,
            amount=str(amount),
            received=True,
            correlation_id=correlation_id,
        ))
        return entry
    
    async def add_credit_received_return(
        self,
        user_id: str,
        entry_id: str,
        amount: Amount,
        payment_method: Union[PaymentMethod, str],
        card_id: Optional[str] = None,
        note: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> CreditReceivedEntry:
        """Record a repayment the user made to a lender."""
        amount = validate_amount(amount)
        method = await self._check_payment_source(user_id, payment_method, card_id)
        entry = await self._require_credit_received(user_id, entry_id)
        now = utcnow()
        
        saga = Saga("add_credit_received_return")
        try:
            item = await self._credit_received.add_history_item(
                entry_id, now, amount, method, card_id, note,
            )
            saga.record(
                f"credit_received_history:{item.id}",
                lambda hid=item.id: self._credit_received.delete_history_item(hid),
            )
            
            await self._mirror(saga, user_id, TransactionDraft(
                type=TransactionType.EXPENSE,
                category=CREDIT_RETURN_PAID_CATEGORY,
                amount=amount,
                date=now,
                note=f"Repayment to {entry.person_name}",
                payment_method=method,
                card_id=card_id,
                credit_received_id=entry_id,
                credit_received_history_id=item.id,
            ))
            
            updated = entry.model_copy(update={"history": [item, *entry.history]})
            await self._credit_received.write_totals(
                entry_id, updated.returned_amount, updated.status
            )
        except Exception as e:
            await self._abort(saga, user_id, e, correlation_id)
        
        await self._audit.log(AuditEventBuilder.credit_return_recorded(
            user_id=user_id,
            entry_id=entry_id,
            history_id=item.id,
            amount=str(amount),
            status=updated.status.value,
            received=True,
            correlation_id=correlation_id,
        ))
        return updated
    
    async def delete_credit_received_entry(
        self,
        user_id: str,
        entry_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Delete linked transactions, then repayments, then the entry."""
        entry = await self._require_credit_received(user_id, entry_id)
        
        linked = await self._transactions.find_transactions(
            user_id, credit_received_id=entry_id
        )
        for transaction in linked:
            await self._transactions.delete_transaction(transaction.id)
        for item in entry.history:
            await self._credit_received.delete_history_item(item.id)
        await self._credit_received.delete_entry(entry_id)
        
        await self._audit.log(AuditEventBuilder.credit_deleted(
            user_id=user_id,
            entry_id=entry_id,
            transactions_removed=len(linked),
            history_removed=len(entry.history),
            received=True,
            correlation_id=correlation_id,
        ))
    
    async def delete_credit_received_return(
        self,
        user_id: str,
        entry_id: str,
        history_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> CreditReceivedEntry:
        """Remove one repayment and its mirrored transaction."""
        entry = await self._require_credit_received(user_id, entry_id)
        if not any(h.id == history_id for h in entry.history):
            raise NotFoundError(f"History item not found: {history_id}")
        
        for transaction in await self._transactions.find_transactions(
            user_id, credit_received_history_id=history_id
        ):
            await self._transactions.delete_transaction(transaction.id)
        await self._credit_received.delete_history_item(history_id)
        
        updated = entry.model_copy(
            update={"history": [h for h in entry.history if h.id != history_id]}
        )
        await self._credit_received.write_totals(
            entry_id, updated.returned_amount, updated.status
        )
        
        await self._audit.log(AuditEventBuilder.history_item_deleted(
            user_id=user_id,
            entry_id=entry_id,
            history_id=history_id,
            correlation_id=correlation_id,
        ))
        return updated
    
    # ------------------------------------------------------------------
    # Plain transactions
    # ------------------------------------------------------------------
    
    async def create_transaction(
        self,
        user_id: str,
        transaction_type: Union[TransactionType, str],
        category: str,
        amount: Amount,
        when: Optional[Any] = None,
        note: Optional[str] = None,
        payment_method: Union[PaymentMethod, str] = PaymentMethod.CASH,
        card_id: Optional[str] = None,
    ) -> Transaction:
        """Record a user-entered income or expense."""
        amount = validate_amount(amount)
        method = await self._check_payment_source(user_id, payment_method, card_id)
        try:
            kind = TransactionType(transaction_type)
        except ValueError:
            raise ValidationError.single(
                "type", "invalid_value", f"Unknown transaction type: {transaction_type}"
            )
        if not (category or "").strip():
            raise ValidationError.single("category", "missing", "Category is required")
        
        return await self._transactions.create_transaction(user_id, TransactionDraft(
            type=kind,
            category=category,
            amount=amount,
            date=when or utcnow(),
            note=note,
            payment_method=method,
            card_id=card_id,
        ))
    
    async def _require_user_transaction(self, user_id: str, transaction_id: str) -> Transaction:
        transaction = await self._transactions.get_transaction(user_id, transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        if transaction.is_ledger_owned:
            raise ValidationError.single(
                "transaction_id",
                "ledger_owned",
                "This transaction belongs to a credit record; change it from the credit page",
            )
        return transaction
    
    async def update_transaction(
        self,
        user_id: str,
        transaction_id: str,
        **updates: Any,
    ) -> Transaction:
        current = await self._require_user_transaction(user_id, transaction_id)
        unknown = set(updates) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        if "type" in updates:
            try:
                updates["type"] = TransactionType(updates["type"])
            except ValueError:
                raise ValidationError.single(
                    "type", "invalid_value", f"Unknown transaction type: {updates['type']}"
                )
        if "category" in updates and not (updates["category"] or "").strip():
            raise ValidationError.single("category", "missing", "Category is required")
        if "amount" in updates:
            updates["amount"] = validate_amount(updates["amount"])
        if "payment_method" in updates or "card_id" in updates:
            method = updates.get("payment_method", current.payment_method or PaymentMethod.CASH)
            if "card_id" in updates:
                card_id = updates["card_id"]
            elif method in (PaymentMethod.CASH, PaymentMethod.CASH.value):
                card_id = None
            else:
                card_id = current.card_id
            updates["payment_method"] = await self._check_payment_source(user_id, method, card_id)
            updates["card_id"] = card_id
        
        # Re-validate the merged row so string dates and long notes are
        # parsed or rejected before anything is written
        merged = TransactionDraft(**{**current.model_dump(exclude={"id"}), **updates})
        validated = {field: getattr(merged, field) for field in updates}
        return await self._transactions.update_transaction(transaction_id, **validated)
    
    async def delete_transaction(self, user_id: str, transaction_id: str) -> None:
        await self._require_user_transaction(user_id, transaction_id)
        await self._transactions.delete_transaction(transaction_id)
