"""
Credit entry and credit history rows <-> models.

Both credit directions share the same table shape (an entry table and
a history table keyed by the entry id), so the common plumbing lives
in BaseCreditService and each direction supplies its row mappers.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from typing import Generic, Optional, TypeVar, Union

from mymoney.models.ledger import (
    CreditEntry,
    CreditHistoryItem,
    CreditHistoryType,
    CreditStatus,
    PaymentMethod,
)
from mymoney.services.entities.mapping import (
    blank_to_none,
    date_to_text,
    datetime_to_text,
    enum_text,
    money_to_text,
    text_to_date,
    text_to_datetime,
    text_to_money,
)
from mymoney.services.storage import RemoteStoreInterface, Row


EntryT = TypeVar("EntryT")
HistoryT = TypeVar("HistoryT")


class BaseCreditService(Generic[EntryT, HistoryT]):
    """Shared entry/history table access."""
    
    entry_table: str
    history_table: str
    parent_column: str
    opened_column: str
    
    def __init__(self, store: RemoteStoreInterface):
        self._store = store
    
    def _row_to_entry(self, row: Row, history: list[HistoryT]) -> EntryT:
        raise NotImplementedError
    
    def _row_to_history(self, row: Row) -> HistoryT:
        raise NotImplementedError
    
    async def get_history(self, entry_id: str) -> list[HistoryT]:
        """History items of one entry, newest first."""
        rows = await self._store.select(
            self.history_table,
            {self.parent_column: entry_id},
            order_by="date",
            descending=True,
        )
        return [self._row_to_history(row) for row in rows]
    
    async def list_entries(self, user_id: str) -> list[EntryT]:
        """All entries with their history, newest first."""
        rows = await self._store.select(
            self.entry_table,
            {"user_id": user_id},
            order_by=self.opened_column,
            descending=True,
        )
        histories = await asyncio.gather(
            *(self.get_history(row["id"]) for row in rows)
        )
        return [
            self._row_to_entry(row, history)
            for row, history in zip(rows, histories)
        ]
    
    async def get_entry(self, user_id: str, entry_id: str) -> Optional[EntryT]:
        rows = await self._store.select(
            self.entry_table, {"user_id": user_id, "id": entry_id}, limit=1
        )
        if not rows:
            return None
        return self._row_to_entry(rows[0], await self.get_history(entry_id))
    
    async def delete_history_item(self, history_id: str) -> bool:
        return await self._store.delete(self.history_table, history_id)
    
    async def delete_entry(self, entry_id: str) -> bool:
        return await self._store.delete(self.entry_table, entry_id)
    
    async def write_totals(
        self,
        entry_id: str,
        returned_amount: Decimal,
        status: CreditStatus,
    ) -> None:
        """Overwrite the stored copy of the derived totals."""
        await self._store.update(self.entry_table, entry_id, {
            "returned_amount": money_to_text(returned_amount),
            "status": status.value,
        })
    
    async def _insert_entry(
        self,
        user_id: str,
        person_name: str,
        amount: Decimal,
        opened_at: datetime,
        due_column: str,
        due: date,
        initial_payment_method: Union[PaymentMethod, str],
        initial_card_id: Optional[str],
        initial_note: Optional[str],
    ) -> Row:
        return await self._store.insert(self.entry_table, {
            "user_id": user_id,
            "person_name": person_name.strip(),
            "amount": money_to_text(amount),
            self.opened_column: datetime_to_text(opened_at),
            due_column: date_to_text(due),
            "returned_amount": money_to_text(Decimal("0")),
            "status": CreditStatus.ACTIVE.value,
            "initial_payment_method": enum_text(PaymentMethod(initial_payment_method)),
            "initial_card_id": initial_card_id or None,
            "initial_note": blank_to_none(initial_note),
        })


class CreditService(BaseCreditService[CreditEntry, CreditHistoryItem]):
    """Money lent: credit_entries + credit_history."""
    
    entry_table = "credit_entries"
    history_table = "credit_history"
    parent_column = "credit_id"
    opened_column = "given_date"
    
    def _row_to_history(self, row: Row) -> CreditHistoryItem:
        return CreditHistoryItem(
            id=row["id"],
            date=text_to_datetime(row["date"]),
            amount=text_to_money(row["amount"]),
            type=CreditHistoryType(row["type"]),
            payment_method=PaymentMethod(row["payment_method"]),
            card_id=row.get("card_id") or None,
            note=row.get("note") or None,
        )
    
    def _row_to_entry(self, row: Row, history: list[CreditHistoryItem]) -> CreditEntry:
        # returned_amount/status columns are ignored: derived from history
        return CreditEntry(
            id=row["id"],
            person_name=row["person_name"],
            amount=text_to_money(row["amount"]),
            given_date=text_to_datetime(row["given_date"]),
            due_date=text_to_date(row["due_date"]),
            history=history,
            initial_payment_method=PaymentMethod(row["initial_payment_method"]),
            initial_card_id=row.get("initial_card_id") or None,
            initial_note=row.get("initial_note") or None,
        )
    
    async def create_entry(
        self,
        user_id: str,
        person_name: str,
        amount: Decimal,
        due_date: date,
        given_date: datetime,
        initial_payment_method: Union[PaymentMethod, str],
        initial_card_id: Optional[str] = None,
        initial_note: Optional[str] = None,
    ) -> CreditEntry:
        """Insert the entry row only; history is added separately."""
        row = await self._insert_entry(
            user_id, person_name, amount, given_date,
            "due_date", due_date,
            initial_payment_method, initial_card_id, initial_note,
        )
        return self._row_to_entry(row, [])
    
    async def add_history_item(
        self,
        credit_id: str,
        item_type: Union[CreditHistoryType, str],
        when: datetime,
        amount: Decimal,
        payment_method: Union[PaymentMethod, str],
        card_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> CreditHistoryItem:
        row = await self._store.insert(self.history_table, {
            "credit_id": credit_id,
            "date": datetime_to_text(when),
            "amount": money_to_text(amount),
            "type": enum_text(CreditHistoryType(item_type)),
            "payment_method": enum_text(PaymentMethod(payment_method)),
            "card_id": card_id or None,
            "note": blank_to_none(note),
        })
        return self._row_to_history(row)
