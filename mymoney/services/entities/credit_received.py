"""Credit received rows <-> models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from mymoney.models.ledger import (
    CreditReceivedEntry,
    CreditReceivedHistoryItem,
    PaymentMethod,
)
from mymoney.services.entities.credit import BaseCreditService
from mymoney.services.entities.mapping import (
    blank_to_none,
    datetime_to_text,
    enum_text,
    money_to_text,
    text_to_date,
    text_to_datetime,
    text_to_money,
)
from mymoney.services.storage import Row


class CreditReceivedService(
    BaseCreditService[CreditReceivedEntry, CreditReceivedHistoryItem]
):
    """Money borrowed: credit_received + credit_received_history."""
    
    entry_table = "credit_received"
    history_table = "credit_received_history"
    parent_column = "credit_received_id"
    opened_column = "received_date"
    
    def _row_to_history(self, row: Row) -> CreditReceivedHistoryItem:
        return CreditReceivedHistoryItem(
            id=row["id"],
            date=text_to_datetime(row["date"]),
            amount=text_to_money(row["amount"]),
            payment_method=PaymentMethod(row["payment_method"]),
            card_id=row.get("card_id") or None,
            note=row.get("note") or None,
        )
    
    def _row_to_entry(
        self,
        row: Row,
        history: list[CreditReceivedHistoryItem],
    ) -> CreditReceivedEntry:
        return CreditReceivedEntry(
            id=row["id"],
            person_name=row["person_name"],
            amount=text_to_money(row["amount"]),
            received_date=text_to_datetime(row["received_date"]),
            return_date=text_to_date(row["return_date"]),
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
        return_date: date,
        received_date: datetime,
        initial_payment_method: Union[PaymentMethod, str],
        initial_card_id: Optional[str] = None,
        initial_note: Optional[str] = None,
    ) -> CreditReceivedEntry:
        row = await self._insert_entry(
            user_id, person_name, amount, received_date,
            "return_date", return_date,
            initial_payment_method, initial_card_id, initial_note,
        )
        return self._row_to_entry(row, [])
    
    async def add_history_item(
        self,
        entry_id: str,
        when: datetime,
        amount: Decimal,
        payment_method: Union[PaymentMethod, str],
        card_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> CreditReceivedHistoryItem:
        row = await self._store.insert(self.history_table, {
            "credit_received_id": entry_id,
            "date": datetime_to_text(when),
            "amount": money_to_text(amount),
            "payment_method": enum_text(PaymentMethod(payment_method)),
            "card_id": card_id or None,
            "note": blank_to_none(note),
        })
        return self._row_to_history(row)
