"""Transaction rows <-> Transaction models."""

from typing import Any, Optional

from mymoney.models.ledger import (
    PaymentMethod,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from mymoney.services.entities.mapping import (
    blank_to_none,
    datetime_to_text,
    enum_text,
    money_to_text,
    text_to_datetime,
    text_to_money,
)
from mymoney.services.storage import RemoteStoreInterface, Row


TABLE = "transactions"

# Domain fields that may be changed through update_transaction
UPDATABLE_FIELDS = (
    "type", "category", "amount", "date", "note", "payment_method", "card_id",
)


def row_to_transaction(row: Row) -> Transaction:
    return Transaction(
        id=row["id"],
        type=TransactionType(row["type"]),
        category=row["category"],
        amount=text_to_money(row["amount"]),
        date=text_to_datetime(row["date"]),
        note=row.get("note") or None,
        payment_method=(
            PaymentMethod(row["payment_method"]) if row.get("payment_method") else None
        ),
        card_id=row.get("card_id") or None,
        credit_id=row.get("credit_id") or None,
        credit_history_id=row.get("credit_history_id") or None,
        credit_received_id=row.get("credit_received_id") or None,
        credit_received_history_id=row.get("credit_received_history_id") or None,
    )


def _field_to_cell(field: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if field == "amount":
        return money_to_text(value)
    if field == "date":
        return datetime_to_text(value)
    if field in ("type", "payment_method"):
        return enum_text(value)
    if field == "note":
        return blank_to_none(value)
    return str(value) or None


def draft_to_row(user_id: str, draft: TransactionDraft) -> Row:
    row = {"user_id": user_id}
    for field in TransactionDraft.model_fields:
        row[field] = _field_to_cell(field, getattr(draft, field))
    return row


class TransactionService:
    """CRUD for the transactions table."""
    
    def __init__(self, store: RemoteStoreInterface):
        self._store = store
    
    async def list_transactions(self, user_id: str) -> list[Transaction]:
        """All of the user's transactions, newest first."""
        rows = await self._store.select(
            TABLE,
            {"user_id": user_id},
            order_by="date",
            descending=True,
        )
        return [row_to_transaction(row) for row in rows]
    
    async def find_transactions(self, user_id: str, **filters: Any) -> list[Transaction]:
        """Transactions whose columns equal every keyword filter."""
        criteria = {"user_id": user_id}
        criteria.update({k: _field_to_cell(k, v) for k, v in filters.items()})
        rows = await self._store.select(TABLE, criteria)
        return [row_to_transaction(row) for row in rows]
    
    async def get_transaction(self, user_id: str, transaction_id: str) -> Optional[Transaction]:
        rows = await self._store.select(
            TABLE, {"user_id": user_id, "id": transaction_id}, limit=1
        )
        return row_to_transaction(rows[0]) if rows else None
    
    async def create_transaction(self, user_id: str, draft: TransactionDraft) -> Transaction:
        row = await self._store.insert(TABLE, draft_to_row(user_id, draft))
        return row_to_transaction(row)
    
    async def update_transaction(
        self,
        transaction_id: str,
        **updates: Any,
    ) -> Transaction:
        unknown = set(updates) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        patch = {field: _field_to_cell(field, value) for field, value in updates.items()}
        row = await self._store.update(TABLE, transaction_id, patch)
        return row_to_transaction(row)
    
    async def delete_transaction(self, transaction_id: str) -> bool:
        return await self._store.delete(TABLE, transaction_id)
