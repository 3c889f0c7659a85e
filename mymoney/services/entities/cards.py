"""Card rows <-> CardDetails models."""

from typing import Any, Optional

from mymoney.models.ledger import CardDetails, CardDraft, CardType
from mymoney.services.storage import NotFoundError, RemoteStoreInterface, Row


TABLE = "cards"

UPDATABLE_FIELDS = ("card_name", "card_number", "expiry_date", "card_type")


def row_to_card(row: Row) -> CardDetails:
    return CardDetails(
        id=row["id"],
        card_name=row["card_name"],
        card_number=row["card_number"],
        expiry_date=row["expiry_date"],
        card_type=CardType(row["card_type"]),
    )


class CardService:
    """CRUD for the cards table plus the in-use query."""
    
    def __init__(self, store: RemoteStoreInterface):
        self._store = store
    
    async def list_cards(self, user_id: str) -> list[CardDetails]:
        """Cards, most recently added first."""
        rows = await self._store.select(
            TABLE,
            {"user_id": user_id},
            order_by="created_at",
            descending=True,
        )
        return [row_to_card(row) for row in rows]
    
    async def get_card(self, user_id: str, card_id: str) -> Optional[CardDetails]:
        rows = await self._store.select(TABLE, {"user_id": user_id, "id": card_id}, limit=1)
        return row_to_card(rows[0]) if rows else None
    
    async def create_card(self, user_id: str, card: CardDraft) -> CardDetails:
        row = await self._store.insert(TABLE, {
            "user_id": user_id,
            "card_name": card.card_name,
            "card_number": card.card_number,
            "expiry_date": card.expiry_date,
            "card_type": card.card_type.value,
        })
        return row_to_card(row)
    
    async def update_card(self, user_id: str, card_id: str, **updates: Any) -> CardDetails:
        unknown = set(updates) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        
        current = await self.get_card(user_id, card_id)
        if current is None:
            raise NotFoundError(f"Card not found: {card_id}")
        
        # Re-validate the merged card so a bad expiry never reaches storage
        merged = CardDraft(**{**current.model_dump(exclude={"id"}), **updates})
        row = await self._store.update(TABLE, card_id, {
            field: (value.value if isinstance(value, CardType) else value)
            for field, value in merged.model_dump().items()
            if field in updates
        })
        return row_to_card(row)
    
    async def delete_card(self, card_id: str) -> bool:
        return await self._store.delete(TABLE, card_id)
    
    async def is_card_in_use(self, user_id: str, card_id: str) -> bool:
        """
        True when any transaction or credit entry references the card.
        
        Store errors propagate; callers must treat them as "in use".
        """
        rows = await self._store.select(
            "transactions", {"user_id": user_id, "card_id": card_id}, limit=1
        )
        if rows:
            return True
        for table in ("credit_entries", "credit_received"):
            rows = await self._store.select(
                table, {"user_id": user_id, "initial_card_id": card_id}, limit=1
            )
            if rows:
                return True
        return False
