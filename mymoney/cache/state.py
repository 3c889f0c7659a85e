"""
Client State Cache

The UI reads from one in-memory snapshot of the signed-in user's data.

DESIGN DECISION: A refresh replaces the snapshot wholesale or not at
all. If any collection fails to load, the previous snapshot stays in
place and the error propagates to the caller.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from mymoney.audit import AuditLogger
from mymoney.ledger.balances import compute_balances
from mymoney.models.audit import AuditEventBuilder
from mymoney.models.ledger import (
    CardDetails,
    Category,
    CreditEntry,
    CreditReceivedEntry,
    Profile,
    Transaction,
)
from mymoney.services.entities import (
    CardService,
    CategoryService,
    CreditReceivedService,
    CreditService,
    ProfileService,
    TransactionService,
)
from mymoney.services.storage import RemoteStoreInterface


class DataSnapshot(BaseModel):
    """Everything the UI shows for one user, loaded together."""
    
    user_id: str
    profile: Optional[Profile] = None
    transactions: list[Transaction] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    cards: list[CardDetails] = Field(default_factory=list)
    credit_entries: list[CreditEntry] = Field(default_factory=list)
    credit_received: list[CreditReceivedEntry] = Field(default_factory=list)
    loaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    
    def counts(self) -> dict[str, int]:
        return {
            "transactions": len(self.transactions),
            "categories": len(self.categories),
            "cards": len(self.cards),
            "credit_entries": len(self.credit_entries),
            "credit_received": len(self.credit_received),
        }


class ClientStateCache:
    """Holds the latest successful DataSnapshot."""
    
    def __init__(
        self,
        store: RemoteStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._profiles = ProfileService(store)
        self._transactions = TransactionService(store)
        self._categories = CategoryService(store)
        self._cards = CardService(store)
        self._credit = CreditService(store)
        self._credit_received = CreditReceivedService(store)
        self._audit = audit_logger or AuditLogger()
        self._snapshot: Optional[DataSnapshot] = None
    
    @property
    def snapshot(self) -> Optional[DataSnapshot]:
        return self._snapshot
    
    @property
    def balances(self) -> dict[str, Decimal]:
        """Recomputed from the snapshot on every access."""
        if self._snapshot is None:
            return compute_balances([], [])
        return compute_balances(self._snapshot.transactions, self._snapshot.cards)
    
    async def refresh(self, user_id: str) -> DataSnapshot:
        """
        Reload every collection concurrently.
        
        Raises:
            StoreError: If any load fails; the old snapshot is kept
        """
        try:
            (
                profile,
                transactions,
                categories,
                cards,
                credit_entries,
                credit_received,
            ) = await asyncio.gather(
                self._profiles.find_profile(user_id),
                self._transactions.list_transactions(user_id),
                self._categories.list_categories(user_id),
                self._cards.list_cards(user_id),
                self._credit.list_entries(user_id),
                self._credit_received.list_entries(user_id),
            )
        except Exception as e:
            await self._audit.log(AuditEventBuilder.cache_refresh_failed(
                user_id=user_id,
                error_message=str(e),
            ))
            raise
        
        snapshot = DataSnapshot(
            user_id=user_id,
            profile=profile,
            transactions=transactions,
            categories=categories,
            cards=cards,
            credit_entries=credit_entries,
            credit_received=credit_received,
        )
        self._snapshot = snapshot
        await self._audit.log(AuditEventBuilder.cache_refreshed(
            user_id=user_id,
            counts=snapshot.counts(),
        ))
        return snapshot
    
    def clear(self) -> None:
        self._snapshot = None
