"""
Cascade and guard rules for deleting shared reference data.

Categories are referenced by transactions through their name only;
cards through card ids on transactions and credit entries.

DESIGN DECISION: Guards fail closed. If the usage check cannot be
completed the delete does not proceed and the store error propagates.
"""

from typing import Optional
from uuid import UUID

from mymoney.audit import AuditLogger
from mymoney.config import AppSettings, get_settings
from mymoney.models.audit import AuditEventBuilder
from mymoney.models.ledger import Category, Transaction
from mymoney.ledger.saga import PartialWriteError, Saga
from mymoney.services.entities import CardService, CategoryService, TransactionService
from mymoney.services.storage import NotFoundError, RemoteStoreInterface, StoreError
from mymoney.validation import ValidationError


# Children before parents
RESET_ORDER = (
    "transactions",
    "credit_history",
    "credit_entries",
    "credit_received_history",
    "credit_received",
    "cards",
    "categories",
)


class CascadeService:
    """Category and card deletes, category renames and account reset."""
    
    def __init__(
        self,
        store: RemoteStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._store = store
        self._categories = CategoryService(store)
        self._cards = CardService(store)
        self._transactions = TransactionService(store)
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().app
    
    async def _require_category(self, user_id: str, category_id: str) -> Category:
        category = await self._categories.get_category(user_id, category_id)
        if category is None:
            raise NotFoundError(f"Category not found: {category_id}")
        return category
    
    async def _referencing(self, user_id: str, category: Category) -> list[Transaction]:
        return await self._transactions.find_transactions(user_id, category=category.name)
    
    async def _reject(
        self,
        user_id: str,
        entity_type: str,
        entity_id: str,
        reason: str,
        message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        await self._audit.log(AuditEventBuilder.guard_rejected(
            user_id=user_id,
            entity_type=entity_type,
            entity_id=entity_id,
            reason=reason,
            correlation_id=correlation_id,
        ))
        raise ValidationError.single(f"{entity_type}_id", "in_use", message)
    
    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------
    
    async def has_transactions_referencing_category(
        self,
        user_id: str,
        category_id: str,
    ) -> bool:
        """True when any transaction is filed under the category's name."""
        category = await self._require_category(user_id, category_id)
        return bool(await self._referencing(user_id, category))
    
    async def delete_category(
        self,
        user_id: str,
        category_id: str,
        cascade: bool = True,
        correlation_id: Optional[UUID] = None,
    ) -> int:
        """
        Delete a category, removing its transactions first when cascading.
        
        Transactions that mirror credit movements are never removed here;
        a category they reference cannot be deleted.
        
        Returns:
            Number of transactions removed
        """
        category = await self._require_category(user_id, category_id)
        if not cascade and await self.has_transactions_referencing_category(user_id, category_id):
            await self._reject(
                user_id, "category", category_id, "transactions_reference_category",
                f"Category '{category.name}' is used by transactions",
                correlation_id,
            )
        
        referencing = await self._referencing(user_id, category)
        if any(t.is_ledger_owned for t in referencing):
            await self._reject(
                user_id, "category", category_id, "credit_transactions_reference_category",
                f"Category '{category.name}' is used by credit records",
                correlation_id,
            )
        
        for transaction in referencing:
            await self._transactions.delete_transaction(transaction.id)
        await self._categories.delete_category(category_id)
        
        await self._audit.log(AuditEventBuilder.category_deleted(
            user_id=user_id,
            category_id=category_id,
            name=category.name,
            transactions_removed=len(referencing),
            correlation_id=correlation_id,
        ))
        return len(referencing)
    
    async def rename_category(
        self,
        user_id: str,
        category_id: str,
        new_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> Category:
        """Rename a category and every transaction filed under it."""
        current = await self._require_category(user_id, category_id)
        referencing = await self._referencing(user_id, current)
        
        saga = Saga("rename_category")
        try:
            renamed = await self._categories.update_category(
                user_id, category_id, name=new_name
            )
            saga.record(
                f"categories:{category_id}",
                lambda: self._categories.update_category(
                    user_id, category_id, name=current.name
                ),
            )
            for transaction in referencing:
                await self._transactions.update_transaction(
                    transaction.id, category=renamed.name
                )
                saga.record(
                    f"transactions:{transaction.id}",
                    lambda tid=transaction.id: self._transactions.update_transaction(
                        tid, category=current.name
                    ),
                )
        except ValidationError:
            raise
        except Exception as e:
            undone, leftover = await saga.rollback()
            if leftover:
                await self._audit.log(AuditEventBuilder.partial_write(
                    user_id=user_id,
                    operation=saga.operation,
                    leftover=leftover,
                    error_message=str(e),
                    correlation_id=correlation_id,
                ))
                raise PartialWriteError(
                    f"rename_category failed and could not be undone: {e}", leftover
                ) from e
            await self._audit.log(AuditEventBuilder.saga_compensated(
                user_id=user_id,
                operation=saga.operation,
                undone=undone,
                error_message=str(e),
                correlation_id=correlation_id,
            ))
            if isinstance(e, StoreError):
                raise
            raise StoreError(f"rename_category failed: {e}") from e
        
        await self._audit.log(AuditEventBuilder.category_renamed(
            user_id=user_id,
            category_id=category_id,
            old_name=current.name,
            new_name=renamed.name,
            transactions_rewritten=len(referencing),
            correlation_id=correlation_id,
        ))
        return renamed
    
    async def seed_default_categories(self, user_id: str) -> list[Category]:
        """Create the configured default categories the user does not have yet."""
        created = []
        for kind, name in self._settings.default_categories_list:
            if await self._categories.find_category(user_id, name, kind) is None:
                created.append(await self._categories.create_category(user_id, name, kind))
        return created
    
    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------
    
    async def delete_card(
        self,
        user_id: str,
        card_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        if await self._cards.get_card(user_id, card_id) is None:
            raise NotFoundError(f"Card not found: {card_id}")
        if await self._cards.is_card_in_use(user_id, card_id):
            await self._reject(
                user_id, "card", card_id, "card_in_use",
                "This card is used by transactions or credit entries and cannot be deleted",
                correlation_id,
            )
        
        await self._cards.delete_card(card_id)
        await self._audit.log(AuditEventBuilder.card_deleted(
            user_id=user_id,
            card_id=card_id,
            correlation_id=correlation_id,
        ))
    
    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------
    
    async def reset_account_data(
        self,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> dict[str, int]:
        """
        Remove every row the user owns, keeping the profile, and reseed
        the default categories.
        
        Returns:
            Rows removed per table
        """
        removed = {}
        for table in RESET_ORDER:
            # History tables have no user column; visibility scopes them
            filters = None if table.endswith("_history") else {"user_id": user_id}
            rows = await self._store.select(table, filters)
            count = 0
            for row in rows:
                if await self._store.delete(table, row["id"]):
                    count += 1
            removed[table] = count
        
        await self.seed_default_categories(user_id)
        await self._audit.log(AuditEventBuilder.account_reset(
            user_id=user_id,
            rows_removed=removed,
            correlation_id=correlation_id,
        ))
        return removed
