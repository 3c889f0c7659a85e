"""
Session Orchestrator for MyMoney

This module ties together all the components and defines the flow of
every user action:
    
    action -> ledger operation -> remote store calls -> cache refresh

DESIGN DECISION: The session never raises to the UI.
- Every action returns an OperationResult
- User-correctable problems come back as a failed result with a message
- Store failures are audited and come back the same way
- The cache is refreshed after every successful mutation; when the
  refresh fails the previous snapshot stays on screen
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog
from pydantic import BaseModel

from mymoney.audit import AuditLogger, create_correlation_id
from mymoney.cache import ClientStateCache, DataSnapshot
from mymoney.config import get_settings
from mymoney.ledger import CascadeService, LedgerService
from mymoney.models.audit import AuditEventBuilder
from mymoney.models.ledger import CardDraft, CardType, PaymentMethod
from mymoney.services.auth import AuthError, AuthProviderInterface, AuthUser, LocalAuthProvider
from mymoney.services.entities import (
    CardService,
    CategoryService,
    ProfileService,
    TransactionService,
)
from mymoney.services.files import (
    CloudinaryObjectStore,
    InMemoryObjectStore,
    ObjectStoreError,
    ObjectStoreInterface,
    ReceiptService,
)
from mymoney.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    InMemoryAuditStorage,
    InMemoryRemoteStore,
    RemoteStoreInterface,
    StoreError,
)
from mymoney.validation import LedgerValidator, ValidationError


logger = structlog.get_logger(__name__)


class OperationResult(BaseModel):
    """Outcome of one user action."""
    
    success: bool
    message: str
    data: Any = None


Action = Callable[[str, UUID], Awaitable[Any]]


class FinanceSession:
    """
    One signed-in user's view of the ledger.
    
    Subscribes to the auth provider: sign-in binds the store to the
    user, creates the profile and default categories on first use and
    loads the cache; sign-out clears both.
    """
    
    def __init__(
        self,
        auth: AuthProviderInterface,
        store: RemoteStoreInterface,
        object_store: Optional[ObjectStoreInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[LedgerValidator] = None,
    ):
        self._auth = auth
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._validator = validator or LedgerValidator()
        
        self._profiles = ProfileService(store)
        self._categories = CategoryService(store)
        self._cards = CardService(store)
        self._transactions = TransactionService(store)
        self._ledger = LedgerService(store, self._audit, self._validator)
        self._cascade = CascadeService(store, self._audit)
        self._cache = ClientStateCache(store, self._audit)
        self._receipts = ReceiptService(object_store or InMemoryObjectStore())
        
        self._user: Optional[AuthUser] = None
        self._unsubscribe = auth.on_auth_change(self._on_auth_change)
    
    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    
    @property
    def user(self) -> Optional[AuthUser]:
        return self._user
    
    @property
    def snapshot(self) -> Optional[DataSnapshot]:
        return self._cache.snapshot
    
    @property
    def balances(self) -> dict[str, Decimal]:
        return self._cache.balances
    
    @property
    def ledger(self) -> LedgerService:
        return self._ledger
    
    @property
    def cascade(self) -> CascadeService:
        return self._cascade
    
    def close(self) -> None:
        """Stop listening to auth changes."""
        self._unsubscribe()
    
    async def _on_auth_change(self, user: Optional[AuthUser]) -> None:
        if user is None:
            previous = self._user
            self._user = None
            self._cache.clear()
            self._store.bind_user(None)
            await self._audit.log(AuditEventBuilder.user_signed_out(
                previous.id if previous else None
            ))
            return
        
        self._user = user
        self._store.bind_user(user.id)
        await self._profiles.get_profile(user.id, user.name, user.email)
        if not await self._categories.list_categories(user.id):
            await self._cascade.seed_default_categories(user.id)
        await self._audit.log(AuditEventBuilder.user_signed_in(user.id))
        await self._refresh(user.id)
    
    async def _refresh(self, user_id: str) -> bool:
        try:
            await self._cache.refresh(user_id)
            return True
        except StoreError as e:
            logger.warning("cache_refresh_failed", user_id=user_id, error=str(e))
            return False
    
    async def refresh(self) -> OperationResult:
        if self._user is None:
            return OperationResult(success=False, message="Please sign in first.")
        if await self._refresh(self._user.id):
            return OperationResult(success=True, message="Data refreshed.")
        return OperationResult(success=False, message="Could not load your data. Showing last saved view.")
    
    # ------------------------------------------------------------------
    # Action runner
    # ------------------------------------------------------------------
    
    async def _run(self, operation: str, success_message: str, action: Action) -> OperationResult:
        """Run `action` for the signed-in user and refresh the cache."""
        if self._user is None:
            return OperationResult(success=False, message="Please sign in first.")
        
        user_id = self._user.id
        correlation_id = create_correlation_id()
        try:
            data = await action(user_id, correlation_id)
        except (ValidationError, AuthError) as e:
            return OperationResult(success=False, message=str(e))
        except ObjectStoreError as e:
            await self._audit.log_external_service_error(
                service="object_store",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return OperationResult(success=False, message=str(e))
        except ValueError as e:
            # pydantic model validation on user input
            return OperationResult(success=False, message=f"Invalid input: {e}")
        except StoreError as e:
            await self._audit.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"operation": operation},
                correlation_id=correlation_id,
            )
            return OperationResult(success=False, message=f"Could not {operation.replace('_', ' ')}: {e}")
        
        await self._refresh(user_id)
        return OperationResult(success=True, message=success_message, data=data)
    
    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------
    
    async def sign_up(
        self,
        email: str,
        password: str,
        confirm_password: str,
        name: str = "",
    ) -> OperationResult:
        try:
            self._validator.validate_signup(password, confirm_password)
            user = await self._auth.sign_up(email, password, name)
        except (ValidationError, AuthError) as e:
            return OperationResult(success=False, message=str(e))
        except StoreError as e:
            return OperationResult(success=False, message=f"Could not set up your account: {e}")
        return OperationResult(success=True, message="Account created!", data=user)
    
    async def sign_in(self, email: str, password: str) -> OperationResult:
        try:
            user = await self._auth.sign_in(email, password)
        except AuthError as e:
            return OperationResult(success=False, message=str(e))
        except StoreError as e:
            return OperationResult(success=False, message=f"Could not load your account: {e}")
        return OperationResult(success=True, message="Signed in.", data=user)
    
    async def sign_out(self) -> OperationResult:
        await self._auth.sign_out()
        return OperationResult(success=True, message="Signed out.")
    
    async def change_password(
        self,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> OperationResult:
        if self._user is None:
            return OperationResult(success=False, message="Please sign in first.")
        try:
            self._validator.validate_password_change(
                current_password, new_password, confirm_password
            )
        except ValidationError as e:
            return OperationResult(success=False, message=str(e))
        
        try:
            await self._auth.sign_in(self._user.email, current_password)
        except AuthError:
            return OperationResult(success=False, message="Incorrect current password.")
        
        try:
            await self._auth.update_password(new_password)
        except AuthError as e:
            return OperationResult(success=False, message=str(e))
        return OperationResult(success=True, message="Password updated successfully!")
    
    async def request_password_reset(self, email: str) -> OperationResult:
        try:
            await self._auth.request_password_reset(email)
        except AuthError as e:
            return OperationResult(success=False, message=str(e))
        return OperationResult(
            success=True,
            message="If that email is registered, a reset link is on its way.",
        )
    
    # ------------------------------------------------------------------
    # Profile and account
    # ------------------------------------------------------------------
    
    async def update_profile(
        self,
        name: Optional[str] = None,
        email: Optional[str] = None,
        theme_setting: Optional[str] = None,
    ) -> OperationResult:
        return await self._run(
            "update_profile",
            "Profile updated.",
            lambda user_id, _: self._profiles.update_profile(
                user_id, name=name, email=email, theme_setting=theme_setting
            ),
        )
    
    async def reset_account_data(self) -> OperationResult:
        return await self._run(
            "reset_account_data",
            "All data has been reset.",
            lambda user_id, cid: self._cascade.reset_account_data(user_id, cid),
        )
    
    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    
    async def add_transaction(
        self,
        transaction_type: str,
        category: str,
        amount: Any,
        when: Optional[datetime] = None,
        note: Optional[str] = None,
        payment_method: str = PaymentMethod.CASH.value,
        card_id: Optional[str] = None,
    ) -> OperationResult:
        return await self._run(
            "add_transaction",
            "Transaction added.",
            lambda user_id, _: self._ledger.create_transaction(
                user_id, transaction_type, category, amount,
                when, note, payment_method, card_id,
            ),
        )
    
    async def update_transaction(self, transaction_id: str, **updates: Any) -> OperationResult:
        return await self._run(
            "update_transaction",
            "Transaction updated.",
            lambda user_id, _: self._ledger.update_transaction(
                user_id, transaction_id, **updates
            ),
        )
    
    async def delete_transaction(self, transaction_id: str) -> OperationResult:
        return await self._run(
            "delete_transaction",
            "Transaction deleted.",
            lambda user_id, _: self._ledger.delete_transaction(user_id, transaction_id),
        )
    
    async def attach_receipt(
        self,
        transaction_id: str,
        filename: str,
        blob: bytes,
    ) -> OperationResult:
        """Upload a receipt for one of the user's transactions."""
        async def upload(user_id: str, _: UUID) -> str:
            if await self._transactions.get_transaction(user_id, transaction_id) is None:
                raise ValidationError.single(
                    "transaction_id", "unknown", f"Transaction not found: {transaction_id}"
                )
            return await self._receipts.upload_receipt(user_id, filename, blob, transaction_id)
        
        return await self._run("attach_receipt", "Receipt uploaded.", upload)
    
    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------
    
    async def add_category(self, name: str, category_type: str) -> OperationResult:
        return await self._run(
            "add_category",
            f"Category '{name.strip()}' added.",
            lambda user_id, _: self._categories.create_category(user_id, name, category_type),
        )
    
    async def rename_category(self, category_id: str, new_name: str) -> OperationResult:
        return await self._run(
            "rename_category",
            "Category renamed.",
            lambda user_id, cid: self._cascade.rename_category(
                user_id, category_id, new_name, cid
            ),
        )
    
    async def delete_category(self, category_id: str, cascade: bool = True) -> OperationResult:
        return await self._run(
            "delete_category",
            "Category deleted.",
            lambda user_id, cid: self._cascade.delete_category(
                user_id, category_id, cascade, cid
            ),
        )
    
    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------
    
    async def add_card(
        self,
        card_name: str,
        card_number: str,
        expiry_date: str,
        card_type: str = CardType.VISA.value,
    ) -> OperationResult:
        async def create(user_id: str, _: UUID):
            draft = CardDraft(
                card_name=card_name,
                card_number=card_number,
                expiry_date=expiry_date,
                card_type=card_type,
            )
            return await self._cards.create_card(user_id, draft)
        
        return await self._run("add_card", "Card added.", create)
    
    async def update_card(self, card_id: str, **updates: Any) -> OperationResult:
        return await self._run(
            "update_card",
            "Card updated.",
            lambda user_id, _: self._cards.update_card(user_id, card_id, **updates),
        )
    
    async def delete_card(self, card_id: str) -> OperationResult:
        return await self._run(
            "delete_card",
            "Card deleted.",
            lambda user_id, cid: self._cascade.delete_card(user_id, card_id, cid),
        )
    
    # ------------------------------------------------------------------
    # Credit lent
    # ------------------------------------------------------------------
    
    async def give_credit(
        self,
        person_name: str,
        amount: Any,
        due_date: date,
        payment_method: str = PaymentMethod.CASH.value,
        card_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> OperationResult:
        return await self._run(
            "give_credit",
            f"Credit given to {person_name}.",
            lambda user_id, cid: self._ledger.create_credit_entry(
                user_id, person_name, amount, due_date,
                payment_method, card_id, note, cid,
            ),
        )
    
    async def record_credit_return(
        self,
        credit_id: str,
        amount: Any,
        payment_method: str = PaymentMethod.CASH.value,
        card_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> OperationResult:
        return await self._run(
            "record_credit_return",
            "Return recorded.",
            lambda user_id, cid: self._ledger.add_credit_return(
                user_id, credit_id, amount, payment_method, card_id, note, cid,
            ),
        )
    
    async def delete_credit_entry(self, credit_id: str) -> OperationResult:
        return await self._run(
            "delete_credit_entry",
            "Credit entry deleted.",
            lambda user_id, cid: self._ledger.delete_credit_entry(user_id, credit_id, cid),
        )
    
    async def delete_credit_return(self, credit_id: str, history_id: str) -> OperationResult:
        return await self._run(
            "delete_credit_return",
            "Return removed.",
            lambda user_id, cid: self._ledger.delete_credit_return(
                user_id, credit_id, history_id, cid
            ),
        )
    
    # ------------------------------------------------------------------
    # Credit received
    # ------------------------------------------------------------------
    
    async def receive_credit(
        self,
        person_name: str,
        amount: Any,
        return_date: date,
        payment_method: str = PaymentMethod.CASH.value,
        card_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> OperationResult:
        return await self._run(
            "receive_credit",
            f"Credit received from {person_name}.",
            lambda user_id, cid: self._ledger.create_credit_received_entry(
                user_id, person_name, amount, return_date,
                payment_method, card_id, note, cid,
            ),
        )
    
    async def record_credit_repayment(
        self,
        entry_id: str,
        amount: Any,
        payment_method: str = PaymentMethod.CASH.value,
        card_id: Optional[str] = None,
        note: Optional[str] = None,
    ) -> OperationResult:
        return await self._run(
            "record_credit_repayment",
            "Repayment recorded.",
            lambda user_id, cid: self._ledger.add_credit_received_return(
                user_id, entry_id, amount, payment_method, card_id, note, cid,
            ),
        )
    
    async def delete_credit_received_entry(self, entry_id: str) -> OperationResult:
        return await self._run(
            "delete_credit_received_entry",
            "Credit received entry deleted.",
            lambda user_id, cid: self._ledger.delete_credit_received_entry(
                user_id, entry_id, cid
            ),
        )
    
    async def delete_credit_received_return(
        self,
        entry_id: str,
        history_id: str,
    ) -> OperationResult:
        return await self._run(
            "delete_credit_received_return",
            "Repayment removed.",
            lambda user_id, cid: self._ledger.delete_credit_received_return(
                user_id, entry_id, history_id, cid
            ),
        )


def create_app_components(
    use_storage: bool = True,
    auth: Optional[AuthProviderInterface] = None,
) -> FinanceSession:
    """
    Factory function to create all application components.
    
    Args:
        use_storage: Whether to connect Google Sheets and Cloudinary.
                    Set to False for testing without external services.
        auth: Auth provider; defaults to LocalAuthProvider.
    
    Returns:
        A FinanceSession wired to the hosted backends, or to in-memory
        ones for whatever is not configured.
    """
    store: RemoteStoreInterface = InMemoryRemoteStore()
    audit_storage: AuditStorageInterface = InMemoryAuditStorage()
    object_store: ObjectStoreInterface = InMemoryObjectStore()
    
    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.connect()
            store = GoogleSheetsRemoteStore(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
        
        try:
            object_store = CloudinaryObjectStore(get_settings().cloudinary)
        except Exception as e:
            logger.warning("object_store_not_configured", error=str(e))
    
    return FinanceSession(
        auth=auth or LocalAuthProvider(),
        store=store,
        object_store=object_store,
        audit_logger=AuditLogger(audit_storage),
    )
