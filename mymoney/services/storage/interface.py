"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for table storage.
This allows us to:
1. Swap Google Sheets for a hosted database later
2. Use in-memory storage for testing
3. Keep the ledger decoupled from the storage implementation

The interface is intentionally tiny - insert, update, delete, select.
Row-level authorization is enforced here, once, for every backend:
a store is bound to the signed-in user and only ever exposes that
user's rows.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID, uuid4

from mymoney.models.audit import AuditEvent


Row = dict[str, Any]


# Logical schema, one entry per table
TABLE_COLUMNS: dict[str, list[str]] = {
    "profiles": [
        "id", "name", "email", "theme_setting", "created_at",
    ],
    "categories": [
        "id", "user_id", "name", "type", "created_at",
    ],
    "cards": [
        "id", "user_id", "card_name", "card_number", "expiry_date",
        "card_type", "created_at",
    ],
    "transactions": [
        "id", "user_id", "type", "category", "amount", "date", "note",
        "payment_method", "card_id", "credit_id", "credit_history_id",
        "credit_received_id", "credit_received_history_id", "created_at",
    ],
    "credit_entries": [
        "id", "user_id", "person_name", "amount", "due_date", "given_date",
        "returned_amount", "status", "initial_payment_method",
        "initial_card_id", "initial_note", "created_at",
    ],
    "credit_history": [
        "id", "credit_id", "date", "amount", "type", "payment_method",
        "card_id", "note", "created_at",
    ],
    "credit_received": [
        "id", "user_id", "person_name", "amount", "return_date",
        "received_date", "returned_amount", "status",
        "initial_payment_method", "initial_card_id", "initial_note",
        "created_at",
    ],
    "credit_received_history": [
        "id", "credit_received_id", "date", "amount", "payment_method",
        "card_id", "note", "created_at",
    ],
}

# Column holding the owning user id
OWNER_COLUMNS: dict[str, str] = {
    "profiles": "id",
    "categories": "user_id",
    "cards": "user_id",
    "transactions": "user_id",
    "credit_entries": "user_id",
    "credit_received": "user_id",
}

# History tables are owned through their parent entry
PARENT_TABLES: dict[str, tuple[str, str]] = {
    "credit_history": ("credit_entries", "credit_id"),
    "credit_received_history": ("credit_received", "credit_received_id"),
}


class StoreError(Exception):
    """Base exception for remote store operations."""
    pass


class NotFoundError(StoreError):
    """Entity not found in storage."""
    pass


class AuthorizationError(StoreError):
    """Row-level authorization denied the operation."""
    pass


class ConnectionError(StoreError):
    """Could not connect to storage backend."""
    pass


class RemoteStoreInterface(ABC):
    """
    Abstract interface for per-table row storage.
    
    Rows are plain dicts keyed by column name. Values are strings or
    None; typed conversion is the entity services' job.
    """
    
    @abstractmethod
    def bind_user(self, user_id: Optional[str]) -> None:
        """Scope every following operation to `user_id` (None unbinds)."""
        pass
    
    @property
    @abstractmethod
    def bound_user(self) -> Optional[str]:
        pass
    
    @abstractmethod
    async def insert(self, table: str, row: Row) -> Row:
        """
        Insert a row and return it with its id.
        
        Args:
            table: Logical table name from TABLE_COLUMNS
            row: Column values; id and created_at are filled in when absent
            
        Returns:
            The stored row
            
        Raises:
            AuthorizationError: If the row belongs to another user
            StoreError: If the write fails
        """
        pass
    
    @abstractmethod
    async def update(self, table: str, row_id: str, patch: Row) -> Row:
        """
        Apply `patch` to the row and return the updated row.
        
        Args:
            table: Logical table name
            row_id: Id of the row to change
            patch: Columns to overwrite
            
        Raises:
            NotFoundError: If the row does not exist or is not visible
            StoreError: If the write fails
        """
        pass
    
    @abstractmethod
    async def delete(self, table: str, row_id: str) -> bool:
        """
        Delete a row by id.
        
        Args:
            table: Logical table name
            row_id: Id of the row to remove
            
        Returns:
            True if a row was removed, False if none matched
        """
        pass
    
    @abstractmethod
    async def select(
        self,
        table: str,
        filters: Optional[Row] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        """
        Return the visible rows matching every equality filter.
        
        Rows outside the bound user's scope are silently excluded.
        
        Args:
            table: Logical table name
            filters: Column -> value equality filters
            order_by: Column to sort on
            descending: Sort newest/largest first
            limit: Maximum number of rows
            
        Returns:
            Matching rows as fresh dicts
        """
        pass


class RowLevelRemoteStore(RemoteStoreInterface):
    """
    Row-level authorization on top of raw row access.
    
    Backends implement the four `_raw_*` methods; everything a caller
    sees passes through the ownership checks below.
    """
    
    def __init__(self):
        self._user_id: Optional[str] = None
    
    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------
    
    @abstractmethod
    def _raw_rows(self, table: str) -> list[Row]:
        pass
    
    @abstractmethod
    def _raw_append(self, table: str, row: Row) -> None:
        pass
    
    @abstractmethod
    def _raw_replace(self, table: str, row_id: str, row: Row) -> None:
        pass
    
    @abstractmethod
    def _raw_remove(self, table: str, row_id: str) -> None:
        pass
    
    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------
    
    def bind_user(self, user_id: Optional[str]) -> None:
        self._user_id = user_id
    
    @property
    def bound_user(self) -> Optional[str]:
        return self._user_id
    
    def _require_user(self) -> str:
        if not self._user_id:
            raise AuthorizationError("Not authenticated: store is not bound to a user")
        return self._user_id
    
    def _check_table(self, table: str) -> list[str]:
        try:
            return TABLE_COLUMNS[table]
        except KeyError:
            raise StoreError(f"Unknown table: {table}")
    
    def _check_columns(self, table: str, row: Row) -> None:
        columns = self._check_table(table)
        unknown = set(row) - set(columns)
        if unknown:
            raise StoreError(
                f"Unknown columns for {table}: {', '.join(sorted(unknown))}"
            )
    
    def _owned_ids(self, table: str, user_id: str) -> set[str]:
        owner_column = OWNER_COLUMNS[table]
        return {
            row["id"] for row in self._raw_rows(table)
            if row.get(owner_column) == user_id
        }
    
    def _is_visible(self, table: str, row: Row, user_id: str) -> bool:
        if table in OWNER_COLUMNS:
            return row.get(OWNER_COLUMNS[table]) == user_id
        parent_table, parent_column = PARENT_TABLES[table]
        return row.get(parent_column) in self._owned_ids(parent_table, user_id)
    
    def _find(self, table: str, row_id: str) -> Optional[Row]:
        for row in self._raw_rows(table):
            if row.get("id") == row_id:
                return row
        return None
    
    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    
    async def insert(self, table: str, row: Row) -> Row:
        user_id = self._require_user()
        self._check_columns(table, row)
        
        new_row = {column: None for column in TABLE_COLUMNS[table]}
        new_row.update(row)
        if not new_row.get("id"):
            new_row["id"] = str(uuid4())
        if not new_row.get("created_at"):
            new_row["created_at"] = datetime.now(timezone.utc).isoformat()
        
        if not self._is_visible(table, new_row, user_id):
            raise AuthorizationError(
                f"Row-level policy denied insert into {table}"
            )
        if self._find(table, new_row["id"]) is not None:
            raise StoreError(f"Duplicate id {new_row['id']} in {table}")
        
        self._raw_append(table, new_row)
        return dict(new_row)
    
    async def update(self, table: str, row_id: str, patch: Row) -> Row:
        user_id = self._require_user()
        self._check_columns(table, patch)
        
        current = self._find(table, row_id)
        if current is None or not self._is_visible(table, current, user_id):
            raise NotFoundError(f"No row {row_id} in {table}")
        
        updated = dict(current)
        updated.update(patch)
        updated["id"] = current["id"]
        if not self._is_visible(table, updated, user_id):
            raise AuthorizationError(
                f"Row-level policy denied update of {table}"
            )
        
        self._raw_replace(table, row_id, updated)
        return dict(updated)
    
    async def delete(self, table: str, row_id: str) -> bool:
        user_id = self._require_user()
        self._check_table(table)
        
        current = self._find(table, row_id)
        if current is None or not self._is_visible(table, current, user_id):
            return False
        self._raw_remove(table, row_id)
        return True
    
    async def select(
        self,
        table: str,
        filters: Optional[Row] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        user_id = self._require_user()
        self._check_table(table)
        if filters:
            self._check_columns(table, filters)
        
        if table in OWNER_COLUMNS:
            owner_column = OWNER_COLUMNS[table]
            visible = [
                row for row in self._raw_rows(table)
                if row.get(owner_column) == user_id
            ]
        else:
            parent_table, parent_column = PARENT_TABLES[table]
            parents = self._owned_ids(parent_table, user_id)
            visible = [
                row for row in self._raw_rows(table)
                if row.get(parent_column) in parents
            ]
        
        rows = [
            dict(row) for row in visible
            if all(row.get(k) == v for k, v in (filters or {}).items())
        ]
        
        if order_by:
            # None sorts first
            rows.sort(
                key=lambda r: (r.get(order_by) is not None, r.get(order_by) or ""),
                reverse=descending,
            )
        if limit is not None:
            rows = rows[:limit]
        return rows


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.
    
    Audit logs are append-only - we never delete or modify them.
    """
    
    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.
        
        Args:
            event: The audit event to log
            
        Returns:
            True if logged successfully
        """
        pass
    
    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Events of one user action in chronological order.
        
        Args:
            correlation_id: The correlation identifier
            
        Returns:
            Events sharing the correlation id, oldest first
        """
        pass
    
    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass
