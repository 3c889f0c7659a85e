"""
Storage Services Package

Provides the abstract remote store interface and concrete implementations.
Google Sheets is the hosted backend; the in-memory store backs tests and
offline sessions.
"""

from mymoney.services.storage.interface import (
    OWNER_COLUMNS,
    PARENT_TABLES,
    TABLE_COLUMNS,
    AuditStorageInterface,
    AuthorizationError,
    ConnectionError,
    NotFoundError,
    RemoteStoreInterface,
    Row,
    RowLevelRemoteStore,
    StoreError,
)
from mymoney.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryRemoteStore,
)
from mymoney.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "RemoteStoreInterface",
    "RowLevelRemoteStore",
    "Row",
    # Schema
    "OWNER_COLUMNS",
    "PARENT_TABLES",
    "TABLE_COLUMNS",
    # Exceptions
    "AuthorizationError",
    "ConnectionError",
    "NotFoundError",
    "StoreError",
    # Implementations
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "InMemoryAuditStorage",
    "InMemoryRemoteStore",
]
