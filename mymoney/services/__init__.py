"""Services package."""

from mymoney.services.storage import (
    AuthorizationError,
    ConnectionError,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    InMemoryAuditStorage,
    InMemoryRemoteStore,
    NotFoundError,
    RemoteStoreInterface,
    StoreError,
)
from mymoney.services.files import (
    CloudinaryObjectStore,
    InMemoryObjectStore,
    ObjectStoreError,
    ReceiptService,
)
from mymoney.services.auth import AuthError, LocalAuthProvider

__all__ = [
    "AuthError",
    "AuthorizationError",
    "CloudinaryObjectStore",
    "ConnectionError",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsRemoteStore",
    "InMemoryAuditStorage",
    "InMemoryObjectStore",
    "InMemoryRemoteStore",
    "LocalAuthProvider",
    "NotFoundError",
    "ObjectStoreError",
    "ReceiptService",
    "RemoteStoreInterface",
    "StoreError",
]
