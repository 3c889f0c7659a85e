"""Blob storage services package."""

from mymoney.services.files.interface import (
    InMemoryObjectStore,
    ObjectStoreError,
    ObjectStoreInterface,
)
from mymoney.services.files.cloudinary_service import CloudinaryObjectStore
from mymoney.services.files.receipts import ReceiptService

__all__ = [
    "CloudinaryObjectStore",
    "InMemoryObjectStore",
    "ObjectStoreError",
    "ObjectStoreInterface",
    "ReceiptService",
]
