"""Tests for receipt uploads."""

import asyncio

import pytest

from mymoney.services.files import InMemoryObjectStore, ReceiptService
from mymoney.validation import ValidationError


@pytest.fixture
def object_store():
    return InMemoryObjectStore()


@pytest.fixture
def receipts(object_store):
    return ReceiptService(object_store, bucket="receipts")


class TestReceiptService:
    """Tests for ReceiptService."""
    
    def test_path_uses_user_and_transaction(self):
        assert ReceiptService.receipt_path("u1", "t1", "Bill.JPG") == "u1/t1.jpg"
    
    def test_path_requires_extension(self):
        with pytest.raises(ValidationError):
            ReceiptService.receipt_path("u1", "t1", "receipt")
    
    def test_upload_returns_url(self, receipts, object_store):
        url = asyncio.run(receipts.upload_receipt("u1", "bill.png", b"\x89PNG", "t1"))
        assert url == "memory://receipts/u1/t1.png"
        assert object_store.objects[("receipts", "u1/t1.png")] == b"\x89PNG"
    
    def test_upload_again_replaces(self, receipts, object_store):
        asyncio.run(receipts.upload_receipt("u1", "bill.png", b"one", "t1"))
        asyncio.run(receipts.upload_receipt("u1", "bill.png", b"two", "t1"))
        assert object_store.objects[("receipts", "u1/t1.png")] == b"two"
    
    def test_empty_blob_rejected(self, receipts):
        with pytest.raises(ValidationError):
            asyncio.run(receipts.upload_receipt("u1", "bill.png", b"", "t1"))
    
    def test_delete(self, receipts, object_store):
        asyncio.run(receipts.upload_receipt("u1", "bill.png", b"x", "t1"))
        asyncio.run(receipts.delete_receipt("u1/t1.png"))
        assert object_store.objects == {}
