"""Receipt attachments for transactions."""

from pathlib import PurePosixPath
from typing import Optional

from mymoney.config import get_settings
from mymoney.services.files.interface import ObjectStoreInterface
from mymoney.validation import ValidationError


class ReceiptService:
    """
    Stores one receipt image per transaction.
    
    Objects live at `{user_id}/{transaction_id}.{ext}` in the receipts
    bucket; uploading again for the same transaction replaces it.
    """
    
    def __init__(
        self,
        object_store: ObjectStoreInterface,
        bucket: Optional[str] = None,
    ):
        self._store = object_store
        self._bucket = bucket or get_settings().app.receipts_bucket
    
    @staticmethod
    def receipt_path(user_id: str, transaction_id: str, filename: str) -> str:
        ext = PurePosixPath(filename).suffix.lstrip(".").lower()
        if not ext:
            raise ValidationError.single(
                "filename", "invalid_format", f"Receipt file has no extension: {filename}"
            )
        return f"{user_id}/{transaction_id}.{ext}"
    
    async def upload_receipt(
        self,
        user_id: str,
        filename: str,
        blob: bytes,
        transaction_id: str,
    ) -> str:
        """Upload a receipt and return its public URL."""
        if not blob:
            raise ValidationError.single("blob", "missing", "Receipt file is empty")
        path = self.receipt_path(user_id, transaction_id, filename)
        return await self._store.put(self._bucket, path, blob)
    
    async def delete_receipt(self, path: str) -> None:
        await self._store.delete(self._bucket, path)
