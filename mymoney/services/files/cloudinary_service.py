"""
Receipt Storage using Cloudinary

DESIGN DECISION: We use Cloudinary because:
1. Reliable cloud infrastructure
2. Simple upload/destroy API returning a public URL
3. Free tier sufficient for personal use

Buckets map to folders under the configured root folder. The object
path minus its extension becomes the Cloudinary public id, so
re-uploading a receipt for the same transaction overwrites it.
"""

from pathlib import PurePosixPath
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader

from mymoney.config import CloudinarySettings, get_settings
from mymoney.services.files.interface import ObjectStoreError, ObjectStoreInterface


class CloudinaryObjectStore(ObjectStoreInterface):
    """Object store backed by Cloudinary uploads."""
    
    def __init__(self, settings: Optional[CloudinarySettings] = None):
        self._settings = settings or get_settings().cloudinary
        self._configured = False
    
    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True
    
    def _public_id(self, bucket: str, path: str) -> str:
        stem = str(PurePosixPath(path).with_suffix(""))
        return f"{self._settings.root_folder}/{bucket}/{stem}"
    
    async def put(self, bucket: str, path: str, blob: bytes) -> str:
        self._configure()
        try:
            result = cloudinary.uploader.upload(
                blob,
                public_id=self._public_id(bucket, path),
                resource_type="auto",
                overwrite=True,
                invalidate=True,
            )
        except cloudinary.exceptions.Error as e:
            raise ObjectStoreError(f"Cloudinary error: {e}")
        except Exception as e:
            raise ObjectStoreError(f"Failed to upload {path}: {e}")
        
        url = result.get("secure_url", result.get("url", ""))
        if not url:
            raise ObjectStoreError("No URL returned from Cloudinary")
        return url
    
    async def delete(self, bucket: str, path: str) -> None:
        self._configure()
        try:
            result = cloudinary.uploader.destroy(
                self._public_id(bucket, path),
                invalidate=True,
            )
        except cloudinary.exceptions.Error as e:
            raise ObjectStoreError(f"Cloudinary error: {e}")
        
        if result.get("result") not in ("ok", "not found"):
            raise ObjectStoreError(f"Failed to delete {path}: {result}")
