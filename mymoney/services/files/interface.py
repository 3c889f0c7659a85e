"""
Object Storage Interface

Blob storage is deliberately reduced to "store blob, get URL back"
and "delete blob". Paths are `{user_id}/...` so a bucket can be
policed per user by the hosted backend.
"""

from abc import ABC, abstractmethod


class ObjectStoreError(Exception):
    """Base exception for blob storage errors."""
    pass


class ObjectStoreInterface(ABC):
    """Abstract blob store."""
    
    @abstractmethod
    async def put(self, bucket: str, path: str, blob: bytes) -> str:
        """
        Store `blob` at `path` inside `bucket`, overwriting any
        previous object, and return its public URL.
        
        Raises:
            ObjectStoreError: If the upload fails
        """
        pass
    
    @abstractmethod
    async def delete(self, bucket: str, path: str) -> None:
        """
        Remove the object at `path`.
        
        Raises:
            ObjectStoreError: If the removal fails
        """
        pass


class InMemoryObjectStore(ObjectStoreInterface):
    """Blobs kept in a dict keyed by (bucket, path)."""
    
    def __init__(self, base_url: str = "memory://"):
        self._base_url = base_url
        self.objects: dict[tuple[str, str], bytes] = {}
    
    async def put(self, bucket: str, path: str, blob: bytes) -> str:
        self.objects[(bucket, path)] = bytes(blob)
        return f"{self._base_url}{bucket}/{path}"
    
    async def delete(self, bucket: str, path: str) -> None:
        self.objects.pop((bucket, path), None)
