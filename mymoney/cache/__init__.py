"""Client state cache package."""

from mymoney.cache.state import ClientStateCache, DataSnapshot

__all__ = ["ClientStateCache", "DataSnapshot"]
