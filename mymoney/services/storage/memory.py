"""
In-Memory Storage Implementation

Backs the test suite and offline sessions. Shares the row-level
authorization rules of every other backend through RowLevelRemoteStore.
"""

from uuid import UUID

from mymoney.models.audit import AuditEvent
from mymoney.services.storage.interface import (
    TABLE_COLUMNS,
    AuditStorageInterface,
    Row,
    RowLevelRemoteStore,
)


class InMemoryRemoteStore(RowLevelRemoteStore):
    """Tables held as lists of dicts, in insertion order."""
    
    def __init__(self):
        super().__init__()
        self._tables: dict[str, list[Row]] = {table: [] for table in TABLE_COLUMNS}
    
    def _raw_rows(self, table: str) -> list[Row]:
        return self._tables[table]
    
    def _raw_append(self, table: str, row: Row) -> None:
        self._tables[table].append(dict(row))
    
    def _raw_replace(self, table: str, row_id: str, row: Row) -> None:
        rows = self._tables[table]
        for idx, existing in enumerate(rows):
            if existing["id"] == row_id:
                rows[idx] = dict(row)
                return
    
    def _raw_remove(self, table: str, row_id: str) -> None:
        self._tables[table] = [
            row for row in self._tables[table] if row["id"] != row_id
        ]
    
    def row_count(self, table: str) -> int:
        """Total rows in `table` across all users."""
        return len(self._tables[table])


class InMemoryAuditStorage(AuditStorageInterface):
    """Audit events kept in a list."""
    
    def __init__(self):
        self.events: list[AuditEvent] = []
    
    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True
    
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events
    
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
