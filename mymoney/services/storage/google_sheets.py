"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the default hosted backend because:
1. Users can view and export their ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- No transactions (the ledger runs multi-step writes as a saga)
- No row-level security (enforced by RowLevelRemoteStore instead)
- Limited query capabilities (we filter in Python)

Each table lives in its own worksheet whose first row is the column
header from TABLE_COLUMNS. Every cell is text; an empty cell is None.
"""

import json
from datetime import datetime
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import retry, stop_after_attempt, wait_exponential

from mymoney.config import get_settings
from mymoney.models.audit import AuditEvent, AuditEventType, AuditSeverity
from mymoney.services.storage.interface import (
    TABLE_COLUMNS,
    AuditStorageInterface,
    ConnectionError,
    Row,
    RowLevelRemoteStore,
    StoreError,
)


# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.
    
    Handles authentication and retries establishing the connection.
    Individual reads and writes are not retried: a retried append
    could commit the same row twice.
    """
    
    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets
    
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.
        
        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")
        
        return self._client
    
    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet
    
    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with `columns` as its header row."""
        if title not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=self._settings.default_rows,
                    cols=len(columns),
                )
                sheet.append_row(columns)
            self._worksheets[title] = sheet
        return self._worksheets[title]
    
    def get_table_sheet(self, table: str) -> gspread.Worksheet:
        return self.get_worksheet(table, TABLE_COLUMNS[table])
    
    def get_audit_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS)


def _to_cell(value) -> str:
    return "" if value is None else str(value)


class GoogleSheetsRemoteStore(RowLevelRemoteStore):
    """
    Google Sheets implementation of the remote store.
    
    Rows are located by scanning the id column; worksheet row 1 is
    the header, so data row N lives at sheet row N + 2.
    """
    
    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        super().__init__()
        self._client = client or GoogleSheetsClient()
    
    def _sheet(self, table: str) -> gspread.Worksheet:
        return self._client.get_table_sheet(table)
    
    def _row_to_dict(self, table: str, values: list[str]) -> Row:
        columns = TABLE_COLUMNS[table]
        padded = list(values) + [""] * (len(columns) - len(values))
        return {
            column: (cell if cell != "" else None)
            for column, cell in zip(columns, padded)
        }
    
    def _dict_to_row(self, table: str, row: Row) -> list[str]:
        return [_to_cell(row.get(column)) for column in TABLE_COLUMNS[table]]
    
    def _sheet_index(self, table: str, row_id: str) -> Optional[int]:
        ids = self._sheet(table).col_values(1)
        for idx, value in enumerate(ids[1:], start=2):
            if value == row_id:
                return idx
        return None
    
    def _raw_rows(self, table: str) -> list[Row]:
        try:
            all_rows = self._sheet(table).get_all_values()[1:]
        except Exception as e:
            raise StoreError(f"Failed to read {table}: {e}") from e
        return [
            self._row_to_dict(table, values)
            for values in all_rows
            if values and values[0]
        ]
    
    def _raw_append(self, table: str, row: Row) -> None:
        try:
            self._sheet(table).append_row(
                self._dict_to_row(table, row),
                value_input_option="RAW",
            )
        except Exception as e:
            raise StoreError(f"Failed to insert into {table}: {e}") from e
    
    def _raw_replace(self, table: str, row_id: str, row: Row) -> None:
        try:
            idx = self._sheet_index(table, row_id)
            if idx is None:
                raise StoreError(f"Row {row_id} vanished from {table}")
            values = self._dict_to_row(table, row)
            end = rowcol_to_a1(idx, len(values))
            self._sheet(table).update(
                range_name=f"A{idx}:{end}",
                values=[values],
                value_input_option="RAW",
            )
        except StoreError:
            raise
        except Exception as e:
            raise StoreError(f"Failed to update {table}: {e}") from e
    
    def _raw_remove(self, table: str, row_id: str) -> None:
        try:
            idx = self._sheet_index(table, row_id)
            if idx is not None:
                self._sheet(table).delete_rows(idx)
        except Exception as e:
            raise StoreError(f"Failed to delete from {table}: {e}") from e


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.
    
    Audit events are append-only.
    """
    
    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._logger = structlog.get_logger(__name__)
    
    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default
        
        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            user_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )
    
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging must not break the ledger operation it describes
            self._logger.warning(
                "audit_append_failed",
                error=str(e),
                event_id=str(event.event_id),
            )
            return False
    
    def _read_events(self) -> list[AuditEvent]:
        try:
            all_rows = self._client.get_audit_sheet().get_all_values()[1:]
        except Exception as e:
            raise StoreError(f"Failed to get audit events: {e}")
        
        events = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError:
                # Hand-edited rows that no longer parse
                continue
        return events
    
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        events = [
            e for e in self._read_events()
            if e.correlation_id == correlation_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events
    
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        events = self._read_events()
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
