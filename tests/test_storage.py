"""Tests for the row-level authorization shared by every store backend."""

import asyncio
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from mymoney.ledger import LedgerService
from mymoney.models.audit import AuditEventBuilder
from mymoney.services.storage import (
    TABLE_COLUMNS,
    AuthorizationError,
    GoogleSheetsRemoteStore,
    InMemoryAuditStorage,
    InMemoryRemoteStore,
    NotFoundError,
    StoreError,
)

from conftest import OTHER_USER_ID, USER_ID


def _run(coro):
    return asyncio.run(coro)


@pytest.fixture
def raw_store():
    return InMemoryRemoteStore()


def _entry_row(user_id):
    return {
        "user_id": user_id,
        "person_name": "Alice",
        "amount": "100.00",
        "due_date": "2024-06-01",
        "given_date": "2024-05-01T00:00:00+00:00",
        "returned_amount": "0.00",
        "status": "active",
        "initial_payment_method": "cash",
    }


class TestRowLevelAuthorization:
    """Each user only ever sees their own rows."""
    
    def test_unbound_store_refuses_everything(self, raw_store):
        with pytest.raises(AuthorizationError):
            _run(raw_store.select("categories"))
        with pytest.raises(AuthorizationError):
            _run(raw_store.insert("categories", {"user_id": USER_ID, "name": "Food", "type": "expense"}))
    
    def test_insert_for_other_user_denied(self, raw_store):
        raw_store.bind_user(USER_ID)
        with pytest.raises(AuthorizationError):
            _run(raw_store.insert("categories", {
                "user_id": OTHER_USER_ID, "name": "Food", "type": "expense",
            }))
        assert raw_store.row_count("categories") == 0
    
    def test_other_users_rows_are_invisible(self, raw_store):
        raw_store.bind_user(OTHER_USER_ID)
        theirs = _run(raw_store.insert("credit_entries", _entry_row(OTHER_USER_ID)))
        _run(raw_store.insert("credit_history", {
            "credit_id": theirs["id"], "date": "2024-05-01T00:00:00+00:00",
            "amount": "100.00", "type": "given", "payment_method": "cash",
        }))
        
        raw_store.bind_user(USER_ID)
        assert _run(raw_store.select("credit_entries")) == []
        assert _run(raw_store.select("credit_history")) == []
        assert _run(raw_store.delete("credit_entries", theirs["id"])) is False
        with pytest.raises(NotFoundError):
            _run(raw_store.update("credit_entries", theirs["id"], {"status": "fully_returned"}))
        assert raw_store.row_count("credit_entries") == 1
    
    def test_history_insert_requires_owned_parent(self, raw_store):
        raw_store.bind_user(OTHER_USER_ID)
        theirs = _run(raw_store.insert("credit_entries", _entry_row(OTHER_USER_ID)))
        
        raw_store.bind_user(USER_ID)
        with pytest.raises(AuthorizationError):
            _run(raw_store.insert("credit_history", {
                "credit_id": theirs["id"], "date": "2024-05-02T00:00:00+00:00",
                "amount": "10.00", "type": "returned", "payment_method": "cash",
            }))
    
    def test_update_cannot_transfer_ownership(self, raw_store):
        raw_store.bind_user(USER_ID)
        row = _run(raw_store.insert("categories", {"user_id": USER_ID, "name": "Food", "type": "expense"}))
        with pytest.raises(AuthorizationError):
            _run(raw_store.update("categories", row["id"], {"user_id": OTHER_USER_ID}))
    
    def test_profile_owned_by_its_id(self, raw_store):
        raw_store.bind_user(USER_ID)
        _run(raw_store.insert("profiles", {"id": USER_ID, "name": "Me", "email": "me@example.com"}))
        with pytest.raises(AuthorizationError):
            _run(raw_store.insert("profiles", {"id": OTHER_USER_ID, "name": "You", "email": "you@example.com"}))


class TestStoreOperations:
    """Basic CRUD semantics."""
    
    def test_insert_assigns_id_and_created_at(self, store):
        row = _run(store.insert("categories", {"user_id": USER_ID, "name": "Food", "type": "expense"}))
        assert row["id"]
        assert row["created_at"]
    
    def test_unknown_table_and_column(self, store):
        with pytest.raises(StoreError):
            _run(store.select("accounts"))
        with pytest.raises(StoreError):
            _run(store.insert("categories", {"user_id": USER_ID, "colour": "red"}))
    
    def test_select_filters_orders_and_limits(self, store):
        for name in ("Bills", "Food", "Arts"):
            _run(store.insert("categories", {"user_id": USER_ID, "name": name, "type": "expense"}))
        
        rows = _run(store.select("categories", order_by="name"))
        assert [r["name"] for r in rows] == ["Arts", "Bills", "Food"]
        
        rows = _run(store.select("categories", order_by="name", descending=True, limit=1))
        assert [r["name"] for r in rows] == ["Food"]
        
        rows = _run(store.select("categories", {"name": "Bills"}))
        assert len(rows) == 1
    
    def test_delete_missing_row_returns_false(self, store):
        assert _run(store.delete("categories", "missing")) is False
    
    def test_returned_rows_are_copies(self, store):
        row = _run(store.insert("categories", {"user_id": USER_ID, "name": "Food", "type": "expense"}))
        row["name"] = "Changed"
        assert _run(store.select("categories"))[0]["name"] == "Food"


class TestInMemoryAuditStorage:
    """Tests for the in-memory audit log."""
    
    def test_events_grouped_by_correlation_id(self):
        storage = InMemoryAuditStorage()
        correlation_id = uuid4()
        _run(storage.append_event(AuditEventBuilder.card_deleted("u1", "c1", correlation_id)))
        _run(storage.append_event(AuditEventBuilder.card_deleted("u1", "c2")))
        
        events = _run(storage.get_events_by_correlation_id(correlation_id))
        assert [e.entity_id for e in events] == ["c1"]
        assert len(_run(storage.get_recent_events(limit=1))) == 1


class FakeWorksheet:
    """Just enough of gspread.Worksheet for the remote store."""
    
    def __init__(self, header):
        self.rows = [list(header)]
    
    def get_all_values(self):
        return [list(row) for row in self.rows]
    
    def append_row(self, values, value_input_option=None):
        self.rows.append(list(values))
    
    def col_values(self, col):
        return [row[col - 1] if len(row) >= col else "" for row in self.rows]
    
    def update(self, range_name, values, value_input_option=None):
        start = int(range_name.split(":")[0][1:])
        self.rows[start - 1] = list(values[0])
    
    def delete_rows(self, index):
        del self.rows[index - 1]


class DroppedConnectionWorksheet(FakeWorksheet):
    """Fails the way a reset HTTP connection does."""
    
    def get_all_values(self):
        raise ConnectionResetError("Connection reset by peer")
    
    def append_row(self, values, value_input_option=None):
        raise ConnectionResetError("Connection reset by peer")


class FakeSheetsClient:
    def __init__(self):
        self.sheets = {}
    
    def get_table_sheet(self, table):
        if table not in self.sheets:
            self.sheets[table] = FakeWorksheet(TABLE_COLUMNS[table])
        return self.sheets[table]


class TestGoogleSheetsRemoteStore:
    """Sheets backend over a fake worksheet."""
    
    @pytest.fixture
    def sheets(self):
        return FakeSheetsClient()
    
    @pytest.fixture
    def sheets_store(self, sheets):
        s = GoogleSheetsRemoteStore(sheets)
        s.bind_user(USER_ID)
        return s
    
    def test_cells_are_text_and_blank_is_none(self, sheets_store, sheets):
        row = _run(sheets_store.insert("categories", {"user_id": USER_ID, "name": "Food", "type": "expense"}))
        
        stored = sheets.sheets["categories"].rows[1]
        assert stored[0] == row["id"]
        assert stored[TABLE_COLUMNS["categories"].index("name")] == "Food"
        
        tx = _run(sheets_store.insert("transactions", {
            "user_id": USER_ID, "type": "expense", "category": "Food",
            "amount": "5.00", "date": "2024-05-01T00:00:00+00:00",
        }))
        assert _run(sheets_store.select("transactions"))[0]["card_id"] is None
        assert tx["note"] is None
    
    def test_update_and_delete(self, sheets_store, sheets):
        first = _run(sheets_store.insert("categories", {"user_id": USER_ID, "name": "Food", "type": "expense"}))
        second = _run(sheets_store.insert("categories", {"user_id": USER_ID, "name": "Bills", "type": "expense"}))
        
        _run(sheets_store.update("categories", second["id"], {"name": "Utilities"}))
        assert {r["name"] for r in _run(sheets_store.select("categories"))} == {"Food", "Utilities"}
        
        assert _run(sheets_store.delete("categories", first["id"])) is True
        assert len(sheets.sheets["categories"].rows) == 2
        assert _run(sheets_store.select("categories"))[0]["name"] == "Utilities"
    
    def test_ledger_runs_on_sheets(self, sheets_store):
        ledger = LedgerService(sheets_store)
        entry = _run(ledger.create_credit_entry(USER_ID, "Alice", "100", date(2024, 6, 1), "cash"))
        updated = _run(ledger.add_credit_return(USER_ID, entry.id, "40", "cash"))
        
        assert updated.returned_amount == Decimal("40.00")
        rows = _run(sheets_store.select("credit_entries"))
        assert rows[0]["returned_amount"] == "40.00"
        assert rows[0]["status"] == "partially_returned"
        assert len(_run(sheets_store.select("transactions"))) == 2
    
    def test_transport_errors_become_store_errors(self, sheets_store, sheets):
        sheets.sheets["categories"] = DroppedConnectionWorksheet(TABLE_COLUMNS["categories"])
        
        with pytest.raises(StoreError, match="Connection reset"):
            _run(sheets_store.insert("categories", {"user_id": USER_ID, "name": "Food", "type": "expense"}))
        with pytest.raises(StoreError, match="Connection reset"):
            _run(sheets_store.select("categories"))
