"""
Shared fixtures.

No external services are touched: every backend is in memory, and
FailingStore injects store failures on chosen tables.
"""

import asyncio

import pytest

from mymoney.audit import AuditLogger
from mymoney.ledger import CascadeService, LedgerService
from mymoney.models.ledger import CardDraft, CardType
from mymoney.services.entities import CardService
from mymoney.services.storage import InMemoryAuditStorage, InMemoryRemoteStore, StoreError


USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FailingStore(InMemoryRemoteStore):
    """In-memory store that raises StoreError for selected tables."""
    
    def __init__(self):
        super().__init__()
        self.fail_insert = set()
        self.fail_update = set()
        self.fail_delete = set()
        self.fail_select = set()
    
    async def insert(self, table, row):
        if table in self.fail_insert:
            raise StoreError(f"insert into {table} failed")
        return await super().insert(table, row)
    
    async def update(self, table, row_id, patch):
        if table in self.fail_update:
            raise StoreError(f"update of {table} failed")
        return await super().update(table, row_id, patch)
    
    async def delete(self, table, row_id):
        if table in self.fail_delete:
            raise StoreError(f"delete from {table} failed")
        return await super().delete(table, row_id)
    
    async def select(self, table, filters=None, order_by=None, descending=False, limit=None):
        if table in self.fail_select:
            raise StoreError(f"select from {table} failed")
        return await super().select(table, filters, order_by, descending, limit)


@pytest.fixture
def store():
    s = FailingStore()
    s.bind_user(USER_ID)
    return s


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def ledger(store, audit_logger):
    return LedgerService(store, audit_logger)


@pytest.fixture
def cascade(store, audit_logger):
    return CascadeService(store, audit_logger)


@pytest.fixture
def card(store):
    draft = CardDraft(
        card_name="Travel Card",
        card_number="4111111111111111",
        expiry_date="12/29",
        card_type=CardType.VISA,
    )
    return asyncio.run(CardService(store).create_card(USER_ID, draft))
