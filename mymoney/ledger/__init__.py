"""
Ledger Package

Consistency rules across transactions, credit records, cards and
categories, plus the balance projection derived from them.
"""

from mymoney.ledger.balances import (
    CASH,
    compute_balances,
    resolve_bucket,
    unattributed_transactions,
)
from mymoney.ledger.cascade import CascadeService
from mymoney.ledger.consistency import LedgerService
from mymoney.ledger.saga import PartialWriteError, Saga

__all__ = [
    "CASH",
    "CascadeService",
    "LedgerService",
    "PartialWriteError",
    "Saga",
    "compute_balances",
    "resolve_bucket",
    "unattributed_transactions",
]
