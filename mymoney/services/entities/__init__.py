"""
Entity Services Package

Thin mapping between domain models and store rows: column renaming and
text <-> Decimal/datetime coercion. Business rules live in mymoney.ledger.
"""

from mymoney.services.entities.cards import CardService
from mymoney.services.entities.categories import CategoryService
from mymoney.services.entities.credit import BaseCreditService, CreditService
from mymoney.services.entities.credit_received import CreditReceivedService
from mymoney.services.entities.profiles import ProfileService
from mymoney.services.entities.transactions import TransactionService

__all__ = [
    "BaseCreditService",
    "CardService",
    "CategoryService",
    "CreditReceivedService",
    "CreditService",
    "ProfileService",
    "TransactionService",
]
