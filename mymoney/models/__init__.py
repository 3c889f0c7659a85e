"""
Data Models Package

This package contains all Pydantic models used in MyMoney.
All data flowing through the ledger must conform to these schemas.
"""

from mymoney.models.ledger import (
    CREDIT_GIVEN_CATEGORY,
    CREDIT_RECEIVED_CATEGORY,
    CREDIT_RETURN_CATEGORY,
    CREDIT_RETURN_PAID_CATEGORY,
    CardDetails,
    CardDraft,
    CardType,
    Category,
    CreditEntry,
    CreditHistoryItem,
    CreditHistoryType,
    CreditReceivedEntry,
    CreditReceivedHistoryItem,
    CreditStatus,
    PaymentMethod,
    Profile,
    Transaction,
    TransactionDraft,
    TransactionType,
    derive_credit_status,
    to_money,
)
from mymoney.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "CREDIT_GIVEN_CATEGORY",
    "CREDIT_RECEIVED_CATEGORY",
    "CREDIT_RETURN_CATEGORY",
    "CREDIT_RETURN_PAID_CATEGORY",
    "CardDetails",
    "CardDraft",
    "CardType",
    "Category",
    "CreditEntry",
    "CreditHistoryItem",
    "CreditHistoryType",
    "CreditReceivedEntry",
    "CreditReceivedHistoryItem",
    "CreditStatus",
    "PaymentMethod",
    "Profile",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "derive_credit_status",
    "to_money",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
