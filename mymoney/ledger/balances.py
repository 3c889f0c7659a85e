"""
Balance Derivation

Balances are a projection of the transaction log: recomputed in full on
every read, never stored, never updated incrementally. Each transaction
touches at most one bucket and only adds or subtracts, so the result
does not depend on transaction order.
"""

from decimal import Decimal
from typing import Iterable, Optional

from mymoney.models.ledger import (
    ZERO,
    CardDetails,
    PaymentMethod,
    Transaction,
    TransactionType,
)


CASH = "cash"


def resolve_bucket(transaction: Transaction, card_ids: set[str]) -> Optional[str]:
    """
    The balance bucket a transaction belongs to, or None.
    
    Income lands on its card when the card is known and in cash
    otherwise. Expenses only count against a known card or against
    cash when paid in cash; anything else is unattributable.
    """
    if transaction.card_id and transaction.card_id in card_ids:
        return transaction.card_id
    if transaction.type == TransactionType.INCOME:
        return CASH
    if transaction.payment_method == PaymentMethod.CASH:
        return CASH
    return None


def compute_balances(
    transactions: Iterable[Transaction],
    cards: Iterable[CardDetails],
) -> dict[str, Decimal]:
    """Map "cash" and every card id to its signed running balance."""
    balances: dict[str, Decimal] = {CASH: ZERO}
    for card in cards:
        balances[card.id] = ZERO
    card_ids = set(balances) - {CASH}
    
    for transaction in transactions:
        bucket = resolve_bucket(transaction, card_ids)
        if bucket is None:
            continue
        if transaction.type == TransactionType.INCOME:
            balances[bucket] += transaction.amount
        else:
            balances[bucket] -= transaction.amount
    
    return balances


def unattributed_transactions(
    transactions: Iterable[Transaction],
    cards: Iterable[CardDetails],
) -> list[Transaction]:
    """Expenses that compute_balances() leaves out of every bucket."""
    card_ids = {card.id for card in cards}
    return [t for t in transactions if resolve_bucket(t, card_ids) is None]
