"""
MyMoney - Ledger Core Package

Personal finance tracking: income and expense transactions, payment
cards, categories, and money lent to or borrowed from other people.

DESIGN PRINCIPLES:
1. Balances are derived from the transaction log, never stored
2. Every credit movement has exactly one mirrored transaction
3. Multi-step writes are undone when a later step fails
4. Every mutation is auditable
5. Storage backends are swappable
"""

__version__ = "1.0.0"
__author__ = "MyMoney Team"
