"""
Core Data Models for MyMoney

These models define the schemas for every record flowing between the
ledger, the entity services and the client state cache.

DESIGN DECISION: Money is always a Decimal quantized to two places.
Storage keeps amounts as numeric text; floats never enter the ledger.

DESIGN DECISION: returned_amount and status on credit entries are
properties computed from history. They cannot drift from the history
because they are never assigned.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Category labels written on mirrored transactions
CREDIT_GIVEN_CATEGORY = "Credit"
CREDIT_RETURN_CATEGORY = "Credit Return"
CREDIT_RECEIVED_CATEGORY = "Credit Received"
CREDIT_RETURN_PAID_CATEGORY = "Credit Return Paid"


def to_money(value: Union[Decimal, int, str, float]) -> Decimal:
    """
    Convert a value to a two-place Decimal.
    
    Floats go through str() first so 0.1 becomes Decimal("0.10")
    rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        amount = Decimal(str(value))
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Not a valid amount: {value!r}")
    if not amount.is_finite():
        raise ValueError(f"Not a valid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class PaymentMethod(str, Enum):
    """Where money moved through."""
    CASH = "cash"
    CARD = "card"


class CardType(str, Enum):
    """Supported card networks."""
    VISA = "visa"
    MASTERCARD = "mastercard"


class CreditHistoryType(str, Enum):
    """Movement kind under a credit-lent entry."""
    GIVEN = "given"
    RETURNED = "returned"


class CreditStatus(str, Enum):
    """
    Repayment state of a credit entry.
    
    Always derived from history through derive_credit_status().
    """
    ACTIVE = "active"
    PARTIALLY_RETURNED = "partially_returned"
    FULLY_RETURNED = "fully_returned"


def derive_credit_status(amount: Decimal, returned_amount: Decimal) -> CreditStatus:
    """Status for an entry of `amount` with `returned_amount` paid back."""
    if returned_amount >= amount:
        return CreditStatus.FULLY_RETURNED
    if returned_amount > 0:
        return CreditStatus.PARTIALLY_RETURNED
    return CreditStatus.ACTIVE


# =============================================================================
# PROFILE, CATEGORY AND CARD
# =============================================================================

class Profile(BaseModel):
    """User profile row."""
    model_config = ConfigDict(str_strip_whitespace=True)
    
    id: str
    name: str = Field(default="New User", max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    theme_setting: Optional[str] = Field(
        default=None,
        description="UI theme preference (light, dark, system)"
    )


class Category(BaseModel):
    """
    Transaction category.
    
    Transactions reference categories by name, so a category's
    name is its identity from the transaction log's point of view.
    """
    model_config = ConfigDict(str_strip_whitespace=True)
    
    id: str
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType


class CardDraft(BaseModel):
    """Card fields supplied by the user."""
    model_config = ConfigDict(str_strip_whitespace=True)
    
    card_name: str = Field(..., min_length=1, max_length=100)
    card_number: str = Field(..., min_length=4, max_length=32)
    expiry_date: str = Field(
        ...,
        pattern=r"^(0[1-9]|1[0-2])/\d{2}$",
        description="Expiry as MM/YY"
    )
    card_type: CardType = CardType.VISA
    
    @property
    def last_four(self) -> str:
        digits = "".join(ch for ch in self.card_number if ch.isdigit())
        return digits[-4:]


class CardDetails(CardDraft):
    """A stored payment card."""
    
    id: str


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    Transaction fields before the store assigns an id.
    
    At most one back-reference group is populated: either the
    credit-lent links (credit_id, credit_history_id) or the
    credit-received links (credit_received_id, credit_received_history_id).
    """
    model_config = ConfigDict(str_strip_whitespace=True)
    
    type: TransactionType
    category: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., gt=0)
    date: datetime
    note: Optional[str] = Field(default=None, max_length=1000)
    payment_method: Optional[PaymentMethod] = None
    card_id: Optional[str] = None
    
    # Back-references to the credit movement that produced this row
    credit_id: Optional[str] = None
    credit_history_id: Optional[str] = None
    credit_received_id: Optional[str] = None
    credit_received_history_id: Optional[str] = None
    
    @field_validator('amount', mode='before')
    @classmethod
    def quantize_amount(cls, v):
        return to_money(v)
    
    @model_validator(mode='after')
    def validate_single_link_group(self) -> 'TransactionDraft':
        lent = self.credit_id or self.credit_history_id
        received = self.credit_received_id or self.credit_received_history_id
        if lent and received:
            raise ValueError(
                "Transaction cannot reference both a credit and a credit received entry"
            )
        if self.credit_history_id and not self.credit_id:
            raise ValueError("credit_history_id requires credit_id")
        if self.credit_received_history_id and not self.credit_received_id:
            raise ValueError("credit_received_history_id requires credit_received_id")
        return self
    
    @property
    def is_ledger_owned(self) -> bool:
        """True when the row mirrors a credit movement."""
        return bool(self.credit_id or self.credit_received_id)


class Transaction(TransactionDraft):
    """A stored transaction."""
    
    id: str


# =============================================================================
# CREDIT LENT
# =============================================================================

class CreditHistoryItem(BaseModel):
    """One dated movement under a credit-lent entry."""
    
    id: str
    date: datetime
    amount: Decimal = Field(..., gt=0)
    type: CreditHistoryType
    payment_method: PaymentMethod
    card_id: Optional[str] = None
    note: Optional[str] = None
    
    @field_validator('amount', mode='before')
    @classmethod
    def quantize_amount(cls, v):
        return to_money(v)


class CreditEntry(BaseModel):
    """
    Money the user lent to someone.
    
    returned_amount and status are derived from `history`.
    """
    
    id: str
    person_name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    given_date: datetime
    due_date: date
    history: list[CreditHistoryItem] = Field(default_factory=list)
    initial_payment_method: PaymentMethod
    initial_card_id: Optional[str] = None
    initial_note: Optional[str] = None
    
    @field_validator('amount', mode='before')
    @classmethod
    def quantize_amount(cls, v):
        return to_money(v)
    
    @property
    def returned_amount(self) -> Decimal:
        return sum(
            (item.amount for item in self.history
             if item.type == CreditHistoryType.RETURNED),
            ZERO,
        )
    
    @property
    def status(self) -> CreditStatus:
        return derive_credit_status(self.amount, self.returned_amount)
    
    @property
    def outstanding_amount(self) -> Decimal:
        return max(self.amount - self.returned_amount, ZERO)
    
    @property
    def given_item(self) -> Optional[CreditHistoryItem]:
        for item in self.history:
            if item.type == CreditHistoryType.GIVEN:
                return item
        return None


# =============================================================================
# CREDIT RECEIVED
# =============================================================================

class CreditReceivedHistoryItem(BaseModel):
    """A repayment the user made against borrowed money."""
    
    id: str
    date: datetime
    amount: Decimal = Field(..., gt=0)
    payment_method: PaymentMethod
    card_id: Optional[str] = None
    note: Optional[str] = None
    
    @field_validator('amount', mode='before')
    @classmethod
    def quantize_amount(cls, v):
        return to_money(v)


class CreditReceivedEntry(BaseModel):
    """
    Money someone lent to the user.
    
    The entry itself marks the receipt; history holds repayments only.
    """
    
    id: str
    person_name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    received_date: datetime
    return_date: date
    history: list[CreditReceivedHistoryItem] = Field(default_factory=list)
    initial_payment_method: PaymentMethod
    initial_card_id: Optional[str] = None
    initial_note: Optional[str] = None
    
    @field_validator('amount', mode='before')
    @classmethod
    def quantize_amount(cls, v):
        return to_money(v)
    
    @property
    def returned_amount(self) -> Decimal:
        return sum((item.amount for item in self.history), ZERO)
    
    @property
    def status(self) -> CreditStatus:
        return derive_credit_status(self.amount, self.returned_amount)
    
    @property
    def outstanding_amount(self) -> Decimal:
        return max(self.amount - self.returned_amount, ZERO)
