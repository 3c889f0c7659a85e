"""Cell <-> domain value conversions shared by the entity services."""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from mymoney.models.ledger import ZERO, to_money


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def money_to_text(value: Decimal) -> str:
    return str(to_money(value))


def text_to_money(value: Optional[str]) -> Decimal:
    if value is None or value == "":
        return ZERO
    return to_money(value)


def datetime_to_text(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def text_to_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def date_to_text(value: date) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def text_to_date(value: str) -> date:
    # Accepts plain dates and full timestamps
    return date.fromisoformat(value[:10])


def enum_text(value) -> Optional[str]:
    if value is None:
        return None
    return value.value if isinstance(value, Enum) else str(value)


def blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip() if isinstance(value, str) else value
    return value or None
