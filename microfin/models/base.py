"""Row conversion helpers shared by the domain models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from microfin.models.enums import TERMINAL_LOAN_STATUSES

CENT = Decimal("0.01")


def to_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Coerce a numeric column to Decimal; floats go through ``str`` to avoid binary noise."""
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_date(value: Any) -> date | None:
    """Coerce a date column (date, datetime or ISO string) to a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def to_datetime(value: Any) -> datetime | None:
    """Coerce a timestamp column to a datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value))


def enum_value(value: Any) -> Any:
    """Unwrap enum members to their raw value so rows only hold plain types."""
    if isinstance(value, Enum):
        return value.value
    return value


def is_soft_deleted(flag: Any) -> bool:
    """NULL and missing soft-delete flags count as not deleted."""
    return bool(flag)


def is_terminal_status(status: Any) -> bool:
    """Whether a loan status means the loan is closed (repaid or completed)."""
    return enum_value(status) in TERMINAL_LOAN_STATUSES


def is_business_active(row: dict[str, Any]) -> bool:
    """Whether a loan row still counts as a live obligation.

    Soft-deleted loans are ignored here even though they still physically
    reference their member.
    """
    return not is_soft_deleted(row.get("is_deleted")) and not is_terminal_status(row.get("status"))
