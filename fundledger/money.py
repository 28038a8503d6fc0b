"""Decimal helpers for monetary values and UTC timestamps."""

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0")
CENT = Decimal("0.01")
INFINITY = Decimal("Infinity")


def to_decimal(value: object) -> Decimal:
    """Convert a stored or user-supplied value to Decimal.

    Floats go through ``str`` so 0.1 becomes Decimal("0.1"), not its
    binary expansion.
    """
    if isinstance(value, Decimal):
        return value
    if value is None:
        raise InvalidOperation("Cannot convert None to Decimal")
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def optional_decimal(value: object) -> Decimal | None:
    """Convert a nullable column to Decimal."""
    if value is None:
        return None
    return to_decimal(value)


def money_column(value: Decimal | None) -> str | None:
    """Serialize a Decimal for a TEXT money column."""
    if value is None:
        return None
    return str(value)


def quantize_cents(value: Decimal) -> Decimal:
    """Round to two decimal places for display."""
    if not value.is_finite():
        return value
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal | None, prefix: str = "$") -> str:
    """Format an unsigned amount, e.g. ``$1,234.50``."""
    if value is None:
        return "N/A"
    return f"{prefix}{abs(quantize_cents(value)):,.2f}"


def format_signed(value: Decimal | None, prefix: str = "$") -> str:
    """Format a signed amount, e.g. ``+$100.00`` or ``-$50.00``."""
    if value is None:
        return "N/A"
    sign = "+" if value >= 0 else "-"
    return f"{sign}{format_money(value, prefix)}"


def as_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_epoch(dt: datetime) -> int:
    """Convert a datetime to integer epoch seconds."""
    return int(as_utc(dt).timestamp())


def from_epoch(ts: int | None) -> datetime | None:
    """Convert epoch seconds back to an aware UTC datetime."""
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
