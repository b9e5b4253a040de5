from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime(timezone=False) columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def clean_str(value: object) -> str | None:
    """Strip form input; empty becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_decimal(raw: object) -> Decimal | None:
    """Parse a money amount like '49.99' or '1,200'. Raises ValueError on junk."""
    text = clean_str(raw)
    if text is None:
        return None
    try:
        value = Decimal(text.replace(",", ""))
        if not value.is_finite():
            raise ValueError(f"Not a number: {text}")
        return value.quantize(Decimal("0.01"))
    except InvalidOperation as e:
        raise ValueError(f"Not a number: {text}") from e


def parse_float(raw: object) -> float | None:
    text = clean_str(raw)
    if text is None:
        return None
    value = float(text.replace(",", ""))
    if value != value or value in (float("inf"), float("-inf")):
        raise ValueError(f"Not a number: {text}")
    return value


def parse_int(raw: object) -> int | None:
    text = clean_str(raw)
    if text is None:
        return None
    return int(text)
