from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

__all__ = [
    "clean_text",
    "normalize_email",
    "normalize_name",
    "parse_date",
    "parse_decimal",
    "parse_decimal_or_none",
]

_WHITESPACE_RE = re.compile(r"\s+", re.UNICODE)


def normalize_name(value: str | None) -> str:
    if not value:
        return ""
    words = _WHITESPACE_RE.sub(" ", value.strip()).split(" ")
    return " ".join(word[:1].upper() + word[1:].lower() for word in words if word)


def normalize_email(value: str | None) -> str | None:
    if not value:
        return None
    cleaned = value.strip().lower()
    return cleaned or None


def clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


def parse_decimal_or_none(value: str | int | float | Decimal | None) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        parsed = value
    else:
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    if not parsed.is_finite():
        return None
    return parsed


def parse_decimal(value: str | int | float | Decimal | None) -> Decimal:
    """Lenient numeric parse: blank or garbage becomes 0."""
    parsed = parse_decimal_or_none(value)
    return parsed if parsed is not None else Decimal("0")


def parse_date(value: str | date | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    # Full timestamps are accepted; anything else after the date is not.
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None
