from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Sequence, TypeVar

T = TypeVar("T")


def to_datetime(value: date | datetime | str) -> datetime:
    """Coerce a front-matter style date value to an aware UTC datetime."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    raise TypeError(f"Cannot interpret {value!r} as a date")


def iso_date(value: date | datetime | str) -> str:
    """Render a date as its UTC calendar day, e.g. ``2023-04-01``."""
    return to_datetime(value).date().isoformat()


def last_n(items: Sequence[T], n: int) -> list[T]:
    return list(items[-n:])
