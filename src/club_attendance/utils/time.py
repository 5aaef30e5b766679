from __future__ import annotations

import calendar
from datetime import date, datetime, timezone

DATE_KEY_FORMAT = "%Y-%m-%d"


class InvalidDateKey(ValueError):
    pass


def month_prefix(year: int, month_index: int) -> str:
    """Return the ``YYYY-MM`` prefix for a 0-based month index."""

    if not 0 <= month_index <= 11:
        raise InvalidDateKey(f"Month index must be between 0 and 11, got {month_index}.")
    return f"{year:04d}-{month_index + 1:02d}"


def date_key(year: int, month_index: int, day: int) -> str:
    return f"{month_prefix(year, month_index)}-{day:02d}"


def to_date_key(value: date | datetime | str) -> str:
    if isinstance(value, (date, datetime)):
        return value.strftime(DATE_KEY_FORMAT)

    candidate = value.strip()
    try:
        parsed = datetime.strptime(candidate[:10], DATE_KEY_FORMAT)
    except ValueError as exc:
        raise InvalidDateKey(f"Unsupported date value: {value!r}") from exc
    return parsed.strftime(DATE_KEY_FORMAT)


def days_in_month(year: int, month_index: int) -> int:
    month_prefix(year, month_index)
    return calendar.monthrange(year, month_index + 1)[1]


def shift_month(year: int, month_index: int, delta: int) -> tuple[int, int]:
    total = year * 12 + month_index + delta
    return total // 12, total % 12


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_utc(moment: datetime | None = None) -> str:
    """Format a timestamp the way exported bundles carry it, e.g. ``2024-05-01T09:30:00.000Z``."""

    reference = moment or utc_now()
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    reference = reference.astimezone(timezone.utc)
    return reference.strftime("%Y-%m-%dT%H:%M:%S.") + f"{reference.microsecond // 1000:03d}Z"
