from .chosung import get_chosung, match_search
from .time import (
    InvalidDateKey,
    date_key,
    days_in_month,
    isoformat_utc,
    month_prefix,
    shift_month,
    to_date_key,
    utc_now,
)

__all__ = [
    "get_chosung",
    "match_search",
    "InvalidDateKey",
    "date_key",
    "days_in_month",
    "isoformat_utc",
    "month_prefix",
    "shift_month",
    "to_date_key",
    "utc_now",
]
