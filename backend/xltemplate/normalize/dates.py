from __future__ import annotations

from datetime import date, datetime, time
from typing import Any


def date_to_text(value: Any) -> str:
    """
    Render openpyxl date / time values the way they read in a data file:
      datetime(2024, 5, 1)         -> "2024-05-01"
      datetime(2024, 5, 1, 9, 30)  -> "2024-05-01 09:30:00"
      time(9, 30)                  -> "09:30:00"
    """
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.strftime("%Y-%m-%d")
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    raise ValueError(f"not a date/time value: {value!r}")


def is_date_value(value: Any) -> bool:
    return isinstance(value, (datetime, date, time))
