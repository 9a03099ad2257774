"""
Date and time-of-day string helpers.

Appointments store calendar days as ``YYYY-MM-DD`` and times as zero-padded
``HH:MM``. Lexical comparison of these strings matches chronological order,
which the roster sorting and the occupancy checks rely on.
"""

from datetime import date as Date
from typing import Union

import pendulum

from .exceptions import ValidationError

DATE_FORMAT = "YYYY-MM-DD"


def normalize_time(value: str) -> str:
    """
    Normalize a time-of-day string to zero-padded ``HH:MM``.

    Accepts ``H:MM`` as produced by older clients ("9:30" -> "09:30").

    Raises:
        ValidationError: If the value is not a valid 24-hour time
    """
    text = (value or "").strip()
    hour_part, sep, minute_part = text.partition(":")

    if not sep or not hour_part.isdigit() or not minute_part.isdigit() or len(minute_part) != 2:
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")

    hour = int(hour_part)
    minute = int(minute_part)
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")

    return f"{hour:02d}:{minute:02d}"


def normalize_date(value: Union[str, Date]) -> str:
    """
    Normalize a calendar day to ``YYYY-MM-DD``.

    Raises:
        ValidationError: If the value is not a valid date in that format
    """
    if isinstance(value, Date):
        return value.isoformat()[:10]

    text = (value or "").strip()
    try:
        parsed = pendulum.from_format(text, DATE_FORMAT)
    except ValueError as exc:
        raise ValidationError(f"Invalid date '{value}', expected {DATE_FORMAT}") from exc

    return parsed.to_date_string()


def today_string() -> str:
    """Today's date in the local timezone as ``YYYY-MM-DD``."""
    return pendulum.today().to_date_string()


def utc_timestamp() -> str:
    """Current instant as an ISO 8601 string, used for negotiation timestamps."""
    return pendulum.now("UTC").to_iso8601_string()
