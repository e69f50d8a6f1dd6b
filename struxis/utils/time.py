"""
Time semantics utilities for bar timestamps.

The pipeline never reads the wall clock: every ordering decision is made on
the timestamps carried by the bars themselves.
"""

from datetime import datetime, timezone
from typing import Union

TimestampLike = Union[datetime, int, float]


def to_utc(value: TimestampLike) -> datetime:
    """
    Coerce a bar timestamp into an aware UTC datetime.

    Args:
        value: Aware or naive datetime, or epoch milliseconds

    Returns:
        UTC datetime

    Raises:
        TypeError: If the value is not a supported timestamp type
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    # bool is an int subclass but never a timestamp
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)

    raise TypeError(f"Unsupported timestamp type: {type(value).__name__}")


def format_bar_time(ts: datetime) -> str:
    """
    Format a bar timestamp for events and logging.

    Args:
        ts: Bar timestamp

    Returns:
        ISO8601 formatted string in UTC
    """
    return to_utc(ts).isoformat()
