"""
Data quality error classifications for incoming bars.

These exceptions reject a single offending bar. The context that raised them
is left exactly as it was before the bar was submitted.
"""

from datetime import datetime
from typing import Any, Dict, Optional


class DataQualityError(Exception):
    """Base class for input issues that leave pipeline state untouched."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class InputOrderingError(DataQualityError):
    """Non-monotonic timestamp or duplicate/decreasing sequence id."""

    def __init__(self, message: str, seq_id: Optional[int] = None,
                 last_seq_id: Optional[int] = None,
                 timestamp: Optional[datetime] = None,
                 last_timestamp: Optional[datetime] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.seq_id = seq_id
        self.last_seq_id = last_seq_id
        self.timestamp = timestamp
        self.last_timestamp = last_timestamp


class MalformedBarError(DataQualityError):
    """Bar exists but its OHLC values are inconsistent."""

    def __init__(self, message: str, seq_id: Optional[int] = None,
                 field: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.seq_id = seq_id
        self.field = field
