"""
Canonical input models for the structure pipeline.

This module defines the immutable raw bar consumed by every context along
with the small enums shared by all pipeline stages.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Union

from struxis.utils.time import TimestampLike, to_utc


class Direction(str, Enum):
    """Direction of a consolidated bar step, swing or trend."""
    UP = "up"
    DOWN = "down"

    @property
    def sign(self) -> int:
        """+1 for up, -1 for down."""
        return 1 if self is Direction.UP else -1

    def opposite(self) -> "Direction":
        """Return the opposite direction."""
        return Direction.DOWN if self is Direction.UP else Direction.UP


class Timeframe(str, Enum):
    """Supported bar timeframes."""
    M1 = "1m"
    M5 = "5m"
    M15 = "15m"
    M30 = "30m"
    H1 = "1h"
    H4 = "4h"
    D1 = "1d"

    @classmethod
    def parse(cls, value: Union[str, "Timeframe"]) -> "Timeframe":
        """
        Parse a timeframe label, case-insensitively.

        Raises:
            ValueError: If the label is not a known timeframe
        """
        if isinstance(value, Timeframe):
            return value
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown timeframe: {value!r}")


@dataclass(frozen=True)
class RawBar:
    """A single OHLC observation. Immutable once received."""
    seq_id: int             # Unique, strictly increasing per context
    ts: datetime            # UTC bar timestamp
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    open_interest: float = 0.0

    @classmethod
    def create(
        cls,
        seq_id: int,
        ts: TimestampLike,
        open: float,
        high: float,
        low: float,
        close: float,
        volume: float = 0.0,
        open_interest: float = 0.0,
    ) -> "RawBar":
        """Build a bar, coercing the timestamp to UTC and prices to float."""
        return cls(
            seq_id=int(seq_id),
            ts=to_utc(ts),
            open=float(open),
            high=float(high),
            low=float(low),
            close=float(close),
            volume=float(volume),
            open_interest=float(open_interest),
        )

    @property
    def range(self) -> float:
        """High minus low."""
        return self.high - self.low

    @property
    def body_top(self) -> float:
        return max(self.open, self.close)

    @property
    def body_bottom(self) -> float:
        return min(self.open, self.close)

    def intersects(self, lower: float, upper: float) -> bool:
        """True if the bar's range touches the closed interval [lower, upper]."""
        return self.high >= lower and self.low <= upper

    def inconsistent_field(self) -> Optional[str]:
        """
        Name of the first OHLC field that breaks bar consistency.

        Returns:
            Field name, or None when the bar is well formed
        """
        for name in ("open", "high", "low", "close", "volume", "open_interest"):
            if not math.isfinite(getattr(self, name)):
                return name
        if self.high < self.low:
            return "high"
        if not self.low <= self.open <= self.high:
            return "open"
        if not self.low <= self.close <= self.high:
            return "close"
        if self.volume < 0:
            return "volume"
        return None
