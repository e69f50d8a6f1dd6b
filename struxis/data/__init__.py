"""Input bar models, storage and validation."""

from .models import Direction, RawBar, Timeframe
from .series import RawBarSeries

__all__ = ["Direction", "RawBar", "RawBarSeries", "Timeframe"]
