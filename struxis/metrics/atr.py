"""ATR (Average True Range) calculations over raw bars"""

from typing import Optional, Sequence

from struxis.data.models import RawBar


def calculate_true_range(current: RawBar, previous: Optional[RawBar] = None) -> float:
    """
    Calculate True Range for a single bar

    TR = max(high - low, abs(high - prev_close), abs(low - prev_close))

    Args:
        current: Current bar
        previous: Previous bar (None for first bar)

    Returns:
        True Range value
    """
    if previous is None:
        return current.high - current.low

    range_hl = current.high - current.low
    range_hc = abs(current.high - previous.close)
    range_lc = abs(current.low - previous.close)

    return max(range_hl, range_hc, range_lc)


def calculate_atr(bars: Sequence[RawBar], period: int = 14) -> Optional[float]:
    """
    Calculate Average True Range using Simple Moving Average

    Args:
        bars: Bars in chronological order
        period: ATR period (default 14)

    Returns:
        ATR value or None if insufficient data
    """
    if period <= 0 or len(bars) < period:
        return None

    start = len(bars) - period
    true_ranges = [
        calculate_true_range(bars[i], bars[i - 1] if i > 0 else None)
        for i in range(start, len(bars))
    ]
    return sum(true_ranges) / len(true_ranges)
