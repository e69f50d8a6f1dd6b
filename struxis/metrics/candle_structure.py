"""Candle structure decomposition for raw bars"""

from dataclasses import dataclass

from struxis.data.models import RawBar


@dataclass(frozen=True)
class CandleStructure:
    """Candle structure analysis results"""
    range_value: float
    body: float
    upper_shadow: float
    lower_shadow: float
    body_pct: float
    upper_pct: float
    lower_pct: float
    close_location: float    # -1 at the low, +1 at the high
    is_bull: bool
    is_bear: bool
    is_doji: bool


def analyze_candle_structure(bar: RawBar, doji_threshold: float = 0.1) -> CandleStructure:
    """
    Analyze candle structure components

    Args:
        bar: Bar to analyze
        doji_threshold: Threshold for doji detection (body % of range)

    Returns:
        CandleStructure with all analysis components
    """
    range_value = bar.high - bar.low
    body = abs(bar.close - bar.open)
    upper_shadow = bar.high - max(bar.open, bar.close)
    lower_shadow = min(bar.open, bar.close) - bar.low

    # Zero range bars carry no shape information
    if range_value > 0:
        body_pct = body / range_value
        upper_pct = upper_shadow / range_value
        lower_pct = lower_shadow / range_value
        close_location = 2.0 * (bar.close - bar.low) / range_value - 1.0
    else:
        body_pct = 0.0
        upper_pct = 0.0
        lower_pct = 0.0
        close_location = 0.0

    is_bull = bar.close > bar.open
    is_bear = bar.close < bar.open
    is_doji = body_pct <= doji_threshold

    return CandleStructure(
        range_value=range_value,
        body=body,
        upper_shadow=upper_shadow,
        lower_shadow=lower_shadow,
        body_pct=body_pct,
        upper_pct=upper_pct,
        lower_pct=lower_pct,
        close_location=close_location,
        is_bull=is_bull,
        is_bear=is_bear,
        is_doji=is_doji
    )
