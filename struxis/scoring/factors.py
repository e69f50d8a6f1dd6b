"""
The nine supply/demand factors.

Every factor maps a scoring window to a value in [-1, 1] where positive means
demand (buyers) dominate. Factors are pure and read only the window.
"""

import math
from typing import Callable, Optional, Sequence

from struxis.config.defaults import ScoringParams
from struxis.data.models import Direction
from struxis.metrics.candle_structure import analyze_candle_structure
from struxis.zones.models import ZoneRole

from .models import ScoringWindow

FactorFn = Callable[[ScoringWindow, ScoringParams], float]


def clamp(value: float, low: float = -1.0, high: float = 1.0) -> float:
    """Clamp ``value`` into [low, high]."""
    return max(low, min(high, value))


def _sign(value: float) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def _displacement(window: ScoringWindow) -> float:
    """Last close minus first open of the window."""
    if not window.bars:
        return 0.0
    return window.bars[-1].close - window.bars[0].open


def _pair_change(values: Sequence[float]) -> int:
    if len(values) < 2:
        return 0
    return _sign(values[-1] - values[-2])


# Structure layer

def swing_progression(window: ScoringWindow, params: ScoringParams) -> float:
    """Higher highs and higher lows score +1, lower highs and lower lows -1."""
    highs = [swing.end_price for swing in window.swings if swing.direction is Direction.UP]
    lows = [swing.end_price for swing in window.swings if swing.direction is Direction.DOWN]
    return (_pair_change(highs) + _pair_change(lows)) / 2.0


def trend_alignment(window: ScoringWindow, params: ScoringParams) -> float:
    """
    Trend direction weighted by how much of the trend range price still holds.

    Without a trend, half the active swing's direction is used.
    """
    if not window.bars:
        return 0.0

    trend = window.trend
    if trend is None:
        if window.active_swing is None:
            return 0.0
        return 0.5 * window.active_swing.direction.sign

    if trend.span <= 0:
        return 0.0
    retracement = trend.retracement(window.bars[-1].close)
    return trend.direction.sign * clamp(1.0 - retracement)


def zone_position(window: ScoringWindow, params: ScoringParams) -> float:
    """
    Room to the nearest supply above versus the nearest demand below.

    Positive when price sits closer to demand than to supply.
    """
    if not window.bars:
        return 0.0
    close = window.bars[-1].close

    supply_distance: Optional[float] = None
    demand_distance: Optional[float] = None
    for zone in window.zones:
        if zone.role is ZoneRole.SUPPLY and zone.lower >= close:
            distance = zone.lower - close
            if supply_distance is None or distance < supply_distance:
                supply_distance = distance
        elif zone.role is ZoneRole.DEMAND and zone.upper <= close:
            distance = close - zone.upper
            if demand_distance is None or distance < demand_distance:
                demand_distance = distance

    if supply_distance is None and demand_distance is None:
        return 0.0
    if supply_distance is None:
        return 1.0
    if demand_distance is None:
        return -1.0

    total = supply_distance + demand_distance
    if total <= 0:
        return 0.0
    return clamp((supply_distance - demand_distance) / total)


# Price action layer

def directional_efficiency(window: ScoringWindow, params: ScoringParams) -> float:
    """Net displacement over the total distance traveled."""
    total_range = sum(bar.range for bar in window.bars)
    if total_range <= 0:
        return 0.0
    return clamp(_displacement(window) / total_range)


def close_location(window: ScoringWindow, params: ScoringParams) -> float:
    """Mean position of each close within its bar, -1 at the low, +1 at the high."""
    if not window.bars:
        return 0.0
    total = sum(analyze_candle_structure(bar).close_location for bar in window.bars)
    return clamp(total / len(window.bars))


def wick_balance(window: ScoringWindow, params: ScoringParams) -> float:
    """Lower wicks (buying tails) minus upper wicks (selling tails) over total range."""
    total_range = 0.0
    balance = 0.0
    for bar in window.bars:
        candle = analyze_candle_structure(bar)
        total_range += candle.range_value
        balance += candle.lower_shadow - candle.upper_shadow
    if total_range <= 0:
        return 0.0
    return clamp(balance / total_range)


# Participation layer

def volume_balance(window: ScoringWindow, params: ScoringParams) -> float:
    """Volume on up bars minus volume on down bars, over total volume."""
    total = sum(bar.volume for bar in window.bars)
    if total <= 0:
        return 0.0
    up = sum(bar.volume for bar in window.bars if bar.close > bar.open)
    down = sum(bar.volume for bar in window.bars if bar.close < bar.open)
    return clamp((up - down) / total)


def volume_confirmation(window: ScoringWindow, params: ScoringParams) -> float:
    """Whether recent volume expands in the direction of the displacement."""
    bars = window.bars
    if not bars:
        return 0.0
    average = sum(bar.volume for bar in bars) / len(bars)
    if average <= 0:
        return 0.0
    recent = bars[-max(1, len(bars) // 3):]
    recent_average = sum(bar.volume for bar in recent) / len(recent)
    return _sign(_displacement(window)) * clamp(recent_average / average - 1.0)


def open_interest_flow(window: ScoringWindow, params: ScoringParams) -> float:
    """
    Open interest change signed by price displacement.

    Rising OI with rising price (new longs) and rising OI with falling price
    (new shorts) both confirm the move; falling OI opposes it.
    """
    bars = window.bars
    if len(bars) < 2:
        return 0.0
    first_oi = bars[0].open_interest
    delta = bars[-1].open_interest - first_oi
    if first_oi <= 0 or delta == 0 or not math.isfinite(delta):
        return 0.0
    magnitude = clamp(abs(delta) / first_oi * params.oi_sensitivity, 0.0, 1.0)
    return _sign(_displacement(window)) * _sign(delta) * magnitude


FACTOR_FUNCTIONS: dict[str, FactorFn] = {
    "swing_progression": swing_progression,
    "trend_alignment": trend_alignment,
    "zone_position": zone_position,
    "directional_efficiency": directional_efficiency,
    "close_location": close_location,
    "wick_balance": wick_balance,
    "volume_balance": volume_balance,
    "volume_confirmation": volume_confirmation,
    "open_interest_flow": open_interest_flow,
}
