"""
KeyZone derivation and interaction classification.

Zones come from completed swings and trends. An up source yields a supply
zone hanging from its high, a down source a demand zone resting on its low.
The candidate width comes from the configured offset basis and is then
tightened to the wick envelope of the raw bars that touched it.
"""

from dataclasses import replace
from typing import Callable, Optional, Sequence

import structlog

from struxis.config.defaults import KeyZoneParams
from struxis.data.models import Direction, RawBar
from struxis.data.series import RawBarSeries
from struxis.metrics.atr import calculate_atr
from struxis.metrics.candle_structure import analyze_candle_structure
from struxis.structure.envelopes import OverlapKind
from struxis.structure.swings import Swing
from struxis.structure.trends import Trend

from .models import KeyZone, ZoneBehavior, ZoneOrigin, ZoneReaction, ZoneRole, ZoneSignal

logger = structlog.get_logger(__name__)


def refine_bounds(
    bars: Sequence[RawBar], role: ZoneRole, candidate_upper: float, candidate_lower: float
) -> tuple[float, float]:
    """
    Tighten candidate bounds to the wick envelope of the bars touching them.

    For a supply zone the outer edge moves to the highest touching wick and
    the inner edge to the lowest touching body top, so the zone holds every
    touching upper wick and nothing else. Demand zones mirror this. Bounds
    never move outside the candidate.

    Returns:
        (upper, lower)
    """
    touching = [bar for bar in bars if bar.intersects(candidate_lower, candidate_upper)]
    if not touching:
        return candidate_upper, candidate_lower

    if role is ZoneRole.SUPPLY:
        upper = min(candidate_upper, max(bar.high for bar in touching))
        lower = max(candidate_lower, min(bar.body_top for bar in touching))
        return upper, min(lower, upper)

    lower = max(candidate_lower, min(bar.low for bar in touching))
    upper = min(candidate_upper, max(bar.body_bottom for bar in touching))
    return max(upper, lower), lower


def classify_interaction(
    zone: KeyZone,
    bar: RawBar,
    previous: Optional[RawBar],
    prior_touches: int,
    strong_penetration: float,
) -> Optional[ZoneSignal]:
    """
    Classify how a bar interacts with a zone.

    Args:
        zone: Zone being revisited
        bar: Bar to classify
        previous: Bar before it, if it also came after the zone's source
        prior_touches: Earlier bars that touched the zone and held
        strong_penetration: Penetration separating strong from weak outcomes

    Returns:
        Signal, or None when the bar does not reach the zone
    """
    if not bar.intersects(zone.lower, zone.upper):
        return None

    width = zone.width
    if zone.role is ZoneRole.SUPPLY:
        depth = min(bar.high, zone.upper) - zone.lower
        beyond = bar.close > zone.upper
        back = bar.close < zone.lower
        previous_beyond = previous is not None and previous.close > zone.upper
    else:
        depth = zone.upper - max(bar.low, zone.lower)
        beyond = bar.close < zone.lower
        back = bar.close > zone.upper
        previous_beyond = previous is not None and previous.close < zone.lower

    penetration = min(1.0, max(0.0, depth / width)) if width > 0 else 1.0
    body = analyze_candle_structure(bar).body_pct

    if previous_beyond and not beyond:
        behavior = ZoneBehavior.BREAKOUT_FAILURE
        strength = 0.65 + 0.35 * penetration
    elif beyond:
        if prior_touches > 0:
            behavior = ZoneBehavior.SECOND_PUSH
            strength = 0.55 + 0.45 * body
        else:
            behavior = ZoneBehavior.STRONG_ACCEPT
            strength = 0.4 * penetration + 0.6 * body
    elif not back:
        behavior = ZoneBehavior.WEAK_ACCEPT if penetration >= strong_penetration else ZoneBehavior.WEAK_REJECT
        if behavior is ZoneBehavior.WEAK_ACCEPT:
            strength = 0.4 * penetration + 0.6 * body
        else:
            strength = 0.5 * penetration + 0.5 * body
    else:
        behavior = ZoneBehavior.STRONG_REJECT if penetration >= strong_penetration else ZoneBehavior.WEAK_REJECT
        strength = 0.5 * penetration + 0.5 * body

    strength = min(1.0, max(0.0, strength * zone.weight))
    signed = zone.direction.sign * behavior.polarity * strength

    return ZoneSignal(
        zone_id=zone.zone_id,
        behavior=behavior,
        raw_bar_id=bar.seq_id,
        penetration=penetration,
        strength=strength,
        signed_strength=min(1.0, max(-1.0, signed)),
    )


class KeyZoneDeriver:
    """Derives zones for one context and classifies the latest interactions."""

    def __init__(self, params: Optional[KeyZoneParams] = None) -> None:
        self.params = params or KeyZoneParams()
        # Derived bounds depend only on immutable sources, keyed by the source record
        self._cache: dict[tuple[ZoneOrigin, object], KeyZone] = {}

    def derive(
        self,
        swings: Sequence[Swing],
        trends: Sequence[Trend],
        series: RawBarSeries,
        swing_lookup: Callable[[int], Optional[Swing]],
    ) -> list[KeyZone]:
        """
        Derive zones from the most recent completed swings and trends.

        Args:
            swings: Completed swings in order
            trends: Completed trends in order
            series: Raw bars of the context
            swing_lookup: Resolves a swing id to its record

        Returns:
            Zones ordered swing sources first, then trend sources, each by id
        """
        cache: dict[tuple[ZoneOrigin, object], KeyZone] = {}
        zones: list[KeyZone] = []

        for swing in self._recent(swings, self.params.max_swing_sources):
            key = (ZoneOrigin.SWING, swing)
            zone = self._cache.get(key) or self._build(
                ZoneOrigin.SWING,
                swing.id,
                swing.direction,
                swing.high,
                swing.low,
                swing.start_raw_id,
                swing.end_raw_id,
                swing.anchor_overlap or OverlapKind.DISJOINT,
                series,
            )
            cache[key] = zone
            zones.append(zone)

        for trend in self._recent(trends, self.params.max_trend_sources):
            key = (ZoneOrigin.TREND, trend)
            zone = self._cache.get(key)
            if zone is None:
                extreme = swing_lookup(trend.extreme_swing_id)
                overlap = extreme.anchor_overlap if extreme and extreme.anchor_overlap else OverlapKind.DISJOINT
                zone = self._build(
                    ZoneOrigin.TREND,
                    trend.id,
                    trend.direction,
                    trend.high,
                    trend.low,
                    trend.start_raw_id,
                    trend.end_raw_id,
                    overlap,
                    series,
                )
            cache[key] = zone
            zones.append(zone)

        self._cache = cache
        return zones

    def evaluate(self, zones: Sequence[KeyZone], series: RawBarSeries) -> tuple[list[KeyZone], Optional[ZoneSignal]]:
        """
        Attach the current behavior to each zone and pick the latest signal.

        Args:
            zones: Zones from ``derive``
            series: Raw bars of the context

        Returns:
            Zones with behavior set, and the most recent signal within
            ``signal_lookback`` bars (None if there is none)
        """
        recent = series.tail(self.params.interaction_lookback)
        signal_floor = series.tail(self.params.signal_lookback)
        min_signal_id = signal_floor[0].seq_id if signal_floor else None

        evaluated: list[KeyZone] = []
        best: Optional[ZoneSignal] = None

        for zone in zones:
            reactions, latest = self._interactions(zone, recent)
            if latest is None:
                if zone.behavior is not None or zone.reactions:
                    zone = _with_reactions(zone, None, ())
                evaluated.append(zone)
                continue

            evaluated.append(_with_reactions(zone, latest.behavior, reactions))
            if min_signal_id is None or latest.raw_bar_id < min_signal_id:
                continue
            if (best is None
                    or latest.raw_bar_id > best.raw_bar_id
                    or (latest.raw_bar_id == best.raw_bar_id and latest.strength > best.strength)):
                best = latest

        if best is not None:
            logger.debug(
                "Zone signal",
                zone_id=best.zone_id,
                behavior=best.behavior.value,
                raw_bar_id=best.raw_bar_id,
                signed_strength=best.signed_strength,
            )
        return evaluated, best

    def latest_signal(self, zones: Sequence[KeyZone], series: RawBarSeries) -> Optional[ZoneSignal]:
        """Most recent classified interaction across ``zones``, if still current."""
        return self.evaluate(zones, series)[1]

    def checkpoint(self) -> dict:
        return self._cache

    def restore(self, cache: dict) -> None:
        self._cache = cache

    def _interactions(
        self, zone: KeyZone, recent: Sequence[RawBar]
    ) -> tuple[tuple[ZoneReaction, ...], Optional[ZoneSignal]]:
        """
        Classify every touching bar after the source.

        Returns:
            Reactions oldest first, and the signal of the last one
        """
        prior_touches = 0
        previous: Optional[RawBar] = None
        latest: Optional[ZoneSignal] = None
        reactions: list[ZoneReaction] = []

        for bar in recent:
            if bar.seq_id <= zone.source_end_raw_id:
                continue
            signal = classify_interaction(zone, bar, previous, prior_touches, self.params.strong_penetration)
            if signal is not None:
                latest = signal
                reactions.append(ZoneReaction(
                    raw_bar_id=bar.seq_id,
                    state=signal.behavior.state,
                    behavior=signal.behavior,
                    strength=signal.strength,
                ))
                if signal.behavior not in (ZoneBehavior.STRONG_ACCEPT, ZoneBehavior.SECOND_PUSH):
                    prior_touches += 1
            previous = bar

        return tuple(reactions), latest

    def _build(
        self,
        origin: ZoneOrigin,
        source_id: int,
        direction: Direction,
        high: float,
        low: float,
        start_raw_id: int,
        end_raw_id: int,
        overlap: OverlapKind,
        series: RawBarSeries,
    ) -> KeyZone:
        bars = series.span(start_raw_id, end_raw_id)
        offset = self._offset(bars, high - low)

        if direction is Direction.UP:
            role = ZoneRole.SUPPLY
            candidate_upper, candidate_lower = high, high - offset
        else:
            role = ZoneRole.DEMAND
            candidate_upper, candidate_lower = low + offset, low

        upper, lower = refine_bounds(bars, role, candidate_upper, candidate_lower)
        touches = [bar for bar in bars if bar.intersects(lower, upper)]

        if overlap is OverlapKind.TOUCHING:
            weight = self.params.touching_weight
        elif overlap is OverlapKind.INTERSECTING:
            weight = self.params.intersecting_weight
        else:
            weight = 1.0

        return KeyZone(
            zone_id=f"{origin.value}-{source_id}",
            origin=origin,
            source_id=source_id,
            role=role,
            direction=direction,
            upper=upper,
            lower=lower,
            candidate_upper=candidate_upper,
            candidate_lower=candidate_lower,
            source_start_raw_id=start_raw_id,
            source_end_raw_id=end_raw_id,
            anchor_overlap=overlap,
            weight=weight,
            touch_count=len(touches),
            last_touch_id=touches[-1].seq_id if touches else None,
        )

    def _offset(self, bars: Sequence[RawBar], span: float) -> float:
        """Candidate width, never wider than the source range."""
        if span <= 0:
            return 0.0
        if self.params.offset_basis == "atr":
            atr = calculate_atr(bars, self.params.atr_period)
            if atr is not None:
                return min(span, atr * self.params.offset_atr_mult)
        return min(span, span * self.params.offset_range_ratio)

    @staticmethod
    def _recent(items: Sequence, count: int) -> Sequence:
        if count <= 0:
            return ()
        return items[-count:]


def _with_reactions(
    zone: KeyZone, behavior: Optional[ZoneBehavior], reactions: tuple[ZoneReaction, ...]
) -> KeyZone:
    return replace(zone, behavior=behavior, reactions=reactions)
