"""
Trend aggregation over completed swings.

A trend collects swings whose dominant direction keeps making new extremes.
Countertrend swings are tolerated as pullbacks while their retracement of the
trend range stays within ``max_retracement``. A trend completes when a
countertrend swing retraces further than that, or when a dominant swing fails
to extend the extreme (exhaustion).
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from struxis.config.defaults import TrendParams
from struxis.data.models import Direction
from struxis.logging.config import get_state_logger, log_backtrack, log_state_transition

from .swings import Swing


class TrendCompletion(str, Enum):
    """Why a trend completed."""
    RETRACEMENT = "retracement"
    EXHAUSTION = "exhaustion"


@dataclass(frozen=True)
class Trend:
    """A run of swings in one dominant direction."""
    id: int
    direction: Direction
    swing_ids: tuple[int, ...]
    start_raw_id: int
    end_raw_id: int
    start_cbar_id: int
    end_cbar_id: int
    origin_price: float
    extreme_price: float
    extreme_swing_id: int
    high: float
    low: float
    is_completed: bool = False
    completion: Optional[TrendCompletion] = None

    @property
    def start_swing_id(self) -> int:
        return self.swing_ids[0]

    @property
    def end_swing_id(self) -> int:
        return self.swing_ids[-1]

    @property
    def span(self) -> float:
        return abs(self.extreme_price - self.origin_price)

    def retracement(self, price: float) -> float:
        """Fraction of the trend range given back if price reached ``price``."""
        if self.span <= 0:
            return math.inf
        return self.direction.sign * (self.extreme_price - price) / self.span


@dataclass(frozen=True)
class TrendUpdate:
    """Trend ids touched by one aggregator update."""
    changed: tuple[int, ...] = ()
    completed: tuple[int, ...] = ()
    revised: tuple[int, ...] = ()       # Trends that lost already-reported swings


def build_trend(
    trend_id: int,
    direction: Direction,
    members: Sequence[Swing],
    completion: Optional[TrendCompletion] = None,
) -> Trend:
    """Summarize member swings into a trend record."""
    extreme = None
    for swing in members:
        if swing.direction is not direction:
            continue
        if extreme is None or direction.sign * (swing.end_price - extreme.end_price) > 0:
            extreme = swing
    if extreme is None:
        extreme = members[-1]

    first, last = members[0], members[-1]
    return Trend(
        id=trend_id,
        direction=direction,
        swing_ids=tuple(swing.id for swing in members),
        start_raw_id=first.start_raw_id,
        end_raw_id=last.end_raw_id,
        start_cbar_id=first.start_cbar_id,
        end_cbar_id=last.end_cbar_id,
        origin_price=first.start_price,
        extreme_price=extreme.end_price,
        extreme_swing_id=extreme.id,
        high=max(swing.high for swing in members),
        low=min(swing.low for swing in members),
        is_completed=completion is not None,
        completion=completion,
    )


class TrendAggregator:
    """Owns the trends of one context."""

    def __init__(self, params: Optional[TrendParams] = None) -> None:
        self.params = params or TrendParams()
        self.state_logger = get_state_logger(__name__)

        self._completed: list[Trend] = []
        self._active: Optional[Trend] = None
        self._members: tuple[Swing, ...] = ()
        self._next_id = 1

    @classmethod
    def from_swings(cls, swings: Sequence[Swing], params: Optional[TrendParams] = None) -> "TrendAggregator":
        """Aggregate a complete sequence of completed swings in one pass."""
        aggregator = cls(params)
        aggregator.update(swings)
        return aggregator

    @property
    def completed(self) -> list[Trend]:
        """Completed trends in order. Callers must treat it as read-only."""
        return self._completed

    @property
    def active(self) -> Optional[Trend]:
        """The in-progress trend, with boundaries up to its last swing."""
        return self._active

    @property
    def current(self) -> Optional[Trend]:
        """The in-progress trend, falling back to the last completed one."""
        if self._active is not None:
            return self._active
        return self._completed[-1] if self._completed else None

    def update(self, swings: Sequence[Swing]) -> TrendUpdate:
        """
        Feed newly completed swings in order.

        Args:
            swings: Swings sealed since the previous update

        Returns:
            Changed, completed and revised trend ids
        """
        before = self._active
        completed_before = len(self._completed)
        revised: list[int] = []

        for swing in swings:
            self._apply(swing, revised)

        completed = tuple(trend.id for trend in self._completed[completed_before:])
        changed = set(completed)
        if self._active is not None and self._active != before:
            changed.add(self._active.id)

        return TrendUpdate(
            changed=tuple(sorted(changed)),
            completed=completed,
            revised=tuple(revised),
        )

    def checkpoint(self) -> tuple:
        """Capture the state needed to undo the next update."""
        return len(self._completed), self._active, self._members, self._next_id

    def restore(self, memento: tuple) -> None:
        """Undo everything applied after the matching checkpoint."""
        count, active, members, next_id = memento
        del self._completed[count:]
        self._active = active
        self._members = members
        self._next_id = next_id

    def _apply(self, swing: Swing, revised: list[int]) -> None:
        active = self._active

        if active is None:
            self._start(swing.direction, (swing,), trigger="first_swing")
            return

        if swing.direction is active.direction:
            if active.direction.sign * (swing.end_price - active.extreme_price) > 0:
                self._extend(swing)
            else:
                self._complete(TrendCompletion.EXHAUSTION, swing, active.direction.opposite(), revised)
            return

        if active.retracement(swing.end_price) <= self.params.max_retracement:
            self._extend(swing)
        else:
            self._complete(TrendCompletion.RETRACEMENT, swing, swing.direction, revised)

    def _start(self, direction: Direction, members: tuple[Swing, ...], trigger: str) -> None:
        trend = build_trend(self._next_id, direction, members)
        self._next_id += 1
        self._active = trend
        self._members = members
        log_state_transition(
            self.state_logger,
            entity_id=trend.id,
            from_state="none",
            to_state="active",
            trigger=trigger,
            context={"direction": direction.value, "swing_ids": list(trend.swing_ids)},
        )

    def _extend(self, swing: Swing) -> None:
        self._members = self._members + (swing,)
        self._active = build_trend(self._active.id, self._active.direction, self._members)

    def _complete(
        self,
        reason: TrendCompletion,
        swing: Swing,
        next_direction: Direction,
        revised: list[int],
    ) -> None:
        active = self._active
        cut = active.swing_ids.index(active.extreme_swing_id) + 1
        sealed = build_trend(active.id, active.direction, self._members[:cut], completion=reason)
        self._completed.append(sealed)

        if cut < len(self._members):
            revised.append(active.id)
            log_backtrack(
                self.state_logger,
                stage="trend",
                entity_id=active.id,
                reason=reason.value,
                context={"released_swing_ids": list(active.swing_ids[cut:])},
            )

        log_state_transition(
            self.state_logger,
            entity_id=active.id,
            from_state="active",
            to_state="completed",
            trigger=reason.value,
            context={"swing_id": swing.id, "extreme_swing_id": active.extreme_swing_id},
        )

        self._start(next_direction, self._members[cut:] + (swing,), trigger=reason.value)
