"""
Swing construction with delayed confirmation.

Each in-progress swing carries an explicit lifecycle tag:

- FORMING: anchored to its origin fractal, no opposing fractal seen yet
- PENDING_REVERSE: an opposing fractal is the candidate end, but the reversal
  away from it has not been validated
- CONFIRMED: the reversal was validated and the swing is sealed

An Up swing always runs Bottom -> Top and a Down swing Top -> Bottom. Only the
active swing is ever reconsidered; sealed swings never change.
"""

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence

from struxis.config.defaults import SwingParams
from struxis.data.models import Direction
from struxis.logging.config import get_state_logger, log_backtrack, log_state_transition

from .consolidator import ConsolidatedBar
from .envelopes import OverlapKind, PriceEnvelope, classify_overlap
from .fractals import Fractal, FractalType


class SwingState(str, Enum):
    """Swing lifecycle states."""
    FORMING = "forming"
    PENDING_REVERSE = "pending_reverse"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class SwingTransition:
    """Record of a single lifecycle transition."""
    from_state: Optional[SwingState]
    to_state: SwingState
    trigger: str
    cbar_id: int                # Fractal bar that caused the transition


@dataclass(frozen=True)
class Swing:
    """A directional move between two opposing fractals."""
    id: int
    direction: Direction
    state: SwingState
    start_kind: FractalType
    start_cbar_id: int
    start_raw_id: int
    start_price: float
    start_envelope: PriceEnvelope
    end_cbar_id: int
    end_raw_id: int
    end_price: float
    end_kind: Optional[FractalType] = None          # None while forming
    end_envelope: Optional[PriceEnvelope] = None
    anchor_overlap: Optional[OverlapKind] = None    # Set once confirmed
    transitions: tuple[SwingTransition, ...] = ()

    @property
    def high(self) -> float:
        return max(self.start_price, self.end_price)

    @property
    def low(self) -> float:
        return min(self.start_price, self.end_price)

    @property
    def span(self) -> float:
        return self.high - self.low

    @property
    def is_completed(self) -> bool:
        return self.state is SwingState.CONFIRMED

    def with_transition(self, to_state: SwingState, trigger: str, cbar_id: int, **changes) -> "Swing":
        """Return a copy moved to ``to_state`` with the transition recorded."""
        transition = SwingTransition(
            from_state=self.state,
            to_state=to_state,
            trigger=trigger,
            cbar_id=cbar_id,
        )
        return replace(self, state=to_state, transitions=self.transitions + (transition,), **changes)


@dataclass(frozen=True)
class SwingUpdate:
    """Swing ids touched by one builder update."""
    changed: tuple[int, ...] = ()
    completed: tuple[int, ...] = ()
    revised: tuple[int, ...] = ()       # Swings whose reported candidate end was discarded


def direction_from_origin(kind: FractalType) -> Direction:
    """Bottom origins start Up swings, Top origins start Down swings."""
    return Direction.UP if kind is FractalType.BOTTOM else Direction.DOWN


class SwingBuilder:
    """Owns the swings of one context."""

    def __init__(self, params: Optional[SwingParams] = None) -> None:
        self.params = params or SwingParams()
        self.state_logger = get_state_logger(__name__)

        self._completed: list[Swing] = []
        self._active: Optional[Swing] = None
        self._origin: Optional[Fractal] = None
        self._candidate: Optional[Fractal] = None
        self._next_id = 1

    @classmethod
    def from_fractals(
        cls,
        cbars: Sequence[ConsolidatedBar],
        fractals: Sequence[Fractal],
        params: Optional[SwingParams] = None,
    ) -> "SwingBuilder":
        """Build swings from a complete confirmed fractal sequence in one pass."""
        builder = cls(params)
        builder.update(cbars, fractals)
        return builder

    @property
    def completed(self) -> list[Swing]:
        """Sealed swings in order. Callers must treat it as read-only."""
        return self._completed

    @property
    def active(self) -> Optional[Swing]:
        """The in-progress swing, if any."""
        return self._active

    def update(self, cbars: Sequence[ConsolidatedBar], fractals: Sequence[Fractal]) -> SwingUpdate:
        """
        Feed newly confirmed fractals and refresh the in-progress swing.

        Args:
            cbars: Full consolidated sequence (only its tail is read)
            fractals: Fractals confirmed since the previous update, in order

        Returns:
            Changed, completed and revised swing ids
        """
        before = self._active
        completed_before = len(self._completed)
        revised: list[int] = []

        for fractal in fractals:
            self._apply(fractal, revised)

        self._track_extent(cbars)

        completed = tuple(swing.id for swing in self._completed[completed_before:])
        changed = list(completed)
        if self._active is not None and self._active != before:
            changed.append(self._active.id)

        return SwingUpdate(
            changed=tuple(sorted(set(changed))),
            completed=completed,
            revised=tuple(revised),
        )

    def checkpoint(self) -> tuple:
        """Capture the state needed to undo the next update."""
        return len(self._completed), self._active, self._origin, self._candidate, self._next_id

    def restore(self, memento: tuple) -> None:
        """Undo everything applied after the matching checkpoint."""
        count, active, origin, candidate, next_id = memento
        del self._completed[count:]
        self._active = active
        self._origin = origin
        self._candidate = candidate
        self._next_id = next_id

    def _apply(self, fractal: Fractal, revised: list[int]) -> None:
        active = self._active

        if active is None:
            self._open(fractal, trigger="first_fractal")
            return

        if active.state is SwingState.FORMING:
            if fractal.kind is self._origin.kind:
                if fractal.is_beyond(self._origin):
                    self._reanchor(fractal)
                return
            self._set_candidate(fractal, trigger="opposing_fractal")
            return

        # PENDING_REVERSE
        if fractal.kind is self._candidate.kind:
            if fractal.is_beyond(self._candidate):
                discarded = self._candidate
                self._transition(
                    SwingState.FORMING,
                    "candidate_superseded",
                    fractal.cbar_id,
                    end_kind=None,
                    end_envelope=None,
                )
                revised.append(active.id)
                log_backtrack(
                    self.state_logger,
                    stage="swing",
                    entity_id=active.id,
                    reason="candidate_superseded",
                    context={"discarded_cbar_id": discarded.cbar_id, "new_cbar_id": fractal.cbar_id},
                )
                self._set_candidate(fractal, trigger="opposing_fractal")
            return

        reason = self._reversal_reason(fractal)
        if reason is None:
            self.state_logger.debug(
                "Reversal not validated",
                swing_id=active.id,
                candidate_cbar_id=self._candidate.cbar_id,
                fractal_cbar_id=fractal.cbar_id,
            )
            return

        self._confirm(fractal, reason)

    def _reversal_reason(self, fractal: Fractal) -> Optional[str]:
        """
        Decide whether the move from the candidate to ``fractal`` is a real reversal.

        Returns:
            Reason label when validated, None otherwise
        """
        origin, candidate = self._origin, self._candidate
        overlap = classify_overlap(candidate.envelope, fractal.envelope)

        if overlap is OverlapKind.DISJOINT:
            return "disjoint"
        if fractal.is_beyond(origin):
            return "origin_broken"
        if overlap is OverlapKind.TOUCHING:
            between = fractal.cbar_id - candidate.cbar_id - 1
            swing_distance = abs(candidate.price - origin.price)
            reversal_distance = abs(candidate.price - fractal.price)
            ratio = reversal_distance / swing_distance if swing_distance > 0 else math.inf
            if between >= self.params.touch_min_cbar_gap and ratio >= self.params.touch_min_ratio:
                return "touching"
        return None

    def _open(self, origin: Fractal, trigger: str) -> None:
        swing = Swing(
            id=self._next_id,
            direction=direction_from_origin(origin.kind),
            state=SwingState.FORMING,
            start_kind=origin.kind,
            start_cbar_id=origin.cbar_id,
            start_raw_id=origin.start_raw_id,
            start_price=origin.price,
            start_envelope=origin.envelope,
            end_cbar_id=origin.cbar_id,
            end_raw_id=origin.end_raw_id,
            end_price=origin.price,
            transitions=(SwingTransition(None, SwingState.FORMING, trigger, origin.cbar_id),),
        )
        self._next_id += 1
        self._active = swing
        self._origin = origin
        self._candidate = None
        log_state_transition(
            self.state_logger,
            entity_id=swing.id,
            from_state="none",
            to_state=SwingState.FORMING.value,
            trigger=trigger,
            context={"direction": swing.direction.value, "origin_cbar_id": origin.cbar_id},
        )

    def _reanchor(self, origin: Fractal) -> None:
        self._transition(
            SwingState.FORMING,
            "origin_reanchored",
            origin.cbar_id,
            start_cbar_id=origin.cbar_id,
            start_raw_id=origin.start_raw_id,
            start_price=origin.price,
            start_envelope=origin.envelope,
            end_cbar_id=origin.cbar_id,
            end_raw_id=origin.end_raw_id,
            end_price=origin.price,
        )
        self._origin = origin

    def _set_candidate(self, candidate: Fractal, trigger: str) -> None:
        self._transition(
            SwingState.PENDING_REVERSE,
            trigger,
            candidate.cbar_id,
            end_kind=candidate.kind,
            end_cbar_id=candidate.cbar_id,
            end_raw_id=candidate.end_raw_id,
            end_price=candidate.price,
            end_envelope=candidate.envelope,
        )
        self._candidate = candidate

    def _confirm(self, fractal: Fractal, reason: str) -> None:
        origin, candidate = self._origin, self._candidate
        self._transition(
            SwingState.CONFIRMED,
            f"reversal_{reason}",
            fractal.cbar_id,
            anchor_overlap=classify_overlap(origin.envelope, candidate.envelope),
        )
        self._completed.append(self._active)

        self._open(candidate, trigger="reversal_origin")
        self._set_candidate(fractal, trigger="opposing_fractal")

    def _transition(self, to_state: SwingState, trigger: str, cbar_id: int, **changes) -> None:
        active = self._active
        self._active = active.with_transition(to_state, trigger, cbar_id, **changes)
        log_state_transition(
            self.state_logger,
            entity_id=active.id,
            from_state=active.state.value,
            to_state=to_state.value,
            trigger=trigger,
            context={"direction": active.direction.value, "cbar_id": cbar_id},
        )

    def _track_extent(self, cbars: Sequence[ConsolidatedBar]) -> None:
        """
        Move a forming swing's end to the furthest bar reached.

        No opposing fractal is confirmed after the origin, so the bars up to
        the confirmation frontier move monotonically away from it and the
        extreme lies within the last three bars.
        """
        active = self._active
        if active is None or active.state is not SwingState.FORMING:
            return

        n = len(cbars)
        first = max(active.start_cbar_id + 1, n - 3)
        if first >= n:
            return

        window = cbars[first:n]
        if active.direction is Direction.UP:
            extreme = max(window, key=lambda bar: bar.high)
            price = extreme.high
        else:
            extreme = min(window, key=lambda bar: bar.low)
            price = extreme.low

        if (extreme.id, extreme.end_raw_id, price) != (active.end_cbar_id, active.end_raw_id, active.end_price):
            self._active = replace(
                active,
                end_cbar_id=extreme.id,
                end_raw_id=extreme.end_raw_id,
                end_price=price,
            )
