"""
Structural invariant checks run before every commit.

Each check inspects only the region a cascade can have touched, so the cost
per append stays bounded. A failed check raises StateInvariantViolation,
which halts the owning context.
"""

from typing import Optional, Sequence

import structlog

from struxis.data.models import Direction
from struxis.data.series import RawBarSeries
from struxis.errors import StateInvariantViolation
from struxis.structure.consolidator import ConsolidatedBar
from struxis.structure.fractals import FractalType
from struxis.structure.swings import Swing
from struxis.structure.trends import Trend

logger = structlog.get_logger(__name__)


def _violation(invariant: str, message: str, entity_ids: Sequence[int], **context) -> StateInvariantViolation:
    logger.error(
        "State invariant violated",
        invariant=invariant,
        entity_ids=list(entity_ids),
        detail=message,
        **context
    )
    return StateInvariantViolation(message, invariant=invariant, entity_ids=entity_ids, context=context)


def check_consolidation(series: RawBarSeries, cbars: Sequence[ConsolidatedBar], first_revised: int) -> None:
    """
    Check coverage and containment of the consolidated tail.

    Args:
        series: Raw bars of the context
        cbars: Consolidated sequence
        first_revised: Lowest cbar id the cascade opened or revised
    """
    if not cbars:
        if len(series):
            raise _violation("cbar_coverage", "Raw bars exist without consolidated bars", [series.last.seq_id])
        return

    first, last = cbars[0], cbars[-1]
    if first.start_raw_id != series[0].seq_id:
        raise _violation("cbar_coverage", "First consolidated bar does not start at the first raw bar", [first.id])
    if last.end_raw_id != series.last.seq_id:
        raise _violation("cbar_coverage", "Last consolidated bar does not end at the last raw bar", [last.id])

    start = max(1, first_revised)
    for index in range(start, len(cbars)):
        previous, current = cbars[index - 1], cbars[index]
        if current.id != index:
            raise _violation("cbar_ids", "Consolidated bar id does not match its position", [current.id])
        if series.position(current.start_raw_id) != series.position(previous.end_raw_id) + 1:
            raise _violation(
                "cbar_coverage",
                "Consolidated bar spans are not contiguous",
                [previous.id, current.id],
            )
        if previous.contains_range(current.high, current.low):
            raise _violation(
                "cbar_containment",
                "Adjacent consolidated bars are in containment",
                [previous.id, current.id],
            )


def check_swing(swing: Swing) -> None:
    """Anchor kinds must match the swing direction."""
    expected_start = FractalType.BOTTOM if swing.direction is Direction.UP else FractalType.TOP
    if swing.start_kind is not expected_start:
        raise _violation(
            "swing_direction",
            f"{swing.direction.value} swing starts at a {swing.start_kind.value}",
            [swing.id],
        )
    if swing.end_kind is not None and swing.end_kind is swing.start_kind:
        raise _violation("swing_anchors", "Swing starts and ends on the same fractal kind", [swing.id])
    if swing.is_completed and swing.end_kind is None:
        raise _violation("swing_anchors", "Completed swing has no end fractal", [swing.id])


def check_swings(completed: Sequence[Swing], active: Optional[Swing]) -> None:
    """Check newly completed swings and the in-progress one."""
    for swing in completed:
        check_swing(swing)
    if active is not None:
        check_swing(active)
        if active.is_completed:
            raise _violation("swing_state", "Active swing is already confirmed", [active.id])


def check_trend(trend: Optional[Trend], swing_lookup) -> None:
    """A trend's direction must be that of its extreme swing."""
    if trend is None:
        return
    extreme = swing_lookup(trend.extreme_swing_id)
    if extreme is None:
        raise _violation("trend_members", "Trend extreme swing is unknown", [trend.id, trend.extreme_swing_id])
    if extreme.direction is not trend.direction:
        raise _violation(
            "trend_direction",
            "Trend direction differs from its dominant swing",
            [trend.id, extreme.id],
        )
