"""
Bar consolidation by containment.

Raw bars whose ranges are in a containment relation with the current
consolidated bar are merged into it. Merging follows the prevailing direction
between the last two consolidated bars, so a merge can only move the open
bar further away from its predecessor and never re-creates containment with
it. Only the open (last) consolidated bar is ever revised.
"""

from dataclasses import dataclass, replace
from typing import Iterable, Optional

import structlog

from struxis.data.models import Direction, RawBar

logger = structlog.get_logger(__name__)


def is_contained(a_high: float, a_low: float, b_high: float, b_low: float) -> bool:
    """True if either range contains the other; equal edges count as containment."""
    return (a_high >= b_high and a_low <= b_low) or (a_high <= b_high and a_low >= b_low)


@dataclass(frozen=True)
class ConsolidatedBar:
    """A merged run of raw bars collapsed by containment."""
    id: int                     # Position in the consolidated sequence
    start_raw_id: int
    end_raw_id: int
    high: float
    low: float
    raw_count: int = 1
    merge_direction: Optional[Direction] = None

    def contains_range(self, high: float, low: float) -> bool:
        return is_contained(self.high, self.low, high, low)

    def merged(self, bar: RawBar, direction: Optional[Direction]) -> "ConsolidatedBar":
        """
        Merge a contained raw bar.

        Args:
            bar: Raw bar in containment with this one
            direction: Prevailing merge direction, None before one is established

        Returns:
            New consolidated bar covering both spans
        """
        if direction is Direction.UP:
            high, low = max(self.high, bar.high), max(self.low, bar.low)
        elif direction is Direction.DOWN:
            high, low = min(self.high, bar.high), min(self.low, bar.low)
        else:
            high, low = max(self.high, bar.high), min(self.low, bar.low)

        return replace(
            self,
            end_raw_id=bar.seq_id,
            high=high,
            low=low,
            raw_count=self.raw_count + 1,
            merge_direction=direction,
        )


@dataclass(frozen=True)
class ConsolidationUpdate:
    """Consolidated bar ids touched by one push or extend."""
    opened: tuple[int, ...] = ()
    revised: tuple[int, ...] = ()      # Bars that existed before the update

    @property
    def changed(self) -> tuple[int, ...]:
        return tuple(sorted(set(self.opened) | set(self.revised)))


class BarConsolidator:
    """Owns the consolidated bar sequence of one context."""

    def __init__(self) -> None:
        self._bars: list[ConsolidatedBar] = []
        self._direction: Optional[Direction] = None

    @property
    def bars(self) -> list[ConsolidatedBar]:
        """The consolidated sequence. Callers must treat it as read-only."""
        return self._bars

    @property
    def direction(self) -> Optional[Direction]:
        """Last established merge direction."""
        return self._direction

    def __len__(self) -> int:
        return len(self._bars)

    def push(self, bar: RawBar) -> ConsolidationUpdate:
        """Apply one raw bar."""
        if not self._bars:
            self._bars.append(self._open(0, bar))
            return ConsolidationUpdate(opened=(0,))

        last = self._bars[-1]
        if last.contains_range(bar.high, bar.low):
            self._bars[-1] = last.merged(bar, self._direction)
            logger.debug(
                "Raw bar merged",
                cbar_id=last.id,
                raw_id=bar.seq_id,
                direction=self._direction.value if self._direction else None,
            )
            return ConsolidationUpdate(revised=(last.id,))

        # Not contained: both edges moved the same way
        self._direction = Direction.UP if bar.high > last.high else Direction.DOWN
        self._bars.append(self._open(last.id + 1, bar))
        return ConsolidationUpdate(opened=(last.id + 1,))

    def extend(self, bars: Iterable[RawBar]) -> ConsolidationUpdate:
        """Apply a batch of raw bars in order."""
        existing = len(self._bars)
        opened: list[int] = []
        revised: set[int] = set()
        for bar in bars:
            update = self.push(bar)
            opened.extend(update.opened)
            revised.update(i for i in update.revised if i < existing)
        return ConsolidationUpdate(opened=tuple(opened), revised=tuple(sorted(revised)))

    def checkpoint(self) -> tuple[int, Optional[ConsolidatedBar], Optional[Direction]]:
        """Capture the state needed to undo the next update."""
        return len(self._bars), (self._bars[-1] if self._bars else None), self._direction

    def restore(self, memento: tuple[int, Optional[ConsolidatedBar], Optional[Direction]]) -> None:
        """Undo everything applied after the matching checkpoint."""
        count, last, direction = memento
        del self._bars[count:]
        if last is not None:
            self._bars[count - 1] = last
        self._direction = direction

    @staticmethod
    def _open(cbar_id: int, bar: RawBar) -> ConsolidatedBar:
        return ConsolidatedBar(
            id=cbar_id,
            start_raw_id=bar.seq_id,
            end_raw_id=bar.seq_id,
            high=bar.high,
            low=bar.low,
        )


def consolidate_bars(bars: Iterable[RawBar]) -> list[ConsolidatedBar]:
    """Consolidate a complete raw bar sequence in one pass."""
    consolidator = BarConsolidator()
    consolidator.extend(bars)
    return list(consolidator.bars)
