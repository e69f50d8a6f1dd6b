"""
Fractal (turning point) detection over consolidated bars.

A label at index i is decided by the bars (i-1, i, i+1). It is confirmed only
once bar i+1 is closed, which happens when bar i+2 opens. Until then the
label is tentative and may be revised, because the open bar can still absorb
raw bars. Only the trailing three indices are ever re-evaluated.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

import structlog

from .consolidator import ConsolidatedBar
from .envelopes import PriceEnvelope

logger = structlog.get_logger(__name__)


class FractalType(str, Enum):
    """Kind of turning point."""
    TOP = "top"
    BOTTOM = "bottom"

    def opposite(self) -> "FractalType":
        return FractalType.BOTTOM if self is FractalType.TOP else FractalType.TOP


@dataclass(frozen=True)
class Fractal:
    """Turning point label attached to a consolidated bar."""
    cbar_id: int
    kind: FractalType
    price: float                # Middle bar high for tops, low for bottoms
    envelope: PriceEnvelope     # Range of the three-bar window
    start_raw_id: int           # Raw span of the middle bar
    end_raw_id: int
    confirmed: bool = True

    def is_beyond(self, other: "Fractal") -> bool:
        """True if this fractal is more extreme than another of the same kind."""
        if self.kind is FractalType.TOP:
            return self.price > other.price
        return self.price < other.price


def classify_fractal(
    left: ConsolidatedBar, mid: ConsolidatedBar, right: ConsolidatedBar
) -> Optional[FractalType]:
    """
    Label the middle bar of a three-bar window.

    Returns:
        TOP, BOTTOM, or None when the middle bar is not a turning point
    """
    if (mid.high > left.high and mid.high > right.high
            and mid.low > left.low and mid.low > right.low):
        return FractalType.TOP
    if (mid.low < left.low and mid.low < right.low
            and mid.high < left.high and mid.high < right.high):
        return FractalType.BOTTOM
    return None


def build_fractal(
    bars: Sequence[ConsolidatedBar], mid: ConsolidatedBar, kind: FractalType, confirmed: bool
) -> Fractal:
    """Create a fractal for ``mid`` whose envelope spans ``bars``."""
    return Fractal(
        cbar_id=mid.id,
        kind=kind,
        price=mid.high if kind is FractalType.TOP else mid.low,
        envelope=PriceEnvelope(
            low=min(bar.low for bar in bars),
            high=max(bar.high for bar in bars),
        ),
        start_raw_id=mid.start_raw_id,
        end_raw_id=mid.end_raw_id,
        confirmed=confirmed,
    )


@dataclass(frozen=True)
class FractalUpdate:
    """Result of one detector update."""
    confirmed: tuple[Fractal, ...] = ()
    revised: tuple[int, ...] = ()       # Cbar ids whose reported tentative label was withdrawn


class FractalDetector:
    """Owns the fractal labels of one context."""

    def __init__(self) -> None:
        self._confirmed: list[Fractal] = []
        self._next_index = 1
        self._tentative: Optional[Fractal] = None
        self._edge: Optional[Fractal] = None

    @classmethod
    def from_bars(cls, cbars: Sequence[ConsolidatedBar]) -> "FractalDetector":
        """Label a complete consolidated sequence in one pass."""
        detector = cls()
        detector.update(cbars)
        return detector

    @property
    def confirmed(self) -> list[Fractal]:
        """Confirmed fractals in bar order. Callers must treat it as read-only."""
        return self._confirmed

    @property
    def tentative(self) -> Optional[Fractal]:
        """Label on the bar next to the open bar, if any."""
        return self._tentative

    @property
    def candidates(self) -> tuple[Fractal, ...]:
        """
        Unconfirmed labels pending confirmation.

        Includes the leading edge candidate (the first bar, labelled against
        its only neighbor) until the first fractal is confirmed, and the
        tentative label next to the open bar.
        """
        pending = []
        if self._edge is not None:
            pending.append(self._edge)
        if self._tentative is not None:
            pending.append(self._tentative)
        return tuple(pending)

    def update(self, cbars: Sequence[ConsolidatedBar]) -> FractalUpdate:
        """
        Re-evaluate the trailing window after the consolidated sequence changed.

        Args:
            cbars: Full consolidated sequence (only its tail is read)

        Returns:
            Newly confirmed fractals and withdrawn tentative labels
        """
        n = len(cbars)
        newly: list[Fractal] = []

        # Indices up to n-3 have a closed right neighbor
        while self._next_index <= n - 3:
            i = self._next_index
            kind = classify_fractal(cbars[i - 1], cbars[i], cbars[i + 1])
            if kind is not None:
                fractal = build_fractal(cbars[i - 1:i + 2], cbars[i], kind, confirmed=True)
                self._confirmed.append(fractal)
                newly.append(fractal)
            self._next_index += 1

        previous = self._tentative
        self._tentative = None
        if n >= 3:
            kind = classify_fractal(cbars[n - 3], cbars[n - 2], cbars[n - 1])
            if kind is not None:
                self._tentative = build_fractal(cbars[n - 3:n], cbars[n - 2], kind, confirmed=False)

        revised: list[int] = []
        if previous is not None and not self._survives(previous, newly):
            revised.append(previous.cbar_id)
            logger.debug(
                "Tentative fractal withdrawn",
                cbar_id=previous.cbar_id,
                kind=previous.kind.value,
            )

        self._edge = self._edge_candidate(cbars) if not self._confirmed else None

        return FractalUpdate(confirmed=tuple(newly), revised=tuple(revised))

    def checkpoint(self) -> tuple[int, int, Optional[Fractal], Optional[Fractal]]:
        """Capture the state needed to undo the next update."""
        return len(self._confirmed), self._next_index, self._tentative, self._edge

    def restore(self, memento: tuple[int, int, Optional[Fractal], Optional[Fractal]]) -> None:
        """Undo everything applied after the matching checkpoint."""
        count, next_index, tentative, edge = memento
        del self._confirmed[count:]
        self._next_index = next_index
        self._tentative = tentative
        self._edge = edge

    def _survives(self, previous: Fractal, newly: list[Fractal]) -> bool:
        """A tentative label survives if it was confirmed or is still pending unchanged."""
        for fractal in newly:
            if fractal.cbar_id == previous.cbar_id and fractal.kind is previous.kind:
                return True
        current = self._tentative
        return (current is not None
                and current.cbar_id == previous.cbar_id
                and current.kind is previous.kind)

    @staticmethod
    def _edge_candidate(cbars: Sequence[ConsolidatedBar]) -> Optional[Fractal]:
        if len(cbars) < 2:
            return None
        first, second = cbars[0], cbars[1]
        kind = FractalType.BOTTOM if second.high > first.high else FractalType.TOP
        return build_fractal(cbars[0:2], first, kind, confirmed=False)
