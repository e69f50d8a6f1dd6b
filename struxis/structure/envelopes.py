"""Price envelopes around fractals and their overlap classification."""

from dataclasses import dataclass
from enum import Enum


class OverlapKind(str, Enum):
    """How two price envelopes relate."""
    DISJOINT = "disjoint"
    TOUCHING = "touching"            # Shared boundary, zero overlap
    INTERSECTING = "intersecting"    # Nonzero overlapping range


@dataclass(frozen=True)
class PriceEnvelope:
    """Closed price interval [low, high] spanned by a group of bars."""
    low: float
    high: float

    @property
    def span(self) -> float:
        return self.high - self.low

    def overlap(self, other: "PriceEnvelope") -> float:
        """Length of the shared range, negative when the envelopes are apart."""
        return min(self.high, other.high) - max(self.low, other.low)


def classify_overlap(a: PriceEnvelope, b: PriceEnvelope) -> OverlapKind:
    """
    Classify the relation of two envelopes.

    Args:
        a: First envelope
        b: Second envelope

    Returns:
        TOUCHING when they share exactly one boundary price, INTERSECTING when
        they share an interior range, DISJOINT otherwise
    """
    shared = a.overlap(b)
    if shared > 0:
        return OverlapKind.INTERSECTING
    if shared == 0:
        return OverlapKind.TOUCHING
    return OverlapKind.DISJOINT
