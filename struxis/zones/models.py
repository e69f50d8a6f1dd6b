"""KeyZone data models."""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

import orjson

from struxis.data.models import Direction
from struxis.structure.envelopes import OverlapKind


class ZoneOrigin(str, Enum):
    """Kind of structure a zone was derived from."""
    SWING = "swing"
    TREND = "trend"


class ZoneRole(str, Enum):
    """Supply zones sit at the top of up moves, demand zones at the bottom of down moves."""
    SUPPLY = "supply"
    DEMAND = "demand"


class ZoneBehavior(str, Enum):
    """Classified price interaction with a zone."""
    STRONG_ACCEPT = "strong_accept"
    WEAK_ACCEPT = "weak_accept"
    STRONG_REJECT = "strong_reject"
    WEAK_REJECT = "weak_reject"
    SECOND_PUSH = "second_push"
    BREAKOUT_FAILURE = "breakout_failure"

    @property
    def polarity(self) -> int:
        """+1 when price carries on in the source direction, -1 when the zone holds it back."""
        if self in (ZoneBehavior.STRONG_ACCEPT, ZoneBehavior.WEAK_ACCEPT, ZoneBehavior.SECOND_PUSH):
            return 1
        return -1

    @property
    def state(self) -> "ZoneState":
        return ZoneState.ACCEPT if self.polarity > 0 else ZoneState.REJECT


class ZoneState(str, Enum):
    """Coarse outcome of one reaction."""
    ACCEPT = "accept"
    REJECT = "reject"


@dataclass(frozen=True)
class ZoneReaction:
    """One classified bar interaction with a zone."""
    raw_bar_id: int
    state: ZoneState
    behavior: ZoneBehavior
    strength: float


@dataclass(frozen=True)
class KeyZone:
    """A discrete support/resistance interval traced to its source structure."""
    zone_id: str
    origin: ZoneOrigin
    source_id: int
    role: ZoneRole
    direction: Direction               # Direction of the source structure
    upper: float
    lower: float
    candidate_upper: float             # Bounds before wick refinement
    candidate_lower: float
    source_start_raw_id: int
    source_end_raw_id: int
    anchor_overlap: OverlapKind
    weight: float
    touch_count: int                   # Source-span bars touching the refined zone
    last_touch_id: Optional[int]
    behavior: Optional[ZoneBehavior] = None      # Latest reaction's behavior
    reactions: tuple[ZoneReaction, ...] = ()     # Within the interaction lookback, oldest first

    @property
    def width(self) -> float:
        return self.upper - self.lower

    def to_json(self) -> bytes:
        """Canonical JSON bytes; identical input and configuration give identical bytes."""
        return orjson.dumps(asdict(self), option=orjson.OPT_SORT_KEYS)


@dataclass(frozen=True)
class ZoneSignal:
    """Most recent classified interaction, used as scoring bias."""
    zone_id: str
    behavior: ZoneBehavior
    raw_bar_id: int
    penetration: float                 # Depth reached from the approach edge, 0..1
    strength: float                    # 0..1, already scaled by zone weight
    signed_strength: float             # -1..1, positive is bullish
