"""Supply/demand scoring data models."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional

import orjson

from struxis.data.models import RawBar
from struxis.structure.swings import Swing
from struxis.structure.trends import Trend
from struxis.zones.models import KeyZone, ZoneSignal


class SupplyDemandStage(str, Enum):
    """Strength stage of the prevailing side."""
    UNFORMED = "unformed"
    STABLE = "stable"
    WEAKENING = "weakening"
    CRITICAL = "critical"
    FAILED = "failed"


class SupplyDemandBias(str, Enum):
    """Which side the score favors."""
    DEMAND = "demand"
    SUPPLY = "supply"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class ScoringWindow:
    """Everything the scorer reads. Built by the context, never mutated."""
    bars: tuple[RawBar, ...] = ()
    swings: tuple[Swing, ...] = ()                 # Completed swings, oldest first
    active_swing: Optional[Swing] = None
    trend: Optional[Trend] = None                  # Active trend, else last completed
    zones: tuple[KeyZone, ...] = ()
    signal: Optional[ZoneSignal] = None


@dataclass(frozen=True)
class FactorContribution:
    """One factor's share of the score."""
    name: str
    layer: str
    enabled: bool
    value: float                   # -1..1
    weight: float
    layer_weight: float
    contribution: float            # layer_weight * weight * value, 0 when disabled


@dataclass(frozen=True)
class SupplyDemandSummary:
    """Roll-up of the diagnostic atoms."""
    dominance: float = 0.0                 # -1..1, signed like the score
    efficiency: float = 0.0                # -1..1
    sustainability: float = 0.0            # 0..1
    volatility_adjustment: float = 0.0     # 0..1, lower for wide bars


@dataclass(frozen=True)
class SupplyDemandResult:
    """Explainable supply/demand score for one window."""
    score: float
    stage: SupplyDemandStage
    bias: SupplyDemandBias
    factors: tuple[FactorContribution, ...] = ()
    layer_scores: dict[str, float] = field(default_factory=dict)
    keyzone_bias: float = 0.0
    window_size: int = 0
    atoms: dict[str, float] = field(default_factory=dict)
    summary: SupplyDemandSummary = field(default_factory=SupplyDemandSummary)
    explanation: str = ""

    def factor(self, name: str) -> Optional[FactorContribution]:
        """Look up a factor contribution by name."""
        for contribution in self.factors:
            if contribution.name == name:
                return contribution
        return None

    def to_json(self) -> bytes:
        return orjson.dumps(asdict(self), option=orjson.OPT_SORT_KEYS)
