"""
Snapshot and event models published after each committed cascade.

Both are immutable: observers and cross-context readers receive the same
objects the context committed and can never reach back into live state.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

import orjson

from struxis.scoring.models import SupplyDemandResult
from struxis.structure.consolidator import ConsolidatedBar
from struxis.structure.fractals import Fractal
from struxis.structure.swings import Swing
from struxis.structure.trends import Trend
from struxis.zones.models import KeyZone, ZoneSignal


class PipelineStage(str, Enum):
    """Cascade stages, in processing order."""
    CONSOLIDATION = "consolidation"
    FRACTAL = "fractal"
    SWING = "swing"
    TREND = "trend"
    KEYZONE = "keyzone"
    SCORING = "scoring"


@dataclass(frozen=True)
class BacktrackMarker:
    """An already-reported entity that the cascade revised."""
    stage: PipelineStage
    entity_id: int              # Cbar id for consolidation and fractal stages


@dataclass(frozen=True)
class CascadeEvent:
    """Identifiers touched by one committed cascade."""
    symbol: str
    timeframe: str
    sequence: int               # Commit counter, starts at 1 per context
    raw_ids: tuple[int, ...]
    cbar_ids: tuple[int, ...] = ()
    fractal_ids: tuple[int, ...] = ()        # Cbar ids of newly confirmed fractals
    swing_ids: tuple[int, ...] = ()
    trend_ids: tuple[int, ...] = ()
    zone_ids: tuple[str, ...] = ()
    backtracks: tuple[BacktrackMarker, ...] = ()

    @property
    def has_backtrack(self) -> bool:
        return bool(self.backtracks)

    def to_json(self) -> bytes:
        return orjson.dumps(asdict(self), option=orjson.OPT_SORT_KEYS)


@dataclass(frozen=True)
class StructureSnapshot:
    """Structural state of one context at a commit boundary."""
    symbol: str
    timeframe: str
    sequence: int
    raw_count: int
    last_raw_id: Optional[int]
    cbars: tuple[ConsolidatedBar, ...]
    fractals: tuple[Fractal, ...]
    fractal_candidates: tuple[Fractal, ...]
    swings: tuple[Swing, ...]                # Completed swings in the window
    active_swing: Optional[Swing]
    trends: tuple[Trend, ...]                # Completed trends in the window
    active_trend: Optional[Trend]
    zones: tuple[KeyZone, ...]
    signal: Optional[ZoneSignal]
    supply_demand: SupplyDemandResult

    def to_json(self) -> bytes:
        """Canonical JSON bytes for reproducibility checks."""
        return orjson.dumps(asdict(self), option=orjson.OPT_SORT_KEYS)
