"""
Per-(symbol, timeframe) pipeline state.

A TimeframeContext owns every stage for one scope and publishes immutable
snapshots and cascade events after each atomic commit.
"""

from .context import TimeframeContext
from .models import BacktrackMarker, CascadeEvent, PipelineStage, StructureSnapshot

__all__ = [
    "BacktrackMarker",
    "CascadeEvent",
    "PipelineStage",
    "StructureSnapshot",
    "TimeframeContext",
]
