"""
Structural stages of the pipeline.

Consolidation -> fractals -> swings -> trends. Each module imports only the
stages before it.
"""

from .consolidator import BarConsolidator, ConsolidatedBar, consolidate_bars
from .envelopes import OverlapKind, PriceEnvelope, classify_overlap
from .fractals import Fractal, FractalDetector, FractalType
from .swings import Swing, SwingBuilder, SwingState
from .trends import Trend, TrendAggregator, TrendCompletion

__all__ = [
    "BarConsolidator",
    "ConsolidatedBar",
    "consolidate_bars",
    "OverlapKind",
    "PriceEnvelope",
    "classify_overlap",
    "Fractal",
    "FractalDetector",
    "FractalType",
    "Swing",
    "SwingBuilder",
    "SwingState",
    "Trend",
    "TrendAggregator",
    "TrendCompletion",
]
