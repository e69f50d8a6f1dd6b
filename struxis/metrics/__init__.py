"""
Bar metrics shared by the zone deriver and the scorer.

- ATR: true range and its simple average over raw bars
- Candle structure: body, wick and close-location decomposition
"""

from .atr import calculate_atr, calculate_true_range
from .candle_structure import CandleStructure, analyze_candle_structure

__all__ = [
    "calculate_atr",
    "calculate_true_range",
    "CandleStructure",
    "analyze_candle_structure",
]
