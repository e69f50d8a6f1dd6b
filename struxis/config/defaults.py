"""Default configuration parameters for the structure pipeline."""

from dataclasses import dataclass, field

LAYER_FACTORS: dict[str, tuple[str, ...]] = {
    "structure": ("swing_progression", "trend_alignment", "zone_position"),
    "price_action": ("directional_efficiency", "close_location", "wick_balance"),
    "participation": ("volume_balance", "volume_confirmation", "open_interest_flow"),
}

FACTOR_NAMES: tuple[str, ...] = tuple(
    name for factors in LAYER_FACTORS.values() for name in factors
)


@dataclass(frozen=True)
class SwingParams:
    """Swing reversal validation parameters."""
    # Touching anchor envelopes need both a gap and a distance ratio
    touch_min_cbar_gap: int = 5                      # Consolidated bars between fractals
    touch_min_ratio: float = 0.6                     # Reversal distance / swing distance


@dataclass(frozen=True)
class TrendParams:
    """Trend aggregation parameters."""
    max_retracement: float = 0.618                   # Pullback tolerance vs trend range


@dataclass(frozen=True)
class KeyZoneParams:
    """KeyZone derivation and interaction parameters."""
    max_swing_sources: int = 5
    max_trend_sources: int = 5

    # Candidate offset basis: "atr" or "range"
    offset_basis: str = "atr"
    offset_atr_mult: float = 1.0
    offset_range_ratio: float = 0.25
    atr_period: int = 14

    # Zone weight by anchor envelope overlap
    touching_weight: float = 0.5
    intersecting_weight: float = 0.25

    # Interaction classification
    interaction_lookback: int = 200                  # Raw bars scanned after the source
    strong_penetration: float = 0.5                  # Fraction of zone width
    signal_lookback: int = 3                         # Raw bars a signal stays current


@dataclass(frozen=True)
class SnapshotParams:
    """Window sizes exposed in structural snapshots."""
    cbar_window: int = 200
    fractal_window: int = 100
    swing_window: int = 50
    trend_window: int = 20


@dataclass(frozen=True)
class ScoringParams:
    """Supply/demand scoring parameters, resolved per (symbol, timeframe)."""
    layer_weights: dict[str, float] = field(default_factory=lambda: {
        "structure": 0.45,
        "price_action": 0.30,
        "participation": 0.25,
    })
    factor_weights: dict[str, float] = field(default_factory=lambda: {
        "swing_progression": 0.40,
        "trend_alignment": 0.40,
        "zone_position": 0.20,
        "directional_efficiency": 0.40,
        "close_location": 0.20,
        "wick_balance": 0.40,
        "volume_balance": 0.50,
        "volume_confirmation": 0.25,
        "open_interest_flow": 0.25,
    })
    factors_enabled: dict[str, bool] = field(default_factory=lambda: {
        name: True for name in FACTOR_NAMES
    })
    stage_thresholds: dict[str, float] = field(default_factory=lambda: {
        "stable": 0.70,
        "weakening": 0.45,
        "critical": 0.25,
    })
    keyzone_bias_scale: float = 0.35
    window_size: int = 50                            # Raw bars in the scoring window
    min_completed_swings: int = 2                    # Below this the stage is unformed
    oi_sensitivity: float = 10.0                     # Scales relative OI change


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    swing: SwingParams
    trend: TrendParams
    keyzone: KeyZoneParams
    snapshot: SnapshotParams
    scoring: ScoringParams


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        swing=SwingParams(),
        trend=TrendParams(),
        keyzone=KeyZoneParams(),
        snapshot=SnapshotParams(),
        scoring=ScoringParams(),
    )
