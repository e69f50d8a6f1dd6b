"""
Diagnostic atoms and summary dimensions of a supply/demand window.

The score itself comes from the nine factors. The atoms below read the same
window from a different angle and roll up into four summary dimensions:

    A initiative                  displacement pushed with expanding volume
    B direction_consistency       share of bars that keep the bar direction
    C pullback_role               body dominance, signed by displacement
    D time_efficiency             directional efficiency
    E body_wick_efficiency        average body ratio minus wick share
    F vol_oi_cost_effectiveness   volume confirmation times open interest flow
    G marginal_deterioration      positive once efficiency drops below one half
    H key_behavior_mismatch       +1 when the latest zone signal opposes the move
    I opponent_response_quality   share of bar direction flips, rescaled to [-1, 1]

    dominance      = mean(A, B, C)
    efficiency     = mean(D, E, F)
    sustainability = 1 - mean of the positive parts of G, H, I
    volatility_adjustment = 1 - tanh(mean bar range / last close * scale)
"""

import math
from typing import Sequence

from struxis.config.defaults import ScoringParams
from struxis.metrics.candle_structure import analyze_candle_structure

from .factors import _displacement, _sign, clamp, directional_efficiency, open_interest_flow, volume_confirmation
from .models import FactorContribution, ScoringWindow, SupplyDemandSummary

ATOM_NAMES = (
    "initiative",
    "direction_consistency",
    "pullback_role",
    "time_efficiency",
    "body_wick_efficiency",
    "vol_oi_cost_effectiveness",
    "marginal_deterioration",
    "key_behavior_mismatch",
    "opponent_response_quality",
)

# Mean bar range as a fraction of price; 1% per bar leaves about a quarter
VOLATILITY_SCALE = 100.0


def _direction_flips(window: ScoringWindow) -> int:
    """Changes of bar direction, skipping doji bars with close equal to open."""
    flips = 0
    previous = 0
    for bar in window.bars:
        current = _sign(bar.close - bar.open)
        if current == 0:
            continue
        if previous != 0 and current != previous:
            flips += 1
        previous = current
    return flips


def compute_atoms(window: ScoringWindow, params: ScoringParams) -> dict[str, float]:
    """
    Compute the nine diagnostic atoms of a window.

    Returns:
        Atom values keyed by name in ``ATOM_NAMES`` order, all zero for an
        empty window
    """
    bars = window.bars
    if not bars:
        return {name: 0.0 for name in ATOM_NAMES}

    direction = _sign(_displacement(window))
    efficiency = directional_efficiency(window, params)
    volume = volume_confirmation(window, params)

    total_range = 0.0
    wick_total = 0.0
    body_ratio_total = 0.0
    for bar in bars:
        candle = analyze_candle_structure(bar)
        total_range += candle.range_value
        wick_total += candle.upper_shadow + candle.lower_shadow
        body_ratio_total += candle.body_pct
    average_body_ratio = body_ratio_total / len(bars)
    wick_share = wick_total / total_range if total_range > 0 else 0.0

    flip_ratio = _direction_flips(window) / len(bars)
    consistency = clamp(1.0 - flip_ratio, 0.0, 1.0) * direction

    mismatch = 0.0
    if window.signal is not None and direction != 0:
        signal_side = _sign(window.signal.signed_strength)
        if signal_side != 0:
            mismatch = 1.0 if signal_side != direction else -1.0

    return {
        "initiative": clamp(abs(efficiency) * abs(volume), 0.0, 1.0) * direction,
        "direction_consistency": consistency,
        "pullback_role": clamp(average_body_ratio - 0.4) * direction,
        "time_efficiency": efficiency,
        "body_wick_efficiency": clamp(average_body_ratio - wick_share),
        "vol_oi_cost_effectiveness": clamp(volume * open_interest_flow(window, params)),
        "marginal_deterioration": clamp(0.5 - abs(efficiency)),
        "key_behavior_mismatch": mismatch,
        "opponent_response_quality": clamp(2.0 * flip_ratio - 1.0),
    }


def volatility_adjustment(window: ScoringWindow) -> float:
    """Close to 1 for quiet windows, falling toward 0 as bars widen relative to price."""
    bars = window.bars
    if not bars:
        return 0.0
    reference = abs(bars[-1].close)
    if reference <= 0:
        return 0.0
    mean_range = sum(bar.range for bar in bars) / len(bars)
    return clamp(1.0 - math.tanh(mean_range / reference * VOLATILITY_SCALE), 0.0, 1.0)


def summarize(atoms: dict[str, float], window: ScoringWindow) -> SupplyDemandSummary:
    """Roll the atoms up into the four summary dimensions."""
    if not window.bars:
        return SupplyDemandSummary()

    dominance = (atoms["initiative"] + atoms["direction_consistency"] + atoms["pullback_role"]) / 3.0
    efficiency = (
        atoms["time_efficiency"] + atoms["body_wick_efficiency"] + atoms["vol_oi_cost_effectiveness"]
    ) / 3.0
    strain = (
        max(atoms["marginal_deterioration"], 0.0)
        + max(atoms["key_behavior_mismatch"], 0.0)
        + max(atoms["opponent_response_quality"], 0.0)
    ) / 3.0

    return SupplyDemandSummary(
        dominance=clamp(dominance),
        efficiency=clamp(efficiency),
        sustainability=clamp(1.0 - strain, 0.0, 1.0),
        volatility_adjustment=volatility_adjustment(window),
    )


def explain(
    score: float,
    stage: str,
    bias: str,
    contributions: Sequence[FactorContribution],
    summary: SupplyDemandSummary,
    window_size: int,
    top: int = 3,
) -> str:
    """
    One-line, deterministic account of a result.

    Names the largest contributions (ties keep factor order) followed by the
    summary dimensions.
    """
    if window_size == 0:
        return "empty window"

    ranked = sorted(
        (c for c in contributions if c.enabled and c.contribution != 0.0),
        key=lambda c: -abs(c.contribution),
    )[:top]
    leading = ", ".join(f"{c.name} {c.contribution:+.3f}" for c in ranked) or "none"

    return (
        f"{bias} {stage} score {score:+.3f} over {window_size} bars; "
        f"leading factors: {leading}; "
        f"dominance {summary.dominance:+.3f}, efficiency {summary.efficiency:+.3f}, "
        f"sustainability {summary.sustainability:.3f}, "
        f"volatility adjustment {summary.volatility_adjustment:.3f}"
    )
