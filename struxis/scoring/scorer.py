"""
Supply/demand scoring.

Three layers of three factors each are combined linearly:

    layer_score = sum(factor_weight * factor_value)       (enabled factors)
    score = sum(layer_weight * layer_score) + keyzone_bias_scale * signal

The score is left unclamped so that changing a single weight only ever moves
its own term. Summation follows the fixed layer and factor order.

The result also carries the diagnostic atoms, their summary dimensions and a
one-line explanation (see ``atoms``). None of them feed back into the score.
"""

from typing import Optional

import structlog

from struxis.config.defaults import LAYER_FACTORS, ScoringParams

from .atoms import compute_atoms, explain, summarize
from .factors import FACTOR_FUNCTIONS
from .models import (
    FactorContribution,
    ScoringWindow,
    SupplyDemandBias,
    SupplyDemandResult,
    SupplyDemandStage,
)

logger = structlog.get_logger(__name__)


def resolve_stage(
    score: float,
    completed_swings: int,
    window_size: int,
    params: ScoringParams,
) -> SupplyDemandStage:
    """
    Map a score to a stage.

    Args:
        score: Combined score
        completed_swings: Completed swings visible to the window
        window_size: Raw bars in the window
        params: Scoring parameters with stage thresholds

    Returns:
        UNFORMED until enough structure exists, otherwise the stage whose
        threshold ``abs(score)`` reaches
    """
    if window_size == 0 or completed_swings < params.min_completed_swings:
        return SupplyDemandStage.UNFORMED

    magnitude = abs(score)
    thresholds = params.stage_thresholds
    if magnitude >= thresholds["stable"]:
        return SupplyDemandStage.STABLE
    if magnitude >= thresholds["weakening"]:
        return SupplyDemandStage.WEAKENING
    if magnitude >= thresholds["critical"]:
        return SupplyDemandStage.CRITICAL
    return SupplyDemandStage.FAILED


def resolve_bias(score: float) -> SupplyDemandBias:
    if score > 0:
        return SupplyDemandBias.DEMAND
    if score < 0:
        return SupplyDemandBias.SUPPLY
    return SupplyDemandBias.NEUTRAL


class SupplyDemandScorer:
    """Stateless scorer; the same window and parameters give the same result."""

    def __init__(self, params: Optional[ScoringParams] = None) -> None:
        self.params = params or ScoringParams()

    def score(self, window: ScoringWindow, params: Optional[ScoringParams] = None) -> SupplyDemandResult:
        """
        Score a window.

        Args:
            window: Bars and structure to score
            params: Overrides the scorer's parameters for this call

        Returns:
            SupplyDemandResult with per-factor contributions
        """
        params = params or self.params

        contributions: list[FactorContribution] = []
        layer_scores: dict[str, float] = {}
        score = 0.0

        for layer, names in LAYER_FACTORS.items():
            layer_weight = params.layer_weights.get(layer, 0.0)
            layer_score = 0.0
            for name in names:
                enabled = params.factors_enabled.get(name, True)
                weight = params.factor_weights.get(name, 0.0)
                value = FACTOR_FUNCTIONS[name](window, params) if enabled else 0.0
                if enabled:
                    layer_score += weight * value
                contributions.append(FactorContribution(
                    name=name,
                    layer=layer,
                    enabled=enabled,
                    value=value,
                    weight=weight,
                    layer_weight=layer_weight,
                    contribution=layer_weight * weight * value if enabled else 0.0,
                ))
            layer_scores[layer] = layer_score
            score += layer_weight * layer_score

        keyzone_bias = 0.0
        if window.signal is not None:
            keyzone_bias = params.keyzone_bias_scale * window.signal.signed_strength
            score += keyzone_bias

        stage = resolve_stage(score, len(window.swings), len(window.bars), params)
        bias = resolve_bias(score)
        atoms = compute_atoms(window, params)
        summary = summarize(atoms, window)
        result = SupplyDemandResult(
            score=score,
            stage=stage,
            bias=bias,
            factors=tuple(contributions),
            layer_scores=layer_scores,
            keyzone_bias=keyzone_bias,
            window_size=len(window.bars),
            atoms=atoms,
            summary=summary,
            explanation=explain(score, stage.value, bias.value, contributions, summary, len(window.bars)),
        )

        logger.debug(
            "Supply/demand scored",
            score=round(score, 6),
            stage=stage.value,
            bias=result.bias.value,
            window_size=result.window_size,
        )
        return result
