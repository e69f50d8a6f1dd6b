"""Supply/demand scoring."""

from .atoms import ATOM_NAMES
from .factors import FACTOR_FUNCTIONS
from .models import (
    FactorContribution,
    ScoringWindow,
    SupplyDemandBias,
    SupplyDemandResult,
    SupplyDemandStage,
    SupplyDemandSummary,
)
from .scorer import SupplyDemandScorer, resolve_bias, resolve_stage

__all__ = [
    "ATOM_NAMES",
    "FACTOR_FUNCTIONS",
    "FactorContribution",
    "ScoringWindow",
    "SupplyDemandBias",
    "SupplyDemandResult",
    "SupplyDemandScorer",
    "SupplyDemandStage",
    "SupplyDemandSummary",
    "resolve_bias",
    "resolve_stage",
]
