"""KeyZone derivation and interaction classification."""

from .deriver import KeyZoneDeriver, classify_interaction, refine_bounds
from .models import KeyZone, ZoneBehavior, ZoneOrigin, ZoneReaction, ZoneRole, ZoneSignal, ZoneState

__all__ = [
    "KeyZone",
    "KeyZoneDeriver",
    "ZoneBehavior",
    "ZoneOrigin",
    "ZoneReaction",
    "ZoneRole",
    "ZoneSignal",
    "ZoneState",
    "classify_interaction",
    "refine_bounds",
]
