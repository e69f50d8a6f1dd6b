"""Configuration validation utilities."""

import math
from dataclasses import dataclass
from typing import Any

from struxis.data.models import Timeframe

from .defaults import FACTOR_NAMES, LAYER_FACTORS

PROFILE_SECTIONS = ("default", "timeframe", "symbol", "symbol_timeframe")

SCORING_KEYS = (
    "layer_weights",
    "factor_weights",
    "factors_enabled",
    "stage_thresholds",
    "keyzone_bias_scale",
    "window_size",
    "min_completed_swings",
    "oi_sensitivity",
)

STAGE_NAMES = ("stable", "weakening", "critical")

MAX_WEIGHT = 10.0
TIMEFRAME_LABELS = tuple(tf.value for tf in Timeframe)


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_scoring_params(params: Any, path: str = "") -> list[ValidationError]:
        """
        Validate a (possibly partial) scoring parameter mapping.

        Args:
            params: Mapping taken from one overlay entry
            path: Dotted location of the mapping, used in error fields

        Returns:
            List of validation errors, empty when valid
        """
        prefix = f"{path}." if path else ""
        if not isinstance(params, dict):
            return [ValidationError(
                field=path or "<root>",
                message="Must be a mapping of scoring parameters",
                value=params
            )]

        errors = []
        for key, value in params.items():
            field = f"{prefix}{key}"
            if key not in SCORING_KEYS:
                errors.append(ValidationError(field=field, message="Unknown scoring parameter", value=value))
                continue
            if value is None:
                errors.append(ValidationError(field=field, message="Missing required parameter", value=value))
                continue

            if key == "layer_weights":
                errors.extend(ConfigValidator._validate_weight_map(value, tuple(LAYER_FACTORS), field))
            elif key == "factor_weights":
                errors.extend(ConfigValidator._validate_weight_map(value, FACTOR_NAMES, field))
            elif key == "factors_enabled":
                errors.extend(ConfigValidator._validate_toggle_map(value, field))
            elif key == "stage_thresholds":
                errors.extend(ConfigValidator._validate_threshold_map(value, field))
            elif key == "keyzone_bias_scale":
                if not _is_number(value) or value < 0 or value > 1:
                    errors.append(ValidationError(
                        field=field,
                        message="Must be a number between 0 and 1",
                        value=value
                    ))
            elif key == "window_size":
                if not _is_int(value) or value < 2 or value > 5000:
                    errors.append(ValidationError(
                        field=field,
                        message="Must be an integer between 2 and 5000",
                        value=value
                    ))
            elif key == "min_completed_swings":
                if not _is_int(value) or value < 0:
                    errors.append(ValidationError(
                        field=field,
                        message="Must be a non-negative integer",
                        value=value
                    ))
            elif key == "oi_sensitivity":
                if not _is_number(value) or value <= 0:
                    errors.append(ValidationError(
                        field=field,
                        message="Must be a positive number",
                        value=value
                    ))

        return errors

    @staticmethod
    def validate_stage_order(thresholds: dict[str, Any], path: str = "stage_thresholds") -> list[ValidationError]:
        """Check that resolved stage thresholds are strictly descending."""
        stable = thresholds.get("stable")
        weakening = thresholds.get("weakening")
        critical = thresholds.get("critical")
        if not all(_is_number(v) for v in (stable, weakening, critical)):
            # Reported by the per-key checks
            return []
        if not stable > weakening > critical:
            return [ValidationError(
                field=path,
                message="Must satisfy stable > weakening > critical",
                value={"stable": stable, "weakening": weakening, "critical": critical}
            )]
        return []

    @staticmethod
    def validate_overlay_key(section: str, key: Any) -> list[ValidationError]:
        """
        Validate that an overlay key can be resolved.

        Args:
            section: Profile section name
            key: Entry key inside the section

        Returns:
            List of validation errors, empty when the key is resolvable
        """
        field = f"{section}.{key}"
        if not isinstance(key, str) or not key.strip():
            return [ValidationError(field=field, message="Overlay key must be a non-empty string", value=key)]

        normalized = key.strip().lower()
        if section == "timeframe":
            if normalized not in TIMEFRAME_LABELS:
                return [ValidationError(field=field, message="Unknown timeframe", value=key)]
        elif section == "symbol":
            if "." in normalized or normalized == "*":
                return [ValidationError(
                    field=field,
                    message="Symbol keys may not contain '.' or be a wildcard",
                    value=key
                )]
        elif section == "symbol_timeframe":
            symbol, sep, timeframe = normalized.rpartition(".")
            if not sep or not symbol or not timeframe:
                return [ValidationError(
                    field=field,
                    message="Expected '<symbol>.<timeframe>' with '*' allowed on one side",
                    value=key
                )]
            if symbol == "*" and timeframe == "*":
                return [ValidationError(field=field, message="'*.*' duplicates the default section", value=key)]
            if timeframe != "*" and timeframe not in TIMEFRAME_LABELS:
                return [ValidationError(field=field, message="Unknown timeframe", value=key)]
        return []

    @staticmethod
    def validate_structure_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate structure parameter overrides (swing, trend, keyzone, snapshot)."""
        errors = []
        rules: dict[str, dict[str, tuple[str, Any]]] = {
            "swing": {
                "touch_min_cbar_gap": ("int>=1", None),
                "touch_min_ratio": ("ratio", None),
            },
            "trend": {
                "max_retracement": ("positive", None),
            },
            "keyzone": {
                "max_swing_sources": ("int>=0", None),
                "max_trend_sources": ("int>=0", None),
                "offset_basis": ("choice", ("atr", "range")),
                "offset_atr_mult": ("positive", None),
                "offset_range_ratio": ("ratio", None),
                "atr_period": ("int>=1", None),
                "touching_weight": ("ratio", None),
                "intersecting_weight": ("ratio", None),
                "interaction_lookback": ("int>=1", None),
                "strong_penetration": ("ratio", None),
                "signal_lookback": ("int>=1", None),
            },
            "snapshot": {
                "cbar_window": ("int>=1", None),
                "fractal_window": ("int>=1", None),
                "swing_window": ("int>=1", None),
                "trend_window": ("int>=1", None),
            },
        }

        for section, values in params.items():
            if section not in rules:
                errors.append(ValidationError(field=section, message="Unknown structure section", value=values))
                continue
            if not isinstance(values, dict):
                errors.append(ValidationError(field=section, message="Must be a mapping", value=values))
                continue
            for key, value in values.items():
                field = f"{section}.{key}"
                if key not in rules[section]:
                    errors.append(ValidationError(field=field, message="Unknown parameter", value=value))
                    continue
                kind, choices = rules[section][key]
                if value is None:
                    errors.append(ValidationError(field=field, message="Missing required parameter", value=value))
                elif kind == "int>=1" and (not _is_int(value) or value < 1):
                    errors.append(ValidationError(field=field, message="Must be a positive integer", value=value))
                elif kind == "int>=0" and (not _is_int(value) or value < 0):
                    errors.append(ValidationError(field=field, message="Must be a non-negative integer", value=value))
                elif kind == "ratio" and (not _is_number(value) or value <= 0 or value > 1):
                    errors.append(ValidationError(
                        field=field,
                        message="Must be a positive number between 0 and 1",
                        value=value
                    ))
                elif kind == "positive" and (not _is_number(value) or value <= 0):
                    errors.append(ValidationError(field=field, message="Must be a positive number", value=value))
                elif kind == "choice" and value not in choices:
                    errors.append(ValidationError(
                        field=field,
                        message=f"Must be one of {', '.join(choices)}",
                        value=value
                    ))

        return errors

    @staticmethod
    def _validate_weight_map(value: Any, names: tuple[str, ...], path: str) -> list[ValidationError]:
        if not isinstance(value, dict):
            return [ValidationError(field=path, message="Must be a mapping of weights", value=value)]
        errors = []
        for name, weight in value.items():
            field = f"{path}.{name}"
            if name not in names:
                errors.append(ValidationError(field=field, message="Unknown name", value=weight))
            elif weight is None:
                errors.append(ValidationError(field=field, message="Missing required parameter", value=weight))
            elif not _is_number(weight) or weight < 0 or weight > MAX_WEIGHT:
                errors.append(ValidationError(
                    field=field,
                    message=f"Weight must be a number between 0 and {MAX_WEIGHT:g}",
                    value=weight
                ))
        return errors

    @staticmethod
    def _validate_toggle_map(value: Any, path: str) -> list[ValidationError]:
        if not isinstance(value, dict):
            return [ValidationError(field=path, message="Must be a mapping of factor toggles", value=value)]
        errors = []
        for name, enabled in value.items():
            field = f"{path}.{name}"
            if name not in FACTOR_NAMES:
                errors.append(ValidationError(field=field, message="Unknown factor", value=enabled))
            elif not isinstance(enabled, bool):
                errors.append(ValidationError(field=field, message="Must be a boolean", value=enabled))
        return errors

    @staticmethod
    def _validate_threshold_map(value: Any, path: str) -> list[ValidationError]:
        if not isinstance(value, dict):
            return [ValidationError(field=path, message="Must be a mapping of stage thresholds", value=value)]
        errors = []
        for name, threshold in value.items():
            field = f"{path}.{name}"
            if name not in STAGE_NAMES:
                errors.append(ValidationError(field=field, message="Unknown stage", value=threshold))
            elif threshold is None:
                errors.append(ValidationError(field=field, message="Missing required parameter", value=threshold))
            elif not _is_number(threshold) or threshold < 0 or threshold > MAX_WEIGHT:
                errors.append(ValidationError(
                    field=field,
                    message=f"Threshold must be a number between 0 and {MAX_WEIGHT:g}",
                    value=threshold
                ))
        return errors
