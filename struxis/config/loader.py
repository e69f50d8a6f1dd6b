"""Configuration loader with layered scoring overlays."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import structlog
import yaml

from struxis.errors import ConfigValidationError

from .defaults import (
    DefaultConfig,
    KeyZoneParams,
    ScoringParams,
    SnapshotParams,
    SwingParams,
    TrendParams,
    get_default_config,
)
from .validation import PROFILE_SECTIONS, ConfigValidator, ValidationError

logger = structlog.get_logger(__name__)

SCORING_PROFILE_FILE = "scoring.yaml"


def dataclass_to_dict(obj: Any) -> Any:
    """Convert nested dataclasses to dictionaries, copying mapping fields."""
    if hasattr(obj, '__dataclass_fields__'):
        result = {}
        for field_name in obj.__dataclass_fields__:
            result[field_name] = dataclass_to_dict(getattr(obj, field_name))
        return result
    if isinstance(obj, dict):
        return {key: dataclass_to_dict(value) for key, value in obj.items()}
    return obj


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def normalize_key(key: str) -> str:
    """Overlay keys and lookups are trimmed and lower-cased."""
    return key.strip().lower()


@dataclass(frozen=True)
class ScoringProfile:
    """
    A validated scoring configuration document.

    Resolution precedence, lowest to highest:
    1. Built-in defaults
    2. ``default`` section
    3. ``timeframe`` entry
    4. ``symbol`` entry
    5. ``symbol_timeframe`` wildcard entries (``*.tf`` then ``sym.*``)
    6. ``symbol_timeframe`` exact entry (``sym.tf``)
    """

    base: dict[str, Any]
    default: dict[str, Any] = field(default_factory=dict)
    timeframe: dict[str, dict[str, Any]] = field(default_factory=dict)
    symbol: dict[str, dict[str, Any]] = field(default_factory=dict)
    symbol_timeframe: dict[str, dict[str, Any]] = field(default_factory=dict)
    source: str = "<defaults>"

    def layers_for(self, symbol: Optional[str], timeframe: Optional[str]) -> list[dict[str, Any]]:
        """Overlay entries that apply to a scope, in precedence order."""
        sym = normalize_key(symbol) if symbol else None
        tf = normalize_key(str(getattr(timeframe, "value", timeframe))) if timeframe else None

        candidates: list[Optional[dict[str, Any]]] = [self.default]
        if tf:
            candidates.append(self.timeframe.get(tf))
        if sym:
            candidates.append(self.symbol.get(sym))
        if tf:
            candidates.append(self.symbol_timeframe.get(f"*.{tf}"))
        if sym:
            candidates.append(self.symbol_timeframe.get(f"{sym}.*"))
        if sym and tf:
            candidates.append(self.symbol_timeframe.get(f"{sym}.{tf}"))

        return [layer for layer in candidates if layer]

    def resolve_dict(self, symbol: Optional[str] = None, timeframe: Optional[str] = None) -> dict[str, Any]:
        """Resolve the effective parameter mapping for a scope."""
        config = dataclass_to_dict(self.base)
        for layer in self.layers_for(symbol, timeframe):
            config = deep_merge(config, layer)
        return config

    def resolve(self, symbol: Optional[str] = None, timeframe: Optional[str] = None) -> ScoringParams:
        """Resolve effective scoring parameters for a (symbol, timeframe) scope."""
        return ScoringParams(**self.resolve_dict(symbol, timeframe))


@dataclass(frozen=True)
class ConfigLoader:
    """Loads pipeline and scoring configuration."""

    config_dir: Path
    defaults: DefaultConfig

    @classmethod
    def create(cls, config_dir: Optional[Union[str, Path]] = None) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(__file__).parent.parent.parent / "config"

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
        )

    def default_profile(self) -> ScoringProfile:
        """Profile carrying only the built-in scoring defaults."""
        return ScoringProfile(base=dataclass_to_dict(self.defaults.scoring))

    def load_scoring_profile(self, path: Optional[Union[str, Path]] = None) -> ScoringProfile:
        """
        Load and validate a scoring profile document.

        Args:
            path: Explicit YAML file; defaults to ``scoring.yaml`` in the
                config directory, which may be absent

        Returns:
            Validated scoring profile

        Raises:
            ConfigValidationError: If the file is missing, unparsable or invalid
        """
        explicit = path is not None
        profile_path = Path(path) if explicit else self.config_dir / SCORING_PROFILE_FILE

        if not profile_path.exists():
            if explicit:
                raise ConfigValidationError(
                    "Scoring profile not found",
                    source=str(profile_path),
                )
            logger.debug("No scoring profile found, using defaults", path=str(profile_path))
            return self.default_profile()

        with open(profile_path) as f:
            text = f.read()

        return self.parse_scoring_text(text, source=str(profile_path))

    def parse_scoring_text(self, text: str, source: str = "<text>") -> ScoringProfile:
        """Parse a YAML scoring document."""
        try:
            document = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigValidationError(
                "Scoring profile is not valid YAML",
                source=source,
                context={"yaml_error": str(e)},
            ) from e

        return self.parse_scoring_profile(document, source=source)

    def parse_scoring_profile(self, document: Any, source: str = "<memory>") -> ScoringProfile:
        """
        Validate a scoring document and build a profile from it.

        Args:
            document: Parsed document (mapping with the profile sections)
            source: Description of where the document came from

        Returns:
            Validated scoring profile

        Raises:
            ConfigValidationError: If any entry is malformed, out of range or unresolvable
        """
        if document is None:
            document = {}

        if not isinstance(document, dict):
            raise ConfigValidationError(
                "Scoring profile must be a mapping",
                errors=[ValidationError(field="<root>", message="Must be a mapping", value=document)],
                source=source,
            )

        errors: list[ValidationError] = []
        sections: dict[str, Any] = {"default": {}, "timeframe": {}, "symbol": {}, "symbol_timeframe": {}}

        for section, body in document.items():
            if section not in PROFILE_SECTIONS:
                errors.append(ValidationError(field=str(section), message="Unknown profile section", value=body))
                continue
            if body is None:
                continue

            if section == "default":
                errors.extend(ConfigValidator.validate_scoring_params(body, "default"))
                if isinstance(body, dict):
                    sections["default"] = body
                continue

            if not isinstance(body, dict):
                errors.append(ValidationError(field=section, message="Must be a mapping of overlays", value=body))
                continue

            for key, entry in body.items():
                key_errors = ConfigValidator.validate_overlay_key(section, key)
                if key_errors:
                    errors.extend(key_errors)
                    continue
                normalized = normalize_key(key)
                if normalized in sections[section]:
                    errors.append(ValidationError(
                        field=f"{section}.{key}",
                        message="Duplicate overlay key after normalization",
                        value=key
                    ))
                    continue
                entry_errors = ConfigValidator.validate_scoring_params(entry, f"{section}.{key}")
                errors.extend(entry_errors)
                if not entry_errors:
                    sections[section][normalized] = entry

        profile = ScoringProfile(
            base=dataclass_to_dict(self.defaults.scoring),
            default=sections["default"],
            timeframe=sections["timeframe"],
            symbol=sections["symbol"],
            symbol_timeframe=sections["symbol_timeframe"],
            source=source,
        )

        if not errors:
            errors.extend(self._validate_resolved_scopes(profile))

        if errors:
            logger.error(
                "Scoring profile rejected",
                source=source,
                errors=[f"{err.field}: {err.message} (got: {err.value!r})" for err in errors]
            )
            raise ConfigValidationError("Scoring profile rejected", errors=errors, source=source)

        logger.info(
            "Scoring profile loaded",
            source=source,
            timeframes=sorted(profile.timeframe),
            symbols=sorted(profile.symbol),
            symbol_timeframes=sorted(profile.symbol_timeframe),
        )
        return profile

    def merge_structure_config(self, overrides: Optional[dict[str, Any]] = None) -> DefaultConfig:
        """
        Merge structure parameter overrides onto the defaults.

        Args:
            overrides: Mapping with optional swing/trend/keyzone/snapshot sections

        Returns:
            Complete configuration with the overrides applied

        Raises:
            ConfigValidationError: If any override is unknown or out of range
        """
        overrides = overrides or {}
        errors = ConfigValidator.validate_structure_params(overrides)
        if errors:
            raise ConfigValidationError("Structure configuration rejected", errors=errors)

        merged = deep_merge(dataclass_to_dict(self.defaults), overrides)
        return DefaultConfig(
            swing=SwingParams(**merged["swing"]),
            trend=TrendParams(**merged["trend"]),
            keyzone=KeyZoneParams(**merged["keyzone"]),
            snapshot=SnapshotParams(**merged["snapshot"]),
            scoring=ScoringParams(**merged["scoring"]),
        )

    def _validate_resolved_scopes(self, profile: ScoringProfile) -> list[ValidationError]:
        """
        Cross-field checks on every scope the document can resolve.

        Declared entries are checked first. When each of them is valid on its
        own, every pairing of a declared symbol with a declared timeframe is
        checked too, since layers combine only at resolution time.
        """
        scopes: list[tuple[str, Optional[str], Optional[str]]] = [("default", None, None)]
        scopes.extend((f"timeframe.{tf}", None, tf) for tf in profile.timeframe)
        scopes.extend((f"symbol.{sym}", sym, None) for sym in profile.symbol)

        symbols = list(profile.symbol)
        timeframes = list(profile.timeframe)
        for key in profile.symbol_timeframe:
            sym, _, tf = key.rpartition(".")
            scopes.append((
                f"symbol_timeframe.{key}",
                None if sym == "*" else sym,
                None if tf == "*" else tf,
            ))
            if sym != "*" and sym not in symbols:
                symbols.append(sym)
            if tf != "*" and tf not in timeframes:
                timeframes.append(tf)

        errors = self._check_stage_order(profile, scopes)
        if errors:
            return errors

        combined = [
            (f"scope.{sym}.{tf}", sym, tf)
            for sym in symbols
            for tf in timeframes
        ]
        return self._check_stage_order(profile, combined)

    @staticmethod
    def _check_stage_order(
        profile: ScoringProfile, scopes: list[tuple[str, Optional[str], Optional[str]]]
    ) -> list[ValidationError]:
        errors = []
        for label, sym, tf in scopes:
            resolved = profile.resolve_dict(sym, tf)
            errors.extend(ConfigValidator.validate_stage_order(
                resolved["stage_thresholds"], f"{label}.stage_thresholds"
            ))
        return errors
