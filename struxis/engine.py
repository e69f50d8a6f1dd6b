"""
Multi-context structure engine.

Keeps one TimeframeContext per (symbol, timeframe) and routes bars to them.
Contexts share no mutable state, so independent contexts can be driven in
parallel; a halted context never affects the others.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Optional, Union

import structlog

from .config.defaults import DefaultConfig
from .config.loader import ConfigLoader, ScoringProfile
from .data.models import RawBar, Timeframe
from .errors import ConfigValidationError, DataQualityError, SystemFailureError
from .state.context import Observer, TimeframeContext
from .state.models import CascadeEvent, StructureSnapshot

logger = structlog.get_logger(__name__)

ContextKey = tuple[str, Timeframe]


@dataclass
class ParallelRunReport:
    """Outcome of one ``process_parallel`` call, per context key."""
    events: dict[ContextKey, Optional[CascadeEvent]] = field(default_factory=dict)
    errors: dict[ContextKey, Exception] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors


class StructureEngine:
    """
    Coordinator for all (symbol, timeframe) contexts.

    Contexts are created on first use with the engine's structure
    configuration and the scoring parameters resolved for their scope.
    """

    def __init__(
        self,
        config_dir: Optional[Union[str, Path]] = None,
        structure_overrides: Optional[dict] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.config_loader = ConfigLoader.create(config_dir)
        self.config: DefaultConfig = self.config_loader.merge_structure_config(structure_overrides)
        self.profile: ScoringProfile = self.config_loader.default_profile()
        self.max_workers = max_workers

        self._contexts: dict[ContextKey, TimeframeContext] = {}
        self._observers: list[Observer] = []

        logger.info("Structure engine initialized", config_dir=str(self.config_loader.config_dir))

    @staticmethod
    def key(symbol: str, timeframe: Union[str, Timeframe]) -> ContextKey:
        return symbol, Timeframe.parse(timeframe)

    @property
    def keys(self) -> list[ContextKey]:
        return sorted(self._contexts, key=lambda k: (k[0], list(Timeframe).index(k[1])))

    def register(self, symbol: str, timeframe: Union[str, Timeframe]) -> TimeframeContext:
        """Create the context for a scope if it does not exist yet."""
        key = self.key(symbol, timeframe)
        context = self._contexts.get(key)
        if context is None:
            context = TimeframeContext(
                symbol,
                key[1],
                config=self.config,
                scoring_params=self.profile.resolve(symbol, key[1].value),
            )
            for observer in self._observers:
                context.subscribe(observer)
            self._contexts[key] = context
            logger.info("Context registered", symbol=symbol, timeframe=key[1].value)
        return context

    def context(self, symbol: str, timeframe: Union[str, Timeframe]) -> TimeframeContext:
        """
        Look up an existing context.

        Raises:
            KeyError: If the scope was never registered
        """
        return self._contexts[self.key(symbol, timeframe)]

    def append(self, symbol: str, timeframe: Union[str, Timeframe], bar: RawBar) -> CascadeEvent:
        """Apply one bar to a scope, registering it on first use."""
        return self.register(symbol, timeframe).append(bar)

    def apply_batch(
        self, symbol: str, timeframe: Union[str, Timeframe], bars: Iterable[RawBar]
    ) -> Optional[CascadeEvent]:
        """Apply an ordered batch to a scope as one cascade."""
        return self.register(symbol, timeframe).apply_batch(bars)

    def process_parallel(
        self, batches: Mapping[tuple[str, Union[str, Timeframe]], Iterable[RawBar]]
    ) -> ParallelRunReport:
        """
        Apply batches to several scopes concurrently, one task per scope.

        Failures are isolated: an error in one scope is reported and the
        other scopes still commit.

        Args:
            batches: Ordered bars keyed by (symbol, timeframe)

        Returns:
            Events and errors keyed by context key
        """
        work = []
        for (symbol, timeframe), bars in batches.items():
            context = self.register(symbol, timeframe)
            work.append((self.key(symbol, timeframe), context, tuple(bars)))

        report = ParallelRunReport()
        if not work:
            return report

        with ThreadPoolExecutor(max_workers=self.max_workers or len(work)) as executor:
            futures = {
                key: executor.submit(context.apply_batch, bars)
                for key, context, bars in work
            }
            for key, future in futures.items():
                try:
                    report.events[key] = future.result()
                except (DataQualityError, SystemFailureError) as e:
                    report.errors[key] = e
                    logger.warning(
                        "Context batch failed",
                        symbol=key[0],
                        timeframe=key[1].value,
                        error_type=type(e).__name__,
                        error=str(e),
                    )

        logger.debug(
            "Parallel batch processed",
            contexts=len(work),
            failed=len(report.errors),
        )
        return report

    def snapshot(self, symbol: str, timeframe: Union[str, Timeframe]) -> StructureSnapshot:
        return self.context(symbol, timeframe).snapshot

    def snapshots_for(self, symbol: str) -> dict[Timeframe, StructureSnapshot]:
        """Read-only cross-timeframe view of one symbol."""
        return {
            timeframe: self._contexts[(sym, timeframe)].snapshot
            for sym, timeframe in self.keys
            if sym == symbol
        }

    def subscribe(self, observer: Observer) -> None:
        """Observe commits of every current and future context."""
        self._observers.append(observer)
        for context in self._contexts.values():
            context.subscribe(observer)

    def load_scoring_profile(self, path: Optional[Union[str, Path]] = None) -> ScoringProfile:
        """
        Load a scoring profile and apply it to every context.

        On failure the active profile stays in effect.

        Raises:
            ConfigValidationError: If the document is missing or invalid
        """
        try:
            profile = self.config_loader.load_scoring_profile(path)
        except ConfigValidationError as e:
            logger.error(
                "Scoring profile not applied",
                path=str(path) if path else None,
                errors=[f"{err.field}: {err.message}" for err in e.errors],
            )
            raise

        self.profile = profile
        for (symbol, timeframe), context in self._contexts.items():
            context.set_scoring_params(profile.resolve(symbol, timeframe.value))
        logger.info("Scoring profile applied", source=profile.source, contexts=len(self._contexts))
        return profile

    def reset(self, symbol: Optional[str] = None, timeframe: Optional[Union[str, Timeframe]] = None) -> None:
        """
        Reset contexts, clearing halts.

        Args:
            symbol: Limit to one symbol (all symbols if None)
            timeframe: Limit to one timeframe (all timeframes if None)
        """
        tf = Timeframe.parse(timeframe) if timeframe is not None else None
        for (sym, ctx_tf), context in self._contexts.items():
            if symbol is not None and sym != symbol:
                continue
            if tf is not None and ctx_tf is not tf:
                continue
            context.reset()
