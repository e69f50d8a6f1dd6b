"""
Per-(symbol, timeframe) pipeline context.

A context owns one instance of every stage and applies raw bars through the
full cascade (consolidation -> fractals -> swings -> trends -> zones ->
score). Every cascade is atomic: stage checkpoints are taken up front and
restored if anything fails, so observers only ever see committed state.
Observers run after the state lock is released, so they may read, subscribe
or append to the same context.
"""

import threading
from typing import Callable, Iterable, Optional, Sequence, Union

from struxis.config.defaults import DefaultConfig, ScoringParams, get_default_config
from struxis.data.models import RawBar, Timeframe
from struxis.data.series import RawBarSeries
from struxis.data.validators import check_ordering, validate_batch, validate_bar
from struxis.errors import ContextHaltedError, DataQualityError, StateInvariantViolation
from struxis.logging.config import get_pipeline_logger
from struxis.scoring.models import ScoringWindow
from struxis.scoring.scorer import SupplyDemandScorer
from struxis.structure.consolidator import BarConsolidator
from struxis.structure.fractals import FractalDetector
from struxis.structure.swings import Swing, SwingBuilder
from struxis.structure.trends import TrendAggregator
from struxis.utils.time import format_bar_time
from struxis.zones.deriver import KeyZoneDeriver
from struxis.zones.models import KeyZone, ZoneSignal

from .invariants import check_consolidation, check_swings, check_trend
from .models import BacktrackMarker, CascadeEvent, PipelineStage, StructureSnapshot

Observer = Callable[[CascadeEvent, StructureSnapshot], None]


def _window(items: Sequence, size: int) -> tuple:
    """The last ``size`` items as a tuple."""
    if size <= 0:
        return ()
    return tuple(items[-size:])


class TimeframeContext:
    """Single-writer structural state for one (symbol, timeframe)."""

    def __init__(
        self,
        symbol: str,
        timeframe: Union[str, Timeframe],
        config: Optional[DefaultConfig] = None,
        scoring_params: Optional[ScoringParams] = None,
    ) -> None:
        self.symbol = symbol
        self.timeframe = Timeframe.parse(timeframe)
        self.config = config or get_default_config()
        self.scoring_params = scoring_params or self.config.scoring
        self.logger = get_pipeline_logger(__name__, symbol, self.timeframe.value)

        self._lock = threading.Lock()
        # Serializes commit plus delivery across threads; reentrant for observers
        self._delivery = threading.RLock()
        self._observers: list[Observer] = []
        self._halted: Optional[StateInvariantViolation] = None
        self._init_stages()

    def _init_stages(self) -> None:
        self.series = RawBarSeries()
        self.consolidator = BarConsolidator()
        self.detector = FractalDetector()
        self.swing_builder = SwingBuilder(self.config.swing)
        self.trend_aggregator = TrendAggregator(self.config.trend)
        self.zone_deriver = KeyZoneDeriver(self.config.keyzone)
        self.scorer = SupplyDemandScorer(self.scoring_params)

        self._sequence = 0
        self._zones: tuple[KeyZone, ...] = ()
        self._signal: Optional[ZoneSignal] = None
        self._last_event: Optional[CascadeEvent] = None
        self._snapshot = self._build_snapshot(0, (), None)

    # Read side

    @property
    def snapshot(self) -> StructureSnapshot:
        """The last committed snapshot."""
        return self._snapshot

    @property
    def last_event(self) -> Optional[CascadeEvent]:
        return self._last_event

    @property
    def halted(self) -> bool:
        return self._halted is not None

    @property
    def halt_cause(self) -> Optional[StateInvariantViolation]:
        return self._halted

    @property
    def zones(self) -> tuple[KeyZone, ...]:
        return self._zones

    @property
    def signal(self) -> Optional[ZoneSignal]:
        return self._signal

    def subscribe(self, observer: Observer) -> None:
        """Register a callback invoked with (event, snapshot) after every commit."""
        with self._lock:
            self._observers.append(observer)

    # Write side

    def append(self, bar: RawBar) -> CascadeEvent:
        """
        Apply one raw bar through the full cascade.

        Args:
            bar: Next bar in arrival order

        Returns:
            Event describing the committed cascade

        Raises:
            MalformedBarError: If the bar is inconsistent (state untouched)
            InputOrderingError: If the bar is duplicated or out of order (state untouched)
            StateInvariantViolation: If the cascade broke an invariant (context halts)
            ContextHaltedError: If the context was halted earlier
        """
        with self._delivery:
            with self._lock:
                self._ensure_writable()
                try:
                    validate_bar(bar)
                    check_ordering(bar, self.series.last)
                except DataQualityError as e:
                    self.logger.warning(
                        "Bar rejected",
                        error=str(e),
                        seq_id=bar.seq_id,
                        ts=format_bar_time(bar.ts),
                        context=e.context,
                    )
                    raise
                committed = self._run((bar,))
            return self._deliver(*committed)

    def apply_batch(self, bars: Iterable[RawBar]) -> Optional[CascadeEvent]:
        """
        Apply an ordered batch as a single cascade.

        The whole batch is validated before any of it is applied; a single
        bad bar rejects the batch.

        Returns:
            Event for the committed cascade, or None for an empty batch
        """
        bars = tuple(bars)
        with self._delivery:
            with self._lock:
                self._ensure_writable()
                if not bars:
                    return None
                try:
                    validate_batch(bars, self.series.last)
                except DataQualityError as e:
                    self.logger.warning("Batch rejected", error=str(e), batch_size=len(bars), context=e.context)
                    raise
                committed = self._run(bars)
            return self._deliver(*committed)

    def rebuild(self) -> Optional[CascadeEvent]:
        """Recompute every stage from the stored raw bars in one batch."""
        with self._delivery:
            with self._lock:
                self._ensure_writable()
                bars = tuple(self.series.bars)
                self._init_stages()
                self.logger.info("Context rebuild", raw_count=len(bars))
                if not bars:
                    return None
                committed = self._run(bars)
            return self._deliver(*committed)

    def reset(self) -> None:
        """Drop all state, including a halt. Observers and parameters are kept."""
        with self._lock:
            self._init_stages()
            self._halted = None
            self.logger.info("Context reset")

    def set_scoring_params(self, params: ScoringParams) -> None:
        """Replace scoring parameters; they apply from the next commit."""
        with self._lock:
            self.scoring_params = params
            self.scorer = SupplyDemandScorer(params)

    # Cascade

    def _ensure_writable(self) -> None:
        if self._halted is not None:
            raise ContextHaltedError(
                f"Context {self.symbol} {self.timeframe.value} is halted",
                symbol=self.symbol,
                timeframe=self.timeframe.value,
                cause=self._halted,
                context={"invariant": self._halted.invariant, "entity_ids": list(self._halted.entity_ids)},
            )

    def _checkpoint(self) -> tuple:
        return (
            self.series.checkpoint(),
            self.consolidator.checkpoint(),
            self.detector.checkpoint(),
            self.swing_builder.checkpoint(),
            self.trend_aggregator.checkpoint(),
            self.zone_deriver.checkpoint(),
        )

    def _restore(self, memento: tuple) -> None:
        series, consolidator, detector, swings, trends, zones = memento
        self.series.restore(series)
        self.consolidator.restore(consolidator)
        self.detector.restore(detector)
        self.swing_builder.restore(swings)
        self.trend_aggregator.restore(trends)
        self.zone_deriver.restore(zones)

    def _run(self, bars: Sequence[RawBar]) -> tuple[CascadeEvent, StructureSnapshot, tuple[Observer, ...]]:
        """Commit one cascade. Returns what to deliver once the lock is released."""
        memento = self._checkpoint()
        raw_ids = [bar.seq_id for bar in bars]
        try:
            event, zones, signal = self._cascade(bars)
            snapshot = self._build_snapshot(event.sequence, zones, signal)
        except StateInvariantViolation as e:
            self._restore(memento)
            self._halt(e)
            raise
        except Exception as e:
            self._restore(memento)
            violation = StateInvariantViolation(
                f"Cascade failed: {e}",
                invariant="cascade",
                entity_ids=raw_ids,
                context={"error_type": type(e).__name__, "error": str(e)},
            )
            self._halt(violation)
            raise violation from e

        self._sequence = event.sequence
        self._zones = zones
        self._signal = signal
        self._last_event = event
        self._snapshot = snapshot

        self.logger.debug(
            "Cascade committed",
            sequence=event.sequence,
            raw_ids=raw_ids if len(raw_ids) <= 10 else [raw_ids[0], raw_ids[-1]],
            backtracks=len(event.backtracks),
        )
        return event, snapshot, tuple(self._observers)

    def _cascade(self, bars: Sequence[RawBar]) -> tuple[CascadeEvent, tuple[KeyZone, ...], Optional[ZoneSignal]]:
        for bar in bars:
            self.series.append(bar)

        consolidation = self.consolidator.extend(bars)
        cbars = self.consolidator.bars
        touched = consolidation.opened + consolidation.revised
        check_consolidation(self.series, cbars, min(touched) if touched else len(cbars) - 1)

        fractals = self.detector.update(cbars)

        completed_before = len(self.swing_builder.completed)
        swings = self.swing_builder.update(cbars, fractals.confirmed)
        newly_completed = self.swing_builder.completed[completed_before:]
        check_swings(newly_completed, self.swing_builder.active)

        trends = self.trend_aggregator.update(newly_completed)
        check_trend(self.trend_aggregator.current, self._swing_by_id)

        derived = self.zone_deriver.derive(
            self.swing_builder.completed,
            self.trend_aggregator.completed,
            self.series,
            self._swing_by_id,
        )
        zones, signal = self.zone_deriver.evaluate(derived, self.series)
        zones = tuple(zones)

        backtracks = (
            [BacktrackMarker(PipelineStage.CONSOLIDATION, cbar_id) for cbar_id in consolidation.revised]
            + [BacktrackMarker(PipelineStage.FRACTAL, cbar_id) for cbar_id in fractals.revised]
            + [BacktrackMarker(PipelineStage.SWING, swing_id) for swing_id in swings.revised]
            + [BacktrackMarker(PipelineStage.TREND, trend_id) for trend_id in trends.revised]
        )

        event = CascadeEvent(
            symbol=self.symbol,
            timeframe=self.timeframe.value,
            sequence=self._sequence + 1,
            raw_ids=tuple(bar.seq_id for bar in bars),
            cbar_ids=consolidation.changed,
            fractal_ids=tuple(fractal.cbar_id for fractal in fractals.confirmed),
            swing_ids=swings.changed,
            trend_ids=trends.changed,
            zone_ids=self._changed_zone_ids(zones),
            backtracks=tuple(backtracks),
        )
        return event, zones, signal

    def _changed_zone_ids(self, zones: Sequence[KeyZone]) -> tuple[str, ...]:
        previous = {zone.zone_id: zone for zone in self._zones}
        current = {zone.zone_id: zone for zone in zones}
        changed = [zone_id for zone_id, zone in current.items() if previous.get(zone_id) != zone]
        changed.extend(zone_id for zone_id in previous if zone_id not in current)
        return tuple(sorted(changed))

    def _swing_by_id(self, swing_id: int) -> Optional[Swing]:
        completed = self.swing_builder.completed
        index = swing_id - 1
        if 0 <= index < len(completed) and completed[index].id == swing_id:
            return completed[index]
        for swing in completed:
            if swing.id == swing_id:
                return swing
        return None

    def _scoring_window(self, zones: tuple[KeyZone, ...], signal: Optional[ZoneSignal]) -> ScoringWindow:
        bars = tuple(self.series.tail(self.scoring_params.window_size))
        swings: tuple[Swing, ...] = ()
        if bars:
            first_id = bars[0].seq_id
            swings = tuple(
                swing for swing in _window(self.swing_builder.completed, self.config.snapshot.swing_window)
                if swing.end_raw_id >= first_id
            )
        return ScoringWindow(
            bars=bars,
            swings=swings,
            active_swing=self.swing_builder.active,
            trend=self.trend_aggregator.current,
            zones=zones,
            signal=signal,
        )

    def _build_snapshot(
        self, sequence: int, zones: tuple[KeyZone, ...], signal: Optional[ZoneSignal]
    ) -> StructureSnapshot:
        params = self.config.snapshot
        last = self.series.last
        return StructureSnapshot(
            symbol=self.symbol,
            timeframe=self.timeframe.value,
            sequence=sequence,
            raw_count=len(self.series),
            last_raw_id=last.seq_id if last else None,
            cbars=_window(self.consolidator.bars, params.cbar_window),
            fractals=_window(self.detector.confirmed, params.fractal_window),
            fractal_candidates=self.detector.candidates,
            swings=_window(self.swing_builder.completed, params.swing_window),
            active_swing=self.swing_builder.active,
            trends=_window(self.trend_aggregator.completed, params.trend_window),
            active_trend=self.trend_aggregator.active,
            zones=zones,
            signal=signal,
            supply_demand=self.scorer.score(self._scoring_window(zones, signal), self.scoring_params),
        )

    def _halt(self, violation: StateInvariantViolation) -> None:
        self._halted = violation
        self.logger.error(
            "Context halted",
            invariant=violation.invariant,
            entity_ids=list(violation.entity_ids),
            error=str(violation),
        )

    def _deliver(
        self, event: CascadeEvent, snapshot: StructureSnapshot, observers: tuple[Observer, ...]
    ) -> CascadeEvent:
        for observer in observers:
            try:
                observer(event, snapshot)
            except Exception as e:
                # A failing observer cannot undo a commit
                self.logger.error(
                    "Observer failed",
                    sequence=event.sequence,
                    error=str(e),
                    exc_info=True,
                )
        return event
