"""Tests for the multi-context structure engine"""

from unittest.mock import Mock

import pytest

from struxis.data.models import Timeframe
from struxis.engine import StructureEngine
from struxis.errors import ConfigValidationError, MalformedBarError, StateInvariantViolation


class TestContextRegistry:
    """Test context creation and lookup"""

    def setup_method(self):
        self.engine = StructureEngine()

    def test_register_is_idempotent(self):
        first = self.engine.register("I2601", "5m")
        assert self.engine.register("I2601", Timeframe.M5) is first

    def test_unknown_context(self):
        with pytest.raises(KeyError):
            self.engine.context("I2601", "5m")

    def test_unknown_timeframe(self):
        with pytest.raises(ValueError):
            self.engine.register("I2601", "7m")

    def test_append_registers_on_first_use(self, make_bar):
        event = self.engine.append("I2601", "5m", make_bar(0, 11, 10))

        assert event.sequence == 1
        assert self.engine.snapshot("I2601", "5m").raw_count == 1

    def test_keys_sorted_by_symbol_then_timeframe(self):
        self.engine.register("RB2605", "1h")
        self.engine.register("I2601", "4h")
        self.engine.register("I2601", "1m")

        assert self.engine.keys == [
            ("I2601", Timeframe.M1),
            ("I2601", Timeframe.H4),
            ("RB2605", Timeframe.H1),
        ]

    def test_snapshots_for_symbol(self, zigzag_bars):
        self.engine.apply_batch("I2601", "5m", zigzag_bars)
        self.engine.apply_batch("I2601", "1h", zigzag_bars[:10])
        self.engine.apply_batch("RB2605", "5m", zigzag_bars[:5])

        views = self.engine.snapshots_for("I2601")

        assert list(views) == [Timeframe.M5, Timeframe.H1]
        assert views[Timeframe.M5].raw_count == 31
        assert views[Timeframe.H1].raw_count == 10

    def test_invalid_structure_overrides(self):
        with pytest.raises(ConfigValidationError):
            StructureEngine(structure_overrides={"swing": {"touch_min_cbar_gap": 0}})

    def test_structure_overrides_reach_contexts(self):
        engine = StructureEngine(structure_overrides={"trend": {"max_retracement": 0.5}})
        context = engine.register("I2601", "5m")

        assert context.trend_aggregator.params.max_retracement == 0.5


class TestParallelProcessing:
    """Test concurrent batches with failure isolation"""

    def setup_method(self):
        self.engine = StructureEngine(max_workers=4)

    def test_independent_contexts(self, zigzag_bars):
        report = self.engine.process_parallel({
            ("I2601", "5m"): zigzag_bars,
            ("I2601", "1h"): zigzag_bars,
            ("RB2605", "5m"): zigzag_bars[:12],
        })

        assert report.success
        assert set(report.events) == {
            ("I2601", Timeframe.M5), ("I2601", Timeframe.H1), ("RB2605", Timeframe.M5),
        }
        five = self.engine.snapshot("I2601", "5m")
        hour = self.engine.snapshot("I2601", "1h")
        assert five.swings == hour.swings
        assert five.zones == hour.zones
        assert self.engine.snapshot("RB2605", "5m").raw_count == 12

    def test_bad_batch_isolated(self, zigzag_bars, make_bar):
        report = self.engine.process_parallel({
            ("I2601", "5m"): zigzag_bars,
            ("RB2605", "5m"): [make_bar(0, 11, 10), make_bar(1, 9, 10)],
        })

        assert not report.success
        assert isinstance(report.errors[("RB2605", Timeframe.M5)], MalformedBarError)
        assert report.events[("I2601", Timeframe.M5)].sequence == 1
        assert self.engine.snapshot("RB2605", "5m").raw_count == 0

    def test_halted_context_isolated(self, zigzag_bars, make_bar):
        broken = self.engine.register("RB2605", "5m")
        broken.zone_deriver.evaluate = Mock(side_effect=RuntimeError("boom"))

        report = self.engine.process_parallel({
            ("I2601", "5m"): zigzag_bars[:20],
            ("RB2605", "5m"): zigzag_bars[:20],
        })

        assert isinstance(report.errors[("RB2605", Timeframe.M5)], StateInvariantViolation)
        assert broken.halted
        healthy = self.engine.context("I2601", "5m")
        assert not healthy.halted
        healthy.append(zigzag_bars[20])
        assert healthy.snapshot.raw_count == 21

    def test_empty_batches(self):
        report = self.engine.process_parallel({})
        assert report.success
        assert report.events == {}


class TestEngineObservers:
    """Test engine-wide subscriptions"""

    def test_observer_sees_existing_and_future_contexts(self, make_bar):
        engine = StructureEngine()
        engine.register("I2601", "5m")
        observer = Mock()
        engine.subscribe(observer)

        engine.append("I2601", "5m", make_bar(0, 11, 10))
        engine.append("RB2605", "1h", make_bar(0, 11, 10))

        assert observer.call_count == 2
        scopes = [(call[0][0].symbol, call[0][0].timeframe) for call in observer.call_args_list]
        assert scopes == [("I2601", "5m"), ("RB2605", "1h")]


class TestScoringProfiles:
    """Test runtime profile reloads"""

    def setup_method(self):
        self.engine = StructureEngine()

    def test_profile_applied_per_scope(self, tmp_path):
        five = self.engine.register("I2601", "5m")
        one = self.engine.register("I2601", "1m")
        path = tmp_path / "scoring.yaml"
        path.write_text("timeframe:\n  5m:\n    window_size: 20\n")

        self.engine.load_scoring_profile(path)

        assert five.scoring_params.window_size == 20
        assert one.scoring_params.window_size == 50
        assert self.engine.register("RB2605", "5m").scoring_params.window_size == 20

    def test_invalid_profile_keeps_active_one(self, tmp_path):
        context = self.engine.register("I2601", "5m")
        profile = self.engine.profile
        params = context.scoring_params
        path = tmp_path / "scoring.yaml"
        path.write_text("default:\n  window_size: 0\n")

        with pytest.raises(ConfigValidationError):
            self.engine.load_scoring_profile(path)

        assert self.engine.profile is profile
        assert context.scoring_params is params

    def test_shipped_profile_loads(self):
        profile = self.engine.load_scoring_profile()
        assert profile.resolve("btcusdt", "5m").factors_enabled["open_interest_flow"] is False


class TestEngineReset:
    """Test scoped resets"""

    def test_reset_by_symbol(self, make_bar):
        engine = StructureEngine()
        engine.append("I2601", "5m", make_bar(0, 11, 10))
        engine.append("I2601", "1h", make_bar(0, 11, 10))
        engine.append("RB2605", "5m", make_bar(0, 11, 10))

        engine.reset(symbol="I2601")

        assert engine.snapshot("I2601", "5m").raw_count == 0
        assert engine.snapshot("I2601", "1h").raw_count == 0
        assert engine.snapshot("RB2605", "5m").raw_count == 1

    def test_reset_by_timeframe(self, make_bar):
        engine = StructureEngine()
        engine.append("I2601", "5m", make_bar(0, 11, 10))
        engine.append("I2601", "1h", make_bar(0, 11, 10))

        engine.reset(timeframe="1h")

        assert engine.snapshot("I2601", "5m").raw_count == 1
        assert engine.snapshot("I2601", "1h").raw_count == 0
