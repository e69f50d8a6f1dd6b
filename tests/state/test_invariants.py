"""Tests for structural invariant checks"""

from dataclasses import replace

import pytest

from struxis.data.models import Direction
from struxis.data.series import RawBarSeries
from struxis.errors import StateInvariantViolation
from struxis.state.invariants import check_consolidation, check_swing, check_swings, check_trend
from struxis.structure.consolidator import ConsolidatedBar, consolidate_bars
from struxis.structure.fractals import FractalType
from struxis.structure.swings import SwingState
from struxis.structure.trends import build_trend


def series_of(bars):
    series = RawBarSeries()
    for bar in bars:
        series.append(bar)
    return series


class TestConsolidationInvariants:
    """Test coverage and containment checks"""

    def test_valid_sequence_passes(self, random_walk_bars):
        series = series_of(random_walk_bars)
        check_consolidation(series, consolidate_bars(random_walk_bars), 0)

    def test_containment_detected(self, make_bar):
        series = series_of([make_bar(0, 12, 10), make_bar(1, 11, 10.5)])
        cbars = [
            ConsolidatedBar(id=0, start_raw_id=0, end_raw_id=0, high=12, low=10),
            ConsolidatedBar(id=1, start_raw_id=1, end_raw_id=1, high=11, low=10.5),
        ]

        with pytest.raises(StateInvariantViolation) as exc_info:
            check_consolidation(series, cbars, 1)

        assert exc_info.value.invariant == "cbar_containment"
        assert exc_info.value.entity_ids == (0, 1)

    def test_uncovered_tail_detected(self, make_bar):
        series = series_of([make_bar(0, 11, 10), make_bar(1, 12, 11)])
        cbars = [ConsolidatedBar(id=0, start_raw_id=0, end_raw_id=0, high=11, low=10)]

        with pytest.raises(StateInvariantViolation) as exc_info:
            check_consolidation(series, cbars, 0)

        assert exc_info.value.invariant == "cbar_coverage"

    def test_misnumbered_bar_detected(self, make_bar):
        series = series_of([make_bar(0, 11, 10), make_bar(1, 12, 11)])
        cbars = [
            ConsolidatedBar(id=0, start_raw_id=0, end_raw_id=0, high=11, low=10),
            ConsolidatedBar(id=5, start_raw_id=1, end_raw_id=1, high=12, low=11),
        ]

        with pytest.raises(StateInvariantViolation) as exc_info:
            check_consolidation(series, cbars, 0)

        assert exc_info.value.invariant == "cbar_ids"


class TestSwingInvariants:
    """Test anchor kind checks"""

    def test_valid_swing_passes(self, make_swing):
        check_swing(make_swing(1, Direction.UP, 10, 15))

    def test_wrong_start_kind(self, make_swing):
        swing = replace(make_swing(1, Direction.UP, 10, 15), start_kind=FractalType.TOP)

        with pytest.raises(StateInvariantViolation) as exc_info:
            check_swing(swing)

        assert exc_info.value.invariant == "swing_direction"
        assert not exc_info.value.recoverable

    def test_completed_active_swing(self, make_swing):
        with pytest.raises(StateInvariantViolation) as exc_info:
            check_swings([], make_swing(1, Direction.UP, 10, 15))

        assert exc_info.value.invariant == "swing_state"

    def test_pending_active_swing_passes(self, make_swing):
        active = replace(make_swing(2, Direction.DOWN, 15, 12), state=SwingState.PENDING_REVERSE)
        check_swings([make_swing(1, Direction.UP, 10, 15)], active)


class TestTrendInvariants:
    """Test trend membership checks"""

    def test_unknown_extreme_swing(self, make_swing):
        trend = build_trend(1, Direction.UP, [make_swing(1, Direction.UP, 10, 20)])

        with pytest.raises(StateInvariantViolation) as exc_info:
            check_trend(trend, lambda _id: None)

        assert exc_info.value.invariant == "trend_members"

    def test_direction_mismatch(self, make_swing):
        swing = make_swing(1, Direction.UP, 10, 20)
        trend = replace(build_trend(1, Direction.UP, [swing]), direction=Direction.DOWN)

        with pytest.raises(StateInvariantViolation) as exc_info:
            check_trend(trend, {1: swing}.get)

        assert exc_info.value.invariant == "trend_direction"

    def test_no_trend_passes(self):
        check_trend(None, lambda _id: None)
