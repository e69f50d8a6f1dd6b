"""Tests for the nine supply/demand factors"""

import pytest

from struxis.config.defaults import ScoringParams
from struxis.data.models import Direction
from struxis.scoring.factors import (
    FACTOR_FUNCTIONS,
    clamp,
    close_location,
    directional_efficiency,
    open_interest_flow,
    swing_progression,
    trend_alignment,
    volume_balance,
    volume_confirmation,
    wick_balance,
    zone_position,
)
from struxis.scoring.models import ScoringWindow
from struxis.structure.trends import build_trend
from struxis.zones.models import ZoneRole

UP = Direction.UP
DOWN = Direction.DOWN


class TestPriceActionFactors:
    """Test factors computed from bar shapes"""

    def setup_method(self):
        self.params = ScoringParams()

    @pytest.fixture
    def window(self, make_bar):
        return ScoringWindow(bars=(
            make_bar(0, 11, 9.5, 10, 10.8),
            make_bar(1, 12, 10.5, 10.8, 11.9),
        ))

    def test_directional_efficiency(self, window):
        assert directional_efficiency(window, self.params) == pytest.approx(1.9 / 3.0)

    def test_close_location(self, window):
        assert close_location(window, self.params) == pytest.approx(0.8)

    def test_wick_balance(self, window):
        assert wick_balance(window, self.params) == pytest.approx(0.5 / 3.0)

    def test_zero_range_bars(self, make_bar):
        window = ScoringWindow(bars=(make_bar(0, 10, 10), make_bar(1, 10, 10)))

        assert directional_efficiency(window, self.params) == 0.0
        assert close_location(window, self.params) == 0.0
        assert wick_balance(window, self.params) == 0.0


class TestParticipationFactors:
    """Test volume and open interest factors"""

    def setup_method(self):
        self.params = ScoringParams(oi_sensitivity=10.0)

    def test_volume_balance(self, make_bar):
        window = ScoringWindow(bars=(
            make_bar(0, 11, 9.5, 10, 10.8, volume=100),
            make_bar(1, 12, 10.5, 10.8, 11.9, volume=300),
            make_bar(2, 12.1, 11.0, 11.9, 11.2, volume=100),
        ))
        assert volume_balance(window, self.params) == pytest.approx(0.6)

    def test_volume_confirmation(self, make_bar):
        window = ScoringWindow(bars=(
            make_bar(0, 11, 10, 10.2, 10.8, volume=100),
            make_bar(1, 12, 11, 11.2, 11.8, volume=100),
            make_bar(2, 13, 12, 12.2, 12.8, volume=400),
        ))
        assert volume_confirmation(window, self.params) == 1.0

    def test_volume_confirmation_without_volume(self, make_bar):
        window = ScoringWindow(bars=(make_bar(0, 11, 10), make_bar(1, 12, 11)))
        assert volume_confirmation(window, self.params) == 0.0

    def test_rising_oi_confirms_rally(self, make_bar):
        window = ScoringWindow(bars=(
            make_bar(0, 11, 10, 10.2, 10.8, open_interest=1000),
            make_bar(1, 12, 11, 11.2, 11.8, open_interest=1050),
        ))
        assert open_interest_flow(window, self.params) == pytest.approx(0.5)

    def test_falling_oi_opposes_rally(self, make_bar):
        window = ScoringWindow(bars=(
            make_bar(0, 11, 10, 10.2, 10.8, open_interest=1000),
            make_bar(1, 12, 11, 11.2, 11.8, open_interest=950),
        ))
        assert open_interest_flow(window, self.params) == pytest.approx(-0.5)

    def test_rising_oi_confirms_selloff(self, make_bar):
        window = ScoringWindow(bars=(
            make_bar(0, 12, 11, 11.8, 11.2, open_interest=1000),
            make_bar(1, 11, 10, 10.8, 10.2, open_interest=1050),
        ))
        assert open_interest_flow(window, self.params) == pytest.approx(-0.5)

    def test_oi_magnitude_is_capped(self, make_bar):
        window = ScoringWindow(bars=(
            make_bar(0, 11, 10, 10.2, 10.8, open_interest=1000),
            make_bar(1, 12, 11, 11.2, 11.8, open_interest=2000),
        ))
        assert open_interest_flow(window, self.params) == 1.0

    def test_missing_oi(self, make_bar):
        window = ScoringWindow(bars=(make_bar(0, 11, 10), make_bar(1, 12, 11)))
        assert open_interest_flow(window, self.params) == 0.0


class TestStructureFactors:
    """Test factors computed from swings, trends and zones"""

    def setup_method(self):
        self.params = ScoringParams()

    def test_higher_highs_and_lows(self, make_swing):
        window = ScoringWindow(swings=(
            make_swing(1, DOWN, 14, 10),
            make_swing(2, UP, 10, 15),
            make_swing(3, DOWN, 15, 12),
            make_swing(4, UP, 12, 17),
        ))
        assert swing_progression(window, self.params) == 1.0

    def test_lower_highs_and_lows(self, make_swing):
        window = ScoringWindow(swings=(
            make_swing(1, UP, 10, 17),
            make_swing(2, DOWN, 17, 12),
            make_swing(3, UP, 12, 15),
            make_swing(4, DOWN, 15, 10),
        ))
        assert swing_progression(window, self.params) == -1.0

    def test_too_few_swings(self, make_swing):
        window = ScoringWindow(swings=(make_swing(1, UP, 10, 15),))
        assert swing_progression(window, self.params) == 0.0

    def test_trend_alignment_holding_gains(self, make_bar, make_swing):
        trend = build_trend(1, UP, [make_swing(1, UP, 10, 20)])
        window = ScoringWindow(bars=(make_bar(0, 18.5, 17.5, 18, 18),), trend=trend)

        assert trend_alignment(window, self.params) == pytest.approx(0.8)

    def test_trend_alignment_from_active_swing(self, make_bar, make_swing):
        window = ScoringWindow(bars=(make_bar(0, 11, 10),), active_swing=make_swing(1, DOWN, 15, 10))
        assert trend_alignment(window, self.params) == -0.5

    def test_trend_alignment_without_structure(self, make_bar):
        assert trend_alignment(ScoringWindow(bars=(make_bar(0, 11, 10),)), self.params) == 0.0

    def test_zone_position_between_zones(self, make_bar, make_zone):
        window = ScoringWindow(
            bars=(make_bar(0, 104.5, 103.5, 104, 104),),
            zones=(
                make_zone(ZoneRole.SUPPLY, 110, 112),
                make_zone(ZoneRole.DEMAND, 98, 100),
            ),
        )
        assert zone_position(window, self.params) == pytest.approx(0.2)

    def test_zone_position_one_sided(self, make_bar, make_zone):
        bars = (make_bar(0, 104.5, 103.5, 104, 104),)

        only_demand = ScoringWindow(bars=bars, zones=(make_zone(ZoneRole.DEMAND, 98, 100),))
        only_supply = ScoringWindow(bars=bars, zones=(make_zone(ZoneRole.SUPPLY, 110, 112),))

        assert zone_position(only_demand, self.params) == 1.0
        assert zone_position(only_supply, self.params) == -1.0
        assert zone_position(ScoringWindow(bars=bars), self.params) == 0.0


class TestFactorRegistry:
    """Test factor registry invariants"""

    def test_every_factor_bounded_on_empty_window(self):
        params = ScoringParams()
        for name, factor in FACTOR_FUNCTIONS.items():
            assert factor(ScoringWindow(), params) == 0.0, name

    def test_registry_covers_configured_factors(self):
        assert set(FACTOR_FUNCTIONS) == set(ScoringParams().factor_weights)

    def test_clamp(self):
        assert clamp(2.0) == 1.0
        assert clamp(-3.0) == -1.0
        assert clamp(0.3, 0.0, 1.0) == 0.3
