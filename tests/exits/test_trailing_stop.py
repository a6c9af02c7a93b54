"""Tests for the trailing stop exit strategy."""

import pytest

from sniper.config.settings import TrailingStopConfig
from sniper.exits.trailing_stop import (
    TrailingStopStrategy,
    calculate_trailing_stop_price,
)


class TestCalculateTrailingStopPrice:
    def test_basic(self):
        assert calculate_trailing_stop_price(100.0, 12.0) == pytest.approx(88.0)

    def test_zero_percent(self):
        assert calculate_trailing_stop_price(50.0, 0.0) == 50.0


class TestTrailingStopStrategy:
    """Test peak tracking and exit checks."""

    @pytest.fixture
    def strategy(self):
        return TrailingStopStrategy(TrailingStopConfig(percent_range=[12, 15]))

    def test_no_exit_before_first_price(self, strategy):
        assert strategy.state.stop_price == 0.0
        assert strategy.should_exit(0.0) is False
        assert strategy.should_exit(1.0) is False

    def test_rally_then_drop_fires(self, strategy):
        """Prices 100, 120, 90 with a 12% stop."""
        strategy.on_price(100.0)
        assert strategy.state.stop_price == pytest.approx(88.0)
        assert strategy.should_exit(100.0) is False

        strategy.on_price(120.0)
        assert strategy.state.peak_price == 120.0
        assert strategy.state.stop_price == pytest.approx(105.6)
        assert strategy.should_exit(120.0) is False

        strategy.on_price(90.0)
        assert strategy.should_exit(90.0) is True

    def test_peak_is_monotonic(self, strategy):
        prices = [10.0, 12.0, 11.0, 9.0, 12.0, 13.5, 13.0]
        peaks = []
        for p in prices:
            strategy.on_price(p)
            peaks.append(strategy.state.peak_price)

        assert peaks == sorted(peaks)
        assert strategy.state.peak_price == 13.5

    def test_stop_only_moves_with_peak(self, strategy):
        strategy.on_price(100.0)
        strategy.on_price(95.0)
        assert strategy.state.stop_price == pytest.approx(88.0)

    def test_exit_at_exact_stop(self, strategy):
        strategy.on_price(100.0)
        assert strategy.should_exit(88.0) is True

    def test_uses_low_bound_of_range(self):
        strategy = TrailingStopStrategy(TrailingStopConfig(percent_range=[5, 20]))
        strategy.on_price(200.0)
        assert strategy.state.stop_price == pytest.approx(190.0)

    def test_disabled(self):
        strategy = TrailingStopStrategy(TrailingStopConfig(enabled=False))
        strategy.on_price(100.0)
        assert strategy.state.peak_price == 0.0
        assert strategy.should_exit(1.0) is False
