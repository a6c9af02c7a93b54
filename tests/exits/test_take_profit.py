"""Tests for the take profit exit strategy."""

import pytest

from sniper.config.settings import TakeProfitConfig
from sniper.exits.take_profit import TakeProfitStrategy, calculate_pnl_percentage


def test_calculate_pnl_percentage():
    assert calculate_pnl_percentage(100.0, 110.0) == pytest.approx(10.0)
    assert calculate_pnl_percentage(100.0, 90.0) == pytest.approx(-10.0)
    assert calculate_pnl_percentage(0.0, 5.0) == 0.0


class TestTakeProfitStrategy:
    @pytest.fixture
    def strategy(self):
        return TakeProfitStrategy(TakeProfitConfig(target_profit_percent=7))

    def test_threshold(self, strategy):
        strategy.set_entry(100.0)
        assert strategy.should_exit(106.9) is False
        assert strategy.should_exit(107.0) is True
        assert strategy.should_exit(150.0) is True

    def test_no_entry_never_fires(self, strategy):
        assert strategy.state.entry_price is None
        assert strategy.should_exit(1_000_000.0) is False

    def test_entry_set_once(self, strategy):
        strategy.set_entry(1.0)
        with pytest.raises(RuntimeError, match="already set"):
            strategy.set_entry(2.0)
        assert strategy.state.entry_price == 1.0

    def test_loss_does_not_fire(self, strategy):
        strategy.set_entry(100.0)
        assert strategy.should_exit(50.0) is False

    def test_disabled(self):
        strategy = TakeProfitStrategy(TakeProfitConfig(enabled=False))
        strategy.set_entry(100.0)
        assert strategy.should_exit(200.0) is False
