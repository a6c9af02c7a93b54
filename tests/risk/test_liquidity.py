"""Tests for liquidity band sizing."""

import pytest

from sniper.config.settings import LiquidityBand, StrategyConfig
from sniper.core.errors import LiquidityBandError
from sniper.risk.liquidity import allowed_spend, max_buy_for_liquidity, pick_band

BANDS = StrategyConfig().liquidity_bands


class TestPickBand:
    @pytest.mark.parametrize(
        "liquidity,expected",
        [(0.0, "low"), (999.99, "low"), (1_000.0, "medium"), (50_000.0, "high")],
    )
    def test_band_selection(self, liquidity, expected):
        assert pick_band(liquidity, BANDS).name == expected

    def test_below_all_bands(self):
        bands = [
            LiquidityBand(name="medium", min_liquidity_usd=1_000, max_buy_sol=0.3),
        ]
        with pytest.raises(LiquidityBandError) as exc_info:
            pick_band(500.0, bands)
        assert exc_info.value.floor_usd == 1_000


def test_max_buy_is_monotonic():
    levels = [0, 10, 999, 1_000, 5_000, 10_000, 1_000_000]
    caps = [max_buy_for_liquidity(level, BANDS) for level in levels]
    assert caps == sorted(caps)


class TestAllowedSpend:
    def test_capped_by_band(self):
        assert allowed_spend(1.0, 1_500.0, BANDS) == 0.3

    def test_desired_below_cap(self):
        assert allowed_spend(0.05, 20_000.0, BANDS) == 0.05
