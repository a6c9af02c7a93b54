"""Tests for configuration management."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from sniper.config.settings import (
    AppSettings,
    DrainPatternConfig,
    LiquidityBand,
    SellConfig,
    StrategyConfig,
    TrailingStopConfig,
    load_settings,
    load_strategy_config,
)


def test_strategy_defaults():
    config = StrategyConfig()

    assert config.trailing_stop.percent_range == [12.0, 15.0]
    assert config.take_profit.target_profit_percent == 7.0
    assert config.drain_pattern.time_window_sec == [3.0, 7.0]
    assert config.drain_pattern.sell_trigger_percent == 15.0
    assert config.mint_wait.max_wait_sec == 3600.0
    assert config.mint_wait.poll_ms == 600
    assert config.exit_loop.tick_ms == 400
    assert config.exit_loop.max_hold_seconds is None
    assert config.price_impact.max_buy_percent == 10.0
    assert config.price_impact.max_sell_percent == 15.0
    assert [b.name for b in config.liquidity_bands] == ["low", "medium", "high"]


def test_strategy_config_is_frozen():
    config = StrategyConfig()
    with pytest.raises(ValidationError):
        config.take_profit = None


class TestValidation:
    @pytest.mark.parametrize("value", [[15, 12], [12], [-1, 5]])
    def test_percent_range_must_be_ascending_pair(self, value):
        with pytest.raises(ValidationError):
            TrailingStopConfig(percent_range=value)

    def test_drain_window_must_be_ascending(self):
        with pytest.raises(ValidationError):
            DrainPatternConfig(time_window_sec=[7, 3])

    def test_bands_must_ascend(self):
        with pytest.raises(ValidationError, match="ascending"):
            StrategyConfig(
                liquidity_bands=[
                    LiquidityBand(name="a", min_liquidity_usd=1000, max_buy_sol=0.1),
                    LiquidityBand(name="b", min_liquidity_usd=500, max_buy_sol=0.2),
                ]
            )

    def test_band_caps_must_not_decrease(self):
        with pytest.raises(ValidationError, match="decrease"):
            StrategyConfig(
                liquidity_bands=[
                    LiquidityBand(name="a", min_liquidity_usd=0, max_buy_sol=0.5),
                    LiquidityBand(name="b", min_liquidity_usd=500, max_buy_sol=0.2),
                ]
            )

    def test_bands_required(self):
        with pytest.raises(ValidationError):
            StrategyConfig(liquidity_bands=[])


def test_sell_slippage_for_reason():
    sell = SellConfig(slippage_bps_by_reason={"drain": [400, 600]})
    assert sell.slippage_for("drain") == 400
    assert sell.slippage_for("take_profit") == sell.default_slippage_bps


def test_app_settings_defaults():
    settings = AppSettings(env="dev", rpc_url="https://api.devnet.solana.com")

    assert settings.jupiter_base == "https://quote-api.jup.ag/v6"
    assert len(settings.jito_endpoints) == 5
    assert settings.use_jito is True
    assert settings.dry_run is True
    assert settings.telegram_admin_ids == []
    assert isinstance(settings.strategy, StrategyConfig)


class TestLoadSettings:
    @pytest.fixture
    def yaml_path(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.safe_dump(
                {
                    "rpc_url": "https://rpc.test",
                    "dry_run": False,
                    "strategy": {
                        "take_profit": {"target_profit_percent": 12},
                        "exit_loop": {"max_hold_seconds": 600},
                    },
                }
            )
        )
        return path

    def test_paper_forces_dry_run(self, yaml_path):
        settings = load_settings("paper", str(yaml_path))

        assert settings.env == "paper"
        assert settings.dry_run is True
        assert settings.strategy.take_profit.target_profit_percent == 12
        assert settings.strategy.exit_loop.max_hold_seconds == 600

    def test_prod_forces_live(self, yaml_path):
        assert load_settings("prod", str(yaml_path)).dry_run is False

    def test_invalid_profile(self, yaml_path):
        with pytest.raises(ValueError, match="Invalid profile"):
            load_settings("staging", str(yaml_path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings("dev", str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("rpc_url: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_settings("dev", str(path))

    def test_load_strategy_config_from_full_file(self, yaml_path):
        config = load_strategy_config(str(yaml_path))
        assert config.take_profit.target_profit_percent == 12

    def test_load_strategy_config_top_level(self, tmp_path):
        path = tmp_path / "strategy.yaml"
        path.write_text(yaml.safe_dump({"trailing_stop": {"percent_range": [8, 10]}}))

        config = load_strategy_config(str(path))

        assert config.trailing_stop.percent_range == [8, 10]


def test_example_paper_config_loads():
    path = Path(__file__).parent.parent / "configs" / "paper.yaml"
    settings = load_settings("paper", str(path))
    assert settings.strategy.deny_list.enabled is True
