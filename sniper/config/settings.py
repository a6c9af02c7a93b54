"""Application settings and strategy configuration."""

from pathlib import Path
from typing import Literal

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

logger = structlog.get_logger(__name__)


def _ascending_pair(value: list[float], name: str) -> list[float]:
    if len(value) != 2:
        raise ValueError(f"{name} must have exactly two values, got {len(value)}")
    low, high = value
    if low < 0 or high < low:
        raise ValueError(f"{name} must be ascending and non-negative: {value}")
    return value


class TrailingStopConfig(BaseModel):
    """Trailing stop thresholds."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Enable trailing stop")
    percent_range: list[float] = Field(
        default_factory=lambda: [12.0, 15.0],
        description="[low, high] stop distance in percent; low is used",
    )

    @field_validator("percent_range")
    @classmethod
    def _check_range(cls, v: list[float]) -> list[float]:
        return _ascending_pair(v, "percent_range")


class TakeProfitConfig(BaseModel):
    """Take profit (auto scalp) thresholds."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Enable take profit")
    target_profit_percent: float = Field(
        default=7.0, gt=0, description="Gain in percent that triggers an exit"
    )


class DrainPatternConfig(BaseModel):
    """Pool drain detection thresholds."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Enable drain detection")
    time_window_sec: list[float] = Field(
        default_factory=lambda: [3.0, 7.0],
        description="[min, max] sliding window bounds in seconds",
    )
    sell_trigger_percent: float = Field(
        default=15.0, gt=0, description="Cumulative drain in percent that triggers"
    )

    @field_validator("time_window_sec")
    @classmethod
    def _check_window(cls, v: list[float]) -> list[float]:
        return _ascending_pair(v, "time_window_sec")


class SignalWatcherConfig(BaseModel):
    """Spam signal watcher switch."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Enable spam signal exits")


class MintWaitConfig(BaseModel):
    """Pool wait loop timing."""

    model_config = ConfigDict(frozen=True)

    max_wait_sec: float = Field(default=3600.0, gt=0, description="Wait deadline")
    poll_ms: int = Field(default=600, gt=0, description="Probe spacing")


class ExitLoopConfig(BaseModel):
    """Exit controller tick loop timing."""

    model_config = ConfigDict(frozen=True)

    tick_ms: int = Field(default=400, gt=0, description="Tick cadence")
    max_hold_seconds: float | None = Field(
        default=None, gt=0, description="Optional maximum position duration"
    )


class LiquidityBand(BaseModel):
    """USD liquidity floor mapped to a maximum buy size."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Band label")
    min_liquidity_usd: float = Field(ge=0, description="Band lower bound in USD")
    max_buy_sol: float = Field(gt=0, description="Maximum spend in SOL")


class PriceImpactConfig(BaseModel):
    """Price impact policy thresholds."""

    model_config = ConfigDict(frozen=True)

    max_buy_percent: float = Field(default=10.0, gt=0)
    max_sell_percent: float = Field(default=15.0, gt=0)


class DenyListConfig(BaseModel):
    """Deny list file settings."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False, description="Enable deny-list checks")
    file: str = Field(default="blacklist.json", description="Deny-list JSON path")


class SellConfig(BaseModel):
    """Exit sell execution settings."""

    model_config = ConfigDict(frozen=True)

    slippage_bps_by_reason: dict[str, list[int]] = Field(
        default_factory=lambda: {
            "trailing_stop": [150, 200],
            "take_profit": [100, 150],
            "drain": [300, 500],
            "signal": [300, 500],
            "max_hold": [150, 200],
            "aborted": [150, 200],
        },
        description="Per exit reason [low, high] slippage; low is used",
    )
    default_slippage_bps: int = Field(default=150, gt=0)

    def slippage_for(self, reason: str) -> int:
        """Slippage in bps for an exit reason."""
        bounds = self.slippage_bps_by_reason.get(reason)
        return bounds[0] if bounds else self.default_slippage_bps


class StrategyConfig(BaseModel):
    """Immutable snapshot of tunable thresholds shared by every component."""

    model_config = ConfigDict(frozen=True)

    trailing_stop: TrailingStopConfig = Field(default_factory=TrailingStopConfig)
    take_profit: TakeProfitConfig = Field(default_factory=TakeProfitConfig)
    drain_pattern: DrainPatternConfig = Field(default_factory=DrainPatternConfig)
    signal_watcher: SignalWatcherConfig = Field(default_factory=SignalWatcherConfig)
    mint_wait: MintWaitConfig = Field(default_factory=MintWaitConfig)
    exit_loop: ExitLoopConfig = Field(default_factory=ExitLoopConfig)
    liquidity_bands: list[LiquidityBand] = Field(
        default_factory=lambda: [
            LiquidityBand(name="low", min_liquidity_usd=0.0, max_buy_sol=0.1),
            LiquidityBand(name="medium", min_liquidity_usd=1_000.0, max_buy_sol=0.3),
            LiquidityBand(name="high", min_liquidity_usd=10_000.0, max_buy_sol=1.0),
        ],
        description="Ascending liquidity bands",
    )
    price_impact: PriceImpactConfig = Field(default_factory=PriceImpactConfig)
    deny_list: DenyListConfig = Field(default_factory=DenyListConfig)
    sell: SellConfig = Field(default_factory=SellConfig)

    @field_validator("liquidity_bands")
    @classmethod
    def _check_bands(cls, bands: list[LiquidityBand]) -> list[LiquidityBand]:
        if not bands:
            raise ValueError("At least one liquidity band is required")
        for lower, upper in zip(bands, bands[1:]):
            if upper.min_liquidity_usd <= lower.min_liquidity_usd:
                raise ValueError(
                    f"Liquidity bands must be ascending: {lower.name} -> {upper.name}"
                )
            if upper.max_buy_sol < lower.max_buy_sol:
                raise ValueError(
                    f"Buy caps must not decrease: {lower.name} -> {upper.name}"
                )
        return bands


class AppSettings(BaseSettings):
    """Application settings with environment variable support."""

    # Environment and mode
    env: Literal["dev", "paper", "prod"] = Field(
        description="Environment: dev, paper, prod"
    )

    # RPC and API endpoints
    rpc_url: str = Field(description="Solana RPC URL")
    dexscreener_base: str = Field(
        default="https://api.dexscreener.com",
        description="DexScreener API base URL",
    )
    jupiter_base: str = Field(
        default="https://quote-api.jup.ag/v6", description="Jupiter API base URL"
    )
    jito_endpoints: list[str] = Field(
        default_factory=lambda: [
            "https://mainnet.block-engine.jito.wtf/api/v1/bundles",
            "https://amsterdam.mainnet.block-engine.jito.wtf/api/v1/bundles",
            "https://frankfurt.mainnet.block-engine.jito.wtf/api/v1/bundles",
            "https://ny.mainnet.block-engine.jito.wtf/api/v1/bundles",
            "https://tokyo.mainnet.block-engine.jito.wtf/api/v1/bundles",
        ],
        description="Jito block engine bundle endpoints, tried in order",
    )
    use_jito: bool = Field(default=True, description="Try bundle submission first")

    # Transaction settings
    priority_fee_lamports: int = Field(
        default=10_000, description="Priority fee in lamports"
    )
    buy_slippage_bps: int = Field(default=150, description="Buy slippage in bps")

    # Notifications
    telegram_bot_token: str | None = Field(
        default=None, description="Telegram bot token"
    )
    telegram_admin_ids: list[int] = Field(
        default_factory=list, description="Telegram admin user IDs"
    )

    # Data storage
    database_url: str = Field(
        default="sqlite+aiosqlite:///./sniper.sqlite",
        description="Database connection URL",
    )

    # Execution mode
    dry_run: bool = Field(default=True, description="Dry run mode (no real trades)")

    strategy: StrategyConfig = Field(
        default_factory=StrategyConfig, description="Strategy thresholds"
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }


def load_settings(profile: str, yaml_path: str) -> AppSettings:
    """Load settings from YAML file and environment variables.

    Args:
        profile: Configuration profile name (dev, paper, prod)
        yaml_path: Path to YAML configuration file

    Returns:
        AppSettings instance with loaded configuration

    Raises:
        FileNotFoundError: If YAML file doesn't exist
        ValidationError: If configuration is invalid
        ValueError: If profile is invalid
    """
    if profile not in ["dev", "paper", "prod"]:
        raise ValueError(
            f"Invalid profile: {profile}. Must be one of: dev, paper, prod"
        )

    yaml_file = Path(yaml_path)
    if not yaml_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

    try:
        with open(yaml_file, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}

        yaml_config["env"] = profile

        # paper never trades, prod always does; dev follows the YAML
        if profile == "paper":
            yaml_config["dry_run"] = True
        elif profile == "prod":
            yaml_config["dry_run"] = False

        logger.info("Loading configuration", profile=profile, yaml_path=yaml_path)

        settings = AppSettings(**yaml_config)

        logger.info(
            "Configuration loaded successfully",
            profile=profile,
            dry_run=settings.dry_run,
            rpc_url=settings.rpc_url[:50] + "..."
            if len(settings.rpc_url) > 50
            else settings.rpc_url,
            trailing_stop=settings.strategy.trailing_stop.enabled,
            take_profit=settings.strategy.take_profit.enabled,
            drain_pattern=settings.strategy.drain_pattern.enabled,
            signal_watcher=settings.strategy.signal_watcher.enabled,
        )

        return settings

    except yaml.YAMLError as e:
        logger.error("Failed to parse YAML configuration", error=str(e))
        raise ValueError(f"Invalid YAML configuration: {e}") from e
    except ValidationError as e:
        logger.error("Configuration validation failed", error=str(e))
        raise


def load_strategy_config(yaml_path: str) -> StrategyConfig:
    """Load only the strategy section of a YAML file.

    Accepts either a full settings file (with a ``strategy`` key) or a file
    holding the strategy sections at top level.
    """
    yaml_file = Path(yaml_path)
    if not yaml_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

    with open(yaml_file, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    try:
        return StrategyConfig(**data.get("strategy", data))
    except ValidationError as e:
        logger.error("Strategy configuration invalid", error=str(e))
        raise
