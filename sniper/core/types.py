"""Core data types for the sniper."""

from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AmmKind(str, Enum):
    """AMM program family hosting a pool."""

    RAYDIUM = "raydium"
    PUMP = "pump"
    CPMM = "cpmm"
    PUMPSWAP = "pumpswap"


class PoolInfo(BaseModel):
    """Tradeable pool detected for a mint."""

    model_config = ConfigDict(frozen=True)

    amm: AmmKind = Field(description="AMM program family")
    pool_address: str = Field(description="Pool address")
    token_mint: str = Field(description="Token mint address")


class PriceSample(BaseModel):
    """Single price observation."""

    ts: float = Field(description="Observation timestamp (seconds)")
    value: float = Field(description="Price in the position's quote currency")


class DrainSample(BaseModel):
    """Pool liquidity change observation."""

    ts: float = Field(description="Observation timestamp (seconds)")
    pool_delta_percent: float = Field(
        description="Signed pool change in percent, negative means liquidity removed"
    )


class TrailingStopState(BaseModel):
    """Trailing stop peak and stop levels."""

    peak_price: float = Field(default=0.0, description="Highest observed price")
    stop_price: float = Field(default=0.0, description="Current stop level")


class TakeProfitState(BaseModel):
    """Take profit reference price."""

    entry_price: float | None = Field(default=None, description="Entry price")


class SignalSource(str, Enum):
    SOCIAL = "social"
    ONCHAIN_ORIGIN = "onchain-origin"


class SignalSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SpamSignal(BaseModel):
    """Externally produced spam/abuse signal for a position's token."""

    model_config = ConfigDict(frozen=True)

    source: SignalSource = Field(description="Where the signal was observed")
    severity: SignalSeverity = Field(description="Signal severity")
    reason: str = Field(description="Human readable reason")


class ExitStrategyKind(str, Enum):
    """The closed set of exit strategies, in evaluation priority order."""

    TRAILING_STOP = "trailing_stop"
    TAKE_PROFIT = "take_profit"
    DRAIN = "drain"
    SIGNAL = "signal"


class ExitReason(str, Enum):
    """What ended a position: a strategy or a controller safeguard."""

    TRAILING_STOP = "trailing_stop"
    TAKE_PROFIT = "take_profit"
    DRAIN = "drain"
    SIGNAL = "signal"
    MAX_HOLD = "max_hold"
    ABORTED = "aborted"


class ExitCheck(BaseModel):
    """Result of a strategy evaluation."""

    exit: bool = Field(description="Whether the strategy fires")
    reason: str | None = Field(default=None, description="Why it fired")


class ExitDecision(BaseModel):
    """Terminal output of the exit controller, produced once per position."""

    model_config = ConfigDict(frozen=True)

    fired_strategy: ExitReason = Field(description="Strategy or safeguard that fired")
    reason: str = Field(description="Reason text")
    price_at_exit: float | None = Field(
        default=None, description="Last observed price when the decision was made"
    )
    ticks: int = Field(default=0, description="Number of ticks evaluated")
    decided_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC), description="Decision timestamp"
    )
    sell_tx_id: str | None = Field(
        default=None, description="Exit sell transaction, when the position was sold"
    )


class PriceImpact(BaseModel):
    """Price impact estimate; percent is None when the impact is unknown."""

    model_config = ConfigDict(frozen=True)

    percent: float | None = Field(default=None, description="Impact in percent")
    source: Literal["quote", "amm"] | None = Field(
        default=None, description="Where the figure came from"
    )

    @property
    def known(self) -> bool:
        return self.percent is not None

    @classmethod
    def unknown(cls) -> "PriceImpact":
        return cls()


class SwapResult(BaseModel):
    """Outcome of a buy or sell execution."""

    tx_id: str = Field(description="Transaction id or bundle id")
    price: float | None = Field(
        default=None, description="Realized price in SOL per token (buys)"
    )
    sol_received: float | None = Field(
        default=None, description="SOL received (sells only)"
    )
    token_amount: float | None = Field(
        default=None, description="Token amount bought or sold, in base units"
    )
    backend: str = Field(default="standard", description="Execution backend used")


class DenyCheck(BaseModel):
    """Deny-list lookup result."""

    blocked: bool = Field(description="Whether the address is denied")
    reason: str | None = Field(default=None, description="Deny-list entry reason")


EventType = Literal[
    "pool", "buy", "sell", "trailingStop", "takeProfit", "poolDrain", "spamExit"
]
EventLevel = Literal["info", "success", "warn", "error"]


class UIEvent(BaseModel):
    """Observability event emitted on pool-found, buy and exit."""

    type: EventType = Field(description="Event type")
    level: EventLevel = Field(description="Severity level")
    title: str = Field(description="Short title")
    body: str | None = Field(default=None, description="Optional details")
    link: str | None = Field(default=None, description="Optional link or tx id")
