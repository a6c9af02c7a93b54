"""Collaborator interfaces consumed by the sniper core."""

from collections.abc import Awaitable, Callable
from typing import Protocol, runtime_checkable

from .types import DenyCheck, PoolInfo, SwapResult, UIEvent

PoolProbe = Callable[[], Awaitable[PoolInfo | None]]
PriceSource = Callable[[], Awaitable[float]]
LiquiditySource = Callable[[], Awaitable[float]]
TokenBalanceSource = Callable[[], Awaitable[float]]
TickCallback = Callable[[float], None]


@runtime_checkable
class SwapExecutor(Protocol):
    """Swap execution protocol."""

    async def execute_buy(
        self,
        mint: str,
        sol_amount: float,
        slippage_bps: int | None = None,
        priority_fee: float | None = None,
    ) -> SwapResult:
        """Buy a token with SOL."""
        ...

    async def execute_sell(
        self, mint: str, token_amount: float, slippage_bps: int | None = None
    ) -> SwapResult:
        """Sell a token amount for SOL."""
        ...


@runtime_checkable
class DenyList(Protocol):
    """Deny-list protocol for originating addresses."""

    def is_address_denied(self, address: str) -> DenyCheck:
        """Check whether an address is denied."""
        ...


class EventSink(Protocol):
    """Best-effort observability sink."""

    async def emit(self, event: UIEvent) -> None:
        """Emit an event."""
        ...


class ImpactQuoteSource(Protocol):
    """External aggregator price-impact quote."""

    async def quote_impact(self, mint: str, sol_amount: float) -> float | None:
        """Return quoted impact percent, or None when no quote is available."""
        ...


class TradeJournal(Protocol):
    """Trade history recorder."""

    async def record_trade(
        self,
        token_mint: str,
        side: str,
        tx_id: str,
        sol_amount: float | None = None,
        token_amount: float | None = None,
        price: float | None = None,
        price_impact_pct: float | None = None,
        reason: str | None = None,
        backend: str | None = None,
    ) -> int:
        """Record a trade and return its id."""
        ...
