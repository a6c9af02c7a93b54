"""Paper swap executor for dry runs."""

import time
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

import structlog

from ..core.interfaces import SwapExecutor
from ..core.types import SwapResult

logger = structlog.get_logger(__name__)


class VirtualPosition:
    """Virtual token holding for paper trading."""

    def __init__(self, token_mint: str, avg_cost_sol: float, qty_base: float) -> None:
        """Initialize virtual position.

        Args:
            token_mint: Token mint address
            avg_cost_sol: Average cost per base unit in SOL
            qty_base: Quantity held in base units
        """
        self.token_mint = token_mint
        self.avg_cost_sol = avg_cost_sol
        self.qty_base = qty_base
        self.created_at = time.time()

    def add(self, cost_sol: float, qty_base: float) -> None:
        if qty_base <= 0:
            return
        total_cost = self.avg_cost_sol * self.qty_base + cost_sol
        self.qty_base += qty_base
        self.avg_cost_sol = total_cost / self.qty_base

    def reduce(self, qty_base: float) -> float:
        """Reduce the holding and return the cost basis of the sold quantity."""
        qty_base = min(qty_base, self.qty_base)
        if qty_base <= 0:
            return 0.0
        self.qty_base -= qty_base
        return self.avg_cost_sol * qty_base


class PaperSwapExecutor(SwapExecutor):
    """Simulated execution against a live price with slippage and fees."""

    def __init__(
        self,
        price_fn: Callable[[str], Awaitable[float]],
        slippage_bps: int = 100,
        fee_bps: int = 50,
        token_decimals: int = 6,
        now_fn: Callable[[], float] | None = None,
    ) -> None:
        """Initialize paper executor.

        Args:
            price_fn: Live price in SOL per token for a mint
            slippage_bps: Slippage in basis points (default 100 = 1%)
            fee_bps: Fee in basis points (default 50 = 0.5%)
            token_decimals: Decimals used for base unit amounts
            now_fn: Optional function to get current timestamp (for testing)
        """
        self.price_fn = price_fn
        self.slippage_bps = slippage_bps
        self.fee_bps = fee_bps
        self.token_decimals = token_decimals
        self._now_fn = now_fn or time.time

        self._positions: dict[str, VirtualPosition] = {}
        self._trade_history: list[dict[str, Any]] = []

    def _exec_price(self, price: float, is_buy: bool) -> float:
        slip = self.slippage_bps / 10000.0
        return price * (1 + slip) if is_buy else price * (1 - slip)

    def _next_tx_id(self, mint: str) -> str:
        return f"PAPER_{mint[:8]}_{len(self._trade_history) + 1}"

    def _record(self, **trade: Any) -> None:
        trade["ts"] = datetime.fromtimestamp(self._now_fn())
        self._trade_history.append(trade)
        logger.info("Paper trade executed", **trade)

    async def execute_buy(
        self,
        mint: str,
        sol_amount: float,
        slippage_bps: int | None = None,
        priority_fee: float | None = None,
    ) -> SwapResult:
        if sol_amount <= 0:
            raise ValueError(f"Buy amount must be positive, got {sol_amount}")

        exec_price = self._exec_price(await self.price_fn(mint), is_buy=True)
        fee_sol = sol_amount * self.fee_bps / 10000.0
        ui_tokens = (sol_amount - fee_sol) / exec_price
        qty_base = ui_tokens * 10**self.token_decimals

        position = self._positions.get(mint)
        if position is None:
            self._positions[mint] = VirtualPosition(mint, sol_amount / qty_base, qty_base)
        else:
            position.add(sol_amount, qty_base)

        tx_id = self._next_tx_id(mint)
        self._record(
            tx_id=tx_id,
            token_mint=mint,
            is_buy=True,
            sol_amount=sol_amount,
            qty_base=qty_base,
            exec_price=exec_price,
            fee_sol=fee_sol,
        )
        return SwapResult(
            tx_id=tx_id, price=exec_price, token_amount=qty_base, backend="paper"
        )

    async def execute_sell(
        self, mint: str, token_amount: float, slippage_bps: int | None = None
    ) -> SwapResult:
        position = self._positions.get(mint)
        if position is None or position.qty_base <= 0:
            raise ValueError(f"No position to sell for token {mint}")

        qty_base = min(token_amount, position.qty_base)
        exec_price = self._exec_price(await self.price_fn(mint), is_buy=False)
        gross_sol = qty_base / 10**self.token_decimals * exec_price
        fee_sol = gross_sol * self.fee_bps / 10000.0
        cost_basis = position.reduce(qty_base)

        if position.qty_base <= 0:
            del self._positions[mint]
            logger.info("Position fully closed", token_mint=mint)

        tx_id = self._next_tx_id(mint)
        self._record(
            tx_id=tx_id,
            token_mint=mint,
            is_buy=False,
            qty_base=qty_base,
            exec_price=exec_price,
            fee_sol=fee_sol,
            realized_pnl_sol=gross_sol - fee_sol - cost_basis,
        )
        return SwapResult(
            tx_id=tx_id,
            sol_received=gross_sol - fee_sol,
            token_amount=qty_base,
            backend="paper",
        )

    async def balance(self, mint: str) -> float:
        """Virtual balance in base units."""
        position = self._positions.get(mint)
        return position.qty_base if position else 0.0

    def get_position(self, token_mint: str) -> VirtualPosition | None:
        return self._positions.get(token_mint)

    def get_trade_history(self) -> list[dict[str, Any]]:
        return self._trade_history.copy()
