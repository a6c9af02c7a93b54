"""Snipe orchestration: wait for pool, guarded buy, exit monitoring, liquidation."""

import argparse
import asyncio
import signal
import sys
from collections.abc import Awaitable, Callable
from functools import partial
from typing import Any

import structlog

from ..alerts.telegram import LoggingEventSink, TelegramEventSink
from ..config.settings import AppSettings, StrategyConfig, load_settings
from ..core.errors import (
    AbortedError,
    DeniedOriginError,
    ExecutionFailure,
    SniperError,
    TransientProbeError,
)
from ..core.interfaces import (
    DenyList,
    EventSink,
    LiquiditySource,
    PoolProbe,
    PriceSource,
    SwapExecutor,
    TickCallback,
    TokenBalanceSource,
    TradeJournal,
)
from ..core.types import ExitDecision, PoolInfo, PriceImpact, SpamSignal, UIEvent
from ..data.dexscreener import DexScreenerPools
from ..exec.controller import ExitController
from ..exec.jupiter import JupiterClient, JupiterSwapExecutor
from ..exec.paper import PaperSwapExecutor
from ..exec.senders import BundleFirstSender, JitoBundleSender, RpcSender
from ..persist.storage import SQLiteStorage
from ..risk.denylist import FileDenyList
from ..risk.impact import PriceImpactEstimator
from ..risk.liquidity import allowed_spend
from ..watch.pool_waiter import PoolWaiter

logger = structlog.get_logger(__name__)

ReservesSource = Callable[[], Awaitable[tuple[float, float] | None]]


class SnipeCollaborators:
    """External collaborators for one snipe attempt."""

    def __init__(
        self,
        probe: PoolProbe,
        price_source: PriceSource,
        executor: SwapExecutor,
        liquidity_source: LiquiditySource | None = None,
        deny_list: DenyList | None = None,
        events: EventSink | None = None,
        impact: PriceImpactEstimator | None = None,
        reserves_source: ReservesSource | None = None,
        token_balance: TokenBalanceSource | None = None,
        journal: TradeJournal | None = None,
        on_tick: TickCallback | None = None,
    ) -> None:
        """Initialize collaborators.

        Args:
            probe: Pool probe for the mint
            price_source: Live price in SOL per token
            executor: Swap executor
            liquidity_source: Pool liquidity in USD, used for sizing and drain tracking
            deny_list: Deny list for the originating address
            events: Event sink
            impact: Price impact estimator
            reserves_source: Pool (SOL, token) reserves for the AMM impact fallback
            token_balance: Held token amount in base units; enables exit liquidation
            journal: Trade journal
            on_tick: Callback receiving every monitored price
        """
        self.probe = probe
        self.price_source = price_source
        self.executor = executor
        self.liquidity_source = liquidity_source
        self.deny_list = deny_list
        self.events = events
        self.impact = impact
        self.reserves_source = reserves_source
        self.token_balance = token_balance
        self.journal = journal
        self.on_tick = on_tick


class SnipeOrchestrator:
    """Runs one mint from pool detection to exit decision."""

    def __init__(
        self,
        config: StrategyConfig,
        collaborators: SnipeCollaborators,
        token_decimals: int = 6,
        track_pool_drain: bool = True,
        now_fn: Callable[[], float] | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.config = config
        self.c = collaborators
        self.token_decimals = token_decimals
        self.track_pool_drain = track_pool_drain
        self._now_fn = now_fn
        self._sleep_fn = sleep_fn

        self.pool_waiter = PoolWaiter(config.mint_wait, now_fn=now_fn, sleep_fn=sleep_fn)
        self.controller: ExitController | None = None
        self.pool: PoolInfo | None = None
        self.decision: ExitDecision | None = None

        self._mint = ""
        self._last_liquidity: float | None = None
        self._pending_signals: list[SpamSignal] = []
        self._abort_reason: str | None = None

    def push_signal(self, signal: SpamSignal) -> None:
        """Feed a spam signal to the position's signal watcher."""
        if self.controller is None:
            self._pending_signals.append(signal)
        else:
            self.controller.strategies.signal.push(signal)

    def push_pool_delta(self, delta_percent: float) -> None:
        """Feed an externally observed pool change to the drain detector."""
        if self.controller is not None:
            self.controller.strategies.drain.push_pool_delta(delta_percent)

    def abort(self, reason: str = "manual abort") -> None:
        """Stop before the buy, or close the monitored position at the next tick."""
        self._abort_reason = reason
        if self.controller is not None:
            self.controller.abort(reason)

    async def _emit(self, event: UIEvent) -> None:
        if self.c.events is None:
            return
        try:
            await self.c.events.emit(event)
        except Exception as e:
            logger.error("Failed to emit event", type=event.type, error=str(e))

    async def _journal(self, **trade: Any) -> None:
        if self.c.journal is None:
            return
        try:
            await self.c.journal.record_trade(**trade)
        except Exception as e:
            logger.error("Failed to record trade", error=str(e), **trade)

    def _abort_requested(self) -> bool:
        return self._abort_reason is not None

    def _check_aborted(self) -> None:
        if self._abort_reason is not None:
            raise AbortedError(f"Snipe aborted before entry: {self._abort_reason}")

    def _check_origin(self, dev_address: str | None) -> None:
        if dev_address is None or self.c.deny_list is None:
            return
        check = self.c.deny_list.is_address_denied(dev_address)
        if check.blocked:
            logger.warning(
                "Refusing to buy from denied origin",
                mint=self._mint,
                dev_address=dev_address,
                reason=check.reason,
            )
            raise DeniedOriginError(dev_address, check.reason)

    async def _size_position(self, desired_sol: float) -> float:
        if self.c.liquidity_source is None:
            logger.warning(
                "No liquidity source, skipping band sizing",
                mint=self._mint,
                desired_sol=desired_sol,
            )
            return desired_sol

        try:
            liquidity = await self.c.liquidity_source()
        except SniperError:
            raise
        except Exception as e:
            logger.error("Liquidity lookup failed", mint=self._mint, error=str(e))
            raise TransientProbeError(
                f"Liquidity lookup failed for {self._mint}: {e}"
            ) from e
        self._last_liquidity = liquidity
        return allowed_spend(desired_sol, liquidity, self.config.liquidity_bands)

    async def _reserves(self) -> tuple[float | None, float | None]:
        if self.c.reserves_source is None:
            return None, None
        try:
            reserves = await self.c.reserves_source()
        except Exception as e:
            logger.warning("Pool reserves unavailable", mint=self._mint, error=str(e))
            return None, None
        return reserves if reserves is not None else (None, None)

    async def _check_buy_impact(self, sol_amount: float) -> PriceImpact | None:
        if self.c.impact is None:
            return None
        sol_reserve, token_reserve = await self._reserves()
        impact = await self.c.impact.assess_buy(
            self._mint, sol_amount, sol_reserve, token_reserve
        )
        self.c.impact.check("buy", impact, mint=self._mint)
        return impact

    async def _sample_pool(self) -> None:
        try:
            liquidity = await self.c.liquidity_source()
        except Exception as e:
            logger.debug("Pool liquidity sample failed", mint=self._mint, error=str(e))
            return

        if self._last_liquidity:
            delta = (liquidity - self._last_liquidity) / self._last_liquidity * 100
            self.controller.strategies.drain.push_pool_delta(delta)
        self._last_liquidity = liquidity

    def _monitored_price_source(self) -> PriceSource:
        if not self.track_pool_drain or self.c.liquidity_source is None:
            return self.c.price_source

        async def price_with_pool_sample() -> float:
            await self._sample_pool()
            return await self.c.price_source()

        return price_with_pool_sample

    async def _entry_price(self, realized: float | None) -> float | None:
        """Realized buy price, else the live price, else None.

        None arms the controller on its first successfully fetched price,
        so a failed lookup here never leaves the bought position unmonitored.
        """
        if realized is not None and realized > 0:
            return realized
        try:
            return await self.c.price_source()
        except Exception as e:
            logger.warning(
                "Live entry price unavailable", mint=self._mint, error=str(e)
            )
            return None

    async def _liquidate(self, decision: ExitDecision) -> ExitDecision:
        amount = await self.c.token_balance()
        if amount <= 0:
            logger.warning("Nothing to sell", mint=self._mint, balance=amount)
            return decision

        impact = None
        if self.c.impact is not None:
            sol_reserve, token_reserve = await self._reserves()
            impact = self.c.impact.assess_sell(
                amount / 10**self.token_decimals, sol_reserve, token_reserve
            )
            self.c.impact.check("sell", impact, mint=self._mint)

        reason = decision.fired_strategy.value
        slippage = self.config.sell.slippage_for(reason)
        try:
            result = await self.c.executor.execute_sell(self._mint, amount, slippage)
        except Exception as e:
            logger.error("Sell failed", mint=self._mint, reason=reason, error=str(e))
            raise ExecutionFailure("sell", self._mint, e) from e

        logger.info(
            "Position sold",
            mint=self._mint,
            reason=reason,
            tx_id=result.tx_id,
            sol_received=result.sol_received,
            slippage_bps=slippage,
        )
        await self._emit(
            UIEvent(
                type="sell",
                level="success",
                title=f"SELL {self._mint}",
                body=f"reason={reason}",
                link=result.tx_id,
            )
        )
        await self._journal(
            token_mint=self._mint,
            side="sell",
            tx_id=result.tx_id,
            sol_amount=result.sol_received,
            token_amount=result.token_amount,
            price=decision.price_at_exit,
            price_impact_pct=impact.percent if impact else None,
            reason=reason,
            backend=result.backend,
        )
        return decision.model_copy(update={"sell_tx_id": result.tx_id})

    async def snipe(
        self, mint: str, desired_amount_sol: float, dev_address: str | None = None
    ) -> ExitDecision:
        """Run the full snipe sequence and return the exit decision.

        Raises:
            PoolTimeoutError: If no pool appears before the deadline
            AbortedError: If aborted before the buy, including during the pool wait
            TransientProbeError: If the sizing liquidity lookup fails
            PolicyRejection: If the deny list, liquidity bands or impact refuse
            ExecutionFailure: If the buy or the exit sell fails
        """
        if self.controller is not None:
            raise RuntimeError("SnipeOrchestrator runs a single position")

        self._mint = mint
        self.controller = ExitController(
            self.config,
            self._monitored_price_source(),
            mint=mint,
            events=self.c.events,
            on_tick=self.c.on_tick,
            now_fn=self._now_fn,
            sleep_fn=self._sleep_fn,
        )
        for pending in self._pending_signals:
            self.controller.strategies.signal.push(pending)
        self._pending_signals.clear()

        try:
            self.pool = await self.pool_waiter.wait_for_pool(
                mint, self.c.probe, should_stop=self._abort_requested
            )
        except AbortedError:
            self._check_aborted()
            raise
        await self._emit(
            UIEvent(
                type="pool",
                level="info",
                title=f"POOL {mint}",
                body=f"{self.pool.amm.value} pool {self.pool.pool_address}",
            )
        )

        self._check_origin(dev_address)
        sol_amount = await self._size_position(desired_amount_sol)
        impact = await self._check_buy_impact(sol_amount)
        self._check_aborted()

        try:
            result = await self.c.executor.execute_buy(mint, sol_amount)
        except Exception as e:
            logger.error("Buy failed", mint=mint, sol_amount=sol_amount, error=str(e))
            raise ExecutionFailure("buy", mint, e) from e

        logger.info(
            "Buy executed",
            mint=mint,
            sol_amount=sol_amount,
            tx_id=result.tx_id,
            price=result.price,
            backend=result.backend,
        )
        await self._emit(
            UIEvent(type="buy", level="success", title=f"BUY {mint}", link=result.tx_id)
        )
        await self._journal(
            token_mint=mint,
            side="buy",
            tx_id=result.tx_id,
            sol_amount=sol_amount,
            token_amount=result.token_amount,
            price=result.price,
            price_impact_pct=impact.percent if impact else None,
            backend=result.backend,
        )

        self.controller.record_entry(await self._entry_price(result.price))
        if self._abort_reason is not None:
            self.controller.abort(self._abort_reason)

        decision = await self.controller.run()
        self.decision = decision

        if self.c.token_balance is not None:
            decision = await self._liquidate(decision)
            self.decision = decision

        return decision


async def wait_and_snipe(
    mint: str,
    desired_amount_sol: float,
    collaborators: SnipeCollaborators,
    config: StrategyConfig | None = None,
    dev_address: str | None = None,
) -> ExitDecision:
    """Snipe ``mint`` with a fresh orchestrator."""
    orchestrator = SnipeOrchestrator(config or StrategyConfig(), collaborators)
    return await orchestrator.snipe(mint, desired_amount_sol, dev_address)


async def assemble_collaborators(
    settings: AppSettings, mint: str, signer=None
) -> tuple[SnipeCollaborators, list[Any]]:
    """Build concrete collaborators from settings.

    Returns:
        Collaborators and the resources to close afterwards
    """
    strategy = settings.strategy
    dex = DexScreenerPools(settings.dexscreener_base)
    jupiter = JupiterClient(settings.jupiter_base)
    closeables: list[Any] = [dex, jupiter]

    if settings.dry_run:
        paper = PaperSwapExecutor(price_fn=dex.live_price)
        executor: SwapExecutor = paper
        token_balance = partial(paper.balance, mint)
        logger.info("Using paper executor (dry run)")
    else:
        rpc = RpcSender(settings.rpc_url)
        closeables.append(rpc)
        sender = rpc
        if settings.use_jito:
            bundles = JitoBundleSender(settings.jito_endpoints)
            closeables.append(bundles)
            sender = BundleFirstSender(bundles, rpc)
        executor = JupiterSwapExecutor(
            jupiter,
            signer=signer,
            sender=sender,
            default_slippage_bps=settings.buy_slippage_bps,
            priority_fee_lamports=settings.priority_fee_lamports,
        )
        token_balance = (
            partial(rpc.get_token_balance, signer.public_key, mint) if signer else None
        )
        logger.critical("LIVE TRADING MODE ENABLED", rpc_url=settings.rpc_url)

    if settings.telegram_bot_token:
        events: EventSink = TelegramEventSink(
            settings.telegram_bot_token, settings.telegram_admin_ids
        )
        closeables.append(events)
    else:
        events = LoggingEventSink()

    journal = SQLiteStorage.from_url(settings.database_url)
    await journal.initialize()
    closeables.append(journal)

    collaborators = SnipeCollaborators(
        probe=partial(dex.probe_pool, mint),
        price_source=partial(dex.live_price, mint),
        executor=executor,
        liquidity_source=partial(dex.liquidity_usd, mint),
        deny_list=FileDenyList(strategy.deny_list),
        events=events,
        impact=PriceImpactEstimator(strategy.price_impact, quote_source=jupiter),
        reserves_source=partial(dex.reserves, mint),
        token_balance=token_balance,
        journal=journal,
    )
    return collaborators, closeables


async def _close_all(closeables: list[Any]) -> None:
    for resource in closeables:
        close = getattr(resource, "aclose", None) or getattr(resource, "close")
        try:
            await close()
        except Exception as e:
            logger.warning("Failed to close resource", error=str(e))


async def main() -> None:
    """Main entry point for the sniper."""
    parser = argparse.ArgumentParser(description="Solana mint sniper")
    parser.add_argument("--mint", required=True, help="Token mint to snipe")
    parser.add_argument(
        "--amount", type=float, required=True, help="Desired buy size in SOL"
    )
    parser.add_argument("--dev", default=None, help="Originating (dev) address")
    parser.add_argument(
        "--config", default="configs/paper.yaml", help="Configuration file path"
    )
    parser.add_argument(
        "--profile",
        default="paper",
        choices=["dev", "paper", "prod"],
        help="Configuration profile",
    )

    args = parser.parse_args()

    try:
        settings = load_settings(args.profile, args.config)
        collaborators, closeables = await assemble_collaborators(settings, args.mint)
    except Exception as e:
        logger.error("Fatal error", error=str(e))
        sys.exit(1)

    orchestrator = SnipeOrchestrator(settings.strategy, collaborators)

    def signal_handler(signum, frame):
        logger.info("Received shutdown signal")
        orchestrator.abort("shutdown signal")

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        decision = await orchestrator.snipe(args.mint, args.amount, args.dev)
        logger.info(
            "Snipe finished",
            mint=args.mint,
            strategy=decision.fired_strategy.value,
            reason=decision.reason,
            price=decision.price_at_exit,
            sell_tx_id=decision.sell_tx_id,
        )
    except SniperError as e:
        logger.error("Snipe failed", mint=args.mint, error=str(e))
        sys.exit(1)
    finally:
        await _close_all(closeables)


def cli() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    cli()
