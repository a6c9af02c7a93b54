"""Exit controller driving a position from entry to a single exit decision."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from enum import Enum

import structlog

from ..config.settings import StrategyConfig
from ..core.interfaces import EventSink, PriceSource, TickCallback
from ..core.types import ExitDecision, ExitReason, ExitStrategyKind, UIEvent
from ..exits.drain_pattern import DrainPatternStrategy
from ..exits.signal_watcher import SignalWatcherStrategy
from ..exits.take_profit import TakeProfitStrategy
from ..exits.trailing_stop import TrailingStopStrategy

logger = structlog.get_logger(__name__)


class PositionPhase(str, Enum):
    """Lifecycle phase of a monitored position."""

    ARMED = "armed"
    MONITORING = "monitoring"
    TRAILING_STOP = "trailing_stop"
    TAKE_PROFIT = "take_profit"
    DRAIN = "drain"
    SIGNAL = "signal"
    MAX_HOLD = "max_hold"
    ABORTED = "aborted"
    CLOSED = "closed"


# Evaluation order doubles as the tie-break policy
EVALUATION_ORDER: tuple[ExitStrategyKind, ...] = (
    ExitStrategyKind.TRAILING_STOP,
    ExitStrategyKind.TAKE_PROFIT,
    ExitStrategyKind.DRAIN,
    ExitStrategyKind.SIGNAL,
)

_EXIT_EVENTS = {
    ExitReason.TRAILING_STOP: ("trailingStop", "warn", "Trailing stop exit"),
    ExitReason.TAKE_PROFIT: ("takeProfit", "success", "AutoScalp take profit"),
    ExitReason.DRAIN: ("poolDrain", "error", "AutoExit: pool drain pattern"),
    ExitReason.SIGNAL: ("spamExit", "error", "SpamWatcher exit"),
    ExitReason.MAX_HOLD: ("sell", "warn", "Max hold time reached"),
    ExitReason.ABORTED: ("sell", "warn", "Position aborted"),
}


class ExitStrategies:
    """The closed set of exit strategies owned by one position."""

    def __init__(
        self,
        config: StrategyConfig,
        now_fn: Callable[[], float] | None = None,
    ) -> None:
        self.trailing_stop = TrailingStopStrategy(config.trailing_stop)
        self.take_profit = TakeProfitStrategy(config.take_profit)
        self.drain = DrainPatternStrategy(config.drain_pattern, now_fn=now_fn)
        self.signal = SignalWatcherStrategy(config.signal_watcher)


class ExitController:
    """Owns a position's post-entry tick loop.

    Each tick fetches one price, feeds the trailing stop and the tick
    callback, then evaluates the strategies in ``EVALUATION_ORDER``. The
    first one to fire ends the position with exactly one ``ExitDecision``.
    """

    def __init__(
        self,
        config: StrategyConfig,
        price_source: PriceSource,
        mint: str = "",
        events: EventSink | None = None,
        on_tick: TickCallback | None = None,
        strategies: ExitStrategies | None = None,
        now_fn: Callable[[], float] | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize exit controller.

        Args:
            config: Shared read-only strategy configuration
            price_source: Live price fetcher
            mint: Token mint (for logs and events)
            events: Optional best-effort event sink
            on_tick: Optional callback receiving every fetched price
            strategies: Pre-built strategies (built from config when omitted)
            now_fn: Optional monotonic clock (for testing)
            sleep_fn: Optional async sleep (for testing)
        """
        self.config = config
        self.price_source = price_source
        self.mint = mint
        self.events = events
        self.on_tick = on_tick
        self._now_fn = now_fn or time.monotonic
        self._sleep_fn = sleep_fn or asyncio.sleep
        self.strategies = strategies or ExitStrategies(config, now_fn=self._now_fn)

        self.phase = PositionPhase.ARMED
        self.entry_price: float | None = None
        self.last_price: float | None = None
        self.ticks = 0
        self.decision: ExitDecision | None = None

        self._entry_time: float | None = None
        self._abort_reason: str | None = None

    def record_entry(self, price: float | None) -> None:
        """Record the entry price and start monitoring.

        With ``price=None`` the position is monitored immediately and the
        first successfully fetched tick price becomes the entry price.
        """
        if self.phase is not PositionPhase.ARMED:
            raise RuntimeError(f"Cannot record entry in phase {self.phase.value}")

        self._entry_time = self._now_fn()
        self.phase = PositionPhase.MONITORING
        if price is None:
            logger.warning(
                "Entry price unknown, using first monitored price", mint=self.mint
            )
            return
        self._set_entry_price(price)

    def _set_entry_price(self, price: float) -> None:
        self.entry_price = price
        self.strategies.take_profit.set_entry(price)
        logger.info("Position monitoring armed", mint=self.mint, entry_price=price)

    def abort(self, reason: str = "manual abort") -> None:
        """Request the loop to close the position at the next evaluation point."""
        self._abort_reason = reason

    def _evaluate(self, price: float | None) -> tuple[ExitReason, str] | None:
        s = self.strategies
        for kind in EVALUATION_ORDER:
            if kind is ExitStrategyKind.TRAILING_STOP:
                if price is not None and s.trailing_stop.should_exit(price):
                    stop = s.trailing_stop.state
                    return ExitReason.TRAILING_STOP, (
                        f"Price {price:g} at or below stop {stop.stop_price:g} "
                        f"(peak {stop.peak_price:g})"
                    )
            elif kind is ExitStrategyKind.TAKE_PROFIT:
                if price is not None and s.take_profit.should_exit(price):
                    return ExitReason.TAKE_PROFIT, (
                        f"Price {price:g} reached "
                        f"+{self.config.take_profit.target_profit_percent:g}% "
                        f"over entry {self.entry_price:g}"
                    )
            elif kind is ExitStrategyKind.DRAIN:
                if s.drain.should_exit():
                    return ExitReason.DRAIN, (
                        f"Pool drained {s.drain.drained_percent():.2f}% within "
                        f"{self.config.drain_pattern.time_window_sec[1]:g}s"
                    )
            elif kind is ExitStrategyKind.SIGNAL:
                check = s.signal.should_exit()
                if check.exit:
                    return ExitReason.SIGNAL, check.reason or "High severity signal"
        return None

    def _safeguards(self) -> tuple[ExitReason, str] | None:
        if self._abort_reason is not None:
            return ExitReason.ABORTED, self._abort_reason

        max_hold = self.config.exit_loop.max_hold_seconds
        if max_hold is not None and self._entry_time is not None:
            held = self._now_fn() - self._entry_time
            if held >= max_hold:
                return ExitReason.MAX_HOLD, f"Held {held:.1f}s (max {max_hold:g}s)"
        return None

    async def _tick(self) -> tuple[ExitReason, str] | None:
        price: float | None
        try:
            price = await self.price_source()
        except Exception as e:
            logger.warning(
                "Price fetch failed, skipping price checks this tick",
                mint=self.mint,
                tick=self.ticks,
                error=str(e),
            )
            price = None

        if price is not None:
            if self.entry_price is None:
                self._set_entry_price(price)
            self.last_price = price
            self.strategies.trailing_stop.on_price(price)
            if self.on_tick is not None:
                self.on_tick(price)

        return self._evaluate(price) or self._safeguards()

    async def run(self) -> ExitDecision:
        """Tick until an exit fires and return the single decision.

        Raises:
            RuntimeError: If entry was never recorded or the position is closed
        """
        if self.phase is PositionPhase.ARMED:
            raise RuntimeError("Entry price must be recorded before monitoring")
        if self.phase is not PositionPhase.MONITORING:
            raise RuntimeError(
                f"Position already closed by {self.decision.fired_strategy.value}"
            )

        interval = self.config.exit_loop.tick_ms / 1000
        logger.info(
            "Starting exit monitoring",
            mint=self.mint,
            tick_seconds=interval,
            max_hold_seconds=self.config.exit_loop.max_hold_seconds,
        )

        while True:
            self.ticks += 1
            fired = await self._tick()
            if fired is not None:
                return await self._close(*fired)
            await self._sleep_fn(interval)

    async def _close(self, reason: ExitReason, text: str) -> ExitDecision:
        self.phase = PositionPhase(reason.value)
        self.decision = ExitDecision(
            fired_strategy=reason,
            reason=text,
            price_at_exit=self.last_price,
            ticks=self.ticks,
        )

        logger.info(
            "Exit strategy fired",
            mint=self.mint,
            strategy=reason.value,
            reason=text,
            price=self.last_price,
            entry_price=self.entry_price,
            ticks=self.ticks,
        )

        if self.events is not None:
            event_type, level, title = _EXIT_EVENTS[reason]
            try:
                await self.events.emit(
                    UIEvent(type=event_type, level=level, title=title, body=text)
                )
            except Exception as e:
                logger.error("Failed to emit exit event", mint=self.mint, error=str(e))

        self.phase = PositionPhase.CLOSED
        return self.decision
