"""Bounded wait for a mint's first tradeable pool."""

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

from ..config.settings import MintWaitConfig
from ..core.errors import AbortedError, PoolTimeoutError
from ..core.interfaces import PoolProbe
from ..core.types import PoolInfo

logger = structlog.get_logger(__name__)


class PoolWaiter:
    """Polls a pool probe until a pool appears or the deadline passes."""

    def __init__(
        self,
        config: MintWaitConfig | None = None,
        now_fn: Callable[[], float] | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        """Initialize pool waiter.

        Args:
            config: Default deadline and poll spacing
            now_fn: Optional monotonic clock (for testing)
            sleep_fn: Optional async sleep (for testing)
        """
        self.config = config or MintWaitConfig()
        self._now_fn = now_fn or time.monotonic
        self._sleep_fn = sleep_fn or asyncio.sleep

    async def wait_for_pool(
        self,
        mint: str,
        probe: PoolProbe,
        max_wait: float | None = None,
        poll_interval: float | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> PoolInfo:
        """Wait until ``probe`` reports a pool for ``mint``.

        The first probe always runs; the deadline is measured from it.

        Args:
            mint: Token mint being watched
            probe: Single non-blocking pool check
            max_wait: Deadline in seconds (defaults to config)
            poll_interval: Spacing between probes in seconds (defaults to config)
            should_stop: Optional cancellation check, polled around each sleep

        Returns:
            Detected pool

        Raises:
            PoolTimeoutError: If no pool was found before the deadline
            AbortedError: If ``should_stop`` returned True
        """
        if max_wait is None:
            max_wait = self.config.max_wait_sec
        if poll_interval is None:
            poll_interval = self.config.poll_ms / 1000

        start = self._now_fn()
        attempts = 0

        logger.info(
            "Starting pool monitoring",
            mint=mint,
            max_wait_seconds=max_wait,
            poll_interval_seconds=poll_interval,
        )

        while True:
            elapsed = self._now_fn() - start
            if attempts and elapsed >= max_wait:
                logger.warning(
                    "Pool wait timed out", mint=mint, attempts=attempts, elapsed=elapsed
                )
                raise PoolTimeoutError(mint, max_wait, attempts)

            attempts += 1
            # In-flight probes are bounded by what is left of the deadline
            if attempts == 1:
                probe_timeout = max(max_wait, poll_interval)
            else:
                probe_timeout = max_wait - elapsed
            try:
                info = await asyncio.wait_for(probe(), timeout=probe_timeout)
            except TimeoutError:
                logger.warning("Pool probe timed out", mint=mint, attempt=attempts)
                info = None
            except Exception as e:
                logger.warning(
                    "Error checking for pool",
                    mint=mint,
                    attempt=attempts,
                    error=str(e),
                )
                info = None

            if info is not None:
                logger.info(
                    "Pool found",
                    mint=mint,
                    amm=info.amm.value,
                    pool=info.pool_address,
                    attempts=attempts,
                    elapsed=self._now_fn() - start,
                )
                return info

            logger.debug(
                "No pool detected yet", mint=mint, attempt=attempts, elapsed=elapsed
            )
            self._check_stop(mint, attempts, should_stop)
            await self._sleep_fn(poll_interval)
            self._check_stop(mint, attempts, should_stop)

    @staticmethod
    def _check_stop(
        mint: str, attempts: int, should_stop: Callable[[], bool] | None
    ) -> None:
        if should_stop is not None and should_stop():
            logger.info("Pool wait cancelled", mint=mint, attempts=attempts)
            raise AbortedError(
                f"Pool wait for {mint} cancelled after {attempts} checks"
            )


async def wait_for_pool(
    mint: str,
    probe: PoolProbe,
    max_wait: float = 3600.0,
    poll_interval: float = 0.6,
) -> PoolInfo:
    """Wait for a pool using the real clock."""
    return await PoolWaiter().wait_for_pool(mint, probe, max_wait, poll_interval)
