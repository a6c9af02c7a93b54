"""Pool drain pattern exit strategy."""

import time
from collections import deque
from collections.abc import Callable

import structlog

from ..config.settings import DrainPatternConfig
from ..core.types import DrainSample

logger = structlog.get_logger(__name__)


class DrainPatternStrategy:
    """Exits when liquidity drains too fast over a sliding time window.

    Only removals count toward the trigger: the magnitudes of all negative
    pool deltas inside the window are summed, so one large drain and many
    small ones are treated alike once they add up past the trigger.
    """

    def __init__(
        self,
        config: DrainPatternConfig,
        now_fn: Callable[[], float] | None = None,
    ) -> None:
        """Initialize drain detection.

        Args:
            config: Window bounds and trigger threshold
            now_fn: Optional function to get current timestamp (for testing)
        """
        self.config = config
        self._now_fn = now_fn or time.monotonic
        self._window: deque[DrainSample] = deque()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def samples(self) -> list[DrainSample]:
        return list(self._window)

    def _prune(self, now: float) -> None:
        horizon = now - self.config.time_window_sec[1]
        while self._window and self._window[0].ts < horizon:
            self._window.popleft()

    def push_pool_delta(self, delta_percent: float) -> None:
        """Record a pool change in percent (negative means liquidity removed)."""
        if not self.enabled:
            return
        now = self._now_fn()
        self._prune(now)
        self._window.append(DrainSample(ts=now, pool_delta_percent=delta_percent))

    def drained_percent(self) -> float:
        """Total liquidity removed within the window, in percent."""
        self._prune(self._now_fn())
        return sum(
            -s.pool_delta_percent for s in self._window if s.pool_delta_percent < 0
        )

    def should_exit(self) -> bool:
        if not self.enabled:
            return False
        total = self.drained_percent()
        if total >= self.config.sell_trigger_percent:
            logger.info(
                "Pool drain threshold reached",
                drained_pct=total,
                trigger_pct=self.config.sell_trigger_percent,
                samples=len(self._window),
            )
            return True
        return False
