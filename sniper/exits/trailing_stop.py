"""Trailing stop exit strategy."""

import structlog

from ..config.settings import TrailingStopConfig
from ..core.types import TrailingStopState

logger = structlog.get_logger(__name__)


def calculate_trailing_stop_price(
    high_water_mark: float, stop_percentage: float
) -> float:
    """Calculate trailing stop price.

    Args:
        high_water_mark: Highest price reached
        stop_percentage: Stop distance in percent (e.g., 12 for 12%)

    Returns:
        Trailing stop price
    """
    return high_water_mark * (1 - stop_percentage / 100)


class TrailingStopStrategy:
    """Exits once price falls back to a fixed distance below its peak.

    The peak only moves up. The stop is recomputed from the low bound of the
    configured percent range whenever the peak advances, and never before the
    first price establishes a peak.
    """

    def __init__(self, config: TrailingStopConfig) -> None:
        self.config = config
        self._peak = 0.0
        self._stop = 0.0

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def state(self) -> TrailingStopState:
        return TrailingStopState(peak_price=self._peak, stop_price=self._stop)

    def on_price(self, price: float) -> None:
        """Record a price observation."""
        if not self.enabled:
            return

        if price > self._peak:
            self._peak = price
            self._stop = calculate_trailing_stop_price(
                self._peak, self.config.percent_range[0]
            )
            logger.debug(
                "Updated trailing stop",
                high_water_mark=self._peak,
                trailing_stop=self._stop,
            )

    def should_exit(self, price: float) -> bool:
        """Check whether the stop is hit at this price."""
        if not self.enabled:
            return False
        return self._stop > 0 and price <= self._stop
