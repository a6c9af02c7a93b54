"""Take profit (auto scalp) exit strategy."""

import structlog

from ..config.settings import TakeProfitConfig
from ..core.types import TakeProfitState

logger = structlog.get_logger(__name__)


def calculate_pnl_percentage(entry_price: float, current_price: float) -> float:
    """Calculate percentage P&L.

    Args:
        entry_price: Entry price
        current_price: Current price

    Returns:
        P&L percentage (positive for profit, negative for loss)
    """
    if entry_price == 0:
        return 0.0
    return ((current_price - entry_price) / entry_price) * 100.0


class TakeProfitStrategy:
    """Exits once the gain over the entry price reaches the target."""

    def __init__(self, config: TakeProfitConfig) -> None:
        self.config = config
        self._entry: float | None = None

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def state(self) -> TakeProfitState:
        return TakeProfitState(entry_price=self._entry)

    def set_entry(self, price: float) -> None:
        """Set the entry price. Called exactly once per position."""
        if self._entry is not None:
            raise RuntimeError(
                f"Entry price already set to {self._entry}; use a new strategy per position"
            )
        self._entry = price
        logger.debug(
            "Take profit armed",
            entry_price=price,
            target_pct=self.config.target_profit_percent,
        )

    def should_exit(self, current_price: float) -> bool:
        if not self.enabled or self._entry is None:
            return False
        gain = calculate_pnl_percentage(self._entry, current_price)
        return gain >= self.config.target_profit_percent
