"""Constant-product price impact estimation and impact policy."""

import structlog

from ..config.settings import PriceImpactConfig
from ..core.errors import PriceImpactError
from ..core.interfaces import ImpactQuoteSource
from ..core.types import PriceImpact

logger = structlog.get_logger(__name__)


def estimate(sol_reserve: float, token_reserve: float, sol_amount_in: float) -> float:
    """Expected price impact of buying with ``sol_amount_in`` SOL.

    Uses ``sol_reserve * token_reserve = k``. Degenerate inputs return 0.0,
    which callers must read as "unknown", not "safe".

    Returns:
        Absolute price impact in percent
    """
    if sol_reserve <= 0 or token_reserve <= 0 or sol_amount_in <= 0:
        return 0.0

    k = sol_reserve * token_reserve
    new_sol_reserve = sol_reserve + sol_amount_in
    new_token_reserve = k / new_sol_reserve

    price_before = sol_reserve / token_reserve
    price_after = new_sol_reserve / new_token_reserve

    return abs((price_after - price_before) / price_before * 100)


def estimate_sell(
    sol_reserve: float, token_reserve: float, token_amount_in: float
) -> float:
    """Expected price impact of selling ``token_amount_in`` tokens into the pool."""
    if sol_reserve <= 0 or token_reserve <= 0 or token_amount_in <= 0:
        return 0.0

    k = sol_reserve * token_reserve
    new_token_reserve = token_reserve + token_amount_in
    new_sol_reserve = k / new_token_reserve

    price_before = sol_reserve / token_reserve
    price_after = new_sol_reserve / new_token_reserve

    return abs((price_after - price_before) / price_before * 100)


class PriceImpactEstimator:
    """Resolves a trade's price impact and applies the buy/sell thresholds.

    An external aggregator quote is preferred. The constant-product formula
    is a fallback used only when no quote is available, and the two figures
    are never combined.
    """

    def __init__(
        self,
        config: PriceImpactConfig | None = None,
        quote_source: ImpactQuoteSource | None = None,
    ) -> None:
        self.config = config or PriceImpactConfig()
        self.quote_source = quote_source

    async def _quoted(self, mint: str, sol_amount: float) -> float | None:
        if self.quote_source is None:
            return None
        try:
            return await self.quote_source.quote_impact(mint, sol_amount)
        except Exception as e:
            logger.warning("Impact quote unavailable", mint=mint, error=str(e))
            return None

    async def assess_buy(
        self,
        mint: str,
        sol_amount: float,
        sol_reserve: float | None = None,
        token_reserve: float | None = None,
    ) -> PriceImpact:
        """Impact of a buy, from quote first and reserves second."""
        quoted = await self._quoted(mint, sol_amount)
        if quoted is not None:
            return PriceImpact(percent=quoted, source="quote")

        if (
            sol_reserve
            and token_reserve
            and sol_reserve > 0
            and token_reserve > 0
            and sol_amount > 0
        ):
            return PriceImpact(
                percent=estimate(sol_reserve, token_reserve, sol_amount),
                source="amm",
            )

        return PriceImpact.unknown()

    def assess_sell(
        self,
        token_amount: float,
        sol_reserve: float | None = None,
        token_reserve: float | None = None,
    ) -> PriceImpact:
        """Impact of a sell from reserves; unknown when reserves are absent."""
        if (
            sol_reserve
            and token_reserve
            and sol_reserve > 0
            and token_reserve > 0
            and token_amount > 0
        ):
            return PriceImpact(
                percent=estimate_sell(sol_reserve, token_reserve, token_amount),
                source="amm",
            )
        return PriceImpact.unknown()

    def check(self, side: str, impact: PriceImpact, mint: str = "") -> None:
        """Raise when a known impact exceeds the side's threshold.

        Raises:
            PriceImpactError: If the impact is over the limit
        """
        max_pct = (
            self.config.max_buy_percent
            if side == "buy"
            else self.config.max_sell_percent
        )

        if not impact.known:
            logger.warning(
                "Price impact unknown, proceeding without impact check",
                side=side,
                mint=mint,
            )
            return

        logger.info(
            "Price impact assessed",
            side=side,
            mint=mint,
            impact_pct=impact.percent,
            source=impact.source,
            max_pct=max_pct,
        )
        if impact.percent > max_pct:
            raise PriceImpactError(side, impact.percent, max_pct)
