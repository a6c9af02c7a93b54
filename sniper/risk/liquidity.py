"""Liquidity band position sizing."""

import structlog

from ..config.settings import LiquidityBand
from ..core.errors import LiquidityBandError

logger = structlog.get_logger(__name__)


def pick_band(liquidity_usd: float, bands: list[LiquidityBand]) -> LiquidityBand:
    """Select the highest band whose floor is at or below ``liquidity_usd``.

    Args:
        liquidity_usd: Current pool liquidity in USD
        bands: Bands in ascending order of liquidity floor

    Returns:
        Matching band

    Raises:
        LiquidityBandError: If liquidity is below every band
    """
    selected = None
    for band in bands:
        if liquidity_usd >= band.min_liquidity_usd:
            selected = band
        else:
            break

    if selected is None:
        raise LiquidityBandError(liquidity_usd, bands[0].min_liquidity_usd)
    return selected


def max_buy_for_liquidity(liquidity_usd: float, bands: list[LiquidityBand]) -> float:
    """Maximum SOL spend allowed at this liquidity level."""
    band = pick_band(liquidity_usd, bands)
    logger.debug(
        "Liquidity band selected",
        liquidity_usd=liquidity_usd,
        band=band.name,
        max_buy_sol=band.max_buy_sol,
    )
    return band.max_buy_sol


def allowed_spend(
    desired_sol: float, liquidity_usd: float, bands: list[LiquidityBand]
) -> float:
    """Desired spend capped by the liquidity band."""
    cap = max_buy_for_liquidity(liquidity_usd, bands)
    spend = min(desired_sol, cap)
    if spend < desired_sol:
        logger.info(
            "Reduced position size due to liquidity band",
            desired_sol=desired_sol,
            allowed_sol=spend,
            liquidity_usd=liquidity_usd,
        )
    return spend
