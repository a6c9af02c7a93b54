"""DexScreener data source for pool detection, prices and liquidity."""

import asyncio
import time
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..core.errors import TransientProbeError
from ..core.types import AmmKind, PoolInfo

logger = structlog.get_logger(__name__)

WSOL_MINT = "So11111111111111111111111111111111111111112"

_DEX_IDS = {
    "raydium": AmmKind.RAYDIUM,
    "pumpfun": AmmKind.PUMP,
    "pump": AmmKind.PUMP,
    "pumpswap": AmmKind.PUMPSWAP,
}


class TokenBucket:
    """Simple in-memory token bucket rate limiter."""

    def __init__(self, capacity: int, refill_rate: float) -> None:
        """Initialize token bucket.

        Args:
            capacity: Maximum tokens in bucket
            refill_rate: Tokens per second refill rate
        """
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = capacity
        self.last_refill = time.monotonic()

    async def acquire(self) -> bool:
        """Try to acquire a token, return True if successful."""
        now = time.monotonic()
        self.tokens = min(
            self.capacity, self.tokens + (now - self.last_refill) * self.refill_rate
        )
        self.last_refill = now

        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False


def amm_kind_for_pair(pair: dict[str, Any]) -> AmmKind | None:
    """Map a DexScreener pair's ``dexId``/labels to an AMM family."""
    dex_id = (pair.get("dexId") or "").lower()
    labels = [label.upper() for label in pair.get("labels") or []]
    if dex_id == "raydium" and "CPMM" in labels:
        return AmmKind.CPMM
    return _DEX_IDS.get(dex_id)


def select_sol_pair(pairs: list[dict[str, Any]], mint: str) -> dict[str, Any] | None:
    """Most liquid supported pair trading ``mint`` against SOL."""
    candidates = [
        p
        for p in pairs
        if amm_kind_for_pair(p) is not None
        and p.get("baseToken", {}).get("address") == mint
        and p.get("quoteToken", {}).get("address") == WSOL_MINT
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda p: float((p.get("liquidity") or {}).get("usd", 0)))


class DexScreenerPools:
    """DexScreener lookups backing the pool probe, price and liquidity feeds."""

    def __init__(
        self,
        base_url: str = "https://api.dexscreener.com",
        session: httpx.AsyncClient | None = None,
        requests_per_minute: int = 300,
    ) -> None:
        """Initialize DexScreener pools source.

        Args:
            base_url: DexScreener API base URL
            session: Optional httpx client session
            requests_per_minute: Client-side rate limit
        """
        self.base_url = base_url.rstrip("/")
        self.session = session or httpx.AsyncClient(timeout=10.0)
        self.rate_limiter = TokenBucket(
            capacity=requests_per_minute, refill_rate=requests_per_minute / 60
        )

    async def aclose(self) -> None:
        await self.session.aclose()

    async def _make_request(self, endpoint: str) -> dict[str, Any]:
        while not await self.rate_limiter.acquire():
            await asyncio.sleep(0.1)

        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(3),
            wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
            retry=retry_if_exception_type((httpx.NetworkError, httpx.TimeoutException)),
            reraise=True,
        ):
            with attempt:
                response = await self.session.get(url)
                response.raise_for_status()
                return response.json()

    async def _pair(self, mint: str) -> dict[str, Any] | None:
        try:
            data = await self._make_request(f"latest/dex/tokens/{mint}")
        except httpx.HTTPError as e:
            raise TransientProbeError(f"DexScreener lookup failed for {mint}: {e}") from e
        return select_sol_pair(data.get("pairs") or [], mint)

    async def probe_pool(self, mint: str) -> PoolInfo | None:
        """Single non-blocking pool check."""
        pair = await self._pair(mint)
        if pair is None:
            return None
        return PoolInfo(
            amm=amm_kind_for_pair(pair),
            pool_address=pair["pairAddress"],
            token_mint=mint,
        )

    async def live_price(self, mint: str) -> float:
        """Current price in SOL per token.

        Raises:
            TransientProbeError: If no priced pair is available
        """
        pair = await self._pair(mint)
        if pair is None or not pair.get("priceNative"):
            raise TransientProbeError(f"No SOL price available for {mint}")
        return float(pair["priceNative"])

    async def liquidity_usd(self, mint: str) -> float:
        """Pool liquidity in USD.

        Raises:
            TransientProbeError: If no pair is available
        """
        pair = await self._pair(mint)
        if pair is None:
            raise TransientProbeError(f"No pool liquidity available for {mint}")
        return float((pair.get("liquidity") or {}).get("usd", 0))

    async def reserves(self, mint: str) -> tuple[float, float] | None:
        """(SOL reserve, token reserve) of the selected pool, when reported."""
        pair = await self._pair(mint)
        if pair is None:
            return None
        liquidity = pair.get("liquidity") or {}
        sol_reserve = float(liquidity.get("quote") or 0)
        token_reserve = float(liquidity.get("base") or 0)
        if sol_reserve <= 0 or token_reserve <= 0:
            return None
        return sol_reserve, token_reserve
