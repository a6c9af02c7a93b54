"""Jupiter aggregator client and swap executor."""

from typing import Any, Protocol, runtime_checkable

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..core.interfaces import SwapExecutor
from ..core.types import SwapResult
from .senders import TxnSender, backend_for

logger = structlog.get_logger(__name__)

WSOL_MINT = "So11111111111111111111111111111111111111112"
LAMPORTS_PER_SOL = 1_000_000_000


@runtime_checkable
class TxnSigner(Protocol):
    """Protocol for signing Jupiter-built transactions."""

    @property
    def public_key(self) -> str:
        """Wallet public key (base58)."""
        ...

    def sign_transaction(self, tx_base64: str) -> str:
        """Sign a base64 unsigned transaction and return it base64 encoded."""
        ...


def build_quote_params(
    input_mint: str,
    output_mint: str,
    amount: int,
    slippage_bps: int,
    only_direct_routes: bool = False,
) -> dict[str, Any]:
    """Build query parameters for the Jupiter quote endpoint.

    Args:
        input_mint: Input token mint address
        output_mint: Output token mint address
        amount: Amount in smallest units (lamports for SOL)
        slippage_bps: Slippage tolerance in basis points
        only_direct_routes: Whether to only return direct routes

    Returns:
        Dictionary of query parameters
    """
    return {
        "inputMint": input_mint,
        "outputMint": output_mint,
        "amount": str(amount),
        "slippageBps": slippage_bps,
        "onlyDirectRoutes": str(only_direct_routes).lower(),
    }


class JupiterClient:
    """HTTP client for Jupiter v6 quote and swap endpoints."""

    def __init__(
        self,
        base_url: str = "https://quote-api.jup.ag/v6",
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}/{endpoint.lstrip('/')}"

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(3),
            wait=wait_exponential(multiplier=1, min=1, max=5),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
            reraise=True,
        ):
            with attempt:
                try:
                    response = await self.client.request(
                        method, url, params=params, json=json
                    )
                    response.raise_for_status()
                    return response.json()
                except httpx.HTTPStatusError as e:
                    logger.error(
                        "Jupiter API error",
                        endpoint=endpoint,
                        status_code=e.response.status_code,
                        response_text=e.response.text,
                    )
                    raise

    async def quote(
        self, input_mint: str, output_mint: str, amount: int, slippage_bps: int
    ) -> dict[str, Any]:
        """Request a quote.

        Raises:
            ValueError: If no route was found
        """
        params = build_quote_params(input_mint, output_mint, amount, slippage_bps)
        logger.debug(
            "Requesting Jupiter quote",
            input_mint=input_mint,
            output_mint=output_mint,
            amount=amount,
            slippage_bps=slippage_bps,
        )
        data = await self._request("GET", "quote", params=params)
        if not data.get("outAmount"):
            raise ValueError(f"No route found for {input_mint} -> {output_mint}")
        return data

    async def swap_transaction(
        self,
        quote: dict[str, Any],
        user_public_key: str,
        priority_fee_lamports: int | None = None,
        jito_tip_lamports: int | None = None,
    ) -> str:
        """Build an unsigned swap transaction for a quote.

        Returns:
            Base64 encoded transaction
        """
        body: dict[str, Any] = {
            "quoteResponse": quote,
            "userPublicKey": user_public_key,
            "wrapAndUnwrapSol": True,
            "dynamicComputeUnitLimit": True,
        }
        if jito_tip_lamports:
            body["prioritizationFeeLamports"] = {"jitoTipLamports": jito_tip_lamports}
        elif priority_fee_lamports:
            body["prioritizationFeeLamports"] = priority_fee_lamports

        data = await self._request("POST", "swap", json=body)
        tx = data.get("swapTransaction")
        if not tx:
            raise ValueError("No swap transaction returned from Jupiter")
        return tx

    async def quote_impact(self, mint: str, sol_amount: float) -> float | None:
        """Quoted price impact percent of buying ``mint`` with ``sol_amount`` SOL.

        Returns None when the aggregator cannot quote the trade.
        """
        try:
            quote = await self.quote(
                WSOL_MINT, mint, int(sol_amount * LAMPORTS_PER_SOL), slippage_bps=50
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Impact quote failed", mint=mint, error=str(e))
            return None

        raw = quote.get("priceImpactPct")
        if raw is None:
            return None
        return abs(float(raw))


class JupiterSwapExecutor(SwapExecutor):
    """Live swap execution: quote, build, sign, send."""

    def __init__(
        self,
        jupiter: JupiterClient,
        signer: TxnSigner | None = None,
        sender: TxnSender | None = None,
        default_slippage_bps: int = 150,
        priority_fee_lamports: int = 10_000,
        jito_tip_lamports: int | None = None,
        token_decimals: int = 6,
    ) -> None:
        """Initialize Jupiter swap executor.

        Args:
            jupiter: Jupiter HTTP client
            signer: Wallet signer
            sender: Transaction sender (RPC or bundle-first)
            default_slippage_bps: Slippage when the caller passes none
            priority_fee_lamports: Priority fee for standard sends
            jito_tip_lamports: Tip embedded in the swap when bundling
            token_decimals: Decimals of sniped tokens, used for the realized price
        """
        self.jupiter = jupiter
        self.signer = signer
        self.sender = sender
        self.default_slippage_bps = default_slippage_bps
        self.priority_fee_lamports = priority_fee_lamports
        self.jito_tip_lamports = jito_tip_lamports
        self.token_decimals = token_decimals

        if signer is None or sender is None:
            logger.warning(
                "Jupiter executor initialized without signer/sender - live trading disabled",
                base_url=jupiter.base_url,
            )

    def _require_live(self) -> tuple[TxnSigner, TxnSender]:
        if self.signer is None or self.sender is None:
            raise RuntimeError(
                "Live trading is disabled. Provide signer/sender and enable in config."
            )
        return self.signer, self.sender

    async def _submit(
        self, quote: dict[str, Any], priority_fee_lamports: int | None
    ) -> str:
        signer, sender = self._require_live()
        unsigned = await self.jupiter.swap_transaction(
            quote,
            signer.public_key,
            priority_fee_lamports=priority_fee_lamports,
            jito_tip_lamports=self.jito_tip_lamports,
        )
        return await sender.send(signer.sign_transaction(unsigned))

    async def execute_buy(
        self,
        mint: str,
        sol_amount: float,
        slippage_bps: int | None = None,
        priority_fee: float | None = None,
    ) -> SwapResult:
        """Buy ``mint`` with ``sol_amount`` SOL.

        Args:
            mint: Token mint address
            sol_amount: SOL to spend
            slippage_bps: Slippage override
            priority_fee: Priority fee in SOL (overrides the configured lamports)

        Returns:
            Swap result with price in SOL per token and the raw token amount
        """
        slippage = slippage_bps or self.default_slippage_bps
        fee = (
            int(priority_fee * LAMPORTS_PER_SOL)
            if priority_fee is not None
            else self.priority_fee_lamports
        )

        quote = await self.jupiter.quote(
            WSOL_MINT, mint, int(sol_amount * LAMPORTS_PER_SOL), slippage
        )
        tokens_out = float(quote["outAmount"])
        logger.info(
            "Buy quote received",
            mint=mint,
            sol_amount=sol_amount,
            tokens_out=tokens_out,
            price_impact=quote.get("priceImpactPct"),
        )

        tx_id = await self._submit(quote, fee)
        logger.info("Buy submitted", mint=mint, tx_id=tx_id)

        ui_tokens = tokens_out / 10**self.token_decimals
        return SwapResult(
            tx_id=tx_id,
            price=sol_amount / ui_tokens if ui_tokens > 0 else None,
            token_amount=tokens_out,
            backend=backend_for(tx_id),
        )

    async def execute_sell(
        self, mint: str, token_amount: float, slippage_bps: int | None = None
    ) -> SwapResult:
        """Sell ``token_amount`` base units of ``mint`` for SOL."""
        slippage = slippage_bps or self.default_slippage_bps

        quote = await self.jupiter.quote(mint, WSOL_MINT, int(token_amount), slippage)
        sol_received = float(quote["outAmount"]) / LAMPORTS_PER_SOL
        logger.info(
            "Sell quote received",
            mint=mint,
            token_amount=token_amount,
            sol_received=sol_received,
            slippage_bps=slippage,
        )

        tx_id = await self._submit(quote, self.priority_fee_lamports)
        logger.info("Sell submitted", mint=mint, tx_id=tx_id)

        return SwapResult(
            tx_id=tx_id,
            sol_received=sol_received,
            token_amount=token_amount,
            backend=backend_for(tx_id),
        )
