"""Transaction senders: plain JSON-RPC and Jito bundles with RPC fallback."""

import asyncio
import time
from typing import Any, Protocol

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)

BUNDLE_TX_PREFIX = "JITO_BUNDLE_"


class SolanaRpcError(Exception):
    """JSON-RPC error returned by a Solana node or block engine."""

    def __init__(self, code: int, message: str, data: dict | None = None):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(f"RPC Error {code}: {message}")


def _is_retryable_error(exception) -> bool:
    if isinstance(exception, httpx.TimeoutException | httpx.NetworkError):
        return True
    if isinstance(exception, SolanaRpcError):
        return exception.code in {
            -32603,  # Internal error
            -32005,  # Node is unhealthy
            -32004,  # Slot was skipped
            429,
        }
    return False


class TxnSender(Protocol):
    """Protocol for signed transaction submission."""

    async def send(self, tx_base64: str) -> str:
        """Submit a base64 signed transaction and return its id."""
        ...


class RpcSender:
    """JSON-RPC sender for Solana transactions."""

    def __init__(
        self,
        rpc_url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        skip_preflight: bool = False,
        max_retries: int = 3,
    ) -> None:
        """Initialize RpcSender.

        Args:
            rpc_url: Solana RPC endpoint URL
            client: Optional httpx client (will create one if not provided)
            timeout: Request timeout in seconds
            skip_preflight: Whether to skip preflight checks on send
            max_retries: Node-side resend attempts
        """
        self.rpc_url = rpc_url
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.skip_preflight = skip_preflight
        self.max_retries = max_retries
        self._request_id = 0

    async def aclose(self) -> None:
        await self.client.aclose()

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception(_is_retryable_error),
        reraise=True,
    )
    async def _rpc(self, method: str, params: list[Any]) -> Any:
        """Make a JSON-RPC request with retries.

        Raises:
            SolanaRpcError: For RPC-specific errors
            httpx.HTTPError: For HTTP errors
        """
        request_id = self._next_id()
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params,
        }

        start_time = time.time()
        try:
            response = await self.client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(
                "RPC request failed",
                method=method,
                request_id=request_id,
                duration=time.time() - start_time,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise

        if "error" in data:
            error = data["error"]
            raise SolanaRpcError(
                code=error.get("code", -1),
                message=error.get("message", "Unknown RPC error"),
                data=error.get("data"),
            )

        logger.debug(
            "RPC request completed",
            method=method,
            request_id=request_id,
            duration=time.time() - start_time,
        )
        return data.get("result")

    async def send(self, tx_base64: str) -> str:
        """Send a signed transaction and return its signature."""
        logger.info(
            "Sending transaction",
            tx_length=len(tx_base64),
            skip_preflight=self.skip_preflight,
        )
        signature = await self._rpc(
            "sendTransaction",
            [
                tx_base64,
                {
                    "encoding": "base64",
                    "skipPreflight": self.skip_preflight,
                    "maxRetries": self.max_retries,
                    "preflightCommitment": "confirmed",
                },
            ],
        )
        logger.info("Transaction sent successfully", signature=signature)
        return signature

    async def confirm_signature(
        self,
        signature: str,
        commitment: str = "confirmed",
        timeout: float = 60.0,
        poll_interval: float = 2.0,
    ) -> dict[str, Any]:
        """Poll signature status until confirmed.

        Raises:
            TimeoutError: If confirmation times out
            SolanaRpcError: If the transaction failed on chain
        """
        deadline = time.monotonic() + timeout

        while time.monotonic() < deadline:
            result = await self._rpc(
                "getSignatureStatuses",
                [[signature], {"searchTransactionHistory": True}],
            )
            status = (result or {}).get("value", [None])[0]

            if status is not None:
                if status.get("err") is not None:
                    logger.error(
                        "Transaction failed", signature=signature, error=status["err"]
                    )
                    raise SolanaRpcError(-1, f"Transaction failed: {status['err']}")
                if status.get("confirmationStatus") in (commitment, "finalized"):
                    logger.info(
                        "Transaction confirmed",
                        signature=signature,
                        slot=status.get("slot"),
                    )
                    return status

            await asyncio.sleep(poll_interval)

        raise TimeoutError(
            f"Transaction confirmation timeout after {timeout}s: {signature}"
        )

    async def get_token_balance(self, owner: str, mint: str) -> float:
        """Raw token balance (base units) held by ``owner`` for ``mint``."""
        result = await self._rpc(
            "getTokenAccountsByOwner",
            [owner, {"mint": mint}, {"encoding": "jsonParsed"}],
        )
        total = 0.0
        for account in (result or {}).get("value", []):
            info = account["account"]["data"]["parsed"]["info"]
            total += float(info["tokenAmount"]["amount"])
        return total


class JitoBundleSender:
    """Submits single-transaction bundles to Jito block engines in order."""

    def __init__(
        self,
        endpoints: list[str],
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        rate_limit_backoff: float = 2.0,
    ) -> None:
        if not endpoints:
            raise ValueError("At least one bundle endpoint is required")
        self.endpoints = endpoints
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.rate_limit_backoff = rate_limit_backoff

    async def aclose(self) -> None:
        await self.client.aclose()

    async def send(self, tx_base64: str) -> str:
        """Submit the bundle and return ``JITO_BUNDLE_<bundle id>``.

        Raises:
            SolanaRpcError: If every endpoint refused the bundle
        """
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "sendBundle",
            "params": [[tx_base64], {"encoding": "base64"}],
        }
        last_error = "no endpoint tried"

        for i, endpoint in enumerate(self.endpoints, start=1):
            try:
                response = await self.client.post(endpoint, json=payload)
            except httpx.HTTPError as e:
                last_error = f"Network error: {e}"
                logger.warning(
                    "Bundle endpoint error", endpoint=i, url=endpoint, error=str(e)
                )
                continue

            if response.status_code == 429:
                last_error = "HTTP 429: rate limited"
                logger.warning("Bundle endpoint rate limited", endpoint=i, url=endpoint)
                await asyncio.sleep(self.rate_limit_backoff)
                continue
            if response.status_code != 200:
                last_error = f"HTTP {response.status_code}: {response.text}"
                logger.warning(
                    "Bundle endpoint failed",
                    endpoint=i,
                    url=endpoint,
                    status_code=response.status_code,
                )
                continue

            data = response.json()
            if data.get("error"):
                last_error = f"Jito API error: {data['error'].get('message')}"
                logger.warning("Bundle rejected", endpoint=i, error=last_error)
                continue

            bundle_id = data.get("result")
            logger.info("Bundle submitted", endpoint=i, bundle_id=bundle_id)
            return f"{BUNDLE_TX_PREFIX}{bundle_id}"

        raise SolanaRpcError(-1, f"All bundle endpoints failed: {last_error}")


class BundleFirstSender:
    """Tries bundle submission first and falls back to the standard RPC path."""

    def __init__(
        self,
        bundles: JitoBundleSender,
        rpc: RpcSender,
        confirm_fallback: bool = True,
    ) -> None:
        self.bundles = bundles
        self.rpc = rpc
        self.confirm_fallback = confirm_fallback

    async def send(self, tx_base64: str) -> str:
        try:
            return await self.bundles.send(tx_base64)
        except SolanaRpcError as e:
            logger.warning(
                "All bundle endpoints failed, falling back to RPC send", error=str(e)
            )

        signature = await self.rpc.send(tx_base64)
        if self.confirm_fallback:
            await self.rpc.confirm_signature(signature)
        return signature


def backend_for(tx_id: str) -> str:
    """Execution backend label for a transaction id."""
    return "jito" if tx_id.startswith(BUNDLE_TX_PREFIX) else "standard"
