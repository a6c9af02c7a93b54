"""Error taxonomy for snipe attempts."""


class SniperError(Exception):
    """Base class for sniper errors."""


class PoolTimeoutError(SniperError, TimeoutError):
    """Pool never appeared within the wait deadline."""

    def __init__(self, mint: str, max_wait: float, attempts: int) -> None:
        self.mint = mint
        self.max_wait = max_wait
        self.attempts = attempts
        super().__init__(
            f"Timeout: pool not created for {mint} after {max_wait:.0f}s "
            f"({attempts} checks)"
        )


class PolicyRejection(SniperError):
    """A buy or sell was refused by policy. Not retried."""


class DeniedOriginError(PolicyRejection):
    """The pool's originating address is on the deny list."""

    def __init__(self, address: str, reason: str | None = None) -> None:
        self.address = address
        self.reason = reason
        super().__init__(f"Denied origin {address}: {reason or 'no reason given'}")


class LiquidityBandError(PolicyRejection):
    """Pool liquidity is below every configured band."""

    def __init__(self, liquidity_usd: float, floor_usd: float) -> None:
        self.liquidity_usd = liquidity_usd
        self.floor_usd = floor_usd
        super().__init__(
            f"Liquidity ${liquidity_usd:,.2f} below lowest band ${floor_usd:,.2f}"
        )


class PriceImpactError(PolicyRejection):
    """Price impact exceeds the side's threshold."""

    def __init__(self, side: str, impact_pct: float, max_pct: float) -> None:
        self.side = side
        self.impact_pct = impact_pct
        self.max_pct = max_pct
        super().__init__(
            f"Price impact too high: {impact_pct:.2f}% (max {max_pct:g}% for {side}s)"
        )


class TransientProbeError(SniperError):
    """Recoverable failure of a pool/price/liquidity probe."""


class ExecutionFailure(SniperError):
    """A buy or sell execution failed."""

    def __init__(self, side: str, mint: str, cause: Exception) -> None:
        self.side = side
        self.mint = mint
        self.cause = cause
        super().__init__(f"{side.capitalize()} failed for {mint}: {cause}")


class AbortedError(SniperError):
    """The snipe was aborted before a position was opened."""
