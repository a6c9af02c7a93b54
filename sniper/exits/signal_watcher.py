"""Spam signal watcher exit strategy."""

import structlog

from ..config.settings import SignalWatcherConfig
from ..core.types import ExitCheck, SignalSeverity, SpamSignal

logger = structlog.get_logger(__name__)


class SignalWatcherStrategy:
    """Exits as soon as any ingested signal is high severity."""

    def __init__(self, config: SignalWatcherConfig) -> None:
        self.config = config
        self._signals: list[SpamSignal] = []

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def signals(self) -> list[SpamSignal]:
        return list(self._signals)

    def push(self, signal: SpamSignal) -> None:
        if not self.enabled:
            return
        self._signals.append(signal)
        logger.debug(
            "Spam signal ingested",
            source=signal.source.value,
            severity=signal.severity.value,
            reason=signal.reason,
        )

    def should_exit(self) -> ExitCheck:
        if not self.enabled:
            return ExitCheck(exit=False)
        high = next(
            (s for s in self._signals if s.severity == SignalSeverity.HIGH), None
        )
        if high is None:
            return ExitCheck(exit=False)
        return ExitCheck(
            exit=True, reason=f"[SpamWatcher] {high.source.value}: {high.reason}"
        )

    def reset(self) -> None:
        """Clear ingested signals before reusing the watcher."""
        self._signals.clear()
