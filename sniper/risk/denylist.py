"""File-backed deny list of originating (developer) addresses."""

import json
from pathlib import Path

import structlog

from ..config.settings import DenyListConfig
from ..core.interfaces import DenyList
from ..core.types import DenyCheck

logger = structlog.get_logger(__name__)


class FileDenyList(DenyList):
    """Deny list read from a JSON file of ``{"devWallets": [...]}`` entries.

    The file is re-read on every check so edits apply to the next snipe
    without a restart. A missing file means nothing is denied.
    """

    def __init__(self, config: DenyListConfig, base_dir: str | None = None) -> None:
        self.config = config
        path = Path(config.file)
        if not path.is_absolute():
            path = Path(base_dir or Path.cwd()) / path
        self.path = path

    def _load_entries(self) -> list[dict]:
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        entries = data.get("devWallets", []) if isinstance(data, dict) else []
        return [e for e in entries if isinstance(e, dict)]

    def is_address_denied(self, address: str) -> DenyCheck:
        if not self.config.enabled:
            return DenyCheck(blocked=False)

        for entry in self._load_entries():
            if entry.get("address") == address:
                logger.warning(
                    "Deny-listed address", address=address, reason=entry.get("reason")
                )
                return DenyCheck(blocked=True, reason=entry.get("reason"))

        return DenyCheck(blocked=False)


class StaticDenyList(DenyList):
    """In-memory deny list."""

    def __init__(self, entries: dict[str, str | None] | None = None) -> None:
        self.entries = dict(entries or {})

    def is_address_denied(self, address: str) -> DenyCheck:
        if address in self.entries:
            return DenyCheck(blocked=True, reason=self.entries[address])
        return DenyCheck(blocked=False)
