"""Event sinks: Telegram notifications and structured log fallback."""

import html

import httpx
import structlog

from ..core.interfaces import EventSink
from ..core.types import UIEvent

logger = structlog.get_logger(__name__)

_LEVEL_ICONS = {
    "info": "ℹ️",
    "success": "✅",
    "warn": "⚠️",
    "error": "🚨",
}


def render_event(event: UIEvent, explorer_url: str = "https://solscan.io/tx/") -> str:
    """Render an event as a Telegram HTML message."""
    icon = _LEVEL_ICONS.get(event.level, "")
    lines = [f"{icon} <b>{html.escape(event.title)}</b>"]
    if event.body:
        lines.append(html.escape(event.body))
    if event.link:
        if event.link.startswith("http"):
            href = event.link
        else:
            href = f"{explorer_url}{event.link}"
        lines.append(f'<a href="{html.escape(href)}">{html.escape(event.link)}</a>')
    lines.append(f"<i>{event.type}</i>")
    return "\n".join(lines)


class TelegramEventSink(EventSink):
    """Telegram-based event sink implementation."""

    def __init__(
        self,
        bot_token: str,
        admin_user_ids: list[int],
        session: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize Telegram event sink.

        Args:
            bot_token: Telegram bot token
            admin_user_ids: List of admin user IDs to send events to
            session: Optional HTTP session for requests
        """
        self.bot_token = bot_token
        self.admin_user_ids = admin_user_ids
        self.session = session or httpx.AsyncClient()
        self.base_url = f"https://api.telegram.org/bot{bot_token}"

        logger.info("Telegram event sink initialized", admin_count=len(admin_user_ids))

    async def emit(self, event: UIEvent) -> None:
        """Send an event to every admin. Delivery failures are logged, not raised."""
        if not self.admin_user_ids:
            logger.warning("No admin users configured, skipping event", type=event.type)
            return

        text = render_event(event)
        success_count = 0
        for user_id in self.admin_user_ids:
            try:
                await self._send_message(user_id, text)
                success_count += 1
            except Exception as e:
                logger.error(
                    "Failed to send event to admin", user_id=user_id, error=str(e)
                )

        logger.debug(
            "Event push completed",
            type=event.type,
            total_admins=len(self.admin_user_ids),
            success_count=success_count,
        )

    async def _send_message(self, chat_id: int, text: str) -> None:
        response = await self.session.post(
            f"{self.base_url}/sendMessage",
            json={
                "chat_id": chat_id,
                "text": text,
                "parse_mode": "HTML",
                "disable_web_page_preview": True,
            },
        )
        response.raise_for_status()

        result = response.json()
        if not result.get("ok"):
            raise RuntimeError(
                f"Telegram API error: {result.get('description', 'Unknown error')}"
            )

    async def close(self) -> None:
        await self.session.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


class LoggingEventSink(EventSink):
    """Writes events to the structured log."""

    def __init__(self) -> None:
        self.events: list[UIEvent] = []

    async def emit(self, event: UIEvent) -> None:
        self.events.append(event)
        log = logger.error if event.level == "error" else logger.info
        log(
            event.title,
            event_type=event.type,
            severity=event.level,
            body=event.body,
            link=event.link,
        )
