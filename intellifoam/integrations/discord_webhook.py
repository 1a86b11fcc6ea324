"""
discord_webhook.py — Intellifoam Discord Channel

Posts embeds to the admin Discord channel through an incoming webhook.
send() raises on failure; retries and the outbox live in notifier.py.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10

COLORS = {
    "success": 0x22C55E,
    "warning": 0xEAB308,
    "error":   0xEF4444,
    "info":    0x3B82F6,
    "neutral": 0x6B7280,
}


class DiscordError(Exception):
    pass


def embed(title: str, description: str = "", kind: str = "info",
          fields: Optional[list[tuple[str, str]]] = None, footer: str = "") -> dict:
    """Build a single-embed webhook payload."""
    body: dict = {
        "title": title,
        "description": description,
        "color": COLORS.get(kind, COLORS["info"]),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if fields:
        body["fields"] = [{"name": name, "value": value or "-", "inline": True} for name, value in fields]
    if footer:
        body["footer"] = {"text": footer}
    return {"embeds": [body]}


class DiscordWebhook:
    def __init__(self, webhook_url: str, username: str = "Intellifoam"):
        self.webhook_url = webhook_url
        self.username = username

    @property
    def configured(self) -> bool:
        return bool(self.webhook_url)

    async def send(self, payload: dict) -> None:
        if not self.configured:
            raise DiscordError("Discord webhook URL not configured")
        body = {"username": self.username, **payload}
        async with aiohttp.ClientSession() as session:
            async with session.post(
                self.webhook_url, json=body, timeout=aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)
            ) as resp:
                if resp.status >= 400:
                    text = await resp.text()
                    raise DiscordError(f"Discord webhook error {resp.status}: {text[:200]}")
        logger.debug("Discord embed sent: %s", payload.get("embeds", [{}])[0].get("title", ""))
