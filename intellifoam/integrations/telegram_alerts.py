"""
telegram_alerts.py — Intellifoam Operator Alerts

Pushes operational problems to the owner's Telegram chat: notification
deliveries that exhausted their retries, bookings left understaffed,
expired confirmations, plus a low-priority note when a booking is
confirmed. Alerts are deduplicated and held back during quiet hours
unless critical.

Usage:
    from intellifoam.integrations.telegram_alerts import OperatorAlerts, AlertType

    alerts = OperatorAlerts.from_settings(settings)
    await alerts.send(AlertType.DELIVERY_FAILED, "Email to kund@example.se failed")
"""

import asyncio
import hashlib
import logging
import time
from datetime import datetime, time as dtime
from enum import Enum
from typing import Optional

import pytz
from telegram import Bot
from telegram.constants import ParseMode
from telegram.error import TelegramError

logger = logging.getLogger(__name__)


class Priority(Enum):
    CRITICAL = 0
    HIGH     = 1
    NORMAL   = 2
    LOW      = 3


class AlertType(Enum):
    DELIVERY_FAILED = "delivery_failed"
    UNDERSTAFFED    = "understaffed"
    EXPIRED         = "expired"
    BOOKING_CONFIRMED = "booking_confirmed"
    INFO            = "info"


DEFAULT_PRIORITIES = {
    AlertType.DELIVERY_FAILED:   Priority.HIGH,
    AlertType.UNDERSTAFFED:      Priority.HIGH,
    AlertType.EXPIRED:           Priority.NORMAL,
    AlertType.BOOKING_CONFIRMED: Priority.LOW,
    AlertType.INFO:              Priority.LOW,
}

TYPE_ICONS = {
    AlertType.DELIVERY_FAILED:   "📭",
    AlertType.UNDERSTAFFED:      "👷",
    AlertType.EXPIRED:           "⌛",
    AlertType.BOOKING_CONFIRMED: "📅",
    AlertType.INFO:              "ℹ️",
}


class DedupeCache:
    def __init__(self, ttl_seconds: int = 300):
        self._cache: dict = {}
        self.ttl = ttl_seconds

    def _key(self, alert_type: AlertType, message: str) -> str:
        raw = f"{alert_type.value}::{message[:100]}"
        return hashlib.md5(raw.encode()).hexdigest()

    def is_duplicate(self, alert_type: AlertType, message: str) -> bool:
        key = self._key(alert_type, message)
        return key in self._cache and time.time() - self._cache[key] < self.ttl

    def mark_sent(self, alert_type: AlertType, message: str):
        now = time.time()
        self._cache[self._key(alert_type, message)] = now
        self._cache = {k: v for k, v in self._cache.items() if now - v < self.ttl}


class OperatorAlerts:
    def __init__(
        self,
        bot_token: str = "",
        owner_chat_id: int = 0,
        timezone: str = "Europe/Stockholm",
        quiet_start: dtime = dtime(22, 0),
        quiet_end: dtime = dtime(7, 0),
        retry_attempts: int = 3,
        retry_delay: float = 5,
        dedupe_ttl_seconds: int = 300,
    ):
        self.bot_token = bot_token
        self.owner_chat_id = owner_chat_id
        self.tz = pytz.timezone(timezone)
        self._quiet_start = quiet_start
        self._quiet_end = quiet_end
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay
        self._dedupe = DedupeCache(ttl_seconds=dedupe_ttl_seconds)
        self._held: list[str] = []
        self._bot = None

    @classmethod
    def from_settings(cls, settings) -> "OperatorAlerts":
        return cls(
            bot_token=settings.telegram_bot_token,
            owner_chat_id=settings.telegram_chat_id,
            timezone=settings.timezone,
            retry_attempts=settings.notify_retry_attempts,
            retry_delay=settings.notify_retry_delay,
        )

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.owner_chat_id)

    def _get_bot(self) -> Bot:
        if not self._bot:
            self._bot = Bot(token=self.bot_token)
        return self._bot

    def _in_quiet_hours(self, now: Optional[datetime] = None) -> bool:
        now = (now or datetime.now(self.tz)).time().replace(second=0, microsecond=0)
        qs, qe = self._quiet_start, self._quiet_end
        if qs > qe:
            return now >= qs or now < qe
        return qs <= now < qe

    def _format(self, alert_type: AlertType, message: str, priority: Priority, context: Optional[dict]) -> str:
        badge = "🚨 *KRITISKT* " if priority == Priority.CRITICAL else ""
        body = f"{badge}{TYPE_ICONS.get(alert_type, '•')} {message}"
        if context:
            body += "\n\n" + "\n".join(f"  `{k}`: {v}" for k, v in context.items())
        body += f"\n\n_Intellifoam · {datetime.now(self.tz).strftime('%H:%M')}_"
        return body

    async def send(
        self,
        alert_type: AlertType,
        message: str,
        priority: Optional[Priority] = None,
        context: Optional[dict] = None,
    ) -> bool:
        if not self.configured:
            logger.debug("Telegram alerts not configured, skipping: %s", message[:80])
            return False

        priority = priority or DEFAULT_PRIORITIES.get(alert_type, Priority.NORMAL)
        if self._dedupe.is_duplicate(alert_type, message):
            logger.debug(f"Deduplicated {alert_type.value}: {message[:60]}")
            return False

        if priority in (Priority.NORMAL, Priority.LOW) and self._in_quiet_hours():
            self._held.append(f"{TYPE_ICONS.get(alert_type, '•')} {message}")
            logger.debug(f"Held during quiet hours: {alert_type.value}")
            return False

        text = self._format(alert_type, message, priority, context)
        for attempt in range(1, self._retry_attempts + 1):
            try:
                await self._get_bot().send_message(
                    chat_id=self.owner_chat_id, text=text, parse_mode=ParseMode.MARKDOWN,
                )
                self._dedupe.mark_sent(alert_type, message)
                logger.info(f"Alert sent [{priority.name}] {alert_type.value}: {message[:80]}")
                return True
            except TelegramError as e:
                logger.warning(f"Telegram send attempt {attempt}/{self._retry_attempts} failed: {e}")
                if attempt < self._retry_attempts:
                    await asyncio.sleep(self._retry_delay * attempt)

        logger.error(f"Failed to send alert after {self._retry_attempts} attempts.")
        return False

    async def flush_held(self) -> bool:
        """Send alerts held back during quiet hours as one message."""
        if not self._held or not self.configured:
            return False
        lines = ["📦 *Händelser under natten:*\n", *self._held, f"\n_Totalt: {len(self._held)}_"]
        try:
            await self._get_bot().send_message(
                chat_id=self.owner_chat_id, text="\n".join(lines), parse_mode=ParseMode.MARKDOWN,
            )
            return True
        except TelegramError as e:
            logger.error(f"Failed to flush held alerts: {e}")
            return False
        finally:
            self._held.clear()
