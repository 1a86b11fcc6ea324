"""
notifier.py — Intellifoam Booking Notifications

Fans booking events out to the notification channels:
  - installer confirmation requests (email with token link, Discord embed)
  - customer booking confirmation (email) + Discord "installation bokad"
  - admin notifications (in-app task + Discord error embed + Telegram)

Every send is retried with linear backoff. A send that still fails is
written to the notification_outbox table and raised to the operator over
Telegram. Nothing here raises to the caller: a failed notification never
undoes the booking change that triggered it.
"""

import asyncio
import logging
from typing import Optional

from intellifoam.integrations.discord_webhook import DiscordWebhook, embed
from intellifoam.integrations.email_sender import EmailSender
from intellifoam.integrations.telegram_alerts import AlertType, OperatorAlerts
from intellifoam.scheduling.models import Booking, Installer, Task, TaskType

logger = logging.getLogger(__name__)

CHANNEL_EMAIL = "email"
CHANNEL_DISCORD = "discord"
MAX_OUTBOX_ATTEMPTS = 10

SWEDISH_WEEKDAYS = ["måndag", "tisdag", "onsdag", "torsdag", "fredag", "lördag", "söndag"]
SWEDISH_MONTHS = [
    "januari", "februari", "mars", "april", "maj", "juni",
    "juli", "augusti", "september", "oktober", "november", "december",
]


def format_date_sv(d) -> str:
    """'fredag 7 november'"""
    return f"{SWEDISH_WEEKDAYS[d.weekday()]} {d.day} {SWEDISH_MONTHS[d.month - 1]}"


class BookingNotifier:
    def __init__(
        self,
        store,
        email: Optional[EmailSender] = None,
        discord: Optional[DiscordWebhook] = None,
        alerts: Optional[OperatorAlerts] = None,
        public_base_url: str = "https://www.intellifoam.se",
        retry_attempts: int = 3,
        retry_delay: float = 2.0,
    ):
        self.store = store
        self.email = email
        self.discord = discord
        self.alerts = alerts
        self.public_base_url = public_base_url.rstrip("/")
        self._retry_attempts = max(1, retry_attempts)
        self._retry_delay = retry_delay

    @classmethod
    def from_settings(cls, store, settings) -> "BookingNotifier":
        return cls(
            store,
            email=EmailSender.from_settings(settings),
            discord=DiscordWebhook(settings.discord_webhook_url),
            alerts=OperatorAlerts.from_settings(settings),
            public_base_url=settings.public_base_url,
            retry_attempts=settings.notify_retry_attempts,
            retry_delay=settings.notify_retry_delay,
        )

    # ─── Booking Events ──────────────────────────────────────────────────────

    async def send_installer_confirmation(
        self, booking: Booking, installer: Installer, email_token: str, discord_token: str
    ) -> None:
        what = "hembesök" if booking.is_visit else "installation"
        confirm_link = f"{self.public_base_url}/confirm/{email_token}"
        date_text = format_date_sv(booking.scheduled_date)

        if installer.email:
            text = (
                f"Hej {installer.name}!\n\n"
                f"Du har blivit tilldelad {'ett nytt hembesök' if booking.is_visit else 'en ny installation'}.\n\n"
                f"Kund: {booking.customer_name}\n"
                f"Adress: {booking.customer_address}\n"
                f"Datum: {date_text}\n"
                f"Tid: {booking.slot_label}\n\n"
                f"Bekräfta eller avböj här: {confirm_link}\n\n"
                f"Hälsningar,\nIntellifoam"
            )
            await self._deliver(CHANNEL_EMAIL, {
                "to": installer.email,
                "subject": f"Ny{'tt' if booking.is_visit else ''} {what} att bekräfta - {booking.customer_name}",
                "text": text,
                "html": text.replace("\n", "<br>"),
            })

        time_text = f"{booking.scheduled_time} ({booking.slot_label})" if booking.scheduled_time else booking.slot_label
        await self._deliver(CHANNEL_DISCORD, embed(
            title=f"Ny{'tt' if booking.is_visit else ''} {what} att bekräfta",
            description=f"{installer.name} - väntar på bekräftelse",
            kind="warning",
            fields=[
                ("Kund", booking.customer_name),
                ("Adress", booking.customer_address),
                ("Datum", booking.scheduled_date.isoformat()),
                ("Tid", time_text),
            ],
            footer=f"Token: {discord_token}",
        ))

    async def send_customer_confirmation(self, booking: Booking) -> None:
        date_text = format_date_sv(booking.scheduled_date)
        if booking.customer_email:
            text = (
                f"Hej {booking.customer_name}!\n\n"
                f"Din installation är nu bekräftad.\n\n"
                f"Datum: {date_text}\n"
                f"Adress: {booking.customer_address}\n\n"
                f"Våra installatörer kontaktar dig dagen innan.\n\n"
                f"Hälsningar,\nIntellifoam"
            )
            await self._deliver(CHANNEL_EMAIL, {
                "to": booking.customer_email,
                "subject": f"Bokningsbekräftelse - {date_text}",
                "text": text,
                "html": text.replace("\n", "<br>"),
            })
        await self._deliver(CHANNEL_DISCORD, embed(
            title="📅 Installation bokad",
            description=f"Ny installation bokad hos {booking.customer_name}",
            kind="success",
            fields=[("Datum", date_text), ("Adress", booking.customer_address)],
        ))
        await self._alert(
            AlertType.BOOKING_CONFIRMED,
            f"Bokning #{booking.id} bekräftad: {booking.customer_name}, {date_text}",
        )

    async def notify_expired(self, booking_id: int, installer_id: str) -> None:
        await self._alert(AlertType.EXPIRED, f"{installer_id} svarade inte i tid (bokning #{booking_id})")

    async def notify_admin(self, booking_id: int, message: str) -> None:
        """Urgent in-app task for the office plus Discord and Telegram pings."""
        self.store.add_task(Task(
            title=message,
            description=f"Bokning #{booking_id} behöver uppmärksamhet",
            task_type=TaskType.CUSTOM,
            booking_id=booking_id,
        ))
        logger.warning(f"Admin notification for booking #{booking_id}: {message}")
        await self._deliver(CHANNEL_DISCORD, embed(
            title="Kräver åtgärd",
            description=f"{message} (Bokning #{booking_id})",
            kind="error",
        ))
        await self._alert(AlertType.UNDERSTAFFED, f"{message} (bokning #{booking_id})")

    # ─── Outbox ──────────────────────────────────────────────────────────────

    async def retry_failed(self) -> int:
        """One more attempt for every failed outbox entry. Returns the number delivered."""
        delivered = 0
        for row in self.store.list_outbox("failed"):
            attempts = row["attempts"] + 1
            try:
                await self._dispatch(row["channel"], row["payload"])
            except Exception as e:
                status = "dead" if attempts >= MAX_OUTBOX_ATTEMPTS else "failed"
                self.store.update_outbox(row["id"], status, attempts, str(e))
                logger.warning(f"Outbox #{row['id']} ({row['channel']}) still failing: {e}")
                continue
            self.store.update_outbox(row["id"], "sent", attempts)
            delivered += 1
        if delivered:
            logger.info(f"Outbox retry delivered {delivered} notification(s)")
        return delivered

    # ─── Delivery ────────────────────────────────────────────────────────────

    def _channel_ready(self, channel: str) -> bool:
        sender = self.email if channel == CHANNEL_EMAIL else self.discord
        return sender is not None and sender.configured

    async def _dispatch(self, channel: str, payload: dict) -> None:
        if channel == CHANNEL_EMAIL:
            await self.email.send(payload["to"], payload["subject"], payload["text"], payload.get("html"))
        elif channel == CHANNEL_DISCORD:
            await self.discord.send(payload)
        else:
            raise ValueError(f"Unknown notification channel: {channel}")

    async def _deliver(self, channel: str, payload: dict) -> bool:
        if not self._channel_ready(channel):
            logger.debug(f"{channel} not configured, skipping notification")
            return False

        last_error = ""
        for attempt in range(1, self._retry_attempts + 1):
            try:
                await self._dispatch(channel, payload)
                return True
            except Exception as e:
                last_error = str(e)
                logger.warning(f"{channel} send attempt {attempt}/{self._retry_attempts} failed: {e}")
                if attempt < self._retry_attempts:
                    await asyncio.sleep(self._retry_delay * attempt)

        outbox_id = self.store.add_outbox(channel, payload, self._retry_attempts, last_error)
        logger.error(f"{channel} notification failed after {self._retry_attempts} attempts (outbox #{outbox_id})")
        await self._alert(AlertType.DELIVERY_FAILED, f"{channel}-utskick misslyckades (outbox #{outbox_id}): {last_error}")
        return False

    async def _alert(self, alert_type: AlertType, message: str) -> None:
        if self.alerts is None:
            return
        try:
            await self.alerts.send(alert_type, message)
        except Exception as e:
            logger.error(f"Operator alert failed: {e}")
