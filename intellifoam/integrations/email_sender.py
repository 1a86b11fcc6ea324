"""
email_sender.py — Intellifoam Email Channel

SMTP delivery (STARTTLS) for installer confirmation requests and customer
booking confirmations. The blocking smtplib call runs in a worker thread.
send() raises on failure; retries and the outbox live in notifier.py.
"""

import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

logger = logging.getLogger(__name__)

SMTP_TIMEOUT = 20
REPLY_TO = "info@intellifoam.se"


class EmailSender:
    def __init__(
        self,
        host: str,
        port: int = 587,
        user: str = "",
        password: str = "",
        from_address: str = "",
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_address = from_address or user

    @classmethod
    def from_settings(cls, settings) -> "EmailSender":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            from_address=settings.smtp_from,
        )

    @property
    def configured(self) -> bool:
        return bool(self.host and self.from_address)

    async def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> None:
        if not self.configured:
            raise smtplib.SMTPException("SMTP not configured")
        message = self._build(to, subject, text, html)
        await asyncio.to_thread(self._send_sync, message)
        logger.info(f"Email sent to {to}: {subject}")

    def _build(self, to: str, subject: str, text: str, html: Optional[str]) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.from_address
        msg["To"] = to
        msg["Subject"] = subject
        msg["Reply-To"] = REPLY_TO
        msg["X-Mailer"] = "Intellifoam"
        msg.set_content(text)
        if html:
            msg.add_alternative(html, subtype="html")
        return msg

    def _send_sync(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=SMTP_TIMEOUT) as smtp:
            smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(message)
