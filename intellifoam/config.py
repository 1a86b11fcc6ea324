"""
config.py — Intellifoam Configuration

Environment-driven settings (.env is loaded on import) plus the crew
settings that live in the system_settings table.

Environment:
    INTELLIFOAM_DB                SQLite path (default ~/.intellifoam/intellifoam.db)
    INTELLIFOAM_TIMEZONE          default Europe/Stockholm
    INTELLIFOAM_PUBLIC_URL        base URL for confirmation links
    DISCORD_WEBHOOK_URL           admin channel webhook
    SMTP_HOST / SMTP_PORT / SMTP_USER / SMTP_PASSWORD / SMTP_FROM
    TELEGRAM_BOT_TOKEN / TELEGRAM_OWNER_CHAT_ID   operator alerts
    CONFIRMATION_TTL_HOURS        pending confirmations expire after this (default 48)
    NOTIFY_RETRY_ATTEMPTS / NOTIFY_RETRY_DELAY
    EXPIRY_CHECK_MINUTES          interval of the expiry job (default 15)
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import pytz
from dotenv import load_dotenv

load_dotenv()

DEFAULT_DB_PATH = Path.home() / ".intellifoam" / "intellifoam.db"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: int = logging.INFO, log_file: Optional[Path] = None) -> None:
    """Configure root logging for daemons and CLI entry points."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))
    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw else default
    except ValueError:
        logging.getLogger(__name__).warning(f"Invalid integer for {name}: {raw!r}, using {default}")
        return default


@dataclass
class Settings:
    db_path: Path = DEFAULT_DB_PATH
    timezone: str = "Europe/Stockholm"
    public_base_url: str = "http://localhost:3000"
    discord_webhook_url: str = ""
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = "Intellifoam <noreply@intellifoam.se>"
    telegram_bot_token: str = ""
    telegram_chat_id: int = 0
    confirmation_ttl_hours: int = 48
    notify_retry_attempts: int = 3
    notify_retry_delay: float = 2.0
    expiry_check_minutes: int = 15

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            db_path=Path(os.getenv("INTELLIFOAM_DB", str(DEFAULT_DB_PATH))),
            timezone=os.getenv("INTELLIFOAM_TIMEZONE", "Europe/Stockholm"),
            public_base_url=os.getenv("INTELLIFOAM_PUBLIC_URL", "http://localhost:3000").rstrip("/"),
            discord_webhook_url=os.getenv("DISCORD_WEBHOOK_URL", ""),
            smtp_host=os.getenv("SMTP_HOST", ""),
            smtp_port=_env_int("SMTP_PORT", 587),
            smtp_user=os.getenv("SMTP_USER", ""),
            smtp_password=os.getenv("SMTP_PASSWORD", ""),
            smtp_from=os.getenv("SMTP_FROM", "Intellifoam <noreply@intellifoam.se>"),
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN", ""),
            telegram_chat_id=_env_int("TELEGRAM_OWNER_CHAT_ID", 0),
            confirmation_ttl_hours=_env_int("CONFIRMATION_TTL_HOURS", 48),
            notify_retry_attempts=_env_int("NOTIFY_RETRY_ATTEMPTS", 3),
            notify_retry_delay=float(os.getenv("NOTIFY_RETRY_DELAY", "2") or 2),
            expiry_check_minutes=_env_int("EXPIRY_CHECK_MINUTES", 15),
        )

    @property
    def tz(self):
        return pytz.timezone(self.timezone)


@dataclass
class CrewSettings:
    default_installers: int = 2
    single_installer_factor: float = 30.0   # % extra spray time for a lone installer

    def __post_init__(self):
        if self.default_installers < 1:
            raise ValueError("default_installers must be at least 1")
        if self.single_installer_factor < 0:
            raise ValueError("single_installer_factor cannot be negative")

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "CrewSettings":
        data = data or {}
        return cls(
            default_installers=int(data.get("default_installers", 2)),
            single_installer_factor=float(data.get("single_installer_factor", 30.0)),
        )

    def to_dict(self) -> dict:
        return {
            "default_installers": self.default_installers,
            "single_installer_factor": self.single_installer_factor,
        }
