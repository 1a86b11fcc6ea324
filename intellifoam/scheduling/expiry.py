#!/usr/bin/env python3
"""
expiry.py — Intellifoam Booking Maintenance Jobs

Background jobs for the booking engine:
  - confirmation expiry: unanswered confirmations older than the TTL are
    declined (reason "expired"), which hands the slot to the next installer
  - outbox retry: re-sends notifications that exhausted their retries
  - held alerts: flushes Telegram alerts held back overnight

Usage:
    python -m intellifoam.scheduling.expiry --daemon     # run the scheduler
    python -m intellifoam.scheduling.expiry --once       # one expiry + retry pass
"""

import argparse
import asyncio
import logging
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from intellifoam.config import Settings, setup_logging
from intellifoam.integrations.notifier import BookingNotifier
from intellifoam.scheduling.auto_assign import AutoAssigner
from intellifoam.storage import FoamStore

log = logging.getLogger(__name__)


class BookingMaintenance:
    def __init__(self, engine: AutoAssigner, notifier: BookingNotifier, settings: Settings):
        self.engine = engine
        self.notifier = notifier
        self.settings = settings

    @classmethod
    def from_settings(cls, settings: Settings) -> "BookingMaintenance":
        store = FoamStore(settings.db_path)
        notifier = BookingNotifier.from_settings(store, settings)
        engine = AutoAssigner(store, notifier, confirmation_ttl_hours=settings.confirmation_ttl_hours)
        return cls(engine, notifier, settings)

    async def expire_confirmations(self) -> int:
        return await self.engine.expire_stale()

    async def retry_outbox(self) -> int:
        return await self.notifier.retry_failed()

    async def flush_alerts(self) -> None:
        if self.notifier.alerts is not None:
            await self.notifier.alerts.flush_held()

    async def run_once(self) -> tuple[int, int]:
        expired = await self.expire_confirmations()
        delivered = await self.retry_outbox()
        return expired, delivered

    def build_scheduler(self) -> AsyncIOScheduler:
        tz = self.settings.tz
        scheduler = AsyncIOScheduler(timezone=tz)
        scheduler.add_job(
            self.expire_confirmations,
            trigger=IntervalTrigger(minutes=self.settings.expiry_check_minutes),
            id="confirmation_expiry", name="Confirmation Expiry",
            misfire_grace_time=60, max_instances=1, coalesce=True,
        )
        scheduler.add_job(
            self.retry_outbox,
            trigger=IntervalTrigger(minutes=self.settings.expiry_check_minutes),
            id="outbox_retry", name="Notification Outbox Retry",
            misfire_grace_time=60, max_instances=1, coalesce=True,
        )
        scheduler.add_job(
            self.flush_alerts,
            trigger=CronTrigger(hour=7, minute=5, timezone=tz),
            id="flush_alerts", name="Flush Held Alerts",
        )
        return scheduler

    async def run_daemon(self):
        log.info("Starting booking maintenance daemon...")
        scheduler = self.build_scheduler()
        scheduler.start()
        log.info(
            f"Daemon running. Check interval: {self.settings.expiry_check_minutes} min | "
            f"confirmation TTL: {self.settings.confirmation_ttl_hours} h"
        )
        loop = asyncio.get_running_loop()
        stop = asyncio.Event()

        def shutdown_handler():
            log.info("Shutdown signal received")
            stop.set()

        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, shutdown_handler)
        try:
            await stop.wait()
        finally:
            scheduler.shutdown(wait=False)


def main():
    parser = argparse.ArgumentParser(description="Intellifoam booking maintenance jobs")
    parser.add_argument("--daemon", action="store_true")
    parser.add_argument("--once", action="store_true")
    parser.add_argument("--seed", action="store_true", help="seed default cost variables")
    args = parser.parse_args()

    settings = Settings.from_env()
    setup_logging()
    maintenance = BookingMaintenance.from_settings(settings)
    if args.seed:
        maintenance.engine.store.seed_defaults()
    elif args.once:
        expired, delivered = asyncio.run(maintenance.run_once())
        print(f"Expired: {expired} | Outbox delivered: {delivered}")
    elif args.daemon:
        asyncio.run(maintenance.run_daemon())
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
