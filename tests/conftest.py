"""Shared fixtures: a temporary SQLite store, fake channels and a wired engine."""

from datetime import date

import pytest

from intellifoam.integrations.notifier import BookingNotifier
from intellifoam.scheduling.auto_assign import AutoAssigner
from intellifoam.scheduling.availability import InstallerAvailability
from intellifoam.scheduling.models import Booking, Installer
from intellifoam.storage import FoamStore

TODAY = date(2026, 10, 1)
INSTALL_DATE = date(2026, 11, 20)


class FakeEmail:
    def __init__(self, fail_times: int = 0, configured: bool = True):
        self.sent: list[dict] = []
        self.fail_times = fail_times
        self.configured = configured

    async def send(self, to, subject, text, html=None):
        if self.fail_times:
            self.fail_times -= 1
            raise ConnectionError("SMTP unavailable")
        self.sent.append({"to": to, "subject": subject, "text": text})


class FakeDiscord:
    def __init__(self, fail_times: int = 0, configured: bool = True):
        self.sent: list[dict] = []
        self.fail_times = fail_times
        self.configured = configured

    async def send(self, payload):
        if self.fail_times:
            self.fail_times -= 1
            raise ConnectionError("Discord unavailable")
        self.sent.append(payload)

    def titles(self) -> list[str]:
        return [p["embeds"][0]["title"] for p in self.sent]


class FakeAlerts:
    def __init__(self):
        self.sent: list[tuple] = []

    async def send(self, alert_type, message, priority=None, context=None):
        self.sent.append((alert_type, message))
        return True

    async def flush_held(self):
        return False


@pytest.fixture
def store(tmp_path):
    s = FoamStore(tmp_path / "intellifoam.db")
    s.seed_defaults()
    return s


@pytest.fixture
def email():
    return FakeEmail()


@pytest.fixture
def discord():
    return FakeDiscord()


@pytest.fixture
def alerts():
    return FakeAlerts()


@pytest.fixture
def notifier(store, email, discord, alerts):
    return BookingNotifier(store, email=email, discord=discord, alerts=alerts, retry_attempts=3, retry_delay=0)


@pytest.fixture
def availability(store):
    return InstallerAvailability(store, today=TODAY)


@pytest.fixture
def engine(store, notifier, availability):
    return AutoAssigner(store, notifier, availability=availability)


@pytest.fixture
def installers(store):
    """Anna, Bertil, Cecilia in priority order."""
    crew = [
        Installer("A", "Anna", "Andersson", "anna@example.se", priority_order=1),
        Installer("B", "Bertil", "Berg", "bertil@example.se", priority_order=2),
        Installer("C", "Cecilia", "Carlsson", "cecilia@example.se", priority_order=3),
    ]
    for installer in crew:
        store.upsert_installer(installer)
    return crew


@pytest.fixture
def booking(store, installers):
    return store.create_booking(Booking(
        scheduled_date=INSTALL_DATE,
        customer_name="Kalle Kund",
        customer_email="kalle@example.se",
        customer_address="Storgatan 1, Gävle",
        num_installers=2,
    ))
