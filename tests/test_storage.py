"""Tests for the SQLite store."""

import sqlite3

import pytest

from intellifoam.config import CrewSettings
from intellifoam.pricing.quote_calculator import calculator_from_store
from intellifoam.scheduling.models import AssignmentStatus, Booking, BookingStatus, Channel, Installer
from intellifoam.storage import FoamStore

from conftest import INSTALL_DATE


class TestPricingSettings:
    def test_seed_does_not_overwrite_edits(self, store):
        store.set_cost_variable("personnel_cost_per_hour", 700, "kr/h", "personnel")
        store.seed_defaults()
        assert store.load_cost_variables()["personnel_cost_per_hour"] == 700

    def test_multipliers(self, store):
        assert store.load_project_multipliers()["tak"] == 1.2
        store.set_project_multiplier("tak", 1.5)
        assert store.load_project_multipliers()["tak"] == 1.5

    def test_settings_round_trip(self, store):
        assert store.get_setting("crew_settings") is None
        store.set_setting("crew_settings", CrewSettings(default_installers=3).to_dict())
        assert CrewSettings.from_dict(store.get_setting("crew_settings")).default_installers == 3

    def test_calculator_from_store(self, store):
        store.set_cost_variable("personnel_cost_per_hour", 700)
        store.set_setting("crew_settings", {"default_installers": 1, "single_installer_factor": 30})
        store.set_setting("bbr_u_values", {"yttervagg": 0.15})
        calc = calculator_from_store(store)
        assert calc.cost_variables.personnel_cost_per_hour == 700
        assert calc.crew.default_installers == 1
        assert calc.physics.u_values["yttervagg"] == 0.15
        assert calc.project_multipliers["golv"] == 0.9


class TestInstallers:
    def test_upsert_updates(self, store):
        store.upsert_installer(Installer("A", "Anna", priority_order=5))
        store.upsert_installer(Installer("A", "Anna", "Ny", priority_order=1))
        installer = store.get_installer("A")
        assert installer.last_name == "Ny"
        assert installer.priority_order == 1

    def test_list_by_priority(self, store, installers):
        store.upsert_installer(Installer("Z", "Zlatan", priority_order=0))
        assert [i.id for i in store.list_installers()] == ["Z", "A", "B", "C"]


class TestInMemoryStore:
    def test_round_trip(self):
        store = FoamStore(":memory:")
        try:
            store.seed_defaults()
            store.upsert_installer(Installer("A", "Anna", priority_order=1))
            booking = store.create_booking(Booking(scheduled_date=INSTALL_DATE, customer_name="Kalle Kund"))
            assert store.get_installer("A").first_name == "Anna"
            assert store.get_booking(booking.id).customer_name == "Kalle Kund"
            assert store.add_assignment(booking.id, "A", is_lead=True) is not None
            assert store.load_cost_variables()["personnel_cost_per_hour"] > 0
        finally:
            store.close()

    def test_separate_stores_do_not_share_data(self):
        first, second = FoamStore(":memory:"), FoamStore(":memory:")
        first.upsert_installer(Installer("A", "Anna"))
        assert second.get_installer("A") is None
        first.close()
        second.close()


class TestAssignments:
    def test_duplicate_assignment_returns_none(self, store, booking):
        assert store.add_assignment(booking.id, "A") is not None
        assert store.add_assignment(booking.id, "A") is None
        assert len(store.list_assignments(booking.id)) == 1

    def test_second_lead_rejected(self, store, booking):
        store.add_assignment(booking.id, "A", is_lead=True)
        assert store.add_assignment(booking.id, "B", is_lead=True) is None
        store.add_assignment(booking.id, "B")
        with pytest.raises(sqlite3.IntegrityError):
            with store._conn() as conn:
                conn.execute(
                    "UPDATE booking_installers SET is_lead = 1 WHERE booking_id = ? AND installer_id = 'B'",
                    (booking.id,),
                )
        assert [a.installer_id for a in store.list_assignments(booking.id) if a.is_lead] == ["A"]

    def test_max_active_caps_insert(self, store, booking):
        assert store.add_assignment(booking.id, "A", is_lead=True, max_active=2) is not None
        assert store.add_assignment(booking.id, "B", max_active=2) is not None
        assert store.add_assignment(booking.id, "C", max_active=2) is None
        assert sorted(a.installer_id for a in store.list_assignments(booking.id)) == ["A", "B"]

        store.resolve_assignment(booking.id, "B", AssignmentStatus.DECLINED)
        assert store.add_assignment(booking.id, "C", max_active=2) is not None

    def test_set_lead_moves_flag(self, store, booking):
        store.add_assignment(booking.id, "A", is_lead=True)
        store.add_assignment(booking.id, "B")
        assert store.set_lead(booking.id, "B")
        assert [a.installer_id for a in store.list_assignments(booking.id) if a.is_lead] == ["B"]

    def test_resolve_only_from_pending(self, store, booking):
        store.add_assignment(booking.id, "A", is_lead=True)
        assert store.resolve_assignment(booking.id, "A", AssignmentStatus.DECLINED, "sjuk")
        assert not store.resolve_assignment(booking.id, "A", AssignmentStatus.ACCEPTED)
        assignment = store.get_assignment(booking.id, "A")
        assert assignment.status == AssignmentStatus.DECLINED
        assert not assignment.is_lead
        assert assignment.responded_at

    def test_confirmed_transition_happens_once(self, store, booking):
        assert store.mark_booking_confirmed(booking.id)
        assert not store.mark_booking_confirmed(booking.id)
        assert store.get_booking(booking.id).status == BookingStatus.CONFIRMED


class TestRequests:
    def test_token_lookup(self, store, booking):
        store.add_assignment(booking.id, "A")
        store.add_confirmation_request(booking.id, "A", Channel.EMAIL, token="abc")
        request = store.get_request_by_token("abc")
        assert request.installer_id == "A"
        assert request.channel == Channel.EMAIL
        assert store.get_request_by_token("missing") is None

    def test_stale_pending(self, store, booking):
        store.add_assignment(booking.id, "A")
        store.add_assignment(booking.id, "B")
        store.add_confirmation_request(booking.id, "A", Channel.EMAIL, token="a", created_at="2026-01-01T00:00:00+00:00")
        store.add_confirmation_request(booking.id, "A", Channel.IN_APP, created_at="2026-01-01T00:00:00+00:00")
        store.add_confirmation_request(booking.id, "B", Channel.EMAIL, token="b", created_at="2026-03-01T00:00:00+00:00")
        assert store.stale_pending_requests("2026-02-01T00:00:00+00:00") == [(booking.id, "A")]

    def test_booking_round_trip(self, store, booking):
        loaded = store.get_booking(booking.id)
        assert loaded.scheduled_date == INSTALL_DATE
        assert loaded.customer_email == "kalle@example.se"
        assert loaded.num_installers == 2
