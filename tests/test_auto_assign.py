"""Tests for installer auto-assignment and the confirmation state machine."""

import asyncio
import gc
import random
from datetime import datetime, timedelta, timezone

import pytest

from intellifoam.integrations.telegram_alerts import AlertType
from intellifoam.scheduling.auto_assign import (
    MSG_ALREADY_ANSWERED,
    MSG_NO_ONE_AVAILABLE,
    MSG_NO_REPLACEMENT,
    MSG_NO_REPLACEMENT_EXPIRED,
    MSG_NOT_ASSIGNED,
    MSG_NOT_FOUND,
    MSG_TOKEN_NOT_FOUND,
    AutoAssigner,
)
from intellifoam.scheduling.models import (
    AssignmentStatus,
    Booking,
    BookingStatus,
    Channel,
    Installer,
    TaskType,
)

from conftest import INSTALL_DATE


def leads(store, booking_id):
    return [a.installer_id for a in store.list_assignments(booking_id) if a.is_lead]


def statuses(store, booking_id):
    return {a.installer_id: a.status for a in store.list_assignments(booking_id)}


def customer_mails(email):
    return [m for m in email.sent if m["to"] == "kalle@example.se"]


def token_for(store, booking_id, installer_id, channel=Channel.EMAIL):
    return next(r.token for r in store.list_requests(booking_id, installer_id) if r.channel == channel)


class TestAssign:
    async def test_assigns_top_priority_with_one_lead(self, engine, store, booking):
        result = await engine.assign(booking.id)
        assert result.success
        assert result.assigned_count == 2
        assert result.total_needed == 2
        assert [(a.installer_id, a.is_lead) for a in result.assignments] == [("A", True), ("B", False)]
        assert leads(store, booking.id) == ["A"]

    async def test_creates_three_requests_and_a_task_per_installer(self, engine, store, booking, email, discord):
        await engine.assign(booking.id)
        requests = store.list_requests(booking.id)
        assert len(requests) == 6
        assert {r.channel for r in store.list_requests(booking.id, "A")} == set(Channel)
        in_app = [r for r in requests if r.channel == Channel.IN_APP]
        assert all(r.token is None for r in in_app)
        tasks = store.list_tasks(booking.id, TaskType.BOOKING_CONFIRMATION)
        assert sorted(t.assigned_to for t in tasks) == ["A", "B"]
        assert sorted(m["to"] for m in email.sent) == ["anna@example.se", "bertil@example.se"]
        assert len(discord.sent) == 2

    async def test_email_links_to_token(self, engine, store, booking, email):
        await engine.assign(booking.id)
        token = token_for(store, booking.id, "A")
        mail = next(m for m in email.sent if m["to"] == "anna@example.se")
        assert f"/confirm/{token}" in mail["text"]

    async def test_second_assign_creates_nothing(self, engine, store, booking):
        await engine.assign(booking.id)
        result = await engine.assign(booking.id)
        assert result.success
        assert result.assignments == []
        assert len(store.list_assignments(booking.id)) == 2
        assert len(store.list_requests(booking.id)) == 6

    async def test_skips_unavailable(self, engine, store, booking):
        store.add_blocked_date("A", INSTALL_DATE)
        result = await engine.assign(booking.id)
        assert [a.installer_id for a in result.assignments] == ["B", "C"]
        assert leads(store, booking.id) == ["B"]

    async def test_shortfall_notifies_admin(self, engine, store, installers, discord, alerts):
        booking = store.create_booking(Booking(scheduled_date=INSTALL_DATE, num_installers=4))
        result = await engine.assign(booking.id)
        assert not result.success
        assert result.assigned_count == 3
        tasks = store.list_tasks(booking.id, TaskType.CUSTOM)
        assert [t.title for t in tasks] == ["Bara 3 av 4 installatörer kunde tilldelas"]
        assert "Kräver åtgärd" in discord.titles()
        assert alerts.sent

    async def test_nobody_available(self, engine, store, booking):
        for installer_id in "ABC":
            store.add_blocked_date(installer_id, INSTALL_DATE)
        result = await engine.assign(booking.id)
        assert not result.success
        assert result.assigned_count == 0
        assert [t.title for t in store.list_tasks(booking.id, TaskType.CUSTOM)] == [MSG_NO_ONE_AVAILABLE]

    async def test_unknown_booking(self, engine):
        result = await engine.assign(999)
        assert not result.success
        assert result.message == MSG_NOT_FOUND

    async def test_cancelled_booking_not_assigned(self, engine, store, booking):
        store.set_booking_status(booking.id, BookingStatus.CANCELLED)
        result = await engine.assign(booking.id)
        assert not result.success
        assert store.list_assignments(booking.id) == []


class TestConfirmation:
    async def test_confirms_when_all_accept(self, engine, store, booking, email, discord):
        await engine.assign(booking.id)
        first = await engine.accept(booking.id, "A")
        assert first.success and not first.booking_confirmed
        assert store.get_booking(booking.id).status == BookingStatus.SCHEDULED

        second = await engine.accept(booking.id, "B")
        assert second.booking_confirmed
        assert store.get_booking(booking.id).status == BookingStatus.CONFIRMED
        assert len(customer_mails(email)) == 1
        assert "📅 Installation bokad" in discord.titles()

    async def test_confirmation_sends_operator_note(self, engine, booking, alerts):
        await engine.assign(booking.id)
        await engine.accept(booking.id, "A")
        assert AlertType.BOOKING_CONFIRMED not in [a for a, _ in alerts.sent]
        await engine.accept(booking.id, "B")
        confirmed = [m for a, m in alerts.sent if a == AlertType.BOOKING_CONFIRMED]
        assert len(confirmed) == 1
        assert f"#{booking.id}" in confirmed[0]

    async def test_accept_resolves_all_channels_and_task(self, engine, store, booking):
        await engine.assign(booking.id)
        await engine.accept(booking.id, "A")
        assert {r.status for r in store.list_requests(booking.id, "A")} == {AssignmentStatus.ACCEPTED}
        task = next(t for t in store.list_tasks(booking.id, TaskType.BOOKING_CONFIRMATION) if t.assigned_to == "A")
        assert task.status == "completed"

    async def test_second_answer_is_already_resolved(self, engine, store, booking):
        await engine.assign(booking.id)
        await engine.accept(booking.id, "A")
        again = await engine.decline(booking.id, "A")
        assert not again.success
        assert again.already_resolved
        assert again.message == MSG_ALREADY_ANSWERED
        assert statuses(store, booking.id)["A"] == AssignmentStatus.ACCEPTED

    async def test_not_assigned(self, engine, booking):
        await engine.assign(booking.id)
        result = await engine.accept(booking.id, "C")
        assert not result.success
        assert result.message == MSG_NOT_ASSIGNED


class TestDecline:
    async def test_decline_reassigns_next_in_priority(self, engine, store, booking):
        await engine.assign(booking.id)
        result = await engine.decline(booking.id, "B", reason="sjuk")
        assert result.success
        assert result.reassigned
        assert result.new_installer_id == "C"
        assert statuses(store, booking.id) == {
            "A": AssignmentStatus.PENDING,
            "B": AssignmentStatus.DECLINED,
            "C": AssignmentStatus.PENDING,
        }
        assert leads(store, booking.id) == ["A"]
        assert store.get_assignment(booking.id, "B").reason == "sjuk"

        await engine.accept(booking.id, "A")
        final = await engine.accept(booking.id, "C")
        assert final.booking_confirmed

    async def test_lead_decline_promotes_earliest_remaining(self, engine, store, booking):
        await engine.assign(booking.id)
        await engine.decline(booking.id, "A")
        assert leads(store, booking.id) == ["B"]
        assert not store.get_assignment(booking.id, "A").is_lead
        assert not store.get_assignment(booking.id, "C").is_lead

    async def test_declined_installer_not_offered_again(self, engine, store, booking):
        await engine.assign(booking.id)
        await engine.decline(booking.id, "B")
        await engine.decline(booking.id, "C")
        result = await engine.assign(booking.id)
        assert result.assignments == []
        assert sorted(statuses(store, booking.id)) == ["A", "B", "C"]

    async def test_no_replacement_notifies_admin_and_still_confirms(self, engine, store, booking, email):
        await engine.assign(booking.id)
        await engine.decline(booking.id, "B")
        result = await engine.decline(booking.id, "C")
        assert not result.reassigned
        assert MSG_NO_REPLACEMENT in [t.title for t in store.list_tasks(booking.id, TaskType.CUSTOM)]

        accepted = await engine.accept(booking.id, "A")
        assert accepted.booking_confirmed
        assert len(customer_mails(email)) == 1

    async def test_surplus_decline_does_not_reassign(self, engine, store, installers):
        booking = store.create_booking(Booking(scheduled_date=INSTALL_DATE, num_installers=1))
        await engine.assign(booking.id)
        store.add_assignment(booking.id, "B")
        result = await engine.decline(booking.id, "B")
        assert not result.reassigned
        assert "C" not in statuses(store, booking.id)


class TestTokens:
    async def test_accept_by_token(self, engine, store, booking):
        await engine.assign(booking.id)
        result = await engine.respond(token_for(store, booking.id, "A"), "accept")
        assert result.success
        assert statuses(store, booking.id)["A"] == AssignmentStatus.ACCEPTED

    async def test_other_channel_token_is_already_answered(self, engine, store, booking):
        await engine.assign(booking.id)
        await engine.respond(token_for(store, booking.id, "A"), "decline")
        result = await engine.respond(token_for(store, booking.id, "A", Channel.DISCORD), "accept")
        assert not result.success
        assert result.already_resolved
        assert result.message == MSG_ALREADY_ANSWERED

    async def test_unknown_token(self, engine):
        result = await engine.respond("nope", "accept")
        assert not result.success
        assert result.message == MSG_TOKEN_NOT_FOUND

    async def test_bad_action(self, engine, store, booking):
        await engine.assign(booking.id)
        result = await engine.respond(token_for(store, booking.id, "A"), "maybe")
        assert not result.success
        assert statuses(store, booking.id)["A"] == AssignmentStatus.PENDING


class TestExpiry:
    async def test_fresh_requests_do_not_expire(self, engine, booking):
        await engine.assign(booking.id)
        assert await engine.expire_stale() == 0

    async def test_stale_requests_expire_through_decline(self, engine, store, booking):
        await engine.assign(booking.id)
        later = datetime.now(timezone.utc) + timedelta(hours=49)
        assert await engine.expire_stale(now=later) == 2

        rows = {a.installer_id: a for a in store.list_assignments(booking.id)}
        assert rows["A"].status == AssignmentStatus.DECLINED
        assert rows["A"].reason == "expired"
        assert rows["B"].reason == "expired"
        assert rows["C"].status == AssignmentStatus.PENDING
        assert leads(store, booking.id) == ["C"]
        assert MSG_NO_REPLACEMENT_EXPIRED in [t.title for t in store.list_tasks(booking.id, TaskType.CUSTOM)]

    async def test_expiry_alerts_operator(self, engine, booking, alerts):
        await engine.assign(booking.id)
        later = datetime.now(timezone.utc) + timedelta(hours=49)
        await engine.expire_stale(now=later)
        expired = [m for a, m in alerts.sent if a == AlertType.EXPIRED]
        assert len(expired) == 2
        assert any(m.startswith("A ") for m in expired)

    async def test_manual_decline_sends_no_expiry_alert(self, engine, booking, alerts):
        await engine.assign(booking.id)
        await engine.decline(booking.id, "B")
        assert AlertType.EXPIRED not in [a for a, _ in alerts.sent]

    async def test_answered_requests_never_expire(self, engine, store, booking):
        await engine.assign(booking.id)
        await engine.accept(booking.id, "A")
        await engine.accept(booking.id, "B")
        later = datetime.now(timezone.utc) + timedelta(hours=49)
        assert await engine.expire_stale(now=later) == 0


class TestConcurrency:
    async def test_locks_released_after_use(self, engine, store, booking):
        await engine.assign(booking.id)
        await engine.accept(booking.id, "A")
        await engine.decline(booking.id, "B")
        gc.collect()
        assert len(engine._locks) == 0

    async def test_lock_shared_while_held(self, engine, booking):
        lock = engine._lock(booking.id)
        assert engine._lock(booking.id) is lock
        del lock
        gc.collect()
        assert booking.id not in engine._locks

    async def test_second_engine_cannot_overstaff(self, engine, store, notifier, availability, booking):
        # another worker process, sharing only the database
        other = AutoAssigner(store, notifier, availability=availability)
        await engine.assign(booking.id)
        assert await other._reassign(store.get_booking(booking.id), "B") is None
        active = [a for a in store.list_assignments(booking.id) if a.status != AssignmentStatus.DECLINED]
        assert len(active) == 2
        assert "C" not in statuses(store, booking.id)
    async def test_concurrent_accepts_confirm_once(self, engine, store, booking, email):
        await engine.assign(booking.id)
        results = await asyncio.gather(
            engine.accept(booking.id, "A"),
            engine.accept(booking.id, "B"),
            engine.accept(booking.id, "A"),
        )
        assert sum(r.booking_confirmed for r in results) == 1
        assert sum(r.already_resolved for r in results) == 1
        assert len(customer_mails(email)) == 1

    async def test_concurrent_declines_keep_one_lead(self, engine, store, booking):
        await engine.assign(booking.id)
        await asyncio.gather(
            engine.decline(booking.id, "A"),
            engine.decline(booking.id, "B"),
            engine.assign(booking.id),
        )
        assignments = store.list_assignments(booking.id)
        assert len({a.installer_id for a in assignments}) == len(assignments)
        assert leads(store, booking.id) == ["C"]

    @pytest.mark.parametrize("seed", range(8))
    async def test_random_sequences_hold_invariants(self, engine, store, booking, email, seed):
        store.upsert_installer(Installer("D", "David", email="david@example.se", priority_order=4))
        store.upsert_installer(Installer("E", "Eva", email="eva@example.se", priority_order=5))
        rng = random.Random(seed)
        await engine.assign(booking.id)

        for _ in range(12):
            pending = [a.installer_id for a in store.list_assignments(booking.id)
                       if a.status == AssignmentStatus.PENDING]
            if not pending:
                break
            batch = [
                engine.accept(booking.id, i) if rng.random() < 0.5 else engine.decline(booking.id, i)
                for i in rng.sample(pending, k=min(len(pending), 2))
            ]
            await asyncio.gather(*batch)

            assignments = store.list_assignments(booking.id)
            active = [a for a in assignments if a.status != AssignmentStatus.DECLINED]
            assert len(active) <= booking.num_installers
            assert len([a for a in assignments if a.is_lead]) <= 1
            assert not any(a.is_lead for a in assignments if a.status == AssignmentStatus.DECLINED)
            if active:
                assert any(a.is_lead for a in active)
            if store.get_booking(booking.id).status == BookingStatus.CONFIRMED:
                assert all(a.status == AssignmentStatus.ACCEPTED for a in active)
            assert len(customer_mails(email)) <= 1
