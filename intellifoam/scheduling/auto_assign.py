"""
auto_assign.py — Intellifoam Installer Auto-Assignment

Staffs bookings by installer priority and drives the confirmation state
machine:

    assignment:  pending -> accepted | declined
    booking:     scheduled -> confirmed (when every non-declined assignment
                 is accepted) | cancelled | completed

Each assigned installer gets three confirmation requests (email token,
Discord token, in-app task); answering on any channel resolves all three.
A decline (or an expired confirmation) hands the slot to the next available
installer. Shortfalls are reported to the office, never raised.

All mutations of one booking are serialized with a per-booking asyncio.Lock;
the confirmed transition is a conditional UPDATE so it happens once.

Usage:
    engine = AutoAssigner(store, notifier)
    result = await engine.assign(booking_id)
    await engine.respond(token, "accept")
"""

import asyncio
import logging
import uuid
import weakref
from datetime import datetime, timedelta, timezone
from typing import Optional

from intellifoam.scheduling.availability import InstallerAvailability
from intellifoam.scheduling.models import (
    DECLINE_REASON_EXPIRED,
    AssignedInstaller,
    AssignmentResult,
    AssignmentStatus,
    Booking,
    BookingStatus,
    Channel,
    ResponseResult,
    Task,
    TaskType,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIRMATION_TTL_HOURS = 48

MSG_NOT_FOUND        = "Bokning ej hittad"
MSG_NOT_ASSIGNED     = "Installatören är inte tilldelad bokningen"
MSG_ALREADY_ANSWERED = "Redan besvarad"
MSG_TOKEN_NOT_FOUND  = "Bekräftelse ej hittad"
MSG_ACCEPTED         = "Bokad och bekräftad!"
MSG_DECLINED         = "Avböjd"
MSG_NO_ONE_AVAILABLE = "Inga installatörer tillgängliga"
MSG_NO_REPLACEMENT   = "Ingen ersättare tillgänglig efter avböjning"
MSG_NO_REPLACEMENT_EXPIRED = "Ingen ersättare tillgänglig efter obesvarad bekräftelse"

ACTIONS = ("accept", "decline")


class AutoAssigner:
    def __init__(
        self,
        store,
        notifier,
        availability: Optional[InstallerAvailability] = None,
        confirmation_ttl_hours: float = DEFAULT_CONFIRMATION_TTL_HOURS,
    ):
        self.store = store
        self.notifier = notifier
        self.availability = availability or InstallerAvailability(store)
        self.confirmation_ttl_hours = confirmation_ttl_hours
        # entries vanish once no coroutine holds or awaits the lock
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock(self, booking_id: int) -> asyncio.Lock:
        lock = self._locks.get(booking_id)
        if lock is None:
            lock = self._locks[booking_id] = asyncio.Lock()
        return lock

    # ─── Assign ──────────────────────────────────────────────────────────────

    async def assign(self, booking_id: int) -> AssignmentResult:
        """
        Top the booking up to its required number of installers.

        Installers already on the booking (in any state) are never offered the
        slot again, so calling assign twice creates nothing the second time.
        """
        async with self._lock(booking_id):
            booking = self.store.get_booking(booking_id)
            if booking is None:
                return AssignmentResult(False, 0, 0, message=MSG_NOT_FOUND)

            existing = self.store.list_assignments(booking_id)
            active = [a for a in existing if a.status != AssignmentStatus.DECLINED]
            needed = booking.num_installers

            if booking.status != BookingStatus.SCHEDULED:
                return AssignmentResult(
                    False, len(active), needed,
                    message=f"Bokningen har status {booking.status.value} och kan inte tilldelas",
                )
            if len(active) >= needed:
                return AssignmentResult(True, len(active), needed, message=f"{len(active)} installatörer redan tilldelade")

            taken = {a.installer_id for a in existing}
            has_lead = any(a.is_lead for a in active)
            candidates = [
                r for r in self.availability.available_installers(booking.scheduled_date, booking.slot_type)
                if r.installer_id not in taken
            ]

            created: list[AssignedInstaller] = []
            for candidate in candidates[: needed - len(active)]:
                is_lead = not has_lead and not created
                if self.store.add_assignment(
                    booking_id, candidate.installer_id, is_lead=is_lead, max_active=needed,
                ) is None:
                    continue
                created.append(AssignedInstaller(candidate.installer_id, candidate.installer_name, is_lead))
                logger.info(
                    f"Booking #{booking_id}: assigned {candidate.installer_name or candidate.installer_id}"
                    f"{' (lead)' if is_lead else ''}"
                )
                await self._request_confirmation(booking, candidate.installer_id)

            assigned = len(active) + len(created)
            if assigned == 0:
                await self.notifier.notify_admin(booking_id, MSG_NO_ONE_AVAILABLE)
            elif assigned < needed:
                await self.notifier.notify_admin(
                    booking_id, f"Bara {assigned} av {needed} installatörer kunde tilldelas"
                )

            success = assigned >= needed
            if success:
                message = f"{assigned} installatörer tilldelade"
            elif assigned == 0:
                message = "Inga tillgängliga installatörer"
            else:
                message = f"Bara {assigned}/{needed} tilldelade"
            return AssignmentResult(success, assigned, needed, assignments=created, message=message)

    # ─── Responses ───────────────────────────────────────────────────────────

    async def accept(self, booking_id: int, installer_id: str) -> ResponseResult:
        async with self._lock(booking_id):
            booking, error = self._pending_assignment(booking_id, installer_id)
            if error:
                return error
            if not self.store.resolve_assignment(booking_id, installer_id, AssignmentStatus.ACCEPTED):
                return ResponseResult(False, MSG_ALREADY_ANSWERED, already_resolved=True)
            logger.info(f"Booking #{booking_id}: {installer_id} accepted")
            confirmed = await self._confirm_if_complete(booking)
            return ResponseResult(True, MSG_ACCEPTED, booking_confirmed=confirmed)

    async def decline(self, booking_id: int, installer_id: str, reason: str = "declined") -> ResponseResult:
        async with self._lock(booking_id):
            booking, error = self._pending_assignment(booking_id, installer_id)
            if error:
                return error
            was_lead = self.store.get_assignment(booking_id, installer_id).is_lead
            if not self.store.resolve_assignment(booking_id, installer_id, AssignmentStatus.DECLINED, reason=reason):
                return ResponseResult(False, MSG_ALREADY_ANSWERED, already_resolved=True)
            logger.info(f"Booking #{booking_id}: {installer_id} declined ({reason})")
            if reason == DECLINE_REASON_EXPIRED:
                await self.notifier.notify_expired(booking_id, installer_id)

            replacement = None
            active = [a for a in self.store.list_assignments(booking_id) if a.status != AssignmentStatus.DECLINED]
            if len(active) < booking.num_installers:
                replacement = await self._reassign(booking, installer_id)
                if replacement is None:
                    msg = MSG_NO_REPLACEMENT_EXPIRED if reason == DECLINE_REASON_EXPIRED else MSG_NO_REPLACEMENT
                    await self.notifier.notify_admin(booking_id, msg)

            if was_lead:
                self._promote_lead(booking_id)

            confirmed = await self._confirm_if_complete(booking)
            return ResponseResult(
                True, MSG_DECLINED,
                booking_confirmed=confirmed,
                reassigned=replacement is not None,
                new_installer_id=replacement,
            )

    async def respond(self, token: str, action: str) -> ResponseResult:
        """Answer an email or Discord confirmation token."""
        if action not in ACTIONS:
            return ResponseResult(False, "action måste vara accept eller decline")
        request = self.store.get_request_by_token(token)
        if request is None:
            return ResponseResult(False, MSG_TOKEN_NOT_FOUND)
        if request.status != AssignmentStatus.PENDING:
            return ResponseResult(False, MSG_ALREADY_ANSWERED, already_resolved=True)
        if action == "accept":
            return await self.accept(request.booking_id, request.installer_id)
        return await self.decline(request.booking_id, request.installer_id)

    async def expire_stale(self, now: Optional[datetime] = None) -> int:
        """Decline every pending confirmation older than the TTL. Returns how many expired."""
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        cutoff = (now - timedelta(hours=self.confirmation_ttl_hours)).astimezone(timezone.utc)
        expired = 0
        for booking_id, installer_id in self.store.stale_pending_requests(cutoff.isoformat(timespec="seconds")):
            result = await self.decline(booking_id, installer_id, reason=DECLINE_REASON_EXPIRED)
            if result.success:
                expired += 1
        if expired:
            logger.info(f"Expired {expired} unanswered confirmation(s)")
        return expired

    # ─── Internals ───────────────────────────────────────────────────────────

    def _pending_assignment(self, booking_id: int, installer_id: str) -> tuple[Optional[Booking], Optional[ResponseResult]]:
        booking = self.store.get_booking(booking_id)
        if booking is None:
            return None, ResponseResult(False, MSG_NOT_FOUND)
        assignment = self.store.get_assignment(booking_id, installer_id)
        if assignment is None:
            return None, ResponseResult(False, MSG_NOT_ASSIGNED)
        if assignment.status != AssignmentStatus.PENDING:
            return None, ResponseResult(False, MSG_ALREADY_ANSWERED, already_resolved=True)
        if booking.status != BookingStatus.SCHEDULED:
            return None, ResponseResult(False, f"Bokningen har status {booking.status.value}")
        return booking, None

    async def _reassign(self, booking: Booking, declined_by: str) -> Optional[str]:
        taken = {a.installer_id for a in self.store.list_assignments(booking.id)} | {declined_by}
        for candidate in self.availability.available_installers(booking.scheduled_date, booking.slot_type):
            if candidate.installer_id in taken:
                continue
            if self.store.add_assignment(
                booking.id, candidate.installer_id, is_lead=False, max_active=booking.num_installers,
            ) is None:
                continue
            logger.info(f"Booking #{booking.id}: reassigned to {candidate.installer_name or candidate.installer_id}")
            await self._request_confirmation(booking, candidate.installer_id)
            return candidate.installer_id
        logger.warning(f"Booking #{booking.id}: no replacement available")
        return None

    def _promote_lead(self, booking_id: int) -> None:
        remaining = [a for a in self.store.list_assignments(booking_id) if a.status != AssignmentStatus.DECLINED]
        if not remaining or any(a.is_lead for a in remaining):
            return
        self.store.set_lead(booking_id, remaining[0].installer_id)
        logger.info(f"Booking #{booking_id}: {remaining[0].installer_id} is now lead")

    async def _confirm_if_complete(self, booking: Booking) -> bool:
        active = [a for a in self.store.list_assignments(booking.id) if a.status != AssignmentStatus.DECLINED]
        if not active or any(a.status != AssignmentStatus.ACCEPTED for a in active):
            return False
        if not self.store.mark_booking_confirmed(booking.id):
            return False
        booking.status = BookingStatus.CONFIRMED
        logger.info(f"Booking #{booking.id} confirmed ({len(active)} installers)")
        await self.notifier.send_customer_confirmation(booking)
        return True

    async def _request_confirmation(self, booking: Booking, installer_id: str) -> None:
        installer = self.store.get_installer(installer_id)
        if installer is None:
            logger.warning(f"Installer {installer_id} not found, no confirmation sent")
            return

        email_token, discord_token = str(uuid.uuid4()), str(uuid.uuid4())
        self.store.add_confirmation_request(booking.id, installer_id, Channel.EMAIL, token=email_token)
        self.store.add_confirmation_request(booking.id, installer_id, Channel.DISCORD, token=discord_token)
        self.store.add_confirmation_request(booking.id, installer_id, Channel.IN_APP)
        what = "hembesök" if booking.is_visit else "installation"
        self.store.add_task(Task(
            title=f"Bekräfta {what}: {booking.customer_name}",
            description=f"{booking.customer_address}\n{booking.scheduled_date.isoformat()} - {booking.slot_label}",
            task_type=TaskType.BOOKING_CONFIRMATION,
            assigned_to=installer_id,
            booking_id=booking.id,
            due_date=booking.scheduled_date.isoformat(),
        ))
        await self.notifier.send_installer_confirmation(booking, installer, email_token, discord_token)
