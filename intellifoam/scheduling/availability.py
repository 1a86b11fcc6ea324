"""
availability.py — Intellifoam Installer Availability

Answers "who can work on this date and slot", in assignment priority order.
An installer is unavailable when:
  1. inactive
  2. the hardplast (isocyanate) certificate has expired
  3. blocked on the date (full-day block, same-slot block, or any block
     when a full day is requested)
  4. already on a non-cancelled booking that day with a conflicting slot
"""

import logging
from datetime import date, timedelta
from typing import Optional

from intellifoam.scheduling.models import AvailabilityResult, Installer, SlotType, slots_conflict

logger = logging.getLogger(__name__)

REASON_NOT_FOUND = "Installatör ej hittad"
REASON_INACTIVE  = "Inaktiv"
REASON_HARDPLAST = "Hardplast-certifikat utgånget"
REASON_BLOCKED   = "Blockerat datum"
REASON_BOOKED    = "Redan bokad"


class InstallerAvailability:
    """Availability lookup backed by a FoamStore."""

    def __init__(self, store, today: Optional[date] = None):
        self.store = store
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    def check(self, installer_id: str, on_date: date, slot: SlotType | str = SlotType.FULL) -> AvailabilityResult:
        installer = self.store.get_installer(installer_id)
        if installer is None:
            return AvailabilityResult(installer_id, "Unknown", available=False, reason=REASON_NOT_FOUND)
        return self._check_installer(installer, on_date, SlotType(slot))

    def for_slot(self, on_date: date, slot: SlotType | str = SlotType.FULL) -> list[AvailabilityResult]:
        """All active installers for one date/slot, ordered by priority."""
        slot = SlotType(slot)
        return [self._check_installer(i, on_date, slot) for i in self.store.list_installers(active_only=True)]

    def available_installers(self, on_date: date, slot: SlotType | str = SlotType.FULL) -> list[AvailabilityResult]:
        return [r for r in self.for_slot(on_date, slot) if r.available]

    def for_range(self, from_date: date, to_date: date,
                  slot: SlotType | str = SlotType.FULL) -> dict[str, list[AvailabilityResult]]:
        """Calendar view: ISO date -> availability per installer."""
        result = {}
        current = from_date
        while current <= to_date:
            result[current.isoformat()] = self.for_slot(current, slot)
            current += timedelta(days=1)
        return result

    def _check_installer(self, installer: Installer, on_date: date, slot: SlotType) -> AvailabilityResult:
        def unavailable(reason: str) -> AvailabilityResult:
            return AvailabilityResult(
                installer.id, installer.name, available=False,
                priority_order=installer.priority_order, reason=reason,
            )

        if not installer.is_active:
            return unavailable(REASON_INACTIVE)
        if installer.hardplast_expiry and installer.hardplast_expiry < self.today:
            return unavailable(REASON_HARDPLAST)

        blocks = self.store.blocked_slots(installer.id, on_date)
        if blocks and (SlotType.FULL in blocks or slot in blocks or slot == SlotType.FULL):
            return unavailable(REASON_BLOCKED)

        if any(slots_conflict(existing, slot) for existing in self.store.booked_slots(installer.id, on_date)):
            return unavailable(REASON_BOOKED)

        return AvailabilityResult(
            installer.id, installer.name, available=True, priority_order=installer.priority_order,
        )
