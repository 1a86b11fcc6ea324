"""
models.py — Intellifoam Scheduling Models

Bookings, installers, per-installer assignments, confirmation requests and
the result objects returned by the assignment engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional


# ─── Enums ────────────────────────────────────────────────────────────────────

class BookingStatus(str, Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class SlotType(str, Enum):
    FULL      = "full"
    MORNING   = "morning"
    AFTERNOON = "afternoon"


class AssignmentStatus(str, Enum):
    PENDING  = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class Channel(str, Enum):
    EMAIL   = "email"
    DISCORD = "discord"
    IN_APP  = "in_app"


class TaskType(str, Enum):
    BOOKING_CONFIRMATION = "booking_confirmation"
    CUSTOM               = "custom"


SLOT_LABELS = {
    SlotType.FULL:      "Heldag",
    SlotType.MORNING:   "Förmiddag",
    SlotType.AFTERNOON: "Eftermiddag",
}

DECLINE_REASON_EXPIRED = "expired"


def slots_conflict(existing: SlotType | str, requested: SlotType | str) -> bool:
    """Full days conflict with everything; half days only with the same half."""
    existing, requested = SlotType(existing), SlotType(requested)
    return SlotType.FULL in (existing, requested) or existing == requested


# ─── Records ──────────────────────────────────────────────────────────────────

@dataclass
class Installer:
    id: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    installer_type: str = "installer"
    hardplast_expiry: Optional[date] = None
    priority_order: int = 99
    is_active: bool = True

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass
class Booking:
    scheduled_date: date
    customer_name: str = ""
    customer_email: str = ""
    customer_address: str = ""
    slot_type: SlotType = SlotType.FULL
    num_installers: int = 2
    status: BookingStatus = BookingStatus.SCHEDULED
    booking_type: str = "installation"      # installation | visit
    scheduled_time: str = ""
    quote_id: Optional[int] = None
    id: Optional[int] = field(default=None, compare=False)

    def __post_init__(self):
        self.slot_type = SlotType(self.slot_type)
        self.status = BookingStatus(self.status)
        if self.num_installers < 1:
            raise ValueError("A booking needs at least one installer")

    @property
    def slot_label(self) -> str:
        return SLOT_LABELS[self.slot_type]

    @property
    def is_visit(self) -> bool:
        return self.booking_type == "visit"


@dataclass
class Assignment:
    booking_id: int
    installer_id: str
    is_lead: bool = False
    status: AssignmentStatus = AssignmentStatus.PENDING
    reason: str = ""
    created_at: str = ""
    responded_at: str = ""
    id: Optional[int] = field(default=None, compare=False)


@dataclass
class ConfirmationRequest:
    booking_id: int
    installer_id: str
    channel: Channel
    token: Optional[str] = None             # None for in-app requests
    status: AssignmentStatus = AssignmentStatus.PENDING
    created_at: str = ""
    responded_at: str = ""
    id: Optional[int] = field(default=None, compare=False)


@dataclass
class Task:
    title: str
    description: str = ""
    status: str = "pending"
    priority: str = "urgent"
    task_type: TaskType = TaskType.CUSTOM
    assigned_to: Optional[str] = None
    booking_id: Optional[int] = None
    due_date: Optional[str] = None
    created_at: str = ""
    completed_at: str = ""
    id: Optional[int] = field(default=None, compare=False)


# ─── Results ──────────────────────────────────────────────────────────────────

@dataclass
class AvailabilityResult:
    installer_id: str
    installer_name: str
    available: bool
    priority_order: int = 99
    reason: str = ""


@dataclass
class AssignedInstaller:
    installer_id: str
    installer_name: str
    is_lead: bool


@dataclass
class AssignmentResult:
    success: bool
    assigned_count: int
    total_needed: int
    assignments: list[AssignedInstaller] = field(default_factory=list)
    message: str = ""


@dataclass
class ResponseResult:
    success: bool
    message: str
    already_resolved: bool = False
    booking_confirmed: bool = False
    reassigned: bool = False
    new_installer_id: Optional[str] = None
