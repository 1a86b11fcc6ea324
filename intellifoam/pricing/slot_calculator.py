"""
slot_calculator.py — Intellifoam Slot Calculator

Turns the total labor hours of a quote into a booking slot:
  - ≤ 3 h per person  -> half day (morning)
  - ≤ 8 h per person  -> full day
  - otherwise         -> ceil(h / 8) consecutive full days
"""

import math
from dataclasses import dataclass

from intellifoam.scheduling.models import SlotType

HALF_DAY_MAX_HOURS = 3.0
WORKDAY_HOURS = 8.0


@dataclass
class SlotCalculation:
    hours_per_person: float
    slot_type: SlotType
    num_days: int
    description: str


def calculate_slot(total_hours: float, num_installers: int = 2) -> SlotCalculation:
    hours_per_person = total_hours / max(num_installers, 1)

    if hours_per_person <= HALF_DAY_MAX_HOURS:
        slot_type, num_days = SlotType.MORNING, 1
    elif hours_per_person <= WORKDAY_HOURS:
        slot_type, num_days = SlotType.FULL, 1
    else:
        slot_type, num_days = SlotType.FULL, math.ceil(hours_per_person / WORKDAY_HOURS)

    return SlotCalculation(
        hours_per_person=hours_per_person,
        slot_type=slot_type,
        num_days=num_days,
        description=_describe(slot_type, num_days, num_installers),
    )


def _describe(slot_type: SlotType, num_days: int, num_installers: int) -> str:
    persons = "1 installatör" if num_installers == 1 else f"{num_installers} installatörer"
    if num_days > 1:
        return f"{num_days} dagar - {persons}"
    if slot_type == SlotType.MORNING:
        return f"Halvdag (förmiddag) - {persons}"
    if slot_type == SlotType.AFTERNOON:
        return f"Halvdag (eftermiddag) - {persons}"
    return f"Heldag - {persons}"


def total_hours_from_quote(quote) -> float:
    """Total labor hours of a QuoteCalculation (0 when missing)."""
    if quote is None:
        return 0.0
    return quote.totals.total_hours or 0.0
