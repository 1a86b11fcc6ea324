"""Tests for turning labor hours into booking slots."""

import pytest

from intellifoam.pricing.quote_calculator import PartSelection, QuoteCalculator
from intellifoam.pricing.slot_calculator import calculate_slot, total_hours_from_quote
from intellifoam.physics.building_physics import BuildingPartInput, ClimateSettings, PartType
from intellifoam.scheduling.models import SlotType


class TestCalculateSlot:
    @pytest.mark.parametrize("hours, slot, days", [
        (2.0, SlotType.MORNING, 1),
        (6.0, SlotType.MORNING, 1),
        (7.0, SlotType.FULL, 1),
        (16.0, SlotType.FULL, 1),
        (16.5, SlotType.FULL, 2),
        (40.0, SlotType.FULL, 3),
    ])
    def test_two_installers(self, hours, slot, days):
        result = calculate_slot(hours, 2)
        assert result.slot_type == slot
        assert result.num_days == days

    def test_single_installer(self):
        result = calculate_slot(7.0, 1)
        assert result.hours_per_person == 7.0
        assert result.slot_type == SlotType.FULL
        assert result.description == "Heldag - 1 installatör"

    def test_descriptions(self):
        assert calculate_slot(2.0).description == "Halvdag (förmiddag) - 2 installatörer"
        assert calculate_slot(40.0).description == "3 dagar - 2 installatörer"

    def test_zero_installers_treated_as_one(self):
        assert calculate_slot(4.0, 0).hours_per_person == 4.0


class TestFromQuote:
    def test_missing_quote(self):
        assert total_hours_from_quote(None) == 0.0

    def test_worked_example_needs_full_day(self):
        part = BuildingPartInput("p1", PartType.YTTERVAGG, 100)
        quote = QuoteCalculator().calculate(
            [PartSelection(part, 100, 0)], ClimateSettings.for_zone("Mellersta Sverige (Zon II)"),
        )
        hours = total_hours_from_quote(quote)
        assert hours == 7.0
        assert calculate_slot(hours, quote.totals.num_installers).slot_type == SlotType.FULL
