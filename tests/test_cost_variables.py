"""Tests for the cost variable map and its fallbacks."""

import pytest

from intellifoam.physics.building_physics import FoamType
from intellifoam.pricing.cost_variables import DEFAULT_COST_VARIABLES, CostVariables


class TestCostVariables:
    def test_missing_key_uses_default(self):
        cv = CostVariables()
        assert cv.get("personnel_cost_per_hour") == 625.0
        assert "personnel_cost_per_hour" not in cv

    def test_stored_value_wins(self):
        cv = CostVariables({"personnel_cost_per_hour": 700})
        assert cv["personnel_cost_per_hour"] == 700.0

    def test_unknown_key(self):
        with pytest.raises(KeyError):
            CostVariables().get("gold_leaf_cost")

    def test_from_rows(self):
        cv = CostVariables.from_rows([{"variable_key": "setup_hours", "variable_value": 3}])
        assert cv.setup_hours == 3.0

    def test_as_dict_covers_all_defaults(self):
        merged = CostVariables({"generator_cost": 2500}).as_dict()
        assert set(DEFAULT_COST_VARIABLES) <= set(merged)
        assert merged["generator_cost"] == 2500

    def test_foam_inputs(self):
        closed = CostVariables().foam(FoamType.CLOSED_CELL)
        assert closed.density == 35.0
        assert closed.material_cost_per_kg == 45.0
        assert closed.margin_pct == 30.0
        assert closed.spray_time_per_m3 == 0.5
        assert CostVariables().foam("open_cell").density == 10.0


class TestTravel:
    def test_no_distance_no_travel(self):
        assert CostVariables().travel(0) == (0.0, 0.0)

    def test_round_trip(self):
        hours, cost = CostVariables().travel(40)
        assert hours == 1.0
        assert cost == 2100.0


class TestPhysicsOverrides:
    def test_stored_physics_values_flow_through(self):
        physics = CostVariables({
            "condensation_safety_margin": 3,
            "closed_cell_min_airtightness": 50,
            "flash_batt_min_open_thickness": 60,
        }).physics()
        assert physics.safety_margin == 3
        assert physics.min_airtight_mm == 50
        assert physics.flash_batt_min_open_mm == 60

    def test_u_value_overrides(self):
        physics = CostVariables().physics({"yttervagg": 0.15})
        assert physics.u_values["yttervagg"] == 0.15
