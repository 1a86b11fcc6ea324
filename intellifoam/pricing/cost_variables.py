"""
cost_variables.py — Intellifoam Cost Variable Map

Read-only view over the cost_variables table. Every key the calculator
reads has a documented default, so a missing or partially seeded table
never breaks a quote.

Usage:
    from intellifoam.pricing.cost_variables import CostVariables
    cv = CostVariables(store.load_cost_variables())
    cv.foam(FoamType.CLOSED_CELL).density
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

from intellifoam.physics.building_physics import FoamType, PhysicsSettings

logger = logging.getLogger(__name__)


# ─── Defaults ─────────────────────────────────────────────────────────────────

# key: (value, unit, category)
DEFAULT_COST_VARIABLES: dict[str, tuple[float, str, str]] = {
    # closed-cell foam
    "closed_material_cost":     (45.0,   "kr/kg",   "closed_foam"),
    "closed_margin":            (30.0,   "%",       "closed_foam"),
    "closed_density":           (35.0,   "kg/m³",   "closed_foam"),
    "closed_spray_time":        (0.5,    "h/m³",    "closed_foam"),
    # open-cell foam
    "open_material_cost":       (25.0,   "kr/kg",   "open_foam"),
    "open_margin":              (30.0,   "%",       "open_foam"),
    "open_density":             (10.0,   "kg/m³",   "open_foam"),
    "open_spray_time":          (0.4,    "h/m³",    "open_foam"),
    # personnel and equipment
    "personnel_cost_per_hour":  (625.0,  "kr/h",    "personnel"),
    "setup_hours":              (2.0,    "h",       "personnel"),
    "generator_cost":           (2000.0, "kr",      "equipment"),
    # travel
    "travel_base_cost":         (1500.0, "kr",      "travel"),
    "travel_cost_per_km":       (15.0,   "kr/km",   "travel"),
    "average_travel_speed_kmh": (80.0,   "km/h",    "travel"),
    # building physics
    "condensation_safety_margin":    (2.0,   "°C",      "building_physics"),
    "closed_cell_min_airtightness":  (40.0,  "mm",      "building_physics"),
    "flash_batt_min_open_thickness": (50.0,  "mm",      "building_physics"),
    "indoor_temp_standard":          (21.0,  "°C",      "building_physics"),
    "indoor_rh_standard":            (40.0,  "%",       "building_physics"),
    "closed_cell_lambda":            (0.024, "W/(m·K)", "building_physics"),
    "open_cell_lambda":              (0.040, "W/(m·K)", "building_physics"),
    "closed_cell_sd_value":          (100.0, "m",       "building_physics"),
    "open_cell_sd_value":            (0.3,   "m",       "building_physics"),
    "closed_cell_density":           (35.0,  "kg/m³",   "building_physics"),
    "open_cell_density":             (10.0,  "kg/m³",   "building_physics"),
}

# Spray-time multipliers per part type (overhead work is slower)
DEFAULT_PROJECT_MULTIPLIERS: dict[str, float] = {
    "tak":       1.2,
    "yttervagg": 1.0,
    "innervagg": 1.0,
    "golv":      0.9,
}

_FOAM_PREFIX = {
    FoamType.CLOSED_CELL: "closed",
    FoamType.OPEN_CELL:   "open",
}


@dataclass(frozen=True)
class FoamCostInputs:
    density: float              # kg/m³
    material_cost_per_kg: float
    margin_pct: float
    spray_time_per_m3: float    # h/m³


class CostVariables:
    """Key -> number map with documented fallbacks."""

    def __init__(self, values: Optional[Mapping[str, float]] = None):
        self._values: dict[str, float] = {k: float(v) for k, v in (values or {}).items()}

    @classmethod
    def from_rows(cls, rows: Iterable[Mapping]) -> "CostVariables":
        """Build from cost_variables rows with variable_key / variable_value columns."""
        return cls({row["variable_key"]: row["variable_value"] for row in rows})

    def get(self, key: str) -> float:
        if key in self._values:
            return self._values[key]
        if key in DEFAULT_COST_VARIABLES:
            logger.debug(f"Cost variable '{key}' missing, using default")
            return DEFAULT_COST_VARIABLES[key][0]
        raise KeyError(f"Unknown cost variable: {key}")

    def __getitem__(self, key: str) -> float:
        return self.get(key)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def as_dict(self) -> dict[str, float]:
        merged = {k: v[0] for k, v in DEFAULT_COST_VARIABLES.items()}
        merged.update(self._values)
        return merged

    def foam(self, foam_type: FoamType) -> FoamCostInputs:
        prefix = _FOAM_PREFIX[FoamType(foam_type)]
        return FoamCostInputs(
            density=self.get(f"{prefix}_density"),
            material_cost_per_kg=self.get(f"{prefix}_material_cost"),
            margin_pct=self.get(f"{prefix}_margin"),
            spray_time_per_m3=self.get(f"{prefix}_spray_time"),
        )

    @property
    def personnel_cost_per_hour(self) -> float:
        return self.get("personnel_cost_per_hour")

    @property
    def setup_hours(self) -> float:
        return self.get("setup_hours")

    @property
    def generator_cost(self) -> float:
        return self.get("generator_cost")

    def travel(self, distance_km: float) -> tuple[float, float]:
        """(round-trip hours, vehicle cost) for a one-way distance."""
        if distance_km <= 0:
            return 0.0, 0.0
        hours = distance_km * 2 / self.get("average_travel_speed_kmh")
        cost = self.get("travel_base_cost") + distance_km * self.get("travel_cost_per_km")
        return hours, cost

    def physics(self, u_values: Optional[Mapping[str, float]] = None) -> PhysicsSettings:
        return PhysicsSettings.from_variables(self.as_dict(), u_values=u_values)
