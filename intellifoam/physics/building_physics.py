"""
building_physics.py — Intellifoam Building Physics Primitives

Steady-state heat and vapour calculations for spray-foam assemblies:
  - Saturation vapour pressure and dew point (Magnus formula)
  - Thermal resistance of foam layers and the fixed construction layers
  - Temperature at the closed-cell / open-cell interface
  - Closed-form minimum closed-cell thickness for a given safety margin
  - BBR code-minimum thickness and U-value of a foam configuration

All functions are pure and perform no I/O. Thresholds that the business
may tune live in PhysicsSettings and are loaded from the cost_variables
table (see pricing/cost_variables.py).

Layer order used throughout (outside -> inside):

    exterior film | sheathing | closed-cell | open-cell | gypsum | interior film
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional


# ─── Enums ────────────────────────────────────────────────────────────────────

class PartType(str, Enum):
    YTTERVAGG = "yttervagg"     # outer wall
    TAK       = "tak"           # roof / attic
    GOLV      = "golv"          # floor against ground
    INNERVAGG = "innervagg"     # inner wall, no temperature gradient


class FoamType(str, Enum):
    CLOSED_CELL = "closed_cell"
    OPEN_CELL   = "open_cell"


# ─── Constants ────────────────────────────────────────────────────────────────

# Magnus coefficients (Sonntag 1990, over water)
MAGNUS_A = 17.62
MAGNUS_B = 243.12       # °C
MAGNUS_P0 = 611.2       # Pa

# Fixed construction layers (m²K/W)
R_EXTERIOR_FILM = 0.04
R_EXTERIOR_SHEATHING = 0.12     # OSB / wind barrier board
R_INTERIOR_GYPSUM = 0.06        # 13 mm gypsum board
R_INTERIOR_FILM = 0.13

# Surface resistances used for U-value and code-minimum thickness
R_SURFACE_ALLOWANCE = R_INTERIOR_FILM + R_EXTERIOR_FILM

# Swedish winter design temperatures per climate zone (°C)
CLIMATE_ZONES: dict[str, float] = {
    "Södra Sverige (Zon I)":      -16,
    "Mellersta Sverige (Zon II)": -20,
    "Norra Sverige (Zon III)":    -26,
    "Fjällområden (Zon IV)":      -30,
}

# BBR 29 maximum U-values (W/m²K)
BBR_U_VALUES: dict[str, float] = {
    PartType.YTTERVAGG.value: 0.18,
    PartType.TAK.value:       0.13,
    PartType.GOLV.value:      0.15,
}

DEFAULT_INDOOR_TEMP = 21.0
DEFAULT_INDOOR_RH = 40.0
DEFAULT_SAFETY_MARGIN = 2.0             # °C above dew point
DEFAULT_MIN_AIRTIGHT_MM = 40.0          # closed-cell air-tightness floor
DEFAULT_FLASH_BATT_MIN_OPEN_MM = 50.0   # thinner open-cell layers are not worth the gun change
DEFAULT_OPEN_CELL_THIN_MM = 100.0       # open-cell behind a vapour barrier below this is "medium"
CODE_MINIMUM_MARGIN = 1.1               # +10 % on top of the BBR requirement


# ─── Data Models ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FoamProperties:
    lambda_: float      # W/(m·K)
    sd_value: float     # m, informational
    density: float      # kg/m³
    name: str = ""


DEFAULT_FOAMS: dict[FoamType, FoamProperties] = {
    FoamType.CLOSED_CELL: FoamProperties(lambda_=0.024, sd_value=100.0, density=35.0, name="Slutencellsskum"),
    FoamType.OPEN_CELL:   FoamProperties(lambda_=0.040, sd_value=0.3,   density=10.0, name="Öppencellsskum"),
}


@dataclass(frozen=True)
class FoamSet:
    """Closed- and open-cell properties used together in one calculation."""
    closed_cell: FoamProperties = DEFAULT_FOAMS[FoamType.CLOSED_CELL]
    open_cell: FoamProperties = DEFAULT_FOAMS[FoamType.OPEN_CELL]

    def __post_init__(self):
        if self.closed_cell.lambda_ <= 0 or self.open_cell.lambda_ <= 0:
            raise ValueError("Foam lambda must be positive")
        if not self.closed_cell.lambda_ < self.open_cell.lambda_:
            raise ValueError("Closed-cell lambda must be lower than open-cell lambda")
        if not self.closed_cell.density > self.open_cell.density:
            raise ValueError("Closed-cell density must be higher than open-cell density")

    def get(self, foam_type: FoamType) -> FoamProperties:
        return self.closed_cell if foam_type == FoamType.CLOSED_CELL else self.open_cell

    @classmethod
    def from_variables(cls, variables: Optional[Mapping[str, float]] = None) -> "FoamSet":
        """Build from building-physics overrides (closed_cell_lambda, open_cell_density, ...)."""
        variables = variables or {}
        foams = {}
        for foam_type, default in DEFAULT_FOAMS.items():
            prefix = foam_type.value
            foams[foam_type] = FoamProperties(
                lambda_=float(variables.get(f"{prefix}_lambda", default.lambda_)),
                sd_value=float(variables.get(f"{prefix}_sd_value", default.sd_value)),
                density=float(variables.get(f"{prefix}_density", default.density)),
                name=default.name,
            )
        return cls(closed_cell=foams[FoamType.CLOSED_CELL], open_cell=foams[FoamType.OPEN_CELL])


@dataclass(frozen=True)
class PhysicsSettings:
    """Tunable building-physics thresholds, normally loaded from cost_variables."""
    safety_margin: float = DEFAULT_SAFETY_MARGIN
    min_airtight_mm: float = DEFAULT_MIN_AIRTIGHT_MM
    flash_batt_min_open_mm: float = DEFAULT_FLASH_BATT_MIN_OPEN_MM
    open_cell_thin_mm: float = DEFAULT_OPEN_CELL_THIN_MM
    indoor_temp: float = DEFAULT_INDOOR_TEMP
    indoor_rh: float = DEFAULT_INDOOR_RH
    foams: FoamSet = field(default_factory=FoamSet)
    u_values: Mapping[str, float] = field(default_factory=lambda: dict(BBR_U_VALUES))

    @classmethod
    def from_variables(
        cls,
        variables: Optional[Mapping[str, float]] = None,
        u_values: Optional[Mapping[str, float]] = None,
    ) -> "PhysicsSettings":
        variables = variables or {}
        merged_u = dict(BBR_U_VALUES)
        if u_values:
            merged_u.update({k: float(v) for k, v in u_values.items()})
        return cls(
            safety_margin=float(variables.get("condensation_safety_margin", DEFAULT_SAFETY_MARGIN)),
            min_airtight_mm=float(variables.get("closed_cell_min_airtightness", DEFAULT_MIN_AIRTIGHT_MM)),
            flash_batt_min_open_mm=float(variables.get("flash_batt_min_open_thickness", DEFAULT_FLASH_BATT_MIN_OPEN_MM)),
            open_cell_thin_mm=float(variables.get("open_cell_min_thickness", DEFAULT_OPEN_CELL_THIN_MM)),
            indoor_temp=float(variables.get("indoor_temp_standard", DEFAULT_INDOOR_TEMP)),
            indoor_rh=float(variables.get("indoor_rh_standard", DEFAULT_INDOOR_RH)),
            foams=FoamSet.from_variables(variables),
            u_values=merged_u,
        )


@dataclass(frozen=True)
class ClimateSettings:
    zone: str
    indoor_temp: float
    indoor_rh: float
    outdoor_temp: float

    def __post_init__(self):
        _check_rh(self.indoor_rh)
        for temp in (self.indoor_temp, self.outdoor_temp):
            if temp <= -MAGNUS_B:
                raise ValueError(f"Temperature {temp}°C is outside the Magnus formula domain")

    @classmethod
    def for_zone(
        cls,
        zone: str,
        indoor_temp: float = DEFAULT_INDOOR_TEMP,
        indoor_rh: float = DEFAULT_INDOOR_RH,
    ) -> "ClimateSettings":
        if zone not in CLIMATE_ZONES:
            raise ValueError(f"Unknown climate zone: {zone}")
        return cls(zone=zone, indoor_temp=indoor_temp, indoor_rh=indoor_rh, outdoor_temp=CLIMATE_ZONES[zone])

    @property
    def has_gradient(self) -> bool:
        return self.indoor_temp != self.outdoor_temp


@dataclass(frozen=True)
class BuildingPartInput:
    part_id: str
    part_type: PartType
    area: float                                 # m²
    has_vapor_barrier: bool = False
    target_thickness_mm: Optional[float] = None
    name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "part_type", PartType(self.part_type))
        if self.area <= 0:
            raise ValueError(f"Area must be positive (part {self.part_id})")
        if self.target_thickness_mm is not None and self.target_thickness_mm <= 0:
            raise ValueError(f"Target thickness must be positive (part {self.part_id})")


@dataclass
class MinThicknessResult:
    min_thickness_mm: float     # math.inf when infeasible
    dew_point: float
    target_temp: float
    interface_temp: float
    feasible: bool
    explanation: str


# ─── Primitives ───────────────────────────────────────────────────────────────

def _check_rh(rh: float) -> None:
    if not 0 < rh <= 100:
        raise ValueError(f"Relative humidity must be in (0, 100], got {rh}")


def saturation_vapor_pressure(temp: float) -> float:
    """Saturation vapour pressure over water in Pa."""
    return MAGNUS_P0 * math.exp(MAGNUS_A * temp / (MAGNUS_B + temp))


def dew_point(temp: float, rh: float) -> float:
    """Dew point in °C for air at temp (°C) and relative humidity rh (%)."""
    _check_rh(rh)
    alpha = math.log(rh / 100) + MAGNUS_A * temp / (MAGNUS_B + temp)
    return MAGNUS_B * alpha / (MAGNUS_A - alpha)


def thermal_resistance(thickness_mm: float, lambda_: float) -> float:
    """R-value of a homogeneous layer in m²K/W."""
    return (thickness_mm / 1000) / lambda_


def resistance_to_thickness(resistance: float, lambda_: float) -> float:
    """Inverse of thermal_resistance, in mm."""
    return resistance * lambda_ * 1000


def exterior_resistance() -> float:
    """Fixed layers outside the closed-cell foam."""
    return R_EXTERIOR_FILM + R_EXTERIOR_SHEATHING


def interior_resistance(open_cell_thickness_mm: float = 0.0, foams: Optional[FoamSet] = None) -> float:
    """Open-cell foam plus fixed layers inside the closed-cell foam."""
    foams = foams or FoamSet()
    r_open = thermal_resistance(open_cell_thickness_mm, foams.open_cell.lambda_) if open_cell_thickness_mm > 0 else 0.0
    return r_open + R_INTERIOR_GYPSUM + R_INTERIOR_FILM


def interface_temperature(
    indoor_temp: float,
    outdoor_temp: float,
    closed_cell_thickness_mm: float,
    open_cell_thickness_mm: float = 0.0,
    foams: Optional[FoamSet] = None,
) -> float:
    """
    Temperature at the inside face of the closed-cell layer.

    With no closed-cell foam this is the outside face of the open-cell layer,
    and with no open-cell foam it is the surface facing the gypsum board.
    """
    foams = foams or FoamSet()
    outside = exterior_resistance()
    if closed_cell_thickness_mm > 0:
        outside += thermal_resistance(closed_cell_thickness_mm, foams.closed_cell.lambda_)
    inside = interior_resistance(open_cell_thickness_mm, foams)
    return outdoor_temp + outside / (outside + inside) * (indoor_temp - outdoor_temp)


def u_value(
    closed_cell_thickness_mm: float,
    open_cell_thickness_mm: float,
    foams: Optional[FoamSet] = None,
) -> float:
    """U-value (W/m²K) of the foam layers plus the surface-resistance allowance."""
    foams = foams or FoamSet()
    r_total = R_SURFACE_ALLOWANCE
    if closed_cell_thickness_mm > 0:
        r_total += thermal_resistance(closed_cell_thickness_mm, foams.closed_cell.lambda_)
    if open_cell_thickness_mm > 0:
        r_total += thermal_resistance(open_cell_thickness_mm, foams.open_cell.lambda_)
    return 1 / r_total


def required_u_value(part_type: PartType | str, u_values: Optional[Mapping[str, float]] = None) -> Optional[float]:
    """BBR maximum U-value for the part, or None for parts without a requirement."""
    table = u_values if u_values is not None else BBR_U_VALUES
    return table.get(PartType(part_type).value)


def code_minimum_thickness(
    part_type: PartType | str,
    lambda_: float,
    u_values: Optional[Mapping[str, float]] = None,
) -> float:
    """Thickness (mm) meeting the BBR U-value with 10 % margin, rounded up to 10 mm."""
    u_max = required_u_value(part_type, u_values)
    if u_max is None:
        raise ValueError(f"No U-value requirement for part type {part_type}")
    required_r = 1 / u_max - R_SURFACE_ALLOWANCE
    thickness = resistance_to_thickness(required_r, lambda_) * CODE_MINIMUM_MARGIN
    return math.ceil(round(thickness, 6) / 10) * 10


# ─── Minimum Closed-Cell Solver ───────────────────────────────────────────────

def min_closed_cell_thickness(
    indoor_temp: float,
    indoor_rh: float,
    outdoor_temp: float,
    open_cell_thickness_mm: float = 0.0,
    safety_margin: float = DEFAULT_SAFETY_MARGIN,
    foams: Optional[FoamSet] = None,
) -> MinThicknessResult:
    """
    Closed-form minimum closed-cell thickness keeping the closed/open
    interface at dew point + safety_margin.

    With A the resistance outside the closed-cell layer, B the resistance
    inside it and k = (T_target - T_out) / (T_in - T_out):

        R_closed_min = max(0, k / (1 - k) * B - A)

    Infeasible targets (k >= 1) return feasible=False and an infinite
    thickness; callers must check the flag.
    """
    foams = foams or FoamSet()
    t_dew = dew_point(indoor_temp, indoor_rh)
    t_target = t_dew + safety_margin
    delta_t = indoor_temp - outdoor_temp

    if delta_t <= 0:
        return MinThicknessResult(
            min_thickness_mm=0.0,
            dew_point=t_dew,
            target_temp=t_target,
            interface_temp=indoor_temp,
            feasible=True,
            explanation="Ingen kondensationsrisk vid denna temperaturskillnad",
        )

    k = (t_target - outdoor_temp) / delta_t

    if k <= 0:
        return MinThicknessResult(
            min_thickness_mm=0.0,
            dew_point=t_dew,
            target_temp=t_target,
            interface_temp=interface_temperature(indoor_temp, outdoor_temp, 0.0, open_cell_thickness_mm, foams),
            feasible=True,
            explanation="Måltemperaturen är lägre än utetemperaturen",
        )

    if k >= 1:
        return MinThicknessResult(
            min_thickness_mm=math.inf,
            dew_point=t_dew,
            target_temp=t_target,
            interface_temp=outdoor_temp,
            feasible=False,
            explanation="Omöjligt att nå måltemperaturen med given konfiguration",
        )

    a = exterior_resistance()
    b = interior_resistance(open_cell_thickness_mm, foams)
    r_closed = max(0.0, k / (1 - k) * b - a)
    thickness = resistance_to_thickness(r_closed, foams.closed_cell.lambda_)
    t_interface = outdoor_temp + (a + r_closed) / (a + r_closed + b) * delta_t

    return MinThicknessResult(
        min_thickness_mm=thickness,
        dew_point=t_dew,
        target_temp=t_target,
        interface_temp=t_interface,
        feasible=True,
        explanation=(
            f"Gränsskiktet hålls över daggpunkten ({t_dew:.1f}°C) med {safety_margin:.1f}°C "
            f"säkerhetsmarginal med minst {math.ceil(thickness)} mm slutencellsskum."
        ),
    )
