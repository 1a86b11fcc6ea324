"""
recommender.py — Intellifoam Foam Configuration Recommender

Chooses between pure open-cell, pure closed-cell and flash-and-batt
(thin closed-cell layer backed by open-cell foam) for one building part.

Decision order:
  1. Inner wall (no gradient)        -> open-cell, target or 100 mm
  2. Existing vapour barrier         -> open-cell, target or BBR minimum
  3. Outer wall / roof, no barrier   -> search the smallest safe closed-cell
                                        layer; flash-and-batt when the open-cell
                                        remainder is thick enough, else closed-cell
  4. Anything else (floor, no barrier) -> closed-cell, target or BBR minimum
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from intellifoam.physics.building_physics import (
    BBR_U_VALUES,
    DEFAULT_FLASH_BATT_MIN_OPEN_MM,
    DEFAULT_MIN_AIRTIGHT_MM,
    DEFAULT_SAFETY_MARGIN,
    FoamSet,
    MinThicknessResult,
    PartType,
    code_minimum_thickness,
    min_closed_cell_thickness,
    u_value,
)
from intellifoam.physics.condensation import is_inner_wall

logger = logging.getLogger(__name__)

INNER_WALL_DEFAULT_MM = 100.0
SEARCH_STEP_MM = 5.0


class ConfigKind(str, Enum):
    CLOSED_ONLY    = "closed_only"
    OPEN_ONLY      = "open_only"
    FLASH_AND_BATT = "flash_and_batt"


CONFIG_LABELS = {
    ConfigKind.CLOSED_ONLY:    "Endast slutencell",
    ConfigKind.OPEN_ONLY:      "Endast öppencell",
    ConfigKind.FLASH_AND_BATT: "Flash & Batt",
}


@dataclass
class FoamRecommendation:
    config: ConfigKind
    closed_thickness_mm: float
    open_thickness_mm: float
    total_thickness_mm: float
    u_value: float
    explanation: str
    interface: Optional[MinThicknessResult] = None

    def __post_init__(self):
        closed, open_ = self.closed_thickness_mm > 0, self.open_thickness_mm > 0
        valid = {
            ConfigKind.FLASH_AND_BATT: closed and open_,
            ConfigKind.CLOSED_ONLY:    closed and not open_,
            ConfigKind.OPEN_ONLY:      open_ and not closed,
        }[self.config]
        if not valid:
            raise ValueError(
                f"{self.config.value} does not match thicknesses "
                f"closed={self.closed_thickness_mm} open={self.open_thickness_mm}"
            )


def find_min_closed_split(
    target_total_mm: float,
    indoor_temp: float,
    outdoor_temp: float,
    indoor_rh: float,
    safety_margin: float = DEFAULT_SAFETY_MARGIN,
    foams: Optional[FoamSet] = None,
    min_airtight_mm: float = DEFAULT_MIN_AIRTIGHT_MM,
    step_mm: float = SEARCH_STEP_MM,
) -> tuple[Optional[float], Optional[MinThicknessResult]]:
    """
    Smallest closed-cell thickness c (from the air-tightness floor, in step_mm
    increments, up to target_total_mm) that is safe with target_total_mm - c
    of open-cell foam behind it. Returns (None, None) when no split works.
    """
    closed = min_airtight_mm
    while closed <= target_total_mm:
        needed = min_closed_cell_thickness(
            indoor_temp, indoor_rh, outdoor_temp,
            open_cell_thickness_mm=target_total_mm - closed,
            safety_margin=safety_margin,
            foams=foams,
        )
        if needed.feasible and closed >= needed.min_thickness_mm:
            return closed, needed
        closed += step_mm
    return None, None


def recommend_foam_configuration(
    part_type: PartType | str,
    has_vapor_barrier: bool,
    indoor_temp: float,
    outdoor_temp: float,
    indoor_rh: float,
    target_thickness_mm: Optional[float] = None,
    safety_margin: float = DEFAULT_SAFETY_MARGIN,
    *,
    foams: Optional[FoamSet] = None,
    u_values: Optional[Mapping[str, float]] = None,
    min_airtight_mm: float = DEFAULT_MIN_AIRTIGHT_MM,
    flash_batt_min_open_mm: float = DEFAULT_FLASH_BATT_MIN_OPEN_MM,
    step_mm: float = SEARCH_STEP_MM,
) -> FoamRecommendation:
    """
    Recommend a foam configuration for one building part.

    Returns:
        FoamRecommendation with thicknesses in mm and a Swedish explanation.
    """
    part_type = PartType(part_type)
    foams = foams or FoamSet()
    u_values = u_values if u_values is not None else BBR_U_VALUES

    if is_inner_wall(part_type, indoor_temp, outdoor_temp):
        thickness = target_thickness_mm or INNER_WALL_DEFAULT_MM
        return _open_only(
            thickness, foams,
            "För innerväggar rekommenderas öppencellsskum för ljuddämpning och låg kostnad.",
        )

    if has_vapor_barrier:
        thickness = target_thickness_mm or code_minimum_thickness(part_type, foams.open_cell.lambda_, u_values)
        return _open_only(
            thickness, foams,
            f"Befintlig ångspärr hindrar fukttransporten, så enbart öppencellsskum ({thickness:.0f} mm) "
            f"räcker. Uppfyller BBR-kravet U ≤ {u_values[part_type.value]} W/m²K.",
        )

    closed_min_code = code_minimum_thickness(part_type, foams.closed_cell.lambda_, u_values)
    target_total = target_thickness_mm or closed_min_code

    if part_type not in (PartType.YTTERVAGG, PartType.TAK):
        return _closed_only(
            target_total, foams,
            "Utan ångspärr rekommenderas slutencellsskum, som är både isolering och ångspärr.",
        )

    closed, needed = find_min_closed_split(
        target_total, indoor_temp, outdoor_temp, indoor_rh,
        safety_margin=safety_margin, foams=foams,
        min_airtight_mm=min_airtight_mm, step_mm=step_mm,
    )
    remaining_open = target_total - closed if closed is not None else 0.0

    if closed is not None and remaining_open >= flash_batt_min_open_mm:
        margin = needed.interface_temp - needed.dew_point
        logger.debug(
            "flash_and_batt %s: %.0f mm closed + %.0f mm open", part_type.value, closed, remaining_open
        )
        return FoamRecommendation(
            config=ConfigKind.FLASH_AND_BATT,
            closed_thickness_mm=closed,
            open_thickness_mm=remaining_open,
            total_thickness_mm=target_total,
            u_value=u_value(closed, remaining_open, foams),
            explanation=(
                f"Flash-and-batt ({closed:.0f} mm slutencell + {remaining_open:.0f} mm öppencell = "
                f"{target_total:.0f} mm): slutencellsskiktet mot utsidan är ångbroms och lufttätning och "
                f"håller gränsskiktet vid {needed.interface_temp:.1f}°C, {margin:.1f}°C över daggpunkten "
                f"({needed.dew_point:.1f}°C). Öppencellsskummet på insidan ger billig isolering tack vare "
                f"lägre densitet ({foams.open_cell.density:.0f} kg/m³ mot {foams.closed_cell.density:.0f} kg/m³)."
            ),
            interface=needed,
        )

    if closed is None:
        reason = "ingen uppdelning med öppencell klarar daggpunktskravet"
    else:
        reason = (
            f"flash-and-batt skulle kräva {closed:.0f} mm slutencell och lämna bara "
            f"{remaining_open:.0f} mm öppencell (<{flash_batt_min_open_mm:.0f} mm), vilket inte "
            f"motiverar extra arbetstid för växlingen"
        )
    logger.debug("closed_only %s: %s", part_type.value, reason)
    return _closed_only(
        target_total, foams,
        f"Utan ångspärr krävs slutencellsskum. Vid {target_total:.0f} mm total tjocklek {reason}. "
        f"Rent slutencellsskum ({target_total:.0f} mm) är därför mest praktiskt.",
    )


def _open_only(thickness: float, foams: FoamSet, explanation: str) -> FoamRecommendation:
    return FoamRecommendation(
        config=ConfigKind.OPEN_ONLY,
        closed_thickness_mm=0.0,
        open_thickness_mm=thickness,
        total_thickness_mm=thickness,
        u_value=u_value(0.0, thickness, foams),
        explanation=explanation,
    )


def _closed_only(thickness: float, foams: FoamSet, explanation: str) -> FoamRecommendation:
    return FoamRecommendation(
        config=ConfigKind.CLOSED_ONLY,
        closed_thickness_mm=thickness,
        open_thickness_mm=0.0,
        total_thickness_mm=thickness,
        u_value=u_value(thickness, 0.0, foams),
        explanation=explanation,
    )
