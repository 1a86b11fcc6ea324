"""
condensation.py — Intellifoam Condensation Risk Analyzer

Classifies the condensation risk of one foam layer given the indoor and
outdoor climate. Closed-cell foam is judged on temperature at its inside
face (plus an air-tightness floor); open-cell foam is judged on whether a
separate vapour barrier exists.

Inner walls (no temperature gradient) are not analysed; callers check
is_inner_wall() first and store no analysis for them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from intellifoam.physics.building_physics import (
    DEFAULT_MIN_AIRTIGHT_MM,
    DEFAULT_OPEN_CELL_THIN_MM,
    DEFAULT_SAFETY_MARGIN,
    FoamSet,
    FoamType,
    PartType,
    dew_point,
    interface_temperature,
    min_closed_cell_thickness,
)


class RiskLevel(str, Enum):
    LOW     = "low"
    MEDIUM  = "medium"
    HIGH    = "high"
    UNKNOWN = "unknown"


@dataclass
class CondensationAnalysis:
    risk: RiskLevel
    dew_point_inside: float             # °C
    interface_temp: float               # °C, closed-cell inside face or open-cell outside face
    safety_margin_actual: float         # interface_temp - dew_point_inside
    explanation: str
    recommendation: str = ""
    critical_depth_mm: Optional[float] = None
    required_thickness_mm: Optional[float] = None


def is_inner_wall(part_type: PartType | str, indoor_temp: float, outdoor_temp: float) -> bool:
    return PartType(part_type) == PartType.INNERVAGG or indoor_temp == outdoor_temp


def analyze_condensation_risk(
    indoor_temp: float,
    outdoor_temp: float,
    indoor_rh: float,
    insulation_thickness_mm: float,
    foam_type: FoamType | str,
    has_vapor_barrier: bool,
    safety_margin: float = DEFAULT_SAFETY_MARGIN,
    *,
    open_cell_thickness_mm: float = 0.0,
    foams: Optional[FoamSet] = None,
    min_airtight_mm: float = DEFAULT_MIN_AIRTIGHT_MM,
    open_cell_thin_mm: float = DEFAULT_OPEN_CELL_THIN_MM,
) -> CondensationAnalysis:
    """
    Analyze condensation risk for a single foam layer.

    Args:
        insulation_thickness_mm: Thickness of the analysed layer.
        foam_type: closed_cell or open_cell.
        open_cell_thickness_mm: Open-cell foam behind a closed-cell layer
            (flash-and-batt). Ignored for open_cell analyses.

    Returns:
        CondensationAnalysis. For closed-cell foam, LOW guarantees
        safety_margin_actual >= safety_margin.
    """
    foams = foams or FoamSet()
    foam_type = FoamType(foam_type)
    t_dew = dew_point(indoor_temp, indoor_rh)

    if foam_type == FoamType.CLOSED_CELL:
        return _analyze_closed_cell(
            indoor_temp, outdoor_temp, indoor_rh, insulation_thickness_mm,
            safety_margin, open_cell_thickness_mm, foams, min_airtight_mm, t_dew,
        )
    return _analyze_open_cell(
        indoor_temp, outdoor_temp, insulation_thickness_mm, has_vapor_barrier,
        foams, open_cell_thin_mm, t_dew,
    )


def _analyze_closed_cell(
    indoor_temp: float,
    outdoor_temp: float,
    indoor_rh: float,
    thickness: float,
    safety_margin: float,
    open_backing: float,
    foams: FoamSet,
    min_airtight_mm: float,
    t_dew: float,
) -> CondensationAnalysis:
    required = min_closed_cell_thickness(
        indoor_temp, indoor_rh, outdoor_temp,
        open_cell_thickness_mm=open_backing,
        safety_margin=safety_margin,
        foams=foams,
    )
    surface_temp = interface_temperature(indoor_temp, outdoor_temp, thickness, open_backing, foams)
    margin = surface_temp - t_dew
    required_mm = required.min_thickness_mm if required.feasible else None

    if thickness < min_airtight_mm:
        return CondensationAnalysis(
            risk=RiskLevel.HIGH,
            dew_point_inside=t_dew,
            interface_temp=surface_temp,
            safety_margin_actual=margin,
            recommendation=f"Öka tjockleken till minst {min_airtight_mm:.0f} mm slutencellsskum",
            explanation=(
                f"VARNING: {thickness:.0f} mm slutencellsskum räcker inte för pålitlig lufttätning. "
                f"Minst {min_airtight_mm:.0f} mm är ett fast golv som gäller oberoende av "
                f"daggpunktsberäkningen, eftersom fukten måste stoppas innan den når kalla ytor."
            ),
            critical_depth_mm=thickness,
            required_thickness_mm=required_mm,
        )

    if margin < safety_margin:
        if required.feasible:
            target_text = f"Öka tjockleken till minst {math.ceil(required.min_thickness_mm)} mm"
            shortfall = f"Det saknas {max(0.0, required.min_thickness_mm - thickness):.0f} mm. "
        else:
            target_text = "Välj annan konfiguration eller lägg till ångspärr"
            shortfall = ""
        return CondensationAnalysis(
            risk=RiskLevel.HIGH,
            dew_point_inside=t_dew,
            interface_temp=surface_temp,
            safety_margin_actual=margin,
            recommendation=target_text,
            explanation=(
                f"VARNING: Med {thickness:.0f} mm blir ytterytans temperatur {surface_temp:.1f}°C, "
                f"för nära daggpunkten ({t_dew:.1f}°C). Marginalen är {margin:.1f}°C men ska vara "
                f"minst {safety_margin:.1f}°C. {shortfall}{required.explanation}"
            ),
            critical_depth_mm=thickness,
            required_thickness_mm=required_mm,
        )

    return CondensationAnalysis(
        risk=RiskLevel.LOW,
        dew_point_inside=t_dew,
        interface_temp=surface_temp,
        safety_margin_actual=margin,
        recommendation="Slutencellsskum är en utmärkt lösning",
        explanation=(
            f"Slutencellsskum isolerar och fungerar som ångspärr (sd-värde ~{foams.closed_cell.sd_value:.0f} m). "
            f"Med {thickness:.0f} mm hålls ytterytan vid {surface_temp:.1f}°C, "
            f"{margin:.1f}°C över daggpunkten ({t_dew:.1f}°C)."
        ),
        required_thickness_mm=required_mm,
    )


def _analyze_open_cell(
    indoor_temp: float,
    outdoor_temp: float,
    thickness: float,
    has_vapor_barrier: bool,
    foams: FoamSet,
    open_cell_thin_mm: float,
    t_dew: float,
) -> CondensationAnalysis:
    # cold side of the open-cell layer
    surface_temp = interface_temperature(indoor_temp, outdoor_temp, 0.0, thickness, foams)
    margin = surface_temp - t_dew

    if not has_vapor_barrier:
        return CondensationAnalysis(
            risk=RiskLevel.HIGH,
            dew_point_inside=t_dew,
            interface_temp=surface_temp,
            safety_margin_actual=margin,
            recommendation="Använd slutencellsskum eller lägg till ångspärr",
            explanation=(
                f"VARNING: Utan ångspärr når fukt från inomhusluften (daggpunkt {t_dew:.1f}°C) kalla ytor "
                f"via diffusion och luftläckage. Öppencellsskum (sd-värde ~{foams.open_cell.sd_value} m) "
                f"stoppar inte fukttransporten, oavsett tjocklek."
            ),
            critical_depth_mm=0.0,
        )

    if thickness < open_cell_thin_mm:
        return CondensationAnalysis(
            risk=RiskLevel.MEDIUM,
            dew_point_inside=t_dew,
            interface_temp=surface_temp,
            safety_margin_actual=margin,
            recommendation="Öka tjockleken eller överväg flash-and-batt",
            explanation=(
                f"Ångspärren kontrollerar fukttransporten, men {thickness:.0f} mm öppencellsskum är tunt. "
                f"Mer isolering eller flash-and-batt ger bättre marginal."
            ),
        )

    return CondensationAnalysis(
        risk=RiskLevel.LOW,
        dew_point_inside=t_dew,
        interface_temp=surface_temp,
        safety_margin_actual=margin,
        recommendation="Öppencellsskum med ångspärr är godkänt",
        explanation=(
            "Med korrekt monterad ångspärr på varm sida kan öppencellsskum användas säkert. "
            "Tjockleken är tillräcklig."
        ),
    )
