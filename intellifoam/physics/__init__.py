from intellifoam.physics.building_physics import (
    BBR_U_VALUES,
    CLIMATE_ZONES,
    BuildingPartInput,
    ClimateSettings,
    FoamSet,
    FoamType,
    PartType,
    PhysicsSettings,
    dew_point,
    min_closed_cell_thickness,
    saturation_vapor_pressure,
)
from intellifoam.physics.condensation import CondensationAnalysis, RiskLevel, analyze_condensation_risk
from intellifoam.physics.recommender import ConfigKind, FoamRecommendation, recommend_foam_configuration

__all__ = [
    "BBR_U_VALUES",
    "CLIMATE_ZONES",
    "BuildingPartInput",
    "ClimateSettings",
    "CondensationAnalysis",
    "ConfigKind",
    "FoamRecommendation",
    "FoamSet",
    "FoamType",
    "PartType",
    "PhysicsSettings",
    "RiskLevel",
    "analyze_condensation_risk",
    "dew_point",
    "min_closed_cell_thickness",
    "recommend_foam_configuration",
    "saturation_vapor_pressure",
]
