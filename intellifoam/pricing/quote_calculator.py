#!/usr/bin/env python3
"""
quote_calculator.py — Intellifoam Quote Calculator

Rolls per-part foam selections up into a priced quote: material kg and
cost per foam type, spray hours (with part-type multipliers), shared
setup / travel / foam-switching hours, labor distributed back to parts,
VAT, ROT deduction and the final payable amount.

Rules:
- Material cost = kg × cost per kg × (1 + margin %)
- Part-type multipliers adjust spray time only, never material
- One extra hour per flash-and-batt part for the foam-gun change
- Single-installer crews inflate spray hours by the crew factor
- VAT is 25 % on everything; ROT is 30 % of labor incl. VAT, capped per person

Usage:
    from intellifoam.pricing.quote_calculator import QuoteCalculator
    calc = QuoteCalculator(cost_variables)
    quote = calc.calculate_from_inputs(parts, climate, QuoteOptions(apply_rot_deduction=True))

    # driving distance looked up from customer_address when not given
    quote = await calc.calculate_from_inputs_async(parts, climate, QuoteOptions(customer_address="Storgatan 1, Gävle"))
"""

import logging
from dataclasses import dataclass, field, replace
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Awaitable, Callable, Mapping, Optional

from intellifoam.config import CrewSettings
from intellifoam.integrations.distance import DistanceResult, distance_to_customer
from intellifoam.physics.building_physics import (
    BuildingPartInput,
    ClimateSettings,
    FoamType,
    PartType,
    required_u_value,
    u_value,
)
from intellifoam.physics.condensation import (
    CondensationAnalysis,
    RiskLevel,
    analyze_condensation_risk,
    is_inner_wall,
)
from intellifoam.physics.recommender import (
    CONFIG_LABELS,
    ConfigKind,
    FoamRecommendation,
    recommend_foam_configuration,
)
from intellifoam.pricing.cost_variables import DEFAULT_PROJECT_MULTIPLIERS, CostVariables

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

VAT_RATE = 0.25
ROT_RATE = 0.30
ROT_MAX_PER_PERSON = 50_000.0           # kr per person and year
SWITCHING_HOURS_PER_PART = 1.0          # foam-gun change per flash-and-batt part


def _kr(value: float) -> int:
    """Round to whole kronor, half up."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _kr_floor(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_DOWN))


def _one_decimal(value: float) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


# ---------------------------------------------------------------------------
# Data Models
# ---------------------------------------------------------------------------

@dataclass
class RotCustomer:
    name: str
    share: float = 100.0                     # % of the deduction claimed by this person
    max_deduction: Optional[float] = None    # overrides the per-person cap

    def __post_init__(self):
        if not 0 < self.share <= 100:
            raise ValueError(f"ROT share for {self.name} must be in (0, 100], got {self.share}")


@dataclass
class QuoteOptions:
    has_three_phase: bool = True
    apply_rot_deduction: bool = False
    customer_address: str = ""
    distance_km: float = 0.0
    num_installers: Optional[int] = None     # None = crew default
    rot_customers: list[RotCustomer] = field(default_factory=list)
    # values kept from an earlier calculation win over recomputation
    preserved_travel_hours: Optional[float] = None
    preserved_travel_cost: Optional[float] = None


@dataclass
class PartSelection:
    """Chosen thicknesses for one part, either recommended or set by an admin."""
    part: BuildingPartInput
    closed_thickness_mm: float
    open_thickness_mm: float
    explanation: str = ""

    def __post_init__(self):
        if self.closed_thickness_mm < 0 or self.open_thickness_mm < 0:
            raise ValueError(f"Negative thickness for part {self.part.part_id}")
        if self.closed_thickness_mm + self.open_thickness_mm <= 0:
            raise ValueError(f"Part {self.part.part_id} has no foam")

    @property
    def config(self) -> ConfigKind:
        if self.closed_thickness_mm > 0 and self.open_thickness_mm > 0:
            return ConfigKind.FLASH_AND_BATT
        if self.open_thickness_mm > 0:
            return ConfigKind.OPEN_ONLY
        return ConfigKind.CLOSED_ONLY

    @classmethod
    def from_recommendation(cls, part: BuildingPartInput, rec: FoamRecommendation) -> "PartSelection":
        return cls(
            part=part,
            closed_thickness_mm=rec.closed_thickness_mm,
            open_thickness_mm=rec.open_thickness_mm,
            explanation=rec.explanation,
        )


@dataclass
class BuildingPartRecommendation:
    part_id: str
    part_name: str
    part_type: PartType
    area: float
    has_vapor_barrier: bool
    config: ConfigKind
    config_label: str
    closed_thickness_mm: float
    open_thickness_mm: float
    total_thickness_mm: float
    u_value: float
    required_u_value: Optional[float]       # None for inner walls
    meets_requirement: bool
    condensation_risk: RiskLevel
    condensation_analysis: Optional[CondensationAnalysis]
    closed_cell_kg: float
    open_cell_kg: float
    closed_cell_cost: int
    open_cell_cost: int
    material_cost: int
    spray_hours: float
    labor_cost: int = 0
    total_cost: int = 0
    explanation: str = ""
    # unrounded values used for the roll-up
    _material_raw: float = field(default=0.0, repr=False)
    _spray_raw: float = field(default=0.0, repr=False)


@dataclass
class CalculationTotals:
    total_area: float
    total_closed_cell_kg: float
    total_open_cell_kg: float
    material_cost_total: int
    labor_cost_total: int
    travel_cost: int
    generator_cost: int
    total_excl_vat: int
    vat: int
    total_incl_vat: int
    rot_deduction: int
    final_total: int
    spray_hours: float              # before crew adjustment
    adjusted_spray_hours: float     # after single-installer factor
    setup_hours: float
    travel_hours: float
    switching_hours: float
    total_hours: float
    num_installers: int
    distance_km: float = 0.0
    labor_cost_incl_vat: int = 0
    rot_cap: Optional[int] = None


@dataclass
class QuoteCalculation:
    parts: list[BuildingPartRecommendation]
    climate: ClimateSettings
    options: QuoteOptions
    totals: CalculationTotals
    warnings: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Driving Distance
# ---------------------------------------------------------------------------

DistanceLookup = Callable[[str], Awaitable[Optional[DistanceResult]]]


async def resolve_distance(options: QuoteOptions, lookup: Optional[DistanceLookup] = None) -> QuoteOptions:
    """
    Fill in distance_km from customer_address.

    A distance already set on the options wins. If the lookup fails the
    options come back unchanged and travel is priced at 0 km.
    """
    if options.distance_km or not options.customer_address:
        return options
    result = await (lookup or distance_to_customer)(options.customer_address)
    if result is None:
        logger.warning("No driving distance for %r, travel priced at 0 km", options.customer_address)
        return options
    logger.info("Driving distance to %r: %d km", options.customer_address, result.distance_km)
    return replace(options, distance_km=result.distance_km)


# ---------------------------------------------------------------------------
# Quote Calculator
# ---------------------------------------------------------------------------

class QuoteCalculator:
    """
    Intellifoam quote engine.

    calculate() is pure and synchronous: all inputs (cost variables,
    multipliers, crew and BBR settings) are passed in. Only
    calculate_from_inputs_async goes to the network, for the driving distance.
    """

    def __init__(
        self,
        cost_variables: Optional[CostVariables] = None,
        project_multipliers: Optional[Mapping[str, float]] = None,
        crew: Optional[CrewSettings] = None,
        u_values: Optional[Mapping[str, float]] = None,
        vat_rate: float = VAT_RATE,
        rot_rate: float = ROT_RATE,
        rot_max_per_person: float = ROT_MAX_PER_PERSON,
        switching_hours_per_part: float = SWITCHING_HOURS_PER_PART,
    ):
        self.cost_variables = cost_variables or CostVariables()
        self.project_multipliers = dict(
            project_multipliers if project_multipliers is not None else DEFAULT_PROJECT_MULTIPLIERS
        )
        self.crew = crew or CrewSettings()
        self.physics = self.cost_variables.physics(u_values)
        self.vat_rate = vat_rate
        self.rot_rate = rot_rate
        self.rot_max_per_person = rot_max_per_person
        self.switching_hours_per_part = switching_hours_per_part

    # ------------------------------------------------------------------
    # Public: Recommendation + Calculation
    # ------------------------------------------------------------------

    def recommend(self, part: BuildingPartInput, climate: ClimateSettings) -> FoamRecommendation:
        return recommend_foam_configuration(
            part.part_type,
            part.has_vapor_barrier,
            climate.indoor_temp,
            climate.outdoor_temp,
            climate.indoor_rh,
            target_thickness_mm=part.target_thickness_mm,
            safety_margin=self.physics.safety_margin,
            foams=self.physics.foams,
            u_values=self.physics.u_values,
            min_airtight_mm=self.physics.min_airtight_mm,
            flash_batt_min_open_mm=self.physics.flash_batt_min_open_mm,
        )

    def calculate_from_inputs(
        self,
        parts: list[BuildingPartInput],
        climate: ClimateSettings,
        options: Optional[QuoteOptions] = None,
    ) -> QuoteCalculation:
        """Recommend a configuration per part, then price the result."""
        selections = [PartSelection.from_recommendation(p, self.recommend(p, climate)) for p in parts]
        return self.calculate(selections, climate, options)

    async def calculate_from_inputs_async(
        self,
        parts: list[BuildingPartInput],
        climate: ClimateSettings,
        options: Optional[QuoteOptions] = None,
        lookup: Optional[DistanceLookup] = None,
    ) -> QuoteCalculation:
        """calculate_from_inputs, with the driving distance looked up from customer_address first."""
        options = options or QuoteOptions()
        resolved = await resolve_distance(options, lookup)
        quote = self.calculate_from_inputs(parts, climate, resolved)
        if options.customer_address and not options.distance_km and not resolved.distance_km:
            quote.warnings.append(
                f"Avstånd till {options.customer_address} kunde inte beräknas: ange körsträcka manuellt."
            )
        return quote

    def calculate(
        self,
        selections: list[PartSelection],
        climate: ClimateSettings,
        options: Optional[QuoteOptions] = None,
    ) -> QuoteCalculation:
        """
        Price a list of part selections.

        Args:
            selections: Chosen thicknesses per part (recalculation input)
            climate: Indoor/outdoor conditions used for condensation analysis
            options: Site and customer options

        Returns:
            QuoteCalculation with per-part results and totals
        """
        options = options or QuoteOptions()
        warnings: list[str] = []

        # Step 1: per-part material and spray time
        parts = [self._process_part(sel, climate) for sel in selections]
        material_raw = sum(p._material_raw for p in parts)
        spray_raw = sum(p._spray_raw for p in parts)

        # Step 2: crew adjustment
        num_installers = options.num_installers or self.crew.default_installers
        adjusted_spray = spray_raw
        if num_installers == 1 and self.crew.default_installers != 1:
            adjusted_spray = spray_raw * (1 + self.crew.single_installer_factor / 100)
            warnings.append(
                f"En installatör: sprutid ökad med {self.crew.single_installer_factor:.0f} %."
            )

        # Step 3: shared hours
        setup_hours = self.cost_variables.setup_hours
        travel_hours, travel_cost = self._travel(options)
        switching_hours = sum(
            self.switching_hours_per_part for p in parts if p.config == ConfigKind.FLASH_AND_BATT
        )
        total_hours = adjusted_spray + setup_hours + travel_hours + switching_hours
        labor_raw = total_hours * self.cost_variables.personnel_cost_per_hour

        # Step 4: distribute labor by share of spray hours
        for p in parts:
            share = p._spray_raw / spray_raw if spray_raw > 0 else 0.0
            p.labor_cost = _kr(share * labor_raw)
            p.total_cost = p.material_cost + p.labor_cost

        # Step 5: VAT
        generator_cost = 0.0 if options.has_three_phase else self.cost_variables.generator_cost
        total_excl_vat = _kr(material_raw + labor_raw + travel_cost + generator_cost)
        total_incl_vat = _kr(total_excl_vat * (1 + self.vat_rate))
        vat = total_incl_vat - total_excl_vat

        # Step 6: ROT
        labor_incl_vat = _kr(labor_raw * (1 + self.vat_rate))
        rot_deduction, rot_cap = 0, None
        if options.apply_rot_deduction:
            rot_deduction, rot_cap = self._rot_deduction(labor_incl_vat, options.rot_customers)
            if not options.rot_customers:
                warnings.append("ROT-uppgifter saknas: avdraget är begränsat till en persons tak.")

        non_compliant = [p.part_name or p.part_id for p in parts if not p.meets_requirement]
        if non_compliant:
            warnings.append(f"Uppfyller inte BBR:s U-värdeskrav: {', '.join(non_compliant)}")
        high_risk = [p.part_name or p.part_id for p in parts if p.condensation_risk == RiskLevel.HIGH]
        if high_risk:
            warnings.append(f"Hög kondensationsrisk: {', '.join(high_risk)}")

        totals = CalculationTotals(
            total_area=sum(p.area for p in parts),
            total_closed_cell_kg=_one_decimal(sum(p.closed_cell_kg for p in parts)),
            total_open_cell_kg=_one_decimal(sum(p.open_cell_kg for p in parts)),
            material_cost_total=_kr(material_raw),
            labor_cost_total=_kr(labor_raw),
            travel_cost=_kr(travel_cost),
            generator_cost=_kr(generator_cost),
            total_excl_vat=total_excl_vat,
            vat=vat,
            total_incl_vat=total_incl_vat,
            rot_deduction=rot_deduction,
            final_total=total_incl_vat - rot_deduction,
            spray_hours=_one_decimal(spray_raw),
            adjusted_spray_hours=_one_decimal(adjusted_spray),
            setup_hours=setup_hours,
            travel_hours=_one_decimal(travel_hours),
            switching_hours=switching_hours,
            total_hours=_one_decimal(total_hours),
            num_installers=num_installers,
            distance_km=options.distance_km,
            labor_cost_incl_vat=labor_incl_vat,
            rot_cap=rot_cap,
        )

        logger.info(
            "Quote calculated: parts=%d, area=%.1f m², excl=%d kr, incl=%d kr, rot=%d kr, final=%d kr",
            len(parts), totals.total_area, total_excl_vat, total_incl_vat, rot_deduction, totals.final_total,
        )
        return QuoteCalculation(parts=parts, climate=climate, options=options, totals=totals, warnings=warnings)

    # ------------------------------------------------------------------
    # Private: Part Processing
    # ------------------------------------------------------------------

    def _process_part(self, sel: PartSelection, climate: ClimateSettings) -> BuildingPartRecommendation:
        part = sel.part
        closed_kg, closed_cost, closed_hours = self._foam_layer(part.area, sel.closed_thickness_mm, FoamType.CLOSED_CELL)
        open_kg, open_cost, open_hours = self._foam_layer(part.area, sel.open_thickness_mm, FoamType.OPEN_CELL)

        multiplier = self.project_multipliers.get(part.part_type.value, 1.0)
        spray_hours = (closed_hours + open_hours) * multiplier
        material = closed_cost + open_cost

        foams = self.physics.foams
        actual_u = u_value(sel.closed_thickness_mm, sel.open_thickness_mm, foams)
        required_u = required_u_value(part.part_type, self.physics.u_values)
        analysis = self._analyze(sel, climate)

        return BuildingPartRecommendation(
            part_id=part.part_id,
            part_name=part.name,
            part_type=part.part_type,
            area=part.area,
            has_vapor_barrier=part.has_vapor_barrier,
            config=sel.config,
            config_label=CONFIG_LABELS[sel.config],
            closed_thickness_mm=sel.closed_thickness_mm,
            open_thickness_mm=sel.open_thickness_mm,
            total_thickness_mm=sel.closed_thickness_mm + sel.open_thickness_mm,
            u_value=round(actual_u, 3),
            required_u_value=required_u,
            meets_requirement=required_u is None or actual_u <= required_u,
            condensation_risk=analysis.risk if analysis else RiskLevel.LOW,
            condensation_analysis=analysis,
            closed_cell_kg=_one_decimal(closed_kg),
            open_cell_kg=_one_decimal(open_kg),
            closed_cell_cost=_kr(closed_cost),
            open_cell_cost=_kr(open_cost),
            material_cost=_kr(material),
            spray_hours=_one_decimal(spray_hours),
            explanation=sel.explanation,
            _material_raw=material,
            _spray_raw=spray_hours,
        )

    def _foam_layer(self, area: float, thickness_mm: float, foam_type: FoamType) -> tuple[float, float, float]:
        """(kg, cost incl. margin, spray hours) for one foam layer."""
        if thickness_mm <= 0:
            return 0.0, 0.0, 0.0
        inputs = self.cost_variables.foam(foam_type)
        volume = area * thickness_mm / 1000
        kg = volume * inputs.density
        cost = kg * inputs.material_cost_per_kg * (1 + inputs.margin_pct / 100)
        return kg, cost, volume * inputs.spray_time_per_m3

    def _analyze(self, sel: PartSelection, climate: ClimateSettings) -> Optional[CondensationAnalysis]:
        if is_inner_wall(sel.part.part_type, climate.indoor_temp, climate.outdoor_temp):
            return None
        common = dict(
            indoor_temp=climate.indoor_temp,
            outdoor_temp=climate.outdoor_temp,
            indoor_rh=climate.indoor_rh,
            has_vapor_barrier=sel.part.has_vapor_barrier,
            safety_margin=self.physics.safety_margin,
            foams=self.physics.foams,
            min_airtight_mm=self.physics.min_airtight_mm,
            open_cell_thin_mm=self.physics.open_cell_thin_mm,
        )
        if sel.config == ConfigKind.OPEN_ONLY:
            return analyze_condensation_risk(
                insulation_thickness_mm=sel.open_thickness_mm, foam_type=FoamType.OPEN_CELL, **common
            )
        return analyze_condensation_risk(
            insulation_thickness_mm=sel.closed_thickness_mm,
            foam_type=FoamType.CLOSED_CELL,
            open_cell_thickness_mm=sel.open_thickness_mm,
            **common,
        )

    # ------------------------------------------------------------------
    # Private: Travel & ROT
    # ------------------------------------------------------------------

    def _travel(self, options: QuoteOptions) -> tuple[float, float]:
        hours, cost = self.cost_variables.travel(options.distance_km)
        if options.preserved_travel_hours is not None:
            hours = options.preserved_travel_hours
        if options.preserved_travel_cost is not None:
            cost = options.preserved_travel_cost
        return hours, cost

    def _rot_deduction(self, labor_incl_vat: int, customers: list[RotCustomer]) -> tuple[int, int]:
        """(deduction, cap). Without customer info the cap is one person's maximum."""
        raw = _kr_floor(Decimal(labor_incl_vat) * Decimal(str(self.rot_rate)))
        if customers:
            total_share = sum(Decimal(str(c.share)) for c in customers)
            if total_share > 100:
                raise ValueError(f"ROT shares add up to {total_share}%, more than 100%")
            cap = sum(
                _kr_floor(Decimal(str(c.max_deduction if c.max_deduction is not None else self.rot_max_per_person))
                          * Decimal(str(c.share)) / 100)
                for c in customers
            )
        else:
            cap = _kr_floor(self.rot_max_per_person)
        return min(raw, cap), cap

    # ------------------------------------------------------------------
    # Public: Formatting
    # ------------------------------------------------------------------

    def format_summary_text(self, quote: QuoteCalculation, include_parts: bool = True) -> str:
        """Plain-text Swedish price summary for the offer mail."""
        t = quote.totals
        lines = []

        def kr(val: float) -> str:
            return f"{val:>12,.0f} kr".replace(",", " ")

        lines.append("PRISSAMMANSTÄLLNING")
        lines.append("=" * 50)

        if include_parts:
            lines.append("\nByggdelar:")
            for p in quote.parts:
                label = p.part_name or p.part_id
                lines.append(
                    f"  {label:<20} {p.area:>6.1f} m²  {p.config_label:<18} "
                    f"{p.closed_thickness_mm:>4.0f}+{p.open_thickness_mm:<4.0f}mm {kr(p.total_cost)}"
                )

        lines.append("")
        lines.append(f"  Material:                    {kr(t.material_cost_total)}")
        lines.append(f"  Arbete ({t.total_hours:.1f} h):{'':<12}{kr(t.labor_cost_total)}")
        if t.travel_cost:
            lines.append(f"  Transport ({t.distance_km:.0f} km):{'':<9}{kr(t.travel_cost)}")
        if t.generator_cost:
            lines.append(f"  Generator:                   {kr(t.generator_cost)}")
        lines.append("-" * 50)
        lines.append(f"  Summa exkl. moms:            {kr(t.total_excl_vat)}")
        lines.append(f"  Moms ({self.vat_rate * 100:.0f} %):                 {kr(t.vat)}")
        lines.append(f"  Summa inkl. moms:            {kr(t.total_incl_vat)}")
        if t.rot_deduction:
            lines.append(f"  ROT-avdrag:                  {kr(-t.rot_deduction)}")
        lines.append(f"  ATT BETALA:                  {kr(t.final_total)}")

        if quote.warnings:
            lines.append("\nObservera:")
            for w in quote.warnings:
                lines.append(f"  ⚠️  {w}")

        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Module-level convenience functions
# ---------------------------------------------------------------------------

def calculator_from_store(store) -> QuoteCalculator:
    """
    Build a QuoteCalculator from persisted settings.

    Args:
        store: intellifoam.storage.FoamStore (or anything with the same loaders)
    """
    return QuoteCalculator(
        cost_variables=CostVariables(store.load_cost_variables()),
        project_multipliers=store.load_project_multipliers() or None,
        crew=CrewSettings.from_dict(store.get_setting("crew_settings")),
        u_values=store.get_setting("bbr_u_values"),
    )


# ---------------------------------------------------------------------------
# Demo
# ---------------------------------------------------------------------------

def _demo() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    calc = QuoteCalculator()
    climate = ClimateSettings.for_zone("Mellersta Sverige (Zon II)")
    parts = [
        BuildingPartInput("p1", PartType.YTTERVAGG, 85.0, target_thickness_mm=150, name="Fasad"),
        BuildingPartInput("p2", PartType.TAK, 60.0, has_vapor_barrier=True, name="Vind"),
        BuildingPartInput("p3", PartType.INNERVAGG, 20.0, name="Mellanvägg"),
    ]
    quote = calc.calculate_from_inputs(
        parts, climate, QuoteOptions(has_three_phase=False, apply_rot_deduction=True, distance_km=42)
    )
    print(calc.format_summary_text(quote))


if __name__ == "__main__":
    _demo()
