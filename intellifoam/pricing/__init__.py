from intellifoam.pricing.cost_variables import CostVariables
from intellifoam.pricing.quote_calculator import QuoteCalculation, QuoteCalculator, QuoteOptions
from intellifoam.pricing.slot_calculator import calculate_slot

__all__ = ["CostVariables", "QuoteCalculation", "QuoteCalculator", "QuoteOptions", "calculate_slot"]
