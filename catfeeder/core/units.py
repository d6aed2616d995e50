"""Unit conversion utilities.

Weights are stored in kilograms and portions in grams; everything else is a
display unit. Food calorie density is stored as kcal per 100 g.
"""

from enum import Enum
from typing import Optional

from catfeeder.core.exceptions import InvalidInputError


class WeightUnit(str, Enum):
    KG = "kg"
    LB = "lb"


class PortionUnit(str, Enum):
    GRAM = "g"
    CUP = "cup"


class CalorieUnit(str, Enum):
    KCAL_PER_100G = "kcal/100g"
    KCAL_PER_CUP = "kcal/cup"
    KCAL_ME_PER_KG = "kcal ME/kg"


# Conversion constants
KG_TO_LB = 2.20462

# Approximate cup weights; kept fixed so stored portions stay comparable
DRY_GRAMS_PER_CUP = 100
WET_GRAMS_PER_CUP = 240


def kg_to_lb(kg: float) -> float:
    """Convert kilograms to pounds."""
    return kg * KG_TO_LB


def lb_to_kg(lb: float) -> float:
    """Convert pounds to kilograms."""
    return lb / KG_TO_LB


def convert_weight(value: float, from_unit: WeightUnit, to_unit: WeightUnit) -> float:
    """Convert weight between units."""
    if from_unit == to_unit:
        return value
    if from_unit == WeightUnit.KG and to_unit == WeightUnit.LB:
        return kg_to_lb(value)
    if from_unit == WeightUnit.LB and to_unit == WeightUnit.KG:
        return lb_to_kg(value)
    return value


def format_weight(weight_kg: Optional[float], unit: WeightUnit = WeightUnit.KG) -> str:
    """Format a stored (kg) weight in the preferred display unit."""
    if weight_kg is None:
        return "-"
    unit = WeightUnit(unit)
    return f"{convert_weight(weight_kg, WeightUnit.KG, unit):.2f} {unit.value}"


def grams_per_cup(is_dry_food: bool = True) -> int:
    return DRY_GRAMS_PER_CUP if is_dry_food else WET_GRAMS_PER_CUP


def grams_to_cups(grams: float, is_dry_food: bool = True) -> float:
    return grams / grams_per_cup(is_dry_food)


def cups_to_grams(cups: float, is_dry_food: bool = True) -> float:
    return cups * grams_per_cup(is_dry_food)


def convert_portion(
    value: float,
    from_unit: PortionUnit,
    to_unit: PortionUnit,
    is_dry_food: bool = True
) -> float:
    """Convert a portion between grams and cups."""
    if from_unit == to_unit:
        return value
    if from_unit == PortionUnit.GRAM and to_unit == PortionUnit.CUP:
        return grams_to_cups(value, is_dry_food)
    if from_unit == PortionUnit.CUP and to_unit == PortionUnit.GRAM:
        return cups_to_grams(value, is_dry_food)
    return value


def to_kcal_per_100g(value: float, unit: CalorieUnit, food_type: str = "dry") -> float:
    """
    Normalize a label calorie value to kcal per 100 g.

    Only runs when a food is created; the result is what gets stored.

    Args:
        value: Calorie value as printed on the label
        unit: Unit the value is expressed in
        food_type: Food type; "wet" foods use the wet cup weight

    Returns:
        Calorie density in kcal/100g
    """
    if value <= 0:
        raise InvalidInputError("Calorie value must be positive", field="calorie_value", value=value)

    unit = CalorieUnit(unit)
    if unit == CalorieUnit.KCAL_PER_CUP:
        return (value / grams_per_cup(food_type != "wet")) * 100
    if unit == CalorieUnit.KCAL_ME_PER_KG:
        return value / 10
    return value
