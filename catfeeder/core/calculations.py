"""
Core math engine for cat feeding plan calculations.

RER (Resting Energy Requirement): 70 × (weight_kg ^ 0.75)
MER (Maintenance Energy Requirement): RER × activity factor
Target calories: MER × weight goal adjustment
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from catfeeder.core.exceptions import InvalidInputError
from catfeeder.core.units import WeightUnit, lb_to_kg


class ActivityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class WeightGoal(str, Enum):
    MAINTAIN = "maintain"
    LOSE = "lose"
    GAIN = "gain"
    CUSTOM = "custom"


class BodyCondition(str, Enum):
    VERY_UNDERWEIGHT = "very-underweight"
    UNDERWEIGHT = "underweight"
    IDEAL = "ideal"
    OVERWEIGHT = "overweight"
    OBESE = "obese"


class TargetAchievement(str, Enum):
    REACHED = "reached"
    CLOSE = "close"
    NONE = "none"


# Activity factors for MER, by activity level and neuter status
ACTIVITY_FACTORS = {
    ActivityLevel.LOW: {"neutered": 1.2, "intact": 1.4},
    ActivityLevel.MEDIUM: {"neutered": 1.4, "intact": 1.6},
    ActivityLevel.HIGH: {"neutered": 1.6, "intact": 2.0},
}

GOAL_ADJUSTMENT_FACTORS = {
    WeightGoal.MAINTAIN: 1.0,
    WeightGoal.LOSE: 0.8,
    WeightGoal.GAIN: 1.2,
}

CUSTOM_FACTOR_MIN = 0.5
CUSTOM_FACTOR_MAX = 1.5

# Share of daily calories that may come from treats
TREAT_ALLOWANCE_LOSE = 0.05
TREAT_ALLOWANCE_DEFAULT = 0.10

# Average adult cat weight (3.6-4.5kg); no breed-specific baselines yet
AVERAGE_CAT_WEIGHT_KG = 4.0

# Target weight tolerance bands
TARGET_REACHED_KG = 0.1
TARGET_CLOSE_KG = 0.9
TARGET_CLOSE_LB = 2.0

BODY_CONDITION_LABELS = {
    BodyCondition.VERY_UNDERWEIGHT: "Very Underweight",
    BodyCondition.UNDERWEIGHT: "Underweight",
    BodyCondition.IDEAL: "Healthy Weight",
    BodyCondition.OVERWEIGHT: "Overweight",
    BodyCondition.OBESE: "Obese",
}

BODY_CONDITION_DESCRIPTIONS = {
    BodyCondition.VERY_UNDERWEIGHT: "Zero body fat; ribs and spine visible from a distance",
    BodyCondition.UNDERWEIGHT: "Ribs are visible; waist is pronounced",
    BodyCondition.IDEAL: "Ribs can be felt when petting; clearly defined waist is seen from above",
    BodyCondition.OVERWEIGHT: "Ribs only felt when applying pressure; belly pooch visible when viewed from the side",
    BodyCondition.OBESE: "Ribs can't be felt; belly is extended",
}

# Weight goal suggested by the body condition advice
SUGGESTED_GOALS = {
    BodyCondition.VERY_UNDERWEIGHT: WeightGoal.GAIN,
    BodyCondition.UNDERWEIGHT: WeightGoal.GAIN,
    BodyCondition.IDEAL: WeightGoal.MAINTAIN,
    BodyCondition.OVERWEIGHT: WeightGoal.LOSE,
    BodyCondition.OBESE: WeightGoal.LOSE,
}


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves rounding up.

    Unlike round(), shifting the input by an integer shifts the result by the
    same integer, which keeps complement splits exact.
    """
    return int(math.floor(value + 0.5))


def _require_positive(value: float, field: str) -> float:
    if value is None or not math.isfinite(value) or value <= 0:
        raise InvalidInputError(f"{field} must be a positive number", field=field, value=value)
    return value


def calculate_rer(weight_kg: float) -> float:
    """
    Calculate Resting Energy Requirement (RER).

    Formula: RER = 70 × (weight_kg ^ 0.75)

    Args:
        weight_kg: Cat's weight in kilograms

    Returns:
        RER in kcal/day
    """
    _require_positive(weight_kg, "weight_kg")
    return 70 * (weight_kg ** 0.75)


def get_activity_factor(activity_level: ActivityLevel, is_neutered: bool) -> float:
    """
    Look up the MER multiplier for an activity level and neuter status.

    Args:
        activity_level: low, medium or high
        is_neutered: Whether the cat is neutered/spayed

    Returns:
        Activity factor multiplier
    """
    try:
        factors = ACTIVITY_FACTORS[ActivityLevel(activity_level)]
    except ValueError:
        raise InvalidInputError(
            f"Unknown activity level: {activity_level}",
            field="activity_level",
            value=activity_level,
        )
    return factors["neutered"] if is_neutered else factors["intact"]


def calculate_mer(weight_kg: float, activity_level: ActivityLevel, is_neutered: bool) -> float:
    """
    Calculate Maintenance Energy Requirement (MER).

    Formula: MER = RER × activity factor
    """
    return calculate_rer(weight_kg) * get_activity_factor(activity_level, is_neutered)


def maintenance_energy(profile) -> float:
    """MER for a cat profile at its current weight."""
    return calculate_mer(profile.current_weight_kg, profile.activity_level, profile.is_neutered)


def validate_custom_factor(custom_factor: float) -> float:
    if (
        custom_factor is None
        or not math.isfinite(custom_factor)
        or not CUSTOM_FACTOR_MIN <= custom_factor <= CUSTOM_FACTOR_MAX
    ):
        raise InvalidInputError(
            f"Custom factor must be between {CUSTOM_FACTOR_MIN} and {CUSTOM_FACTOR_MAX}",
            field="custom_factor",
            value=custom_factor,
        )
    return custom_factor


def get_goal_adjustment_factor(goal: WeightGoal, custom_factor: Optional[float] = None) -> float:
    """
    Multiplier applied to MER for a weight goal.

    A custom goal without a factor behaves like maintain (1.0).
    """
    goal = WeightGoal(goal)
    if goal == WeightGoal.CUSTOM:
        if custom_factor is None:
            return 1.0
        return validate_custom_factor(custom_factor)
    return GOAL_ADJUSTMENT_FACTORS[goal]


def calculate_target_calories(
    mer: float,
    goal: WeightGoal = WeightGoal.MAINTAIN,
    custom_factor: Optional[float] = None
) -> float:
    """
    Apply the weight goal adjustment to MER.

    Formula: target = MER × goal factor
    """
    _require_positive(mer, "mer")
    return mer * get_goal_adjustment_factor(goal, custom_factor)


def goal_base_weight(profile, goal: WeightGoal) -> float:
    """Weight the energy requirement is sized for: the target weight while losing
    or gaining (when one is set), otherwise the current weight."""
    if WeightGoal(goal) in (WeightGoal.LOSE, WeightGoal.GAIN) and profile.target_weight_kg:
        return profile.target_weight_kg
    return profile.current_weight_kg


def calculate_calories_for_goal(
    profile,
    goal: WeightGoal = WeightGoal.MAINTAIN,
    custom_factor: Optional[float] = None
) -> float:
    """
    Target calories for a profile, sized for where the cat is heading.

    For lose/gain goals with a target weight on file, RER is computed at
    the target weight. Otherwise the current weight is used.

    Args:
        profile: Object with current_weight_kg, target_weight_kg,
            activity_level and is_neutered
        goal: Weight goal
        custom_factor: Adjustment factor for the custom goal

    Returns:
        Target kcal/day
    """
    mer = calculate_mer(goal_base_weight(profile, goal), profile.activity_level, profile.is_neutered)
    return calculate_target_calories(mer, goal, custom_factor)


def calculate_treat_allowance(target_calories: float, goal: WeightGoal = WeightGoal.MAINTAIN) -> int:
    """
    Daily treat budget in whole kcal.

    5% of target calories while losing weight, 10% otherwise.
    """
    share = TREAT_ALLOWANCE_LOSE if WeightGoal(goal) == WeightGoal.LOSE else TREAT_ALLOWANCE_DEFAULT
    return round_half_up(target_calories * share)


def kcal_to_grams(desired_kcal: float, kcal_per_100g: float) -> float:
    """
    Convert desired calories to grams of food.

    Formula: grams = desired_kcal / (kcal_per_100g / 100)

    Args:
        desired_kcal: Target calories from this food
        kcal_per_100g: Caloric density of the food

    Returns:
        Grams needed to achieve desired calories
    """
    _require_positive(kcal_per_100g, "kcal_per_100g")
    return desired_kcal / (kcal_per_100g / 100)


def grams_to_kcal(grams: float, kcal_per_100g: float) -> float:
    """
    Convert grams to calories.

    Formula: kcal = (grams / 100) × kcal_per_100g
    """
    _require_positive(kcal_per_100g, "kcal_per_100g")
    return (grams / 100) * kcal_per_100g


def calculate_target_weight(
    current_weight_kg: float,
    goal: WeightGoal,
    custom_factor: Optional[float] = None
) -> float:
    """
    Target weight implied by a weight goal.

    Applies the calorie adjustment factor straight to body weight
    (lose: -20%, gain: +20%, custom: × factor). This is an approximation,
    not a physiological model of weight change.
    """
    _require_positive(current_weight_kg, "current_weight_kg")
    goal = WeightGoal(goal)
    if goal == WeightGoal.MAINTAIN:
        return current_weight_kg
    return current_weight_kg * get_goal_adjustment_factor(goal, custom_factor)


def infer_weight_goal(current_weight_kg: float, target_weight_kg: Optional[float] = None) -> WeightGoal:
    """Guess a weight goal from current vs target weight (10% dead band)."""
    if not target_weight_kg:
        return WeightGoal.MAINTAIN

    _require_positive(current_weight_kg, "current_weight_kg")
    ratio = target_weight_kg / current_weight_kg
    if ratio < 0.9:
        return WeightGoal.LOSE
    if ratio > 1.1:
        return WeightGoal.GAIN
    return WeightGoal.MAINTAIN


def classify_body_condition(weight_kg: float, breed: Optional[str] = None) -> BodyCondition:
    """
    Map a weight to a body condition category.

    The ratio is taken against an average adult cat weight. `breed` is
    accepted for callers that have one but is not used.
    """
    _require_positive(weight_kg, "weight_kg")
    ratio = weight_kg / AVERAGE_CAT_WEIGHT_KG

    if ratio < 0.7:
        return BodyCondition.VERY_UNDERWEIGHT
    if ratio < 0.85:
        return BodyCondition.UNDERWEIGHT
    if ratio <= 1.15:
        return BodyCondition.IDEAL
    if ratio <= 1.35:
        return BodyCondition.OVERWEIGHT
    return BodyCondition.OBESE


def target_achievement(
    current_weight_kg: float,
    target_weight_kg: float,
    display_unit: WeightUnit = WeightUnit.KG
) -> TargetAchievement:
    """
    How close a revised current weight is to the target weight.

    Within 0.1 kg counts as reached. "Close" is 0.9 kg, or 2 lb when the
    owner works in pounds.
    """
    diff = abs(current_weight_kg - target_weight_kg)
    if WeightUnit(display_unit) == WeightUnit.LB:
        close_threshold = lb_to_kg(TARGET_CLOSE_LB)
    else:
        close_threshold = TARGET_CLOSE_KG

    if diff < TARGET_REACHED_KG:
        return TargetAchievement.REACHED
    if diff <= close_threshold:
        return TargetAchievement.CLOSE
    return TargetAchievement.NONE


@dataclass
class CalculationDetails:
    """Step-by-step breakdown behind a feeding plan."""
    base_weight_kg: float
    rer: float
    activity_factor: float
    mer: float
    weight_goal_label: str
    weight_goal_adjustment_percent: int
    target_calories: float
    calories_per_gram: float
    daily_grams: float
    treat_allowance_percentage: int
    treat_allowance_calories: int


def weight_goal_label(goal: WeightGoal, custom_factor: Optional[float] = None) -> str:
    goal = WeightGoal(goal)
    if goal == WeightGoal.LOSE:
        return "Lose Weight (−20%)"
    if goal == WeightGoal.GAIN:
        return "Gain Weight (+20%)"
    if goal == WeightGoal.CUSTOM:
        percent = round_half_up((get_goal_adjustment_factor(goal, custom_factor) - 1) * 100)
        sign = "+" if percent > 0 else ""
        return f"Custom ({sign}{percent}%)"
    return "Maintain"


def get_calculation_details(
    profile,
    kcal_per_100g: float,
    goal: WeightGoal = WeightGoal.MAINTAIN,
    custom_factor: Optional[float] = None
) -> CalculationDetails:
    """
    Calculation breakdown for a profile and food, for display.

    Follows the same weight choice as calculate_calories_for_goal, so the
    breakdown matches the plan that gets saved.
    """
    goal = WeightGoal(goal)
    base_weight = goal_base_weight(profile, goal)
    rer = calculate_rer(base_weight)
    activity_factor = get_activity_factor(profile.activity_level, profile.is_neutered)
    mer = rer * activity_factor

    adjustment = get_goal_adjustment_factor(goal, custom_factor)
    target = calculate_target_calories(mer, goal, custom_factor)

    return CalculationDetails(
        base_weight_kg=base_weight,
        rer=rer,
        activity_factor=activity_factor,
        mer=mer,
        weight_goal_label=weight_goal_label(goal, custom_factor),
        weight_goal_adjustment_percent=round_half_up((adjustment - 1) * 100),
        target_calories=target,
        calories_per_gram=kcal_per_100g / 100,
        daily_grams=kcal_to_grams(target, kcal_per_100g),
        treat_allowance_percentage=5 if goal == WeightGoal.LOSE else 10,
        treat_allowance_calories=calculate_treat_allowance(target, goal),
    )
