"""
Meal allocation: split a daily food amount into time buckets, meals and
multi-food mixes, and assemble the resulting feeding plans.

All stored gram/calorie values are whole numbers. AM/PM pairs are built as
complements so they always add up to the rounded total; per-meal splits are
rounded independently and may drift from the total.
"""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Optional, Sequence

from catfeeder.core.calculations import (
    WeightGoal,
    calculate_treat_allowance,
    kcal_to_grams,
    round_half_up,
    validate_custom_factor,
)
from catfeeder.core.exceptions import InvalidInputError


MAX_MEALS_PER_DAY = 10
DEFAULT_MEALS_PER_DAY = 2
DEFAULT_DRY_PERCENT = 70


class RatioMode(str, Enum):
    USER_SET = "user_set"
    AUTO_FORCED = "auto_forced"


class FeedingType(str, Enum):
    SCHEDULED = "scheduled"
    FREE = "free"


@dataclass
class FoodPortion:
    food_id: int
    grams: int
    calories: float


@dataclass
class MealSchedule:
    time: str
    grams: int
    calories: int
    portions: list[FoodPortion] = field(default_factory=list)


@dataclass
class PlannedFeeding:
    """A freshly built feeding plan, before it is stored."""
    total_grams_per_day: int
    total_calories_per_day: int
    am_grams: int
    pm_grams: int
    food_id: Optional[int]
    weight_goal: WeightGoal = WeightGoal.MAINTAIN
    custom_factor: Optional[float] = None
    is_mixed: bool = False
    am_portions: list[FoodPortion] = field(default_factory=list)
    pm_portions: list[FoodPortion] = field(default_factory=list)
    meals_per_day: int = DEFAULT_MEALS_PER_DAY
    feeding_type: FeedingType = FeedingType.SCHEDULED
    meal_schedules: list[MealSchedule] = field(default_factory=list)
    treat_allowance_calories: Optional[int] = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class RatioState:
    """Dry food share of the daily calories (percent) and who set it."""
    dry_percent: int = DEFAULT_DRY_PERCENT
    mode: RatioMode = RatioMode.USER_SET


def _validate_meals(meals_per_day: int, minimum: int = 0) -> int:
    if not isinstance(meals_per_day, int) or not minimum <= meals_per_day <= MAX_MEALS_PER_DAY:
        raise InvalidInputError(
            f"Meals per day must be between {minimum} and {MAX_MEALS_PER_DAY}",
            field="meals_per_day",
            value=meals_per_day,
        )
    return meals_per_day


def _validate_percent(percent: float, field_name: str) -> float:
    if percent is None or not 0 <= percent <= 100:
        raise InvalidInputError(f"{field_name} must be between 0 and 100", field=field_name, value=percent)
    return percent


def split_am_pm(total: float, am_percent: float = 50) -> tuple[int, int]:
    """
    Split a daily total into AM and PM amounts.

    AM is rounded on its own; PM is the remainder of the rounded total, so
    am + pm == round(total) for every percentage.
    """
    _validate_percent(am_percent, "am_percent")
    am = round_half_up(total * am_percent / 100)
    # Same value as round(total - am), without the float subtraction
    pm = round_half_up(total) - am
    return am, pm


def distribute_meals_evenly(total_grams: float, total_calories: float, meals_per_day: int) -> list[dict]:
    """
    Split a daily amount into equal meals.

    Each meal is rounded independently; the meals may not add back up to the
    total exactly.
    """
    _validate_meals(meals_per_day, minimum=1)
    grams_per_meal = total_grams / meals_per_day
    calories_per_meal = total_calories / meals_per_day
    return [
        {"grams": round_half_up(grams_per_meal), "calories": round_half_up(calories_per_meal)}
        for _ in range(meals_per_day)
    ]


def default_meal_times(meals_per_day: int) -> list[str]:
    """
    Clock times for a single-food schedule: 08:00, 18:00, then every 3h from 14:00.

    Hours past midnight wrap around, so 7+ meals start again at 02:00.
    """
    times = []
    for idx in range(meals_per_day):
        if idx == 0:
            times.append("08:00")
        elif idx == 1:
            times.append("18:00")
        else:
            times.append(f"{(8 + idx * 3) % 24:02d}:00")
    return times


def calculate_mixed_food_portions(
    target_calories: float,
    foods: Sequence,
    ratios: Optional[Sequence[float]] = None
) -> list[FoodPortion]:
    """
    Share target calories across foods by weight.

    Args:
        target_calories: Daily calories to distribute
        foods: Objects with `id` and `kcal_per_100g`
        ratios: Relative weights, one per food; equal shares when omitted

    Returns:
        One portion per food; grams rounded, calories exact
    """
    if not foods:
        return []

    if len(foods) == 1:
        food = foods[0]
        return [FoodPortion(
            food_id=food.id,
            grams=round_half_up(kcal_to_grams(target_calories, food.kcal_per_100g)),
            calories=target_calories,
        )]

    if ratios is None:
        ratios = [1.0] * len(foods)
    if len(ratios) != len(foods):
        raise InvalidInputError("One ratio is required per food", field="ratios", value=list(ratios))
    if any(r < 0 for r in ratios) or sum(ratios) <= 0:
        raise InvalidInputError("Ratios must be non-negative with a positive sum", field="ratios", value=list(ratios))

    total_ratio = sum(ratios)
    portions = []
    for food, ratio in zip(foods, ratios):
        calories = target_calories * (ratio / total_ratio)
        portions.append(FoodPortion(
            food_id=food.id,
            grams=round_half_up(kcal_to_grams(calories, food.kcal_per_100g)),
            calories=calories,
        ))
    return portions


# =============================================================================
# Dry / wet ratio
# =============================================================================

def resolve_ratio(state: RatioState, has_dry: bool, has_wet: bool) -> RatioState:
    """
    Next ratio state after the selected food types change.

    With a single food type the slider is forced to that side. When both
    types come back after a forced value, the default split is restored
    unless the owner had already moved the slider.
    """
    if has_dry and not has_wet:
        return RatioState(100, RatioMode.AUTO_FORCED) if state.dry_percent != 100 else state
    if has_wet and not has_dry:
        return RatioState(0, RatioMode.AUTO_FORCED) if state.dry_percent != 0 else state
    if has_dry and has_wet and state.mode == RatioMode.AUTO_FORCED:
        if state.dry_percent in (0, 100):
            return RatioState(DEFAULT_DRY_PERCENT, RatioMode.USER_SET)
        return RatioState(state.dry_percent, RatioMode.USER_SET)
    return state


def set_dry_percent(state: RatioState, dry_percent: int) -> RatioState:
    """The owner moved the slider."""
    _validate_percent(dry_percent, "dry_percent")
    return RatioState(dry_percent, RatioMode.USER_SET)


def mix_shares(state: RatioState, has_dry: bool, has_wet: bool) -> tuple[float, float]:
    """Dry and wet calorie shares (0-1). A lone food type always gets everything."""
    if has_dry and has_wet:
        dry_share = state.dry_percent / 100
        return dry_share, 1 - dry_share
    if has_dry:
        return 1.0, 0.0
    if has_wet:
        return 0.0, 1.0
    return 0.0, 0.0


# =============================================================================
# Plan construction
# =============================================================================

def build_single_food_plan(
    target_calories: float,
    food,
    weight_goal: WeightGoal = WeightGoal.MAINTAIN,
    custom_factor: Optional[float] = None,
    meals_per_day: int = DEFAULT_MEALS_PER_DAY,
    am_percent: float = 50,
    feeding_type: FeedingType = FeedingType.SCHEDULED,
) -> PlannedFeeding:
    """
    Build a one-food feeding plan.

    Args:
        target_calories: Goal-adjusted daily calories
        food: Object with `id` and `kcal_per_100g`
        weight_goal: Goal the target was computed for
        custom_factor: Factor for the custom goal (dropped for other goals)
        meals_per_day: Number of evenly sized meals (1-10)
        am_percent: Share of the daily grams fed before noon
        feeding_type: scheduled or free feeding

    Returns:
        PlannedFeeding with rounded totals, AM/PM split and meal schedule
    """
    weight_goal = WeightGoal(weight_goal)
    if weight_goal == WeightGoal.CUSTOM and custom_factor is not None:
        validate_custom_factor(custom_factor)

    daily_grams = kcal_to_grams(target_calories, food.kcal_per_100g)
    am_grams, pm_grams = split_am_pm(daily_grams, am_percent)

    meals = distribute_meals_evenly(daily_grams, target_calories, meals_per_day)
    schedules = [
        MealSchedule(time=time, grams=meal["grams"], calories=meal["calories"])
        for time, meal in zip(default_meal_times(meals_per_day), meals)
    ]

    return PlannedFeeding(
        total_grams_per_day=round_half_up(daily_grams),
        total_calories_per_day=round_half_up(target_calories),
        am_grams=am_grams,
        pm_grams=pm_grams,
        food_id=food.id,
        weight_goal=weight_goal,
        custom_factor=custom_factor if weight_goal == WeightGoal.CUSTOM else None,
        meals_per_day=meals_per_day,
        feeding_type=FeedingType(feeding_type),
        meal_schedules=schedules,
        treat_allowance_calories=calculate_treat_allowance(target_calories, weight_goal),
    )


def _food_meal_schedules(food, meals_per_day: int, grams: float, calories: float, label: str) -> list[MealSchedule]:
    if meals_per_day == 0 or grams <= 0 or calories <= 0:
        return []
    grams_per_meal = round_half_up(grams / meals_per_day)
    calories_per_meal = round_half_up(calories / meals_per_day)
    return [
        MealSchedule(
            time=f"{label} Meal {idx + 1}",
            grams=grams_per_meal,
            calories=calories_per_meal,
            portions=[FoodPortion(food_id=food.id, grams=grams_per_meal, calories=calories_per_meal)],
        )
        for idx in range(meals_per_day)
    ]


def build_meal_mix_plan(
    target_calories: float,
    dry_food=None,
    wet_food=None,
    ratio: RatioState = RatioState(),
    dry_meals_per_day: int = DEFAULT_MEALS_PER_DAY,
    wet_meals_per_day: int = DEFAULT_MEALS_PER_DAY,
    weight_goal: WeightGoal = WeightGoal.MAINTAIN,
    custom_factor: Optional[float] = None,
) -> PlannedFeeding:
    """
    Build a dry/wet mixed feeding plan.

    Each food gets its calorie share from the ratio, converted to grams and
    halved into AM/PM portions. Each food has its own meal count; a count of
    zero schedules no meals for it but its grams still count toward the
    daily total.

    The daily total is the sum of the per-food rounded grams, so the plan
    totals always match its portions.
    """
    if target_calories is None or target_calories <= 0:
        raise InvalidInputError("Target calories must be positive", field="target_calories", value=target_calories)
    if dry_food is None and wet_food is None:
        raise InvalidInputError("Select at least one dry or wet food", field="foods")
    _validate_meals(dry_meals_per_day)
    _validate_meals(wet_meals_per_day)

    weight_goal = WeightGoal(weight_goal)
    has_dry, has_wet = dry_food is not None, wet_food is not None
    ratio = resolve_ratio(ratio, has_dry, has_wet)
    dry_share, wet_share = mix_shares(ratio, has_dry, has_wet)

    am_portions: list[FoodPortion] = []
    pm_portions: list[FoodPortion] = []
    schedules: list[MealSchedule] = []

    for food, share, meals, label in (
        (dry_food, dry_share, dry_meals_per_day, "Dry"),
        (wet_food, wet_share, wet_meals_per_day, "Wet"),
    ):
        if food is None:
            continue
        calories = target_calories * share
        grams = kcal_to_grams(calories, food.kcal_per_100g)
        if grams <= 0:
            continue
        am_g, pm_g = split_am_pm(grams)
        am_kcal, pm_kcal = split_am_pm(calories)
        am_portions.append(FoodPortion(food_id=food.id, grams=am_g, calories=am_kcal))
        pm_portions.append(FoodPortion(food_id=food.id, grams=pm_g, calories=pm_kcal))
        schedules.extend(_food_meal_schedules(food, meals, grams, calories, label))

    am_grams = sum(p.grams for p in am_portions)
    pm_grams = sum(p.grams for p in pm_portions)

    return PlannedFeeding(
        total_grams_per_day=am_grams + pm_grams,
        total_calories_per_day=round_half_up(target_calories),
        am_grams=am_grams,
        pm_grams=pm_grams,
        food_id=(dry_food or wet_food).id,
        weight_goal=weight_goal,
        custom_factor=custom_factor if weight_goal == WeightGoal.CUSTOM else None,
        is_mixed=has_dry and has_wet,
        am_portions=am_portions,
        pm_portions=pm_portions,
        meals_per_day=max(dry_meals_per_day, wet_meals_per_day, 1),
        feeding_type=FeedingType.SCHEDULED,
        meal_schedules=schedules,
        treat_allowance_calories=calculate_treat_allowance(target_calories, weight_goal),
    )


def check_plan_totals(
    total_grams_per_day: int,
    am_grams: int,
    pm_grams: int,
    is_mixed: bool = False,
    am_portions: Sequence = (),
    pm_portions: Sequence = (),
) -> None:
    """
    Reject plan totals that contradict their parts.

    AM + PM may be off the total by one gram from independent rounding.
    Mixed plans must total exactly the grams of their portions.
    """
    if abs((am_grams + pm_grams) - total_grams_per_day) > 1:
        raise InvalidInputError(
            f"AM ({am_grams}g) + PM ({pm_grams}g) does not match daily total ({total_grams_per_day}g)",
            field="total_grams_per_day",
            value=total_grams_per_day,
        )
    if is_mixed:
        portion_grams = sum(_portion_grams(p) for p in [*am_portions, *pm_portions])
        if portion_grams != total_grams_per_day:
            raise InvalidInputError(
                f"Portions add up to {portion_grams}g but the daily total is {total_grams_per_day}g",
                field="total_grams_per_day",
                value=total_grams_per_day,
            )


def _portion_grams(portion) -> int:
    if isinstance(portion, dict):
        return portion["grams"]
    return portion.grams


def remove_food_from_portions(
    am_portions: Sequence[dict],
    pm_portions: Sequence[dict],
    food_id: int
) -> dict:
    """
    Plan field updates after a food is dropped from a mixed plan.

    Remaining portions keep their amounts and the totals are re-summed from
    them. Once no portions remain the plan is no longer mixed and the
    totals are left alone.
    """
    am = [p for p in am_portions if p["food_id"] != food_id]
    pm = [p for p in pm_portions if p["food_id"] != food_id]
    updates = {"am_portions": am, "pm_portions": pm}
    if not am and not pm:
        updates["is_mixed"] = False
        return updates

    updates["am_grams"] = sum(p["grams"] for p in am)
    updates["pm_grams"] = sum(p["grams"] for p in pm)
    updates["total_grams_per_day"] = updates["am_grams"] + updates["pm_grams"]
    updates["total_calories_per_day"] = round_half_up(sum(p["calories"] for p in [*am, *pm]))
    updates["is_mixed"] = len({p["food_id"] for p in [*am, *pm]}) > 1
    return updates
