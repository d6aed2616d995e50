"""
Feeding plan reconciliation after a profile edit.

When an edit touches a nutritionally relevant field of a cat that already
has a plan, the edit is held as a PendingComparison until the owner either
applies the recalculated plan or keeps the current one:

    IDLE -> CHANGE_DETECTED -> COMPARISON_PRESENTED -> APPLIED | KEPT

Discarding a pending comparison (the owner navigated away) drops the whole
edit. Nothing is written until one of the two outcomes is chosen.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Optional

from catfeeder.core.allocation import split_am_pm
from catfeeder.core.calculations import (
    ActivityLevel,
    TargetAchievement,
    WeightGoal,
    calculate_calories_for_goal,
    calculate_target_weight,
    calculate_treat_allowance,
    kcal_to_grams,
    round_half_up,
    target_achievement,
)
from catfeeder.core.exceptions import StaleComparisonError
from catfeeder.core.logger import get_logger
from catfeeder.core.units import WeightUnit

logger = get_logger("catfeeder.reconciliation")

NUTRITIONAL_FIELDS = ("current_weight_kg", "activity_level", "is_neutered", "age_years")


class ReconciliationState(str, Enum):
    IDLE = "idle"
    CHANGE_DETECTED = "change_detected"
    COMPARISON_PRESENTED = "comparison_presented"
    APPLIED = "applied"
    KEPT = "kept"


@dataclass(frozen=True)
class ProfileValues:
    """The editable fields of a cat profile, weights in kg."""
    name: str
    gender: str
    age_years: float
    current_weight_kg: float
    is_neutered: bool
    activity_level: ActivityLevel
    breed: Optional[str] = None
    target_weight_kg: Optional[float] = None
    weight_unit_preference: WeightUnit = WeightUnit.KG
    body_condition: Optional[str] = None

    @classmethod
    def from_cat(cls, cat) -> "ProfileValues":
        return cls(**{f.name: getattr(cat, f.name) for f in fields(cls)})

    def merged(self, updates: dict) -> "ProfileValues":
        known = {f.name for f in fields(self)}
        return replace(self, **{k: v for k, v in updates.items() if k in known})

    def nutritional(self) -> dict:
        return {name: getattr(self, name) for name in NUTRITIONAL_FIELDS}

    def non_nutritional(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name not in NUTRITIONAL_FIELDS}


@dataclass
class PendingComparison:
    """An edit waiting for the owner to apply or decline the new plan."""
    cat_id: int
    cat_name: str
    submitted: ProfileValues
    food_id: int
    weight_goal: WeightGoal
    custom_factor: Optional[float]
    goal_changed: bool
    old_calories: float
    new_calories: float
    old_grams: float
    new_grams: float
    changed_fields: list[str] = field(default_factory=list)
    # Plan the comparison was computed against
    plan_id: Optional[int] = None
    state: ReconciliationState = ReconciliationState.COMPARISON_PRESENTED

    def payload(self) -> dict[str, Any]:
        return {
            "cat_id": self.cat_id,
            "cat_name": self.cat_name,
            "old_calories": self.old_calories,
            "new_calories": self.new_calories,
            "old_grams": self.old_grams,
            "new_grams": self.new_grams,
        }


class ComparisonStore:
    """Pending comparisons by cat id. Entries live until resolved or discarded."""

    def __init__(self):
        self._pending: dict[int, PendingComparison] = {}

    def put(self, pending: PendingComparison) -> None:
        if pending.cat_id in self._pending:
            logger.info("Replacing pending plan comparison for cat %s", pending.cat_id)
        self._pending[pending.cat_id] = pending

    def get(self, cat_id: int) -> Optional[PendingComparison]:
        return self._pending.get(cat_id)

    def pop(self, cat_id: int) -> PendingComparison:
        pending = self._pending.pop(cat_id, None)
        if pending is None:
            raise StaleComparisonError(cat_id)
        return pending

    def discard(self, cat_id: int) -> bool:
        return self._pending.pop(cat_id, None) is not None

    def clear(self) -> None:
        self._pending.clear()


comparison_store = ComparisonStore()


def detect_changes(stored: ProfileValues, submitted: ProfileValues) -> list[str]:
    """Nutritionally relevant fields that differ between two profiles."""
    return [
        name for name in NUTRITIONAL_FIELDS
        if getattr(stored, name) != getattr(submitted, name)
    ]


def needs_reconciliation(stored: ProfileValues, submitted: ProfileValues, plan, selected_food_id) -> bool:
    """IDLE -> CHANGE_DETECTED guard."""
    return plan is not None and selected_food_id is not None and bool(detect_changes(stored, submitted))


def begin_reconciliation(
    cat_id: int,
    stored: ProfileValues,
    submitted: ProfileValues,
    plan,
    food,
    weight_goal: Optional[WeightGoal] = None,
    custom_factor: Optional[float] = None,
) -> PendingComparison:
    """
    Compare the stored plan with what the edited profile calls for.

    Old calories are the plan's stored total; new calories are computed for
    the submitted profile and the (possibly edited) goal. Both are
    converted to grams of the cat's selected food.

    Args:
        cat_id: Cat being edited
        stored: Profile as currently saved
        submitted: Profile as edited
        plan: Existing feeding plan (total_calories_per_day, weight_goal, custom_factor)
        food: Selected food (id, kcal_per_100g)
        weight_goal: Goal chosen during the edit, if any
        custom_factor: Custom factor chosen during the edit, if any

    Returns:
        PendingComparison in the COMPARISON_PRESENTED state
    """
    goal = WeightGoal(weight_goal or plan.weight_goal or WeightGoal.MAINTAIN)
    factor = custom_factor if custom_factor is not None else plan.custom_factor
    if goal != WeightGoal.CUSTOM:
        factor = None

    old_calories = plan.total_calories_per_day
    new_calories = calculate_calories_for_goal(submitted, goal, factor)

    pending = PendingComparison(
        cat_id=cat_id,
        cat_name=submitted.name,
        submitted=submitted,
        food_id=food.id,
        weight_goal=goal,
        custom_factor=factor,
        goal_changed=weight_goal is not None or custom_factor is not None,
        old_calories=old_calories,
        new_calories=new_calories,
        old_grams=kcal_to_grams(old_calories, food.kcal_per_100g),
        new_grams=kcal_to_grams(new_calories, food.kcal_per_100g),
        changed_fields=detect_changes(stored, submitted),
        plan_id=getattr(plan, "id", None),
    )
    logger.info(
        "Plan comparison for cat %s (%s changed): %.0f -> %.0f kcal",
        cat_id, ", ".join(pending.changed_fields), old_calories, new_calories
    )
    return pending


def is_current(pending: PendingComparison, plan) -> bool:
    """Whether `plan` is still the plan the comparison was computed against."""
    if plan is None:
        return False
    if pending.plan_id is not None and getattr(plan, "id", None) != pending.plan_id:
        return False
    return plan.total_calories_per_day == pending.old_calories


def _apply_profile(cat, values: dict) -> None:
    for name, value in values.items():
        setattr(cat, name, value)


def _rescale_portions(portions: list[dict], scale: float) -> list[tuple[int, float, float]]:
    """Per-food daily grams/calories from AM+PM portions, scaled."""
    totals: dict[int, list[float]] = {}
    for portion in portions:
        grams_kcal = totals.setdefault(portion["food_id"], [0.0, 0.0])
        grams_kcal[0] += portion["grams"]
        grams_kcal[1] += portion["calories"]
    return [(food_id, grams * scale, kcal * scale) for food_id, (grams, kcal) in totals.items()]


def _rescale_schedules(schedules: list[dict], scale: float) -> list[dict]:
    rescaled = []
    for meal in schedules:
        rescaled.append({
            **meal,
            "grams": round_half_up(meal["grams"] * scale),
            "calories": round_half_up(meal["calories"] * scale),
            "portions": [
                {**p, "grams": round_half_up(p["grams"] * scale), "calories": round_half_up(p["calories"] * scale)}
                for p in meal.get("portions", [])
            ],
        })
    return rescaled


def apply_comparison(pending: PendingComparison, cat) -> None:
    """
    COMPARISON_PRESENTED -> APPLIED.

    Writes the whole edited profile and replaces the plan totals. AM/PM is
    reset to an even split of the new daily grams. Mixed plans keep each
    food's share and have their portions scaled to the new calories.

    Raises:
        StaleComparisonError: The plan was replaced or changed after the
            comparison was made; nothing is written.
    """
    plan = cat.feeding_plan
    if not is_current(pending, plan):
        pending.state = ReconciliationState.IDLE
        logger.warning("Plan of cat %s changed since its comparison; update dropped", pending.cat_id)
        raise StaleComparisonError(pending.cat_id)

    _apply_profile(cat, {**pending.submitted.non_nutritional(), **pending.submitted.nutritional()})

    new_calories = round_half_up(pending.new_calories)
    scale = pending.new_calories / pending.old_calories if pending.old_calories else 1.0
    if plan.is_mixed and plan.am_portions:
        am_portions, pm_portions = [], []
        for food_id, grams, kcal in _rescale_portions([*plan.am_portions, *plan.pm_portions], scale):
            am_g, pm_g = split_am_pm(grams)
            am_kcal, pm_kcal = split_am_pm(kcal)
            am_portions.append({"food_id": food_id, "grams": am_g, "calories": am_kcal})
            pm_portions.append({"food_id": food_id, "grams": pm_g, "calories": pm_kcal})
        plan.am_portions = am_portions
        plan.pm_portions = pm_portions
        plan.am_grams = sum(p["grams"] for p in am_portions)
        plan.pm_grams = sum(p["grams"] for p in pm_portions)
        plan.total_grams_per_day = plan.am_grams + plan.pm_grams
    else:
        new_grams = round_half_up(pending.new_grams)
        plan.total_grams_per_day = new_grams
        plan.am_grams, plan.pm_grams = split_am_pm(new_grams)

    plan.total_calories_per_day = new_calories
    plan.meal_schedules = _rescale_schedules(plan.meal_schedules or [], scale)
    if pending.goal_changed:
        plan.weight_goal = pending.weight_goal
        plan.custom_factor = pending.custom_factor
    plan.treat_allowance_calories = calculate_treat_allowance(pending.new_calories, pending.weight_goal)

    pending.state = ReconciliationState.APPLIED
    logger.info("Applied plan update for cat %s: %s kcal/day", pending.cat_id, new_calories)


def keep_current_plan(pending: PendingComparison, cat) -> None:
    """
    COMPARISON_PRESENTED -> KEPT.

    Only the non-nutritional fields of the edit are written; the plan and
    the nutritional fields stay as they were.
    """
    _apply_profile(cat, pending.submitted.non_nutritional())
    pending.state = ReconciliationState.KEPT
    logger.info("Kept current plan for cat %s", pending.cat_id)


def apply_without_plan_change(cat, submitted: ProfileValues) -> None:
    """Write an edit that needs no plan decision."""
    _apply_profile(cat, {**submitted.non_nutritional(), **submitted.nutritional()})


# =============================================================================
# Current weight revision
# =============================================================================

@dataclass
class PendingWeightRevision:
    """A revised current weight waiting for the owner to confirm the weight goal."""
    cat_id: int
    new_current_weight_kg: float
    target_weight_kg: float
    target_achieved: TargetAchievement


class WeightRevisionStore:
    def __init__(self):
        self._pending: dict[int, PendingWeightRevision] = {}

    def put(self, revision: PendingWeightRevision) -> None:
        self._pending[revision.cat_id] = revision

    def pop(self, cat_id: int) -> PendingWeightRevision:
        revision = self._pending.pop(cat_id, None)
        if revision is None:
            raise StaleComparisonError(cat_id)
        return revision

    def discard(self, cat_id: int) -> bool:
        return self._pending.pop(cat_id, None) is not None

    def clear(self) -> None:
        self._pending.clear()


weight_revision_store = WeightRevisionStore()


def revise_current_weight(
    cat_id: int,
    new_current_weight_kg: float,
    target_weight_kg: float,
    display_unit: WeightUnit = WeightUnit.KG,
) -> PendingWeightRevision:
    """Classify a revised current weight against the target weight on file."""
    return PendingWeightRevision(
        cat_id=cat_id,
        new_current_weight_kg=new_current_weight_kg,
        target_weight_kg=target_weight_kg,
        target_achieved=target_achievement(new_current_weight_kg, target_weight_kg, display_unit),
    )


def achievement_message(cat_name: str, achieved: TargetAchievement) -> Optional[str]:
    if achieved == TargetAchievement.REACHED:
        return f"Congratulations! {cat_name} has reached the target weight!"
    if achieved == TargetAchievement.CLOSE:
        return f"Great progress! {cat_name} is close to the target weight."
    return None


def confirm_weight_goal(
    revision: PendingWeightRevision,
    goal: WeightGoal,
    custom_factor: Optional[float] = None,
) -> float:
    """New target weight for the revised current weight under the chosen goal."""
    return calculate_target_weight(revision.new_current_weight_kg, goal, custom_factor)
