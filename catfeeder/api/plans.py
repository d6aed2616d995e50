"""Feeding plan API endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from catfeeder.core.database import get_db
from catfeeder.core.allocation import (
    PlannedFeeding,
    RatioState,
    build_meal_mix_plan,
    build_single_food_plan,
    calculate_mixed_food_portions,
    check_plan_totals,
    remove_food_from_portions,
)
from catfeeder.core.calculations import (
    WeightGoal,
    calculate_calories_for_goal,
    get_calculation_details,
    infer_weight_goal,
)
from catfeeder.core.exceptions import InvalidInputError, MissingReferenceError, NotFoundError
from catfeeder.core.logger import get_logger
from catfeeder.models.models import Cat, FeedingPlan, Food, FoodType
from catfeeder.schemas.schemas import (
    CalculationDetailsResponse,
    FeedingPlanResponse,
    MealMixRequest,
    MixedPortionsRequest,
    MixedPortionsResponse,
    PlanPreviewRequest,
    SingleFoodPlanRequest,
)
from catfeeder.services.reconciliation import comparison_store
from catfeeder.api.cats import get_cat_or_404

router = APIRouter(prefix="/plan", tags=["feeding plans"])
logger = get_logger("catfeeder.api.plans")


def _get_food(db: Session, food_id: int, referenced_by: str) -> Food:
    food = db.query(Food).filter(Food.id == food_id).first()
    if not food:
        raise MissingReferenceError(food_id, referenced_by=referenced_by)
    return food


def _resolve_goal(cat: Cat, weight_goal: WeightGoal | None, custom_factor: float | None):
    """Requested goal, else the current plan's goal, else one inferred from the target weight."""
    if weight_goal is not None:
        return WeightGoal(weight_goal), custom_factor
    if cat.feeding_plan is not None:
        factor = custom_factor if custom_factor is not None else cat.feeding_plan.custom_factor
        return WeightGoal(cat.feeding_plan.weight_goal), factor
    return infer_weight_goal(cat.current_weight_kg, cat.target_weight_kg), custom_factor


def _drop_pending_comparison(cat_id: int) -> None:
    # A comparison only holds for the plan it was computed against
    if comparison_store.discard(cat_id):
        logger.info("Discarded pending plan comparison for cat %s after a plan change", cat_id)


def _save_plan(db: Session, cat: Cat, planned: PlannedFeeding, food_ids: list[int]) -> FeedingPlan:
    """Replace the cat's plan wholesale and point its selection at the plan's foods."""
    check_plan_totals(
        planned.total_grams_per_day,
        planned.am_grams,
        planned.pm_grams,
        is_mixed=planned.is_mixed,
        am_portions=planned.am_portions,
        pm_portions=planned.pm_portions,
    )

    _drop_pending_comparison(cat.id)

    if cat.feeding_plan is not None:
        # Drop the old row first; cat_id is unique
        cat.feeding_plan = None
        db.flush()

    fields = planned.to_dict()
    fields["feeding_type"] = planned.feeding_type.value
    plan = FeedingPlan(cat_id=cat.id, **fields)
    cat.feeding_plan = plan

    cat.selected_food_id = planned.food_id
    cat.selected_food_ids = list(food_ids)
    library = list(cat.library_food_ids or [])
    cat.library_food_ids = library + [fid for fid in food_ids if fid not in library]

    db.commit()
    db.refresh(plan)
    logger.info(
        "Saved feeding plan for cat %s: %s kcal/day, %sg/day%s",
        cat.id, plan.total_calories_per_day, plan.total_grams_per_day,
        " (mixed)" if plan.is_mixed else ""
    )
    return plan


@router.post("/preview", response_model=CalculationDetailsResponse)
def preview_plan(request: PlanPreviewRequest, db: Session = Depends(get_db)):
    """
    Show how a plan for a cat and food would be calculated.

    Returns each step: RER, activity factor, MER, goal adjustment,
    target calories, daily grams and the treat allowance.
    """
    cat = get_cat_or_404(db, request.cat_id)
    food = _get_food(db, request.food_id, "plan preview")
    goal, factor = _resolve_goal(cat, request.weight_goal, request.custom_factor)

    details = get_calculation_details(cat, food.kcal_per_100g, goal, factor)
    return CalculationDetailsResponse(
        cat_id=cat.id,
        food_id=food.id,
        weight_goal=goal,
        **vars(details),
    )


@router.post("/single", response_model=FeedingPlanResponse, status_code=201)
def save_single_food_plan(request: SingleFoodPlanRequest, db: Session = Depends(get_db)):
    """Calculate and save a one-food plan, replacing any existing plan."""
    cat = get_cat_or_404(db, request.cat_id)
    food = _get_food(db, request.food_id, "feeding plan")
    goal, factor = _resolve_goal(cat, request.weight_goal, request.custom_factor)

    target = calculate_calories_for_goal(cat, goal, factor)
    planned = build_single_food_plan(
        target,
        food,
        weight_goal=goal,
        custom_factor=factor,
        meals_per_day=request.meals_per_day,
        am_percent=request.am_percent,
        feeding_type=request.feeding_type,
    )
    return _save_plan(db, cat, planned, [food.id])


@router.post("/mix", response_model=FeedingPlanResponse, status_code=201)
def save_meal_mix_plan(request: MealMixRequest, db: Session = Depends(get_db)):
    """
    Save a dry/wet mix plan from the selected foods.

    The first dry and the first wet food in the selection are mixed at the
    requested ratio. The daily calories stay those of the current plan;
    without one they are calculated for the cat's weight goal.
    """
    cat = get_cat_or_404(db, request.cat_id)
    foods = [_get_food(db, food_id, "meal mix") for food_id in request.food_ids]

    dry_food = next((f for f in foods if f.food_type == FoodType.DRY), None)
    wet_food = next((f for f in foods if f.food_type == FoodType.WET), None)
    if dry_food is None and wet_food is None:
        raise InvalidInputError("Select at least one dry or wet food", field="food_ids", value=request.food_ids)

    goal, factor = _resolve_goal(cat, None, None)
    if cat.feeding_plan is not None:
        target = cat.feeding_plan.total_calories_per_day
    else:
        target = calculate_calories_for_goal(cat, goal, factor)

    planned = build_meal_mix_plan(
        target,
        dry_food=dry_food,
        wet_food=wet_food,
        ratio=RatioState(request.ratio.dry_percent, request.ratio.mode),
        dry_meals_per_day=request.dry_meals_per_day,
        wet_meals_per_day=request.wet_meals_per_day,
        weight_goal=goal,
        custom_factor=factor,
    )
    food_ids = [f.id for f in (dry_food, wet_food) if f is not None]
    return _save_plan(db, cat, planned, food_ids)


@router.post("/mixed-portions", response_model=MixedPortionsResponse)
def preview_mixed_portions(request: MixedPortionsRequest, db: Session = Depends(get_db)):
    """Share the cat's daily calories across several foods by ratio, without saving."""
    cat = get_cat_or_404(db, request.cat_id)
    foods = [_get_food(db, food_id, "mixed portions") for food_id in request.food_ids]

    if cat.feeding_plan is not None:
        target = float(cat.feeding_plan.total_calories_per_day)
    else:
        goal, factor = _resolve_goal(cat, None, None)
        target = calculate_calories_for_goal(cat, goal, factor)

    portions = calculate_mixed_food_portions(target, foods, request.ratios)
    return MixedPortionsResponse(
        cat_id=cat.id,
        target_calories=target,
        portions=[vars(p) for p in portions],
    )


@router.get("/cat/{cat_id}", response_model=FeedingPlanResponse)
def get_plan_for_cat(cat_id: int, db: Session = Depends(get_db)):
    """Get the saved feeding plan of a cat."""
    cat = get_cat_or_404(db, cat_id)
    if cat.feeding_plan is None:
        raise NotFoundError("Feeding plan", cat_id)
    return cat.feeding_plan


@router.delete("/cat/{cat_id}/food/{food_id}", response_model=FeedingPlanResponse)
def remove_food_from_plan(cat_id: int, food_id: int, db: Session = Depends(get_db)):
    """
    Drop one food from a cat's plan.

    The remaining portions keep their amounts and the plan totals are
    re-summed from them. The food is also removed from the cat's selection.
    """
    cat = get_cat_or_404(db, cat_id)
    plan = cat.feeding_plan
    if plan is None:
        raise NotFoundError("Feeding plan", cat_id)

    _drop_pending_comparison(cat_id)

    updates = remove_food_from_portions(plan.am_portions or [], plan.pm_portions or [], food_id)
    for name, value in updates.items():
        setattr(plan, name, value)
    plan.meal_schedules = [
        meal for meal in (plan.meal_schedules or [])
        if not any(p["food_id"] == food_id for p in meal.get("portions", []))
    ]

    remaining = [fid for fid in (cat.selected_food_ids or []) if fid != food_id]
    cat.selected_food_ids = remaining
    if cat.selected_food_id == food_id:
        cat.selected_food_id = remaining[0] if remaining else None
    if plan.food_id == food_id:
        plan.food_id = cat.selected_food_id

    db.commit()
    db.refresh(plan)
    logger.info("Removed food %s from the plan of cat %s", food_id, cat_id)
    return plan
