"""Cat profile API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from catfeeder.core.database import get_db
from catfeeder.core.exceptions import NotFoundError
from catfeeder.core.calculations import (
    BODY_CONDITION_DESCRIPTIONS,
    BODY_CONDITION_LABELS,
    SUGGESTED_GOALS,
    WeightGoal,
    calculate_mer,
    calculate_rer,
    classify_body_condition,
    get_activity_factor,
    infer_weight_goal,
)
from catfeeder.core.logger import get_logger
from catfeeder.core.units import WeightUnit, convert_weight, format_weight
from catfeeder.models.models import Cat, Food, WeightLog
from catfeeder.schemas.schemas import (
    BodyConditionAdvice,
    CatCreate,
    CatResponse,
    CatUpdate,
    CatUpdateResult,
    CatWithCalculations,
    GoalConfirmationRequest,
    PlanComparison,
    WeightLogResponse,
    WeightRevisionRequest,
    WeightRevisionResponse,
)
from catfeeder.services.reconciliation import (
    ProfileValues,
    achievement_message,
    apply_comparison,
    apply_without_plan_change,
    begin_reconciliation,
    comparison_store,
    confirm_weight_goal,
    keep_current_plan,
    needs_reconciliation,
    revise_current_weight,
    weight_revision_store,
)

router = APIRouter(prefix="/cat", tags=["cats"])
logger = get_logger("catfeeder.api.cats")


def get_cat_or_404(db: Session, cat_id: int) -> Cat:
    cat = db.query(Cat).filter(Cat.id == cat_id).first()
    if not cat:
        raise NotFoundError("Cat", cat_id)
    return cat


def _to_kg(value: float | None, unit: WeightUnit) -> float | None:
    if value is None:
        return None
    return convert_weight(value, unit, WeightUnit.KG)


def _log_weight(db: Session, cat: Cat, old_weight: float | None, notes: str) -> None:
    if cat.current_weight_kg != old_weight:
        db.add(WeightLog(cat_id=cat.id, weight_kg=cat.current_weight_kg, notes=notes))


def submit_profile_update(
    db: Session,
    cat: Cat,
    updates: dict,
    weight_goal: WeightGoal | None = None,
    custom_factor: float | None = None,
) -> CatUpdateResult:
    """
    Save a profile edit, or hold it for a plan decision.

    Edits that change weight, activity, neuter status or age of a cat with a
    plan are held until the owner applies or keeps the recalculated plan.
    """
    stored = ProfileValues.from_cat(cat)
    submitted = stored.merged(updates)
    plan = cat.feeding_plan

    if needs_reconciliation(stored, submitted, plan, cat.selected_food_id):
        food = db.query(Food).filter(Food.id == cat.selected_food_id).first()
        if food is not None:
            pending = begin_reconciliation(
                cat.id, stored, submitted, plan, food,
                weight_goal=weight_goal, custom_factor=custom_factor,
            )
            comparison_store.put(pending)
            return CatUpdateResult(
                cat=CatResponse.model_validate(cat),
                plan_update_pending=True,
                comparison=PlanComparison(**pending.payload()),
            )
        logger.warning(
            "Selected food %s of cat %s is missing from the catalog; saving edit without a plan update",
            cat.selected_food_id, cat.id
        )

    old_weight = cat.current_weight_kg
    apply_without_plan_change(cat, submitted)
    _log_weight(db, cat, old_weight, "Weight updated")
    db.commit()
    db.refresh(cat)
    return CatUpdateResult(cat=CatResponse.model_validate(cat), plan_update_pending=False)


@router.post("", response_model=CatResponse, status_code=201)
def create_cat(cat: CatCreate, db: Session = Depends(get_db)):
    """Create a new cat profile."""
    db_cat = Cat(
        name=cat.name,
        breed=cat.breed,
        gender=cat.gender,
        age_years=cat.age_years,
        current_weight_kg=_to_kg(cat.current_weight, cat.weight_unit),
        target_weight_kg=_to_kg(cat.target_weight, cat.weight_unit),
        weight_unit_preference=cat.weight_unit,
        is_neutered=cat.is_neutered,
        activity_level=cat.activity_level,
        body_condition=cat.body_condition,
        selected_food_ids=[],
        library_food_ids=[],
    )
    db.add(db_cat)
    db.commit()
    db.refresh(db_cat)

    db.add(WeightLog(cat_id=db_cat.id, weight_kg=db_cat.current_weight_kg, notes="Initial weight"))
    db.commit()

    return db_cat


@router.get("/{cat_id}", response_model=CatWithCalculations)
def get_cat(cat_id: int, db: Session = Depends(get_db)):
    """Get a cat profile with its RER and MER."""
    cat = get_cat_or_404(db, cat_id)

    factor = get_activity_factor(cat.activity_level, cat.is_neutered)
    return CatWithCalculations(
        **CatResponse.model_validate(cat).model_dump(),
        rer=round(calculate_rer(cat.current_weight_kg), 2),
        mer=round(calculate_mer(cat.current_weight_kg, cat.activity_level, cat.is_neutered), 2),
        activity_factor=factor,
        display_weight=format_weight(cat.current_weight_kg, cat.weight_unit_preference),
        has_feeding_plan=cat.feeding_plan is not None,
    )


@router.get("", response_model=list[CatResponse])
def list_cats(db: Session = Depends(get_db)):
    """List all cats."""
    return db.query(Cat).all()


@router.put("/{cat_id}", response_model=CatUpdateResult)
def update_cat(cat_id: int, cat_update: CatUpdate, response: Response, db: Session = Depends(get_db)):
    """
    Update a cat profile.

    Returns 202 with a before/after comparison when the edit would change
    the feeding plan; resolve it with /plan-update/apply or /plan-update/keep.
    """
    cat = get_cat_or_404(db, cat_id)
    update_data = cat_update.model_dump(exclude_unset=True)
    unit = cat_update.weight_unit

    updates = {}
    for field, value in update_data.items():
        if field in ("weight_unit", "weight_goal", "custom_factor"):
            continue
        if field == "current_weight":
            updates["current_weight_kg"] = _to_kg(value, unit)
        elif field == "target_weight":
            # Allow clearing the target by setting it to 0
            updates["target_weight_kg"] = _to_kg(value, unit) if value else None
        else:
            updates[field] = value
    if "weight_unit" in update_data:
        updates["weight_unit_preference"] = unit

    # A new edit replaces any comparison still waiting for an answer
    comparison_store.discard(cat_id)

    result = submit_profile_update(
        db, cat, updates,
        weight_goal=cat_update.weight_goal,
        custom_factor=cat_update.custom_factor,
    )
    if result.plan_update_pending:
        response.status_code = 202
    return result


@router.get("/{cat_id}/plan-update", response_model=PlanComparison)
def get_pending_plan_update(cat_id: int, db: Session = Depends(get_db)):
    """Get the comparison waiting for a decision."""
    get_cat_or_404(db, cat_id)
    pending = comparison_store.get(cat_id)
    if pending is None:
        raise HTTPException(status_code=404, detail="No pending plan update")
    return PlanComparison(**pending.payload())


@router.post("/{cat_id}/plan-update/apply", response_model=CatResponse)
def apply_plan_update(cat_id: int, db: Session = Depends(get_db)):
    """Save the edited profile together with the recalculated plan."""
    cat = get_cat_or_404(db, cat_id)
    pending = comparison_store.pop(cat_id)

    old_weight = cat.current_weight_kg
    apply_comparison(pending, cat)
    _log_weight(db, cat, old_weight, "Weight updated")
    db.commit()
    db.refresh(cat)
    return cat


@router.post("/{cat_id}/plan-update/keep", response_model=CatResponse)
def keep_plan(cat_id: int, db: Session = Depends(get_db)):
    """Save the non-nutritional part of the edit and keep the current plan."""
    cat = get_cat_or_404(db, cat_id)
    pending = comparison_store.pop(cat_id)

    keep_current_plan(pending, cat)
    db.commit()
    db.refresh(cat)
    return cat


@router.delete("/{cat_id}/plan-update", status_code=204)
def discard_plan_update(cat_id: int):
    """Drop a pending edit without saving any part of it."""
    if comparison_store.discard(cat_id):
        logger.info("Discarded pending plan comparison for cat %s", cat_id)
    return None


@router.post("/{cat_id}/weight-revision", response_model=WeightRevisionResponse)
def revise_weight(cat_id: int, request: WeightRevisionRequest, db: Session = Depends(get_db)):
    """
    Revise the current weight and check it against the target weight.

    Confirm with /weight-revision/confirm to keep or change the weight goal.
    """
    cat = get_cat_or_404(db, cat_id)
    new_weight_kg = _to_kg(request.current_weight, request.weight_unit)

    if not cat.target_weight_kg:
        return WeightRevisionResponse(
            cat_id=cat.id,
            new_current_weight_kg=new_weight_kg,
            target_weight_kg=None,
            target_achieved="none",
        )

    revision = revise_current_weight(cat.id, new_weight_kg, cat.target_weight_kg, request.weight_unit)
    weight_revision_store.put(revision)
    return WeightRevisionResponse(
        cat_id=cat.id,
        new_current_weight_kg=new_weight_kg,
        target_weight_kg=cat.target_weight_kg,
        target_achieved=revision.target_achieved,
        message=achievement_message(cat.name, revision.target_achieved),
    )


@router.post("/{cat_id}/weight-revision/confirm", response_model=CatUpdateResult)
def confirm_weight_revision(
    cat_id: int,
    request: GoalConfirmationRequest,
    response: Response,
    db: Session = Depends(get_db)
):
    """
    Save a revised weight with a kept or changed weight goal.

    The target weight is recalculated from the new current weight.
    """
    cat = get_cat_or_404(db, cat_id)
    revision = weight_revision_store.pop(cat_id)

    if request.weight_goal is not None:
        goal, factor = request.weight_goal, request.custom_factor
    elif cat.feeding_plan is not None:
        goal, factor = cat.feeding_plan.weight_goal, cat.feeding_plan.custom_factor
    else:
        goal, factor = infer_weight_goal(cat.current_weight_kg, cat.target_weight_kg), None

    updates = {
        "current_weight_kg": revision.new_current_weight_kg,
        "target_weight_kg": confirm_weight_goal(revision, goal, factor),
    }
    comparison_store.discard(cat_id)
    result = submit_profile_update(
        db, cat, updates,
        weight_goal=request.weight_goal,
        custom_factor=request.custom_factor,
    )
    if result.plan_update_pending:
        response.status_code = 202
    return result


@router.delete("/{cat_id}/weight-revision", status_code=204)
def discard_weight_revision(cat_id: int):
    """Drop a revised weight that was never confirmed."""
    weight_revision_store.discard(cat_id)
    return None


@router.get("/{cat_id}/body-condition", response_model=BodyConditionAdvice)
def get_body_condition(cat_id: int, db: Session = Depends(get_db)):
    """Body condition estimate and the weight goal it suggests."""
    cat = get_cat_or_404(db, cat_id)
    condition = classify_body_condition(cat.current_weight_kg, cat.breed)
    return BodyConditionAdvice(
        cat_id=cat.id,
        weight_kg=cat.current_weight_kg,
        body_condition=condition,
        label=BODY_CONDITION_LABELS[condition],
        description=BODY_CONDITION_DESCRIPTIONS[condition],
        suggested_goal=SUGGESTED_GOALS[condition],
    )


@router.get("/{cat_id}/weight", response_model=list[WeightLogResponse])
def get_weight_history(cat_id: int, db: Session = Depends(get_db)):
    """Weight history for a cat, newest first."""
    get_cat_or_404(db, cat_id)
    return (
        db.query(WeightLog)
        .filter(WeightLog.cat_id == cat_id)
        .order_by(WeightLog.logged_at.desc(), WeightLog.id.desc())
        .all()
    )


@router.delete("/{cat_id}", status_code=204)
def delete_cat(cat_id: int, db: Session = Depends(get_db)):
    """Delete a cat with its plan, weight history and feeding logs."""
    cat = get_cat_or_404(db, cat_id)

    comparison_store.discard(cat_id)
    weight_revision_store.discard(cat_id)
    db.delete(cat)
    db.commit()
    return None
