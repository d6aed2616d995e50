"""Food catalog API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from catfeeder.core.database import get_db
from catfeeder.core.exceptions import NotFoundError
from catfeeder.core.units import PortionUnit, convert_portion, grams_per_cup, to_kcal_per_100g
from catfeeder.models.models import Cat, FeedingPlan, Food, FoodType
from catfeeder.schemas.schemas import (
    FoodCreate,
    FoodResponse,
    FoodUpdate,
    PortionConversion,
)
from catfeeder.api.cats import get_cat_or_404

router = APIRouter(prefix="/food", tags=["foods"])


def get_food_or_404(db: Session, food_id: int) -> Food:
    food = db.query(Food).filter(Food.id == food_id).first()
    if not food:
        raise NotFoundError("Food", food_id)
    return food


@router.post("", response_model=FoodResponse, status_code=201)
def create_food(
    food: FoodCreate,
    cat_id: int | None = Query(None, description="Add the food to this cat's library"),
    db: Session = Depends(get_db)
):
    """
    Add a food to the catalog.

    The label calorie value is converted to kcal/100g here and only here.
    """
    cat = get_cat_or_404(db, cat_id) if cat_id is not None else None

    db_food = Food(
        name=food.name,
        brand=food.brand,
        food_type=food.food_type,
        kcal_per_100g=to_kcal_per_100g(food.calorie_value, food.calorie_unit, food.food_type.value),
        protein_pct=food.protein_pct,
        fat_pct=food.fat_pct,
        carbohydrate_pct=food.carbohydrate_pct,
        fiber_pct=food.fiber_pct,
        tags=food.tags,
        nrc_compliant=food.nrc_compliant,
    )
    db.add(db_food)
    db.commit()
    db.refresh(db_food)

    if cat is not None:
        cat.library_food_ids = [*(cat.library_food_ids or []), db_food.id]
        db.commit()

    return db_food


@router.get("", response_model=list[FoodResponse])
def list_foods(
    food_type: FoodType | None = None,
    q: str | None = Query(None, min_length=1, description="Search name or brand"),
    db: Session = Depends(get_db)
):
    """List catalog foods, optionally filtered by type or search text."""
    query = db.query(Food)
    if food_type is not None:
        query = query.filter(Food.food_type == food_type)
    if q:
        pattern = f"%{q}%"
        query = query.filter(or_(Food.name.ilike(pattern), Food.brand.ilike(pattern)))
    return query.order_by(Food.name).all()


@router.get("/{food_id}", response_model=FoodResponse)
def get_food(food_id: int, db: Session = Depends(get_db)):
    """Get a food by ID."""
    return get_food_or_404(db, food_id)


@router.put("/{food_id}", response_model=FoodResponse)
def update_food(food_id: int, food_update: FoodUpdate, db: Session = Depends(get_db)):
    """
    Update a food.

    Existing feeding logs keep the calories they were written with.
    """
    food = get_food_or_404(db, food_id)

    update_data = food_update.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(food, field, value)

    db.commit()
    db.refresh(food)
    return food


@router.delete("/{food_id}", status_code=204)
def delete_food(food_id: int, db: Session = Depends(get_db)):
    """Delete a food that no feeding plan or cat still relies on."""
    food = get_food_or_404(db, food_id)

    in_plan = any(
        plan.food_id == food_id
        or any(p["food_id"] == food_id for p in [*(plan.am_portions or []), *(plan.pm_portions or [])])
        for plan in db.query(FeedingPlan).all()
    )
    selected = db.query(Cat).filter(Cat.selected_food_id == food_id).first()
    if in_plan or selected:
        raise HTTPException(
            status_code=400,
            detail="Cannot delete a food that is used in a feeding plan. Remove it from the plan first."
        )

    db.delete(food)
    db.commit()
    return None


@router.get("/{food_id}/portion", response_model=PortionConversion)
def convert_food_portion(
    food_id: int,
    value: float = Query(..., ge=0),
    from_unit: PortionUnit = PortionUnit.GRAM,
    to_unit: PortionUnit = PortionUnit.CUP,
    db: Session = Depends(get_db)
):
    """Convert a portion of this food between grams and cups."""
    food = get_food_or_404(db, food_id)
    is_dry = food.food_type != FoodType.WET
    return PortionConversion(
        value=value,
        from_unit=from_unit,
        to_unit=to_unit,
        result=round(convert_portion(value, from_unit, to_unit, is_dry), 2),
        grams_per_cup=grams_per_cup(is_dry),
    )
