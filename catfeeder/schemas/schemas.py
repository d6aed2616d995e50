"""Pydantic schemas for request/response validation."""

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from catfeeder.core.config import settings
from catfeeder.core.calculations import (
    ActivityLevel,
    BodyCondition,
    TargetAchievement,
    WeightGoal,
    CUSTOM_FACTOR_MIN,
    CUSTOM_FACTOR_MAX,
)
from catfeeder.core.allocation import FeedingType, MAX_MEALS_PER_DAY, RatioMode
from catfeeder.core.units import CalorieUnit, PortionUnit, WeightUnit
from catfeeder.models.models import FoodType, Gender, TreatTag


# Cat schemas
class CatCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    breed: Optional[str] = Field(None, max_length=100)
    gender: Gender
    age_years: float = Field(..., ge=0, le=30)
    # Weights may be entered in either unit; they are stored in kg
    current_weight: float = Field(..., gt=0, le=50)
    target_weight: Optional[float] = Field(None, gt=0, le=50)
    weight_unit: WeightUnit = WeightUnit(settings.DEFAULT_WEIGHT_UNIT)
    is_neutered: bool
    activity_level: ActivityLevel = ActivityLevel.MEDIUM
    body_condition: Optional[BodyCondition] = None


class CatUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    breed: Optional[str] = Field(None, max_length=100)
    gender: Optional[Gender] = None
    age_years: Optional[float] = Field(None, ge=0, le=30)
    current_weight: Optional[float] = Field(None, gt=0, le=50)
    target_weight: Optional[float] = Field(None, ge=0, le=50)  # Allow 0 to clear
    weight_unit: WeightUnit = WeightUnit.KG
    is_neutered: Optional[bool] = None
    activity_level: Optional[ActivityLevel] = None
    body_condition: Optional[BodyCondition] = None
    # Goal changes made while editing the profile
    weight_goal: Optional[WeightGoal] = None
    custom_factor: Optional[float] = Field(None, ge=CUSTOM_FACTOR_MIN, le=CUSTOM_FACTOR_MAX)


class CatResponse(BaseModel):
    id: int
    name: str
    breed: Optional[str]
    gender: Gender
    age_years: float
    current_weight_kg: float
    target_weight_kg: Optional[float]
    weight_unit_preference: WeightUnit
    is_neutered: bool
    activity_level: ActivityLevel
    body_condition: Optional[BodyCondition]
    selected_food_id: Optional[int]
    selected_food_ids: list[int] = []
    library_food_ids: list[int] = []

    class Config:
        from_attributes = True


class CatWithCalculations(CatResponse):
    rer: float
    mer: float
    activity_factor: float
    display_weight: str
    has_feeding_plan: bool


class BodyConditionAdvice(BaseModel):
    cat_id: int
    weight_kg: float
    body_condition: BodyCondition
    label: str
    description: str
    suggested_goal: WeightGoal


# Food schemas
class FoodCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    brand: Optional[str] = Field(None, max_length=200)
    food_type: FoodType = FoodType.CUSTOM
    calorie_value: float = Field(..., gt=0, description="Calories as printed on the label")
    calorie_unit: CalorieUnit = CalorieUnit.KCAL_PER_100G
    protein_pct: Optional[float] = Field(None, ge=0, le=100)
    fat_pct: Optional[float] = Field(None, ge=0, le=100)
    carbohydrate_pct: Optional[float] = Field(None, ge=0, le=100)
    fiber_pct: Optional[float] = Field(None, ge=0, le=100)
    tags: list[str] = []
    nrc_compliant: bool = False


class FoodUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    brand: Optional[str] = Field(None, max_length=200)
    kcal_per_100g: Optional[float] = Field(None, gt=0)
    protein_pct: Optional[float] = Field(None, ge=0, le=100)
    fat_pct: Optional[float] = Field(None, ge=0, le=100)
    carbohydrate_pct: Optional[float] = Field(None, ge=0, le=100)
    fiber_pct: Optional[float] = Field(None, ge=0, le=100)
    tags: Optional[list[str]] = None
    nrc_compliant: Optional[bool] = None


class FoodResponse(BaseModel):
    id: int
    name: str
    brand: Optional[str]
    food_type: FoodType
    kcal_per_100g: float
    protein_pct: Optional[float]
    fat_pct: Optional[float]
    carbohydrate_pct: Optional[float]
    fiber_pct: Optional[float]
    tags: list[str] = []
    nrc_compliant: bool

    class Config:
        from_attributes = True


class PortionConversion(BaseModel):
    value: float
    from_unit: PortionUnit
    to_unit: PortionUnit
    result: float
    grams_per_cup: int


# Feeding plan schemas
class FoodPortionSchema(BaseModel):
    food_id: int
    grams: int
    calories: float


class MealScheduleSchema(BaseModel):
    time: str
    grams: int
    calories: int
    portions: list[FoodPortionSchema] = []


class FeedingPlanResponse(BaseModel):
    cat_id: int
    food_id: Optional[int]
    total_grams_per_day: int
    total_calories_per_day: int
    am_grams: int
    pm_grams: int
    weight_goal: WeightGoal
    custom_factor: Optional[float]
    is_mixed: bool
    am_portions: list[FoodPortionSchema] = []
    pm_portions: list[FoodPortionSchema] = []
    meals_per_day: int
    feeding_type: FeedingType
    meal_schedules: list[MealScheduleSchema] = []
    treat_allowance_calories: Optional[int]

    class Config:
        from_attributes = True


class PlanPreviewRequest(BaseModel):
    cat_id: int
    food_id: int
    weight_goal: Optional[WeightGoal] = None  # Inferred from target weight when omitted
    custom_factor: Optional[float] = Field(None, ge=CUSTOM_FACTOR_MIN, le=CUSTOM_FACTOR_MAX)


class CalculationDetailsResponse(BaseModel):
    cat_id: int
    food_id: int
    weight_goal: WeightGoal
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


class SingleFoodPlanRequest(PlanPreviewRequest):
    meals_per_day: int = Field(settings.DEFAULT_MEALS_PER_DAY, ge=1, le=MAX_MEALS_PER_DAY)
    am_percent: float = Field(50, ge=0, le=100)
    feeding_type: FeedingType = FeedingType.SCHEDULED


class RatioStateSchema(BaseModel):
    dry_percent: int = Field(settings.DEFAULT_DRY_RATIO, ge=0, le=100)
    mode: RatioMode = RatioMode.USER_SET


class MealMixRequest(BaseModel):
    cat_id: int
    food_ids: list[int] = Field(..., min_length=1)
    ratio: RatioStateSchema = RatioStateSchema()
    dry_meals_per_day: int = Field(settings.DEFAULT_MEALS_PER_DAY, ge=0, le=MAX_MEALS_PER_DAY)
    wet_meals_per_day: int = Field(settings.DEFAULT_MEALS_PER_DAY, ge=0, le=MAX_MEALS_PER_DAY)


class MixedPortionsRequest(BaseModel):
    cat_id: int
    food_ids: list[int] = Field(..., min_length=1)
    ratios: Optional[list[float]] = None


class MixedPortionsResponse(BaseModel):
    cat_id: int
    target_calories: float
    portions: list[FoodPortionSchema]


# Reconciliation schemas
class PlanComparison(BaseModel):
    cat_id: int
    cat_name: str
    old_calories: float
    new_calories: float
    old_grams: float
    new_grams: float


class CatUpdateResult(BaseModel):
    """Outcome of a profile edit; `comparison` is set when the plan awaits a decision."""
    cat: CatResponse
    plan_update_pending: bool
    comparison: Optional[PlanComparison] = None


class WeightRevisionRequest(BaseModel):
    current_weight: float = Field(..., gt=0, le=50)
    weight_unit: WeightUnit = WeightUnit.KG


class WeightRevisionResponse(BaseModel):
    cat_id: int
    new_current_weight_kg: float
    target_weight_kg: Optional[float]
    target_achieved: TargetAchievement
    message: Optional[str] = None


class GoalConfirmationRequest(BaseModel):
    weight_goal: Optional[WeightGoal] = None  # None keeps the current goal
    custom_factor: Optional[float] = Field(None, ge=CUSTOM_FACTOR_MIN, le=CUSTOM_FACTOR_MAX)


# Weight Log schemas
class WeightLogResponse(BaseModel):
    id: int
    cat_id: int
    weight_kg: float
    logged_at: datetime
    notes: Optional[str]

    class Config:
        from_attributes = True


# Feeding Log schemas
class FeedingLogCreate(BaseModel):
    cat_id: Optional[int] = None
    food_id: Optional[int] = None
    custom_food_name: Optional[str] = Field(None, max_length=200)
    grams: float = Field(..., gt=0)
    # Only used for manual entries without a catalog food
    calories: Optional[float] = Field(None, ge=0)
    is_treat: bool = False
    treat_tag: Optional[TreatTag] = None
    logged_at: Optional[datetime] = None


class FeedingLogResponse(BaseModel):
    id: int
    cat_id: Optional[int]
    food_id: Optional[int]
    custom_food_name: Optional[str]
    grams: float
    calories: float
    is_treat: bool
    treat_tag: Optional[TreatTag]
    logged_at: datetime

    class Config:
        from_attributes = True


class BucketProgress(BaseModel):
    bucket: str  # "morning" or "evening"
    target_grams: int
    grams: float
    calories: float
    progress_pct: float


class DailySummary(BaseModel):
    date: str
    cat_id: int
    cat_name: str
    target_kcal: int
    total_kcal_fed: float
    total_grams_fed: float
    remaining_kcal: float
    progress_pct: float
    meals_logged: int
    buckets: list[BucketProgress]


class DayCalories(BaseModel):
    date: str
    calories: float
    goal: int


class FeedingHistory(BaseModel):
    cat_id: int
    days: list[DayCalories]
    total_feedings: int
    avg_calories_per_day: float
    streak_days: int
