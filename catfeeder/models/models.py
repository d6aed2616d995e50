from datetime import datetime

from sqlalchemy import Column, Integer, String, Float, Boolean, Enum, ForeignKey, DateTime, JSON
from sqlalchemy.orm import relationship
import enum

from catfeeder.core.calculations import ActivityLevel, BodyCondition, WeightGoal
from catfeeder.core.database import Base
from catfeeder.core.units import WeightUnit


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"


class FoodType(str, enum.Enum):
    DRY = "dry"
    WET = "wet"
    TREAT = "treat"
    PRESCRIPTION = "prescription"
    CUSTOM = "custom"


class TreatTag(str, enum.Enum):
    TRAINING = "training"
    SNACK = "snack"
    HEALTH = "health"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Cat(Base):
    __tablename__ = "cats"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    breed = Column(String, nullable=True)
    gender = Column(Enum(Gender, values_callable=_enum_values), nullable=False)
    age_years = Column(Float, nullable=False)
    current_weight_kg = Column(Float, nullable=False)
    target_weight_kg = Column(Float, nullable=True)
    weight_unit_preference = Column(Enum(WeightUnit, values_callable=_enum_values), default=WeightUnit.KG)
    is_neutered = Column(Boolean, nullable=False)
    activity_level = Column(Enum(ActivityLevel, values_callable=_enum_values), default=ActivityLevel.MEDIUM)
    body_condition = Column(Enum(BodyCondition, values_callable=_enum_values), nullable=True)
    selected_food_id = Column(Integer, ForeignKey("foods.id", ondelete="SET NULL"), nullable=True)
    selected_food_ids = Column(JSON, default=list)
    library_food_ids = Column(JSON, default=list)

    feeding_plan = relationship(
        "FeedingPlan", back_populates="cat", uselist=False, cascade="all, delete-orphan"
    )
    weight_logs = relationship("WeightLog", back_populates="cat", cascade="all, delete-orphan")
    feeding_logs = relationship("FeedingLog", back_populates="cat", cascade="all, delete-orphan")


class Food(Base):
    __tablename__ = "foods"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    brand = Column(String, nullable=True)
    food_type = Column(Enum(FoodType, values_callable=_enum_values), nullable=False)
    kcal_per_100g = Column(Float, nullable=False)
    protein_pct = Column(Float, nullable=True)
    fat_pct = Column(Float, nullable=True)
    carbohydrate_pct = Column(Float, nullable=True)
    fiber_pct = Column(Float, nullable=True)
    tags = Column(JSON, default=list)
    nrc_compliant = Column(Boolean, default=False)
    source_id = Column(String, nullable=True, unique=True)


class FeedingPlan(Base):
    __tablename__ = "feeding_plans"

    id = Column(Integer, primary_key=True, index=True)
    cat_id = Column(Integer, ForeignKey("cats.id"), nullable=False, unique=True)
    food_id = Column(Integer, ForeignKey("foods.id", ondelete="SET NULL"), nullable=True)
    total_grams_per_day = Column(Integer, nullable=False)
    total_calories_per_day = Column(Integer, nullable=False)
    am_grams = Column(Integer, nullable=False)
    pm_grams = Column(Integer, nullable=False)
    weight_goal = Column(Enum(WeightGoal, values_callable=_enum_values), default=WeightGoal.MAINTAIN)
    custom_factor = Column(Float, nullable=True)
    is_mixed = Column(Boolean, default=False)
    am_portions = Column(JSON, default=list)
    pm_portions = Column(JSON, default=list)
    meals_per_day = Column(Integer, default=2)
    feeding_type = Column(String, default="scheduled")
    meal_schedules = Column(JSON, default=list)
    treat_allowance_calories = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    cat = relationship("Cat", back_populates="feeding_plan")


class WeightLog(Base):
    __tablename__ = "weight_logs"

    id = Column(Integer, primary_key=True, index=True)
    cat_id = Column(Integer, ForeignKey("cats.id"), nullable=False)
    weight_kg = Column(Float, nullable=False)
    logged_at = Column(DateTime, default=datetime.utcnow)
    notes = Column(String, nullable=True)

    cat = relationship("Cat", back_populates="weight_logs")


class FeedingLog(Base):
    __tablename__ = "feeding_logs"

    id = Column(Integer, primary_key=True, index=True)
    cat_id = Column(Integer, ForeignKey("cats.id"), nullable=True)
    food_id = Column(Integer, ForeignKey("foods.id", ondelete="SET NULL"), nullable=True)
    custom_food_name = Column(String, nullable=True)
    grams = Column(Float, nullable=False)
    # Fixed when the log is written; later food edits don't change it
    calories = Column(Float, nullable=False)
    is_treat = Column(Boolean, default=False)
    treat_tag = Column(Enum(TreatTag, values_callable=_enum_values), nullable=True)
    logged_at = Column(DateTime, default=datetime.utcnow)

    cat = relationship("Cat", back_populates="feeding_logs")
