"""Feeding log API endpoints."""

from datetime import datetime, timedelta, timezone
from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from catfeeder.core.database import get_db
from catfeeder.core.calculations import calculate_calories_for_goal, grams_to_kcal, infer_weight_goal, round_half_up
from catfeeder.core.exceptions import InvalidInputError, NotFoundError
from catfeeder.core.logger import get_logger
from catfeeder.models.models import Cat, FeedingLog, Food
from catfeeder.schemas.schemas import (
    BucketProgress,
    DailySummary,
    DayCalories,
    FeedingHistory,
    FeedingLogCreate,
    FeedingLogResponse,
)
from catfeeder.api.cats import get_cat_or_404

router = APIRouter(prefix="/log", tags=["logs"])
logger = get_logger("catfeeder.api.logs")

AVERAGE_WINDOW_DAYS = 30
MAX_STREAK_DAYS = 365
MORNING_END_HOUR = 12


def _logs_for_cat(db: Session, cat_id: int):
    """Logs of a cat, plus logs that were never tied to a cat."""
    return db.query(FeedingLog).filter(or_(FeedingLog.cat_id == cat_id, FeedingLog.cat_id.is_(None)))


def to_utc(moment: datetime) -> datetime:
    """Naive UTC, the form timestamps are stored in. Naive input is taken as UTC."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def _start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _daily_target(cat: Cat) -> int:
    """Plan calories, or the goal calories when the cat has no plan yet."""
    if cat.feeding_plan is not None:
        return cat.feeding_plan.total_calories_per_day
    goal = infer_weight_goal(cat.current_weight_kg, cat.target_weight_kg)
    return round_half_up(calculate_calories_for_goal(cat, goal))


def count_streak(logged_days: set, today) -> int:
    """Consecutive days with at least one log, counting back from today."""
    streak = 0
    for offset in range(MAX_STREAK_DAYS):
        if today - timedelta(days=offset) not in logged_days:
            break
        streak += 1
    return streak


# ==================== Feeding Logs ====================

@router.post("/feeding", response_model=FeedingLogResponse, status_code=201)
def create_feeding_log(log: FeedingLogCreate, db: Session = Depends(get_db)):
    """
    Log a feeding.

    Calories are worked out once from the food's density and stored; manual
    entries without a catalog food must supply them.
    """
    if log.cat_id is not None:
        get_cat_or_404(db, log.cat_id)

    if log.food_id is not None:
        food = db.query(Food).filter(Food.id == log.food_id).first()
        if not food:
            raise NotFoundError("Food", log.food_id)
        calories = grams_to_kcal(log.grams, food.kcal_per_100g)
    elif log.calories is not None:
        calories = log.calories
    else:
        raise InvalidInputError("Calories are required when no catalog food is given", field="calories")

    feeding_log = FeedingLog(
        cat_id=log.cat_id,
        food_id=log.food_id,
        custom_food_name=log.custom_food_name,
        grams=log.grams,
        calories=calories,
        is_treat=log.is_treat,
        treat_tag=log.treat_tag if log.is_treat else None,
        logged_at=to_utc(log.logged_at) if log.logged_at else datetime.utcnow(),
    )
    db.add(feeding_log)
    db.commit()
    db.refresh(feeding_log)
    logger.info("Logged %.0fg (%.0f kcal) for cat %s", feeding_log.grams, feeding_log.calories, feeding_log.cat_id)
    return feeding_log


@router.get("/feeding/cat/{cat_id}", response_model=list[FeedingLogResponse])
def get_feeding_logs_for_cat(
    cat_id: int,
    days: int = Query(7, ge=1, le=365),
    db: Session = Depends(get_db)
):
    """Get feeding history for a cat, newest first."""
    get_cat_or_404(db, cat_id)

    since = datetime.utcnow() - timedelta(days=days)
    return (
        _logs_for_cat(db, cat_id)
        .filter(FeedingLog.logged_at >= since)
        .order_by(FeedingLog.logged_at.desc())
        .all()
    )


@router.get("/feeding/today/{cat_id}", response_model=list[FeedingLogResponse])
def get_todays_feeding_logs(cat_id: int, db: Session = Depends(get_db)):
    """Get today's feeding logs for a cat."""
    get_cat_or_404(db, cat_id)

    today_start = _start_of_day(datetime.utcnow())
    return (
        _logs_for_cat(db, cat_id)
        .filter(FeedingLog.logged_at >= today_start)
        .order_by(FeedingLog.logged_at.desc())
        .all()
    )


@router.delete("/feeding/{log_id}", status_code=204)
def delete_feeding_log(log_id: int, db: Session = Depends(get_db)):
    """Delete a feeding log entry."""
    log = db.query(FeedingLog).filter(FeedingLog.id == log_id).first()
    if not log:
        raise NotFoundError("Feeding log", log_id)

    db.delete(log)
    db.commit()
    return None


# ==================== Daily Summary ====================

@router.get("/summary/today/{cat_id}", response_model=DailySummary)
def get_daily_summary(cat_id: int, db: Session = Depends(get_db)):
    """
    Today's feeding summary for a cat.

    Progress is measured against the plan's daily calories. Grams fed
    before noon count toward the morning target (am_grams), the rest
    toward the evening target (pm_grams).
    """
    cat = get_cat_or_404(db, cat_id)

    today_start = _start_of_day(datetime.utcnow())
    logs = _logs_for_cat(db, cat_id).filter(FeedingLog.logged_at >= today_start).all()

    total_kcal_fed = sum(log.calories for log in logs)
    total_grams_fed = sum(log.grams for log in logs)
    target_kcal = _daily_target(cat)

    plan = cat.feeding_plan
    if plan is not None:
        am_target, pm_target = plan.am_grams, plan.pm_grams
    else:
        am_target = pm_target = 0

    buckets = []
    for name, target, in_bucket in (
        ("morning", am_target, lambda hour: hour < MORNING_END_HOUR),
        ("evening", pm_target, lambda hour: hour >= MORNING_END_HOUR),
    ):
        bucket_logs = [log for log in logs if in_bucket(log.logged_at.hour)]
        grams = sum(log.grams for log in bucket_logs)
        buckets.append(BucketProgress(
            bucket=name,
            target_grams=target,
            grams=round(grams, 2),
            calories=round(sum(log.calories for log in bucket_logs), 2),
            progress_pct=round(min(100, grams / target * 100), 2) if target > 0 else 0,
        ))

    return DailySummary(
        date=today_start.strftime("%Y-%m-%d"),
        cat_id=cat.id,
        cat_name=cat.name,
        target_kcal=target_kcal,
        total_kcal_fed=round(total_kcal_fed, 2),
        total_grams_fed=round(total_grams_fed, 2),
        remaining_kcal=round(max(0, target_kcal - total_kcal_fed), 2),
        progress_pct=round(total_kcal_fed / target_kcal * 100, 2) if target_kcal > 0 else 0,
        meals_logged=len(logs),
        buckets=buckets,
    )


@router.get("/history/{cat_id}", response_model=FeedingHistory)
def get_feeding_history(
    cat_id: int,
    days: int = Query(7, ge=1, le=AVERAGE_WINDOW_DAYS),
    db: Session = Depends(get_db)
):
    """
    Calories per day for the last `days` days against the plan goal.

    The average is always taken over a 30-day window (sum / 30), and the
    streak counts consecutive logged days ending today.
    """
    cat = get_cat_or_404(db, cat_id)
    logs = _logs_for_cat(db, cat_id).all()

    today = datetime.utcnow().date()
    calories_by_day: dict = {}
    for log in logs:
        day = log.logged_at.date()
        calories_by_day[day] = calories_by_day.get(day, 0) + log.calories

    goal = cat.feeding_plan.total_calories_per_day if cat.feeding_plan is not None else 0
    series = []
    for offset in range(days - 1, -1, -1):
        day = today - timedelta(days=offset)
        series.append(DayCalories(
            date=day.isoformat(),
            calories=round(calories_by_day.get(day, 0), 2),
            goal=goal,
        ))

    window_start = today - timedelta(days=AVERAGE_WINDOW_DAYS - 1)
    window_total = sum(kcal for day, kcal in calories_by_day.items() if window_start <= day <= today)

    return FeedingHistory(
        cat_id=cat.id,
        days=series,
        total_feedings=len(logs),
        avg_calories_per_day=round(window_total / AVERAGE_WINDOW_DAYS, 2),
        streak_days=count_streak(set(calories_by_day), today),
    )
