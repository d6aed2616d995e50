"""
Seed data for the Cat Feeder database.

Includes a small catalog of typical commercial cat foods (dry, wet and
treats) with label calorie densities and guaranteed analysis.
Seeding is idempotent: foods are matched on their source_id.
"""

from catfeeder.core.database import SessionLocal, init_db
from catfeeder.core.logger import get_logger
from catfeeder.models.models import Food, FoodType

logger = get_logger("catfeeder.seed")

SAMPLE_FOODS = [
    {
        "name": "Indoor Adult Chicken Recipe",
        "brand": "Sample Kitchen",
        "food_type": FoodType.DRY,
        "source_id": "sample_dry_indoor_chicken",
        "kcal_per_100g": 375,
        "protein_pct": 34,
        "fat_pct": 14,
        "carbohydrate_pct": 34,
        "fiber_pct": 7,
        "tags": ["indoor", "adult"],
        "nrc_compliant": True,
    },
    {
        "name": "Salmon & Rice Dry Formula",
        "brand": "Sample Kitchen",
        "food_type": FoodType.DRY,
        "source_id": "sample_dry_salmon_rice",
        "kcal_per_100g": 350,
        "protein_pct": 32,
        "fat_pct": 12,
        "carbohydrate_pct": 38,
        "fiber_pct": 4,
        "tags": ["adult", "sensitive stomach"],
        "nrc_compliant": True,
    },
    {
        "name": "Weight Control Dry",
        "brand": "Sample Kitchen",
        "food_type": FoodType.DRY,
        "source_id": "sample_dry_weight_control",
        "kcal_per_100g": 310,
        "protein_pct": 36,
        "fat_pct": 9,
        "carbohydrate_pct": 32,
        "fiber_pct": 11,
        "tags": ["weight control"],
        "nrc_compliant": True,
    },
    {
        "name": "Chicken Pate",
        "brand": "Sample Kitchen",
        "food_type": FoodType.WET,
        "source_id": "sample_wet_chicken_pate",
        "kcal_per_100g": 90,
        "protein_pct": 11,
        "fat_pct": 5,
        "carbohydrate_pct": 2,
        "fiber_pct": 1,
        "tags": ["pate", "grain free"],
        "nrc_compliant": True,
    },
    {
        "name": "Tuna Flakes in Gravy",
        "brand": "Sample Kitchen",
        "food_type": FoodType.WET,
        "source_id": "sample_wet_tuna_gravy",
        "kcal_per_100g": 80,
        "protein_pct": 10,
        "fat_pct": 3,
        "carbohydrate_pct": 3,
        "fiber_pct": 1,
        "tags": ["gravy"],
        "nrc_compliant": False,
    },
    {
        "name": "Freeze-Dried Chicken Bites",
        "brand": "Sample Kitchen",
        "food_type": FoodType.TREAT,
        "source_id": "sample_treat_chicken_bites",
        "kcal_per_100g": 400,
        "protein_pct": 70,
        "fat_pct": 10,
        "carbohydrate_pct": 2,
        "fiber_pct": 1,
        "tags": ["single ingredient"],
        "nrc_compliant": False,
    },
    {
        "name": "Dental Crunch Treats",
        "brand": "Sample Kitchen",
        "food_type": FoodType.TREAT,
        "source_id": "sample_treat_dental",
        "kcal_per_100g": 330,
        "protein_pct": 28,
        "fat_pct": 13,
        "carbohydrate_pct": 40,
        "fiber_pct": 5,
        "tags": ["dental"],
        "nrc_compliant": False,
    },
]


def seed_sample_foods(db) -> int:
    """Add sample foods that are not in the catalog yet.

    Returns the number of foods added.
    """
    added = 0
    for food_data in SAMPLE_FOODS:
        existing = db.query(Food).filter(Food.source_id == food_data["source_id"]).first()
        if not existing:
            db.add(Food(**food_data))
            added += 1

    db.commit()
    logger.info("Sample foods seeded: %d added", added)
    return added


def run_seed():
    """Run all seed functions."""
    init_db()
    db = SessionLocal()
    try:
        seed_sample_foods(db)
        logger.info("Seed data complete")
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
