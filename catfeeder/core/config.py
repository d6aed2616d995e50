import os
from pydantic_settings import BaseSettings


def get_default_database_url() -> str:
    """Get default database URL based on environment."""
    if os.environ.get("DATABASE_URL"):
        return os.environ.get("DATABASE_URL")
    return "sqlite:///./cat_feeder.db"


class Settings(BaseSettings):
    APP_NAME: str = "Cat Feeder API"
    DATABASE_URL: str = get_default_database_url()

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""  # Empty disables the rotating file handler

    # Plan defaults
    DEFAULT_WEIGHT_UNIT: str = "kg"
    DEFAULT_DRY_RATIO: int = 70
    DEFAULT_MEALS_PER_DAY: int = 2

    SEED_SAMPLE_FOODS: bool = True

    class Config:
        env_file = ".env"


settings = Settings()
