"""
Cat Feeder API - Main Application

A local backend for planning a cat's daily food: calorie needs from
RER/MER, portions in grams or cups, AM/PM and dry/wet meal splits, and
plan updates when the cat's profile changes.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from catfeeder.core.config import settings
from catfeeder.core.database import SessionLocal, init_db
from catfeeder.core.error_handlers import register_exception_handlers
from catfeeder.core.logger import get_logger
from catfeeder.api import cats, foods, plans, logs
from catfeeder.seed_data import seed_sample_foods

logger = get_logger("catfeeder.main")

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and load the sample catalog before serving requests."""
    init_db()
    if settings.SEED_SAMPLE_FOODS:
        db = SessionLocal()
        try:
            seed_sample_foods(db)
        finally:
            db.close()
    logger.info("%s %s started", settings.APP_NAME, VERSION)
    yield


app = FastAPI(
    title=settings.APP_NAME,
    description="""
    ## Cat Feeder API

    Work out how much a cat should eat, and keep the plan in step with
    the cat's profile.

    ### Features
    - Calorie needs from RER/MER with activity and neuter status
    - Weight goals (maintain, lose, gain, custom factor)
    - Gram and cup portions, kcal/100g, kcal/cup and kcal ME/kg labels
    - AM/PM splits and dry/wet meal mixes
    - Plan comparison when a profile edit changes the calories

    ### Core Endpoints
    - `/cat` - Manage cat profiles
    - `/food` - Manage the food catalog
    - `/plan` - Build and save feeding plans
    - `/log` - Log feedings and follow daily progress
    """,
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    response = await call_next(request)
    logger.debug("%s %s -> %s", request.method, request.url.path, response.status_code)
    return response


app.include_router(cats.router)
app.include_router(foods.router)
app.include_router(plans.router)
app.include_router(logs.router)


@app.get("/")
def root():
    """Service name, version and where each resource lives."""
    return {
        "name": settings.APP_NAME,
        "version": VERSION,
        "docs": "/docs",
        "endpoints": {
            "cats": "/cat",
            "foods": "/food",
            "plans": "/plan",
            "logs": "/log",
        }
    }


@app.get("/health")
def health_check():
    return {"status": "healthy"}
