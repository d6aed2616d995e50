"""Shared fixtures: an in-memory database and a TestClient bound to it."""

import os

# Keep the app from touching a real database file or seeding at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SEED_SAMPLE_FOODS"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from catfeeder.core.database import Base, enable_sqlite_foreign_keys, get_db, init_db
from catfeeder.main import app
from catfeeder.services.reconciliation import comparison_store, weight_revision_store


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    init_db(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    comparison_store.clear()
    weight_revision_store.clear()
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    comparison_store.clear()
    weight_revision_store.clear()
