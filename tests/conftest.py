"""Shared fixtures: in-memory store, fixed clock and guide."""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from config.database import DatabaseManager
from config.settings import settings
from predictions.predictor_engine import AnalysisEngine
from utils.cache import CacheManager
from utils.guide import SymbolicGuide
from tests.builders import GUIDE_DATA


@pytest.fixture
def now():
    return datetime(2024, 3, 1, 16, 0)


@pytest.fixture
def guide():
    return SymbolicGuide.from_dict(GUIDE_DATA)


@pytest.fixture
def db():
    manager = DatabaseManager(settings.test_database_url)
    manager.init_database()
    yield manager
    manager.drop_database()


@pytest.fixture
def engine(db, guide):
    return AnalysisEngine(db=db, guide=guide, cache=CacheManager(enabled=False))


@pytest.fixture
def client(engine):
    from api.routes import app, get_engine, limiter

    app.dependency_overrides[get_engine] = lambda: engine
    limiter.enabled = False
    yield TestClient(app)
    app.dependency_overrides.clear()
