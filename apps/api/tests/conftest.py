"""
Pytest configuration and fixtures

The dive insight tests run without Postgres, Redis or a model:
- pipeline/unit tests use FakeDiveStore and FakeTextProvider
- SqlDiveStore tests use an in-memory SQLite engine
"""
import os
import sys

# Settings are read at import time; provide test values before any app import
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-dive-insight-tests-0123456789")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("GOOGLE_AI_API_KEY", "")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base
import models  # noqa: F401  registers tables on Base.metadata

from dive_insight_fakes import FakeDiveStore, FakeTextProvider


@pytest.fixture
def sqlite_session_factory():
    """Fresh in-memory database per test, shared across threads."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    yield factory
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def fake_store():
    return FakeDiveStore()


@pytest.fixture
def fake_provider():
    return FakeTextProvider()


@pytest.fixture
def sesimbra_dive():
    """A fully logged dive at a site the diver has visited before."""
    return {
        "id": "dive-sesimbra-1",
        "location": "Sesimbra",
        "country": "Portugal",
        "date": "2026-03-01",
        "depth": 24,
        "duration": 42,
        "water_temp": 16,
        "visibility": "good",
        "dive_type": "wall",
        "currents": "mild",
        "gas": "air",
        "cylinder_size": 12,
        "notes": "Octopus under the ledge.",
    }
