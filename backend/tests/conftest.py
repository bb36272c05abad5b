"""
Shared test fixtures for StockLedger tests

Provides database setup and client creation
"""
import os

# Settings are read at import time; point them at SQLite before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from stockledger.core.config import settings  # noqa: E402
from stockledger.db.base import Base  # noqa: E402
from stockledger.db.session import enable_sqlite_savepoints, get_db  # noqa: E402
from stockledger.main import app  # noqa: E402

from tests.factories import reset_sequences  # noqa: E402


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
enable_sqlite_savepoints(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(engine):
    """Create all tables for testing using SQLAlchemy metadata"""
    # Import all models to ensure they're registered with Base
    import stockledger.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def drop_tables(engine):
    """Drop all tables after testing"""
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Create a fresh database session for each test"""
    create_tables(engine)
    reset_sequences()

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        drop_tables(engine)


@pytest.fixture
def client(db_session):
    """Create a test client with database override"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def user_headers():
    """Gateway-supplied identity header"""
    return {"X-User-Id": "tester@example.com"}


@pytest.fixture
def non_atomic_adjustments(monkeypatch):
    """Apply adjustment lines in independent savepoints for the test."""
    monkeypatch.setattr(settings, "ADJUSTMENT_ATOMIC_BATCH", False)


@pytest.fixture
def deduct_on_invoice(monkeypatch):
    """Deduct invoiced quantities from on-hand for the test."""
    monkeypatch.setattr(settings, "INVENTORY_DEDUCTION_POINT", "invoice")
