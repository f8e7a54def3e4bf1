"""Pytest configuration and shared fixtures."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from shiftguard.domain.models import Base, Membership


def pytest_configure(config):
    """Configure pytest."""
    # Add custom markers
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (deselect with '-m \"not integration\"')"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


def utc(day: int, hour: int, minute: int = 0, month: int = 3, year: int = 2025) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _default_config_env(monkeypatch):
    """Run every test against the default configuration (Europe/Warsaw)."""
    for name in ("SHIFTGUARD_DB_URL", "SHIFTGUARD_TIMEZONE", "SHIFTGUARD_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_session():
    """Create in-memory database session for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def staff(db_session):
    """One restaurant with a manager and two employees."""
    members = {
        "manager": Membership(
            id="m-manager", user_id="u-anna", restaurant_id="r1", role="manager",
            display_name="Anna", hourly_rate_default=Decimal("30.00"), hourly_rate_manager=Decimal("40.00"),
        ),
        "ben": Membership(
            id="m-ben", user_id="u-ben", restaurant_id="r1", role="employee",
            display_name="Ben", hourly_rate_default=Decimal("25.00"),
        ),
        "cara": Membership(
            id="m-cara", user_id="u-cara", restaurant_id="r1", role="employee",
            display_name="Cara", hourly_rate_default=Decimal("20.00"),
        ),
        "outsider": Membership(
            id="m-outsider", user_id="u-olga", restaurant_id="r2", role="manager", display_name="Olga",
        ),
    }
    db_session.add_all(members.values())
    db_session.commit()
    return members
