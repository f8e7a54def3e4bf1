"""Engine and session setup for the shiftguard database."""

from __future__ import annotations

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from shiftguard.config import DEFAULT_DB_URL

from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")  # assignments and entries must reference real rows
    cursor.close()


def create_db_engine(db_url: str = DEFAULT_DB_URL, echo: bool = False) -> Engine:
    """Create an engine; SQLite connections get foreign key enforcement."""
    engine = create_engine(db_url, echo=echo)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def init_database(db_url: str = DEFAULT_DB_URL) -> Engine:
    """Create missing tables and return the engine."""
    engine = create_db_engine(db_url)
    Base.metadata.create_all(engine)
    logger.info("Database initialized: %s (%d tables)", db_url, len(Base.metadata.tables))
    return engine


def get_session_factory(db_url: str = DEFAULT_DB_URL) -> sessionmaker:
    return sessionmaker(bind=create_db_engine(db_url))


def get_session(db_url: str = DEFAULT_DB_URL) -> Session:
    """Open a session; callers commit or roll back and close it."""
    return get_session_factory(db_url)()


def reset_database(db_url: str = DEFAULT_DB_URL) -> Engine:
    """Drop and recreate every table. All memberships, entries, reports and logs are lost."""
    engine = create_db_engine(db_url)
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    logger.warning("Database reset: %s", db_url)
    return engine
