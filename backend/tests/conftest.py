"""
Test configuration and shared fixtures for the clinic booking test suite.

Runs against TEST_DATABASE_URL when set (e.g. a PostgreSQL test database),
otherwise against a throwaway SQLite file. The schema is built once per
session by running the Alembic migrations; every test starts from empty
tables.
"""

import os
import tempfile
from pathlib import Path
from typing import Callable, Generator

# Point the application at the test database before anything imports core.database
_sqlite_dir = tempfile.mkdtemp(prefix="clinic_booking_tests_")
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", f"sqlite:///{Path(_sqlite_dir) / 'test.db'}")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool

from alembic import command
from alembic.config import Config

from core.database import Base, build_engine, get_db
import models  # noqa: F401  (register every mapper on Base.metadata)

BACKEND_DIR = Path(__file__).resolve().parent.parent


@pytest.fixture(scope="session")
def db_engine():
    """
    Create a database engine for the test session.

    Uses NullPool so every session gets its own connection, which lets race
    tests run two sessions side by side.
    """
    engine = build_engine(TEST_DATABASE_URL, poolclass=NullPool, echo=False)

    yield engine

    engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def setup_test_database(db_engine):
    """
    Build the test schema from the Alembic migrations (base -> head).

    Running the real migrations keeps the baseline migration and the models
    honest with each other.
    """
    alembic_cfg = Config(str(BACKEND_DIR / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", TEST_DATABASE_URL)

    Base.metadata.drop_all(bind=db_engine)
    with db_engine.begin() as conn:
        conn.execute(text("DROP TABLE IF EXISTS alembic_version"))

    command.upgrade(alembic_cfg, "head")

    yield

    Base.metadata.drop_all(bind=db_engine)
    with db_engine.begin() as conn:
        conn.execute(text("DROP TABLE IF EXISTS alembic_version"))


@pytest.fixture(scope="function", autouse=True)
def clean_tables(db_engine) -> Generator[None, None, None]:
    """Empty every table after each test (tests commit for real)."""
    yield
    with db_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="function")
def session_factory(db_engine) -> Callable[[], Session]:
    """Session factory configured like the application's SessionLocal."""
    return sessionmaker(bind=db_engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    """Provide a database session for a test."""
    session = session_factory()

    yield session

    session.rollback()
    session.close()


@pytest.fixture(scope="function")
def client(session_factory) -> Generator[TestClient, None, None]:
    """
    HTTP client for the application, one fresh session per request.

    The lifespan (and with it the cleanup scheduler) is not started.
    """
    from main import app

    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.pop(get_db, None)
