"""
Pytest will auto-discover / import this file called 'conftest.py'.
This file defines fixtures/variables required for testing multiple layers.
"""

from typing import Generator

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.core.config import Settings
from src.db.schema import Base
from tests.fakes import FakeClock, InMemoryStore

# Setup an in-memory SQLite database for testing
DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> Generator[InMemoryStore, None, None]:
    """Ensures to clear the store between tests"""
    memory_store = InMemoryStore(clock)
    try:
        yield memory_store
    finally:
        memory_store.clear()


@pytest.fixture
def settings() -> Settings:
    """Settings independent of whatever environment the tests run in."""
    return Settings(
        _env_file=None,
        api_key="process-secret",
        admin_key="admin-secret",
        clear_logs_identity="root-operator",
        snapshot_ttl_sec=180,
        index_refresh_interval_sec=30,
        command_ttl_sec=600,
        max_log_entries=900,
        lock_cooldown_sec=10,
    )


@pytest.fixture
def db_session_repo() -> Generator[Session, None, None]:
    """Connection to a test database. Tables are removed at teardown to make unit tests of the store independent of each other."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        Base.metadata.drop_all(bind=engine)
        db.close()
