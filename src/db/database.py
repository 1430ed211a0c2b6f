"""Generate database session"""

from functools import lru_cache
from typing import Generator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.core.config import get_settings
from src.core.shared_types import Clock, epoch_ms
from src.db.schema import Base
from src.db.sql_repository import SQLKeyValueStore


@lru_cache
def get_engine() -> Engine:
    database_url = get_settings().database_url
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


@lru_cache
def get_session_factory() -> sessionmaker[Session]:
    return sessionmaker(autoflush=False, bind=get_engine())


def init_db() -> None:
    """Ensure all tables are created"""
    Base.metadata.create_all(bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def purge_expired_entries(
    session_factory: Optional[sessionmaker[Session]] = None, clock: Clock = epoch_ms
) -> int:
    """
    Remove expired rows nobody will read again (pruned snapshots, expired commands, old cooldown marks).
    Returns the number of removed rows.
    """
    db = (session_factory or get_session_factory())()
    try:
        return SQLKeyValueStore(db, clock=clock).purge_expired()
    finally:
        db.close()
