"""Unit tests for the expired row sweep (src/db/database.py, src/main.py)"""

import asyncio

from sqlalchemy.orm import Session, sessionmaker

from src.core.exceptions import StoreError
from src.db.database import purge_expired_entries
from src.db.sql_repository import SQLKeyValueStore
from src.main import purge_loop
from tests.fakes import FakeClock


def test_purge_removes_keys_nobody_reads_again(db_session_repo: Session) -> None:
    """Studio snapshots and cooldown marks are never read after expiry, the sweep still removes them."""
    clock = FakeClock()
    repo = SQLKeyValueStore(db_session_repo, clock=clock)
    repo.put("srv:100:studio-1", "{}", ttl_sec=180)
    repo.put("srv:100:studio-2", "{}", ttl_sec=180)
    repo.put("lock_cooldown:mod_anna", '{"at": 0}', ttl_sec=10)
    repo.put("srv:100:abc", "{}", ttl_sec=600)
    repo.put("server_index", "{}")

    clock.advance(200)
    session_factory = sessionmaker(autoflush=False, bind=db_session_repo.get_bind())
    assert purge_expired_entries(session_factory, clock=clock) == 3

    db_session_repo.expire_all()
    assert repo.get("srv:100:abc") == "{}"
    assert repo.get("server_index") == "{}"


def test_purge_with_nothing_expired(db_session_repo: Session) -> None:
    clock = FakeClock()
    SQLKeyValueStore(db_session_repo, clock=clock).put("cmd:1", "{}", ttl_sec=600)

    session_factory = sessionmaker(autoflush=False, bind=db_session_repo.get_bind())
    assert purge_expired_entries(session_factory, clock=clock) == 0


# --- BACKGROUND SWEEP ---
def run_briefly(coroutine, seconds: float = 0.05) -> None:
    async def runner() -> None:
        task = asyncio.create_task(coroutine)
        await asyncio.sleep(seconds)
        task.cancel()

    asyncio.run(runner())


def test_purge_loop_sweeps_repeatedly() -> None:
    calls = []

    def purge() -> int:
        calls.append(1)
        return 0

    run_briefly(purge_loop(0, purge))
    assert len(calls) >= 2


def test_purge_loop_survives_store_failure() -> None:
    """A failed sweep is logged and retried on the next tick."""
    calls = []

    def purge() -> int:
        calls.append(1)
        if len(calls) == 1:
            raise StoreError("database is locked")
        return 0

    run_briefly(purge_loop(0, purge))
    assert len(calls) >= 2
