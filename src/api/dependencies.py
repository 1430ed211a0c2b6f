"""Dependency injection utilities for FastAPI"""

from typing import Annotated, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from src.core.auth import require_role
from src.core.config import Settings, get_settings
from src.core.shared_types import Clock, Role, epoch_ms
from src.db.database import get_db
from src.db.repository import KeyValueStore
from src.db.retrying import RetryingStore
from src.db.sql_repository import SQLKeyValueStore
from src.services.command_service import CommandBus
from src.services.lock_service import LockService
from src.services.moderation_service import ModerationLedger
from src.services.presence_service import PresenceService

SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_clock() -> Clock:
    return epoch_ms


ClockDep = Annotated[Clock, Depends(get_clock)]


# ============================================
# Store
# ============================================


def get_store(
    settings: SettingsDep,
    clock: ClockDep,
    db: Session = Depends(get_db),
) -> KeyValueStore:
    """One store per request: nothing is shared between invocations except the database itself."""
    return RetryingStore(
        SQLKeyValueStore(db, clock=clock),
        attempts=settings.retry_attempts,
        initial_delay_sec=settings.retry_initial_delay_sec,
        max_delay_sec=settings.retry_max_delay_sec,
    )


StoreDep = Annotated[KeyValueStore, Depends(get_store)]


# ============================================
# Service Dependencies
# ============================================


def get_presence_service(store: StoreDep, settings: SettingsDep, clock: ClockDep) -> PresenceService:
    return PresenceService(store, settings, clock=clock)


def get_ledger(store: StoreDep, settings: SettingsDep, clock: ClockDep) -> ModerationLedger:
    return ModerationLedger(store, settings, clock=clock)


def get_command_bus(
    store: StoreDep,
    settings: SettingsDep,
    clock: ClockDep,
    ledger: ModerationLedger = Depends(get_ledger),
) -> CommandBus:
    return CommandBus(store, ledger, settings, clock=clock)


def get_lock_service(store: StoreDep, settings: SettingsDep, clock: ClockDep) -> LockService:
    return LockService(store, settings, clock=clock)


# ============================================
# Auth
# ============================================


def require_process(
    settings: SettingsDep,
    x_api_key: Annotated[Optional[str], Header()] = None,
) -> None:
    """Game process secret (x-api-key)."""
    require_role(Role.PROCESS, x_api_key, settings)


def require_admin(
    settings: SettingsDep,
    x_admin_key: Annotated[Optional[str], Header()] = None,
) -> None:
    """Admin panel secret (x-admin-key)."""
    require_role(Role.ADMIN, x_admin_key, settings)
