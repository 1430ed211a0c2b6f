"""Unit tests for src/services/lock_service.py"""

import pytest

from src.api.models import SetLockRequest
from src.core.config import Settings
from src.core.exceptions import CooldownError
from src.services.lock_service import LockService
from tests.fakes import FakeClock, InMemoryStore


@pytest.fixture
def service(store: InMemoryStore, settings: Settings, clock: FakeClock) -> LockService:
    return LockService(store, settings, clock=clock)


def test_unlocked_by_default(service: LockService) -> None:
    state = service.get_lock()
    assert state.locked is False
    assert state.by == ""
    assert state.at is None


def test_set_and_read_lock(service: LockService, clock: FakeClock) -> None:
    response = service.set_lock(SetLockRequest(locked=True, identity="mod_anna"))

    assert response.locked
    state = service.get_lock()
    assert state.locked
    assert state.by == "mod_anna"
    assert state.at == clock()


def test_second_toggle_inside_cooldown_is_refused(service: LockService, clock: FakeClock) -> None:
    service.set_lock(SetLockRequest(locked=True, identity="mod_anna"))
    clock.advance(3)

    with pytest.raises(CooldownError) as exc_info:
        service.set_lock(SetLockRequest(locked=False, identity="mod_anna"))

    assert exc_info.value.retry_after_sec == 7
    assert service.get_lock().locked


def test_other_identity_is_not_affected(service: LockService) -> None:
    """Cooldown is per identity; last write wins across identities."""
    service.set_lock(SetLockRequest(locked=True, identity="mod_anna"))
    service.set_lock(SetLockRequest(locked=False, identity="mod_ben"))

    state = service.get_lock()
    assert state.locked is False
    assert state.by == "mod_ben"


def test_toggle_allowed_after_cooldown(
    service: LockService, clock: FakeClock, settings: Settings
) -> None:
    service.set_lock(SetLockRequest(locked=True, identity="mod_anna"))
    clock.advance(settings.lock_cooldown_sec)

    service.set_lock(SetLockRequest(locked=False, identity="mod_anna"))
    assert service.get_lock().locked is False


def test_retry_after_is_at_least_one_second(service: LockService, clock: FakeClock, settings: Settings) -> None:
    service.set_lock(SetLockRequest(locked=True, identity="mod_anna"))
    clock.now += settings.lock_cooldown_sec * 1000 - 1

    with pytest.raises(CooldownError) as exc_info:
        service.set_lock(SetLockRequest(locked=True, identity="mod_anna"))
    assert exc_info.value.retry_after_sec == 1
