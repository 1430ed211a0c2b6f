"""Global game lock, toggled by admins with a per-identity cooldown."""

import logging
import math

from src.api.models import LockStateResponse, SetLockRequest, SetLockResponse
from src.core.config import Settings
from src.core.exceptions import CooldownError
from src.core.models import GameLock, cooldown_key
from src.core.shared_types import Clock, epoch_ms
from src.db import codec
from src.db.repository import KeyValueStore

logger = logging.getLogger(__name__)

LOCK_KEY = "game_lock"


class LockService:
    """Singleton lock state. Last write wins across identities."""

    def __init__(self, store: KeyValueStore, settings: Settings, clock: Clock = epoch_ms) -> None:
        self.store = store
        self.settings = settings
        self.clock = clock

    def get_lock(self) -> LockStateResponse:
        """Current lock state; nothing stored means unlocked."""
        lock = self._load_lock()
        return LockStateResponse(locked=lock.locked, by=lock.by, at=lock.at)

    def set_lock(self, request: SetLockRequest) -> SetLockResponse:
        """Overwrite the lock, unless this identity toggled it within the cooldown."""
        now = self.clock()
        identity = request.identity
        cooldown_ms = self.settings.lock_cooldown_sec * 1000

        last_toggle = self._last_toggle(identity)
        if last_toggle is not None and now - last_toggle < cooldown_ms:
            retry_after = max(1, math.ceil((cooldown_ms - (now - last_toggle)) / 1000))
            logger.info(f"Lock toggle by {identity!r} refused, cooldown {retry_after}s left")
            raise CooldownError(f"Cooldown active, retry in {retry_after}s.", retry_after)

        lock = GameLock(locked=request.locked, by=identity, at=now)
        self.store.put(LOCK_KEY, codec.dumps(lock.to_dict()))
        self.store.put(
            cooldown_key(identity),
            codec.dumps({"at": now}),
            ttl_sec=self.settings.lock_cooldown_sec,
        )

        logger.info(f"Game {'locked' if lock.locked else 'unlocked'} by {identity!r}")
        return SetLockResponse(locked=lock.locked, by=lock.by, at=lock.at)

    # -- Internal helpers --
    def _load_lock(self) -> GameLock:
        return GameLock.from_dict(codec.loads_object(self.store.get(LOCK_KEY), LOCK_KEY))

    def _last_toggle(self, identity: str) -> int | None:
        key = cooldown_key(identity)
        mark = codec.loads_object(self.store.get(key), key)
        try:
            return int(mark["at"])
        except (KeyError, TypeError, ValueError):
            return None
