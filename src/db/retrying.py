"""
Write retries for an overloaded store.

Wraps any KeyValueStore. Reads pass straight through; writes that fail with TransientStoreError are retried with
capped exponential backoff, and the last error is re-raised once the attempts run out.
"""

import logging
import time
from typing import Callable, Optional

from src.core.exceptions import TransientStoreError
from src.db.repository import KeyValueStore

logger = logging.getLogger(__name__)


class RetryingStore:
    """KeyValueStore decorator adding bounded backoff on writes."""

    def __init__(
        self,
        inner: KeyValueStore,
        attempts: int = 5,
        initial_delay_sec: float = 0.15,
        max_delay_sec: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.inner = inner
        self.attempts = max(1, attempts)
        self.initial_delay_sec = initial_delay_sec
        self.max_delay_sec = max_delay_sec
        self.sleep = sleep

    def get(self, key: str) -> str | None:
        return self.inner.get(key)

    def put(self, key: str, value: str, ttl_sec: Optional[int] = None) -> None:
        self._with_retry(f"put {key}", lambda: self.inner.put(key, value, ttl_sec))

    def delete(self, key: str) -> None:
        self._with_retry(f"delete {key}", lambda: self.inner.delete(key))

    def _with_retry(self, description: str, write: Callable[[], None]) -> None:
        delay = self.initial_delay_sec
        for attempt in range(1, self.attempts + 1):
            try:
                write()
                return
            except TransientStoreError as e:
                if attempt == self.attempts:
                    logger.error(f"Giving up on store {description} after {attempt} attempts: {e}")
                    raise
                logger.warning(
                    f"Store busy on {description} (attempt {attempt}/{self.attempts}), retrying in {delay:.2f}s"
                )
                self.sleep(delay)
                delay = min(delay * 2, self.max_delay_sec)
