"""Protocol for the shared key-value store (SQL table for now, can implement later for Redis / a hosted KV etc.)"""

from typing import Optional, Protocol


class KeyValueStore(Protocol):
    """
    Single-key, last-write-wins storage with optional expiry.

    No multi-key transactions, no compare-and-swap. Values are JSON text.
    """

    def get(self, key: str) -> str | None:
        """Get the value stored under key, if it exists and has not expired."""
        ...

    def put(self, key: str, value: str, ttl_sec: Optional[int] = None) -> None:
        """Store value under key, overwriting whatever was there. Expires after ttl_sec if given."""
        ...

    def delete(self, key: str) -> None:
        """Remove key. Removing a missing key is not an error."""
        ...
