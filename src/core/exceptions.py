"""
Custom exceptions shared by all layers.

The API layer maps each of these onto an HTTP status code; lower layers only raise them.
"""


class PresenceServiceError(Exception):
    """Top-level exception for anything raised on purpose by this service."""


# --- REQUEST ERRORS ---
class AuthError(PresenceServiceError):
    """Missing or wrong shared secret."""


class ForbiddenError(PresenceServiceError):
    """Caller is authenticated, but not allowed to perform this operation."""


class InvalidRequestError(PresenceServiceError):
    """Malformed payload, unknown enum value, non-positive id, ..."""


class NotFoundError(PresenceServiceError):
    """A referenced id does not exist (anymore)."""


class CooldownError(PresenceServiceError):
    """Identity toggled too recently. Carries the number of seconds to wait."""

    def __init__(self, message: str, retry_after_sec: int) -> None:
        super().__init__(message)
        self.retry_after_sec = retry_after_sec


# --- STORE ERRORS ---
class StoreError(PresenceServiceError):
    """The key-value store failed."""


class TransientStoreError(StoreError):
    """The key-value store is overloaded / busy. Writes may be retried."""
