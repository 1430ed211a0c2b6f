"""
Shared-secret capability checks.

Transport agnostic: callers pass in whatever secret was presented (the API reads it from a header).
"""

import hmac
import logging
from typing import Optional

from src.core.config import Settings
from src.core.exceptions import AuthError
from src.core.shared_types import Role

logger = logging.getLogger(__name__)


def _secret_for(role: Role, settings: Settings) -> str:
    if role == Role.ADMIN:
        return settings.admin_key
    return settings.api_key


def is_allowed(role: Role, presented: Optional[str], settings: Settings) -> bool:
    """Does the presented secret grant the given role? An unconfigured secret grants nothing."""
    expected = _secret_for(role, settings)
    if not expected or not presented:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


def require_role(role: Role, presented: Optional[str], settings: Settings) -> None:
    """Raise AuthError unless the presented secret grants the role."""
    if not is_allowed(role, presented, settings):
        logger.warning(f"Rejected request with bad or missing {role} secret")
        raise AuthError("Unauthorized")
