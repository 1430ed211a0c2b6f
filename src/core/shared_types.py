"""
Type definitions used across layers
"""

import time
from enum import StrEnum
from typing import Callable

# Milliseconds since the epoch. Injected everywhere "now" matters, so tests can move time forward.
Clock = Callable[[], int]


def epoch_ms() -> int:
    return int(time.time() * 1000)


class CommandAction(StrEnum):
    KICK = "kick"
    BAN = "ban"
    UNBAN = "unban"


class CommandStatus(StrEnum):
    PENDING = "pending"
    APPLIED = "applied"
    FAILED = "failed"


class Role(StrEnum):
    PROCESS = "process"
    ADMIN = "admin"


# --- Only these actions change who is banned. Kicks are logged but never touch BanState.
BAN_STATE_ACTIONS = frozenset({CommandAction.BAN, CommandAction.UNBAN})
