"""
Boundary layer data model(s).

These objects travel between the Service layer and the store. Each model knows how to turn itself into the
camelCase JSON form that is written to the key-value store (and returned over the API), and back.
(Decouples the storage format from the names used in Python code.)
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Self

from src.core.shared_types import CommandAction, CommandStatus

JSONDict = dict[str, Any]


def server_key(place_id: int, job_id: str) -> str:
    """Store key of the snapshot published by one game process."""
    return f"srv:{place_id}:{job_id}"


def command_key(command_id: str) -> str:
    return f"cmd:{command_id}"


def cooldown_key(identity: str) -> str:
    return f"lock_cooldown:{identity}"


@dataclass
class Player:
    """Value object: one connected player inside a snapshot."""

    user_id: int
    username: str
    display_name: str
    team: str = ""

    def to_dict(self) -> JSONDict:
        return {
            "userId": self.user_id,
            "username": self.username,
            "displayName": self.display_name,
            "team": self.team,
        }

    @classmethod
    def from_dict(cls, data: JSONDict) -> Self:
        return cls(
            user_id=int(data["userId"]),
            username=str(data.get("username") or ""),
            display_name=str(data.get("displayName") or ""),
            team=str(data.get("team") or ""),
        )


@dataclass
class ServerSnapshot:
    """Everything one game process published in its last update. Overwritten wholesale on every publish."""

    place_id: int
    job_id: str
    updated_at: int
    players: list[Player] = field(default_factory=list)

    @property
    def server_key(self) -> str:
        return server_key(self.place_id, self.job_id)

    def is_live(self, now: int, ttl_sec: int) -> bool:
        """Valid-until check, independent of whether the store already dropped the record."""
        return now - self.updated_at <= ttl_sec * 1000

    def to_dict(self) -> JSONDict:
        return {
            "placeId": self.place_id,
            "jobId": self.job_id,
            "updatedAt": self.updated_at,
            "players": [player.to_dict() for player in self.players],
        }

    @classmethod
    def from_dict(cls, data: JSONDict) -> Self:
        return cls(
            place_id=int(data["placeId"]),
            job_id=str(data["jobId"]),
            updated_at=int(data["updatedAt"]),
            players=[Player.from_dict(p) for p in data.get("players") or []],
        )


@dataclass
class ModerationCommand:
    """An administrative intent that game processes still have to carry out."""

    id: str
    created_at: int
    action: CommandAction
    user_id: int
    reason: str
    issued_by: str
    username: str = ""
    display_name: str = ""

    def to_dict(self) -> JSONDict:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "action": str(self.action),
            "userId": self.user_id,
            "reason": self.reason,
            "issuedBy": self.issued_by,
            "username": self.username,
            "displayName": self.display_name,
        }

    @classmethod
    def from_dict(cls, data: JSONDict) -> Self:
        return cls(
            id=str(data["id"]),
            created_at=int(data["createdAt"]),
            action=CommandAction(data["action"]),
            user_id=int(data["userId"]),
            reason=str(data.get("reason") or ""),
            issued_by=str(data.get("issuedBy") or ""),
            username=str(data.get("username") or ""),
            display_name=str(data.get("displayName") or ""),
        )


@dataclass
class ModerationLogEntry:
    """Ledger line: appended when a command is issued, mutated when it gets acknowledged."""

    id: str
    created_at: int
    action: CommandAction
    user_id: int
    reason: str
    issued_by: str
    status: CommandStatus = CommandStatus.PENDING
    acked_at: Optional[int] = None
    message: str = ""
    username: str = ""
    display_name: str = ""

    @classmethod
    def from_command(cls, command: ModerationCommand) -> Self:
        return cls(
            id=command.id,
            created_at=command.created_at,
            action=command.action,
            user_id=command.user_id,
            reason=command.reason,
            issued_by=command.issued_by,
            username=command.username,
            display_name=command.display_name,
        )

    def to_dict(self) -> JSONDict:
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "action": str(self.action),
            "userId": self.user_id,
            "reason": self.reason,
            "issuedBy": self.issued_by,
            "status": str(self.status),
            "ackedAt": self.acked_at,
            "message": self.message,
            "username": self.username,
            "displayName": self.display_name,
        }

    @classmethod
    def from_dict(cls, data: JSONDict) -> Self:
        acked_at = data.get("ackedAt")
        return cls(
            id=str(data["id"]),
            created_at=int(data["createdAt"]),
            action=CommandAction(data["action"]),
            user_id=int(data["userId"]),
            reason=str(data.get("reason") or ""),
            issued_by=str(data.get("issuedBy") or ""),
            status=CommandStatus(data.get("status") or CommandStatus.PENDING),
            acked_at=int(acked_at) if acked_at is not None else None,
            message=str(data.get("message") or ""),
            username=str(data.get("username") or ""),
            display_name=str(data.get("displayName") or ""),
        )


@dataclass
class BanRecord:
    """One currently enforced ban. Only exists because a game process confirmed it."""

    user_id: int
    reason: str
    issued_by: str
    banned_at: int
    last_command_id: str
    username: str = ""
    display_name: str = ""

    def to_dict(self) -> JSONDict:
        return {
            "userId": self.user_id,
            "reason": self.reason,
            "issuedBy": self.issued_by,
            "bannedAt": self.banned_at,
            "lastCommandId": self.last_command_id,
            "username": self.username,
            "displayName": self.display_name,
        }

    @classmethod
    def from_dict(cls, data: JSONDict) -> Self:
        return cls(
            user_id=int(data["userId"]),
            reason=str(data.get("reason") or ""),
            issued_by=str(data.get("issuedBy") or ""),
            banned_at=int(data["bannedAt"]),
            last_command_id=str(data.get("lastCommandId") or ""),
            username=str(data.get("username") or ""),
            display_name=str(data.get("displayName") or ""),
        )


@dataclass
class GameLock:
    """Singleton lock flag. Absence in the store means unlocked."""

    locked: bool = False
    by: str = ""
    at: Optional[int] = None

    def to_dict(self) -> JSONDict:
        return {"locked": self.locked, "by": self.by, "at": self.at}

    @classmethod
    def from_dict(cls, data: JSONDict) -> Self:
        at = data.get("at")
        return cls(
            locked=data.get("locked") is True,
            by=str(data.get("by") or ""),
            at=int(at) if at is not None else None,
        )
