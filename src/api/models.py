"""Requests and Response models"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.core.exceptions import InvalidRequestError
from src.core.shared_types import CommandAction, CommandStatus


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


# --- REQUEST MODELS ---
class PlayerPayload(CamelModel):
    user_id: int
    username: str = ""
    display_name: str = ""
    team: Optional[str] = None

    @field_validator("username", "display_name", mode="before")
    @classmethod
    def coerce_name(cls, value: object) -> str:
        """Game servers send whatever their engine has: numbers, null, ..."""
        return "" if value is None else str(value)

    @field_validator("team", mode="before")
    @classmethod
    def coerce_team(cls, value: object) -> Optional[str]:
        return None if value is None else str(value)


class PublishSnapshotRequest(CamelModel):
    place_id: int
    job_id: Optional[str] = None
    players: list[PlayerPayload]

    @field_validator("place_id")
    @classmethod
    def validate_place_id(cls, value: int) -> int:
        if value <= 0:
            raise InvalidRequestError(f"placeId must be a positive number, got {value}.")
        return value

    @field_validator("job_id")
    @classmethod
    def strip_job_id(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class ModerateRequest(CamelModel):
    action: CommandAction
    user_id: int
    reason: str = ""
    issued_by: str = Field(
        default="", validation_alias=AliasChoices("issuedBy", "by", "issued_by")
    )
    username: str = ""
    display_name: str = ""

    @field_validator("action", mode="before")
    @classmethod
    def validate_action(cls, value: object) -> CommandAction:
        try:
            return CommandAction(str(value).strip().lower())
        except ValueError:
            raise InvalidRequestError(
                f"Unknown action {value!r}, expected one of {[a.value for a in CommandAction]}."
            )

    @field_validator("user_id")
    @classmethod
    def validate_user_id(cls, value: int) -> int:
        if value <= 0:
            raise InvalidRequestError(f"userId must be a positive number, got {value}.")
        return value


class AckRequest(CamelModel):
    id: str
    ok: bool = False
    action: Optional[CommandAction] = None
    user_id: Optional[int] = None
    message: str = ""

    @field_validator("id")
    @classmethod
    def validate_id(cls, value: str) -> str:
        if not value.strip():
            raise InvalidRequestError("Missing command id.")
        return value.strip()

    @field_validator("action", mode="before")
    @classmethod
    def validate_action(cls, value: object) -> Optional[CommandAction]:
        if value is None or value == "":
            return None
        try:
            return CommandAction(str(value).strip().lower())
        except ValueError:
            raise InvalidRequestError(f"Unknown action {value!r}.")


class SetLockRequest(CamelModel):
    locked: bool
    identity: str

    @field_validator("identity")
    @classmethod
    def validate_identity(cls, value: str) -> str:
        if not value.strip():
            raise InvalidRequestError("identity must not be empty.")
        return value.strip()


class ClearLogsRequest(CamelModel):
    identity: str = ""


# --- RESPONSE MODELS ---
class OkResponse(CamelModel):
    ok: bool = True


class PublishResponse(CamelModel):
    ok: bool = True
    server_key: str
    job_id: str
    player_count: int


class PlayerView(CamelModel):
    user_id: int
    username: str
    display_name: str
    team: str
    place_id: int
    job_id: str


class PlayersResponse(CamelModel):
    updated_at: str
    total_players: int
    total_servers: int
    players: list[PlayerView]


class ServerView(CamelModel):
    server_key: str
    place_id: int
    job_id: str
    updated_at: int
    player_count: int


class ServersResponse(CamelModel):
    ok: bool = True
    servers: list[ServerView]


class CommandView(CamelModel):
    id: str
    created_at: int
    action: CommandAction
    user_id: int
    reason: str
    issued_by: str
    username: str = ""
    display_name: str = ""


class EnqueueResponse(CamelModel):
    ok: bool = True
    id: str


class CommandsResponse(CamelModel):
    ok: bool = True
    commands: list[CommandView]


class AckResponse(CamelModel):
    ok: bool = True
    status: Optional[CommandStatus] = None  # None: no ledger entry for this id
    ban_state_changed: bool = False


class BanView(CamelModel):
    user_id: int
    reason: str
    issued_by: str
    banned_at: int
    last_command_id: str
    username: str = ""
    display_name: str = ""


class ModeratedResponse(CamelModel):
    ok: bool = True
    items: list[BanView]


class LogEntryView(CamelModel):
    id: str
    created_at: int
    action: CommandAction
    user_id: int
    reason: str
    issued_by: str
    status: CommandStatus
    acked_at: Optional[int] = None
    message: str = ""
    username: str = ""
    display_name: str = ""


class HistoryResponse(CamelModel):
    ok: bool = True
    items: list[LogEntryView]


class HistoryItemResponse(CamelModel):
    ok: bool = True
    item: LogEntryView


class LockStateResponse(CamelModel):
    locked: bool
    by: str
    at: Optional[int] = None


class SetLockResponse(LockStateResponse):
    ok: bool = True
