"""HTTP routes. Thin: parse, authorise, hand over to the services."""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, Query

from src.api.dependencies import (
    SettingsDep,
    get_command_bus,
    get_ledger,
    get_lock_service,
    get_presence_service,
    require_admin,
    require_process,
)
from src.api.models import (
    AckRequest,
    AckResponse,
    ClearLogsRequest,
    CommandsResponse,
    EnqueueResponse,
    HistoryItemResponse,
    HistoryResponse,
    LockStateResponse,
    ModeratedResponse,
    ModerateRequest,
    OkResponse,
    PlayersResponse,
    PublishResponse,
    PublishSnapshotRequest,
    ServersResponse,
    SetLockRequest,
    SetLockResponse,
)
from src.core.auth import require_role
from src.core.shared_types import Role
from src.services.command_service import CommandBus
from src.services.lock_service import LockService
from src.services.moderation_service import ModerationLedger
from src.services.presence_service import PresenceService

router = APIRouter()

Presence = Annotated[PresenceService, Depends(get_presence_service)]
Commands = Annotated[CommandBus, Depends(get_command_bus)]
Ledger = Annotated[ModerationLedger, Depends(get_ledger)]
Lock = Annotated[LockService, Depends(get_lock_service)]


# --- Presence ---
@router.post("/update", dependencies=[Depends(require_process)])
def publish_snapshot(request: PublishSnapshotRequest, presence: Presence) -> PublishResponse:
    return presence.publish(request)


@router.get("/players")
def list_players(presence: Presence) -> PlayersResponse:
    return presence.aggregate()


@router.get("/servers", dependencies=[Depends(require_admin)])
def list_servers(presence: Presence) -> ServersResponse:
    return presence.servers()


# --- Commands ---
@router.post("/admin/moderate", dependencies=[Depends(require_admin)])
def enqueue_command(request: ModerateRequest, commands: Commands) -> EnqueueResponse:
    return commands.enqueue(request)


@router.get("/commands", dependencies=[Depends(require_process)])
def poll_commands(commands: Commands) -> CommandsResponse:
    return commands.poll()


@router.post("/ack", dependencies=[Depends(require_process)])
def acknowledge_command(request: AckRequest, commands: Commands) -> AckResponse:
    return commands.acknowledge(request)


# --- Ledger ---
@router.get("/moderated")
def current_bans(ledger: Ledger) -> ModeratedResponse:
    return ledger.current_bans()


@router.get("/history")
def history(
    ledger: Ledger,
    settings: SettingsDep,
    id: Optional[str] = None,
    limit: Annotated[Optional[int], Query(ge=0)] = None,
    x_admin_key: Annotated[Optional[str], Header()] = None,
) -> HistoryResponse | HistoryItemResponse:
    if settings.history_requires_admin:
        require_role(Role.ADMIN, x_admin_key, settings)
    if id:
        return ledger.get_entry(id)
    return ledger.history(limit)


@router.post("/admin/clearLogs", dependencies=[Depends(require_admin)])
def clear_logs(request: ClearLogsRequest, ledger: Ledger) -> OkResponse:
    ledger.clear(request.identity)
    return OkResponse()


# --- Lock ---
@router.get("/lockState")
def lock_state(lock: Lock) -> LockStateResponse:
    return lock.get_lock()


@router.post("/admin/setLock", dependencies=[Depends(require_admin)])
def set_lock(request: SetLockRequest, lock: Lock) -> SetLockResponse:
    return lock.set_lock(request)


@router.get("/health")
def health_check() -> dict[str, str]:
    return {"status": "ok"}
