"""
Moderation command bus.

Admins enqueue commands, game processes poll for them and acknowledge the outcome.
Delivery is at-least-once while a command lives (its TTL), after which it is silently dropped.

Known limitation: the command is deleted as soon as an ack arrives. If the consumer never learns that its ack
succeeded it may run the command again, and a lost ack leaves the ledger entry pending forever.
Consumers must treat re-delivery as safe to re-apply.
"""

import logging
from uuid import uuid4

from src.api.models import (
    AckRequest,
    AckResponse,
    CommandsResponse,
    CommandView,
    EnqueueResponse,
    ModerateRequest,
)
from src.core.config import Settings
from src.core.models import ModerationCommand, command_key
from src.core.shared_types import BAN_STATE_ACTIONS, Clock, CommandStatus, epoch_ms
from src.db import codec
from src.db.repository import KeyValueStore
from src.services.moderation_service import ModerationLedger

logger = logging.getLogger(__name__)

COMMAND_INDEX_KEY = "command_index"


class CommandBus:
    """Orchestration of the command lifecycle: Pending -> Applied / Failed, or Pending -> Expired."""

    def __init__(
        self,
        store: KeyValueStore,
        ledger: ModerationLedger,
        settings: Settings,
        clock: Clock = epoch_ms,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.settings = settings
        self.clock = clock

    # -- API routes logic ---
    def enqueue(self, request: ModerateRequest) -> EnqueueResponse:
        """Admin issues a kick / ban / unban."""
        settings = self.settings
        command = ModerationCommand(
            id=uuid4().hex,
            created_at=self.clock(),
            action=request.action,
            user_id=request.user_id,
            reason=request.reason.strip()[: settings.reason_max_length],
            issued_by=request.issued_by.strip()[: settings.issued_by_max_length],
            username=request.username.strip()[: settings.name_max_length],
            display_name=request.display_name.strip()[: settings.name_max_length],
        )

        # Store the command itself, then make it discoverable
        self.store.put(
            command_key(command.id),
            codec.dumps(command.to_dict()),
            ttl_sec=settings.command_ttl_sec,
        )
        index = self._load_index()
        index[command.id] = command.created_at
        self._save_index(index)

        # Issuance only ever creates a pending ledger line, never ban state
        self.ledger.record_issued(command)

        logger.info(
            f"Enqueued {command.action} for user {command.user_id} by {command.issued_by!r} (id={command.id})"
        )
        return EnqueueResponse(id=command.id)

    def poll(self) -> CommandsResponse:
        """
        Commands still waiting for an ack.
        ----
        Index entries past the command TTL are pruned here: this is the only place expired commands stop being handed out.
        """
        now = self.clock()
        ttl_ms = self.settings.command_ttl_sec * 1000
        index = self._load_index()

        live: dict[str, int] = {}
        commands: list[ModerationCommand] = []
        for command_id, created_at in index.items():
            if now - created_at > ttl_ms:
                continue
            command = self._fetch_command(command_id)
            if command is None:
                continue
            live[command_id] = created_at
            commands.append(command)

        if live != index:
            logger.info(f"Pruned {len(index) - len(live)} expired or vanished commands from the index")
            self._save_index(live)

        commands.sort(key=lambda c: c.created_at)
        return CommandsResponse(commands=[CommandView.model_validate(c.to_dict()) for c in commands])

    def acknowledge(self, request: AckRequest) -> AckResponse:
        """
        A game process reports the outcome of a command.
        ----
        The command is removed whatever the outcome, so it is never redelivered.
        Only a successful ban / unban changes ban state.
        """
        now = self.clock()
        command = self._fetch_command(request.id)

        # Retire the command first: no rollback exists, a later failure must not cause redelivery
        self.store.delete(command_key(request.id))
        index = self._load_index()
        if index.pop(request.id, None) is not None:
            self._save_index(index)

        entry = self.ledger.record_outcome(request.id, request.ok, now, request.message)
        source = entry or command

        action = request.action or (source.action if source else None)
        user_id = request.user_id or (source.user_id if source else 0)
        if source is not None and (action != source.action or user_id != source.user_id):
            logger.warning(
                f"Ack for {request.id} reports {action} user {user_id}, "
                f"but the command was {source.action} user {source.user_id}"
            )

        # A recorded outcome is final, a repeated ack cannot turn a failure into a ban
        applied = entry.status == CommandStatus.APPLIED if entry else request.ok

        ban_state_changed = False
        if applied and action in BAN_STATE_ACTIONS and user_id and user_id > 0:
            if source is None:
                # Without the creation time the ack cannot be ordered against other bans / unbans
                logger.warning(
                    f"Ack for {request.id} matches no ledger entry or stored command, ban state left untouched"
                )
            else:
                ban_state_changed = self.ledger.apply_ban_outcome(
                    action, user_id, request.id, source.created_at, source=source
                )

        logger.info(
            f"Ack {request.id}: ok={request.ok} action={action} user={user_id} "
            f"ledger={'updated' if entry else 'missing'} banStateChanged={ban_state_changed}"
        )
        return AckResponse(
            status=entry.status if entry else None,
            ban_state_changed=ban_state_changed,
        )

    # -- Internal helpers --
    def _load_index(self) -> dict[str, int]:
        return codec.loads_timestamps(self.store.get(COMMAND_INDEX_KEY), COMMAND_INDEX_KEY)

    def _save_index(self, index: dict[str, int]) -> None:
        self.store.put(COMMAND_INDEX_KEY, codec.dumps(index))

    def _fetch_command(self, command_id: str) -> ModerationCommand | None:
        key = command_key(command_id)
        raw = self.store.get(key)
        if raw is None:
            return None
        try:
            return ModerationCommand.from_dict(codec.loads_object(raw, key))
        except (KeyError, TypeError, ValueError, AttributeError):
            logger.warning(f"Skipping unparsable command {key}")
            return None
