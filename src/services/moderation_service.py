"""
Moderation ledger and ban reconciliation.

The ledger is a bounded, most-recent-first list of every issued command and its outcome.
Ban state is derived from acknowledgments only: a ban shows up once a game process confirmed it, never when it is issued.
"""

import logging
from typing import Any, Optional

from src.api.models import BanView, HistoryItemResponse, HistoryResponse, LogEntryView, ModeratedResponse
from src.core.config import Settings
from src.core.exceptions import ForbiddenError, NotFoundError
from src.core.models import BanRecord, ModerationCommand, ModerationLogEntry
from src.core.shared_types import CommandAction, CommandStatus, Clock, epoch_ms
from src.db import codec
from src.db.repository import KeyValueStore

logger = logging.getLogger(__name__)

LOG_KEY = "moderation_log"
BAN_STATE_KEY = "ban_state"


class ModerationLedger:
    """Bounded command history + acknowledgment-driven ban state."""

    def __init__(self, store: KeyValueStore, settings: Settings, clock: Clock = epoch_ms) -> None:
        self.store = store
        self.settings = settings
        self.clock = clock

    # -- Ledger ---
    def record_issued(self, command: ModerationCommand) -> ModerationLogEntry:
        """Prepend a pending entry for a freshly issued command, evicting the oldest beyond the cap."""
        entry = ModerationLogEntry.from_command(command)
        entries = self._load_entries()
        entries.insert(0, entry)
        self._save_entries(entries)
        return entry

    def record_outcome(
        self, command_id: str, ok: bool, acked_at: int, message: str = ""
    ) -> ModerationLogEntry | None:
        """
        Mark the entry for command_id as applied / failed.

        Applied and failed are final: an entry that already has an outcome is returned unchanged.
        Returns None when the ledger has no such entry (evicted, cleared, or never issued): that is accepted.
        """
        entries = self._load_entries()
        entry = next((e for e in entries if e.id == command_id), None)
        if entry is None:
            logger.info(f"Ack for {command_id} has no ledger entry, ledger left untouched")
            return None

        if entry.status != CommandStatus.PENDING:
            logger.info(f"Duplicate ack for {command_id}, keeping outcome {entry.status}")
            return entry

        entry.status = CommandStatus.APPLIED if ok else CommandStatus.FAILED
        entry.acked_at = acked_at
        entry.message = message[: self.settings.reason_max_length]
        self._save_entries(entries)
        return entry

    def history(self, limit: Optional[int] = None) -> HistoryResponse:
        """Full bounded ledger, most-recent first."""
        entries = self._load_entries()
        if limit is not None:
            entries = entries[: max(0, limit)]
        return HistoryResponse(items=[_log_view(e) for e in entries])

    def get_entry(self, command_id: str) -> HistoryItemResponse:
        """Single ledger entry by command id."""
        entry = next((e for e in self._load_entries() if e.id == command_id), None)
        if entry is None:
            raise NotFoundError(f"No moderation entry with id={command_id!r}.")
        return HistoryItemResponse(item=_log_view(entry))

    # -- Ban state ---
    def apply_ban_outcome(
        self,
        action: CommandAction,
        user_id: int,
        command_id: str,
        created_at: int,
        source: Optional[ModerationLogEntry | ModerationCommand] = None,
    ) -> bool:
        """
        Fold one confirmed ban/unban into BanState. Returns True if the state changed.

        Acks can arrive out of order: an ack for a command created before the last one applied for this user is ignored,
        so BanState always follows creation order.
        """
        if action not in (CommandAction.BAN, CommandAction.UNBAN):
            return False

        bans, watermarks = self._load_ban_state()
        user_key = str(user_id)
        if created_at < watermarks.get(user_key, 0):
            logger.info(
                f"Ignoring {action} ack for user {user_id}: command {command_id} predates the last applied one"
            )
            return False

        watermarks[user_key] = created_at
        if action == CommandAction.BAN:
            bans[user_key] = BanRecord(
                user_id=user_id,
                reason=source.reason if source else "",
                issued_by=source.issued_by if source else "",
                banned_at=self.clock(),
                last_command_id=command_id,
                username=source.username if source else "",
                display_name=source.display_name if source else "",
            )
        else:
            bans.pop(user_key, None)

        self._save_ban_state(bans, watermarks)
        logger.info(f"BanState updated: {action} user {user_id} (command {command_id})")
        return True

    def current_bans(self) -> ModeratedResponse:
        """Confirmed bans, newest first."""
        bans, _ = self._load_ban_state()
        records = sorted(bans.values(), key=lambda b: b.banned_at, reverse=True)
        return ModeratedResponse(items=[BanView.model_validate(r.to_dict()) for r in records])

    # -- Privileged ---
    def clear(self, identity: str) -> None:
        """
        Wipe ledger and ban state. Only the configured operator identity may do this.

        Two independent deletes: a reader in between may see one cleared and not the other.
        """
        allowed = self.settings.clear_logs_identity
        if not allowed or identity.strip() != allowed:
            logger.warning(f"Refused ledger clear requested by {identity!r}")
            raise ForbiddenError("Only the designated operator may clear the moderation logs.")

        self.store.delete(LOG_KEY)
        self.store.delete(BAN_STATE_KEY)
        logger.info(f"Moderation ledger and ban state cleared by {identity!r}")

    # -- Internal helpers --
    def _load_entries(self) -> list[ModerationLogEntry]:
        entries = []
        for raw in codec.loads_list(self.store.get(LOG_KEY), LOG_KEY):
            try:
                entries.append(ModerationLogEntry.from_dict(raw))
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.warning(f"Skipping malformed ledger entry: {raw!r}")
        return entries

    def _save_entries(self, entries: list[ModerationLogEntry]) -> None:
        trimmed = entries[: self.settings.max_log_entries]
        self.store.put(LOG_KEY, codec.dumps([e.to_dict() for e in trimmed]))

    def _load_ban_state(self) -> tuple[dict[str, BanRecord], dict[str, int]]:
        state = codec.loads_object(self.store.get(BAN_STATE_KEY), BAN_STATE_KEY)
        bans: dict[str, BanRecord] = {}
        raw_bans: Any = state.get("bans")
        for user_key, raw in (raw_bans if isinstance(raw_bans, dict) else {}).items():
            try:
                bans[str(user_key)] = BanRecord.from_dict(raw)
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.warning(f"Skipping malformed ban record for {user_key!r}")
        watermarks = codec.to_timestamps(state.get("watermarks"), BAN_STATE_KEY)
        return bans, watermarks

    def _save_ban_state(self, bans: dict[str, BanRecord], watermarks: dict[str, int]) -> None:
        state = {
            "bans": {user_key: record.to_dict() for user_key, record in bans.items()},
            "watermarks": watermarks,
        }
        self.store.put(BAN_STATE_KEY, codec.dumps(state))


def _log_view(entry: ModerationLogEntry) -> LogEntryView:
    return LogEntryView.model_validate(entry.to_dict())
