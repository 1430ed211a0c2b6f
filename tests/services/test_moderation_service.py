"""Unit tests for src/services/moderation_service.py"""

import json

import pytest

from src.core.config import Settings
from src.core.exceptions import ForbiddenError, NotFoundError
from src.core.models import ModerationCommand
from src.core.shared_types import CommandAction, CommandStatus
from src.services.moderation_service import BAN_STATE_KEY, LOG_KEY, ModerationLedger
from tests.fakes import FakeClock, InMemoryStore


@pytest.fixture
def ledger(store: InMemoryStore, settings: Settings, clock: FakeClock) -> ModerationLedger:
    return ModerationLedger(store, settings, clock=clock)


def make_command(command_id: str, action: CommandAction, user_id: int, created_at: int) -> ModerationCommand:
    return ModerationCommand(
        id=command_id,
        created_at=created_at,
        action=action,
        user_id=user_id,
        reason="griefing",
        issued_by="mod_anna",
        username=f"user{user_id}",
    )


# --- LEDGER ----
def test_history_is_most_recent_first(ledger: ModerationLedger, clock: FakeClock) -> None:
    ledger.record_issued(make_command("a", CommandAction.KICK, 1, clock()))
    ledger.record_issued(make_command("b", CommandAction.BAN, 2, clock() + 1))

    assert [e.id for e in ledger.history().items] == ["b", "a"]
    assert [e.id for e in ledger.history(limit=1).items] == ["b"]


def test_record_outcome(ledger: ModerationLedger, clock: FakeClock) -> None:
    ledger.record_issued(make_command("a", CommandAction.KICK, 1, clock()))

    entry = ledger.record_outcome("a", ok=False, acked_at=clock() + 10, message="player not in server")

    assert entry is not None
    assert entry.status == CommandStatus.FAILED
    stored = ledger.get_entry("a").item
    assert stored.status == CommandStatus.FAILED
    assert stored.acked_at == clock() + 10
    assert stored.message == "player not in server"


def test_record_outcome_is_final(ledger: ModerationLedger, clock: FakeClock) -> None:
    ledger.record_issued(make_command("a", CommandAction.BAN, 1, clock()))
    ledger.record_outcome("a", ok=True, acked_at=clock() + 1, message="banned")

    entry = ledger.record_outcome("a", ok=False, acked_at=clock() + 2, message="retry failed")

    assert entry is not None
    assert entry.status == CommandStatus.APPLIED
    stored = ledger.get_entry("a").item
    assert stored.status == CommandStatus.APPLIED
    assert stored.acked_at == clock() + 1
    assert stored.message == "banned"


def test_record_outcome_for_unknown_id(ledger: ModerationLedger) -> None:
    assert ledger.record_outcome("missing", ok=True, acked_at=1) is None


def test_get_unknown_entry(ledger: ModerationLedger) -> None:
    with pytest.raises(NotFoundError):
        ledger.get_entry("missing")


def test_malformed_ledger_entries_are_skipped(
    ledger: ModerationLedger, store: InMemoryStore, clock: FakeClock
) -> None:
    ledger.record_issued(make_command("a", CommandAction.KICK, 1, clock()))
    entries = json.loads(store.get(LOG_KEY) or "[]")
    entries.append({"id": "broken"})
    store.put(LOG_KEY, json.dumps(entries))

    assert [e.id for e in ledger.history().items] == ["a"]


# --- BAN STATE ----
def test_ban_and_unban(ledger: ModerationLedger, clock: FakeClock) -> None:
    ban = make_command("ban-1", CommandAction.BAN, 42, clock())
    assert ledger.apply_ban_outcome(CommandAction.BAN, 42, ban.id, ban.created_at, source=ban)

    bans = ledger.current_bans().items
    assert [b.user_id for b in bans] == [42]
    assert bans[0].reason == "griefing"
    assert bans[0].last_command_id == "ban-1"

    assert ledger.apply_ban_outcome(CommandAction.UNBAN, 42, "unban-1", clock() + 1)
    assert ledger.current_bans().items == []


def test_kick_is_not_a_ban_state_action(ledger: ModerationLedger, clock: FakeClock) -> None:
    assert not ledger.apply_ban_outcome(CommandAction.KICK, 42, "kick-1", clock())
    assert ledger.current_bans().items == []


def test_older_command_cannot_overwrite_newer(ledger: ModerationLedger, clock: FakeClock) -> None:
    ledger.apply_ban_outcome(CommandAction.BAN, 42, "newer", clock() + 10)

    assert not ledger.apply_ban_outcome(CommandAction.UNBAN, 42, "older", clock())
    assert [b.user_id for b in ledger.current_bans().items] == [42]


def test_current_bans_newest_first(ledger: ModerationLedger, clock: FakeClock) -> None:
    ledger.apply_ban_outcome(CommandAction.BAN, 1, "first", clock())
    clock.advance(3)
    ledger.apply_ban_outcome(CommandAction.BAN, 2, "second", clock())

    assert [b.user_id for b in ledger.current_bans().items] == [2, 1]


# --- CLEAR ----
def test_clear_requires_operator(ledger: ModerationLedger, clock: FakeClock) -> None:
    ledger.record_issued(make_command("a", CommandAction.BAN, 1, clock()))

    with pytest.raises(ForbiddenError):
        ledger.clear("mod_anna")
    assert len(ledger.history().items) == 1


def test_clear_with_unconfigured_operator(
    store: InMemoryStore, settings: Settings, clock: FakeClock
) -> None:
    """Nobody may clear when no operator identity is configured."""
    ledger = ModerationLedger(store, settings.model_copy(update={"clear_logs_identity": ""}), clock=clock)
    with pytest.raises(ForbiddenError):
        ledger.clear("")


def test_clear_wipes_ledger_and_bans(
    ledger: ModerationLedger, store: InMemoryStore, settings: Settings, clock: FakeClock
) -> None:
    ledger.record_issued(make_command("a", CommandAction.BAN, 1, clock()))
    ledger.apply_ban_outcome(CommandAction.BAN, 1, "a", clock())

    ledger.clear(settings.clear_logs_identity)

    assert ledger.history().items == []
    assert ledger.current_bans().items == []
    assert store.get(LOG_KEY) is None
    assert store.get(BAN_STATE_KEY) is None
