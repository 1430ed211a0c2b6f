"""
Presence registry: game processes publish who is connected, readers get one merged player list.

Each process owns one snapshot key (self-expiring). A shared index maps snapshot keys to the time they were last seen,
so readers know which keys to fetch.
"""

import logging
import unicodedata
from datetime import datetime, timezone
from uuid import uuid4

from src.api.models import (
    PlayerPayload,
    PlayersResponse,
    PlayerView,
    PublishResponse,
    PublishSnapshotRequest,
    ServersResponse,
    ServerView,
)
from src.core.config import Settings
from src.core.models import Player, ServerSnapshot
from src.core.shared_types import Clock, epoch_ms
from src.db import codec
from src.db.repository import KeyValueStore

logger = logging.getLogger(__name__)

SERVER_INDEX_KEY = "server_index"


class PresenceService:
    """Orchestration of snapshot publishing and aggregation."""

    def __init__(self, store: KeyValueStore, settings: Settings, clock: Clock = epoch_ms) -> None:
        self.store = store
        self.settings = settings
        self.clock = clock

    # -- API routes logic ---
    def publish(self, request: PublishSnapshotRequest) -> PublishResponse:
        """A game process reports its current players."""
        now = self.clock()

        # Studio / local test sessions have no job id: give each its own key
        job_id = request.job_id or f"studio-{uuid4()}"
        snapshot = ServerSnapshot(
            place_id=request.place_id,
            job_id=job_id,
            updated_at=now,
            players=[self._to_player(p) for p in request.players],
        )

        # The snapshot itself is always written, and always fresh
        self.store.put(
            snapshot.server_key,
            codec.dumps(snapshot.to_dict()),
            ttl_sec=self.settings.snapshot_ttl_sec,
        )
        self._touch_index(snapshot.server_key, now)

        logger.debug(f"Published {snapshot.server_key} with {len(snapshot.players)} players")
        return PublishResponse(
            server_key=snapshot.server_key,
            job_id=job_id,
            player_count=len(snapshot.players),
        )

    def aggregate(self) -> PlayersResponse:
        """
        Merge the players of every live snapshot.
        ----
        One entry per (userId, placeId), ordered by display name (username when there is none).
        No index at all simply means no servers are online.
        """
        snapshots = self._live_snapshots()

        seen: set[tuple[int, int]] = set()
        players: list[PlayerView] = []
        for snapshot in snapshots:
            for player in snapshot.players:
                unique = (player.user_id, snapshot.place_id)
                if player.user_id <= 0 or unique in seen:
                    continue
                seen.add(unique)
                players.append(
                    PlayerView(
                        user_id=player.user_id,
                        username=player.username,
                        display_name=player.display_name,
                        team=player.team,
                        place_id=snapshot.place_id,
                        job_id=snapshot.job_id,
                    )
                )

        players.sort(key=lambda p: (_collation_key(p.display_name or p.username), p.user_id, p.place_id))
        return PlayersResponse(
            updated_at=datetime.fromtimestamp(self.clock() / 1000, tz=timezone.utc).isoformat(),
            total_players=len(players),
            total_servers=len(snapshots),
            players=players,
        )

    def servers(self) -> ServersResponse:
        """Live game processes, most recently updated first."""
        snapshots = sorted(self._live_snapshots(), key=lambda s: s.updated_at, reverse=True)
        return ServersResponse(
            servers=[
                ServerView(
                    server_key=s.server_key,
                    place_id=s.place_id,
                    job_id=s.job_id,
                    updated_at=s.updated_at,
                    player_count=len(s.players),
                )
                for s in snapshots
            ]
        )

    # -- Internal helpers --
    def _touch_index(self, key: str, now: int) -> None:
        """
        Record key as seen and prune entries past the snapshot TTL.

        Rewrites are throttled: a key whose entry is younger than the refresh interval is left alone,
        which keeps concurrent publishers from overwriting each other's index writes on every update.
        """
        index = codec.loads_timestamps(self.store.get(SERVER_INDEX_KEY), SERVER_INDEX_KEY)
        last_seen = index.get(key)
        refresh_ms = self.settings.index_refresh_interval_sec * 1000
        if last_seen is not None and now - last_seen < refresh_ms:
            return

        ttl_ms = self.settings.snapshot_ttl_sec * 1000
        index[key] = now
        pruned = {k: seen for k, seen in index.items() if now - seen <= ttl_ms}
        self.store.put(SERVER_INDEX_KEY, codec.dumps(pruned))

    def _live_snapshots(self) -> list[ServerSnapshot]:
        """Fetch every indexed snapshot that still exists, parses, and is within its TTL."""
        now = self.clock()
        index = codec.loads_timestamps(self.store.get(SERVER_INDEX_KEY), SERVER_INDEX_KEY)

        snapshots = []
        for key in index:
            raw = self.store.get(key)
            if raw is None:
                # Already expired
                continue
            try:
                snapshot = ServerSnapshot.from_dict(codec.loads_object(raw, key))
            except (KeyError, TypeError, ValueError, AttributeError):
                logger.warning(f"Skipping unparsable snapshot {key}")
                continue
            if snapshot.is_live(now, self.settings.snapshot_ttl_sec):
                snapshots.append(snapshot)
        return snapshots

    def _to_player(self, payload: PlayerPayload) -> Player:
        limit = self.settings.name_max_length
        return Player(
            user_id=payload.user_id,
            username=payload.username[:limit],
            display_name=payload.display_name[:limit],
            team=(payload.team or "")[:limit],
        )


def _collation_key(name: str) -> str:
    """Case- and accent-insensitive ordering, so "émile" sorts next to "Emile"."""
    decomposed = unicodedata.normalize("NFKD", name)
    return "".join(c for c in decomposed if not unicodedata.combining(c)).casefold()
