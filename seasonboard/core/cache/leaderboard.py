"""
Leaderboard cache store.

Purpose
-------
Keep the current season, the full leaderboard snapshot and a per-player
projection of that snapshot in Redis, under a fixed key scheme and a
fixed TTL policy.

Key Format
----------
- `leaderboard`               : encoded LeaderboardResponse, TTL 10 minutes
- `player_stats:<playerID>`   : hash, field `stats` = encoded PlayerAttribute,
                                TTL 10 minutes
- `player_stats_index`        : set of player ids in the cached snapshot,
                                TTL 10 minutes
- `current_season`            : encoded SeasonData, TTL 24 hours

Against a Redis Cluster every leaderboard-family key is prefixed with the
hash tag `{leaderboard}:` so the snapshot, its player keys and the index
share one slot and can be written in a single MULTI/EXEC.

Consistency Rules
-----------------
- The snapshot, every player key derived from it and the index are written
  in one transaction with the same TTL, so they appear and expire together.
- Player keys belonging to the previous snapshot but not the new one are
  deleted in that same transaction.
- The index is WATCHed; two concurrent updates cannot interleave. The
  loser re-runs against the winner's index.
- All records are encoded before any I/O, so an `EncodeError` never leaves
  a partial write.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from seasonboard.core.exceptions import CacheMiss, DecodeError, MalformedRecord
from seasonboard.core.logging.logger import get_logger
from seasonboard.core.redis.service import RedisService
from seasonboard.domain.models.leaderboard import (
    LeaderboardResponse,
    PlayerAttribute,
    SeasonData,
)

logger = get_logger(__name__)

LEADERBOARD_TTL_SECONDS = 10 * 60
SEASON_TTL_SECONDS = 24 * 60 * 60

PLAYER_STATS_FIELD = "stats"

CLUSTER_HASH_TAG = "{leaderboard}:"


@dataclass(frozen=True)
class CacheKeys:
    """Key names for one backend; `prefix` is empty outside cluster mode."""

    prefix: str = ""

    @classmethod
    def for_backend(cls, clustered: bool) -> "CacheKeys":
        return cls(prefix=CLUSTER_HASH_TAG if clustered else "")

    @property
    def leaderboard(self) -> str:
        return f"{self.prefix}leaderboard"

    @property
    def player_index(self) -> str:
        return f"{self.prefix}player_stats_index"

    @property
    def season(self) -> str:
        return "current_season"

    def player_stats(self, player_id: str) -> str:
        return f"{self.prefix}player_stats:{player_id}"


class LeaderboardCache:
    """
    Read/write access to the cached season, leaderboard and player stats.

    Every method either returns a fully decoded record or raises: `CacheMiss`
    for absent/expired keys, `DecodeError` for unparsable stored bytes,
    `BackendUnreachable` / `BackendWriteError` for backend faults and
    `EncodeError` for records that cannot be serialized.
    """

    def __init__(self, redis: RedisService) -> None:
        self._redis = redis
        self.keys = CacheKeys.for_backend(redis.clustered)

    # =========================================================================
    # HEALTH
    # =========================================================================

    async def ping(self) -> None:
        await self._redis.ping()

    # =========================================================================
    # LEADERBOARD
    # =========================================================================

    async def get_leaderboard(self) -> LeaderboardResponse:
        key = self.keys.leaderboard
        raw = await self._redis.get(key)
        if raw is None:
            logger.debug("Leaderboard cache miss", extra={"key": key})
            raise CacheMiss(key)
        return self._decode(LeaderboardResponse, key, raw)

    async def update_leaderboard(self, snapshot: LeaderboardResponse) -> None:
        """
        Atomically replace the cached snapshot and its per-player projection.

        Raises
        ------
        EncodeError
            If any record cannot be serialized (nothing is written).
        BackendWriteError
            If the transaction fails, keeps conflicting, or the backend
            cannot be reached.
        """
        snapshot_json = snapshot.to_json()
        player_rows = [
            (entry.id, self.keys.player_stats(entry.id), entry.attributes.to_json())
            for entry in snapshot.included
        ]
        new_ids = {player_id for player_id, _, _ in player_rows}

        index_key = self.keys.player_index

        async def write_snapshot(pipe: Any) -> None:
            previous_ids = await pipe.smembers(index_key)
            stale_keys = [
                self.keys.player_stats(player_id)
                for player_id in sorted(set(previous_ids) - new_ids)
            ]

            pipe.multi()
            if stale_keys:
                pipe.delete(*stale_keys)
            pipe.set(self.keys.leaderboard, snapshot_json, ex=LEADERBOARD_TTL_SECONDS)
            for _, key, stats_json in player_rows:
                pipe.hset(key, mapping={PLAYER_STATS_FIELD: stats_json})
                pipe.expire(key, LEADERBOARD_TTL_SECONDS)
            pipe.delete(index_key)
            if new_ids:
                pipe.sadd(index_key, *sorted(new_ids))
                pipe.expire(index_key, LEADERBOARD_TTL_SECONDS)

        attempts = await self._redis.transaction(write_snapshot, watch=[index_key])

        logger.info(
            "Leaderboard cache updated",
            extra={
                "leaderboard_id": snapshot.data.id,
                "season_id": snapshot.data.season_id,
                "players": len(player_rows),
                "attempts": attempts,
                "ttl_seconds": LEADERBOARD_TTL_SECONDS,
            },
        )

    # =========================================================================
    # PLAYER STATS
    # =========================================================================

    async def get_player_stats(self, player_id: str) -> PlayerAttribute:
        key = self.keys.player_stats(player_id)
        raw = await self._redis.hget(key, PLAYER_STATS_FIELD)
        if raw is None:
            logger.debug("Player stats cache miss", extra={"key": key})
            raise CacheMiss(key)
        return self._decode(PlayerAttribute, key, raw)

    # =========================================================================
    # SEASON
    # =========================================================================

    async def get_season(self) -> SeasonData:
        key = self.keys.season
        raw = await self._redis.get(key)
        if raw is None:
            logger.debug("Season cache miss", extra={"key": key})
            raise CacheMiss(key)
        return self._decode(SeasonData, key, raw)

    async def update_season(self, season: SeasonData) -> None:
        """Replace the cached season; single key, no transaction needed."""
        await self._redis.set(self.keys.season, season.to_json(), SEASON_TTL_SECONDS)
        logger.info(
            "Season cache updated",
            extra={"season_id": season.id, "ttl_seconds": SEASON_TTL_SECONDS},
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _decode(record_type: Any, key: str, raw: Any) -> Any:
        try:
            return record_type.from_json(raw)
        except MalformedRecord as exc:
            logger.error(
                "Cached value failed to decode",
                extra={"key": key, "record": record_type.__name__, "error": exc.reason},
            )
            raise DecodeError(
                f"Cached value under '{key}' is not a valid {record_type.__name__}",
                details={"key": key, "reason": exc.reason},
            ) from exc
