"""
LeaderboardService: cache-first access to seasons, leaderboards and player
stats, plus leaderboard backup and restore.

Purpose
-------
Answer every read from the Redis cache when possible, fall back to the
upstream provider on a miss and repopulate the cache, and move the cached
snapshot to and from blob storage.

Responsibilities
----------------
- Miss → fetch → populate for the season and the leaderboard
- Player stats lookup with a fallback through the full leaderboard
- Backup precondition: only a cached snapshot can be backed up
- Restore: a restored snapshot replaces the cache through the same atomic
  write as a fresh upstream fetch
- Optional per-call deadline (`timeout`, seconds) mapped onto `Canceled`

Non-Responsibilities
--------------------
- Key layout, TTLs and atomicity (core.cache.leaderboard)
- Blob naming and encoding (modules.backup)
- HTTP status mapping (api)

Architecture Notes
------------------
- Holds no state of its own; cache, provider and backup manager are
  injected by the bootstrap
- Errors other than `CacheMiss` on the read path are never swallowed
- No retries; a failed upstream fetch surfaces as `UpstreamUnavailable`
- `asyncio.CancelledError` always propagates
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

from seasonboard.core.cache.leaderboard import LeaderboardCache
from seasonboard.core.exceptions import CacheMiss, Canceled, NothingToBackup
from seasonboard.core.logging.logger import get_logger
from seasonboard.domain.models.leaderboard import (
    LeaderboardResponse,
    PlayerAttribute,
    SeasonData,
)
from seasonboard.modules.backup.codec import BackupManager, backup_name
from seasonboard.modules.upstream.pubg_client import StatsProvider

logger = get_logger(__name__)

T = TypeVar("T")


class LeaderboardService:
    """
    Orchestrates the cache, the upstream provider and backups.

    Every public operation accepts `timeout` (seconds). When the deadline
    passes the in-flight work is cancelled and `Canceled` is raised; a
    cancelled leaderboard update never leaves a partial write because the
    cache applies it in a single MULTI/EXEC.

    Only the `timeout` deadline becomes `Canceled`. When the caller cancels
    the task itself (e.g. the HTTP client disconnects) the operation ends
    with `asyncio.CancelledError`, which is never converted or suppressed.
    """

    def __init__(
        self,
        cache: LeaderboardCache,
        provider: StatsProvider,
        backups: BackupManager,
    ) -> None:
        self._cache = cache
        self._provider = provider
        self._backups = backups

    # =========================================================================
    # SEASON
    # =========================================================================

    async def get_current_season(self, timeout: Optional[float] = None) -> SeasonData:
        """
        Return the current season, fetching and caching it on a miss.

        Raises
        ------
        UpstreamUnavailable
            If the cache misses and the provider fails.
        Canceled
            If `timeout` elapses first.
        """
        return await _with_deadline("get_current_season", self._current_season(), timeout)

    async def _current_season(self) -> SeasonData:
        try:
            return await self._cache.get_season()
        except CacheMiss:
            pass

        season = await self._provider.fetch_current_season()
        await self._cache.update_season(season)
        logger.info("Current season refreshed from upstream", extra={"season_id": season.id})
        return season

    # =========================================================================
    # LEADERBOARD
    # =========================================================================

    async def get_current_leaderboard(self, timeout: Optional[float] = None) -> LeaderboardResponse:
        """
        Return the current leaderboard snapshot.

        On a miss the current season is resolved (cache first), its
        leaderboard fetched once and written to the cache before returning.
        """
        return await _with_deadline("get_current_leaderboard", self._current_leaderboard(), timeout)

    async def _current_leaderboard(self) -> LeaderboardResponse:
        try:
            return await self._cache.get_leaderboard()
        except CacheMiss:
            pass

        season = await self._current_season()
        snapshot = await self._provider.fetch_current_leaderboard(season.id)
        await self._cache.update_leaderboard(snapshot)
        logger.info(
            "Leaderboard refreshed from upstream",
            extra={"season_id": season.id, "players": len(snapshot.included)},
        )
        return snapshot

    # =========================================================================
    # PLAYER STATS
    # =========================================================================

    async def get_player_stats(
        self, player_id: str, timeout: Optional[float] = None
    ) -> PlayerAttribute:
        """
        Return one player's stats.

        Raises
        ------
        CacheMiss
            If the player is not in the current leaderboard.
        """
        return await _with_deadline("get_player_stats", self._player_stats(player_id), timeout)

    async def _player_stats(self, player_id: str) -> PlayerAttribute:
        try:
            return await self._cache.get_player_stats(player_id)
        except CacheMiss:
            logger.debug("Player stats miss, consulting leaderboard", extra={"player_id": player_id})

        snapshot = await self._current_leaderboard()
        stats = snapshot.find_player(player_id)
        if stats is None:
            raise CacheMiss(self._cache.keys.player_stats(player_id))
        return stats

    # =========================================================================
    # BACKUP / RESTORE
    # =========================================================================

    async def backup_leaderboard_data(
        self,
        container: str,
        name: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Back up the cached leaderboard snapshot.

        Only a cached snapshot is backed up; the upstream provider is never
        consulted. Returns the object name used.

        Raises
        ------
        NothingToBackup
            If no snapshot is cached. Nothing is written to storage.
        StorageWriteError
            If the upload fails or `name` already exists.
        """
        return await _with_deadline(
            "backup_leaderboard_data", self._backup(container, name), timeout
        )

    async def _backup(self, container: str, name: Optional[str]) -> str:
        try:
            snapshot = await self._cache.get_leaderboard()
        except CacheMiss as exc:
            raise NothingToBackup() from exc

        name = name or backup_name()
        await self._backups.backup(snapshot, container, name)
        return name

    async def restore_leaderboard_data(
        self,
        container: str,
        name: str,
        timeout: Optional[float] = None,
    ) -> LeaderboardResponse:
        """
        Load a backup and make it the cached leaderboard.

        Raises
        ------
        StorageReadError
            If the backup is missing or unreadable.
        DecodeError
            If the backup is corrupt.
        """
        return await _with_deadline(
            "restore_leaderboard_data", self._restore(container, name), timeout
        )

    async def _restore(self, container: str, name: str) -> LeaderboardResponse:
        snapshot = await self._backups.restore(container, name)
        await self._cache.update_leaderboard(snapshot)
        logger.info(
            "Leaderboard restored from backup",
            extra={"container": container, "object": name, "players": len(snapshot.included)},
        )
        return snapshot


async def _with_deadline(operation: str, work: Awaitable[T], timeout: Optional[float]) -> T:
    if timeout is None:
        return await work
    try:
        return await asyncio.wait_for(work, timeout)
    except asyncio.TimeoutError as exc:
        logger.warning(
            "Operation deadline exceeded",
            extra={"operation": operation, "timeout_seconds": timeout},
        )
        raise Canceled(operation, timeout) from exc
