"""
Unit tests for LeaderboardService.

Tests cache-first reads, the miss → fetch → populate path, the player
stats fallback, the backup precondition and deadlines.
"""

import asyncio

import pytest

from seasonboard.core.exceptions import (
    CacheMiss,
    Canceled,
    NothingToBackup,
    StorageReadError,
    UpstreamUnavailable,
)
from seasonboard.modules.backup.codec import BackupManager
from seasonboard.modules.leaderboard.service import LeaderboardService
from tests.conftest import SEASON_ID, make_season, make_snapshot
from tests.fakes import RecordingBlobStore

pytestmark = pytest.mark.unit


@pytest.mark.asyncio
class TestSeason:
    async def test_miss_fetches_and_caches(self, service, provider, cache):
        season = await service.get_current_season()

        assert season == make_season()
        assert provider.season_calls == 1
        assert await cache.get_season() == season

    async def test_hit_skips_upstream(self, service, provider, cache):
        await cache.update_season(make_season("cached-season"))

        season = await service.get_current_season()

        assert season.id == "cached-season"
        assert provider.season_calls == 0

    async def test_upstream_failure_propagates(self, service, provider):
        provider.season = None

        with pytest.raises(UpstreamUnavailable):
            await service.get_current_season()


@pytest.mark.asyncio
class TestLeaderboard:
    async def test_miss_then_populate_fetches_exactly_once(self, service, provider):
        first = await service.get_current_leaderboard()
        second = await service.get_current_leaderboard()

        assert first == second == provider.leaderboard
        assert provider.leaderboard_calls == [SEASON_ID]

    async def test_uses_cached_season_for_fetch(self, service, provider, cache):
        await cache.update_season(make_season("cached-season"))

        await service.get_current_leaderboard()

        assert provider.season_calls == 0
        assert provider.leaderboard_calls == ["cached-season"]

    async def test_refetches_after_expiry(self, service, provider, clock):
        await service.get_current_leaderboard()

        clock.advance(10 * 60 + 1)
        await service.get_current_leaderboard()

        assert len(provider.leaderboard_calls) == 2
        assert provider.season_calls == 1

    async def test_upstream_failure_leaves_cache_empty(self, service, provider, cache):
        provider.leaderboard = None

        with pytest.raises(UpstreamUnavailable):
            await service.get_current_leaderboard()

        with pytest.raises(CacheMiss):
            await cache.get_leaderboard()


@pytest.mark.asyncio
class TestPlayerStats:
    async def test_cold_cache_falls_back_to_leaderboard(self, service, provider):
        stats = await service.get_player_stats("p2")

        assert (stats.rank, stats.games_played, stats.wins) == (2, 70, 15)
        assert len(provider.leaderboard_calls) == 1

    async def test_fallback_populates_player_keys(self, service, provider, cache):
        await service.get_player_stats("p1")

        assert (await cache.get_player_stats("p3")).wins == 10

    async def test_warm_cache_answers_directly(self, service, provider):
        await service.get_current_leaderboard()

        await service.get_player_stats("p3")

        assert len(provider.leaderboard_calls) == 1

    async def test_unknown_player_is_a_miss(self, service):
        with pytest.raises(CacheMiss):
            await service.get_player_stats("ghost")


@pytest.mark.asyncio
class TestBackupAndRestore:
    async def test_nothing_cached_means_nothing_written(self, cache, provider):
        store = RecordingBlobStore()
        service = LeaderboardService(cache, provider, BackupManager(store))

        with pytest.raises(NothingToBackup):
            await service.backup_leaderboard_data("pubg-leaderboard", "b.json")

        assert store.puts == []
        assert provider.leaderboard_calls == []

    async def test_backup_generates_a_name(self, service, blob_store):
        await service.get_current_leaderboard()

        name = await service.backup_leaderboard_data("pubg-leaderboard")

        assert name.startswith("leaderboard_backup_")
        assert await blob_store.list("pubg-leaderboard") == [name]

    async def test_back_to_back_backups_get_distinct_names(self, service, blob_store):
        await service.get_current_leaderboard()

        first = await service.backup_leaderboard_data("pubg-leaderboard")
        second = await service.backup_leaderboard_data("pubg-leaderboard")

        assert first != second
        assert await blob_store.list("pubg-leaderboard") == [first, second]

    async def test_restore_replaces_cache(self, service, provider, cache):
        await service.get_current_leaderboard()
        await service.backup_leaderboard_data("pubg-leaderboard", "b.json")

        await cache.update_leaderboard(make_snapshot([("p9", 1, 5, 5)]))
        restored = await service.restore_leaderboard_data("pubg-leaderboard", "b.json")

        assert restored == provider.leaderboard
        assert await cache.get_leaderboard() == provider.leaderboard
        with pytest.raises(CacheMiss):
            await cache.get_player_stats("p9")

    async def test_restore_missing_backup(self, service):
        with pytest.raises(StorageReadError):
            await service.restore_leaderboard_data("pubg-leaderboard", "nope.json")


@pytest.mark.asyncio
class TestDeadlines:
    async def test_slow_upstream_is_canceled(self, service, provider, cache):
        async def stall():
            await asyncio.sleep(10)

        provider.delay = stall

        with pytest.raises(Canceled) as exc_info:
            await service.get_current_leaderboard(timeout=0.05)

        assert exc_info.value.operation == "get_current_leaderboard"
        with pytest.raises(CacheMiss):
            await cache.get_leaderboard()

    async def test_stalled_transaction_leaves_no_partial_write(self, service, fake_redis):
        async def stall():
            await asyncio.sleep(10)

        fake_redis.on_execute = stall

        with pytest.raises(Canceled):
            await service.get_current_leaderboard(timeout=0.05)

        assert fake_redis.live_keys() == ["current_season"]

    async def test_task_cancellation_propagates(self, service, provider):
        async def stall():
            await asyncio.sleep(10)

        provider.delay = stall
        task = asyncio.create_task(service.get_current_leaderboard(timeout=5))
        await asyncio.sleep(0.01)

        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

    async def test_fast_call_within_deadline(self, service):
        stats = await service.get_player_stats("p1", timeout=5)

        assert stats.rank == 1
