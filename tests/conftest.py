"""
Pytest Configuration and Fixtures for the Seasonboard Test Suite
================================================================

Purpose
-------
Centralized fixtures for the cache, backup, service and API tests.

Responsibilities
----------------
- Testcontainers setup for Redis (integration tests)
- Fake Redis with a controllable clock (unit tests)
- Record factories for seasons, players and leaderboard snapshots
- Wiring of cache / backup manager / service around the fakes

Non-Responsibilities
--------------------
- Test implementation (delegated to test files)
- Production configuration (test-specific only)

Architecture Notes
------------------
- Unit tests use in-process fakes (fast, isolated)
- Integration tests use testcontainers (real Redis)
- Fixtures follow scope hierarchy: session > function
"""

from __future__ import annotations

import os
from typing import AsyncGenerator, Generator, Iterable, Tuple

import pytest
import pytest_asyncio
from testcontainers.redis import RedisContainer

from seasonboard.core.cache.leaderboard import LeaderboardCache
from seasonboard.core.logging.logger import get_logger
from seasonboard.core.redis.service import RedisService
from seasonboard.core.storage.blob_store import FilesystemBlobStore
from seasonboard.domain.models.leaderboard import (
    LeaderboardData,
    LeaderboardResponse,
    PlayerAttribute,
    PlayerEntry,
    SeasonData,
)
from seasonboard.modules.backup.codec import BackupManager
from seasonboard.modules.leaderboard.service import LeaderboardService
from tests.fakes import FakeClock, FakeRedis, FakeStatsProvider

logger = get_logger(__name__)

SEASON_ID = "division.bro.official.pc-2018-20"


# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ.setdefault("ENVIRONMENT", "testing")
    os.environ.setdefault("LOG_LEVEL", "DEBUG")


# ============================================================================
# RECORD FACTORIES
# ============================================================================


def make_season(season_id: str = SEASON_ID) -> SeasonData:
    return SeasonData(id=season_id, is_current_season=True, is_offseason=False)


def make_snapshot(
    players: Iterable[Tuple[str, int, int, int]],
    season_id: str = SEASON_ID,
) -> LeaderboardResponse:
    """
    Build a snapshot from ``(player_id, rank, games_played, wins)`` rows.

    Usage:
        make_snapshot([("p1", 1, 80, 20), ("p2", 2, 70, 15)])
    """
    return LeaderboardResponse(
        data=LeaderboardData(
            id=f"lb-{season_id}",
            shard_id="pc-na",
            game_mode="squad-fpp",
            season_id=season_id,
        ),
        included=tuple(
            PlayerEntry(
                id=player_id,
                attributes=PlayerAttribute(
                    rank=rank, games_played=games, wins=wins, name=f"name-{player_id}"
                ),
            )
            for player_id, rank, games, wins in players
        ),
    )


# ============================================================================
# TESTCONTAINERS FIXTURES (Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def redis_container() -> Generator[RedisContainer, None, None]:
    """
    Start Redis testcontainer for integration tests.

    Scope: session (container persists across all tests)
    Uses: Integration tests that need real Redis
    """
    logger.info("Starting Redis testcontainer...")
    container = RedisContainer(image="redis:7-alpine")
    container.start()

    logger.info(
        "Redis testcontainer started: %s:%s",
        container.get_container_host_ip(),
        container.get_exposed_port(6379),
    )

    yield container

    logger.info("Stopping Redis testcontainer...")
    container.stop()


@pytest_asyncio.fixture(scope="function")
async def live_redis_service(
    redis_container: RedisContainer,
) -> AsyncGenerator[RedisService, None]:
    """
    RedisService connected to the testcontainer, flushed before each test.

    Scope: function (clean key space per test)
    """
    from redis.asyncio import Redis

    url = (
        f"redis://{redis_container.get_container_host_ip()}:"
        f"{redis_container.get_exposed_port(6379)}/0"
    )
    client = Redis.from_url(url, decode_responses=True)
    await client.flushdb()

    service = RedisService(client)
    yield service

    await service.close()


# ============================================================================
# FAKE FIXTURES (Unit Tests)
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_redis(clock: FakeClock) -> FakeRedis:
    return FakeRedis(clock)


@pytest.fixture
def redis_service(fake_redis: FakeRedis) -> RedisService:
    return RedisService(fake_redis, clustered=False, max_tx_attempts=3)


@pytest.fixture
def cache(redis_service: RedisService) -> LeaderboardCache:
    return LeaderboardCache(redis_service)


@pytest.fixture
def blob_store(tmp_path) -> FilesystemBlobStore:
    return FilesystemBlobStore(tmp_path / "backups")


@pytest.fixture
def backup_manager(blob_store: FilesystemBlobStore) -> BackupManager:
    return BackupManager(blob_store)


@pytest.fixture
def provider() -> FakeStatsProvider:
    return FakeStatsProvider(
        season=make_season(),
        leaderboard=make_snapshot([("p1", 1, 80, 20), ("p2", 2, 70, 15), ("p3", 3, 60, 10)]),
    )


@pytest.fixture
def service(
    cache: LeaderboardCache,
    provider: FakeStatsProvider,
    backup_manager: BackupManager,
) -> LeaderboardService:
    return LeaderboardService(cache, provider, backup_manager)
