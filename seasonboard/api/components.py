"""
Process-wide collaborators wired together at startup.

The bootstrap constructs the Redis client, blob store and upstream client
once, injects them into the cache, backup manager and service, and hands
the bundle to the HTTP layer. Tests build an `AppComponents` around fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from seasonboard.core.cache.leaderboard import LeaderboardCache
from seasonboard.core.config.config import Config
from seasonboard.core.logging.logger import get_logger
from seasonboard.core.redis.service import RedisService
from seasonboard.core.storage.blob_store import FilesystemBlobStore
from seasonboard.modules.backup.codec import BackupManager
from seasonboard.modules.leaderboard.service import LeaderboardService
from seasonboard.modules.upstream.pubg_client import PubgApiClient

logger = get_logger(__name__)


@dataclass
class AppComponents:
    cache: LeaderboardCache
    service: LeaderboardService
    bucket: str = "pubg-leaderboard"
    request_timeout: Optional[float] = None
    closers: List[Callable[[], Awaitable[None]]] = field(default_factory=list)

    async def close(self) -> None:
        # Reverse construction order; every closer runs even if one fails
        errors = []
        for closer in reversed(self.closers):
            try:
                await closer()
            except Exception as exc:
                logger.error(
                    "Component shutdown failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                )
                errors.append(exc)
        self.closers.clear()
        if errors:
            raise errors[0]


async def build_components() -> AppComponents:
    """
    Construct and connect every collaborator described by `Config`.

    Raises
    ------
    BackendUnreachable
        If Redis does not answer at startup.
    """
    redis = RedisService.from_config()
    try:
        await redis.connect()
    except BaseException:
        await redis.close()
        raise

    provider = PubgApiClient.from_config()
    cache = LeaderboardCache(redis)
    backups = BackupManager(FilesystemBlobStore(Config.BACKUP_ROOT))
    service = LeaderboardService(cache, provider, backups)

    logger.info(
        "Components ready",
        extra={
            "clustered": redis.clustered,
            "backup_root": str(Config.BACKUP_ROOT),
            "bucket": Config.BACKUP_BUCKET,
        },
    )
    return AppComponents(
        cache=cache,
        service=service,
        bucket=Config.BACKUP_BUCKET,
        request_timeout=float(Config.REQUEST_TIMEOUT_SECONDS),
        closers=[redis.close, provider.close],
    )
