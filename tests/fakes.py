"""
In-process test doubles for unit tests.

- FakeClock: manually advanced monotonic clock
- FakeRedis: the subset of the redis-py asyncio API the cache uses, with
  TTLs driven by FakeClock and WATCH / MULTI / EXEC conflict detection
- FakeStatsProvider: upstream provider that counts calls
- RecordingBlobStore: in-memory BlobStore that records puts
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from redis.exceptions import WatchError

from seasonboard.core.exceptions import StorageReadError, StorageWriteError, UpstreamUnavailable
from seasonboard.domain.models.leaderboard import LeaderboardResponse, SeasonData


class FakeClock:
    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# REDIS
# ============================================================================


class FakeRedis:
    """
    Key space of strings, hashes and sets with lazy expiry.

    `fail(command, exc)` makes every later call of `command` raise `exc`.
    `on_execute` is awaited inside EXEC before watched keys are checked,
    which lets a test play a concurrent writer or stall a transaction.
    """

    def __init__(self, clock: Optional[FakeClock] = None) -> None:
        self.clock = clock or FakeClock()
        self._data: Dict[str, Any] = {}
        self._expiry: Dict[str, float] = {}
        self._versions: Dict[str, int] = {}
        self._failures: Dict[str, BaseException] = {}
        self.on_execute: Optional[Callable[[], Awaitable[None]]] = None
        self.exec_count = 0
        self.closed = False

    # -- test helpers ---------------------------------------------------------

    def fail(self, command: str, exc: BaseException) -> None:
        self._failures[command] = exc

    def plant(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Write a raw value behind the cache's back."""
        self._write(key, value)
        if ttl is not None:
            self._expiry[key] = self.clock() + ttl

    def live_keys(self) -> List[str]:
        return sorted(key for key in list(self._data) if self._live(key))

    def ttl(self, key: str) -> Optional[float]:
        if not self._live(key) or key not in self._expiry:
            return None
        return self._expiry[key] - self.clock()

    # -- internals ------------------------------------------------------------

    def _maybe_fail(self, command: str) -> None:
        exc = self._failures.get(command)
        if exc is not None:
            raise exc

    def _live(self, key: str) -> bool:
        expires_at = self._expiry.get(key)
        if expires_at is not None and self.clock() >= expires_at:
            self._data.pop(key, None)
            self._expiry.pop(key, None)
        return key in self._data

    def _write(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._expiry.pop(key, None)
        self._versions[key] = self._versions.get(key, 0) + 1

    def _delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._versions[key] = self._versions.get(key, 0) + 1
        self._expiry.pop(key, None)

    def version(self, key: str) -> int:
        return self._versions.get(key, 0)

    def apply(self, command: str, args: Tuple[Any, ...], kwargs: Dict[str, Any]) -> Any:
        if command == "delete":
            for key in args:
                self._delete(key)
            return len(args)
        if command == "set":
            key, value = args
            self._write(key, value)
            if kwargs.get("ex") is not None:
                self._expiry[key] = self.clock() + kwargs["ex"]
            return True
        if command == "hset":
            (key,) = args
            current = dict(self._data[key]) if self._live(key) else {}
            current.update(kwargs["mapping"])
            self._write(key, current)
            return len(kwargs["mapping"])
        if command == "expire":
            key, seconds = args
            if not self._live(key):
                return False
            self._expiry[key] = self.clock() + seconds
            return True
        if command == "sadd":
            key, *members = args
            current: Set[str] = set(self._data[key]) if self._live(key) else set()
            current.update(members)
            self._write(key, current)
            return len(members)
        raise AssertionError(f"unsupported queued command {command!r}")

    # -- redis-py surface -----------------------------------------------------

    async def ping(self) -> bool:
        self._maybe_fail("ping")
        return True

    async def get(self, key: str) -> Optional[str]:
        self._maybe_fail("get")
        return self._data[key] if self._live(key) else None

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        self._maybe_fail("set")
        return self.apply("set", (key, value), {"ex": ex})

    async def hget(self, key: str, field: str) -> Optional[str]:
        self._maybe_fail("hget")
        if not self._live(key):
            return None
        return self._data[key].get(field)

    async def smembers(self, key: str) -> Set[str]:
        self._maybe_fail("smembers")
        return set(self._data[key]) if self._live(key) else set()

    def pipeline(self, transaction: bool = True) -> "FakePipeline":
        return FakePipeline(self)

    async def aclose(self) -> None:
        self.closed = True


class FakePipeline:
    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self._watched: Dict[str, int] = {}
        self._queue: List[Tuple[str, Tuple[Any, ...], Dict[str, Any]]] = []
        self._in_multi = False

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.reset()

    async def watch(self, *keys: str) -> None:
        self._redis._maybe_fail("watch")
        for key in keys:
            self._watched[key] = self._redis.version(key)

    async def smembers(self, key: str) -> Set[str]:
        assert not self._in_multi, "immediate read after MULTI"
        return await self._redis.smembers(key)

    def multi(self) -> None:
        self._in_multi = True

    def _queue_command(self, command: str, *args: Any, **kwargs: Any) -> "FakePipeline":
        assert self._in_multi, f"{command} queued before MULTI"
        self._queue.append((command, args, kwargs))
        return self

    def delete(self, *keys: str) -> "FakePipeline":
        return self._queue_command("delete", *keys)

    def set(self, key: str, value: str, ex: Optional[int] = None) -> "FakePipeline":
        return self._queue_command("set", key, value, ex=ex)

    def hset(self, key: str, mapping: Dict[str, str]) -> "FakePipeline":
        return self._queue_command("hset", key, mapping=mapping)

    def expire(self, key: str, seconds: int) -> "FakePipeline":
        return self._queue_command("expire", key, seconds)

    def sadd(self, key: str, *members: str) -> "FakePipeline":
        return self._queue_command("sadd", key, *members)

    async def execute(self) -> List[Any]:
        redis = self._redis
        redis._maybe_fail("execute")
        if redis.on_execute is not None:
            await redis.on_execute()

        queue, watched = self._queue, self._watched
        await self.reset()

        if any(redis.version(key) != version for key, version in watched.items()):
            raise WatchError("Watched variable changed.")

        results = [redis.apply(command, args, kwargs) for command, args, kwargs in queue]
        redis.exec_count += 1
        return results

    async def reset(self) -> None:
        self._watched = {}
        self._queue = []
        self._in_multi = False


# ============================================================================
# UPSTREAM / STORAGE
# ============================================================================


class FakeStatsProvider:
    def __init__(
        self,
        season: Optional[SeasonData] = None,
        leaderboard: Optional[LeaderboardResponse] = None,
    ) -> None:
        self.season = season
        self.leaderboard = leaderboard
        self.season_calls = 0
        self.leaderboard_calls: List[str] = []
        self.delay: Optional[Callable[[], Awaitable[None]]] = None

    async def fetch_current_season(self) -> SeasonData:
        self.season_calls += 1
        if self.season is None:
            raise UpstreamUnavailable("fetch_current_season", "no season configured")
        return self.season

    async def fetch_current_leaderboard(self, season_id: str) -> LeaderboardResponse:
        self.leaderboard_calls.append(season_id)
        if self.delay is not None:
            await self.delay()
        if self.leaderboard is None:
            raise UpstreamUnavailable("fetch_current_leaderboard", "no leaderboard configured")
        return self.leaderboard


class RecordingBlobStore:
    def __init__(self) -> None:
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.puts: List[Tuple[str, str]] = []

    async def put(self, container: str, name: str, data: bytes) -> None:
        self.puts.append((container, name))
        if (container, name) in self.objects:
            raise StorageWriteError("exists", details={"object": name}, is_retryable=False)
        self.objects[(container, name)] = data

    async def get(self, container: str, name: str) -> bytes:
        try:
            return self.objects[(container, name)]
        except KeyError as exc:
            raise StorageReadError(
                "missing", details={"container": container, "object": name, "missing": True}
            ) from exc

    async def list(self, container: str) -> List[str]:
        return sorted(name for bucket, name in self.objects if bucket == container)
