"""
RedisService: async Redis access for the leaderboard cache.

Purpose
-------
Own the connection to the key-value backend (standalone Redis or Redis
Cluster) and expose the handful of primitives the cache store needs:

- PING liveness check
- GET / SET with expiry
- HGET on hash fields
- Optimistic WATCH / MULTI / EXEC transactions

Responsibilities
----------------
- Build the redis-py asyncio client from configuration
- Map redis-py errors onto `BackendUnreachable` (reads, PING) and
  `BackendWriteError` (writes, transactions)
- Log every operation with latency and structured error context
- Re-attempt a transaction when a watched key changes underneath it

Non-Responsibilities
--------------------
- Key naming, TTL policy and record encoding (see core.cache.leaderboard)
- Retrying failed commands (callers decide)

Configuration Keys
------------------
- Config.REDIS_URL              : str (standalone mode)
- Config.REDIS_CLUSTER_NODES    : list[str] (cluster mode when non-empty)
- Config.REDIS_PASSWORD         : str | None
- Config.REDIS_SOCKET_TIMEOUT   : int (default 5)
- Config.REDIS_MAX_CONNECTIONS  : int (default 50)
- Config.REDIS_TX_MAX_ATTEMPTS  : int (default 5)

Architecture Notes
------------------
- One instance per process, constructed by the bootstrap and injected
  into the cache store; tests pass a fake client instead
- `asyncio.CancelledError` is never caught: a cancelled transaction is
  discarded by the pipeline context manager before EXEC
"""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, Optional, Sequence

from redis.asyncio import Redis
from redis.asyncio.cluster import ClusterNode, RedisCluster
from redis.exceptions import RedisClusterException, RedisError, WatchError

from seasonboard.core.config.config import Config
from seasonboard.core.exceptions import BackendUnreachable, BackendWriteError
from seasonboard.core.logging.logger import get_logger

logger = get_logger(__name__)

TransactionBody = Callable[[Any], Awaitable[None]]

# RedisClusterException does not derive from RedisError
BACKEND_ERRORS = (RedisError, RedisClusterException, OSError)


class RedisService:
    """
    Thin, observable wrapper around a redis-py asyncio client.

    Parameters
    ----------
    client:
        A `redis.asyncio.Redis`, `redis.asyncio.cluster.RedisCluster`, or a
        test double exposing the same coroutine API.
    clustered:
        Whether `client` talks to a Redis Cluster. The cache store uses this
        to co-locate multi-key transactions in one hash slot.
    max_tx_attempts:
        How many times a transaction is re-run after a WATCH conflict.
    """

    def __init__(
        self,
        client: Any,
        clustered: bool = False,
        max_tx_attempts: int = 5,
    ) -> None:
        self._client = client
        self.clustered = clustered
        self.max_tx_attempts = max_tx_attempts

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def from_config(cls) -> "RedisService":
        """
        Build the client described by `Config` without performing I/O.

        Cluster mode is selected when `REDIS_CLUSTER_NODES` is non-empty.
        """
        if Config.is_cluster():
            startup_nodes = []
            for node in Config.REDIS_CLUSTER_NODES:
                host, _, port = node.rpartition(":")
                startup_nodes.append(ClusterNode(host, int(port)))

            client: Any = RedisCluster(
                startup_nodes=startup_nodes,
                password=Config.REDIS_PASSWORD,
                decode_responses=True,
                socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                max_connections=Config.REDIS_MAX_CONNECTIONS,
            )
        else:
            client = Redis.from_url(
                Config.REDIS_URL,
                password=Config.REDIS_PASSWORD,
                decode_responses=True,
                socket_timeout=Config.REDIS_SOCKET_TIMEOUT,
                max_connections=Config.REDIS_MAX_CONNECTIONS,
                health_check_interval=30,
            )

        logger.info(
            "Redis client configured",
            extra={
                "mode": "cluster" if Config.is_cluster() else "standalone",
                "cluster_nodes": len(Config.REDIS_CLUSTER_NODES),
                "socket_timeout_seconds": Config.REDIS_SOCKET_TIMEOUT,
                "max_connections": Config.REDIS_MAX_CONNECTIONS,
            },
        )
        return cls(
            client,
            clustered=Config.is_cluster(),
            max_tx_attempts=Config.REDIS_TX_MAX_ATTEMPTS,
        )

    async def connect(self) -> None:
        """
        Verify the backend answers before serving traffic.

        Raises
        ------
        BackendUnreachable
            If no node responds to PING.
        """
        await self.ping()
        logger.info("RedisService connected", extra={"clustered": self.clustered})

    async def close(self) -> None:
        """Release the connection pool. Safe to call more than once."""
        client, self._client = self._client, None
        if client is None:
            return
        await client.aclose()
        logger.info("RedisService shutdown complete")

    @property
    def client(self) -> Any:
        if self._client is None:
            raise RuntimeError("RedisService is closed")
        return self._client

    # ═══════════════════════════════════════════════════════════════════════
    # HEALTH
    # ═══════════════════════════════════════════════════════════════════════

    async def ping(self) -> None:
        """
        PING the backend.

        Raises
        ------
        BackendUnreachable
            If the backend does not answer or answers falsy.
        """
        start_time = time.monotonic()
        try:
            pong = await self.client.ping()
        except BACKEND_ERRORS as exc:
            logger.error(
                "Redis PING failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            raise BackendUnreachable(
                "Redis did not answer PING",
                details={"error": str(exc), "error_type": type(exc).__name__},
            ) from exc

        if not pong:
            raise BackendUnreachable("Redis PING returned a falsy reply")

        logger.debug("Redis PING", extra={"latency_ms": _elapsed_ms(start_time)})

    # ═══════════════════════════════════════════════════════════════════════
    # KEY-VALUE OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    async def get(self, key: str) -> Optional[str]:
        """
        Get a string value.

        Returns
        -------
        Optional[str]
            The value, or None if the key is absent or expired.
        """
        start_time = time.monotonic()
        try:
            value = await self.client.get(key)
        except BACKEND_ERRORS as exc:
            raise self._unreachable("GET", key, start_time, exc) from exc

        logger.debug(
            "Redis GET operation",
            extra={"key": key, "found": value is not None, "latency_ms": _elapsed_ms(start_time)},
        )
        return value

    async def hget(self, key: str, field: str) -> Optional[str]:
        """Get one field of a hash, or None if the key or field is absent."""
        start_time = time.monotonic()
        try:
            value = await self.client.hget(key, field)
        except BACKEND_ERRORS as exc:
            raise self._unreachable("HGET", key, start_time, exc) from exc

        logger.debug(
            "Redis HGET operation",
            extra={
                "key": key,
                "field": field,
                "found": value is not None,
                "latency_ms": _elapsed_ms(start_time),
            },
        )
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """
        Set a string value with an expiry.

        Raises
        ------
        BackendWriteError
            If the backend cannot be reached or rejects the write.
        """
        start_time = time.monotonic()
        try:
            result = await self.client.set(key, value, ex=ttl_seconds)
        except BACKEND_ERRORS as exc:
            raise self._write_failure("SET", [key], start_time, exc) from exc

        if not result:
            raise BackendWriteError(f"Redis SET for '{key}' was not applied", details={"key": key})

        logger.debug(
            "Redis SET operation",
            extra={"key": key, "ttl_seconds": ttl_seconds, "latency_ms": _elapsed_ms(start_time)},
        )

    # ═══════════════════════════════════════════════════════════════════════
    # TRANSACTIONS
    # ═══════════════════════════════════════════════════════════════════════

    async def transaction(self, body: TransactionBody, watch: Sequence[str]) -> int:
        """
        Run `body` as an optimistic WATCH / MULTI / EXEC transaction.

        `body` receives a pipeline that is already watching `watch`. It may
        issue immediate reads, must then call `pipe.multi()` and queue its
        writes. If a watched key changes before EXEC the whole body is run
        again from fresh reads, up to `max_tx_attempts` times. Nothing is
        applied unless EXEC succeeds.

        Returns
        -------
        int
            Number of attempts used.

        Raises
        ------
        BackendWriteError
            If every attempt conflicted, the backend rejected EXEC, or the
            backend could not be reached. Nothing is applied.
        """
        start_time = time.monotonic()
        keys = list(watch)

        try:
            async with self.client.pipeline(transaction=True) as pipe:
                for attempt in range(1, self.max_tx_attempts + 1):
                    try:
                        await pipe.watch(*keys)
                        await body(pipe)
                        await pipe.execute()
                    except WatchError:
                        logger.info(
                            "Redis transaction conflicted, re-running",
                            extra={"watch": keys, "attempt": attempt},
                        )
                        await pipe.reset()
                        continue

                    logger.debug(
                        "Redis transaction committed",
                        extra={
                            "watch": keys,
                            "attempts": attempt,
                            "latency_ms": _elapsed_ms(start_time),
                        },
                    )
                    return attempt
        except BACKEND_ERRORS as exc:
            raise self._write_failure("MULTI", keys, start_time, exc) from exc

        logger.error(
            "Redis transaction gave up after repeated conflicts",
            extra={"watch": keys, "attempts": self.max_tx_attempts},
        )
        raise BackendWriteError(
            "Transaction kept conflicting with concurrent writers",
            details={"watch": keys, "attempts": self.max_tx_attempts},
        )

    # ═══════════════════════════════════════════════════════════════════════
    # ERROR MAPPING
    # ═══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _unreachable(
        operation: str, key: str, start_time: float, exc: Exception
    ) -> BackendUnreachable:
        logger.error(
            f"Redis {operation} operation failed",
            extra={
                "key": key,
                "latency_ms": _elapsed_ms(start_time),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return BackendUnreachable(
            f"Redis {operation} failed for '{key}'",
            details={"operation": operation, "key": key, "error": str(exc)},
        )

    @staticmethod
    def _write_failure(
        operation: str, keys: Sequence[str], start_time: float, exc: Exception
    ) -> BackendWriteError:
        logger.error(
            f"Redis {operation} write failed",
            extra={
                "keys": list(keys),
                "latency_ms": _elapsed_ms(start_time),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
        return BackendWriteError(
            f"Redis {operation} failed",
            details={"operation": operation, "keys": list(keys), "error": str(exc)},
        )


def _elapsed_ms(start_time: float) -> float:
    return round((time.monotonic() - start_time) * 1000, 2)
