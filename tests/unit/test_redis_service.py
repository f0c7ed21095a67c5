"""
Unit tests for RedisService against a real redis-py cluster client.

No cluster is running: the client points at a closed port, so these tests
cover pipeline construction and error mapping in cluster mode.
"""

import pytest
import pytest_asyncio
from redis.asyncio.cluster import ClusterNode, ClusterPipeline, RedisCluster
from redis.exceptions import RedisClusterException

from seasonboard.core.cache.leaderboard import LeaderboardCache
from seasonboard.core.exceptions import BackendUnreachable, BackendWriteError
from seasonboard.core.redis.service import RedisService
from tests.conftest import make_snapshot

pytestmark = pytest.mark.unit

UNREACHABLE_NODE = ClusterNode("127.0.0.1", 1)


@pytest_asyncio.fixture
async def cluster_service():
    client = RedisCluster(
        startup_nodes=[UNREACHABLE_NODE],
        decode_responses=True,
        socket_connect_timeout=0.5,
        socket_timeout=0.5,
    )
    service = RedisService(client, clustered=True, max_tx_attempts=2)
    yield service
    await service.close()


@pytest.mark.asyncio
class TestClusterClient:
    async def test_cluster_client_builds_transactional_pipeline(self, cluster_service):
        pipe = cluster_service.client.pipeline(transaction=True)

        assert isinstance(pipe, ClusterPipeline)

    async def test_unreachable_cluster_transaction_is_backend_write_error(self, cluster_service):
        async def body(pipe):
            pipe.multi()
            pipe.set("{leaderboard}:leaderboard", "{}")

        with pytest.raises(BackendWriteError):
            await cluster_service.transaction(body, watch=["{leaderboard}:leaderboard"])

    async def test_unreachable_cluster_update_is_backend_write_error(self, cluster_service):
        cache = LeaderboardCache(cluster_service)

        with pytest.raises(BackendWriteError):
            await cache.update_leaderboard(make_snapshot([("p1", 1, 80, 20)]))

    async def test_unreachable_cluster_ping_is_backend_unreachable(self, cluster_service):
        with pytest.raises(BackendUnreachable):
            await cluster_service.ping()


@pytest.mark.asyncio
class TestClusterErrorMapping:
    async def test_cluster_exception_on_exec_is_backend_write_error(self, cache, fake_redis):
        fake_redis.fail("execute", RedisClusterException("transaction is deprecated in cluster mode"))

        with pytest.raises(BackendWriteError) as exc_info:
            await cache.update_leaderboard(make_snapshot([("p1", 1, 80, 20)]))

        assert exc_info.value.details["operation"] == "MULTI"

    async def test_cluster_exception_on_read_is_backend_unreachable(self, cache, fake_redis):
        fake_redis.fail("get", RedisClusterException("Redis Cluster cannot be connected"))

        with pytest.raises(BackendUnreachable):
            await cache.get_leaderboard()
