"""
Redis infrastructure for seasonboard.

Exports
-------
RedisService - connection ownership, GET/SET/HGET and optimistic
transactions over a standalone Redis or a Redis Cluster.
"""

from seasonboard.core.redis.service import RedisService

__all__ = ["RedisService"]
