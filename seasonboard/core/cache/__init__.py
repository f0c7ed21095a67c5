"""
Cache layer for seasonboard.

Exports
-------
LeaderboardCache - season / leaderboard / player-stats store with fixed keys
CacheKeys        - key naming (hash-tagged in cluster mode)
"""

from seasonboard.core.cache.leaderboard import (
    LEADERBOARD_TTL_SECONDS,
    SEASON_TTL_SECONDS,
    CacheKeys,
    LeaderboardCache,
)

__all__ = [
    "LEADERBOARD_TTL_SECONDS",
    "SEASON_TTL_SECONDS",
    "CacheKeys",
    "LeaderboardCache",
]
