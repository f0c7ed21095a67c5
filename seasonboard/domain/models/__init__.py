"""
Leaderboard domain records.

Exports the season, leaderboard and player records together with their
strict JSON encoding.
"""

from seasonboard.domain.models.leaderboard import (
    JsonRecord,
    LeaderboardData,
    LeaderboardResponse,
    PlayerAttribute,
    PlayerEntry,
    SeasonData,
)

__all__ = [
    "JsonRecord",
    "LeaderboardData",
    "LeaderboardResponse",
    "PlayerAttribute",
    "PlayerEntry",
    "SeasonData",
]
