"""Cache-first leaderboard service."""

from seasonboard.modules.leaderboard.service import LeaderboardService

__all__ = ["LeaderboardService"]
