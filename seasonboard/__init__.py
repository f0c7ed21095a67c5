"""
seasonboard - read-through cache for a seasonal game leaderboard.

Caches the current season, the full leaderboard snapshot and per-player
stats in Redis, and backs leaderboard snapshots up to blob storage.
"""

__version__ = "1.0.0"
