"""
Core infrastructure for seasonboard: configuration, logging, exceptions,
the Redis backend, the leaderboard cache store and blob storage.
"""
