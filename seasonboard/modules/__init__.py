"""
Feature modules.

- backup: backup artifact codec and blob-storage round trip
- upstream: stats provider protocol and PUBG API client
- leaderboard: cache-first orchestration service
"""
