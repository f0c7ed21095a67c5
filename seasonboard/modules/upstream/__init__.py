"""Upstream stats provider."""

from seasonboard.modules.upstream.pubg_client import PubgApiClient, StatsProvider

__all__ = ["PubgApiClient", "StatsProvider"]
