"""
Upstream stats provider.

Purpose
-------
Fetch the current season and the leaderboard for a season from the PUBG
developer API and translate the JSON:API payloads into domain records.

Responsibilities
----------------
- Define the `StatsProvider` protocol the service depends on
- Talk to the PUBG API over a shared `httpx.AsyncClient`
- Map transport errors, non-2xx statuses and malformed payloads onto
  `UpstreamUnavailable`

Non-Responsibilities
--------------------
- Caching (see core.cache.leaderboard)
- Retrying failed requests (callers decide)

Endpoints
---------
- GET {base}/shards/{platform}/seasons
- GET {base}/shards/{shard}/leaderboards/{seasonId}/{gameMode}

Upstream Mapping
----------------
Player rows arrive as
``{"type": "player", "id", "attributes": {"name", "rank", "stats": {...}}}``.
`stats.games` becomes `games_played`, `stats.wins` becomes `wins`; all other
stats travel in `extra` so a cached or backed-up snapshot keeps them.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional, Protocol

import httpx

from seasonboard.core.config.config import Config
from seasonboard.core.exceptions import MalformedRecord, UpstreamUnavailable
from seasonboard.core.logging.logger import get_logger
from seasonboard.domain.models.leaderboard import (
    LeaderboardData,
    LeaderboardResponse,
    PlayerAttribute,
    PlayerEntry,
    SeasonData,
)

logger = get_logger(__name__)

JSON_API_MEDIA_TYPE = "application/vnd.api+json"


class StatsProvider(Protocol):
    """Source of truth for seasons and leaderboards."""

    async def fetch_current_season(self) -> SeasonData: ...

    async def fetch_current_leaderboard(self, season_id: str) -> LeaderboardResponse: ...


class PubgApiClient:
    """
    `StatsProvider` backed by the PUBG developer API.

    Parameters
    ----------
    client:
        An `httpx.AsyncClient` whose `base_url` points at the API root and
        whose default headers carry the bearer key. Use `from_config()` to
        build one.
    platform:
        Platform shard used for the seasons endpoint (e.g. ``steam``).
    shard:
        Region shard used for leaderboards (e.g. ``pc-na``).
    game_mode:
        Leaderboard game mode (e.g. ``squad-fpp``).
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        platform: str,
        shard: str,
        game_mode: str,
    ) -> None:
        self._client = client
        self.platform = platform
        self.shard = shard
        self.game_mode = game_mode

    @classmethod
    def from_config(cls) -> "PubgApiClient":
        headers = {"Accept": JSON_API_MEDIA_TYPE}
        if Config.PUBG_API_KEY:
            headers["Authorization"] = f"Bearer {Config.PUBG_API_KEY}"

        client = httpx.AsyncClient(
            base_url=Config.PUBG_API_BASE_URL,
            headers=headers,
            timeout=float(Config.PUBG_HTTP_TIMEOUT),
        )
        return cls(
            client,
            platform=Config.PUBG_PLATFORM,
            shard=Config.PUBG_SHARD,
            game_mode=Config.PUBG_GAME_MODE,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # STATS PROVIDER
    # =========================================================================

    async def fetch_current_season(self) -> SeasonData:
        """
        Return the season flagged `isCurrentSeason`.

        Raises
        ------
        UpstreamUnavailable
            If the request fails or no season is flagged current.
        """
        operation = "fetch_current_season"
        payload = await self._get_json(operation, f"/shards/{self.platform}/seasons")

        try:
            season = _current_season(payload)
        except (MalformedRecord, AttributeError, TypeError, KeyError) as exc:
            raise self._malformed(operation, exc) from exc

        if season is None:
            raise UpstreamUnavailable(operation, "no season is flagged as current")
        return season

    async def fetch_current_leaderboard(self, season_id: str) -> LeaderboardResponse:
        """
        Return the leaderboard for `season_id` in the configured shard and mode.

        Raises
        ------
        UpstreamUnavailable
            If the request fails or the payload cannot be mapped.
        """
        operation = "fetch_current_leaderboard"
        path = f"/shards/{self.shard}/leaderboards/{season_id}/{self.game_mode}"
        payload = await self._get_json(operation, path)

        try:
            snapshot = _leaderboard_from_upstream(payload, self.shard, self.game_mode, season_id)
        except (MalformedRecord, AttributeError, TypeError, KeyError) as exc:
            raise self._malformed(operation, exc) from exc

        logger.info(
            "Leaderboard fetched from upstream",
            extra={"season_id": season_id, "players": len(snapshot.included)},
        )
        return snapshot

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _get_json(self, operation: str, path: str) -> Dict[str, Any]:
        start_time = time.monotonic()
        try:
            response = await self._client.get(path)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Upstream returned an error status",
                extra={
                    "operation": operation,
                    "path": path,
                    "status_code": exc.response.status_code,
                    "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
            )
            raise UpstreamUnavailable(
                operation, f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.error(
                "Upstream request failed",
                extra={
                    "operation": operation,
                    "path": path,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise UpstreamUnavailable(operation, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise UpstreamUnavailable(operation, "response is not JSON") from exc

        if not isinstance(payload, dict):
            raise UpstreamUnavailable(operation, "response is not a JSON object")

        logger.debug(
            "Upstream request completed",
            extra={
                "operation": operation,
                "path": path,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
            },
        )
        return payload

    @staticmethod
    def _malformed(operation: str, exc: Exception) -> UpstreamUnavailable:
        logger.error(
            "Upstream payload could not be mapped",
            extra={"operation": operation, "error": str(exc), "error_type": type(exc).__name__},
        )
        return UpstreamUnavailable(operation, f"malformed payload ({exc})")


# ============================================================================
# PAYLOAD MAPPING
# ============================================================================


def _require_list(value: Any, where: str) -> list:
    if not isinstance(value, list):
        raise MalformedRecord("upstream", f"'{where}' must be an array")
    return value


def _season_from_upstream(row: Dict[str, Any]) -> SeasonData:
    attributes = dict(row.get("attributes") or {})
    is_current = attributes.pop("isCurrentSeason", True)
    is_offseason = attributes.pop("isOffseason", False)
    return SeasonData(
        id=row["id"],
        is_current_season=is_current,
        is_offseason=is_offseason,
        extra=attributes,
    )


def _player_from_upstream(row: Dict[str, Any]) -> PlayerEntry:
    attributes = dict(row.get("attributes") or {})
    stats = dict(attributes.pop("stats", None) or {})
    name = attributes.pop("name", "")
    rank = attributes.pop("rank")

    games_played = stats.pop("games", 0)
    wins = stats.pop("wins", 0)

    extra: Dict[str, Any] = {}
    if stats:
        extra["stats"] = stats
    extra.update(attributes)

    return PlayerEntry(
        id=row["id"],
        attributes=PlayerAttribute(
            rank=rank,
            games_played=games_played,
            wins=wins,
            name=name or "",
            extra=extra,
        ),
    )


def _leaderboard_from_upstream(
    payload: Dict[str, Any],
    shard: str,
    game_mode: str,
    season_id: str,
) -> LeaderboardResponse:
    data = payload.get("data")
    if not isinstance(data, dict):
        raise MalformedRecord("upstream", "'data' must be an object")

    attributes: Dict[str, Any] = data.get("attributes") or {}
    header = LeaderboardData(
        id=data["id"],
        shard_id=attributes.get("shardId") or shard,
        game_mode=attributes.get("gameMode") or game_mode,
        season_id=attributes.get("seasonId") or season_id,
    )

    rows = _require_list(payload.get("included", []), "included")
    players = [_player_from_upstream(row) for row in rows if row.get("type") == "player"]
    return LeaderboardResponse(data=header, included=players)


def _current_season(payload: Dict[str, Any]) -> Optional[SeasonData]:
    for row in _require_list(payload.get("data"), "data"):
        attributes = row.get("attributes") or {}
        if attributes.get("isCurrentSeason") is True:
            return _season_from_upstream(row)
    return None
