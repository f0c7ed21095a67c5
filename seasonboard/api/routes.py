"""HTTP routes for health, season, leaderboard, player stats and backups."""

from __future__ import annotations

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from seasonboard.api.components import AppComponents
from seasonboard.core.exceptions import CacheMiss
from seasonboard.core.logging.logger import get_logger, set_log_context

logger = get_logger(__name__)

router = APIRouter()


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


Components = Annotated[AppComponents, Depends(get_components)]


# =============================================================================
# HEALTH
# =============================================================================


@router.get("/ping")
async def ping() -> Dict[str, str]:
    return {"message": "pong"}


@router.get("/redis-ping")
async def redis_ping(components: Components) -> Dict[str, str]:
    await components.cache.ping()
    return {"message": "pong"}


# =============================================================================
# READS
# =============================================================================


@router.get("/current-season")
async def current_season(components: Components) -> Dict[str, Any]:
    season = await components.service.get_current_season(timeout=components.request_timeout)
    return {"seasonData": season.to_dict()}


@router.get("/current-leaderboard")
async def current_leaderboard(components: Components) -> Dict[str, Any]:
    snapshot = await components.service.get_current_leaderboard(
        timeout=components.request_timeout
    )
    return snapshot.to_dict()


@router.get("/player-stats/{player_id}", response_model=None)
async def player_stats(player_id: str, components: Components) -> Any:
    set_log_context(player_id=player_id)
    try:
        stats = await components.service.get_player_stats(
            player_id, timeout=components.request_timeout
        )
    except CacheMiss:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": "Player stats not found"},
        )

    return {
        "playerID": player_id,
        "rank": stats.rank,
        "gamesPlayed": stats.games_played,
        "wins": stats.wins,
    }


# =============================================================================
# BACKUP / RESTORE
# =============================================================================


@router.post("/backup-leaderboard")
async def backup_leaderboard(components: Components) -> Dict[str, str]:
    name = await components.service.backup_leaderboard_data(
        components.bucket, timeout=components.request_timeout
    )
    return {
        "message": "Leaderboard data backed up successfully",
        "bucket": components.bucket,
        "file": name,
    }


@router.post("/restore-leaderboard", response_model=None)
async def restore_leaderboard(
    components: Components,
    file: Annotated[Optional[str], Query()] = None,
) -> Any:
    if not file:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Backup file name is required"},
        )

    await components.service.restore_leaderboard_data(
        components.bucket, file, timeout=components.request_timeout
    )
    return {
        "message": "Leaderboard data restored successfully",
        "bucket": components.bucket,
        "file": file,
    }
