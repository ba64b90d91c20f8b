"""Gamification API endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from campusfix_core import gamification, schemas
from campusfix_core.config import get_settings
from campusfix_core.kv_store import KeyValueStore
from campusfix_core.users import resolve_display_names

from ..dependencies import get_current_identity, get_store

logger = logging.getLogger("campusfix-core.api.gamification")

router = APIRouter(tags=["gamification"])


@router.get("/", response_model=schemas.UserGamification)
def get_my_gamification(
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """Points, level, badges, achievements and streak for the caller."""
    return gamification.ensure_profile(store, caller.user_id)


@router.get("/points-log", response_model=list[schemas.PointsLogEntry])
def get_my_points_log(
    limit: int = Query(50, ge=1, le=500, description="Maximum number of entries"),
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """The caller's point awards, newest first."""
    return gamification.get_points_log(store, caller.user_id, limit=limit)


@router.get("/leaderboard", response_model=list[schemas.LeaderboardEntry])
def get_leaderboard(
    limit: Optional[int] = Query(None, ge=1, le=100, description="Number of entries (default from settings)"),
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """Top users by points, with display names."""
    limit = limit or get_settings().leaderboard_default_limit
    entries = gamification.get_leaderboard(store, limit)
    names = resolve_display_names(store, [entry.user_id for entry in entries])
    return [entry.model_copy(update={"name": names[entry.user_id]}) for entry in entries]
