"""User profile endpoints."""
import logging

from fastapi import APIRouter, Depends, HTTPException

from campusfix_core import schemas, users
from campusfix_core.kv_store import KeyValueStore

from ..dependencies import get_authenticated_user_id, get_store

logger = logging.getLogger("campusfix-core.api.users")

router = APIRouter(tags=["users"])


@router.post("/", response_model=schemas.UserProfile, status_code=201)
def register_profile(
    profile_data: schemas.UserProfileCreate,
    user_id: str = Depends(get_authenticated_user_id),
    store: KeyValueStore = Depends(get_store),
):
    """
    Create or replace the profile of the authenticated user.

    - **email**: Contact email (unique)
    - **name**: Display name used on the leaderboard
    - **role**: student, staff or admin (default: student); only the first
      registration sets it, later changes are ignored
    """
    try:
        return users.create_user_profile(store, user_id, profile_data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/me", response_model=schemas.UserProfile)
def get_my_profile(
    user_id: str = Depends(get_authenticated_user_id),
    store: KeyValueStore = Depends(get_store),
):
    """The authenticated user's profile."""
    try:
        return users.require_user_profile(store, user_id)
    except users.ProfileNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
