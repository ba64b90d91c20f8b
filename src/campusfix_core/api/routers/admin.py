"""Staff/admin dashboard endpoints: analytics, predictions, user lookup."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from campusfix_core import analytics, predictions, schemas
from campusfix_core.kv_store import KeyValueStore
from campusfix_core.models import UserRole
from campusfix_core.permissions import PermissionDeniedError, require_staff
from campusfix_core.users import get_user_by_email, get_user_profile, list_users

from ..dependencies import get_current_identity, get_store

logger = logging.getLogger("campusfix-core.api.admin")

router = APIRouter(tags=["admin"])


def _require_staff(caller: schemas.CallerIdentity, action: str) -> None:
    try:
        require_staff(caller, action)
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.get("/analytics", response_model=schemas.AnalyticsSnapshot)
def get_analytics(
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """Dashboard statistics computed from every issue."""
    _require_staff(caller, "view analytics")
    try:
        return analytics.get_analytics(store)
    except Exception as e:
        logger.error(f"Error computing analytics: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to fetch analytics: {e}")


@router.get("/predictions", response_model=list[schemas.Prediction])
def get_predictions(
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """Top 5 heuristic maintenance predictions."""
    _require_staff(caller, "view predictions")
    try:
        return predictions.get_predictions(store)
    except Exception as e:
        logger.error(f"Error generating predictions: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to generate predictions: {e}")


@router.get("/users", response_model=list[schemas.UserProfile])
def get_users(
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """All user profiles, newest first, optionally filtered by role."""
    _require_staff(caller, "list users")
    return list_users(store, role)


@router.get("/users/by-email/{email}", response_model=schemas.UserProfile)
def get_user_by_email_address(
    email: str,
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """Look up a profile by email (case-insensitive)."""
    _require_staff(caller, "view user profiles")
    profile = get_user_by_email(store, email)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"User not found: {email}")
    return profile


@router.get("/users/{user_id}", response_model=schemas.UserProfile)
def get_user(
    user_id: str,
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """Look up any user's profile."""
    _require_staff(caller, "view user profiles")
    profile = get_user_profile(store, user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"User not found: {user_id}")
    return profile
