"""FastAPI dependencies: store access and caller identity.

Authentication happens upstream; the gateway forwards the authenticated
user id in ``X-User-Id``. The role comes from the stored user profile.
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from campusfix_core import schemas
from campusfix_core.kv_store import KeyValueStore
from campusfix_core.users import get_user_profile

logger = logging.getLogger("campusfix-core.api.dependencies")


def get_store(request: Request) -> KeyValueStore:
    """The application's key-value store."""
    return request.app.state.store


def get_authenticated_user_id(
    x_user_id: Optional[str] = Header(None, description="Authenticated user id set by the auth gateway"),
) -> str:
    """User id from the gateway header; 401 when absent."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Unauthorized: No user identity provided")
    return x_user_id.strip()


def get_current_identity(
    user_id: str = Depends(get_authenticated_user_id),
    store: KeyValueStore = Depends(get_store),
) -> schemas.CallerIdentity:
    """Caller identity with role and contact details from the user profile."""
    profile = get_user_profile(store, user_id)
    if profile is None:
        logger.info(f"No profile for authenticated user {user_id}")
        raise HTTPException(status_code=404, detail="User profile not found")

    return schemas.CallerIdentity(
        user_id=user_id,
        role=profile.role,
        name=profile.name,
        email=profile.email,
    )
