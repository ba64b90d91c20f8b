"""User profile lookups (``user:<id>`` and ``user-email:<email>``)."""
import logging
from datetime import datetime
from typing import Optional

from . import schemas
from .kv_store import KeyValueStore
from .models import UserRole, utcnow

logger = logging.getLogger("campusfix-core.users")

USER_PREFIX = "user:"
USER_EMAIL_PREFIX = "user-email:"


class ProfileNotFoundError(Exception):
    """Raised when a user profile does not exist."""

    def __init__(self, user_id: str):
        super().__init__(f"User profile not found: {user_id}")
        self.user_id = user_id


def _email_key(email: str) -> str:
    return f"{USER_EMAIL_PREFIX}{email.strip().lower()}"


def create_user_profile(
    store: KeyValueStore,
    user_id: str,
    profile_data: schemas.UserProfileCreate,
    now: Optional[datetime] = None,
) -> schemas.UserProfile:
    """
    Store a profile for an authenticated identity.

    Re-registering the same id overwrites the profile but keeps created_at
    and the role chosen at first registration. A changed email releases the
    old address in the email index.

    Raises:
        ValueError: If the email already belongs to another user
    """
    owner = store.get(_email_key(profile_data.email))
    if owner and owner != user_id:
        raise ValueError(f"Email already registered: {profile_data.email}")

    now = now or utcnow()
    fields = profile_data.model_dump()
    value = store.get(f"{USER_PREFIX}{user_id}")
    existing = schemas.UserProfile.model_validate(value) if value else None
    if existing is not None and existing.role != profile_data.role:
        logger.warning(
            f"Ignoring role change for {user_id}: {existing.role.value} → {profile_data.role.value}"
        )
        fields["role"] = existing.role

    profile = schemas.UserProfile(
        id=user_id,
        created_at=existing.created_at if existing else now,
        updated_at=now,
        **fields,
    )
    store.set(f"{USER_PREFIX}{user_id}", profile.model_dump(mode="json"))
    store.set(_email_key(profile.email), user_id)
    if existing is not None and _email_key(existing.email) != _email_key(profile.email):
        if store.get(_email_key(existing.email)) == user_id:
            store.delete(_email_key(existing.email))
    logger.info(f"Saved profile for user {user_id} ({profile.role.value})")
    return profile


def get_user_profile(store: KeyValueStore, user_id: str) -> Optional[schemas.UserProfile]:
    """Get a profile by user id, or None."""
    value = store.get(f"{USER_PREFIX}{user_id}")
    return schemas.UserProfile.model_validate(value) if value else None


def require_user_profile(store: KeyValueStore, user_id: str) -> schemas.UserProfile:
    """
    Get a profile by user id.

    Raises:
        ProfileNotFoundError: If the profile does not exist
    """
    profile = get_user_profile(store, user_id)
    if profile is None:
        raise ProfileNotFoundError(user_id)
    return profile


def get_user_by_email(store: KeyValueStore, email: str) -> Optional[schemas.UserProfile]:
    """Resolve a profile through the email index."""
    user_id = store.get(_email_key(email))
    if not user_id:
        return None
    return get_user_profile(store, user_id)


def list_users(store: KeyValueStore, role: Optional[UserRole] = None) -> list[schemas.UserProfile]:
    """All profiles, newest first, optionally filtered by role."""
    profiles = [
        schemas.UserProfile.model_validate(value)
        for _, value in store.scan_by_prefix(USER_PREFIX)
        if value and value.get("id")
    ]
    profiles.sort(key=lambda profile: profile.created_at, reverse=True)
    if role is not None:
        profiles = [profile for profile in profiles if profile.role == role]
    return profiles


def resolve_display_names(store: KeyValueStore, user_ids: list[str]) -> dict[str, str]:
    """Map user ids to profile names, falling back to 'Unknown User'."""
    names = {}
    for user_id in user_ids:
        profile = get_user_profile(store, user_id)
        names[user_id] = profile.name if profile else "Unknown User"
    return names
