"""API routers for CampusFix Core."""

from . import admin, gamification, issues, users

__all__ = ["admin", "gamification", "issues", "users"]
