"""Application settings loaded from environment variables."""
from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """CampusFix Core settings.

    Every field can be overridden through an environment variable of the same
    name (case-insensitive) or through a local ``.env`` file.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Persistence
    database_url: str = "sqlite:///./campusfix.db"
    store_max_retries: int = 5  # Optimistic CAS retries before StoreConflictError

    # API
    cors_origins: list[str] = ["*"]
    log_level: str = "INFO"
    leaderboard_default_limit: int = 10

    # Issue workflow
    # False restores the legacy behaviour of accepting any status value
    enforce_status_transitions: bool = True

    # Predictions: "strict" = resolved AND (Equipment OR Electrical)
    #              "legacy" = (resolved AND Equipment) OR Electrical
    prediction_followup_rule: Literal["strict", "legacy"] = "strict"

    # Badge/achievement catalog (defaults to the bundled catalog.yaml)
    catalog_path: Optional[str] = None


@lru_cache()
def get_settings() -> Settings:
    """Return the cached settings instance."""
    return Settings()
