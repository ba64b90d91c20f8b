"""Badge and achievement catalog loading.

The catalogs are plain data (``catalog.yaml``) so that adding a badge or
changing a threshold never touches engine code.
"""
import logging
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from .config import get_settings
from .schemas import Catalog, BadgeDefinition

logger = logging.getLogger("campusfix-core.catalog")

DEFAULT_CATALOG_PATH = Path(__file__).with_name("catalog.yaml")


class CatalogError(Exception):
    """Raised when the catalog file cannot be read or is malformed."""


def load_catalog(path: Optional[Path] = None) -> Catalog:
    """
    Load and validate a catalog file.

    Args:
        path: YAML file to read (defaults to the bundled catalog)

    Returns:
        Validated Catalog

    Raises:
        CatalogError: If the file is missing, not YAML, or fails validation
    """
    path = Path(path) if path else DEFAULT_CATALOG_PATH
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise CatalogError(f"Cannot read catalog {path}: {e}") from e
    except yaml.YAMLError as e:
        raise CatalogError(f"Invalid YAML in catalog {path}: {e}") from e

    try:
        catalog = Catalog.model_validate(raw or {})
    except ValidationError as e:
        raise CatalogError(f"Invalid catalog {path}: {e}") from e

    logger.info(
        f"Loaded catalog from {path}: {len(catalog.badges)} badges, "
        f"{len(catalog.achievements)} achievements"
    )
    return catalog


@lru_cache()
def get_catalog() -> Catalog:
    """Return the catalog configured in settings (loaded once)."""
    settings = get_settings()
    return load_catalog(Path(settings.catalog_path) if settings.catalog_path else None)


def find_badge(catalog: Catalog, badge_id: str) -> Optional[BadgeDefinition]:
    """Look up a badge definition by id."""
    return next((badge for badge in catalog.badges if badge.id == badge_id), None)


def badge_for_issue_count(catalog: Catalog, count: int) -> Optional[BadgeDefinition]:
    """Badge awarded when a user's reported-issue count reaches exactly ``count``."""
    return next((badge for badge in catalog.badges if badge.issue_count == count), None)


def streak_badges(catalog: Catalog) -> list[BadgeDefinition]:
    """Badges with a streak threshold, lowest threshold first."""
    return sorted(
        (badge for badge in catalog.badges if badge.streak_days is not None),
        key=lambda badge: badge.streak_days,
    )
