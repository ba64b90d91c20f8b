"""Tests for the badge and achievement catalog."""
import pytest

from campusfix_core.catalog import (
    CatalogError,
    badge_for_issue_count,
    find_badge,
    load_catalog,
    streak_badges,
)


class TestBundledCatalog:
    """The catalog shipped with the package."""

    def test_loads(self):
        catalog = load_catalog()

        assert len(catalog.badges) == 8
        assert [a.id for a in catalog.achievements] == ["ach-1", "ach-2", "ach-3", "ach-4"]
        assert [a.target for a in catalog.achievements] == [1, 5, 10, 25]

    def test_count_thresholds(self):
        catalog = load_catalog()

        assert badge_for_issue_count(catalog, 1).id == "first-report"
        assert badge_for_issue_count(catalog, 5).id == "quick-responder"
        assert badge_for_issue_count(catalog, 10).id == "campus-hero"
        assert badge_for_issue_count(catalog, 3) is None

    def test_lookup_and_streak_badges(self):
        catalog = load_catalog()

        assert find_badge(catalog, "early-bird").name == "Early Bird"
        assert find_badge(catalog, "missing") is None
        assert [badge.id for badge in streak_badges(catalog)] == ["week-warrior"]


class TestCatalogErrors:
    """Malformed catalog files."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogError):
            load_catalog(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text("badges: [unclosed", encoding="utf-8")

        with pytest.raises(CatalogError):
            load_catalog(path)

    def test_duplicate_ids(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text(
            "badges:\n"
            "  - {id: a, name: A, description: d, icon: i}\n"
            "  - {id: a, name: B, description: d, icon: i}\n"
            "achievements: []\n",
            encoding="utf-8",
        )

        with pytest.raises(CatalogError) as exc_info:
            load_catalog(path)

        assert "Duplicate badge ids" in str(exc_info.value)
