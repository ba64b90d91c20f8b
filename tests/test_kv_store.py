"""Tests for the SQL-backed key-value store and optimistic updates."""
import pytest

from campusfix_core.kv_store import StoreConflictError, update_with_retry


class TestBasicOperations:
    """Get/set/delete/scan behaviour."""

    def test_missing_key(self, store):
        """Missing keys read as None with version 0."""
        assert store.get("nope") is None
        assert store.get_versioned("nope") == (None, 0)

    def test_set_and_get_json_values(self, store):
        """Dicts, lists and strings round-trip through the JSON column."""
        store.set("doc", {"a": 1, "tags": ["x", "y"]})
        store.set("plain", "issue-42")

        assert store.get("doc") == {"a": 1, "tags": ["x", "y"]}
        assert store.get("plain") == "issue-42"

    def test_set_bumps_version(self, store):
        """Each write increments the version."""
        store.set("k", 1)
        assert store.get_versioned("k") == (1, 1)
        store.set("k", 2)
        assert store.get_versioned("k") == (2, 2)

    def test_delete(self, store):
        """Delete reports whether a key existed."""
        store.set("k", "v")
        assert store.delete("k") is True
        assert store.delete("k") is False
        assert store.get("k") is None

    def test_scan_by_prefix_orders_by_key(self, store):
        """Prefix scans return matching pairs in key order."""
        store.set("issue:b", 2)
        store.set("issue:a", 1)
        store.set("user-issue:x:a", "a")

        assert store.scan_by_prefix("issue:") == [("issue:a", 1), ("issue:b", 2)]

    def test_scan_treats_wildcards_literally(self, store):
        """SQL LIKE wildcards in a prefix only match themselves."""
        store.set("a_b:1", "underscore")
        store.set("axb:1", "letter")
        store.set("a%b:1", "percent")

        assert store.scan_by_prefix("a_b:") == [("a_b:1", "underscore")]
        assert store.scan_by_prefix("a%") == [("a%b:1", "percent")]


class TestCompareAndSet:
    """Versioned writes."""

    def test_create_only_with_version_zero(self, store):
        """Expected version 0 inserts once and then fails."""
        assert store.compare_and_set("k", "first", 0) is True
        assert store.compare_and_set("k", "second", 0) is False
        assert store.get("k") == "first"

    def test_matching_version_wins(self, store):
        """A write against the current version succeeds and bumps it."""
        store.set("k", 1)
        assert store.compare_and_set("k", 2, 1) is True
        assert store.get_versioned("k") == (2, 2)

    def test_stale_version_rejected(self, store):
        """A write against an old version is rejected and leaves the value alone."""
        store.set("k", 1)
        store.set("k", 2)
        assert store.compare_and_set("k", 99, 1) is False
        assert store.get("k") == 2


class TestUpdateWithRetry:
    """Optimistic read-modify-write helper."""

    def test_creates_missing_key(self, store):
        """mutate sees None for a missing key."""
        result = update_with_retry(store, "counter", lambda current: (current or 0) + 1)
        assert result == 1
        assert store.get("counter") == 1

    def test_none_skips_write(self, store):
        """Returning None leaves the value and version untouched."""
        store.set("k", "v")
        assert update_with_retry(store, "k", lambda current: None) == "v"
        assert store.get_versioned("k") == ("v", 1)

    def test_retries_after_concurrent_write(self, store):
        """A write that lands between read and CAS forces a retry, and both increments survive."""
        store.set("counter", 0)
        calls = {"n": 0}

        def increment(current):
            calls["n"] += 1
            if calls["n"] == 1:
                # Another writer sneaks in after our read
                store.set("counter", current + 1)
            return current + 1

        assert update_with_retry(store, "counter", increment) == 2
        assert store.get("counter") == 2
        assert calls["n"] == 2

    def test_gives_up_after_max_retries(self, store):
        """Losing every race raises StoreConflictError."""
        store.set("k", 0)

        def always_race(current):
            store.set("k", (current or 0) + 1)
            return -1

        with pytest.raises(StoreConflictError) as exc_info:
            update_with_retry(store, "k", always_race, max_retries=2)

        assert exc_info.value.key == "k"
        assert exc_info.value.attempts == 3

    def test_mutate_errors_propagate(self, store):
        """Exceptions from mutate are not swallowed or retried."""
        def boom(current):
            raise KeyError("bad")

        with pytest.raises(KeyError):
            update_with_retry(store, "k", boom)
