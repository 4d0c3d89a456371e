"""Tests for the optimistic concurrency guard."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from src.concurrency.guard import (
    GuardOutcome,
    InMemoryVersionedStore,
    RecordNotFoundError,
    SupabaseVersionedStore,
    VersionConflictError,
    guarded_write,
)


@pytest.fixture
def store() -> InMemoryVersionedStore:
    return InMemoryVersionedStore({"de-1": {"name": "Claims Assistant", "start_week": 10}})


class TestGuardedWrite:
    """Test the optimistic concurrency guard."""

    def test_matching_version_succeeds_and_advances(self, store: InMemoryVersionedStore) -> None:
        """A current version writes and returns a newer version."""
        v1 = store.read_version("de-1")
        result = guarded_write(store, "de-1", {"start_week": 12}, last_seen_version=v1)
        assert result.ok is True
        assert result.outcome is GuardOutcome.OK
        assert result.version != v1
        assert result.version > v1
        assert store.get("de-1")["start_week"] == 12

    def test_stale_version_conflicts_and_is_not_applied(self, store: InMemoryVersionedStore) -> None:
        """A stale version is a conflict and the record is unchanged."""
        v1 = store.read_version("de-1")
        guarded_write(store, "de-1", {"start_week": 12}, last_seen_version=v1)

        result = guarded_write(store, "de-1", {"start_week": 14}, last_seen_version=v1)

        assert result.ok is False
        assert result.outcome is GuardOutcome.CONFLICT
        assert "modified by another user" in result.message
        assert result.current_version == store.read_version("de-1")
        assert store.get("de-1")["start_week"] == 12

    def test_no_version_is_last_writer_wins(self, store: InMemoryVersionedStore) -> None:
        """Without a version the write is unconditional."""
        v1 = store.read_version("de-1")
        guarded_write(store, "de-1", {"start_week": 12}, last_seen_version=v1)

        result = guarded_write(store, "de-1", {"start_week": 20})

        assert result.ok is True
        assert store.get("de-1")["start_week"] == 20

    def test_missing_record(self, store: InMemoryVersionedStore) -> None:
        """A missing record is NOT_FOUND."""
        result = guarded_write(store, "nope", {"start_week": 1}, last_seen_version="whatever")
        assert result.ok is False
        assert result.outcome is GuardOutcome.NOT_FOUND

    def test_missing_record_without_version(self, store: InMemoryVersionedStore) -> None:
        """A missing record is NOT_FOUND even without a version."""
        assert guarded_write(store, "nope", {"start_week": 1}).outcome is GuardOutcome.NOT_FOUND

    def test_race_between_read_and_write_is_a_conflict(self) -> None:
        """Another writer lands after the re-read but before the conditional write."""
        store = MagicMock()
        store.read_version.return_value = "v1"
        store.write.side_effect = VersionConflictError("de-1", "v1", "v2")

        result = guarded_write(store, "de-1", {"blocker": "x"}, last_seen_version="v1")

        assert result.outcome is GuardOutcome.CONFLICT
        assert result.current_version == "v2"

    def test_record_deleted_between_read_and_write(self) -> None:
        """A record deleted mid-write is NOT_FOUND."""
        store = MagicMock()
        store.read_version.return_value = "v1"
        store.write.side_effect = RecordNotFoundError("de-1")
        assert guarded_write(store, "de-1", {"blocker": "x"}).outcome is GuardOutcome.NOT_FOUND


class TestInMemoryVersionedStore:
    """Test the in-memory versioned store."""

    def test_write_compare_and_set(self, store: InMemoryVersionedStore) -> None:
        """A write with the wrong version raises."""
        with pytest.raises(VersionConflictError):
            store.write("de-1", "stale", {"start_week": 1})

    def test_write_missing(self, store: InMemoryVersionedStore) -> None:
        """Writing an unknown record raises."""
        with pytest.raises(RecordNotFoundError):
            store.write("nope", None, {})

    def test_versions_strictly_increase(self, store: InMemoryVersionedStore) -> None:
        """Every write produces a strictly newer version."""
        versions = [store.write("de-1", None, {"sort_order": n})[0] for n in range(5)]
        assert versions == sorted(set(versions))

    def test_get_returns_copy(self, store: InMemoryVersionedStore) -> None:
        """Callers cannot mutate stored records."""
        record = store.get("de-1")
        record["name"] = "mutated"
        assert store.get("de-1")["name"] == "Claims Assistant"


class TestSupabaseVersionedStore:
    """Test the Supabase versioned store against a mocked client."""

    def test_conditional_update_filters_on_version(self) -> None:
        """The update is filtered on id and updated_at."""
        client = MagicMock()
        update = client.table.return_value.update
        conditional = update.return_value.eq.return_value.eq.return_value
        conditional.execute.return_value.data = [{"id": "de-1", "updated_at": "2026-01-05T10:00:01+00:00"}]

        version, record = SupabaseVersionedStore(client).write("de-1", "2026-01-05T10:00:00+00:00", {"blocker": "x"})

        client.table.assert_called_with("digital_employees")
        update.return_value.eq.return_value.eq.assert_called_once_with("updated_at", "2026-01-05T10:00:00+00:00")
        assert version == "2026-01-05T10:00:01+00:00"
        assert record["id"] == "de-1"

    def test_no_rows_with_existing_record_is_conflict(self) -> None:
        """No updated rows while the record exists is a conflict."""
        client = MagicMock()
        table = client.table.return_value
        table.update.return_value.eq.return_value.eq.return_value.execute.return_value.data = []
        table.select.return_value.eq.return_value.execute.return_value.data = [{"updated_at": "v9"}]

        with pytest.raises(VersionConflictError) as exc_info:
            SupabaseVersionedStore(client).write("de-1", "v1", {"blocker": "x"})
        assert exc_info.value.current == "v9"

    def test_no_rows_without_record_is_not_found(self) -> None:
        """No updated rows and no record is not found."""
        client = MagicMock()
        table = client.table.return_value
        table.update.return_value.eq.return_value.execute.return_value.data = []
        table.select.return_value.eq.return_value.execute.return_value.data = []

        with pytest.raises(RecordNotFoundError):
            SupabaseVersionedStore(client).write("de-1", None, {"blocker": "x"})
