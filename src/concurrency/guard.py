"""Optimistic concurrency guard for collaboratively edited records.

Callers that track versions send the version token they last read. A write
against a record that changed since then is refused with CONFLICT instead
of silently overwriting the other editor's change. Callers that send no
token get last-writer-wins.

The version token is the record's ``updated_at`` timestamp in ISO format.
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, cast

if TYPE_CHECKING:
    from supabase import Client

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "This record was modified by another user. Refresh to see the latest changes and try again."
NOT_FOUND_MESSAGE = "Record not found"


class GuardOutcome(StrEnum):
    OK = "OK"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"


class RecordNotFoundError(LookupError):
    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Record {record_id!r} not found")


class VersionConflictError(RuntimeError):
    """The record's version no longer matches the caller's last-seen version."""

    def __init__(self, record_id: str, expected: str, current: str | None) -> None:
        self.record_id = record_id
        self.expected = expected
        self.current = current
        super().__init__(f"Record {record_id!r} is at version {current}, expected {expected}")


@dataclass
class GuardResult:
    """Outcome of a guarded write."""

    ok: bool
    outcome: GuardOutcome
    version: str | None = None
    record: dict[str, Any] = field(default_factory=dict)
    message: str | None = None
    current_version: str | None = None


class VersionedStore(Protocol):
    """Record store that supports a conditional write."""

    def read_version(self, record_id: str) -> str | None:
        """Current version token, or None if the record does not exist."""
        ...

    def write(
        self, record_id: str, expected_version: str | None, patch: Mapping[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        """Apply *patch*; return the new version and the updated record.

        With *expected_version* the write is atomic compare-and-set.

        Raises:
            RecordNotFoundError: No such record.
            VersionConflictError: The current version differs from *expected_version*.
        """
        ...


def _now() -> datetime:
    return datetime.now(UTC)


class InMemoryVersionedStore:
    """Dict-backed versioned store. Versions strictly increase per record."""

    def __init__(self, records: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self._records: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()
        for record_id, data in (records or {}).items():
            self.create(record_id, data)

    def create(self, record_id: str, data: Mapping[str, Any]) -> str:
        with self._lock:
            record = copy.deepcopy(dict(data))
            record["id"] = record_id
            record["updated_at"] = _now().isoformat(timespec="microseconds")
            self._records[record_id] = record
            return record["updated_at"]

    def get(self, record_id: str) -> dict[str, Any] | None:
        record = self._records.get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def read_version(self, record_id: str) -> str | None:
        record = self._records.get(record_id)
        return record["updated_at"] if record is not None else None

    def write(
        self, record_id: str, expected_version: str | None, patch: Mapping[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise RecordNotFoundError(record_id)
            current = record["updated_at"]
            if expected_version is not None and expected_version != current:
                raise VersionConflictError(record_id, expected_version, current)

            version = _now()
            previous = datetime.fromisoformat(current)
            if version <= previous:
                version = previous + timedelta(microseconds=1)

            record.update(copy.deepcopy(dict(patch)))
            record["updated_at"] = version.isoformat(timespec="microseconds")
            return record["updated_at"], copy.deepcopy(record)


class SupabaseVersionedStore:
    """Versioned store over a Supabase table with an ``updated_at`` column."""

    def __init__(self, client: Client, table: str = "digital_employees") -> None:
        self.client = client
        self.table = table

    def read_version(self, record_id: str) -> str | None:
        result = self.client.table(self.table).select("updated_at").eq("id", record_id).execute()
        rows = cast(list[dict[str, Any]], result.data)
        return str(rows[0]["updated_at"]) if rows else None

    def write(
        self, record_id: str, expected_version: str | None, patch: Mapping[str, Any]
    ) -> tuple[str, dict[str, Any]]:
        data = {**patch, "updated_at": _now().isoformat(timespec="microseconds")}
        query = self.client.table(self.table).update(data).eq("id", record_id)
        if expected_version is not None:
            query = query.eq("updated_at", expected_version)
        rows = cast(list[dict[str, Any]], query.execute().data)

        if not rows:
            # Nothing matched: either the record is gone or someone else wrote first.
            current = self.read_version(record_id)
            if current is None:
                raise RecordNotFoundError(record_id)
            raise VersionConflictError(record_id, str(expected_version), current)
        return str(rows[0]["updated_at"]), rows[0]


def guarded_write(
    store: VersionedStore,
    record_id: str,
    patch: Mapping[str, Any],
    last_seen_version: str | None = None,
) -> GuardResult:
    """Write *patch* to a record unless it changed since *last_seen_version*.

    Args:
        store: Versioned record store.
        record_id: Target record.
        patch: Fields to update.
        last_seen_version: Version token the caller last read. None skips the
            check entirely (last-writer-wins).

    Returns:
        GuardResult with outcome OK, NOT_FOUND or CONFLICT. A refused write
        is never applied.
    """
    current = store.read_version(record_id)
    if current is None:
        logger.info("Guarded write to missing record %s", record_id)
        return GuardResult(ok=False, outcome=GuardOutcome.NOT_FOUND, message=NOT_FOUND_MESSAGE)

    if last_seen_version is not None and last_seen_version != current:
        logger.info(
            "Conflict on record %s: caller saw %s, current is %s", record_id, last_seen_version, current
        )
        return GuardResult(
            ok=False,
            outcome=GuardOutcome.CONFLICT,
            message=CONFLICT_MESSAGE,
            current_version=current,
        )

    try:
        version, record = store.write(record_id, last_seen_version, patch)
    except RecordNotFoundError:
        return GuardResult(ok=False, outcome=GuardOutcome.NOT_FOUND, message=NOT_FOUND_MESSAGE)
    except VersionConflictError as exc:
        # Lost the race between the re-read and the write.
        logger.info("Conflict on record %s during write", record_id)
        return GuardResult(
            ok=False,
            outcome=GuardOutcome.CONFLICT,
            message=CONFLICT_MESSAGE,
            current_version=exc.current,
        )

    return GuardResult(ok=True, outcome=GuardOutcome.OK, version=version, record=record)
