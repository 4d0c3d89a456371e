"""Record-store boundary for extracted items.

``ItemStore`` is the interface the pipeline and review workflow talk to.
``SupabaseItemStore`` backs it with the ``extracted_items`` table;
``InMemoryItemStore`` keeps rows in a dict for scripts and tests.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, cast

from src.extraction.models import ExtractedItem, ReviewStatus

if TYPE_CHECKING:
    from supabase import Client

ITEMS_TABLE = "extracted_items"


class ItemNotFoundError(LookupError):
    """Raised when an extracted item id does not exist."""

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Extracted item {item_id!r} not found")


class ItemAlreadyReviewedError(RuntimeError):
    """Raised when a status update finds the item no longer PENDING."""

    def __init__(self, item_id: str, current: ReviewStatus) -> None:
        self.item_id = item_id
        self.current = current
        super().__init__(f"Extracted item {item_id!r} is already {current}")


class ItemStore(Protocol):
    """Generic persistence operations for extracted items.

    ``update_status`` only applies to an item that is still PENDING at the
    moment of the write.
    """

    def insert(self, item: ExtractedItem) -> ExtractedItem: ...

    def insert_many(self, items: Sequence[ExtractedItem]) -> list[ExtractedItem]: ...

    def update_status(
        self,
        item_id: str,
        status: ReviewStatus,
        reviewer: str,
        notes: str | None = None,
    ) -> ExtractedItem: ...

    def find_by_id(self, item_id: str) -> ExtractedItem | None: ...

    def find_by_session(self, session_id: str) -> list[ExtractedItem]: ...

    def find_by_status(self, session_id: str, status: ReviewStatus) -> list[ExtractedItem]: ...


def _now() -> datetime:
    return datetime.now(UTC)


class InMemoryItemStore:
    """Dict-backed store. Insertion order doubles as creation order."""

    def __init__(self, items: Sequence[ExtractedItem] = ()) -> None:
        self._items: dict[str, ExtractedItem] = {}
        self._lock = threading.Lock()
        for item in items:
            self.insert(item)

    def insert(self, item: ExtractedItem) -> ExtractedItem:
        with self._lock:
            if item.created_at is None:
                item.created_at = _now()
            self._items[item.id] = item
        return item

    def insert_many(self, items: Sequence[ExtractedItem]) -> list[ExtractedItem]:
        return [self.insert(item) for item in items]

    def update_status(
        self,
        item_id: str,
        status: ReviewStatus,
        reviewer: str,
        notes: str | None = None,
    ) -> ExtractedItem:
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                raise ItemNotFoundError(item_id)
            if item.status != ReviewStatus.PENDING:
                raise ItemAlreadyReviewedError(item_id, item.status)
            item.status = status
            item.reviewed_by = reviewer
            item.reviewed_at = _now()
            if notes is not None:
                item.review_notes = notes
            return item

    def find_by_id(self, item_id: str) -> ExtractedItem | None:
        return self._items.get(item_id)

    def find_by_session(self, session_id: str) -> list[ExtractedItem]:
        return [i for i in self._items.values() if i.session_id == session_id]

    def find_by_status(self, session_id: str, status: ReviewStatus) -> list[ExtractedItem]:
        return [i for i in self.find_by_session(session_id) if i.status == status]


class SupabaseItemStore:
    """Supabase-backed store over the ``extracted_items`` table."""

    def __init__(self, client: Client) -> None:
        self.client = client

    def insert(self, item: ExtractedItem) -> ExtractedItem:
        row = item.to_row()
        if row["created_at"] is None:
            row.pop("created_at")  # let the column default stamp it
        result = self.client.table(ITEMS_TABLE).insert(row).execute()
        rows = cast(list[dict[str, Any]], result.data)
        return ExtractedItem.from_row(rows[0]) if rows else item

    def insert_many(self, items: Sequence[ExtractedItem], batch_size: int = 50) -> list[ExtractedItem]:
        """Insert items in batches of *batch_size* and return the stored items."""
        stored: list[ExtractedItem] = []
        for i in range(0, len(items), batch_size):
            batch = items[i : i + batch_size]
            rows = [item.to_row() for item in batch]
            for row in rows:
                if row["created_at"] is None:
                    row.pop("created_at")
            result = self.client.table(ITEMS_TABLE).insert(rows).execute()
            returned = cast(list[dict[str, Any]], result.data)
            if returned:
                stored.extend(ExtractedItem.from_row(r) for r in returned)
            else:
                stored.extend(batch)
        return stored

    def update_status(
        self,
        item_id: str,
        status: ReviewStatus,
        reviewer: str,
        notes: str | None = None,
    ) -> ExtractedItem:
        patch: dict[str, Any] = {
            "status": str(status),
            "reviewed_by": reviewer,
            "reviewed_at": _now().isoformat(),
        }
        if notes is not None:
            patch["review_notes"] = notes
        result = (
            self.client.table(ITEMS_TABLE)
            .update(patch)
            .eq("id", item_id)
            .eq("status", str(ReviewStatus.PENDING))
            .execute()
        )
        rows = cast(list[dict[str, Any]], result.data)
        if rows:
            return ExtractedItem.from_row(rows[0])

        current = self.find_by_id(item_id)
        if current is None:
            raise ItemNotFoundError(item_id)
        raise ItemAlreadyReviewedError(item_id, current.status)

    def find_by_id(self, item_id: str) -> ExtractedItem | None:
        result = self.client.table(ITEMS_TABLE).select("*").eq("id", item_id).execute()
        rows = cast(list[dict[str, Any]], result.data)
        return ExtractedItem.from_row(rows[0]) if rows else None

    def find_by_session(self, session_id: str) -> list[ExtractedItem]:
        result = (
            self.client.table(ITEMS_TABLE)
            .select("*")
            .eq("session_id", session_id)
            .order("created_at")
            .execute()
        )
        return [ExtractedItem.from_row(r) for r in cast(list[dict[str, Any]], result.data)]

    def find_by_status(self, session_id: str, status: ReviewStatus) -> list[ExtractedItem]:
        result = (
            self.client.table(ITEMS_TABLE)
            .select("*")
            .eq("session_id", session_id)
            .eq("status", str(status))
            .order("created_at")
            .execute()
        )
        return [ExtractedItem.from_row(r) for r in cast(list[dict[str, Any]], result.data)]


def get_supabase_client() -> Client:
    """Create and return a Supabase client from settings."""
    from supabase import create_client

    from src.config import settings

    return create_client(settings.supabase_url, settings.supabase_key)
