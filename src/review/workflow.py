"""Human review state machine for extracted items.

PENDING is the only non-terminal state. Re-extraction creates new items;
it never resurrects reviewed ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from src.extraction.models import ExtractedItem, ReviewStatus
from src.review.store import ItemAlreadyReviewedError, ItemNotFoundError, ItemStore

logger = logging.getLogger(__name__)

TERMINAL_STATES = frozenset(
    {ReviewStatus.APPROVED, ReviewStatus.REJECTED, ReviewStatus.NEEDS_CLARIFICATION}
)
SYSTEM_REVIEWER = "system:auto-approve"


class InvalidTransitionError(ValueError):
    """Raised for a transition the review state machine does not allow."""

    def __init__(self, item_id: str, current: ReviewStatus, target: ReviewStatus) -> None:
        self.item_id = item_id
        self.current = current
        self.target = target
        super().__init__(f"Cannot move item {item_id!r} from {current} to {target}")


@dataclass
class TransitionResult:
    """Per-item outcome of a batch transition."""

    item_id: str
    success: bool
    status: ReviewStatus | None = None
    error: str | None = None


def can_transition(current: ReviewStatus, target: ReviewStatus) -> bool:
    return current is ReviewStatus.PENDING and target in TERMINAL_STATES


def transition_item(
    store: ItemStore,
    item_id: str,
    target: ReviewStatus,
    reviewer: str,
    notes: str | None = None,
) -> ExtractedItem:
    """Move one PENDING item to a terminal review state.

    Raises:
        ItemNotFoundError: The item does not exist.
        InvalidTransitionError: The item is not PENDING, or *target* is PENDING.
    """
    item = store.find_by_id(item_id)
    if item is None:
        raise ItemNotFoundError(item_id)
    if not can_transition(item.status, target):
        raise InvalidTransitionError(item_id, item.status, target)

    try:
        updated = store.update_status(item_id, target, reviewer, notes)
    except ItemAlreadyReviewedError as exc:
        # Another reviewer got there between the read and the write.
        raise InvalidTransitionError(item_id, exc.current, target) from exc
    logger.info("Item %s (%s) moved to %s by %s", item_id, item.type, target, reviewer)
    return updated


def transition_pending(
    store: ItemStore,
    session_id: str,
    target: ReviewStatus,
    reviewer: str,
    notes: str | None = None,
) -> list[TransitionResult]:
    """Apply the same transition to every PENDING item of a session.

    Each item is transitioned independently. A failure on one item is
    recorded in its result and does not stop the rest; items already moved
    stay moved. Re-running only touches items that are still PENDING.
    """
    results: list[TransitionResult] = []
    for item in store.find_by_status(session_id, ReviewStatus.PENDING):
        try:
            updated = transition_item(store, item.id, target, reviewer, notes)
        except (ItemNotFoundError, InvalidTransitionError) as exc:
            logger.warning("Batch %s skipped item %s: %s", target, item.id, exc)
            results.append(TransitionResult(item_id=item.id, success=False, error=str(exc)))
        except Exception as exc:
            logger.exception("Batch %s failed on item %s", target, item.id)
            results.append(TransitionResult(item_id=item.id, success=False, error=str(exc)))
        else:
            results.append(TransitionResult(item_id=item.id, success=True, status=updated.status))
    return results


def approve_all_pending(
    store: ItemStore, session_id: str, reviewer: str, notes: str | None = None
) -> list[TransitionResult]:
    return transition_pending(store, session_id, ReviewStatus.APPROVED, reviewer, notes)


def reject_all_pending(
    store: ItemStore, session_id: str, reviewer: str, notes: str | None = None
) -> list[TransitionResult]:
    return transition_pending(store, session_id, ReviewStatus.REJECTED, reviewer, notes)


def create_manual_item(
    store: ItemStore,
    session_id: str,
    item_type: str,
    content: str,
    reviewer: str,
    notes: str | None = None,
    status: ReviewStatus = ReviewStatus.APPROVED,
) -> ExtractedItem:
    """Store an item entered by hand.

    Manual entries carry full confidence and no source evidence. They are
    approved on creation unless *status* says otherwise.
    """
    item = ExtractedItem(
        session_id=session_id,
        type=item_type,
        content=content,
        confidence=1.0,
        structured_data={"isManual": True},
    )
    stored = store.insert(item)
    if status is ReviewStatus.PENDING:
        return stored
    return store.update_status(stored.id, status, reviewer, notes)
