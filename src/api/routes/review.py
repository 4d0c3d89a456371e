"""Review endpoints: list items, transition one item, batch approve/reject."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from src.api.dependencies import get_item_store
from src.api.models import (
    BatchReviewRequest,
    BatchReviewResponse,
    ExtractedItemResponse,
    ManualItemRequest,
    TransitionRequest,
    TransitionResultResponse,
)
from src.extraction.models import ReviewStatus
from src.review.store import ItemNotFoundError, ItemStore
from src.review.workflow import (
    InvalidTransitionError,
    TransitionResult,
    approve_all_pending,
    create_manual_item,
    reject_all_pending,
    transition_item,
)

router = APIRouter()


@router.get("/api/sessions/{session_id}/items", response_model=list[ExtractedItemResponse])
async def list_items(
    session_id: str,
    status: ReviewStatus | None = None,
    store: ItemStore = Depends(get_item_store),
) -> list[ExtractedItemResponse]:
    """List a session's items, optionally filtered by review status."""
    items = store.find_by_status(session_id, status) if status else store.find_by_session(session_id)
    return [ExtractedItemResponse.from_item(i) for i in items]


@router.post("/api/sessions/{session_id}/items", response_model=ExtractedItemResponse, status_code=201)
async def add_manual_item(
    session_id: str,
    body: ManualItemRequest,
    store: ItemStore = Depends(get_item_store),
) -> ExtractedItemResponse:
    """Add an item by hand. Manual items are approved on creation."""
    item = create_manual_item(store, session_id, body.type, body.content, body.reviewer, body.notes)
    return ExtractedItemResponse.from_item(item)


@router.post("/api/items/{item_id}/review", response_model=ExtractedItemResponse)
async def review_item(
    item_id: str,
    body: TransitionRequest,
    store: ItemStore = Depends(get_item_store),
) -> ExtractedItemResponse:
    try:
        item = transition_item(store, item_id, body.status, body.reviewer, body.notes)
    except ItemNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Item not found") from exc
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ExtractedItemResponse.from_item(item)


def _batch_response(session_id: str, results: list[TransitionResult]) -> BatchReviewResponse:
    succeeded = sum(1 for r in results if r.success)
    return BatchReviewResponse(
        session_id=session_id,
        succeeded=succeeded,
        failed=len(results) - succeeded,
        results=[
            TransitionResultResponse(item_id=r.item_id, success=r.success, status=r.status, error=r.error)
            for r in results
        ],
    )


@router.post("/api/sessions/{session_id}/approve-all", response_model=BatchReviewResponse)
async def approve_all(
    session_id: str,
    body: BatchReviewRequest,
    store: ItemStore = Depends(get_item_store),
) -> BatchReviewResponse:
    """Approve every PENDING item of a session. Not atomic: see per-item results."""
    return _batch_response(session_id, approve_all_pending(store, session_id, body.reviewer, body.notes))


@router.post("/api/sessions/{session_id}/reject-all", response_model=BatchReviewResponse)
async def reject_all(
    session_id: str,
    body: BatchReviewRequest,
    store: ItemStore = Depends(get_item_store),
) -> BatchReviewResponse:
    """Reject every PENDING item of a session. Not atomic: see per-item results."""
    return _batch_response(session_id, reject_all_pending(store, session_id, body.reviewer, body.notes))
