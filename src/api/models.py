"""Pydantic request/response schemas for the Session Extraction API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from src.extraction.models import ExtractedItem, ReviewStatus
from src.profile.models import BusinessProfile, ProfileUpdate


class ExtractRequest(BaseModel):
    """Request body for POST /api/sessions/{id}/extract."""

    transcript: str
    checklist_coverage: float | None = Field(default=None, ge=0.0, le=1.0)
    auto_approve: bool | None = None


class ExtractedItemResponse(BaseModel):
    """A single extracted item in API responses."""

    id: str
    session_id: str
    type: str
    category: str | None = None
    content: str
    structured_data: dict[str, Any] | None = None
    confidence: float = 1.0
    status: ReviewStatus = ReviewStatus.PENDING
    source_quote: str | None = None
    source_speaker: str | None = None
    source_timestamp: float | None = None
    reviewed_by: str | None = None
    reviewed_at: str | None = None
    review_notes: str | None = None
    created_at: str | None = None

    @classmethod
    def from_item(cls, item: ExtractedItem) -> ExtractedItemResponse:
        return cls.model_validate(item.to_row())


class QualityResponse(BaseModel):
    passed: bool
    score: float
    issues: list[str] = []


class GateResponse(BaseModel):
    passed: bool
    recommendation: str


class ExtractResponse(BaseModel):
    """Response body for POST /api/sessions/{id}/extract.

    ``success`` is False when the model output was unusable; the session
    needs re-extraction and nothing was stored.
    """

    session_id: str
    success: bool
    error: str | None = None
    items_extracted: int = 0
    items: list[ExtractedItemResponse] = []
    quality: QualityResponse | None = None
    gates: dict[str, GateResponse] = {}
    auto_approved: list[str] = []
    note: str | None = None
    warnings: list[str] = []


class TransitionRequest(BaseModel):
    """Request body for POST /api/items/{id}/review."""

    status: ReviewStatus
    reviewer: str
    notes: str | None = None


class BatchReviewRequest(BaseModel):
    """Request body for the batch approve/reject endpoints."""

    reviewer: str
    notes: str | None = None


class TransitionResultResponse(BaseModel):
    item_id: str
    success: bool
    status: ReviewStatus | None = None
    error: str | None = None


class BatchReviewResponse(BaseModel):
    session_id: str
    succeeded: int
    failed: int
    results: list[TransitionResultResponse]


class ManualItemRequest(BaseModel):
    """Request body for POST /api/sessions/{id}/items."""

    type: str
    content: str
    reviewer: str
    notes: str | None = None


class ProfileMapRequest(BaseModel):
    """Regenerate a profile from a session's approved items."""

    existing: BusinessProfile | None = None
    merge: bool = True
    name: str | None = None
    description: str | None = None


class ProfileMergeRequest(BaseModel):
    existing: BusinessProfile
    update: ProfileUpdate


class TimelineUpdateRequest(BaseModel):
    """Request body for PATCH /api/portfolio/timeline.

    ``last_seen_version`` is the ``updated_at`` value the client last read.
    Omit it to write unconditionally.
    """

    id: str
    last_seen_version: str | None = None
    start_week: int | None = None
    end_week: int | None = None
    go_live_week: int | None = None
    blocker: str | None = None
    this_week_actions: str | None = None
    sort_order: int | None = None


class TimelineUpdateResponse(BaseModel):
    success: bool
    data: dict[str, Any] = {}
    version: str | None = None
