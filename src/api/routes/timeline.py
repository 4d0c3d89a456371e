"""Portfolio timeline endpoint: guarded week/tracker updates from the Gantt view."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from src.api.dependencies import get_versioned_store
from src.api.models import TimelineUpdateRequest, TimelineUpdateResponse
from src.concurrency.guard import GuardOutcome, VersionedStore, guarded_write

router = APIRouter()


@router.patch("/api/portfolio/timeline", response_model=TimelineUpdateResponse)
async def update_timeline(
    body: TimelineUpdateRequest,
    store: VersionedStore = Depends(get_versioned_store),
) -> TimelineUpdateResponse | JSONResponse:
    """Update week positions and tracker fields of one digital employee.

    Only fields present in the body are written. With ``last_seen_version``
    the write is refused if someone else changed the record first.
    """
    patch = body.model_dump(exclude_unset=True, exclude={"id", "last_seen_version"})
    if not patch:
        raise HTTPException(status_code=400, detail="No timeline fields to update")

    result = guarded_write(store, body.id, patch, last_seen_version=body.last_seen_version)

    if result.outcome is GuardOutcome.NOT_FOUND:
        raise HTTPException(status_code=404, detail="Digital employee not found")
    if result.outcome is GuardOutcome.CONFLICT:
        return JSONResponse(
            status_code=409,
            content={
                "error": "conflict",
                "detail": result.message,
                "current_version": result.current_version,
            },
        )

    return TimelineUpdateResponse(success=True, data=result.record, version=result.version)
