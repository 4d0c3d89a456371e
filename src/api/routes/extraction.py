"""Extraction endpoint: run the extraction pipeline over a session transcript."""

from __future__ import annotations

from anthropic import APIStatusError
from fastapi import APIRouter, Depends, HTTPException

from src.api.dependencies import get_item_store, get_llm
from src.api.models import (
    ExtractedItemResponse,
    ExtractRequest,
    ExtractResponse,
    GateResponse,
    QualityResponse,
)
from src.extraction.extractor import LLMCall, extract_session
from src.extraction.sanitizer import PromptInjectionError
from src.review.store import ItemStore

router = APIRouter()


@router.post("/api/sessions/{session_id}/extract", response_model=ExtractResponse)
async def extract(
    session_id: str,
    body: ExtractRequest,
    store: ItemStore = Depends(get_item_store),
    llm: LLMCall = Depends(get_llm),
) -> ExtractResponse:
    """Extract items from a session transcript and store them for review.

    Unusable model output is reported with ``success: false`` rather than an
    HTTP error.
    """
    if not body.transcript.strip():
        raise HTTPException(status_code=400, detail="Session has no transcript to extract from")

    try:
        outcome = extract_session(
            session_id,
            body.transcript,
            store,
            llm=llm,
            checklist_coverage=body.checklist_coverage,
            auto_approve=body.auto_approve,
        )
    except PromptInjectionError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except APIStatusError as exc:
        # Claude overloaded (529) or other upstream error: answer with JSON, not a bare 500.
        raise HTTPException(status_code=503, detail=f"LLM unavailable: {exc.message}") from exc

    return ExtractResponse(
        session_id=session_id,
        success=outcome.success,
        error=outcome.error or outcome.model_error,
        items_extracted=len(outcome.items),
        items=[ExtractedItemResponse.from_item(i) for i in outcome.items],
        quality=(
            QualityResponse(
                passed=outcome.quality.passed,
                score=outcome.quality.score,
                issues=[str(i) for i in outcome.quality.issues],
            )
            if outcome.quality
            else None
        ),
        gates={
            item_id: GateResponse(passed=g.passed, recommendation=str(g.recommendation))
            for item_id, g in outcome.gates.items()
        },
        auto_approved=outcome.auto_approved,
        note=outcome.note,
        warnings=outcome.warnings,
    )
