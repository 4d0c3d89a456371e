"""Session extraction pipeline: sanitize, call Claude, parse, gate, persist."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from anthropic import Anthropic
from anthropic.types import TextBlock

from src.config import settings
from src.evaluation.gate import check_confidence_gate, evaluate_batch
from src.evaluation.models import ConfidenceGateResult, QuickEvalResult
from src.extraction.models import ExtractedItem, ExtractionResponse, ReviewStatus
from src.extraction.parsing import extract_and_validate_json
from src.extraction.prompts import EXTRACTION_SYSTEM_PROMPT
from src.extraction.sanitizer import build_safe_prompt
from src.pipeline_config import DEFAULT_THRESHOLDS, GateThresholds, SanitizerMode
from src.profile.mapper import map_items_to_profile
from src.profile.merge import populated_sections
from src.profile.models import SECTION_NAMES
from src.review.store import ItemStore
from src.review.workflow import SYSTEM_REVIEWER, transition_item

logger = logging.getLogger(__name__)

LLMCall = Callable[[str], str]


def call_claude(prompt: str) -> str:
    """Send a single-turn prompt to Claude and return the text reply."""
    client = Anthropic(api_key=settings.anthropic_api_key)
    response = client.messages.create(
        model=settings.llm_model,
        max_tokens=settings.llm_max_tokens,
        messages=[{"role": "user", "content": prompt}],
    )
    # Plain-text prompt, so the first block is text.
    block = response.content[0]
    if not isinstance(block, TextBlock):
        raise ValueError(f"Expected TextBlock from Claude, got {type(block).__name__}")
    return block.text


@dataclass
class ExtractionOutcome:
    """Result of extracting one session.

    ``success`` is False only when the model output could not be parsed or
    validated; ``error`` then says why and nothing was stored.
    """

    session_id: str
    success: bool
    items: list[ExtractedItem] = field(default_factory=list)
    error: str | None = None
    model_error: str | None = None
    note: str | None = None
    warnings: list[str] = field(default_factory=list)
    quality: QuickEvalResult | None = None
    gates: dict[str, ConfidenceGateResult] = field(default_factory=dict)
    auto_approved: list[str] = field(default_factory=list)


def estimate_coverage(items: list[ExtractedItem]) -> float:
    """Share of business-profile sections the items would populate."""
    if not items:
        return 0.0
    profile = map_items_to_profile(items)
    return len(populated_sections(profile)) / len(SECTION_NAMES)


def extract_session(
    session_id: str,
    transcript: str,
    store: ItemStore,
    llm: LLMCall | None = None,
    checklist_coverage: float | None = None,
    auto_approve: bool | None = None,
    thresholds: GateThresholds | None = None,
    sanitizer_mode: SanitizerMode | str | None = None,
) -> ExtractionOutcome:
    """Extract items from a session transcript and store them as PENDING.

    Args:
        session_id: Session the transcript belongs to.
        transcript: Raw, untrusted transcript text.
        store: Item store to persist into.
        llm: Prompt-to-text callable; defaults to :func:`call_claude`.
        checklist_coverage: Coverage for the quality gate. Falls back to the
            model-reported value, then to :func:`estimate_coverage`.
        auto_approve: Approve items the confidence gate marks for
            auto-approval. Defaults to ``settings.auto_approve_high_confidence``.
        thresholds: Gate thresholds; defaults to settings.
        sanitizer_mode: Overrides ``settings.sanitizer_mode``.

    Returns:
        ExtractionOutcome. Malformed model output gives ``success=False``;
        errors from the LLM client propagate.
    """
    llm = llm or call_claude
    thresholds = thresholds or GateThresholds.from_settings()
    if auto_approve is None:
        auto_approve = settings.auto_approve_high_confidence

    prompt = build_safe_prompt(
        EXTRACTION_SYSTEM_PROMPT, transcript, "SESSION TRANSCRIPT", mode=sanitizer_mode
    )
    logger.info("Extracting session %s (%d transcript chars)", session_id, len(transcript or ""))
    raw = llm(prompt)

    parsed = extract_and_validate_json(raw, ExtractionResponse)
    if not parsed.success or parsed.data is None:
        logger.warning("Extraction for session %s returned unusable output: %s", session_id, parsed.error)
        return ExtractionOutcome(session_id=session_id, success=False, error=parsed.error)

    response: ExtractionResponse = parsed.data
    if response.error:
        logger.warning("Model reported an extraction problem for session %s: %s", session_id, response.error)

    items = store.insert_many(
        [
            ExtractedItem(
                session_id=session_id,
                type=candidate.type,
                category=candidate.category,
                content=candidate.content,
                structured_data=candidate.structured_data,
                confidence=candidate.confidence,
                source_quote=candidate.source_quote,
                source_speaker=candidate.source_speaker,
                source_timestamp=candidate.source_timestamp,
            )
            for candidate in response.items
        ]
    )

    if checklist_coverage is None:
        checklist_coverage = response.checklist_coverage
    if checklist_coverage is None:
        checklist_coverage = estimate_coverage(items)

    outcome = ExtractionOutcome(
        session_id=session_id,
        success=True,
        items=items,
        model_error=response.error,
        note=response.note,
        warnings=list(response.warnings),
        quality=evaluate_batch(items, checklist_coverage, thresholds),
    )
    if not outcome.quality.passed:
        logger.info(
            "Session %s flagged by quality gate: %s",
            session_id,
            ", ".join(str(i) for i in outcome.quality.issues),
        )

    for index, item in enumerate(items):
        gate = check_confidence_gate(item.confidence, thresholds=thresholds)
        outcome.gates[item.id] = gate
        if auto_approve and gate.auto_approve:
            items[index] = transition_item(
                store, item.id, ReviewStatus.APPROVED, SYSTEM_REVIEWER, str(gate.recommendation)
            )
            outcome.auto_approved.append(item.id)

    logger.info(
        "Session %s: %d items stored, %d auto-approved", session_id, len(items), len(outcome.auto_approved)
    )
    return outcome
