"""Data models for extracted session items and the LLM extraction response."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ReviewStatus(StrEnum):
    """Review state of an extracted item."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    NEEDS_CLARIFICATION = "NEEDS_CLARIFICATION"


class ItemType(StrEnum):
    """Known extracted item kinds.

    ``ExtractedItem.type`` is stored as a plain string, so tags outside this
    enum (added by newer prompts) still round-trip through the store.
    """

    # Identity
    STAKEHOLDER = "STAKEHOLDER"

    # Business context
    GOAL = "GOAL"
    BUSINESS_CASE = "BUSINESS_CASE"
    VOLUME_EXPECTATION = "VOLUME_EXPECTATION"
    COST_PER_CASE = "COST_PER_CASE"
    PEAK_PERIODS = "PEAK_PERIODS"
    TIMELINE_CONSTRAINT = "TIMELINE_CONSTRAINT"

    # KPIs
    KPI_TARGET = "KPI_TARGET"

    # Channels
    CHANNEL = "CHANNEL"
    CHANNEL_SLA = "CHANNEL_SLA"
    CHANNEL_VOLUME = "CHANNEL_VOLUME"
    CHANNEL_RULE = "CHANNEL_RULE"

    # Skills
    SKILL_ANSWER = "SKILL_ANSWER"
    SKILL_ROUTE = "SKILL_ROUTE"
    SKILL_APPROVE_REJECT = "SKILL_APPROVE_REJECT"
    SKILL_REQUEST_INFO = "SKILL_REQUEST_INFO"
    SKILL_NOTIFY = "SKILL_NOTIFY"
    SKILL_OTHER = "SKILL_OTHER"
    KNOWLEDGE_SOURCE = "KNOWLEDGE_SOURCE"
    BRAND_TONE = "BRAND_TONE"
    COMMUNICATION_STYLE = "COMMUNICATION_STYLE"
    RESPONSE_TEMPLATE = "RESPONSE_TEMPLATE"

    # Process
    HAPPY_PATH_STEP = "HAPPY_PATH_STEP"
    EXCEPTION_CASE = "EXCEPTION_CASE"
    ESCALATION_TRIGGER = "ESCALATION_TRIGGER"
    BUSINESS_RULE = "BUSINESS_RULE"
    DOCUMENT_TYPE = "DOCUMENT_TYPE"
    CASE_TYPE = "CASE_TYPE"

    # Scope
    SCOPE_IN = "SCOPE_IN"
    SCOPE_OUT = "SCOPE_OUT"

    # Guardrails
    GUARDRAIL_NEVER = "GUARDRAIL_NEVER"
    GUARDRAIL_ALWAYS = "GUARDRAIL_ALWAYS"
    FINANCIAL_LIMIT = "FINANCIAL_LIMIT"
    LEGAL_RESTRICTION = "LEGAL_RESTRICTION"
    COMPLIANCE_REQUIREMENT = "COMPLIANCE_REQUIREMENT"

    # Persona & conversational design (persona document, not business profile)
    PERSONA_TRAIT = "PERSONA_TRAIT"
    TONE_RULE = "TONE_RULE"
    DOS_AND_DONTS = "DOS_AND_DONTS"
    EXAMPLE_DIALOGUE = "EXAMPLE_DIALOGUE"
    ESCALATION_SCRIPT = "ESCALATION_SCRIPT"
    DECISION_TREE = "DECISION_TREE"

    # Monitoring & launch (technical profile)
    MONITORING_METRIC = "MONITORING_METRIC"
    LAUNCH_CRITERION = "LAUNCH_CRITERION"

    # Technical
    SYSTEM_INTEGRATION = "SYSTEM_INTEGRATION"
    DATA_FIELD = "DATA_FIELD"
    API_ENDPOINT = "API_ENDPOINT"
    SECURITY_REQUIREMENT = "SECURITY_REQUIREMENT"
    ERROR_HANDLING = "ERROR_HANDLING"
    TECHNICAL_CONTACT = "TECHNICAL_CONTACT"

    # Sign-off & sales handover
    OPEN_ITEM = "OPEN_ITEM"
    DECISION = "DECISION"
    APPROVAL = "APPROVAL"
    RISK = "RISK"
    DEAL_SUMMARY = "DEAL_SUMMARY"
    CONTRACT_DEADLINE = "CONTRACT_DEADLINE"
    SALES_WATCH_OUT = "SALES_WATCH_OUT"
    PROMISED_CAPABILITY = "PROMISED_CAPABILITY"
    CLIENT_PREFERENCE = "CLIENT_PREFERENCE"


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class ExtractedItem:
    """One atomic fact pulled from a session.

    ``type`` never changes after creation. Only ``status`` and the
    ``reviewed_*`` fields mutate, and only through the review workflow.
    """

    session_id: str
    type: str
    content: str
    confidence: float = 1.0
    structured_data: dict[str, Any] | None = None
    status: ReviewStatus = ReviewStatus.PENDING
    id: str = field(default_factory=_new_id)
    category: str | None = None
    source_quote: str | None = None
    source_speaker: str | None = None
    source_timestamp: float | None = None
    reviewed_by: str | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime | None = None

    def to_row(self) -> dict[str, Any]:
        """Serialize to a flat row for the record store."""
        return {
            "id": self.id,
            "session_id": self.session_id,
            "type": self.type,
            "category": self.category,
            "content": self.content,
            "structured_data": self.structured_data,
            "confidence": self.confidence,
            "status": str(self.status),
            "source_quote": self.source_quote,
            "source_speaker": self.source_speaker,
            "source_timestamp": self.source_timestamp,
            "reviewed_by": self.reviewed_by,
            "reviewed_at": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "review_notes": self.review_notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ExtractedItem:
        """Build an item from a record-store row."""
        return cls(
            id=str(row["id"]),
            session_id=str(row["session_id"]),
            type=row["type"],
            category=row.get("category"),
            content=row.get("content") or "",
            structured_data=row.get("structured_data"),
            confidence=float(row.get("confidence", 1.0)),
            status=ReviewStatus(row.get("status", ReviewStatus.PENDING)),
            source_quote=row.get("source_quote"),
            source_speaker=row.get("source_speaker"),
            source_timestamp=row.get("source_timestamp"),
            reviewed_by=row.get("reviewed_by"),
            reviewed_at=_parse_datetime(row.get("reviewed_at")),
            review_notes=row.get("review_notes"),
            created_at=_parse_datetime(row.get("created_at")),
        )


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


# ---------------------------------------------------------------------------
# LLM response schema
# ---------------------------------------------------------------------------


class ExtractedItemCandidate(BaseModel):
    """A single item as returned by the extraction prompt."""

    model_config = ConfigDict(populate_by_name=True)

    type: str
    category: str | None = None
    content: str
    structured_data: dict[str, Any] | None = Field(default=None, alias="structuredData")
    confidence: float = Field(ge=0.0, le=1.0)
    source_timestamp: float | None = Field(default=None, alias="sourceTimestamp")
    source_speaker: str | None = Field(default=None, alias="sourceSpeaker")
    source_quote: str | None = Field(default=None, alias="sourceQuote")


class ExtractionResponse(BaseModel):
    """Top-level JSON contract of the extraction prompt."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[ExtractedItemCandidate]
    error: str | None = None
    note: str | None = None
    warnings: list[str] = Field(default_factory=list)
    checklist_coverage: float | None = Field(default=None, ge=0.0, le=1.0, alias="checklistCoverage")
