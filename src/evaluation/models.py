"""Data models for extraction quality evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


class Recommendation(StrEnum):
    """Graduated routing advice for a single extracted item."""

    AUTO_APPROVE = "High confidence, auto-approve"
    ACCEPTABLE = "Acceptable confidence, review recommended"
    NEEDS_REVIEW = "Low confidence, needs review"
    LIKELY_MISCLASSIFIED = "Very low confidence, likely misclassified, reject or re-extract"


class QualityIssue(StrEnum):
    """Issues raised by the quick batch evaluation."""

    LOW_CONFIDENCE = "Low classification confidence"
    FEW_ENTITIES = "Very few entities extracted"
    LOW_COVERAGE = "Low checklist coverage"


@dataclass
class QuickEvalResult:
    """Result of the cheap, LLM-free batch evaluation."""

    passed: bool
    score: float  # 0.0 - 1.0
    issues: list[QualityIssue] = field(default_factory=list)


@dataclass
class ConfidenceGateResult:
    """Per-item confidence routing."""

    passed: bool
    recommendation: Recommendation

    @property
    def auto_approve(self) -> bool:
        return self.recommendation is Recommendation.AUTO_APPROVE
