"""Pipeline configuration: sanitizer mode enum and GateThresholds dataclass."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from src.config import Settings, settings


class SanitizerMode(str, Enum):
    """How the prompt sanitizer reacts to detected injection patterns."""

    ADVISORY = "advisory"
    STRICT = "strict"


@dataclass(frozen=True)
class GateThresholds:
    """Immutable thresholds for the quality and confidence gates.

    Defaults mirror the values the review team calibrated against real
    design-week sessions.
    """

    confidence_threshold: float = 0.7
    auto_approve_confidence: float = 0.9
    misclassified_confidence: float = 0.5
    min_entity_count: int = 5
    min_checklist_coverage: float = 0.5

    @classmethod
    def from_settings(cls, source: Settings | None = None) -> GateThresholds:
        """Build thresholds from application settings."""
        s = source or settings
        return cls(
            confidence_threshold=s.confidence_threshold,
            auto_approve_confidence=s.auto_approve_confidence,
            misclassified_confidence=s.misclassified_confidence,
            min_entity_count=s.min_entity_count,
            min_checklist_coverage=s.min_checklist_coverage,
        )


DEFAULT_THRESHOLDS = GateThresholds()
