"""Deterministic quality and confidence gates for extraction batches.

Neither check calls a model. The batch check catches sessions where too
little signal came back; the per-item check pre-sorts items for review.
Both are advisory: nothing here writes a status.
"""

from __future__ import annotations

from collections.abc import Sequence

from src.evaluation.models import (
    ConfidenceGateResult,
    QualityIssue,
    QuickEvalResult,
    Recommendation,
)
from src.extraction.models import ExtractedItem
from src.pipeline_config import DEFAULT_THRESHOLDS, GateThresholds

# Composite score weights: confidence, entity volume, checklist coverage.
CONFIDENCE_WEIGHT = 0.3
ENTITY_WEIGHT = 0.3
COVERAGE_WEIGHT = 0.4
ENTITY_SATURATION = 20


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def quick_evaluate(
    avg_confidence: float,
    entity_count: int,
    checklist_coverage: float,
    thresholds: GateThresholds = DEFAULT_THRESHOLDS,
) -> QuickEvalResult:
    """Flag a low-quality extraction batch.

    Every triggered issue is reported; checks do not short-circuit.

    Args:
        avg_confidence: Mean item confidence (0-1).
        entity_count: Number of items extracted.
        checklist_coverage: Fraction of the session checklist covered (0-1).
        thresholds: Gate thresholds; defaults to the calibrated values.

    Returns:
        QuickEvalResult with a weighted composite score.
    """
    issues: list[QualityIssue] = []

    if avg_confidence < thresholds.confidence_threshold:
        issues.append(QualityIssue.LOW_CONFIDENCE)
    if entity_count < thresholds.min_entity_count:
        issues.append(QualityIssue.FEW_ENTITIES)
    if checklist_coverage < thresholds.min_checklist_coverage:
        issues.append(QualityIssue.LOW_COVERAGE)

    score = (
        _clamp(avg_confidence) * CONFIDENCE_WEIGHT
        + min(max(entity_count, 0) / ENTITY_SATURATION, 1.0) * ENTITY_WEIGHT
        + _clamp(checklist_coverage) * COVERAGE_WEIGHT
    )

    return QuickEvalResult(passed=not issues, score=score, issues=issues)


def check_confidence_gate(
    confidence: float,
    threshold: float | None = None,
    thresholds: GateThresholds = DEFAULT_THRESHOLDS,
) -> ConfidenceGateResult:
    """Route a single item by its confidence.

    ``threshold`` overrides the acceptance threshold (default 0.7). The
    auto-approve and misclassified bands stay fixed.
    """
    accept = thresholds.confidence_threshold if threshold is None else threshold

    if confidence >= thresholds.auto_approve_confidence:
        return ConfidenceGateResult(passed=True, recommendation=Recommendation.AUTO_APPROVE)
    if confidence >= accept:
        return ConfidenceGateResult(passed=True, recommendation=Recommendation.ACCEPTABLE)
    if confidence >= thresholds.misclassified_confidence:
        return ConfidenceGateResult(passed=False, recommendation=Recommendation.NEEDS_REVIEW)
    return ConfidenceGateResult(passed=False, recommendation=Recommendation.LIKELY_MISCLASSIFIED)


def evaluate_batch(
    items: Sequence[ExtractedItem],
    checklist_coverage: float,
    thresholds: GateThresholds = DEFAULT_THRESHOLDS,
) -> QuickEvalResult:
    """Run :func:`quick_evaluate` over a batch of extracted items."""
    avg_confidence = sum(i.confidence for i in items) / len(items) if items else 0.0
    return quick_evaluate(avg_confidence, len(items), checklist_coverage, thresholds)
