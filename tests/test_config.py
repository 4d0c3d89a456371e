"""Tests for Settings, SanitizerMode and GateThresholds."""

from __future__ import annotations

import logging

import pytest

from src.config import Settings
from src.logging_config import configure_logging
from src.pipeline_config import DEFAULT_THRESHOLDS, GateThresholds, SanitizerMode

# ---------------------------------------------------------------------------
# Enum tests
# ---------------------------------------------------------------------------


class TestSanitizerMode:
    """Test the sanitizer mode enum."""

    def test_values(self) -> None:
        """Enum values are the lowercase mode names."""
        assert SanitizerMode.ADVISORY.value == "advisory"
        assert SanitizerMode.STRICT.value == "strict"

    def test_from_string(self) -> None:
        """Modes are constructed from their string value."""
        assert SanitizerMode("strict") is SanitizerMode.STRICT

    def test_invalid_raises(self) -> None:
        """An unknown mode raises ValueError."""
        with pytest.raises(ValueError):
            SanitizerMode("paranoid")

    def test_is_str_subclass(self) -> None:
        """Modes compare as plain strings."""
        assert isinstance(SanitizerMode.ADVISORY, str)


# ---------------------------------------------------------------------------
# GateThresholds tests
# ---------------------------------------------------------------------------


class TestGateThresholds:
    """Test gate threshold defaults and construction."""

    def test_defaults(self) -> None:
        """Defaults match the documented thresholds."""
        assert DEFAULT_THRESHOLDS.confidence_threshold == 0.7
        assert DEFAULT_THRESHOLDS.auto_approve_confidence == 0.9
        assert DEFAULT_THRESHOLDS.misclassified_confidence == 0.5
        assert DEFAULT_THRESHOLDS.min_entity_count == 5
        assert DEFAULT_THRESHOLDS.min_checklist_coverage == 0.5

    def test_from_settings(self) -> None:
        """Thresholds are read from settings."""
        source = Settings(_env_file=None, confidence_threshold=0.8, min_entity_count=3)  # type: ignore[call-arg]
        thresholds = GateThresholds.from_settings(source)
        assert thresholds.confidence_threshold == 0.8
        assert thresholds.min_entity_count == 3
        assert thresholds.auto_approve_confidence == 0.9

    def test_immutable(self) -> None:
        """Thresholds are frozen."""
        with pytest.raises(AttributeError):
            DEFAULT_THRESHOLDS.confidence_threshold = 0.1  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Settings tests
# ---------------------------------------------------------------------------


class TestSettings:
    """Test environment-driven settings."""

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Environment variables override defaults."""
        monkeypatch.setenv("SANITIZER_MODE", "strict")
        monkeypatch.setenv("AUTO_APPROVE_HIGH_CONFIDENCE", "true")
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.sanitizer_mode == "strict"
        assert s.auto_approve_high_confidence is True

    def test_advisory_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Sanitizing is advisory and auto-approval off unless configured."""
        monkeypatch.delenv("SANITIZER_MODE", raising=False)
        monkeypatch.delenv("AUTO_APPROVE_HIGH_CONFIDENCE", raising=False)
        s = Settings(_env_file=None)  # type: ignore[call-arg]
        assert s.sanitizer_mode == "advisory"
        assert s.auto_approve_high_confidence is False
        assert s.strict_injection_limit == 3


class TestLogging:
    """Test logging setup."""

    def test_configure_logging_is_idempotent(self) -> None:
        """Repeated calls only change the level."""
        root = logging.getLogger()
        previous = root.level
        try:
            configure_logging("DEBUG")
            count = len(root.handlers)
            configure_logging("WARNING")
            assert len(root.handlers) == count
            assert root.level == logging.WARNING
        finally:
            root.setLevel(previous)
