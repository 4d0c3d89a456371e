"""Tests for partial profile updates and regeneration from approved items."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from src.extraction.models import ExtractedItem, ItemType, ReviewStatus
from src.profile.merge import apply_identity_defaults, merge_profiles, regenerate_profile
from src.profile.models import KPI, BusinessProfile, GuardrailsSection, ProfileUpdate


def _profile() -> BusinessProfile:
    return BusinessProfile.model_validate(
        {
            "identity": {"name": "Claims Assistant", "description": "Handles claims intake"},
            "kpis": [{"id": "k1", "name": "CSAT", "targetValue": "9"}],
            "guardrails": {"never": ["Never give legal advice"], "always": ["Log case id"]},
        }
    )


class TestMergeProfiles:
    """Test section-level profile merging."""

    def test_present_section_replaced_wholesale(self) -> None:
        """A section in the update replaces the whole section."""
        existing = _profile()
        merged = merge_profiles(existing, {"guardrails": {"never": ["Never share IBANs"]}})
        assert merged.guardrails.never == ["Never share IBANs"]
        assert merged.guardrails.always == []

    def test_absent_sections_kept(self) -> None:
        """Sections missing from the update are kept."""
        existing = _profile()
        merged = merge_profiles(existing, {"kpis": []})
        assert merged.kpis == []
        assert merged.identity == existing.identity
        assert merged.guardrails == existing.guardrails

    def test_idempotent(self) -> None:
        """Sending the same update twice never duplicates list entries."""
        update = ProfileUpdate(kpis=[KPI(id="k2", name="AHT", target_value="3 minutes")])
        once = merge_profiles(_profile(), update)
        twice = merge_profiles(once, update)
        assert once == twice
        assert [k.name for k in twice.kpis] == ["AHT"]

    def test_camel_case_keys(self) -> None:
        """Updates may use camelCase wire keys."""
        merged = merge_profiles(_profile(), {"businessContext": {"problemStatement": "Slow intake"}})
        assert merged.business_context.problem_statement == "Slow intake"

    def test_existing_not_mutated(self) -> None:
        """Merging returns a new profile."""
        existing = _profile()
        merged = merge_profiles(existing, ProfileUpdate(guardrails=GuardrailsSection(never=["X"])))
        merged.identity.name = "Changed"
        assert existing.guardrails.never == ["Never give legal advice"]
        assert existing.identity.name == "Claims Assistant"

    def test_empty_update_returns_equal_copy(self) -> None:
        """An empty update returns an equal profile."""
        existing = _profile()
        merged = merge_profiles(existing, {})
        assert merged == existing
        assert merged is not existing


class TestIdentityDefaults:
    """Test identity defaults."""

    def test_fills_only_empty_fields(self) -> None:
        """Defaults never overwrite existing values."""
        profile = BusinessProfile.model_validate({"identity": {"name": "Kept"}})
        apply_identity_defaults(profile, "Default name", "Default description")
        assert profile.identity.name == "Kept"
        assert profile.identity.description == "Default description"

    def test_none_defaults(self) -> None:
        """No defaults leave the identity empty."""
        profile = apply_identity_defaults(BusinessProfile())
        assert profile.identity.name == ""


def _item(item_type: str, content: str, status: ReviewStatus, minutes: int) -> ExtractedItem:
    return ExtractedItem(
        session_id="s1",
        type=item_type,
        content=content,
        status=status,
        created_at=datetime(2026, 1, 5, 9, 0, tzinfo=UTC) + timedelta(minutes=minutes),
    )


class TestRegenerateProfile:
    """Test rebuilding a profile from reviewed items."""

    def test_only_approved_items_in_creation_order(self) -> None:
        """Only APPROVED items count, folded oldest first."""
        items = [
            _item(ItemType.GOAL, "Second goal", ReviewStatus.APPROVED, 5),
            _item(ItemType.GOAL, "First goal", ReviewStatus.APPROVED, 1),
            _item(ItemType.GOAL, "Rejected goal", ReviewStatus.REJECTED, 0),
            _item(ItemType.GUARDRAIL_NEVER, "Pending guardrail", ReviewStatus.PENDING, 2),
        ]
        profile = regenerate_profile(items)
        assert profile.business_context.problem_statement == "First goal"
        assert profile.guardrails.never == []

    def test_merge_keeps_untouched_sections(self) -> None:
        """Merging keeps sections the items do not touch."""
        items = [_item(ItemType.SCOPE_IN, "Address changes", ReviewStatus.APPROVED, 0)]
        profile = regenerate_profile(items, existing=_profile())
        assert [s.statement for s in profile.scope.in_scope] == ["Address changes"]
        assert profile.identity.name == "Claims Assistant"
        assert profile.guardrails.never == ["Never give legal advice"]

    def test_no_merge_replaces(self) -> None:
        """Without merge the generated profile stands alone."""
        items = [_item(ItemType.SCOPE_IN, "Address changes", ReviewStatus.APPROVED, 0)]
        profile = regenerate_profile(items, existing=_profile(), merge=False)
        assert profile.identity.name == ""
        assert profile.guardrails.never == []
