"""Partial profile updates and profile regeneration from reviewed items."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from src.extraction.models import ExtractedItem, ReviewStatus
from src.profile.mapper import map_items_to_profile
from src.profile.models import BusinessProfile, ProfileUpdate

logger = logging.getLogger(__name__)


def merge_profiles(
    existing: BusinessProfile,
    partial: ProfileUpdate | Mapping[str, Any],
) -> BusinessProfile:
    """Apply a partial update to a profile.

    Each top-level section present in *partial* replaces the existing
    section wholesale. Sections not present keep their existing value. Lists
    are never concatenated, so resending a section is idempotent.

    Args:
        existing: The stored profile. Not modified.
        partial: A ``ProfileUpdate`` or a mapping of section name (snake_case
            or camelCase) to section data.

    Returns:
        A new ``BusinessProfile``.
    """
    update = partial if isinstance(partial, ProfileUpdate) else ProfileUpdate.model_validate(partial)

    replaced: dict[str, Any] = {}
    for name in update.model_fields_set:
        section = getattr(update, name)
        if section is None:
            continue
        replaced[name] = section

    merged = existing.model_copy(update=replaced, deep=True)
    # model_copy does not deep-copy the replacement values themselves.
    return BusinessProfile.model_validate(merged.model_dump())


def apply_identity_defaults(
    profile: BusinessProfile,
    name: str | None = None,
    description: str | None = None,
) -> BusinessProfile:
    """Fill empty identity name/description from the owning digital employee."""
    identity = profile.identity
    if name and not identity.name:
        identity.name = name
    if description and not identity.description:
        identity.description = description
    return profile


def _creation_order(item: ExtractedItem) -> tuple[bool, float]:
    created: datetime | None = item.created_at
    return (created is None, created.timestamp() if created else 0.0)


def regenerate_profile(
    items: Iterable[ExtractedItem],
    existing: BusinessProfile | None = None,
    merge: bool = True,
) -> BusinessProfile:
    """Rebuild a profile from the APPROVED items of a session.

    Items are mapped in creation order. With *merge* and an *existing*
    profile, every section the items produced replaces the stored one and
    the rest are kept.
    """
    approved = [i for i in items if i.status == ReviewStatus.APPROVED]
    approved.sort(key=_creation_order)
    logger.info("Regenerating profile from %d approved items", len(approved))

    generated = map_items_to_profile(approved)
    if existing is None or not merge:
        return generated

    return merge_profiles(existing, ProfileUpdate(**populated_sections(generated)))


def populated_sections(profile: BusinessProfile) -> dict[str, Any]:
    """Sections of *profile* that differ from an empty profile."""
    empty = BusinessProfile()
    return {
        name: getattr(profile, name)
        for name in BusinessProfile.model_fields
        if getattr(profile, name) != getattr(empty, name)
    }
