"""Profile endpoints: regenerate from approved items and apply partial updates."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from src.api.dependencies import get_item_store
from src.api.models import ProfileMapRequest, ProfileMergeRequest
from src.profile.merge import apply_identity_defaults, merge_profiles, regenerate_profile
from src.profile.models import BusinessProfile
from src.review.store import ItemStore

router = APIRouter()


@router.post("/api/sessions/{session_id}/profile", response_model=BusinessProfile)
async def generate_profile(
    session_id: str,
    body: ProfileMapRequest,
    store: ItemStore = Depends(get_item_store),
) -> BusinessProfile:
    """Build the business profile from a session's approved items."""
    profile = regenerate_profile(store.find_by_session(session_id), existing=body.existing, merge=body.merge)
    return apply_identity_defaults(profile, body.name, body.description)


@router.post("/api/profiles/merge", response_model=BusinessProfile)
async def merge_profile(body: ProfileMergeRequest) -> BusinessProfile:
    """Replace the sections present in ``update``; keep the rest."""
    return merge_profiles(body.existing, body.update)
