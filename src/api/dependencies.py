"""FastAPI dependency providers for stores and the LLM call.

Tests swap these out through ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from src.concurrency.guard import SupabaseVersionedStore, VersionedStore
from src.extraction.extractor import LLMCall, call_claude
from src.review.store import ItemStore, SupabaseItemStore, get_supabase_client


@lru_cache(maxsize=1)
def get_item_store() -> ItemStore:
    return SupabaseItemStore(get_supabase_client())


@lru_cache(maxsize=1)
def get_versioned_store() -> VersionedStore:
    return SupabaseVersionedStore(get_supabase_client(), table="digital_employees")


def get_llm() -> LLMCall:
    return call_claude
