"""Inspect a session's extracted items: counts, quality gate and mapped profile.

Reads items from Supabase, or from a JSON file of item rows with --file.
"""

import argparse
import json
import sys
from collections import Counter
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.config import settings
from src.evaluation.gate import evaluate_batch
from src.extraction.extractor import estimate_coverage
from src.extraction.models import ExtractedItem
from src.logging_config import configure_logging
from src.pipeline_config import GateThresholds
from src.profile.merge import regenerate_profile
from src.review.store import SupabaseItemStore, get_supabase_client


def load_items(session_id: str, file: str | None) -> list[ExtractedItem]:
    if file:
        rows = json.loads(Path(file).read_text())
        return [ExtractedItem.from_row(r) for r in rows if str(r.get("session_id")) == session_id]
    return SupabaseItemStore(get_supabase_client()).find_by_session(session_id)


def inspect_session(session_id: str, file: str | None = None, coverage: float | None = None) -> None:
    items = load_items(session_id, file)
    print(f"Session {session_id}: {len(items)} items")

    print("\nBy status:")
    for status, count in sorted(Counter(str(i.status) for i in items).items()):
        print(f"  {status:<20} {count}")

    print("\nBy type:")
    for item_type, count in Counter(i.type for i in items).most_common():
        print(f"  {item_type:<24} {count}")

    if coverage is None:
        coverage = estimate_coverage(items)
    quality = evaluate_batch(items, coverage, GateThresholds.from_settings())
    print(f"\nQuick evaluation: {'PASS' if quality.passed else 'FAIL'} (score {quality.score:.2f})")
    for issue in quality.issues:
        print(f"  - {issue}")

    profile = regenerate_profile(items)
    print("\nProfile from approved items:")
    print(json.dumps(profile.model_dump(by_alias=True), indent=2))


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("session_id")
    parser.add_argument("--file", default=None, help="JSON file with extracted item rows")
    parser.add_argument("--coverage", type=float, default=None)
    args = parser.parse_args()

    configure_logging(settings.log_level)
    inspect_session(args.session_id, args.file, args.coverage)
