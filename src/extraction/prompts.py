"""Prompt text for session extraction."""

from __future__ import annotations

from src.extraction.models import ItemType

CONFIDENCE_SCORING_GUIDE = """\
## Confidence scoring (use these ranges)
- 0.90-1.00: stated verbatim, speaker clearly identified, no ambiguity
- 0.70-0.89: clearly stated, small amount of interpretation needed
- 0.50-0.69: implied or indirect, requires inference
- below 0.50: leave the item out

Only return items with confidence >= 0.50."""

PII_HANDLING_GUIDE = """\
## Personal data
- Stakeholder names and roles are business-relevant and may be extracted
- Never extract personal phone numbers, home addresses or private email addresses
- Only include work email addresses
- Give items containing personal data the category "pii"
- If someone asks not to be recorded, exclude them and say so in the "note" field"""

ERROR_RECOVERY_GUIDE = """\
## When extraction is not possible
- Empty or unreadable content: return {"items": [], "error": "<what is wrong>"}
- Nothing reaches confidence 0.50: return {"items": [], "note": "No items met confidence threshold"}
- Fields you could not determine: list them in a "warnings" array
- Never invent information to fill a gap"""

_TYPE_LIST = ", ".join(t.value for t in ItemType)

EXTRACTION_SYSTEM_PROMPT = f"""\
You extract structured facts from a client session transcript. The facts are
used to configure a digital employee: a software agent that handles one
business process for the client.

Extract every distinct fact as one item. Each item has:
- "type": one of {_TYPE_LIST}
- "category": optional free-text grouping
- "content": the fact in one or two plain sentences
- "structuredData": optional object with type-specific fields
  (e.g. {{"name", "role", "email", "isDecisionMaker"}} for STAKEHOLDER,
  {{"order", "title", "isDecisionPoint"}} for HAPPY_PATH_STEP,
  {{"channel", "percentage"}} for CHANNEL_VOLUME)
- "confidence": number between 0 and 1
- "sourceQuote", "sourceSpeaker", "sourceTimestamp": evidence from the transcript

{CONFIDENCE_SCORING_GUIDE}

{PII_HANDLING_GUIDE}

{ERROR_RECOVERY_GUIDE}

Respond with a single JSON object: {{"items": [...]}}. Return ONLY the JSON object."""
