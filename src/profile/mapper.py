"""Map reviewed extracted items onto the fixed-shape business profile.

Each item type has a handler registered in ``_HANDLERS``. The fold walks the
items in order, looks up the handler for ``item.type`` and lets it patch the
profile. Unknown types are logged and skipped; a handler that raises loses
only its own item.

Some types refine something mentioned just before them (a channel's SLA, a
skill's knowledge source). The fold keeps an explicit cursor to the last
appended channel and skill in ``MappingState`` for those.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from src.extraction.models import ExtractedItem, ItemType
from src.profile.models import (
    KPI,
    BusinessProfile,
    CaseType,
    Channel,
    ChannelType,
    ExceptionCase,
    FinancialLimit,
    ProcessStep,
    ScopeItem,
    Skill,
    SkillType,
    Stakeholder,
    create_empty_profile,
)

logger = logging.getLogger(__name__)


@dataclass
class MappingState:
    """Fold state threaded through every handler."""

    profile: BusinessProfile
    last_channel: Channel | None = None
    last_skill: Skill | None = None


Handler = Callable[[ExtractedItem, MappingState], None]

_HANDLERS: dict[str, Handler] = {}


def register_handler(*item_types: str) -> Callable[[Handler], Handler]:
    """Register the decorated function as the handler for *item_types*."""

    def decorator(fn: Handler) -> Handler:
        for item_type in item_types:
            _HANDLERS[str(item_type)] = fn
        return fn

    return decorator


def get_handler(item_type: str) -> Handler | None:
    return _HANDLERS.get(item_type)


def registered_types() -> frozenset[str]:
    return frozenset(_HANDLERS)


def map_items_to_profile(items: Iterable[ExtractedItem]) -> BusinessProfile:
    """Fold *items*, in order, into a fresh profile."""
    state = MappingState(profile=create_empty_profile())

    for item in items:
        handler = get_handler(item.type)
        if handler is None:
            logger.info("Unmapped item type: %s (item %s)", item.type, item.id)
            continue
        try:
            handler(item, state)
        except Exception:
            logger.warning("Failed to map item %s (%s)", item.id, item.type, exc_info=True)

    return state.profile


# ---------------------------------------------------------------------------
# structuredData accessors
# ---------------------------------------------------------------------------


def _data(item: ExtractedItem) -> dict[str, Any]:
    data = item.structured_data
    return data if isinstance(data, dict) else {}


def _text(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _number(data: dict[str, Any], key: str) -> float | None:
    value = data.get(key)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return parse_amount(value)
    return None


def _flag(data: dict[str, Any], key: str) -> bool | None:
    value = data.get(key)
    return value if isinstance(value, bool) else None


def _string_list(data: dict[str, Any], key: str) -> list[str] | None:
    value = data.get(key)
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    if isinstance(value, str) and value.strip():
        return [part.strip() for part in value.split(",") if part.strip()]
    return None


# ---------------------------------------------------------------------------
# content parsing fallbacks
# ---------------------------------------------------------------------------

_PERCENT_RE = re.compile(r"(\d+(?:[.,]\d+)?\s*%)")
_CURRENCY_RE = re.compile(r"([€$£]\s?\d[\d.,]*)")
_NUMBER_UNIT_RE = re.compile(r"(\d+[\d,]*\s*\w+)")
_AMOUNT_RE = re.compile(r"\d[\d.,]*")
_BULLET_PREFIX_RE = re.compile(r"^[•\-*]\s*")
_VOLUME_RE = re.compile(
    r"(\d[\d.,]*)\s*(?:[a-z]+\s+)?(?:per|/|a|each)\s*(day|week|month|year)",
    re.IGNORECASE,
)
_CURRENCY_SYMBOLS = {"€": "EUR", "$": "USD", "£": "GBP"}
_THOUSANDS_SEP_RE = re.compile(r"(?<=\d)[.,](?=\d{3}(?!\d))")

_MONTHLY_FACTOR = {"day": 22.0, "week": 52.0 / 12.0, "month": 1.0, "year": 1.0 / 12.0}


def name_from_content(content: str) -> str:
    """Use the text before the first colon as a name, else the whole content."""
    head = content.split(":", 1)[0].strip()
    return head or content


def extract_target_from_content(content: str) -> str:
    """Pull a target such as ``85%``, ``€5000`` or ``3 minutes`` from free text."""
    for pattern in (_PERCENT_RE, _CURRENCY_RE, _NUMBER_UNIT_RE):
        match = pattern.search(content)
        if match:
            return match.group(1).strip()
    return ""


def parse_amount(content: str) -> float | None:
    """Return the first numeric token in *content*, comma read as decimal point."""
    match = _AMOUNT_RE.search(content)
    if not match:
        return None
    token = match.group(0).replace(",", ".", 1)
    number = re.match(r"\d+(?:\.\d+)?", token)
    return float(number.group(0)) if number else None


def currency_from_content(content: str, default: str = "EUR") -> str:
    for symbol, code in _CURRENCY_SYMBOLS.items():
        if symbol in content:
            return code
    upper = content.upper()
    for code in ("EUR", "USD", "GBP"):
        if code in upper:
            return code
    return default


def split_bullets(content: str) -> list[str]:
    """Split bullet-formatted text into clean entries; [] if not bulleted."""
    if "•" in content:
        parts = content.split("•")
    else:
        lines = [ln for ln in content.splitlines() if _BULLET_PREFIX_RE.match(ln.strip())]
        if len(lines) < 2:
            return []
        parts = lines
    cleaned = (_BULLET_PREFIX_RE.sub("", p.strip()).strip() for p in parts)
    return [p for p in cleaned if p]


def infer_channel_type(content: str) -> ChannelType:
    lower = content.lower()
    if "email" in lower or "mail" in lower:
        return "email"
    if "chat" in lower or "live" in lower:
        return "chat"
    if "phone" in lower or "call" in lower or "telefoon" in lower:
        return "phone"
    if "portal" in lower or "web" in lower:
        return "portal"
    if "api" in lower:
        return "api"
    return "other"


_CHANNEL_TYPES: frozenset[str] = frozenset({"email", "chat", "phone", "portal", "api", "other"})
_FORMALITY_ALIASES = {"formal": "formal", "informal": "casual", "casual": "casual", "mixed": "mixed"}

SKILL_TYPES: dict[str, SkillType] = {
    ItemType.SKILL_ANSWER: "answer",
    ItemType.SKILL_ROUTE: "route",
    ItemType.SKILL_APPROVE_REJECT: "approve_reject",
    ItemType.SKILL_REQUEST_INFO: "request_info",
    ItemType.SKILL_NOTIFY: "notify",
    ItemType.SKILL_OTHER: "other",
}


def _find_channel(state: MappingState, name: str | None) -> Channel | None:
    if not name:
        return None
    wanted = name.lower()
    for channel in state.profile.channels:
        if channel.name.lower() == wanted:
            return channel
    return None


def _channel_for(item: ExtractedItem, state: MappingState) -> Channel | None:
    """Resolve the channel named by the item's structured ``channel`` field."""
    return _find_channel(state, _text(_data(item), "channel"))


def _add_pain_point(state: MappingState, point: str) -> None:
    points = state.profile.business_context.pain_points
    if point and point not in points:
        points.append(point)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


@register_handler(ItemType.STAKEHOLDER)
def _stakeholder(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    state.profile.identity.stakeholders.append(
        Stakeholder(
            id=item.id,
            name=_text(data, "name") or name_from_content(item.content),
            role=_text(data, "role") or "",
            email=_text(data, "email"),
            is_decision_maker=_flag(data, "isDecisionMaker"),
        )
    )


# ---------------------------------------------------------------------------
# Business context
# ---------------------------------------------------------------------------


@register_handler(ItemType.GOAL)
def _goal(item: ExtractedItem, state: MappingState) -> None:
    context = state.profile.business_context
    # First clearly stated goal is the canonical one.
    if not context.problem_statement:
        context.problem_statement = item.content


@register_handler(ItemType.BUSINESS_CASE)
def _business_case(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    context = state.profile.business_context

    problem = _text(data, "problemStatement")
    if problem:
        context.problem_statement = problem
    elif not context.problem_statement:
        context.problem_statement = item.content

    pain_points = data.get("painPoints")
    if isinstance(pain_points, list):
        for point in pain_points:
            _add_pain_point(state, _BULLET_PREFIX_RE.sub("", str(point).strip()).strip())
    else:
        for point in split_bullets(item.content):
            _add_pain_point(state, point)


@register_handler(ItemType.VOLUME_EXPECTATION)
def _volume(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    context = state.profile.business_context

    monthly = _number(data, "monthlyVolume")
    original = _number(data, "originalValue")
    unit = _text(data, "originalUnit")

    if monthly is None and original is None:
        match = _VOLUME_RE.search(item.content)
        if match:
            original = parse_amount(_THOUSANDS_SEP_RE.sub("", match.group(1)))
            period = match.group(2).lower()
            unit = f"cases/{period}"
            if original is not None:
                monthly = round(original * _MONTHLY_FACTOR[period])

    if monthly is not None:
        context.volume_per_month = monthly
    if original is not None:
        context.volume_original_value = original
    if unit:
        context.volume_original_unit = unit
    note = _text(data, "calculationNote")
    if note:
        context.volume_calculation_note = note


@register_handler(ItemType.COST_PER_CASE)
def _cost_per_case(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    context = state.profile.business_context

    cost = _number(data, "costPerCase")
    if cost is None:
        cost = parse_amount(item.content)
    if cost is not None:
        context.cost_per_case = cost

    currency = _text(data, "currency")
    if currency:
        context.currency = currency
    elif cost is not None and _number(data, "costPerCase") is None:
        context.currency = currency_from_content(item.content, context.currency)

    total = _number(data, "totalMonthlyCost")
    if total is not None:
        context.total_monthly_cost = total
    note = _text(data, "calculationNote")
    if note:
        context.cost_calculation_note = note


@register_handler(ItemType.PEAK_PERIODS)
def _peak_periods(item: ExtractedItem, state: MappingState) -> None:
    periods = _string_list(_data(item), "periods") or [item.content]
    state.profile.business_context.peak_periods.extend(periods)


@register_handler(ItemType.TIMELINE_CONSTRAINT)
def _timeline_constraint(item: ExtractedItem, state: MappingState) -> None:
    state.profile.business_context.pain_points.append(f"Timeline: {item.content}")


# ---------------------------------------------------------------------------
# KPIs
# ---------------------------------------------------------------------------


@register_handler(ItemType.KPI_TARGET)
def _kpi(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    target = data.get("targetValue")
    state.profile.kpis.append(
        KPI(
            id=item.id,
            name=_text(data, "name") or name_from_content(item.content),
            description=_text(data, "description"),
            target_value=str(target) if target not in (None, "") else extract_target_from_content(item.content),
            current_value=_text(data, "currentValue"),
            unit=_text(data, "unit") or "%",
            frequency=_text(data, "frequency"),
        )
    )


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------


@register_handler(ItemType.CHANNEL)
def _channel(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    declared = (_text(data, "type") or "").lower()
    channel = Channel(
        id=item.id,
        name=_text(data, "name") or item.content,
        type=declared if declared in _CHANNEL_TYPES else infer_channel_type(item.content),  # type: ignore[arg-type]
        volume_percentage=_number(data, "volumePercentage") or 0,
        sla=_text(data, "sla") or "",
        rules=_string_list(data, "rules") or [],
    )
    state.profile.channels.append(channel)
    state.last_channel = channel


@register_handler(ItemType.CHANNEL_SLA)
def _channel_sla(item: ExtractedItem, state: MappingState) -> None:
    channel = _channel_for(item, state)
    if channel is None:
        logger.debug("No channel matches SLA item %s", item.id)
        return
    channel.sla = _text(_data(item), "sla") or item.content


@register_handler(ItemType.CHANNEL_VOLUME)
def _channel_volume(item: ExtractedItem, state: MappingState) -> None:
    channel = _channel_for(item, state)
    if channel is None:
        logger.debug("No channel matches volume item %s", item.id)
        return
    data = _data(item)
    percentage = _number(data, "percentage")
    if percentage is None:
        match = _PERCENT_RE.search(item.content)
        percentage = parse_amount(match.group(1)) if match else None
    if percentage:
        channel.volume_percentage = percentage


@register_handler(ItemType.CHANNEL_RULE)
def _channel_rule(item: ExtractedItem, state: MappingState) -> None:
    channel = _channel_for(item, state) or state.last_channel
    if channel is None:
        logger.debug("No channel to attach rule item %s to", item.id)
        return
    channel.rules.append(item.content)


# ---------------------------------------------------------------------------
# Skills
# ---------------------------------------------------------------------------


@register_handler(*SKILL_TYPES)
def _skill(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    skill = Skill(
        id=item.id,
        type=SKILL_TYPES.get(item.type, "other"),
        name=_text(data, "name") or name_from_content(item.content),
        description=_text(data, "description") or item.content,
        knowledge_sources=_string_list(data, "knowledgeSources") or [],
        rules=_string_list(data, "rules") or [],
    )
    state.profile.skills.skills.append(skill)
    state.last_skill = skill


@register_handler(ItemType.RESPONSE_TEMPLATE)
def _response_template(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    skill = Skill(
        id=item.id,
        type="other",
        name=_text(data, "name") or "Response Template",
        description=item.content,
        rules=_string_list(data, "rules") or [],
    )
    state.profile.skills.skills.append(skill)
    state.last_skill = skill


@register_handler(ItemType.KNOWLEDGE_SOURCE)
def _knowledge_source(item: ExtractedItem, state: MappingState) -> None:
    # Dialogue order: a skill is named, then its source is clarified right after.
    if state.last_skill is None:
        logger.debug("Knowledge source %s arrived before any skill", item.id)
        return
    state.last_skill.knowledge_sources.append(_text(_data(item), "source") or item.content)


@register_handler(ItemType.BRAND_TONE)
def _brand_tone(item: ExtractedItem, state: MappingState) -> None:
    state.profile.skills.communication_style.tone.append(_text(_data(item), "tone") or item.content)


@register_handler(ItemType.COMMUNICATION_STYLE)
def _communication_style(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    style = state.profile.skills.communication_style

    formality = _FORMALITY_ALIASES.get((_text(data, "formality") or "").lower())
    if formality:
        style.formality = formality  # type: ignore[assignment]
    languages = _string_list(data, "languages")
    if languages:
        style.languages = languages


# ---------------------------------------------------------------------------
# Process
# ---------------------------------------------------------------------------


@register_handler(ItemType.HAPPY_PATH_STEP)
def _happy_path_step(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    steps = state.profile.process.happy_path_steps
    position = len(steps) + 1
    order = _number(data, "order")

    steps.append(
        ProcessStep(
            id=item.id,
            order=order if order is not None else position,
            title=_text(data, "title") or name_from_content(item.content) or f"Step {position}",
            description=_text(data, "description") or item.content,
            is_decision_point=_flag(data, "isDecisionPoint"),
        )
    )
    # Sessions narrate steps out of order; the explicit order wins.
    steps.sort(key=lambda s: s.order)


@register_handler(ItemType.EXCEPTION_CASE)
def _exception_case(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    state.profile.process.exceptions.append(
        ExceptionCase(
            id=item.id,
            trigger=_text(data, "trigger") or item.content,
            action=_text(data, "action") or "",
            escalate_to=_text(data, "escalateTo"),
        )
    )


@register_handler(ItemType.ESCALATION_TRIGGER)
def _escalation_trigger(item: ExtractedItem, state: MappingState) -> None:
    state.profile.process.escalation_rules.append(item.content)


@register_handler(ItemType.BUSINESS_RULE)
def _business_rule(item: ExtractedItem, state: MappingState) -> None:
    state.profile.process.escalation_rules.append(f"Rule: {item.content}")


@register_handler(ItemType.DOCUMENT_TYPE)
def _document_type(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    state.profile.process.case_types.append(
        CaseType(
            id=item.id,
            name=f"Document: {_text(data, 'name') or item.content}",
            volume_percent=_number(data, "volumePercent") or 0,
            complexity="LOW",
            automatable=True,
            description=item.content,
        )
    )


@register_handler(ItemType.CASE_TYPE)
def _case_type(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    complexity = (_text(data, "complexity") or "MEDIUM").upper()
    automatable = _flag(data, "automatable")
    state.profile.process.case_types.append(
        CaseType(
            id=item.id,
            name=_text(data, "name") or item.content,
            volume_percent=_number(data, "volumePercent") or 0,
            complexity=complexity if complexity in ("LOW", "MEDIUM", "HIGH") else "MEDIUM",  # type: ignore[arg-type]
            automatable=True if automatable is None else automatable,
            description=_text(data, "description"),
        )
    )


# ---------------------------------------------------------------------------
# Scope
# ---------------------------------------------------------------------------


def _scope_item(item: ExtractedItem) -> ScopeItem:
    data = _data(item)
    return ScopeItem(
        id=item.id,
        statement=_text(data, "statement") or item.content,
        conditions=_text(data, "conditions"),
    )


@register_handler(ItemType.SCOPE_IN)
def _scope_in(item: ExtractedItem, state: MappingState) -> None:
    state.profile.scope.in_scope.append(_scope_item(item))


@register_handler(ItemType.SCOPE_OUT)
def _scope_out(item: ExtractedItem, state: MappingState) -> None:
    state.profile.scope.out_of_scope.append(_scope_item(item))


# ---------------------------------------------------------------------------
# Guardrails (append-only)
# ---------------------------------------------------------------------------


@register_handler(ItemType.GUARDRAIL_NEVER)
def _guardrail_never(item: ExtractedItem, state: MappingState) -> None:
    state.profile.guardrails.never.append(item.content)


@register_handler(ItemType.GUARDRAIL_ALWAYS)
def _guardrail_always(item: ExtractedItem, state: MappingState) -> None:
    state.profile.guardrails.always.append(item.content)


@register_handler(ItemType.FINANCIAL_LIMIT)
def _financial_limit(item: ExtractedItem, state: MappingState) -> None:
    data = _data(item)
    amount = _number(data, "amount")
    if amount is None:
        amount = parse_amount(item.content) or 0.0
    state.profile.guardrails.financial_limits.append(
        FinancialLimit(
            id=item.id,
            type=_text(data, "type") or name_from_content(item.content) or "Limit",
            amount=amount,
            currency=_text(data, "currency") or currency_from_content(item.content),
        )
    )


@register_handler(ItemType.LEGAL_RESTRICTION, ItemType.COMPLIANCE_REQUIREMENT)
def _legal_restriction(item: ExtractedItem, state: MappingState) -> None:
    state.profile.guardrails.legal_restrictions.append(item.content)


# ---------------------------------------------------------------------------
# Known types that live outside the business profile
# ---------------------------------------------------------------------------


@register_handler(
    # persona document
    ItemType.PERSONA_TRAIT,
    ItemType.TONE_RULE,
    ItemType.DOS_AND_DONTS,
    ItemType.EXAMPLE_DIALOGUE,
    ItemType.ESCALATION_SCRIPT,
    ItemType.DECISION_TREE,
    # technical profile
    ItemType.MONITORING_METRIC,
    ItemType.LAUNCH_CRITERION,
    ItemType.SYSTEM_INTEGRATION,
    ItemType.DATA_FIELD,
    ItemType.API_ENDPOINT,
    ItemType.SECURITY_REQUIREMENT,
    ItemType.ERROR_HANDLING,
    ItemType.TECHNICAL_CONTACT,
    # sign-off and sales handover
    ItemType.OPEN_ITEM,
    ItemType.DECISION,
    ItemType.APPROVAL,
    ItemType.RISK,
    ItemType.DEAL_SUMMARY,
    ItemType.CONTRACT_DEADLINE,
    ItemType.SALES_WATCH_OUT,
    ItemType.PROMISED_CAPABILITY,
    ItemType.CLIENT_PREFERENCE,
)
def _outside_business_profile(item: ExtractedItem, state: MappingState) -> None:
    logger.debug("Item %s (%s) belongs to another profile", item.id, item.type)
