"""Fixed-shape business profile a digital employee is configured from.

Every list defaults to empty, never None, so consumers never branch on
missing-vs-empty. Field names are snake_case in Python and camelCase on the
wire (``model_dump(by_alias=True)``), matching what the dashboards store.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ChannelType = Literal["email", "chat", "phone", "portal", "api", "other"]
SkillType = Literal["answer", "route", "approve_reject", "request_info", "notify", "other"]
Formality = Literal["formal", "casual", "mixed"]
Complexity = Literal["LOW", "MEDIUM", "HIGH"]


class ProfileModel(BaseModel):
    """Base for all profile models: camelCase aliases, populate by either name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Identity ────────────────────────────────────────────────────────────────


class Stakeholder(ProfileModel):
    id: str
    name: str
    role: str = ""
    email: str | None = None
    is_decision_maker: bool | None = None


class IdentitySection(ProfileModel):
    name: str = ""
    description: str = ""
    stakeholders: list[Stakeholder] = Field(default_factory=list)


# ── Business context ────────────────────────────────────────────────────────


class BusinessContextSection(ProfileModel):
    problem_statement: str = ""
    # Volume, normalized to monthly
    volume_per_month: float | None = None
    volume_original_value: float | None = None
    volume_original_unit: str = ""
    volume_calculation_note: str | None = None
    # Cost
    cost_per_case: float | None = None
    total_monthly_cost: float | None = None
    currency: str = "EUR"
    cost_calculation_note: str | None = None
    peak_periods: list[str] = Field(default_factory=list)
    pain_points: list[str] = Field(default_factory=list)


# ── KPIs ────────────────────────────────────────────────────────────────────


class KPI(ProfileModel):
    id: str
    name: str
    target_value: str = ""
    description: str | None = None
    current_value: str | None = None
    unit: str = "%"
    frequency: str | None = None


# ── Channels ────────────────────────────────────────────────────────────────


class Channel(ProfileModel):
    id: str
    name: str
    type: ChannelType = "other"
    volume_percentage: float = 0
    sla: str = ""
    rules: list[str] = Field(default_factory=list)


# ── Skills ──────────────────────────────────────────────────────────────────


class Skill(ProfileModel):
    id: str
    type: SkillType = "other"
    name: str
    description: str = ""
    knowledge_sources: list[str] = Field(default_factory=list)
    rules: list[str] = Field(default_factory=list)


class CommunicationStyle(ProfileModel):
    tone: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=list)
    formality: Formality = "formal"


class SkillsSection(ProfileModel):
    skills: list[Skill] = Field(default_factory=list)
    communication_style: CommunicationStyle = Field(default_factory=CommunicationStyle)


# ── Process ─────────────────────────────────────────────────────────────────


class ProcessStep(ProfileModel):
    id: str
    order: float
    title: str
    description: str = ""
    is_decision_point: bool | None = None


class ExceptionCase(ProfileModel):
    id: str
    trigger: str
    action: str = ""
    escalate_to: str | None = None


class CaseType(ProfileModel):
    id: str
    name: str
    volume_percent: float = 0
    complexity: Complexity = "MEDIUM"
    automatable: bool = True
    description: str | None = None


class ProcessSection(ProfileModel):
    happy_path_steps: list[ProcessStep] = Field(default_factory=list)
    exceptions: list[ExceptionCase] = Field(default_factory=list)
    escalation_rules: list[str] = Field(default_factory=list)
    case_types: list[CaseType] = Field(default_factory=list)


# ── Scope ───────────────────────────────────────────────────────────────────


class ScopeItem(ProfileModel):
    id: str
    statement: str
    conditions: str | None = None


class ScopeSection(ProfileModel):
    in_scope: list[ScopeItem] = Field(default_factory=list)
    out_of_scope: list[ScopeItem] = Field(default_factory=list)


# ── Guardrails ──────────────────────────────────────────────────────────────


class FinancialLimit(ProfileModel):
    id: str
    type: str
    amount: float = 0
    currency: str = "EUR"


class GuardrailsSection(ProfileModel):
    never: list[str] = Field(default_factory=list)
    always: list[str] = Field(default_factory=list)
    financial_limits: list[FinancialLimit] = Field(default_factory=list)
    legal_restrictions: list[str] = Field(default_factory=list)


# ── Profile ─────────────────────────────────────────────────────────────────


class BusinessProfile(ProfileModel):
    identity: IdentitySection = Field(default_factory=IdentitySection)
    business_context: BusinessContextSection = Field(default_factory=BusinessContextSection)
    kpis: list[KPI] = Field(default_factory=list)
    channels: list[Channel] = Field(default_factory=list)
    skills: SkillsSection = Field(default_factory=SkillsSection)
    process: ProcessSection = Field(default_factory=ProcessSection)
    scope: ScopeSection = Field(default_factory=ScopeSection)
    guardrails: GuardrailsSection = Field(default_factory=GuardrailsSection)


class ProfileUpdate(ProfileModel):
    """Partial profile: any subset of top-level sections."""

    identity: IdentitySection | None = None
    business_context: BusinessContextSection | None = None
    kpis: list[KPI] | None = None
    channels: list[Channel] | None = None
    skills: SkillsSection | None = None
    process: ProcessSection | None = None
    scope: ScopeSection | None = None
    guardrails: GuardrailsSection | None = None


SECTION_NAMES: tuple[str, ...] = tuple(BusinessProfile.model_fields)


def create_empty_profile() -> BusinessProfile:
    return BusinessProfile()
