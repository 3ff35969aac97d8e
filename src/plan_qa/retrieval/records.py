"""
Read-only input models for the planning record and policy set.

The web app stores these as loosely shaped JSON with camelCase keys. The
models accept that shape directly (aliases) as well as snake_case field
names, ignore fields the retrieval engine does not read, and make every
optional field explicit.
"""

from __future__ import annotations

import hashlib
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = 1


def _null_as_empty_list(value: Any) -> Any:
    """JSON null stands for "no entries"; null entries are dropped."""
    if value is None:
        return []
    if isinstance(value, list):
        return [item for item in value if item is not None]
    return value


def _null_as_empty_dict(value: Any) -> Any:
    return {} if value is None else value


_NullableList = BeforeValidator(_null_as_empty_list)
_NullableDict = BeforeValidator(_null_as_empty_dict)


class _RecordModel(BaseModel):
    """Base config shared by all input models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class VisionStatement(_RecordModel):
    """A plain-text outcome statement."""

    id: str | None = None
    text: str | None = None


class SmartOutcome(_RecordModel):
    """A SMART outcome (specific, measurable, achievable, relevant, time-bound)."""

    id: str | None = None
    outcome_statement: str | None = None
    text: str | None = None  # older records use "text" instead of outcomeStatement
    theme: str | None = None
    measurable: str | None = None


class EnvironmentalAssessment(_RecordModel):
    """SEA/HRA status, findings and mitigations."""

    sea_scoping_status: str | None = None
    sea_scoping_notes: str | None = None
    hra_baseline_summary: str | None = None
    baseline_grid: Annotated[dict[str, str | None], _NullableDict] = Field(default_factory=dict)
    key_risks: Annotated[list[str], _NullableList] = Field(default_factory=list)
    mitigation_ideas: Annotated[list[str], _NullableList] = Field(default_factory=list)
    cumulative_effects: str | None = None


class EngagementStrategy(_RecordModel):
    """Statement of Community Involvement summary."""

    has_strategy: bool | None = None
    key_stakeholders: Annotated[list[str], _NullableList] = Field(default_factory=list)
    methods: Annotated[list[str], _NullableList] = Field(default_factory=list)
    timeline_note: str | None = None


class Site(_RecordModel):
    """A candidate site with its RAG assessment tags."""

    id: str | None = None
    name: str | None = None
    notes: str | None = None
    suitability: str | None = None
    availability: str | None = None
    achievability: str | None = None


class PreferredSite(_RecordModel):
    id: str | None = None
    name: str | None = None
    rationale: str | None = None
    appraisal: str | None = None


class PreferredPolicy(_RecordModel):
    topic_label: str | None = None
    draft: str | None = None


class PreferredOptions(_RecordModel):
    """Options the plan team has marked as preferred."""

    site: PreferredSite | None = None
    policy: PreferredPolicy | None = None


class PlanRecord(_RecordModel):
    """Projection of a planning record limited to the fields used for retrieval."""

    schema_version: Literal[1] = SCHEMA_VERSION
    id: str = Field(..., min_length=1)
    council_id: str | None = None
    vision_statements: Annotated[list[VisionStatement], _NullableList] = Field(default_factory=list)
    smart_outcomes: Annotated[list[SmartOutcome], _NullableList] = Field(default_factory=list)
    sea_hra: EnvironmentalAssessment | None = None
    sci: EngagementStrategy | None = None
    sites: Annotated[list[Site], _NullableList] = Field(default_factory=list)
    preferred_options: PreferredOptions | None = None


class PolicyEntry(_RecordModel):
    """Summary of one adopted or draft policy."""

    reference: str | None = None
    title: str | None = None
    summary: str | None = None


class PolicySet(_RecordModel):
    """Policies of the council that owns the plan."""

    schema_version: Literal[1] = SCHEMA_VERSION
    id: str | None = None
    policies: Annotated[list[PolicyEntry], _NullableList] = Field(default_factory=list)


def document_id(record: PlanRecord, policy_set: PolicySet | None = None) -> str:
    """
    Cache key identifying one plan's document index.

    Plan ids are only unique within a council, so the council id is part of
    the key: the record's own council, else the policy set's id.
    """
    council = record.council_id or (policy_set.id if policy_set else None) or "unknown"
    return f"{council}:{record.id}"


def content_signature(record: PlanRecord, policy_set: PolicySet | None = None) -> str:
    """Hash of the record (and policy set) content, used to detect edits."""
    hasher = hashlib.md5()
    hasher.update(record.model_dump_json().encode())
    if policy_set is not None:
        hasher.update(policy_set.model_dump_json().encode())
    return hasher.hexdigest()
