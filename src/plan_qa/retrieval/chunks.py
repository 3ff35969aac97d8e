"""
Chunk builder: turns a planning record into short, tagged passages.

Each semantically distinct field of the record becomes exactly one passage.
Passages are emitted in schema order: outcomes, environmental assessment,
engagement, sites, policies.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from plan_qa.retrieval.records import (
    EngagementStrategy,
    EnvironmentalAssessment,
    PlanRecord,
    PolicySet,
    PreferredOptions,
)

_WHITESPACE = re.compile(r"\s+")


class SourceTag(str, Enum):
    """Category of the record section a passage came from."""

    OUTCOME = "outcome"
    ENVIRONMENTAL_ASSESSMENT = "environmental-assessment"
    ENGAGEMENT_STRATEGY = "engagement-strategy"
    SITE = "site"
    POLICY = "policy"


@dataclass(frozen=True)
class Passage:
    """One unit of retrieval: a short text and the section it came from."""

    text: str
    source_tag: SourceTag
    field: str = field(default="", compare=False)  # record field, for debugging only

    def to_dict(self) -> dict[str, str]:
        """Public projection handed to prompt builders."""
        return {"text": self.text, "source_tag": self.source_tag.value}


@dataclass(frozen=True)
class ScoredPassage:
    """A passage with its relevance score for one query."""

    passage: Passage
    score: float


def _clean(value: str | None) -> str:
    """Collapse whitespace; None and blank values become ''."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip()


def _join(values: Iterable[str | None], sep: str) -> str:
    return sep.join(v for v in (_clean(v) for v in values) if v)


def _outcome_passages(record: PlanRecord) -> Iterator[Passage]:
    for vision in record.vision_statements:
        text = _clean(vision.text)
        if text:
            yield Passage(f"Outcome: {text}", SourceTag.OUTCOME, "vision_statements")

    for outcome in record.smart_outcomes:
        statement = _clean(outcome.outcome_statement) or _clean(outcome.text)
        if not statement:
            continue
        text = f"SMART outcome ({_clean(outcome.theme) or 'general'}): {statement}"
        measurable = _clean(outcome.measurable)
        if measurable:
            text = f"{text}. Measure: {measurable}"
        yield Passage(text, SourceTag.OUTCOME, "smart_outcomes")


def _assessment_passages(assessment: EnvironmentalAssessment | None) -> Iterator[Passage]:
    if assessment is None:
        return
    tag = SourceTag.ENVIRONMENTAL_ASSESSMENT

    labelled = (
        ("SEA scoping status", assessment.sea_scoping_status, "sea_hra.sea_scoping_status"),
        ("SEA scoping notes", assessment.sea_scoping_notes, "sea_hra.sea_scoping_notes"),
        ("HRA baseline summary", assessment.hra_baseline_summary, "sea_hra.hra_baseline_summary"),
    )
    for label, value, name in labelled:
        text = _clean(value)
        if text:
            yield Passage(f"{label}: {text}", tag, name)

    for topic, value in assessment.baseline_grid.items():
        text = _clean(value)
        if text:
            yield Passage(f"SEA baseline ({topic}): {text}", tag, f"sea_hra.baseline_grid.{topic}")

    risks = _join(assessment.key_risks, "; ")
    if risks:
        yield Passage(f"SEA/HRA risks: {risks}", tag, "sea_hra.key_risks")

    mitigations = _join(assessment.mitigation_ideas, "; ")
    if mitigations:
        yield Passage(f"SEA/HRA mitigation ideas: {mitigations}", tag, "sea_hra.mitigation_ideas")

    cumulative = _clean(assessment.cumulative_effects)
    if cumulative:
        yield Passage(f"Cumulative effects: {cumulative}", tag, "sea_hra.cumulative_effects")


def _engagement_passages(sci: EngagementStrategy | None) -> Iterator[Passage]:
    if sci is None:
        return
    tag = SourceTag.ENGAGEMENT_STRATEGY

    if sci.has_strategy is not None:
        answer = "Yes" if sci.has_strategy else "No"
        yield Passage(f"Has engagement strategy: {answer}", tag, "sci.has_strategy")

    stakeholders = _join(sci.key_stakeholders, ", ")
    if stakeholders:
        yield Passage(f"Key stakeholders: {stakeholders}", tag, "sci.key_stakeholders")

    methods = _join(sci.methods, ", ")
    if methods:
        yield Passage(f"Engagement methods: {methods}", tag, "sci.methods")

    timeline = _clean(sci.timeline_note)
    if timeline:
        yield Passage(f"Engagement timeline note: {timeline}", tag, "sci.timeline_note")


def _site_passages(record: PlanRecord) -> Iterator[Passage]:
    for site in record.sites:
        name = _clean(site.name)
        notes = _clean(site.notes)
        rag = _join((site.suitability, site.availability, site.achievability), "/")
        if not (name or notes or rag):
            continue

        text = f"Site {name or _clean(site.id) or 'unnamed'}"
        details = []
        if notes:
            details.append(f"notes {notes}")
        if rag:
            details.append(f"RAG {rag}")
        if details:
            text = f"{text}: {'; '.join(details)}"
        yield Passage(text, SourceTag.SITE, f"sites.{site.id or name}")

    preferred = record.preferred_options.site if record.preferred_options else None
    if preferred is not None:
        label = _clean(preferred.name) or _clean(preferred.id)
        reason = _clean(preferred.rationale) or _clean(preferred.appraisal)
        if label or reason:
            text = f"Preferred site: {label or 'site'}"
            if reason:
                text = f"{text}: {reason}"
            yield Passage(text, SourceTag.SITE, "preferred_options.site")


def _policy_passages(
    preferred: PreferredOptions | None,
    policy_set: PolicySet | None,
) -> Iterator[Passage]:
    if preferred is not None and preferred.policy is not None:
        draft = _clean(preferred.policy.draft)
        if draft:
            topic = _clean(preferred.policy.topic_label) or "topic"
            yield Passage(f"Preferred policy ({topic}): {draft}", SourceTag.POLICY, "preferred_options.policy")

    if policy_set is None:
        return
    for policy in policy_set.policies:
        reference = _clean(policy.reference)
        title = _clean(policy.title)
        summary = _clean(policy.summary)
        if not (title or summary):
            continue
        heading = " ".join(p for p in (reference, title) if p)
        text = f"Policy {heading}: {summary}" if summary else f"Policy {heading}"
        yield Passage(text, SourceTag.POLICY, f"policy.{reference}")


def build_passages(record: PlanRecord, policy_set: PolicySet | None = None) -> list[Passage]:
    """
    Build the ordered passage list for a plan.

    Empty, missing and empty-list fields produce no passage. The result depends
    only on the inputs, so repeated calls return equal lists.

    Args:
        record: The planning record snapshot.
        policy_set: Optional policies of the plan's council.

    Returns:
        Passages in schema order.
    """
    passages: list[Passage] = []
    passages.extend(_outcome_passages(record))
    passages.extend(_assessment_passages(record.sea_hra))
    passages.extend(_engagement_passages(record.sci))
    passages.extend(_site_passages(record))
    passages.extend(_policy_passages(record.preferred_options, policy_set))
    return passages
