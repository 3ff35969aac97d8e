"""Retrieval engine for answering questions about a local plan."""

from plan_qa.retrieval import (
    Passage,
    PlanRecord,
    PlanRetriever,
    PolicySet,
    SourceTag,
    format_passages,
    plan_retriever,
)

__version__ = "0.1.0"

__all__ = [
    "Passage",
    "PlanRecord",
    "PlanRetriever",
    "PolicySet",
    "SourceTag",
    "format_passages",
    "plan_retriever",
]
