"""Prometheus metrics for the retrieval engine."""

from __future__ import annotations

from typing import Any

from prometheus_client import REGISTRY, Counter, Histogram


# Use helpers to avoid duplicate registration on reload
def _get_or_create_counter(name: str, description: str, labels: list[str]) -> Counter:
    """Get existing counter or create new one."""
    if name in REGISTRY._names_to_collectors:
        return REGISTRY._names_to_collectors[name]  # type: ignore
    return Counter(name, description, labels)


def _get_or_create_histogram(
    name: str, description: str, labels: list[str] | None = None, buckets: list[float] | None = None
) -> Histogram:
    """Get existing histogram or create new one."""
    if name in REGISTRY._names_to_collectors:
        return REGISTRY._names_to_collectors[name]  # type: ignore
    kwargs: dict[str, Any] = {}
    if labels:
        kwargs["labelnames"] = labels
    if buckets:
        kwargs["buckets"] = buckets
    return Histogram(name, description, **kwargs)


RETRIEVALS = _get_or_create_counter(
    "plan_qa_retrievals_total",
    "Retrieval calls by scoring mode",
    ["mode"],
)

RETRIEVAL_DURATION = _get_or_create_histogram(
    "plan_qa_retrieval_duration_seconds",
    "Retrieval call duration in seconds",
    labels=["mode"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

EMBEDDING_CALLS = _get_or_create_counter(
    "plan_qa_embedding_calls_total",
    "Embedding requests by kind (passage/query) and outcome",
    ["kind", "outcome"],
)

PROVIDER_INIT = _get_or_create_counter(
    "plan_qa_provider_init_total",
    "Embedding provider initialization attempts by outcome",
    ["outcome"],
)
