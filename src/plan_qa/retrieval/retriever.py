"""
Retriever for "ask anything about this plan".

Builds (or reuses) the document index for a plan, ranks its passages against
the question by cosine similarity of embeddings, and falls back to keyword
overlap when embeddings cannot be had. retrieve() never raises.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import ValidationError

from plan_qa.config import RETRIEVAL
from plan_qa.metrics import EMBEDDING_CALLS, RETRIEVAL_DURATION, RETRIEVALS
from plan_qa.retrieval.chunks import Passage, ScoredPassage, build_passages
from plan_qa.retrieval.embeddings import (
    EmbeddingError,
    EmbeddingProvider,
    LazyEmbeddingProvider,
    embedding_provider,
)
from plan_qa.retrieval.index_cache import DocumentIndexCache, IndexEntry
from plan_qa.retrieval.keyword import keyword_rank
from plan_qa.retrieval.records import PlanRecord, PolicySet, content_signature, document_id
from plan_qa.utils.logging import audit_logger, document_id_var

logger = logging.getLogger(__name__)


class RetrievalMode(str, Enum):
    """How the returned passages were ranked."""

    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    NONE = "none"  # nothing to rank


@dataclass
class RetrievalOutcome:
    """Ranked passages plus how they were obtained."""

    document_id: str
    mode: RetrievalMode
    results: list[ScoredPassage] = field(default_factory=list)
    fallback_reason: str | None = None

    @property
    def passages(self) -> list[Passage]:
        return [r.passage for r in self.results]


def cosine_similarity(
    vec_a: Sequence[float],
    vec_b: Sequence[float],
    epsilon: float | None = None,
) -> float:
    """
    Compute cosine similarity between two vectors.

    Returns value between -1 and 1, where 1 means identical direction. The
    epsilon in the denominator makes zero vectors score 0.0 instead of failing.
    """
    if len(vec_a) != len(vec_b):
        return 0.0

    eps = RETRIEVAL.SIMILARITY_EPSILON if epsilon is None else epsilon
    dot_product = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))

    return dot_product / (norm_a * norm_b + eps)


def format_passages(passages: Sequence[Passage], limit: int | None = None) -> str:
    """
    Render passages for a generation prompt, one per line.

    Args:
        passages: Ranked passages.
        limit: Maximum passages to include. Defaults to config.

    Returns:
        Lines of the form "[source-tag] text".
    """
    cap = RETRIEVAL.FORMAT_LIMIT if limit is None else max(limit, 0)
    return "\n".join(f"[{p.source_tag.value}] {p.text}" for p in passages[:cap])


class PlanRetriever:
    """
    Ranks a plan's passages against a question.

    Owns the document index cache. Shares the embedding provider with every
    other retriever in the process unless given its own.
    """

    def __init__(
        self,
        provider: LazyEmbeddingProvider | None = None,
        cache: DocumentIndexCache | None = None,
        batch_size: int | None = None,
        track_record_changes: bool | None = None,
    ) -> None:
        """
        Initialize retriever.

        Args:
            provider: Lazy embedding provider. Defaults to the process-wide one.
            cache: Document index cache. A fresh one is created if omitted.
            batch_size: Passages embedded concurrently per batch (at least 1).
            track_record_changes: Rebuild an index when the record content
                changes. Defaults to config (off).
        """
        self.provider = provider or embedding_provider
        self.cache = cache or DocumentIndexCache()
        self.batch_size = max(1, RETRIEVAL.EMBED_BATCH_SIZE if batch_size is None else batch_size)
        self.track_record_changes = (
            RETRIEVAL.TRACK_RECORD_CHANGES if track_record_changes is None else track_record_changes
        )

    def invalidate(self, record: PlanRecord | Mapping[str, Any], policy_set: PolicySet | None = None) -> bool:
        """Drop the cached index of a plan after it has been edited."""
        record, policy_set = self._coerce(record, policy_set)
        return self.cache.invalidate(document_id(record, policy_set))

    @staticmethod
    def _coerce(
        record: PlanRecord | Mapping[str, Any],
        policy_set: PolicySet | Mapping[str, Any] | None,
    ) -> tuple[PlanRecord, PolicySet | None]:
        """Validate plain dicts into record models."""
        if not isinstance(record, PlanRecord):
            record = PlanRecord.model_validate(record)
        if policy_set is not None and not isinstance(policy_set, PolicySet):
            policy_set = PolicySet.model_validate(policy_set)
        return record, policy_set

    async def _embed(self, provider: EmbeddingProvider, text: str, kind: str) -> list[float]:
        try:
            vector = await provider.embed(text)
        except Exception:
            EMBEDDING_CALLS.labels(kind=kind, outcome="failure").inc()
            raise
        EMBEDDING_CALLS.labels(kind=kind, outcome="success").inc()
        return vector

    async def _embed_passages(self, entry: IndexEntry, provider: EmbeddingProvider) -> None:
        """Fill in missing passage vectors, a batch at a time."""
        if entry.vectors is None:
            entry.vectors = [None] * len(entry.passages)
        missing = entry.missing_vector_indexes()
        logger.info(f"Computing embeddings for {len(missing)} passages in {entry.document_id}")

        first_error: BaseException | None = None
        for start in range(0, len(missing), self.batch_size):
            batch = missing[start:start + self.batch_size]
            vectors = await asyncio.gather(
                *(self._embed(provider, entry.passages[i].text, "passage") for i in batch),
                return_exceptions=True,
            )
            for index, vector in zip(batch, vectors):
                if isinstance(vector, BaseException):
                    first_error = first_error or vector
                    continue
                entry.vectors[index] = vector

        if first_error is not None:
            failed = len(entry.missing_vector_indexes())
            raise EmbeddingError(
                f"Failed to embed {failed} passages for {entry.document_id}: {first_error}"
            ) from first_error

    async def _ensure_vectors(self, entry: IndexEntry, provider: EmbeddingProvider) -> list[list[float]]:
        """
        Make sure every passage of the entry has a vector.

        Concurrent callers for the same entry await one shared task. Vectors
        already present are never recomputed.
        """
        if not entry.fully_embedded:
            if entry.embedding_task is None or entry.embedding_task.done():
                entry.embedding_task = asyncio.ensure_future(self._embed_passages(entry, provider))
            await asyncio.shield(entry.embedding_task)

        if not entry.fully_embedded:
            raise EmbeddingError(f"Passages of {entry.document_id} are missing vectors")
        return entry.vectors  # type: ignore[return-value]

    async def _semantic_rank(
        self,
        query: str,
        entry: IndexEntry,
        provider: EmbeddingProvider,
    ) -> list[ScoredPassage]:
        vectors = await self._ensure_vectors(entry, provider)
        query_vector = await self._embed(provider, query, "query")

        if any(len(vector) != len(query_vector) for vector in vectors):
            raise EmbeddingError(
                f"Query vector size {len(query_vector)} does not match passage vectors"
            )

        scored = [
            ScoredPassage(passage=passage, score=cosine_similarity(query_vector, vector))
            for passage, vector in zip(entry.passages, vectors)
        ]
        # Stable sort: ties keep corpus order
        scored.sort(key=lambda s: s.score, reverse=True)
        return scored

    async def retrieve_scored(
        self,
        query: str,
        record: PlanRecord | Mapping[str, Any],
        policy_set: PolicySet | Mapping[str, Any] | None = None,
        top_k: int | None = None,
    ) -> RetrievalOutcome:
        """
        Rank a plan's passages against a question.

        Args:
            query: Free-text question.
            record: Planning record (model or camelCase/snake_case dict).
            policy_set: Optional policies of the plan's council.
            top_k: Number of passages to return. Defaults to config (5).

        Returns:
            RetrievalOutcome with at most top_k passages, best first.
        """
        start_time = time.time()
        limit = RETRIEVAL.TOP_K if top_k is None else top_k

        try:
            record, policy_set = self._coerce(record, policy_set)
        except ValidationError as e:
            logger.warning(f"Invalid planning record, nothing to retrieve: {e.error_count()} errors")
            return RetrievalOutcome(document_id="", mode=RetrievalMode.NONE)

        doc_id = document_id(record, policy_set)
        token = document_id_var.set(doc_id)
        try:
            if not query or not query.strip():
                logger.warning("Empty query, nothing to retrieve")
                return RetrievalOutcome(document_id=doc_id, mode=RetrievalMode.NONE)
            if limit < 1:
                logger.warning(f"top_k must be positive, got {limit}")
                return RetrievalOutcome(document_id=doc_id, mode=RetrievalMode.NONE)

            signature = content_signature(record, policy_set) if self.track_record_changes else None
            entry = self.cache.get_or_create(
                doc_id,
                lambda: build_passages(record, policy_set),
                signature=signature,
            )

            if not entry.passages:
                outcome = RetrievalOutcome(document_id=doc_id, mode=RetrievalMode.NONE)
            else:
                outcome = await self._rank(query, entry)
                outcome.results = outcome.results[:limit]

            duration = time.time() - start_time
            RETRIEVALS.labels(mode=outcome.mode.value).inc()
            RETRIEVAL_DURATION.labels(mode=outcome.mode.value).observe(duration)
            audit_logger.log_retrieval(
                document_id=doc_id,
                mode=outcome.mode.value,
                passage_count=len(entry.passages),
                returned_count=len(outcome.results),
                duration_ms=duration * 1000,
            )
            return outcome
        finally:
            document_id_var.reset(token)

    async def _rank(self, query: str, entry: IndexEntry) -> RetrievalOutcome:
        """Semantic ranking if possible, keyword ranking otherwise."""
        provider = await self.provider.get()
        if provider is None:
            return RetrievalOutcome(
                document_id=entry.document_id,
                mode=RetrievalMode.KEYWORD,
                results=keyword_rank(query, entry.passages),
                fallback_reason=self.provider.failure or "embedding provider unavailable",
            )

        try:
            ranked = await self._semantic_rank(query, entry, provider)
        except Exception as e:
            reason = str(e) or type(e).__name__
            audit_logger.log_fallback(entry.document_id, reason)
            return RetrievalOutcome(
                document_id=entry.document_id,
                mode=RetrievalMode.KEYWORD,
                results=keyword_rank(query, entry.passages),
                fallback_reason=reason,
            )

        return RetrievalOutcome(
            document_id=entry.document_id,
            mode=RetrievalMode.SEMANTIC,
            results=ranked,
        )

    async def retrieve(
        self,
        query: str,
        record: PlanRecord | Mapping[str, Any],
        policy_set: PolicySet | Mapping[str, Any] | None = None,
        top_k: int | None = None,
    ) -> list[Passage]:
        """
        Return the passages of a plan most relevant to a question.

        Never raises: embedding problems degrade to keyword ranking, and an
        empty plan, blank query or invalid record give an empty list.

        Args:
            query: Free-text question.
            record: Planning record (model or dict).
            policy_set: Optional policies of the plan's council.
            top_k: Number of passages to return. Defaults to config (5).

        Returns:
            At most top_k passages, most relevant first.
        """
        outcome = await self.retrieve_scored(query, record, policy_set, top_k)
        return outcome.passages


# Module-level retriever instance
plan_retriever = PlanRetriever()
