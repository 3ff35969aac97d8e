"""Local semantic retrieval over a planning record."""

from plan_qa.retrieval.chunks import Passage, ScoredPassage, SourceTag, build_passages
from plan_qa.retrieval.embeddings import (
    EmbeddingError,
    EmbeddingUnavailableError,
    LazyEmbeddingProvider,
    OllamaEmbeddingProvider,
    embedding_provider,
)
from plan_qa.retrieval.index_cache import DocumentIndexCache, IndexEntry
from plan_qa.retrieval.keyword import keyword_rank, keyword_tokens
from plan_qa.retrieval.records import PlanRecord, PolicyEntry, PolicySet, document_id
from plan_qa.retrieval.retriever import (
    PlanRetriever,
    RetrievalMode,
    RetrievalOutcome,
    cosine_similarity,
    format_passages,
    plan_retriever,
)

__all__ = [
    "Passage",
    "ScoredPassage",
    "SourceTag",
    "build_passages",
    "EmbeddingError",
    "EmbeddingUnavailableError",
    "LazyEmbeddingProvider",
    "OllamaEmbeddingProvider",
    "embedding_provider",
    "DocumentIndexCache",
    "IndexEntry",
    "keyword_rank",
    "keyword_tokens",
    "PlanRecord",
    "PolicyEntry",
    "PolicySet",
    "document_id",
    "PlanRetriever",
    "RetrievalMode",
    "RetrievalOutcome",
    "cosine_similarity",
    "format_passages",
    "plan_retriever",
]
