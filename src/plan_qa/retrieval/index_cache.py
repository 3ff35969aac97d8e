"""
In-memory document index cache.

One entry per plan, holding its passages and, once computed, their vectors.
Entries live for the lifetime of the process unless the owning workflow calls
invalidate() after editing the plan, or change tracking is switched on and
the caller passes a content signature.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from plan_qa.retrieval.chunks import Passage

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class IndexEntry:
    """Passages of one plan and their embedding vectors."""

    document_id: str
    passages: list[Passage]
    # None until the first embedding attempt; then one slot per passage
    vectors: list[list[float] | None] | None = None
    signature: str | None = None
    # In-flight vector computation shared by concurrent queries
    embedding_task: asyncio.Task[None] | None = field(default=None, repr=False)

    @property
    def fully_embedded(self) -> bool:
        """Whether every passage has a vector."""
        return self.vectors is not None and all(v is not None for v in self.vectors)

    def missing_vector_indexes(self) -> list[int]:
        """Positions of passages still lacking a vector."""
        if self.vectors is None:
            return list(range(len(self.passages)))
        return [i for i, vector in enumerate(self.vectors) if vector is None]


class DocumentIndexCache:
    """Document id -> IndexEntry. No eviction."""

    def __init__(self) -> None:
        self._entries: dict[str, IndexEntry] = {}

    def get_or_create(
        self,
        document_id: str,
        build_passages: Callable[[], list[Passage]],
        signature: str | None = None,
    ) -> IndexEntry:
        """
        Return the entry for a document, building it on first request.

        The same entry object is returned on every later call, so callers may
        attach vectors to it in place.

        Args:
            document_id: Cache key of the plan.
            build_passages: Called once to build the passages of a new entry.
            signature: Content signature of the record. When given and it
                differs from the cached entry's, the entry is rebuilt.

        Returns:
            The cache entry.
        """
        entry = self._entries.get(document_id)
        if entry is not None:
            if signature is None or entry.signature == signature:
                return entry
            logger.info(f"Index stale for {document_id}, record changed")

        entry = IndexEntry(
            document_id=document_id,
            passages=build_passages(),
            signature=signature,
        )
        self._entries[document_id] = entry
        logger.debug(f"Built index for {document_id} with {len(entry.passages)} passages")
        return entry

    def get(self, document_id: str) -> IndexEntry | None:
        """Return the cached entry, if any."""
        return self._entries.get(document_id)

    def invalidate(self, document_id: str) -> bool:
        """
        Drop a document's entry so the next query rebuilds it.

        Call after every edit to the plan.

        Returns:
            True if an entry was removed.
        """
        return self._entries.pop(document_id, None) is not None

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, document_id: object) -> bool:
        return document_id in self._entries
