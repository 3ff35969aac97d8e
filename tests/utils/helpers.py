"""Test helper functions and utilities."""

from __future__ import annotations

import asyncio
import re

from plan_qa.retrieval.chunks import Passage, SourceTag


class FakeEmbeddingProvider:
    """
    Deterministic bag-of-words embedder.

    Each vocabulary word is one dimension; a text's vector counts the
    vocabulary words it contains. Records every call so tests can assert
    how often the backend was hit.
    """

    def __init__(
        self,
        vocabulary: list[str] | None = None,
        fail_on: set[str] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.vocabulary = vocabulary or [
            "outcome", "growth", "housing", "homes", "scoping", "status",
            "stakeholders", "engagement", "site", "policy", "risks", "air",
        ]
        self.fail_on = fail_on or set()
        self.delay = delay
        self.calls: list[str] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if text in self.fail_on:
            raise RuntimeError(f"embedding failed for {text!r}")
        words = re.findall(r"\w+", text.lower())
        return [float(sum(1 for w in words if w.startswith(v))) + 0.01 for v in self.vocabulary]


def make_factory(provider: FakeEmbeddingProvider, counter: list[int] | None = None, delay: float = 0.0):
    """Coroutine factory returning the given provider, counting invocations."""

    async def factory() -> FakeEmbeddingProvider:
        if counter is not None:
            counter.append(1)
        if delay:
            await asyncio.sleep(delay)
        return provider

    return factory


def make_failing_factory(counter: list[int] | None = None, error: Exception | None = None):
    """Coroutine factory that always fails, counting invocations."""

    async def factory():
        if counter is not None:
            counter.append(1)
        await asyncio.sleep(0)
        raise error or RuntimeError("model download failed")

    return factory


def passages(*texts: str, tag: SourceTag = SourceTag.OUTCOME) -> list[Passage]:
    """Build passages with one tag from plain texts."""
    return [Passage(text=t, source_tag=tag) for t in texts]
