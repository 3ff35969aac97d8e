"""
Embedding provider with lazy, process-wide initialization.

Loading the embedding model is slow (Ollama pulls it into memory on first
use), so the provider is created at most once per process. Concurrent first
callers await the same initialization task. If initialization fails, the
failure is remembered and every later caller gets None immediately; the
retriever then runs in keyword mode for the rest of the process.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

from plan_qa.config import MODELS
from plan_qa.metrics import PROVIDER_INIT
from plan_qa.models.ollama_client import AsyncOllamaClient, OllamaError
from plan_qa.utils.logging import audit_logger

logger = logging.getLogger(__name__)

WARMUP_TEXT = "warmup query"


class EmbeddingError(RuntimeError):
    """A text could not be embedded."""


class EmbeddingUnavailableError(EmbeddingError):
    """The embedding backend cannot be used in this process."""


class EmbeddingProvider(Protocol):
    """Anything that turns text into a fixed-length vector."""

    async def embed(self, text: str) -> list[float]:
        ...


ProviderFactory = Callable[[], Awaitable[EmbeddingProvider]]


class OllamaEmbeddingProvider:
    """Embeds text with a model served by a local Ollama instance."""

    def __init__(
        self,
        client: AsyncOllamaClient,
        model: str,
        dimensions: int | None = None,
    ) -> None:
        self.client = client
        self.model = model
        self.dimensions = dimensions

    @classmethod
    async def create(
        cls,
        client: AsyncOllamaClient | None = None,
        model: str | None = None,
    ) -> OllamaEmbeddingProvider:
        """
        Connect to Ollama and load the embedding model.

        Checks that the model is installed, then embeds a probe text so the
        model is resident and its vector size is known.

        Raises:
            EmbeddingUnavailableError: Embeddings are disabled, Ollama is
                unreachable, or the model is missing or broken.
        """
        if not MODELS.EMBEDDINGS_ENABLED:
            raise EmbeddingUnavailableError("Embeddings disabled by configuration")

        client = client or AsyncOllamaClient()
        model = model or client.embedding_model

        try:
            if not await client.has_model(model):
                raise EmbeddingUnavailableError(f"Embedding model not installed: {model}")
            probe = await client.embed(WARMUP_TEXT, model=model)
        except OllamaError as e:
            raise EmbeddingUnavailableError(f"Ollama embedding backend unavailable: {e}") from e

        return cls(client, model, dimensions=len(probe))

    async def embed(self, text: str) -> list[float]:
        """
        Embed one text.

        Raises:
            EmbeddingError: The request failed or the vector size changed.
        """
        try:
            vector = await self.client.embed(text, model=self.model)
        except OllamaError as e:
            raise EmbeddingError(f"Failed to embed text: {e}") from e

        if self.dimensions is not None and len(vector) != self.dimensions:
            raise EmbeddingError(
                f"Embedding size changed: expected {self.dimensions}, got {len(vector)}"
            )
        return vector


class LazyEmbeddingProvider:
    """
    Memoized, single-flight access to an embedding provider.

    The first get() starts one initialization task; every caller, concurrent
    or later, awaits that same task. The result (provider or failure) is
    kept for the lifetime of this object.
    """

    def __init__(self, factory: ProviderFactory | None = None) -> None:
        """
        Args:
            factory: Coroutine function building the provider. Defaults to
                OllamaEmbeddingProvider.create.
        """
        self._factory: ProviderFactory = factory or OllamaEmbeddingProvider.create
        self._task: asyncio.Task[EmbeddingProvider | None] | None = None
        self.failure: str | None = None

    @property
    def available(self) -> bool | None:
        """True/False once initialization has finished, None before."""
        if self._task is None or not self._task.done():
            return None
        return self._task.result() is not None

    async def _initialise(self) -> EmbeddingProvider | None:
        start_time = time.time()
        try:
            provider = await self._factory()
        except Exception as e:
            self.failure = str(e) or type(e).__name__
            PROVIDER_INIT.labels(outcome="failure").inc()
            audit_logger.log_provider_init(
                model=MODELS.EMBEDDING_MODEL,
                success=False,
                duration_ms=(time.time() - start_time) * 1000,
                error=self.failure,
            )
            return None

        PROVIDER_INIT.labels(outcome="success").inc()
        audit_logger.log_provider_init(
            model=getattr(provider, "model", MODELS.EMBEDDING_MODEL),
            success=True,
            duration_ms=(time.time() - start_time) * 1000,
            dimensions=getattr(provider, "dimensions", None),
        )
        return provider

    async def get(self) -> EmbeddingProvider | None:
        """
        Return the shared provider, initializing it on first use.

        Returns:
            The provider, or None if it could not be initialized.
        """
        if self._task is None:
            self._task = asyncio.ensure_future(self._initialise())
        # One caller being cancelled must not cancel the shared initialization
        return await asyncio.shield(self._task)

    def reset(self) -> None:
        """Forget the initialization result. Test use only."""
        self._task = None
        self.failure = None


# Process-wide provider shared by all retrievers
embedding_provider = LazyEmbeddingProvider()
