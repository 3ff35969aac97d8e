"""
Pytest configuration and shared fixtures.

Provides fixtures for unit and integration testing of the plan_qa
retrieval engine without a running Ollama instance.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from tests.utils.factories import PlanRecordFactory, PolicySetFactory
from tests.utils.helpers import FakeEmbeddingProvider, make_factory, make_failing_factory

# ============================================================================
# Mock Ollama Client Fixtures
# ============================================================================


@pytest.fixture
def mock_ollama_client() -> MagicMock:
    """Create a mock Ollama client for testing without real model calls."""
    from plan_qa.models.ollama_client import AsyncOllamaClient

    mock_client = MagicMock(spec=AsyncOllamaClient)
    mock_client.embedding_model = "nomic-embed-text"
    mock_client.has_model = AsyncMock(return_value=True)
    mock_client.health_check = AsyncMock(return_value=True)
    mock_client.list_models = AsyncMock(return_value=["nomic-embed-text:latest"])
    mock_client.embed = AsyncMock(return_value=[0.1] * 768)
    mock_client.close = AsyncMock()

    return mock_client


@pytest.fixture
def mock_ollama_client_error() -> MagicMock:
    """Mock client that cannot reach Ollama."""
    from plan_qa.models.ollama_client import AsyncOllamaClient, OllamaConnectionError

    mock_client = MagicMock(spec=AsyncOllamaClient)
    mock_client.embedding_model = "nomic-embed-text"
    mock_client.has_model = AsyncMock(side_effect=OllamaConnectionError("Connection failed"))
    mock_client.embed = AsyncMock(side_effect=OllamaConnectionError("Connection failed"))
    mock_client.health_check = AsyncMock(return_value=False)

    return mock_client


# ============================================================================
# Record Fixtures
# ============================================================================


@pytest.fixture
def full_plan():
    """A planning record with every retrievable field populated."""
    return PlanRecordFactory.full()


@pytest.fixture
def policy_set():
    """Policies of the Camden council."""
    return PolicySetFactory.create()


@pytest.fixture
def empty_plan():
    """A planning record with nothing to retrieve."""
    return PlanRecordFactory.empty()


# ============================================================================
# Embedding Provider Fixtures
# ============================================================================


@pytest.fixture
def fake_provider() -> FakeEmbeddingProvider:
    """Deterministic embedder that records calls."""
    return FakeEmbeddingProvider()


@pytest.fixture
def lazy_provider(fake_provider):
    """Lazy provider that initializes to the fake embedder."""
    from plan_qa.retrieval.embeddings import LazyEmbeddingProvider

    return LazyEmbeddingProvider(factory=make_factory(fake_provider))


@pytest.fixture
def unavailable_provider():
    """Lazy provider whose initialization always fails."""
    from plan_qa.retrieval.embeddings import LazyEmbeddingProvider

    return LazyEmbeddingProvider(factory=make_failing_factory())


# ============================================================================
# Retriever Fixtures
# ============================================================================


@pytest.fixture
def retriever(lazy_provider):
    """Retriever with a working (fake) embedding backend."""
    from plan_qa.retrieval.retriever import PlanRetriever

    return PlanRetriever(provider=lazy_provider, batch_size=2)


@pytest.fixture
def keyword_retriever(unavailable_provider):
    """Retriever running in degraded (keyword) mode."""
    from plan_qa.retrieval.retriever import PlanRetriever

    return PlanRetriever(provider=unavailable_provider)
