"""Unit tests for the Ollama embedding client."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from plan_qa.models.ollama_client import (
    AsyncOllamaClient,
    OllamaConnectionError,
    OllamaError,
    OllamaModelError,
    OllamaResponseError,
    OllamaTimeoutError,
)


def _response(status_code: int = 200, payload: object = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = json.dumps(payload or {})
    response.json.return_value = {} if payload is None else payload
    return response


@pytest.fixture
def http():
    """Patched httpx session returned by every AsyncOllamaClient."""
    session = AsyncMock()
    with patch.object(AsyncOllamaClient, "_get_client", AsyncMock(return_value=session)):
        yield session


class TestClientSetup:
    """Tests for construction and session lifecycle."""

    def test_defaults_from_config(self):
        """Test client initialization with defaults."""
        client = AsyncOllamaClient()
        assert client.url.startswith("http")
        assert client.embedding_model
        assert client._client is None

    def test_custom_values(self):
        """Test explicit URL and model, trailing slash stripped."""
        client = AsyncOllamaClient(url="http://gpu-box:11434/", embedding_model="all-minilm")
        assert client.url == "http://gpu-box:11434"
        assert client.embedding_model == "all-minilm"

    @pytest.mark.asyncio
    async def test_session_created_and_closed(self):
        """Test that the httpx session is lazy and released on close."""
        async with AsyncOllamaClient() as client:
            session = await client._get_client()
            assert isinstance(session, httpx.AsyncClient)
            assert await client._get_client() is session

        assert client._client is None
        assert session.is_closed


class TestEmbed:
    """Tests for embed()."""

    @pytest.mark.asyncio
    async def test_posts_model_and_prompt(self, http):
        """Test the request body and the returned vector."""
        http.post.return_value = _response(payload={"embedding": [0.1, 0.2, 0.3]})
        client = AsyncOllamaClient(url="http://ollama:11434", embedding_model="nomic-embed-text")

        vector = await client.embed("SEA scoping status")

        assert vector == [0.1, 0.2, 0.3]
        args, kwargs = http.post.call_args
        assert args[0] == "http://ollama:11434/api/embeddings"
        assert kwargs["json"] == {"model": "nomic-embed-text", "prompt": "SEA scoping status"}

    @pytest.mark.asyncio
    async def test_model_override_and_timeout(self, http):
        """Test per-call model and timeout."""
        http.post.return_value = _response(payload={"embedding": [1]})

        vector = await AsyncOllamaClient().embed("text", model="all-minilm", timeout=2.5)

        assert vector == [1.0]
        assert isinstance(vector[0], float)
        assert http.post.call_args.kwargs["json"]["model"] == "all-minilm"
        assert http.post.call_args.kwargs["timeout"] == 2.5

    @pytest.mark.asyncio
    async def test_missing_model(self, http):
        """Test that 404 means the model is not installed, without retry."""
        http.post.return_value = _response(status_code=404)

        with pytest.raises(OllamaModelError, match="not found"):
            await AsyncOllamaClient().embed("text")
        assert http.post.await_count == 1

    @pytest.mark.asyncio
    async def test_server_error(self, http):
        """Test that other non-200 statuses are model errors."""
        http.post.return_value = _response(status_code=500, payload={"error": "out of memory"})

        with pytest.raises(OllamaModelError, match="500"):
            await AsyncOllamaClient().embed("text")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"embedding": []}, {}, ["not", "an", "object"]])
    async def test_unusable_payload(self, http, payload):
        """Test responses that carry no vector."""
        http.post.return_value = _response(payload=payload)

        with pytest.raises(OllamaResponseError):
            await AsyncOllamaClient().embed("text")

    @pytest.mark.asyncio
    async def test_invalid_json(self, http):
        """Test a body that is not JSON."""
        response = _response()
        response.json.side_effect = json.JSONDecodeError("bad", "doc", 0)
        http.post.return_value = response

        with pytest.raises(OllamaResponseError, match="Invalid JSON"):
            await AsyncOllamaClient().embed("text")

    @pytest.mark.asyncio
    async def test_connection_error_retried(self, http):
        """Test three attempts, then OllamaConnectionError."""
        http.post.side_effect = httpx.ConnectError("Connection refused")

        with pytest.raises(OllamaConnectionError):
            await AsyncOllamaClient().embed("text")
        assert http.post.await_count == 3

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, http):
        """Test that a retry succeeding returns the vector."""
        http.post.side_effect = [
            httpx.ReadTimeout("slow"),
            _response(payload={"embedding": [0.5]}),
        ]

        assert await AsyncOllamaClient().embed("text") == [0.5]
        assert http.post.await_count == 2

    @pytest.mark.asyncio
    async def test_timeout_translated(self, http):
        """Test that httpx timeouts become OllamaTimeoutError."""
        http.post.side_effect = httpx.ReadTimeout("slow")

        with pytest.raises(OllamaTimeoutError):
            await AsyncOllamaClient().embed("text")


class TestModelListing:
    """Tests for health_check, list_models and has_model."""

    @pytest.mark.asyncio
    async def test_health_check_ok(self, http):
        """Test a reachable server."""
        http.get.return_value = _response()
        assert await AsyncOllamaClient().health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_unreachable(self, http):
        """Test that connection failures report unhealthy instead of raising."""
        http.get.side_effect = httpx.ConnectError("Connection refused")
        assert await AsyncOllamaClient().health_check() is False

    @pytest.mark.asyncio
    async def test_list_models(self, http):
        """Test parsing of the tags listing, blank names dropped."""
        http.get.return_value = _response(
            payload={"models": [{"name": "nomic-embed-text:latest"}, {"name": ""}, {"name": "mistral:7b"}]}
        )

        assert await AsyncOllamaClient().list_models() == ["nomic-embed-text:latest", "mistral:7b"]
        assert http.get.call_args.args[0].endswith("/api/tags")

    @pytest.mark.asyncio
    async def test_list_models_unreachable(self, http):
        """Test that an unreachable server raises a connection error."""
        http.get.side_effect = httpx.ConnectError("Connection refused")

        with pytest.raises(OllamaConnectionError):
            await AsyncOllamaClient().list_models()

    @pytest.mark.asyncio
    async def test_list_models_bad_status(self, http):
        """Test a failing tags endpoint."""
        http.get.return_value = _response(status_code=503)

        with pytest.raises(OllamaResponseError):
            await AsyncOllamaClient().list_models()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "wanted,installed,expected",
        [
            ("nomic-embed-text", ["nomic-embed-text:latest"], True),
            ("nomic-embed-text:latest", ["nomic-embed-text:latest"], True),
            ("nomic-embed-text:v1.5", ["nomic-embed-text:latest"], False),
            ("all-minilm", ["nomic-embed-text:latest"], False),
            ("nomic-embed", ["nomic-embed-text:latest"], False),
        ],
    )
    async def test_has_model(self, wanted, installed, expected):
        """Test tag-aware model matching."""
        with patch.object(AsyncOllamaClient, "list_models", AsyncMock(return_value=installed)):
            assert await AsyncOllamaClient().has_model(wanted) is expected


class TestOllamaExceptions:
    """Tests for the recoverability flags."""

    @pytest.mark.parametrize(
        "error_cls,recoverable",
        [
            (OllamaError, False),
            (OllamaConnectionError, True),
            (OllamaTimeoutError, True),
            (OllamaModelError, False),
            (OllamaResponseError, False),
        ],
    )
    def test_recoverable(self, error_cls, recoverable):
        """Test which failures are worth retrying."""
        error = error_cls("boom")
        assert str(error) == "boom"
        assert error.recoverable is recoverable
