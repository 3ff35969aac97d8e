"""
Async client for the embedding endpoints of a local Ollama server.

Only two endpoints are used: /api/tags to see which models are installed and
/api/embeddings to embed one text. Transport failures are retried with
exponential backoff; everything else surfaces as an OllamaError subclass whose
``recoverable`` flag says whether trying again could help.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from plan_qa.config import MODELS

logger = logging.getLogger(__name__)

TAGS_PATH = "/api/tags"
EMBEDDINGS_PATH = "/api/embeddings"


class OllamaError(RuntimeError):
    """Base exception for Ollama operations."""

    recoverable: bool = False


class OllamaConnectionError(OllamaError):
    """Server unreachable or connection dropped."""

    recoverable: bool = True


class OllamaTimeoutError(OllamaError):
    """Request took longer than its timeout."""

    recoverable: bool = True


class OllamaModelError(OllamaError):
    """Model missing or failed to run."""


class OllamaResponseError(OllamaError):
    """Server answered with something that is not a usable payload."""


def _model_matches(installed: str, wanted: str) -> bool:
    """Ollama lists "name:tag"; an untagged wanted name matches any tag."""
    if installed == wanted:
        return True
    return ":" not in wanted and installed.partition(":")[0] == wanted


class AsyncOllamaClient:
    """Embedding client for Ollama with a lazily created httpx session."""

    def __init__(
        self,
        url: str | None = None,
        embedding_model: str | None = None,
    ) -> None:
        """
        Args:
            url: Ollama server URL. Defaults to config.
            embedding_model: Model used when embed() is not given one.
        """
        self.url = (url or MODELS.OLLAMA_URL).rstrip("/")
        self.embedding_model = embedding_model or MODELS.EMBEDDING_MODEL
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(MODELS.EMBED_TIMEOUT, connect=MODELS.HEALTH_TIMEOUT),
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> AsyncOllamaClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Issue one request, translating transport errors."""
        client = await self._get_client()
        try:
            if method == "GET":
                return await client.get(f"{self.url}{path}", **kwargs)
            return await client.post(f"{self.url}{path}", **kwargs)
        except httpx.TimeoutException as e:
            raise OllamaTimeoutError(f"{method} {path} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise OllamaConnectionError(f"Failed to connect to Ollama at {self.url}: {e}") from e

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise OllamaResponseError(f"Invalid JSON response: {e}") from e
        if not isinstance(data, dict):
            raise OllamaResponseError(f"Unexpected response type: {type(data).__name__}")
        return data

    async def health_check(self) -> bool:
        """True if the server answers the tags listing."""
        try:
            response = await self._send("GET", TAGS_PATH, timeout=MODELS.HEALTH_TIMEOUT)
        except OllamaError as e:
            logger.debug(f"Ollama health check failed: {e}")
            return False
        return response.status_code == 200

    async def list_models(self) -> list[str]:
        """
        Names of the installed models, tag included.

        Raises:
            OllamaConnectionError: Server unreachable.
            OllamaResponseError: Listing could not be read.
        """
        response = await self._send("GET", TAGS_PATH, timeout=MODELS.HEALTH_TIMEOUT)
        if response.status_code != 200:
            raise OllamaResponseError(f"Failed to list models: status {response.status_code}")

        models = self._json(response).get("models") or []
        return [m["name"] for m in models if m.get("name")]

    async def has_model(self, model: str | None = None) -> bool:
        """Whether the given (or default) embedding model is installed."""
        wanted = model or self.embedding_model
        return any(_model_matches(name, wanted) for name in await self.list_models())

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=4),
        retry=retry_if_exception_type((OllamaConnectionError, OllamaTimeoutError)),
        reraise=True,
    )
    async def embed(
        self,
        text: str,
        model: str | None = None,
        timeout: float | None = None,
    ) -> list[float]:
        """
        Embed one text.

        Connection failures and timeouts are retried up to three attempts.

        Args:
            text: Text to embed.
            model: Embedding model. Defaults to the client's.
            timeout: Request timeout in seconds. Defaults to config.

        Returns:
            The embedding vector.

        Raises:
            OllamaConnectionError: Server unreachable after retries.
            OllamaTimeoutError: Timed out after retries.
            OllamaModelError: Model missing or failed.
            OllamaResponseError: No vector in the response.
        """
        embed_model = model or self.embedding_model
        response = await self._send(
            "POST",
            EMBEDDINGS_PATH,
            json={"model": embed_model, "prompt": text},
            timeout=timeout or MODELS.EMBED_TIMEOUT,
        )

        if response.status_code == 404:
            raise OllamaModelError(f"Embedding model not found: {embed_model}")
        if response.status_code != 200:
            raise OllamaModelError(
                f"Ollama returned status {response.status_code}: {response.text[:500]}"
            )

        embedding = self._json(response).get("embedding")
        if not embedding:
            raise OllamaResponseError(f"Empty embedding from {embed_model}")
        return [float(x) for x in embedding]
