"""Model clients."""

from plan_qa.models.ollama_client import (
    AsyncOllamaClient,
    OllamaConnectionError,
    OllamaError,
    OllamaModelError,
    OllamaResponseError,
    OllamaTimeoutError,
)

__all__ = [
    "AsyncOllamaClient",
    "OllamaError",
    "OllamaConnectionError",
    "OllamaTimeoutError",
    "OllamaModelError",
    "OllamaResponseError",
]
