"""
Configuration module with frozen dataclasses and hard minimums.

Immutable config with semantic grouping and environment variable overrides
that enforce floors on the settings that would otherwise break retrieval.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


def _env_str(name: str, default: str) -> str:
    """Load string from environment variable."""
    return os.getenv(name, default)


def _env_int(name: str, default: int, min_val: int | None = None) -> int:
    """
    Load int from env with optional hard minimum.

    The min_val parameter enforces a floor that cannot be bypassed via environment
    variables (a batch size of zero would never embed anything).
    """
    try:
        value = int(os.getenv(name, str(default)))
    except ValueError:
        value = default

    if min_val is not None:
        return max(value, min_val)
    return value


def _env_float(name: str, default: float, min_val: float | None = None) -> float:
    """Load float from env with optional hard minimum."""
    try:
        value = float(os.getenv(name, str(default)))
    except ValueError:
        value = default

    if min_val is not None:
        return max(value, min_val)
    return value


def _env_bool(name: str, default: bool) -> bool:
    """Load boolean from env ("true"/"false")."""
    return _env_str(name, "true" if default else "false").lower() == "true"


@dataclass(frozen=True)
class ModelConfig:
    """Embedding backend configuration."""

    # Ollama settings
    OLLAMA_URL: str = _env_str("OLLAMA_URL", "http://localhost:11434")

    # Embedding model used for passages and queries
    EMBEDDING_MODEL: str = _env_str("EMBEDDING_MODEL", "nomic-embed-text")

    # Set to false where no embedding backend exists; retrieval then runs in keyword mode
    EMBEDDINGS_ENABLED: bool = _env_bool("EMBEDDINGS_ENABLED", True)

    # Timeouts (seconds)
    EMBED_TIMEOUT: float = _env_float("EMBED_TIMEOUT", 30.0, min_val=1.0)
    HEALTH_TIMEOUT: float = _env_float("OLLAMA_HEALTH_TIMEOUT", 5.0, min_val=1.0)


@dataclass(frozen=True)
class RetrievalConfig:
    """Retrieval engine settings."""

    # Default number of passages returned
    TOP_K: int = _env_int("RETRIEVAL_TOP_K", 5, min_val=1)

    # Passages embedded concurrently per batch
    EMBED_BATCH_SIZE: int = _env_int("RETRIEVAL_EMBED_BATCH_SIZE", 4, min_val=1)

    # Query words shorter than this are ignored by the keyword scorer
    MIN_KEYWORD_LENGTH: int = _env_int("RETRIEVAL_MIN_KEYWORD_LENGTH", 4, min_val=1)

    # Added to the cosine denominator so degenerate vectors don't divide by zero
    SIMILARITY_EPSILON: float = _env_float("RETRIEVAL_SIMILARITY_EPSILON", 1e-8, min_val=0.0)

    # Rebuild a cached index when the record's content signature changes
    TRACK_RECORD_CHANGES: bool = _env_bool("RETRIEVAL_TRACK_RECORD_CHANGES", False)

    # Passages handed to the generation prompt
    FORMAT_LIMIT: int = _env_int("RETRIEVAL_FORMAT_LIMIT", 6, min_val=1)


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    LEVEL: str = _env_str("LOG_LEVEL", "INFO")
    JSON: bool = _env_bool("LOG_JSON", True)


# Module-level singletons (immutable)
MODELS = ModelConfig()
RETRIEVAL = RetrievalConfig()
LOGGING = LoggingConfig()


@lru_cache(maxsize=1)
def get_all_config() -> dict[str, object]:
    """Return all configuration as a dictionary for debugging."""
    return {
        "models": MODELS,
        "retrieval": RETRIEVAL,
        "logging": LOGGING,
    }
