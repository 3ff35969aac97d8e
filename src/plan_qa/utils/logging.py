"""
Structured logging for the retrieval engine.

Log lines can be rendered as JSON, tagged with the plan being queried, and the
engine writes one audit event per retrieval call and per provider lifecycle
change on the "plan_qa.audit" logger.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from plan_qa.config import LOGGING

# Document being queried in the current task; set by the retriever
document_id_var: ContextVar[str] = ContextVar("document_id", default="")

PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        document_id = document_id_var.get()
        if document_id:
            log_data["document_id"] = document_id

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            log_data.update(extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(
    level: str | None = None,
    json_format: bool | None = None,
) -> None:
    """
    Install a single stdout handler on the root logger.

    Intended for the host application; the library itself never calls it.

    Args:
        level: Log level name. Defaults to config.
        json_format: Render records as JSON. Defaults to config.
    """
    log_level = getattr(logging, (level or LOGGING.LEVEL).upper(), logging.INFO)
    use_json = LOGGING.JSON if json_format is None else json_format

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(JSONFormatter() if use_json else logging.Formatter(PLAIN_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    # Per-request lines from the Ollama HTTP session
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class RetrievalAuditLogger:
    """Audit events for retrieval calls and the embedding provider."""

    def __init__(self) -> None:
        self._logger = logging.getLogger("plan_qa.audit")

    def _emit(self, level: int, message: str, event: str, **fields: Any) -> None:
        self._logger.log(level, message, extra={"extra_data": {"event": event, **fields}})

    def log_retrieval(
        self,
        document_id: str,
        mode: str,
        passage_count: int,
        returned_count: int,
        duration_ms: float,
    ) -> None:
        """
        Record a finished retrieval call.

        Args:
            document_id: Cache key of the plan that was searched.
            mode: "semantic", "keyword" or "none".
            passage_count: Passages in the document index.
            returned_count: Passages returned to the caller.
            duration_ms: Call duration in milliseconds.
        """
        self._emit(
            logging.INFO,
            "Retrieval completed",
            "retrieval_completed",
            document_id=document_id,
            mode=mode,
            passage_count=passage_count,
            returned_count=returned_count,
            duration_ms=round(duration_ms, 2),
        )

    def log_fallback(self, document_id: str, reason: str) -> None:
        """Record that a call was answered with keyword scoring instead of embeddings."""
        self._emit(
            logging.WARNING,
            "Falling back to keyword scoring",
            "retrieval_fallback",
            document_id=document_id,
            reason=reason,
        )

    def log_provider_init(
        self,
        model: str,
        success: bool,
        duration_ms: float,
        dimensions: int | None = None,
        error: str | None = None,
    ) -> None:
        """Record the one-time outcome of embedding provider initialization."""
        if success:
            level, message, event = logging.INFO, "Embedding provider initialized", "embedding_provider_initialized"
        else:
            level, message, event = logging.WARNING, "Embedding provider unavailable", "embedding_provider_unavailable"
        self._emit(
            level,
            message,
            event,
            model=model,
            duration_ms=round(duration_ms, 2),
            dimensions=dimensions,
            error=error,
        )


audit_logger = RetrievalAuditLogger()
