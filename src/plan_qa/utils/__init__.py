"""Utility modules."""

from plan_qa.utils.logging import audit_logger, document_id_var, setup_logging

__all__ = [
    "audit_logger",
    "document_id_var",
    "setup_logging",
]
