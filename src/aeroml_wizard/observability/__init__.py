"""Observability module for structured, per-workflow logging."""

from .logging import (
    bind_session_id,
    bind_workflow_context,
    clear_workflow_context,
    get_workflow_logger,
    setup_structured_logging,
)

__all__ = [
    "bind_session_id",
    "bind_workflow_context",
    "clear_workflow_context",
    "get_workflow_logger",
    "setup_structured_logging",
]
