"""Structured logging with per-workflow context.

Workflow context (`stage`, `session_id`) lives in structlog's contextvars, so every
event logged from the same async context carries it without passing it around.
"""

import logging
import sys

import structlog

WORKFLOW_CONTEXT_KEYS = ("stage", "session_id")

_configured = False


def setup_structured_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog with per-workflow context.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Render JSON lines instead of the console renderer
    """
    global _configured
    if _configured:
        return

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Logs go to stderr so stdout stays free for the live training log
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper()),
    )
    for logger_name in ["httpx", "httpcore"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    _configured = True


def bind_workflow_context(stage: str, session_id: str | None = None) -> None:
    """Bind workflow context for all subsequent logs in this async context.

    Args:
        stage: Wizard stage currently driving the work
        session_id: Remote training session identifier, once known
    """
    structlog.contextvars.bind_contextvars(stage=stage, session_id=session_id)


def bind_session_id(session_id: str) -> None:
    """Attach a newly resolved session identifier to the current context."""
    structlog.contextvars.bind_contextvars(session_id=session_id)


def clear_workflow_context() -> None:
    """Drop the workflow keys when a traversal is torn down, leaving other bound context intact."""
    structlog.contextvars.unbind_contextvars(*WORKFLOW_CONTEXT_KEYS)


def get_workflow_logger(name: str = "aeroml_wizard") -> structlog.stdlib.BoundLogger:
    """Get a structlog logger with workflow context."""
    return structlog.get_logger(name)