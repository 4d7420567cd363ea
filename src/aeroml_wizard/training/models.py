"""Data models for training sessions and their streamed logs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class TrainingStatus(str, Enum):
    """Lifecycle of one remote training job."""

    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class FailureReason(str, Enum):
    """Why a training job ended in FAILED."""

    CONNECTION = "connection"
    HTTP_STATUS = "http_status"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    ERROR = "error"


class IdSource(str, Enum):
    """Where the session identifier came from."""

    STREAM = "stream"
    FINAL_PASS = "final_pass"
    PLACEHOLDER = "placeholder"


FAILURE_MESSAGES: dict[FailureReason, str] = {
    FailureReason.CONNECTION: "Could not reach the training service. Check your connection and try again.",
    FailureReason.HTTP_STATUS: "The training service rejected the job.",
    FailureReason.TIMEOUT: "The job is taking unusually long. It may still finish on the server; try again later.",
    FailureReason.CANCELLED: "Training was cancelled.",
    FailureReason.ERROR: "Training stopped because of an unexpected error.",
}


@dataclass(frozen=True, slots=True)
class RawPayload:
    """The original uploaded file, sent unchanged to the training service."""

    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True, slots=True)
class LogMetrics:
    """Fields recognized in a structured log record."""

    epoch: int | None = None
    loss: float | None = None
    accuracy: float | None = None
    learning_rate: float | None = None
    message: str | None = None


@dataclass(frozen=True, slots=True)
class LogEvent:
    """One ordered unit of streamed training output."""

    id: str
    timestamp: datetime
    raw: str
    structured: LogMetrics | None = None

    @property
    def is_structured(self) -> bool:
        return self.structured is not None

    @property
    def message(self) -> str | None:
        return self.structured.message if self.structured else None

    def render(self) -> str:
        """Format the event as one live-log line."""
        stamp = self.timestamp.strftime("%d/%m/%Y, %H:%M:%S")
        metrics = self.structured
        if metrics is None:
            return f"{stamp} - {self.raw}"

        parts: list[str] = []
        if metrics.epoch is not None:
            parts.append(f"Epoch {metrics.epoch}")
        stats: list[str] = []
        if metrics.loss is not None:
            stats.append(f"Loss: {metrics.loss:.3f}")
        if metrics.accuracy is not None:
            stats.append(f"Acc: {metrics.accuracy * 100:.1f}%")
        if metrics.learning_rate is not None:
            stats.append(f"LR: {metrics.learning_rate:g}")
        if metrics.message:
            stats.append(metrics.message)
        if stats:
            parts.append(" | ".join(stats))
        if not parts:
            return f"{stamp} - {self.raw}"
        return f"{stamp} - " + " - ".join(parts)


@dataclass
class TrainingSession:
    """State of one training job, owned by the training controller."""

    id: str | None = None
    status: TrainingStatus = TrainingStatus.IDLE
    logs: list[LogEvent] = field(default_factory=list)
    id_source: IdSource | None = None
    failure_reason: FailureReason | None = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    def assign_id(self, session_id: str, source: IdSource) -> bool:
        """Set the identifier if it is still unset.

        Returns True when the identifier was adopted. Once set it never changes.
        """
        if self.id is not None:
            return False
        self.id = session_id
        self.id_source = source
        return True

    def append(self, event: LogEvent) -> None:
        self.logs.append(event)

    @property
    def is_active(self) -> bool:
        return self.status in (TrainingStatus.STARTING, TrainingStatus.RUNNING)

    @property
    def is_terminal(self) -> bool:
        return self.status in (TrainingStatus.COMPLETED, TrainingStatus.FAILED)

    @property
    def failure_message(self) -> str | None:
        """Operator-facing explanation of a failure."""
        if self.failure_reason is None:
            return None
        base = FAILURE_MESSAGES[self.failure_reason]
        if self.failure_reason == FailureReason.HTTP_STATUS and self.error:
            return f"{base} ({self.error})"
        return base

    @property
    def latest_metrics(self) -> LogMetrics | None:
        """Most recent structured record, if any arrived."""
        for event in reversed(self.logs):
            if event.structured is not None:
                return event.structured
        return None

    @property
    def current_epoch(self) -> int | None:
        for event in reversed(self.logs):
            if event.structured is not None and event.structured.epoch is not None:
                return event.structured.epoch
        return None

    @property
    def duration_seconds(self) -> float | None:
        """Job duration in seconds."""
        if not self.started_at:
            return None
        end = self.completed_at or datetime.now(UTC)
        return (end - self.started_at).total_seconds()
