"""Training controller: owns the lifecycle of one remote training job."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from ..config import settings
from ..exceptions import ServiceConnectionError, TrainingInProgressError, TrainingInputError, TrainingServiceError
from ..observability import bind_session_id, bind_workflow_context, get_workflow_logger
from .ingest import EventCallback, StreamingLogIngestor, final_resolution_pass, synthesize_placeholder_id
from .models import FailureReason, IdSource, LogEvent, RawPayload, TrainingSession, TrainingStatus
from .resolver import PatternCascadeResolver

logger = logging.getLogger(__name__)


class TrainingService(Protocol):
    def stream_training(
        self,
        payload: RawPayload,
        user_id: str,
        target_column: str,
        excluded_columns: str | None = None,
    ) -> AbstractAsyncContextManager[AsyncIterator[bytes]]: ...


@dataclass(frozen=True, slots=True)
class TrainingRequest:
    """Inputs for one training job."""

    payload: RawPayload | None
    user_id: str | None
    target_column: str | None
    excluded_columns: tuple[str, ...] = ()

    @property
    def exclusion_param(self) -> str | None:
        return ",".join(self.excluded_columns) or None


class TrainingController:
    """Drives one remote training job at a time.

    IDLE -> STARTING -> RUNNING -> COMPLETED, and any of them -> FAILED on a
    connection error, a non-success status, a timeout, or cancellation. Failures are
    recorded on the session rather than raised, so callers inspect `session.status`.

    Usage:
        controller = TrainingController(api_client)
        session = await controller.start(request)
        if session.status == TrainingStatus.COMPLETED:
            ...
    """

    def __init__(
        self,
        service: TrainingService,
        *,
        timeout_seconds: float | None = None,
        resolver: PatternCascadeResolver | None = None,
        on_event: EventCallback | None = None,
    ):
        self.service = service
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.training.timeout_seconds
        self.resolver = resolver or PatternCascadeResolver()
        self.on_event = on_event
        self.session = TrainingSession()
        self._job: asyncio.Task[None] | None = None
        self._cancel_requested = False

    @property
    def status(self) -> TrainingStatus:
        return self.session.status

    @property
    def is_active(self) -> bool:
        return self.session.is_active

    async def start(self, request: TrainingRequest) -> TrainingSession:
        """Run a training job to a terminal status and return its session.

        Calling again after a terminal status starts a fresh session (retrain).

        Raises:
            TrainingInProgressError: A job is already starting or running.
            TrainingInputError: A prerequisite is missing; nothing was sent.
        """
        if self.is_active:
            raise TrainingInProgressError("A training job is already running")
        _check_request(request)

        session = TrainingSession(status=TrainingStatus.STARTING, started_at=datetime.now(UTC))
        self.session = session
        self._cancel_requested = False

        bind_workflow_context("train")
        task_logger = get_workflow_logger()
        task_logger.info(
            "training_starting",
            target_column=request.target_column,
            excluded_columns=len(request.excluded_columns),
            payload_bytes=request.payload.size if request.payload else 0,
        )

        job = asyncio.create_task(self._run(session, request))
        self._job = job
        try:
            await job
        except asyncio.CancelledError:
            # A job cancelled before its first step never reached _run's handlers.
            if session.is_active:
                self._fail(session, FailureReason.CANCELLED, "Cancelled")
            # Operator cancellation ends the job, not the caller.
            if self._cancel_requested and job.cancelled():
                return session
            raise
        finally:
            if self._job is job:
                self._job = None
        return session

    def cancel(self) -> bool:
        """Cancel the active job. Returns False when nothing is running."""
        if self._job is None or self._job.done():
            return False
        self._cancel_requested = True
        self._job.cancel()
        logger.info("Training cancellation requested")
        return True

    def reset(self) -> None:
        """Discard the current session, cancelling it if still active."""
        self.cancel()
        self.session = TrainingSession()

    async def _run(self, session: TrainingSession, request: TrainingRequest) -> None:
        task_logger = get_workflow_logger()

        def handle_event(event: LogEvent) -> None:
            session.append(event)
            if self.on_event is not None:
                self.on_event(event)

        def handle_session_id(session_id: str) -> None:
            if session.assign_id(session_id, IdSource.STREAM):
                bind_session_id(session_id)
                task_logger.info("session_id_resolved", source=IdSource.STREAM.value)

        ingestor = StreamingLogIngestor(
            on_event=handle_event,
            resolver=self.resolver,
            on_session_id=handle_session_id,
        )

        try:
            async with asyncio.timeout(self.timeout_seconds):
                async with self.service.stream_training(
                    request.payload,
                    request.user_id,
                    request.target_column,
                    request.exclusion_param,
                ) as chunks:
                    session.status = TrainingStatus.RUNNING
                    task_logger.info("training_running")
                    await ingestor.ingest(chunks)
        except TimeoutError:
            self._fail(session, FailureReason.TIMEOUT, f"No completion after {self.timeout_seconds:g} seconds")
            return
        except TrainingServiceError as e:
            self._fail(session, FailureReason.HTTP_STATUS, str(e))
            return
        except ServiceConnectionError as e:
            self._fail(session, FailureReason.CONNECTION, str(e))
            return
        except asyncio.CancelledError:
            self._fail(session, FailureReason.CANCELLED, "Cancelled")
            raise
        except Exception as e:
            self._fail(session, FailureReason.ERROR, str(e))
            raise

        self._finalize_identity(session)
        session.status = TrainingStatus.COMPLETED
        session.completed_at = datetime.now(UTC)
        task_logger.info(
            "training_completed",
            log_events=len(session.logs),
            id_source=session.id_source.value if session.id_source else None,
            duration_seconds=session.duration_seconds,
        )

    def _finalize_identity(self, session: TrainingSession) -> None:
        if session.id is not None:
            return

        task_logger = get_workflow_logger()
        found = final_resolution_pass(session.logs, self.resolver)
        if found is not None:
            session.assign_id(found, IdSource.FINAL_PASS)
            bind_session_id(found)
            task_logger.info("session_id_resolved", source=IdSource.FINAL_PASS.value)
            return

        placeholder = synthesize_placeholder_id()
        session.assign_id(placeholder, IdSource.PLACEHOLDER)
        bind_session_id(placeholder)
        # Upstream stopped reporting the identifier in any known format.
        task_logger.warning("session_id_unresolved", placeholder=placeholder, log_events=len(session.logs))

    def _fail(self, session: TrainingSession, reason: FailureReason, error: str) -> None:
        session.status = TrainingStatus.FAILED
        session.failure_reason = reason
        session.error = error
        session.completed_at = datetime.now(UTC)
        get_workflow_logger().error("training_failed", reason=reason.value, error=error)
        logger.error(f"Training failed ({reason.value}): {error}")


def _check_request(request: TrainingRequest) -> None:
    if not request.user_id or not request.user_id.strip():
        raise TrainingInputError("You must be signed in to start training")
    if not request.target_column or not request.target_column.strip():
        raise TrainingInputError("Select a target column before starting training")
    if request.payload is None or not request.payload.content:
        raise TrainingInputError("The uploaded dataset is no longer available, upload it again")
