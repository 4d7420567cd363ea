"""Tests for training session state, log rendering, and logging context."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
import structlog

from aeroml_wizard.observability import bind_session_id, bind_workflow_context, clear_workflow_context
from aeroml_wizard.training import FailureReason, IdSource, LogEvent, LogMetrics, TrainingSession, TrainingStatus

STAMP = datetime(2024, 3, 5, 14, 7, 9, tzinfo=UTC)


class TestTrainingSession:
    """Tests for the TrainingSession model."""

    def test_default_values(self):
        session = TrainingSession()
        assert session.status == TrainingStatus.IDLE
        assert session.id is None
        assert session.logs == []
        assert not session.is_active
        assert not session.is_terminal
        assert session.failure_message is None

    def test_identifier_set_once(self):
        session = TrainingSession()
        assert session.assign_id("first", IdSource.STREAM)
        assert not session.assign_id("second", IdSource.PLACEHOLDER)
        assert session.id == "first"
        assert session.id_source == IdSource.STREAM

    def test_duration_calculation(self):
        session = TrainingSession(started_at=STAMP, completed_at=STAMP + timedelta(seconds=30))
        assert session.duration_seconds == 30

    def test_duration_none_when_not_started(self):
        assert TrainingSession().duration_seconds is None

    def test_latest_metrics(self):
        session = TrainingSession()
        session.append(LogEvent(id="1", timestamp=STAMP, raw="", structured=LogMetrics(epoch=1)))
        session.append(LogEvent(id="2", timestamp=STAMP, raw="", structured=LogMetrics(loss=0.2)))
        session.append(LogEvent(id="3", timestamp=STAMP, raw="plain"))

        assert session.latest_metrics == LogMetrics(loss=0.2)
        assert session.current_epoch == 1

    def test_http_failure_message_includes_detail(self):
        session = TrainingSession(status=TrainingStatus.FAILED, failure_reason=FailureReason.HTTP_STATUS, error="HTTP 422")
        assert session.is_terminal
        assert session.failure_message.endswith("(HTTP 422)")


class TestLogEventRender:
    def test_structured(self):
        event = LogEvent(
            id="1",
            timestamp=STAMP,
            raw="{}",
            structured=LogMetrics(epoch=3, loss=0.12345, accuracy=0.876, message="checkpoint saved"),
        )
        assert event.render() == "05/03/2024, 14:07:09 - Epoch 3 - Loss: 0.123 | Acc: 87.6% | checkpoint saved"

    def test_unstructured(self):
        event = LogEvent(id="1", timestamp=STAMP, raw="Loading dataset")
        assert event.render() == "05/03/2024, 14:07:09 - Loading dataset"

    def test_structured_without_known_fields_falls_back_to_raw(self):
        event = LogEvent(id="1", timestamp=STAMP, raw='{"phase": "init"}', structured=LogMetrics())
        assert event.render() == '05/03/2024, 14:07:09 - {"phase": "init"}'


@pytest.mark.anyio
async def test_workflow_context_isolation():
    """Each async task should see only its own bound session id."""

    async def worker(session_id: str) -> None:
        bind_workflow_context("train")
        bind_session_id(session_id)
        await asyncio.sleep(0)
        context = structlog.contextvars.get_contextvars()
        assert context["session_id"] == session_id
        assert context["stage"] == "train"
        clear_workflow_context()
        await asyncio.sleep(0)
        assert "session_id" not in structlog.contextvars.get_contextvars()

    await asyncio.gather(worker("s1"), worker("s2"))
