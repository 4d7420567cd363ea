"""Streaming ingestion of newline-delimited training output.

The training service answers with a byte stream in which each line is either a JSON
object (metrics) or a free-text diagnostic. Lines are reassembled across chunk
boundaries, classified, and pushed to a callback as soon as they are complete.
"""

from __future__ import annotations

import codecs
import json
import logging
import math
import secrets
import time
from collections.abc import AsyncIterable, Callable, Iterable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from .models import LogEvent, LogMetrics
from .resolver import PatternCascadeResolver, looks_like_session_id

logger = logging.getLogger(__name__)

EventCallback = Callable[[LogEvent], None]
SessionIdCallback = Callable[[str], None]

MESSAGE_FIELDS = ("message", "msg", "log", "detail", "status_message")
SESSION_ID_FIELDS = ("session_id", "sessionId", "session", "id")
LEARNING_RATE_FIELDS = ("learning_rate", "learningRate", "lr")


class IngestStatus(str, Enum):
    """Terminal status of one ingestion run."""

    COMPLETED = "completed"


def _first_present(data: dict[str, Any], names: Iterable[str]) -> Any:
    for name in names:
        value = data.get(name)
        if value is not None:
            return value
    return None


def _as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # json.loads accepts Infinity, NaN and overflowing literals such as 1e999
    return number if math.isfinite(number) else None


def _as_int(value: Any) -> int | None:
    number = _as_float(value)
    return int(number) if number is not None else None


def structured_session_id(data: dict[str, Any]) -> str | None:
    """Return an identifier embedded directly in a structured record.

    The generic `id` key is only trusted when the value has the identifier shape,
    since log records also use it for their own numbering.
    """
    for name in SESSION_ID_FIELDS:
        value = data.get(name)
        if not isinstance(value, str) or not value.strip():
            continue
        if name == "id" and not looks_like_session_id(value):
            continue
        return value.strip()
    return None


def parse_structured(line: str) -> tuple[LogMetrics, dict[str, Any]] | None:
    """Decode a line as a structured record.

    Returns None for anything that is not a JSON object; such lines are plain text
    by contract, not errors.
    """
    try:
        data = json.loads(line)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    message = _first_present(data, MESSAGE_FIELDS)
    metrics = LogMetrics(
        epoch=_as_int(data.get("epoch")),
        loss=_as_float(data.get("loss")),
        accuracy=_as_float(data.get("accuracy")),
        learning_rate=_as_float(_first_present(data, LEARNING_RATE_FIELDS)),
        message=str(message) if message is not None else None,
    )
    return metrics, data


def final_resolution_pass(events: Iterable[LogEvent], resolver: PatternCascadeResolver) -> str | None:
    """Scan every accumulated event once more for an identifier."""

    def texts() -> Iterable[str | None]:
        for event in events:
            yield event.raw
            yield event.message

    return resolver.resolve_first(texts())


def synthesize_placeholder_id() -> str:
    """Build a locally unique identifier so navigation is never blocked."""
    return f"local-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class StreamingLogIngestor:
    """Reassembles lines from byte chunks and emits `LogEvent`s in arrival order.

    Usage:
        ingestor = StreamingLogIngestor(on_event=session.append)
        status = await ingestor.ingest(response.aiter_bytes())

    `feed()` and `finish()` expose the same algorithm synchronously.
    """

    def __init__(
        self,
        on_event: EventCallback | None = None,
        *,
        resolver: PatternCascadeResolver | None = None,
        on_session_id: SessionIdCallback | None = None,
        session_id: str | None = None,
    ):
        self._on_event = on_event
        self._on_session_id = on_session_id
        self._resolver = resolver or PatternCascadeResolver()
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._sequence = 0
        self._finished = False
        self.session_id = session_id
        self.session_id_strategy: str | None = None

    @property
    def pending(self) -> str:
        """Text received after the last newline, not yet emitted."""
        return self._buffer

    @property
    def event_count(self) -> int:
        return self._sequence

    def feed(self, chunk: bytes) -> list[LogEvent]:
        """Consume one chunk and emit every line it completes."""
        if self._finished:
            raise RuntimeError("Cannot feed an ingestor after finish()")

        self._buffer += self._decoder.decode(chunk)
        if "\n" not in self._buffer:
            return []

        *lines, self._buffer = self._buffer.split("\n")
        emitted: list[LogEvent] = []
        for line in lines:
            event = self._process_line(line)
            if event is not None:
                emitted.append(event)
        return emitted

    def finish(self) -> list[LogEvent]:
        """Flush a trailing partial line at end of stream."""
        if self._finished:
            return []
        self._finished = True

        self._buffer += self._decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        event = self._process_line(remainder)
        return [event] if event is not None else []

    async def ingest(self, chunks: AsyncIterable[bytes]) -> IngestStatus:
        """Drive the ingestor from an async byte stream until it ends."""
        async for chunk in chunks:
            if chunk:
                self.feed(chunk)
        self.finish()
        logger.debug(f"Stream ended after {self._sequence} log events")
        return IngestStatus.COMPLETED

    def _process_line(self, line: str) -> LogEvent | None:
        line = line.rstrip("\r")
        if not line.strip():
            return None

        parsed = parse_structured(line)
        metrics: LogMetrics | None = None
        if parsed is not None:
            metrics, data = parsed
            if self.session_id is None:
                embedded = structured_session_id(data)
                if embedded is not None:
                    self._adopt_session_id(embedded, "structured_field")

        if self.session_id is None:
            match = self._resolver.resolve_with_strategy(line)
            if match is not None:
                self._adopt_session_id(*match)

        self._sequence += 1
        event = LogEvent(
            id=str(self._sequence),
            timestamp=datetime.now(UTC),
            raw=line,
            structured=metrics,
        )
        if self._on_event is not None:
            self._on_event(event)
        return event

    def _adopt_session_id(self, session_id: str, strategy: str) -> None:
        # First match wins for the whole stream.
        self.session_id = session_id
        self.session_id_strategy = strategy
        logger.info(f"Resolved session id {session_id} via {strategy}")
        if self._on_session_id is not None:
            self._on_session_id(session_id)
