"""Tests for streaming log ingestion."""

import re

import pytest

from aeroml_wizard.training.ingest import (
    IngestStatus,
    StreamingLogIngestor,
    final_resolution_pass,
    parse_structured,
    structured_session_id,
    synthesize_placeholder_id,
)
from aeroml_wizard.training.models import LogMetrics
from aeroml_wizard.training.resolver import PatternCascadeResolver

SESSION = "11111111-2222-3333-4444-555555555555"
OTHER = "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"


async def _chunks(*parts: bytes):
    for part in parts:
        yield part


class TestParseStructured:
    def test_metrics(self):
        metrics, data = parse_structured('{"epoch": 2, "loss": "0.25", "accuracy": 0.9, "lr": 0.001, "msg": "ok"}')
        assert metrics.epoch == 2
        assert metrics.loss == 0.25
        assert metrics.accuracy == 0.9
        assert metrics.learning_rate == 0.001
        assert metrics.message == "ok"
        assert data["epoch"] == 2

    def test_message_field_order(self):
        metrics, _ = parse_structured('{"status_message": "b", "message": "a"}')
        assert metrics.message == "a"

    @pytest.mark.parametrize("line", ["Epoch 1 done", "[1, 2]", '"text"', "42", "{broken"])
    def test_non_objects_are_plain_text(self, line):
        assert parse_structured(line) is None

    def test_unparseable_numbers_are_dropped(self):
        metrics, _ = parse_structured('{"epoch": "first", "loss": true}')
        assert metrics.epoch is None
        assert metrics.loss is None

    @pytest.mark.parametrize(
        "line",
        [
            '{"epoch": Infinity, "loss": 0.5}',
            '{"epoch": 1e999, "loss": 0.5}',
            '{"epoch": "Infinity", "loss": 0.5}',
            '{"epoch": NaN, "loss": 0.5}',
        ],
    )
    def test_non_finite_numbers_are_dropped(self, line):
        metrics, _ = parse_structured(line)
        assert metrics.epoch is None
        assert metrics.loss == 0.5


class TestStructuredSessionId:
    def test_named_fields(self):
        assert structured_session_id({"session_id": SESSION}) == SESSION
        assert structured_session_id({"sessionId": "custom-run"}) == "custom-run"

    def test_generic_id_requires_identifier_shape(self):
        assert structured_session_id({"id": "7"}) is None
        assert structured_session_id({"id": SESSION}) == SESSION

    def test_ignores_empty_and_non_strings(self):
        assert structured_session_id({"session_id": "", "session": 12}) is None


class TestFeed:
    def test_end_to_end_split_mid_line(self):
        ids: list[str] = []
        ingestor = StreamingLogIngestor(on_session_id=ids.append)
        stream = f'{{"epoch":1,"loss":0.5}}\nSession ID: {SESSION}\n'.encode()

        first = ingestor.feed(stream[:14])
        assert first == []
        events = ingestor.feed(stream[14:]) + ingestor.finish()

        assert len(events) == 2
        assert events[0].is_structured
        assert events[0].structured.epoch == 1
        assert not events[1].is_structured
        assert "Session ID" in events[1].raw
        assert ingestor.session_id == SESSION
        assert ids == [SESSION]

    def test_every_split_point_gives_same_events(self):
        stream = b'{"epoch":1}\nplain line\n{"epoch":2,"message":"done"}\n'
        expected = [event.raw for event in _feed_all(stream, [len(stream)])]
        for split in range(1, len(stream)):
            assert [event.raw for event in _feed_all(stream, [split])] == expected

    def test_multibyte_character_split_across_chunks(self):
        ingestor = StreamingLogIngestor()
        encoded = "Précision améliorée\n".encode()
        split = encoded.index("é".encode()) + 1

        assert ingestor.feed(encoded[:split]) == []
        events = ingestor.feed(encoded[split:])
        assert [event.raw for event in events] == ["Précision améliorée"]

    def test_non_finite_metrics_do_not_stop_the_stream(self):
        ingestor = StreamingLogIngestor()
        events = ingestor.feed(b'{"epoch": Infinity, "loss": 1e999}\nnext line\n')
        assert [event.raw for event in events] == ['{"epoch": Infinity, "loss": 1e999}', "next line"]
        assert events[0].structured == LogMetrics()

    def test_crlf_and_blank_lines(self):
        ingestor = StreamingLogIngestor()
        events = ingestor.feed(b"first\r\n\r\n   \nsecond\n")
        assert [event.raw for event in events] == ["first", "second"]
        assert [event.id for event in events] == ["1", "2"]

    def test_trailing_partial_line_flushed_on_finish(self):
        ingestor = StreamingLogIngestor()
        assert ingestor.feed(b"no newline yet") == []
        assert ingestor.pending == "no newline yet"
        events = ingestor.finish()
        assert [event.raw for event in events] == ["no newline yet"]
        assert ingestor.finish() == []

    def test_feed_after_finish_rejected(self):
        ingestor = StreamingLogIngestor()
        ingestor.finish()
        with pytest.raises(RuntimeError):
            ingestor.feed(b"late\n")

    def test_first_identifier_wins(self):
        ids: list[str] = []
        ingestor = StreamingLogIngestor(on_session_id=ids.append)
        ingestor.feed(f"session id: {SESSION}\nsession id: {OTHER}\n".encode())
        assert ingestor.session_id == SESSION
        assert ids == [SESSION]

    def test_structured_field_preferred_over_text(self):
        ingestor = StreamingLogIngestor()
        ingestor.feed(f'{{"session_id": "{SESSION}", "message": "see /runs/{OTHER}"}}\n'.encode())
        assert ingestor.session_id == SESSION
        assert ingestor.session_id_strategy == "structured_field"

    def test_initial_session_id_is_kept(self):
        ingestor = StreamingLogIngestor(session_id="preset")
        ingestor.feed(f"session id: {SESSION}\n".encode())
        assert ingestor.session_id == "preset"

    def test_session_id_reported_before_event(self):
        calls: list[str] = []
        ingestor = StreamingLogIngestor(
            on_event=lambda event: calls.append("event"),
            on_session_id=lambda session_id: calls.append("id"),
        )
        ingestor.feed(f"session id: {SESSION}\n".encode())
        assert calls == ["id", "event"]


@pytest.mark.anyio
async def test_ingest_drives_callbacks_in_order():
    received = []
    ingestor = StreamingLogIngestor(on_event=received.append)

    status = await ingestor.ingest(_chunks(b"one\ntw", b"", b"o\nthree"))

    assert status == IngestStatus.COMPLETED
    assert [event.raw for event in received] == ["one", "two", "three"]
    assert ingestor.event_count == 3


def test_final_resolution_pass_checks_messages():
    ingestor = StreamingLogIngestor()
    events = ingestor.feed(f'{{"epoch": 1}}\n{{"detail": "stored under /models/{SESSION}"}}\n'.encode())
    assert final_resolution_pass(events, PatternCascadeResolver()) == SESSION
    assert final_resolution_pass(events[:1], PatternCascadeResolver()) is None


def test_placeholder_ids_are_unique():
    first, second = synthesize_placeholder_id(), synthesize_placeholder_id()
    assert re.fullmatch(r"local-\d+-[0-9a-f]{8}", first)
    assert first != second


def _feed_all(stream: bytes, splits: list[int]):
    ingestor = StreamingLogIngestor()
    events = []
    start = 0
    for split in splits:
        events.extend(ingestor.feed(stream[start:split]))
        start = split
    events.extend(ingestor.feed(stream[start:]))
    events.extend(ingestor.finish())
    return events
