"""Tests for livellm.schemas.protocol and livellm.server.sse."""

from __future__ import annotations

import json

import pytest

from livellm.schemas.protocol import (
    ActionPayload,
    DoneEvent,
    ErrorCode,
    ErrorEvent,
    MetadataEvent,
    TokenEvent,
    UsageInfo,
    event_to_json,
    parse_event_data,
    parse_record_line,
)
from livellm.server.sse import SSEWriter, format_action_as_message


class TestParseEventData:
    def test_token(self):
        event = parse_event_data('{"type": "token", "token": "Hi"}')
        assert event == TokenEvent(token="Hi")

    def test_bare_token(self):
        assert parse_event_data('{"token": "x"}') == TokenEvent(token="x")

    def test_error(self):
        event = parse_event_data(
            '{"type": "error", "code": "rate_limit", "message": "slow down", "recoverable": true}'
        )
        assert isinstance(event, ErrorEvent)
        assert event.code == ErrorCode.RATE_LIMIT
        assert event.recoverable

    def test_done_with_camel_case_text(self):
        event = parse_event_data('{"type": "done", "fullText": "all of it"}')
        assert isinstance(event, DoneEvent)
        assert event.full_text == "all of it"

    def test_metadata_usage(self):
        event = parse_event_data(
            '{"type": "metadata", "model": "m", "usage": {"total_tokens": 12}}'
        )
        assert isinstance(event, MetadataEvent)
        assert event.usage.total_tokens == 12

    @pytest.mark.parametrize(
        "data",
        ["", "   ", "not json", "[1, 2]", '{"type": "mystery"}', '{"type": "token"}', '{"a": 1}'],
    )
    def test_unusable_records(self, data):
        assert parse_event_data(data) is None

    def test_record_line_prefix(self):
        assert parse_record_line('data: {"type": "token", "token": "a"}\n') == TokenEvent(token="a")
        assert parse_record_line('{"type": "token", "token": "b"}') == TokenEvent(token="b")


class TestEventToJson:
    def test_omits_unset_fields(self):
        assert json.loads(event_to_json(MetadataEvent(model="m"))) == {
            "type": "metadata",
            "model": "m",
        }

    def test_uses_alias(self):
        assert json.loads(event_to_json(DoneEvent(full_text="t"))) == {
            "type": "done",
            "fullText": "t",
        }


class TestSSEWriter:
    def _body(self, record: str) -> dict:
        assert record.startswith("data: ")
        assert record.endswith("\n\n")
        return json.loads(record[6:])

    def test_token_records_accumulate(self):
        writer = SSEWriter()
        assert self._body(writer.token("Hel")) == {"type": "token", "token": "Hel"}
        writer.token("lo")
        assert writer.full_text == "Hello"

    def test_error_record(self):
        body = self._body(SSEWriter().error("timeout", "took too long"))
        assert body == {
            "type": "error",
            "code": "timeout",
            "message": "took too long",
            "recoverable": False,
        }

    def test_done_with_text_and_usage(self):
        writer = SSEWriter()
        writer.token("abc")
        body = self._body(writer.done(usage=UsageInfo(total_tokens=3), include_text=True))
        assert body["fullText"] == "abc"
        assert body["usage"]["total_tokens"] == 3
        assert writer.closed

    def test_records_parse_back(self):
        writer = SSEWriter()
        record = writer.metadata(model="gpt", latency_ms=12.5)
        event = parse_record_line(record)
        assert isinstance(event, MetadataEvent)
        assert event.latency_ms == 12.5


class TestFormatAction:
    @pytest.mark.parametrize(
        ("payload", "expected"),
        [
            (
                ActionPayload(component="choice", action="select", value="r", label="React",
                              context="Framework?"),
                '[Re: "Framework?"] User selected: React',
            ),
            (ActionPayload(component="confirm", action="confirm", label="Yes"), "User confirmed"),
            (
                ActionPayload(component="confirm", action="confirm", label="Ship it"),
                "User confirmed: Ship it",
            ),
            (ActionPayload(component="confirm", action="cancel", label="No"), "User cancelled"),
            (
                ActionPayload(component="form", action="submit", value={"a": 1}),
                'User submitted: {"a": 1}',
            ),
            (
                ActionPayload(component="slider", action="change", value=7, label="volume"),
                "User set volume to: 7",
            ),
            (
                ActionPayload(component="x", action="poke", value=[1]),
                "User action (poke): [1]",
            ),
        ],
    )
    def test_messages(self, payload, expected):
        assert format_action_as_message(payload) == expected
