"""Tests for livellm.adapters: async transports feeding a session."""

from __future__ import annotations

import json

import httpx
import pytest

from livellm.adapters import (
    SocketAdapter,
    connect_protocol_stream,
    consume_byte_stream,
    consume_sse,
    consume_token_stream,
    iter_sse_messages,
    stream_url,
)
from livellm.dom import NodeKind
from livellm.errors import TransportError
from livellm.events import EventKind, StreamStarted, TransportFailed
from livellm.prose import PlainTextRenderer
from livellm.scheduler import ManualTicker
from livellm.stream import StreamSession, StreamState, create_session

# ── Helpers ───────────────────────────────────────────────────


def _make_session() -> StreamSession:
    return create_session(ticks=ManualTicker(), markdown=PlainTextRenderer())


async def _aiter(items):
    for item in items:
        yield item


async def _broken(items, exc: Exception):
    for item in items:
        yield item
    raise exc


def _token_json(data: str) -> str | None:
    return json.loads(data).get("t")


def _record(**fields) -> str:
    return f"data: {json.dumps(fields)}"


# ── Byte and token streams ────────────────────────────────────


class TestByteStream:
    @pytest.mark.asyncio()
    async def test_multibyte_split_across_chunks(self):
        session = _make_session()
        await consume_byte_stream(session, _aiter([b"caf\xc3", b"\xa9 ok"]))
        assert session.get_full_text() == "café ok"
        assert session.get_state() == StreamState.DONE

    @pytest.mark.asyncio()
    async def test_source_recorded_on_start_event(self):
        session = _make_session()
        await consume_byte_stream(session, _aiter([b"hi"]))
        started = session.events.history[0]
        assert isinstance(started, StreamStarted)
        assert started.source == "byte-stream"

    @pytest.mark.asyncio()
    async def test_extract_token(self):
        session = _make_session()
        await consume_byte_stream(
            session, _aiter([b"a", b"skip", b"b"]), extract_token=lambda s: None if s == "skip" else s
        )
        assert session.get_full_text() == "ab"

    @pytest.mark.asyncio()
    async def test_read_failure_aborts(self):
        session = _make_session()
        with pytest.raises(TransportError, match="connection reset") as exc_info:
            await consume_byte_stream(
                session, _broken([b"partial"], ConnectionError("connection reset"))
            )
        assert exc_info.value.source == "byte-stream"
        assert session.get_state() == StreamState.ABORTED
        kinds = [e.kind for e in session.events.history]
        assert kinds[-2:] == [EventKind.TRANSPORT_ERROR, EventKind.STREAM_ABORTED]


class TestTokenStream:
    @pytest.mark.asyncio()
    async def test_renders_components(self):
        session = _make_session()
        tokens = ["Hi ", "```livellm:", 'badge\n{"text":', ' "ok"}\n```', " end"]
        await consume_token_stream(session, _aiter(tokens), source="litellm")

        kinds = [child.kind for child in session.container.children]
        assert kinds == [NodeKind.PROSE, NodeKind.COMPONENT, NodeKind.PROSE]
        assert session.events.history[0].source == "litellm"

    @pytest.mark.asyncio()
    async def test_stops_when_session_aborted(self):
        session = _make_session()
        seen = []

        async def tokens():
            for token in ["a", "b", "c"]:
                seen.append(token)
                if token == "b":
                    session.abort("stop")
                yield token

        await consume_token_stream(session, tokens())
        assert session.get_state() == StreamState.ABORTED
        assert session.get_full_text() == "a"
        assert seen == ["a", "b"]


# ── Server-sent events ────────────────────────────────────────


class TestSessionErrorsPassThrough:
    @pytest.mark.asyncio()
    async def test_extractor_error_is_not_a_transport_error(self):
        session = _make_session()

        def extract(data: str) -> str:
            raise KeyError("t")

        with pytest.raises(KeyError):
            await consume_sse(session, _aiter(['data: {"x": 1}', ""]), extract_token=extract)
        assert session.get_state() != StreamState.ABORTED
        assert not any(isinstance(e, TransportFailed) for e in session.events.history)

    @pytest.mark.asyncio()
    async def test_callback_error_is_not_a_transport_error(self):
        session = _make_session()
        lines = [_record(type="metadata", model="m"), _record(type="done")]

        def on_metadata(event):
            raise RuntimeError("consumer bug")

        with pytest.raises(RuntimeError, match="consumer bug"):
            await connect_protocol_stream(_aiter(lines), session, on_metadata=on_metadata)
        assert session.get_state() != StreamState.ABORTED

    @pytest.mark.asyncio()
    async def test_read_failure_still_aborts(self):
        session = _make_session()
        with pytest.raises(TransportError):
            await consume_token_stream(session, _broken(["a"], OSError("reset")))
        assert session.get_state() == StreamState.ABORTED
        assert session.get_full_text() == "a"


class TestSSE:
    @pytest.mark.asyncio()
    async def test_iter_messages(self):
        lines = [
            ": keepalive",
            "event: update",
            "id: 7",
            "data: one",
            "data: two",
            "",
            "data:three",
        ]
        messages = [m async for m in iter_sse_messages(_aiter(lines))]
        assert [(m.event, m.data, m.id) for m in messages] == [
            ("update", "one\ntwo", "7"),
            ("message", "three", "7"),
        ]

    @pytest.mark.asyncio()
    async def test_consume_named_channel_until_done(self):
        session = _make_session()
        lines = [
            'data: {"t": "Hello "}', "",
            "event: ping", 'data: {"t": "ignored"}', "",
            'data: {"t": "world"}', "",
            "data: [DONE]", "",
            'data: {"t": "late"}', "",
        ]
        await consume_sse(session, _aiter(lines), extract_token=_token_json, done_signal="[DONE]")
        assert session.get_full_text() == "Hello world"
        assert session.get_state() == StreamState.DONE

    @pytest.mark.asyncio()
    async def test_exhaustion_ends_stream(self):
        session = _make_session()
        await consume_sse(session, _aiter(['data: {"t": "x"}']), extract_token=_token_json)
        assert session.get_state() == StreamState.DONE

    @pytest.mark.asyncio()
    async def test_failure_aborts(self):
        session = _make_session()
        with pytest.raises(TransportError):
            await consume_sse(
                session,
                _broken(['data: {"t": "x"}', ""], OSError("gone")),
                extract_token=_token_json,
            )
        assert session.get_state() == StreamState.ABORTED
        failed = [e for e in session.events.history if isinstance(e, TransportFailed)]
        assert failed[0].source == "sse"


# ── Socket ────────────────────────────────────────────────────


class TestSocketAdapter:
    def test_callback_style(self):
        session = _make_session()
        adapter = SocketAdapter(session, extract_token=lambda m: m["text"], done_signal="EOS")
        adapter.on_message({"text": "a"})
        adapter.on_message({"text": "b"})
        adapter.on_message("EOS")
        adapter.on_message({"text": "c"})
        assert session.get_full_text() == "ab"
        assert session.get_state() == StreamState.DONE

    def test_close_ends_stream(self):
        session = _make_session()
        adapter = SocketAdapter(session, extract_token=str)
        adapter.on_message("x")
        adapter.close()
        adapter.close()
        assert session.get_state() == StreamState.DONE

    def test_fail_aborts(self):
        session = _make_session()
        adapter = SocketAdapter(session, extract_token=str)
        error = adapter.fail(RuntimeError("closed with 1011"))
        assert isinstance(error, TransportError)
        assert session.get_state() == StreamState.ABORTED

    @pytest.mark.asyncio()
    async def test_run_async_iterable(self):
        session = _make_session()
        adapter = SocketAdapter(session, extract_token=str)
        await adapter.run(_aiter(["one ", "two"]))
        assert session.get_full_text() == "one two"
        assert session.get_state() == StreamState.DONE

    @pytest.mark.asyncio()
    async def test_run_failure(self):
        session = _make_session()
        adapter = SocketAdapter(session, extract_token=str)
        with pytest.raises(TransportError, match="socket"):
            await adapter.run(_broken(["x"], ConnectionError("dropped")))
        assert session.get_state() == StreamState.ABORTED


# ── Protocol client ───────────────────────────────────────────


class TestProtocolStream:
    @pytest.mark.asyncio()
    async def test_token_metadata_done(self):
        session = _make_session()
        metadata, done = [], []
        lines = [
            _record(type="metadata", model="m"),
            "",
            _record(type="token", token="Hel"),
            '{"type": "token", "token": "lo"}',
            _record(type="done", fullText="Hello"),
            _record(type="token", token="ignored"),
        ]
        await connect_protocol_stream(
            _aiter(lines), session, on_metadata=metadata.append, on_done=done.append
        )
        assert session.get_full_text() == "Hello"
        assert session.get_state() == StreamState.DONE
        assert metadata[0].model == "m"
        assert done[0].full_text == "Hello"

    @pytest.mark.asyncio()
    async def test_done_sentinel(self):
        session = _make_session()
        done = []
        await connect_protocol_stream(
            _aiter([_record(type="token", token="a"), "data: [DONE]"]), session, on_done=done.append
        )
        assert session.get_state() == StreamState.DONE
        assert len(done) == 1

    @pytest.mark.asyncio()
    async def test_recoverable_error_continues(self):
        session = _make_session()
        errors = []
        lines = [
            _record(type="token", token="a"),
            _record(type="error", code="rate_limit", message="slow", recoverable=True),
            _record(type="token", token="b"),
        ]
        await connect_protocol_stream(_aiter(lines), session, on_error=errors.append)
        assert session.get_full_text() == "ab"
        assert errors[0].recoverable

    @pytest.mark.asyncio()
    async def test_fatal_error_ends_stream(self):
        session = _make_session()
        lines = [
            _record(type="token", token="a"),
            _record(type="error", code="provider_error", message="boom"),
            _record(type="token", token="b"),
        ]
        await connect_protocol_stream(_aiter(lines), session)
        assert session.get_full_text() == "a"
        assert session.get_state() == StreamState.DONE

    @pytest.mark.asyncio()
    async def test_unknown_records_skipped(self):
        session = _make_session()
        lines = ["data: not json", _record(type="mystery"), "event: x", _record(token="ok")]
        await connect_protocol_stream(_aiter(lines), session)
        assert session.get_full_text() == "ok"
        assert session.get_state() == StreamState.DONE


class TestStreamUrl:
    @pytest.mark.asyncio()
    async def test_posts_and_renders(self):
        seen_bodies = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen_bodies.append(json.loads(request.content))
            body = "\n\n".join([
                _record(type="token", token="Hi "),
                _record(type="token", token="there"),
                _record(type="done"),
            ])
            return httpx.Response(200, text=body + "\n\n")

        session = _make_session()
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await stream_url(
                session, "http://test/api/chat/stream", payload={"message": "hi"}, client=client
            )
        assert seen_bodies == [{"message": "hi"}]
        assert session.get_full_text() == "Hi there"
        assert session.get_state() == StreamState.DONE

    @pytest.mark.asyncio()
    async def test_http_error_aborts(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="busy")

        session = _make_session()
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(TransportError) as exc_info:
                await stream_url(session, "http://test/stream", client=client)
        assert exc_info.value.source == "http"
        assert session.get_state() == StreamState.ABORTED
