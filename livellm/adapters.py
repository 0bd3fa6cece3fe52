"""Transport adapters: bridge async sources into push/end/abort.

The adapters hold the only suspension points in the system. Each one
awaits the next chunk, line or message from its source and drives the
synchronous ``StreamSession`` surface. Read failures abort the session
and surface to the caller as ``TransportError``.
"""

from __future__ import annotations

import codecs
import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any

import httpx

from livellm.errors import TransportError
from livellm.events import TransportFailed
from livellm.schemas.protocol import (
    DONE_SENTINEL,
    DoneEvent,
    ErrorEvent,
    MetadataEvent,
    TokenEvent,
    parse_event_data,
)
from livellm.stream import StreamSession

logger = logging.getLogger(__name__)

TokenExtractor = Callable[[str], str | None]


def _identity(chunk: str) -> str:
    return chunk


def _fail(session: StreamSession, source: str, exc: BaseException) -> TransportError:
    """Abort the session, report the failure and build the error to raise."""
    message = str(exc) or type(exc).__name__
    logger.error("Transport %s failed: %s", source, message)
    session.events.emit(TransportFailed(source=source, message=message))
    session.abort(reason=f"{source}: {message}")
    return TransportError(source, message)


def _claim(session: StreamSession, source: str) -> None:
    if not session.get_full_text():
        session.source = source


async def _guarded(
    session: StreamSession, source: str, items: AsyncIterable[Any]
) -> AsyncIterator[Any]:
    """Re-yield ``items``; only a failure to read the next item is a transport error."""
    iterator = aiter(items)
    while True:
        try:
            item = await anext(iterator)
        except StopAsyncIteration:
            return
        except Exception as exc:
            raise _fail(session, source, exc) from exc
        yield item


# ── Byte stream ───────────────────────────────────────────────────


async def consume_byte_stream(
    session: StreamSession,
    source: AsyncIterable[bytes],
    extract_token: TokenExtractor | None = None,
) -> None:
    """Feed a readable byte source into ``session`` until it is exhausted.

    Chunks are decoded incrementally as UTF-8, so a multi-byte character
    split across two chunks is delivered whole.

    Raises:
        TransportError: If reading from ``source`` fails.
    """
    _claim(session, "byte-stream")
    extract = extract_token or _identity
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    async for chunk in _guarded(session, "byte-stream", source):
        if session.is_terminal:
            return
        token = extract(decoder.decode(chunk))
        if token:
            session.push(token)
    tail = decoder.decode(b"", final=True)
    if tail and not session.is_terminal:
        token = extract(tail)
        if token:
            session.push(token)

    session.end()


async def consume_token_stream(
    session: StreamSession,
    tokens: AsyncIterable[str],
    source: str = "tokens",
) -> None:
    """Feed already-decoded text tokens (e.g. model deltas) into ``session``.

    Raises:
        TransportError: If the token iterator fails.
    """
    _claim(session, source)
    async for token in _guarded(session, source, tokens):
        if session.is_terminal:
            return
        session.push(token)

    session.end()


# ── Server-sent events ────────────────────────────────────────────


@dataclass
class SSEMessage:
    """One dispatched server-sent event."""

    event: str = "message"
    data: str = ""
    id: str | None = None


async def iter_sse_messages(lines: AsyncIterable[str]) -> AsyncIterator[SSEMessage]:
    """Group SSE lines into messages (blank line dispatches)."""
    event = "message"
    data: list[str] = []
    last_id: str | None = None

    async for raw in lines:
        line = raw.rstrip("\r\n")
        if not line:
            if data:
                yield SSEMessage(event=event, data="\n".join(data), id=last_id)
            event, data = "message", []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event = value or "message"
        elif field == "data":
            data.append(value)
        elif field == "id":
            last_id = value

    if data:
        yield SSEMessage(event=event, data="\n".join(data), id=last_id)


async def consume_sse(
    session: StreamSession,
    lines: AsyncIterable[str],
    *,
    extract_token: TokenExtractor,
    event_name: str = "message",
    done_signal: str | None = None,
) -> None:
    """Subscribe ``session`` to one named SSE channel.

    ``done_signal`` (e.g. ``"[DONE]"``) ends the stream when a message's
    data equals it; source exhaustion ends it too.

    Raises:
        TransportError: If reading from ``lines`` fails.
    """
    _claim(session, "sse")
    async for message in iter_sse_messages(_guarded(session, "sse", lines)):
        if session.is_terminal:
            return
        if message.event != event_name:
            continue
        if done_signal is not None and message.data == done_signal:
            break
        token = extract_token(message.data)
        if token:
            session.push(token)

    session.end()


# ── Message socket ────────────────────────────────────────────────


class SocketAdapter:
    """Feeds inbound socket messages into a session.

    Works with callback-style sockets (call ``on_message`` / ``close``)
    and with async-iterable sockets such as ``websockets`` connections
    (``await adapter.run(ws)``).
    """

    def __init__(
        self,
        session: StreamSession,
        *,
        extract_token: Callable[[Any], str | None],
        done_signal: str | None = None,
    ) -> None:
        self._session = session
        self._extract = extract_token
        self._done_signal = done_signal
        _claim(session, "socket")

    def on_message(self, message: Any) -> None:
        if self._session.is_terminal:
            return
        if self._done_signal is not None and message == self._done_signal:
            self._session.end()
            return
        token = self._extract(message)
        if token:
            self._session.push(token)

    def close(self) -> None:
        """Explicit close path: finish the stream if still open."""
        if not self._session.is_terminal:
            self._session.end()

    def fail(self, exc: BaseException) -> TransportError:
        return _fail(self._session, "socket", exc)

    async def run(self, socket: AsyncIterable[Any]) -> None:
        """Drive the adapter from an async-iterable socket until it closes.

        Raises:
            TransportError: If receiving from ``socket`` fails.
        """
        async for message in _guarded(self._session, "socket", socket):
            self.on_message(message)
            if self._session.is_terminal:
                return
        self.close()


# ── Protocol client ───────────────────────────────────────────────


async def connect_protocol_stream(
    lines: AsyncIterable[str],
    session: StreamSession,
    *,
    on_metadata: Callable[[MetadataEvent], Any] | None = None,
    on_error: Callable[[ErrorEvent], Any] | None = None,
    on_done: Callable[[DoneEvent], Any] | None = None,
) -> None:
    """Drive ``session`` from newline-delimited protocol records.

    Lines may carry the SSE ``data:`` prefix or be bare JSON. Unknown
    or unparseable records are skipped.

    Raises:
        TransportError: If reading from ``lines`` fails.
    """
    _claim(session, "protocol")
    async for raw in _guarded(session, "protocol", lines):
        line = raw.strip()
        if not line or line.startswith(":") or line.startswith("event:"):
            continue
        if line.startswith("data:"):
            line = line[5:].strip()

        if line == DONE_SENTINEL:
            session.end()
            if on_done:
                on_done(DoneEvent())
            return

        event = parse_event_data(line)
        if event is None:
            logger.debug("Skipping unrecognized record: %.80s", line)
            continue

        if isinstance(event, TokenEvent):
            session.push(event.token)
        elif isinstance(event, MetadataEvent):
            if on_metadata:
                on_metadata(event)
        elif isinstance(event, ErrorEvent):
            logger.warning("Server reported %s: %s", event.code, event.message)
            if on_error:
                on_error(event)
            if not event.recoverable:
                session.end()
                return
        elif isinstance(event, DoneEvent):
            session.end()
            if on_done:
                on_done(event)
            return

    # Stream ended without an explicit done record
    session.end()


async def stream_url(
    session: StreamSession,
    url: str,
    *,
    payload: dict[str, Any] | None = None,
    client: httpx.AsyncClient | None = None,
    timeout: float = 120.0,
    **callbacks: Any,
) -> None:
    """POST ``payload`` to a protocol endpoint and render the response.

    Raises:
        TransportError: On connection failures or non-2xx responses.
    """
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout)
    try:
        async with http.stream("POST", url, json=payload or {}) as response:
            response.raise_for_status()
            await connect_protocol_stream(response.aiter_lines(), session, **callbacks)
    except httpx.HTTPError as exc:
        raise _fail(session, "http", exc) from exc
    finally:
        if owns_client:
            await http.aclose()
