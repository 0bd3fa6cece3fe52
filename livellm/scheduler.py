"""Render scheduling: coalesce mutations into one paint per tick.

The scheduler itself is platform independent. It asks an injectable
``TickSource`` for "the next visual tick" and keeps at most one such
request outstanding. ``AsyncioTicker`` backs ticks with the running
event loop; ``ManualTicker`` lets tests and batch renderers decide
exactly when a tick fires.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)

TickCallback = Callable[[], None]


class TickSource(Protocol):
    """Schedules a callback for the next visual tick."""

    def request(self, callback: TickCallback) -> Any: ...

    def cancel(self, handle: Any) -> None: ...


class ManualTicker:
    """Tick source driven explicitly with ``fire()``."""

    def __init__(self) -> None:
        self._pending: list[tuple[int, TickCallback]] = []
        self._next_id = 0
        self.requests = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def request(self, callback: TickCallback) -> int:
        self._next_id += 1
        self.requests += 1
        self._pending.append((self._next_id, callback))
        return self._next_id

    def cancel(self, handle: int) -> None:
        self._pending = [(hid, cb) for hid, cb in self._pending if hid != handle]

    def fire(self) -> int:
        """Run every callback pending at call time. Returns how many ran."""
        due, self._pending = self._pending, []
        for _, callback in due:
            callback()
        return len(due)


class AsyncioTicker:
    """Tick source backed by ``loop.call_later``.

    The loop is resolved lazily so the ticker can be built outside a
    running loop and used inside one. Outside any loop no tick is
    scheduled; the scheduler stays dirty until the next request made
    inside a loop or an explicit flush.
    """

    def __init__(
        self,
        interval: float = 1 / 60,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._interval = interval
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop | None:
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError:
                return None
        return self._loop

    def request(self, callback: TickCallback) -> asyncio.TimerHandle | None:
        loop = self._get_loop()
        if loop is None:
            return None
        return loop.call_later(self._interval, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()


class RenderScheduler:
    """Dirty-flag coalescing with at most one pending tick.

    ``mark_dirty()`` is cheap and may be called for every character;
    ``paint`` runs at most once per tick and only when something
    changed since the previous paint.
    """

    def __init__(self, ticks: TickSource, paint: Callable[[], None]) -> None:
        self._ticks = ticks
        self._paint = paint
        self._handle: Any = None
        self._dirty = False
        self.paints = 0

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def has_pending_tick(self) -> bool:
        return self._handle is not None

    def mark_dirty(self) -> None:
        self._dirty = True
        if self._handle is None:
            self._handle = self._ticks.request(self._on_tick)

    def flush(self) -> None:
        """Paint now if dirty, and drop any pending tick."""
        self._cancel_pending()
        if self._dirty:
            self._run_paint()

    def cancel(self) -> None:
        """Drop the pending tick and forget dirtiness without painting."""
        self._cancel_pending()
        self._dirty = False

    def _cancel_pending(self) -> None:
        if self._handle is not None:
            self._ticks.cancel(self._handle)
            self._handle = None

    def _on_tick(self) -> None:
        self._handle = None
        if self._dirty:
            self._run_paint()

    def _run_paint(self) -> None:
        self._dirty = False
        self.paints += 1
        self._paint()
