"""Tests for livellm.scheduler: dirty-flag render coalescing."""

from __future__ import annotations

import asyncio

import pytest

from livellm.scheduler import AsyncioTicker, ManualTicker, RenderScheduler


def _make_scheduler() -> tuple[RenderScheduler, ManualTicker, list[int]]:
    ticker = ManualTicker()
    calls: list[int] = []
    scheduler = RenderScheduler(ticker, lambda: calls.append(1))
    return scheduler, ticker, calls


class TestManualTicker:
    def test_fire_runs_pending_callbacks(self):
        ticker = ManualTicker()
        seen = []
        ticker.request(lambda: seen.append("a"))
        ticker.request(lambda: seen.append("b"))
        assert ticker.pending == 2
        assert ticker.fire() == 2
        assert seen == ["a", "b"]
        assert ticker.pending == 0

    def test_cancel_removes_only_that_handle(self):
        ticker = ManualTicker()
        seen = []
        first = ticker.request(lambda: seen.append("a"))
        ticker.request(lambda: seen.append("b"))
        ticker.cancel(first)
        ticker.fire()
        assert seen == ["b"]

    def test_callbacks_requested_during_fire_wait_for_next(self):
        ticker = ManualTicker()
        seen = []

        def first():
            seen.append("first")
            ticker.request(lambda: seen.append("second"))

        ticker.request(first)
        ticker.fire()
        assert seen == ["first"]
        ticker.fire()
        assert seen == ["first", "second"]


class TestRenderScheduler:
    def test_mark_dirty_coalesces(self):
        scheduler, ticker, calls = _make_scheduler()
        for _ in range(100):
            scheduler.mark_dirty()
        assert ticker.requests == 1
        assert scheduler.has_pending_tick
        ticker.fire()
        assert calls == [1]
        assert not scheduler.dirty
        assert not scheduler.has_pending_tick

    def test_new_tick_after_paint(self):
        scheduler, ticker, calls = _make_scheduler()
        scheduler.mark_dirty()
        ticker.fire()
        scheduler.mark_dirty()
        assert ticker.requests == 2
        ticker.fire()
        assert len(calls) == 2

    def test_flush_paints_immediately(self):
        scheduler, ticker, calls = _make_scheduler()
        scheduler.mark_dirty()
        scheduler.flush()
        assert calls == [1]
        assert ticker.pending == 0
        assert scheduler.paints == 1

    def test_flush_when_clean_is_noop(self):
        scheduler, _, calls = _make_scheduler()
        scheduler.flush()
        assert calls == []

    def test_cancel_drops_pending_paint(self):
        scheduler, ticker, calls = _make_scheduler()
        scheduler.mark_dirty()
        scheduler.cancel()
        assert ticker.pending == 0
        assert not scheduler.dirty
        ticker.fire()
        assert calls == []


class TestAsyncioTicker:
    def test_defers_without_running_loop(self):
        calls = []
        scheduler = RenderScheduler(AsyncioTicker(), lambda: calls.append(1))
        scheduler.mark_dirty()
        scheduler.mark_dirty()
        assert calls == []
        assert scheduler.dirty
        assert not scheduler.has_pending_tick
        scheduler.flush()
        assert calls == [1]

    @pytest.mark.asyncio()
    async def test_paints_on_event_loop(self):
        calls = []
        scheduler = RenderScheduler(AsyncioTicker(interval=0.001), lambda: calls.append(1))
        scheduler.mark_dirty()
        scheduler.mark_dirty()
        await asyncio.sleep(0.02)
        assert calls == [1]

    @pytest.mark.asyncio()
    async def test_cancel_prevents_paint(self):
        calls = []
        scheduler = RenderScheduler(AsyncioTicker(interval=0.005), lambda: calls.append(1))
        scheduler.mark_dirty()
        scheduler.cancel()
        await asyncio.sleep(0.02)
        assert calls == []
