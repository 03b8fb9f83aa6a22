"""Tests for DebouncedScheduler."""

from __future__ import annotations

import asyncio
import logging

import pytest

from gateway_telemetry.core.scheduler import DebouncedScheduler


class TestDebouncedScheduler:
    @pytest.mark.asyncio
    async def test_reschedule_resets_timer(self):
        calls: list[int] = []
        scheduler = DebouncedScheduler(0.03, lambda: calls.append(1))
        for _ in range(5):
            scheduler.schedule()
            await asyncio.sleep(0.005)
        assert calls == []
        await asyncio.sleep(0.06)
        assert calls == [1]
        assert scheduler.generation == 1
        assert not scheduler.pending

    @pytest.mark.asyncio
    async def test_cancel(self):
        calls: list[int] = []
        scheduler = DebouncedScheduler(0.01, lambda: calls.append(1))
        scheduler.schedule()
        scheduler.cancel()
        await asyncio.sleep(0.03)
        assert calls == []
        assert scheduler.generation == 0

    @pytest.mark.asyncio
    async def test_flush_runs_immediately(self):
        done = asyncio.Event()

        async def callback():
            done.set()
            return "ok"

        scheduler = DebouncedScheduler(10.0, callback)
        scheduler.schedule()
        task = scheduler.flush()
        assert task is not None
        assert await task == "ok"
        assert done.is_set()
        assert not scheduler.pending

    @pytest.mark.asyncio
    async def test_flush_without_pending_is_noop(self):
        scheduler = DebouncedScheduler(0.01, lambda: None)
        assert scheduler.flush() is None
        assert scheduler.generation == 0

    @pytest.mark.asyncio
    async def test_failing_callback_is_logged(self, caplog):
        async def boom():
            raise RuntimeError("fetch exploded")

        scheduler = DebouncedScheduler(0.0, boom)
        with caplog.at_level(logging.ERROR, logger="gateway_telemetry.core.scheduler"):
            scheduler.schedule()
            await asyncio.sleep(0.01)
            await scheduler.drain()
        assert "fetch exploded" in caplog.text
