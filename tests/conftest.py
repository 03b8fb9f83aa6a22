"""Shared fixtures for gateway-telemetry tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from gateway_telemetry.types import (
    LogPage,
    RequestLogRecord,
    SpendingReport,
    StatsSummary,
    TelemetryConfig,
    parse_instant,
)

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_row(
    id: int = 1,
    created_at: str | datetime = "2024-05-01T10:05:00Z",
    status_code: int = 200,
    response_time_ms: float = 100,
    **fields,
) -> RequestLogRecord:
    fields.setdefault("model_id", "gpt-4o")
    fields.setdefault("provider_type", "openai")
    return RequestLogRecord(
        id=id,
        created_at=parse_instant(created_at),
        status_code=status_code,
        response_time_ms=response_time_ms,
        **fields,
    )


class FakeTelemetrySource:
    """In-memory TelemetrySource.

    Records every call's params. ``gate()`` makes the next request-log call
    block until the returned event is set, for ordering tests.
    """

    def __init__(self, rows=(), summary: StatsSummary | None = None,
                 report: SpendingReport | None = None):
        self.rows = tuple(rows)
        self.summary = summary or StatsSummary()
        self.report = report or SpendingReport()
        self.log_calls: list[dict] = []
        self.summary_calls: list[dict] = []
        self.spending_calls: list[dict] = []
        self.error: Exception | None = None
        self._gates: list[tuple[asyncio.Event, tuple[RequestLogRecord, ...] | None]] = []

    def gate(self, rows=None) -> asyncio.Event:
        event = asyncio.Event()
        self._gates.append((event, tuple(rows) if rows is not None else None))
        return event

    async def query_request_logs(self, params: dict) -> LogPage:
        self.log_calls.append(dict(params))
        rows = self.rows
        if self._gates:
            event, gated_rows = self._gates.pop(0)
            await event.wait()
            if gated_rows is not None:
                rows = gated_rows
        if self.error is not None:
            raise self.error
        return LogPage(items=rows, total=len(rows), limit=params.get("limit", 0),
                       offset=params.get("offset", 0))

    async def query_summary(self, params: dict) -> StatsSummary:
        self.summary_calls.append(dict(params))
        if self.error is not None:
            raise self.error
        return self.summary

    async def query_spending_report(self, params: dict) -> SpendingReport:
        self.spending_calls.append(dict(params))
        if self.error is not None:
            raise self.error
        return self.report


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def fake_source() -> FakeTelemetrySource:
    return FakeTelemetrySource()


@pytest.fixture
def fast_config() -> TelemetryConfig:
    """Defaults with tiny debounce delays so tests run quickly."""
    config = TelemetryConfig()
    config.debounce.request_logs_s = 0.01
    config.debounce.operations_s = 0.01
    config.debounce.spending_s = 0.01
    return config
