"""End-to-end tests for the screen controllers with a fake gateway."""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeTelemetrySource, make_row
from gateway_telemetry.core.dashboard import (
    OperationsScreen,
    RequestLogsScreen,
    SpendingScreen,
    StatisticsDashboard,
    resolve_timezone,
)
from gateway_telemetry.types import (
    SpendingGroup,
    SpendingReport,
    SpendingSummary,
    StatsSummary,
)


@pytest.fixture
def rows():
    return [
        make_row(1, "2024-05-01T10:05:00Z", response_time_ms=120, cache_read_input_tokens=0),
        make_row(2, "2024-05-01T10:40:00Z", response_time_ms=900, status_code=500),
        make_row(3, "2024-05-01T11:10:00Z", response_time_ms=50, reasoning_tokens=8),
    ]


class TestRequestLogsScreen:
    @pytest.mark.asyncio
    async def test_query_restores_state_and_fetch_uses_it(self, rows, fixed_clock, fast_config):
        source = FakeTelemetrySource(rows)
        screen = RequestLogsScreen(
            source, fast_config, "time_range=1h&limit=25&triage=slowest", clock=fixed_clock,
        )
        await screen.refresh()
        assert source.log_calls[0]["limit"] == 25
        assert source.log_calls[0]["from_time"] == "2024-05-01T11:00:00.000Z"
        assert [r.id for r in screen.visible_rows] == [2, 1, 3]
        assert screen.page.total == 3

    @pytest.mark.asyncio
    async def test_mutation_schedules_debounced_fetch(self, rows, fixed_clock, fast_config):
        source = FakeTelemetrySource(rows)
        published: list[dict] = []
        screen = RequestLogsScreen(source, fast_config, clock=fixed_clock, on_persist=published.append)
        screen.store.update(connection_id=4)
        screen.store.update(endpoint_id=9)
        await asyncio.sleep(0.05)
        await screen.settle()
        assert len(source.log_calls) == 1
        assert source.log_calls[0]["connection_id"] == 4
        assert source.log_calls[0]["endpoint_id"] == 9
        assert published[-1] == {"connection_id": "4", "endpoint_id": "9"}
        screen.close()

    @pytest.mark.asyncio
    async def test_late_response_for_older_state_is_discarded(self, fixed_clock, fast_config):
        source = FakeTelemetrySource([make_row(2, model_id="new")])
        old_gate = source.gate([make_row(1, model_id="old")])
        screen = RequestLogsScreen(source, fast_config, clock=fixed_clock)

        screen.store.update(model_id="old")
        older = screen.scheduler.flush()
        await asyncio.sleep(0)
        assert screen.loading

        screen.store.update(model_id="new")
        newer = screen.scheduler.flush()
        assert await newer is True
        assert [r.model_id for r in screen.fetcher.rows] == ["new"]

        old_gate.set()
        assert await older is False
        assert [r.model_id for r in screen.fetcher.rows] == ["new"]
        assert [c["model_id"] for c in source.log_calls] == ["old", "new"]
        assert not screen.loading
        screen.close()

    @pytest.mark.asyncio
    async def test_settle_flushes_pending(self, rows, fixed_clock):
        source = FakeTelemetrySource(rows)
        screen = RequestLogsScreen(source, None, clock=fixed_clock)
        screen.store.update(view="errors")
        await screen.settle()
        assert len(source.log_calls) == 1
        assert "error" in screen.columns
        assert screen.coverage.total_rows == 3


class TestOperationsScreen:
    @pytest.mark.asyncio
    async def test_buckets_coverage_and_summary(self, rows, fixed_clock, fast_config):
        summary = StatsSummary(total_requests=3, success_count=2, error_count=1)
        source = FakeTelemetrySource(rows, summary=summary)
        screen = OperationsScreen(source, fast_config, {"special_token_filter": "has_cached"},
                                  clock=fixed_clock)
        await screen.refresh()
        assert source.log_calls[0]["limit"] == 500
        assert [(b.label, b.requests) for b in screen.buckets] == [("10:00", 2), ("11:00", 1)]
        assert [r.id for r in screen.filtered_rows] == [1]
        assert screen.coverage.cached_captured == 1
        assert screen.totals.requests == 3
        assert screen.success_rate == 66.7


class TestSpendingScreen:
    @pytest.mark.asyncio
    async def test_derived_views(self, fast_config):
        report = SpendingReport(
            summary=SpendingSummary(total_cost_micros=200, successful_request_count=4,
                                    priced_request_count=2),
            groups=(SpendingGroup("gpt-4o", total_requests=2, total_cost_micros=100),),
            groups_total=1,
        )
        screen = SpendingScreen(FakeTelemetrySource(report=report), fast_config)
        assert screen.group_metrics == []
        assert screen.page.total == 0
        await screen.refresh()
        [metrics] = screen.group_metrics
        assert metrics.percent_of_total == 50.0
        assert screen.priced_percent == 50.0
        assert screen.page.total == 1
        assert screen.leaderboards == {"models": [], "endpoints": []}


class TestStatisticsDashboard:
    @pytest.mark.asyncio
    async def test_cycles_are_independent(self, rows, fixed_clock, fast_config):
        source = FakeTelemetrySource(rows)
        dashboard = StatisticsDashboard(source, fast_config, clock=fixed_clock)
        dashboard.spending.store.update(group_by="provider")
        await dashboard.settle()
        assert len(source.spending_calls) == 1
        assert source.log_calls == []
        dashboard.operations.store.update(time_range="7d")
        await dashboard.settle()
        assert len(source.log_calls) == 1
        assert len(source.spending_calls) == 1
        dashboard.close()

    def test_owner_cache_only_with_resolver(self, fast_config):
        dashboard = StatisticsDashboard(FakeTelemetrySource(), fast_config)
        assert dashboard.owners is None


class TestResolveTimezone:
    def test_utc_and_unknown(self):
        assert resolve_timezone("UTC").utcoffset(None).total_seconds() == 0
        assert resolve_timezone("Not/AZone").utcoffset(None).total_seconds() == 0
