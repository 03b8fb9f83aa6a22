"""Screen controllers: a filter store, its debounce timer and its fetch cycle.

Each screen owns one ``FilterStateStore``; every settled mutation restarts
the screen's debounce timer, and the timer runs the screen's fetcher against
the state current at fire time. Derived views (visible rows, buckets,
coverage, spending ratios) are recomputed from the latest applied result.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone, tzinfo
from typing import Any, Callable, Generic, Mapping, TypeVar
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..types import (
    CoverageStats,
    GroupMetrics,
    OwnerResolver,
    PageWindow,
    RequestLogRecord,
    SpendingReport,
    TelemetryConfig,
    TelemetrySource,
    TimeBucket,
    TopSpendingItem,
    WindowTotals,
)
from .aggregation import bucket_logs, success_rate, summarize_rows
from .coverage import analyze_coverage, filter_special_tokens
from .fetcher import LogFetcher, SpendingFetcher
from .filter_store import FilterStateStore
from .owner_cache import OwnerLookupCache
from .query_codec import QueryStateCodec
from .scheduler import DebouncedScheduler
from .screens import OPERATIONS_CODEC, REQUEST_LOGS_CODEC, SPENDING_CODEC, visible_columns
from .spending import derive_group_metrics, pagination, priced_percent, top_spending_items
from .triage import filter_rows

logger = logging.getLogger(__name__)

S = TypeVar("S")
Persisted = Mapping[str, Any] | str | None


def resolve_timezone(name: str) -> tzinfo:
    """Display timezone by IANA name; unknown names fall back to UTC."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone %r, using UTC", name)
        return timezone.utc


class _Screen(Generic[S]):
    def __init__(
        self,
        codec: QueryStateCodec[S],
        fetcher: LogFetcher | SpendingFetcher,
        delay: float,
        query: Persisted = None,
        on_persist: Callable[[dict[str, str]], None] | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.scheduler = DebouncedScheduler(delay, self.refresh)
        self.store: FilterStateStore[S] = FilterStateStore.from_query(
            codec, query or {}, scheduler=self.scheduler, on_persist=on_persist,
        )

    @property
    def state(self) -> S:
        return self.store.state

    @property
    def loading(self) -> bool:
        return self.fetcher.loading

    @property
    def error(self) -> str | None:
        return self.fetcher.last_error

    async def refresh(self) -> bool:
        """Fetch for the current state immediately."""
        return await self.fetcher.refresh(self.store.state)

    async def settle(self) -> None:
        """Fire a pending debounce now and wait for every started fetch."""
        task = self.scheduler.flush()
        if task is not None:
            await task
        await self.scheduler.drain()

    def close(self) -> None:
        self.scheduler.cancel()


class RequestLogsScreen(_Screen):
    """Paged request-log table with local filters, triage and column views."""

    def __init__(
        self,
        source: TelemetrySource,
        config: TelemetryConfig | None = None,
        query: Persisted = None,
        *,
        clock: Callable[[], datetime] | None = None,
        on_persist: Callable[[dict[str, str]], None] | None = None,
    ) -> None:
        config = config or TelemetryConfig()
        fetcher = LogFetcher(source, clock=clock, timeout=config.api.timeout_s)
        super().__init__(
            REQUEST_LOGS_CODEC, fetcher, config.debounce.request_logs_s, query, on_persist,
        )

    @property
    def visible_rows(self) -> list[RequestLogRecord]:
        return filter_rows(self.fetcher.rows, self.state)

    @property
    def columns(self) -> tuple[str, ...]:
        return visible_columns(self.state.view)

    @property
    def coverage(self) -> CoverageStats:
        return analyze_coverage(self.visible_rows)

    @property
    def page(self) -> PageWindow:
        result = self.fetcher.result
        if result is None:
            return PageWindow(offset=self.state.offset, limit=self.state.limit, total=0, shown=0)
        return pagination(result, self.state)


class OperationsScreen(_Screen):
    """Operations tab: one large window of rows plus the server summary."""

    def __init__(
        self,
        source: TelemetrySource,
        config: TelemetryConfig | None = None,
        query: Persisted = None,
        *,
        clock: Callable[[], datetime] | None = None,
        on_persist: Callable[[dict[str, str]], None] | None = None,
    ) -> None:
        config = config or TelemetryConfig()
        fetcher = LogFetcher(
            source,
            clock=clock,
            include_summary=True,
            fetch_limit=config.operations_fetch_limit,
            timeout=config.api.timeout_s,
        )
        super().__init__(OPERATIONS_CODEC, fetcher, config.debounce.operations_s, query, on_persist)
        self.tz = resolve_timezone(config.timezone)

    @property
    def buckets(self) -> list[TimeBucket]:
        return bucket_logs(self.fetcher.rows, self.state.time_range, self.tz)

    @property
    def filtered_rows(self) -> list[RequestLogRecord]:
        return filter_special_tokens(self.fetcher.rows, self.state.special_token_filter)

    @property
    def coverage(self) -> CoverageStats:
        return analyze_coverage(self.filtered_rows)

    @property
    def totals(self) -> WindowTotals:
        return summarize_rows(self.fetcher.rows)

    @property
    def success_rate(self) -> float:
        return success_rate(self.fetcher.summary)


class SpendingScreen(_Screen):
    """Spending tab: grouped totals, leaderboards and group paging."""

    def __init__(
        self,
        source: TelemetrySource,
        config: TelemetryConfig | None = None,
        query: Persisted = None,
        *,
        on_persist: Callable[[dict[str, str]], None] | None = None,
    ) -> None:
        config = config or TelemetryConfig()
        fetcher = SpendingFetcher(source, timeout=config.api.timeout_s)
        super().__init__(SPENDING_CODEC, fetcher, config.debounce.spending_s, query, on_persist)

    @property
    def report(self) -> SpendingReport | None:
        return self.fetcher.report

    @property
    def group_metrics(self) -> list[GroupMetrics]:
        return derive_group_metrics(self.report) if self.report is not None else []

    @property
    def leaderboards(self) -> dict[str, list[TopSpendingItem]]:
        if self.report is None:
            return {"models": [], "endpoints": []}
        return top_spending_items(self.report)

    @property
    def priced_percent(self) -> float:
        return priced_percent(self.report.summary) if self.report is not None else 0.0

    @property
    def page(self) -> PageWindow:
        if self.report is None:
            return PageWindow(offset=self.state.offset, limit=self.state.limit, total=0, shown=0)
        return pagination(self.report, self.state)


class StatisticsDashboard:
    """The statistics page: operations and spending cycles side by side.

    The two cycles share nothing mutable; each writes only its own result.
    """

    def __init__(
        self,
        source: TelemetrySource,
        config: TelemetryConfig | None = None,
        *,
        operations_query: Persisted = None,
        spending_query: Persisted = None,
        clock: Callable[[], datetime] | None = None,
        owner_resolver: OwnerResolver | None = None,
        session: Any = None,
    ) -> None:
        self.operations = OperationsScreen(source, config, operations_query, clock=clock)
        self.spending = SpendingScreen(source, config, spending_query)
        self.owners = (
            OwnerLookupCache(owner_resolver, session) if owner_resolver is not None else None
        )

    async def settle(self) -> None:
        await self.operations.settle()
        await self.spending.settle()

    async def refresh(self) -> None:
        await self.operations.refresh()
        await self.spending.refresh()

    def switch_session(self, session: Any) -> None:
        if self.owners is not None:
            self.owners.switch_session(session)

    def close(self) -> None:
        self.operations.close()
        self.spending.close()
