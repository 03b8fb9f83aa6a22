"""TelemetryFetcher: turn filter snapshots into gateway queries.

Each fetch is tagged with a monotonically increasing token. A response is
applied only while its token is still the latest issued, so a slow response
for a superseded filter state never overwrites a newer one (issue order
wins, not arrival order).
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

import httpx

from ..types import (
    GatewayAPIError,
    LogPage,
    OperationsFilter,
    RequestLogRecord,
    RequestLogsFilter,
    SpendingFilter,
    SpendingReport,
    StatsSummary,
    TelemetrySource,
    format_instant,
)
from .spending import build_spending_params

logger = logging.getLogger(__name__)

PRESET_WINDOWS: dict[str, timedelta] = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
}

FETCH_ERRORS = (GatewayAPIError, httpx.HTTPError, asyncio.TimeoutError)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resolve_from_time(time_range: str, now: datetime) -> datetime | None:
    """Start of a relative preset window; None for "all"."""
    window = PRESET_WINDOWS.get(time_range)
    if window is None:
        return None
    return now - window


def build_log_params(
    state: RequestLogsFilter | OperationsFilter,
    now: datetime,
    limit: int | None = None,
) -> dict[str, Any]:
    """Request-log query parameters for a filter snapshot.

    ID and enum filters are sent only when not at their "all" sentinel.
    ``limit`` overrides the state's page size (the operations screen pulls
    one large window instead of paging).
    """
    params: dict[str, Any] = {}
    if state.model_id:
        params["model_id"] = state.model_id
    if state.provider_type != "all":
        params["provider_type"] = state.provider_type
    if state.connection_id is not None:
        params["connection_id"] = state.connection_id
    endpoint_id = getattr(state, "endpoint_id", None)
    if endpoint_id is not None:
        params["endpoint_id"] = endpoint_id

    from_time = resolve_from_time(state.time_range, now)
    if from_time is not None:
        params["from_time"] = format_instant(from_time)

    if limit is not None:
        params["limit"] = limit
    elif hasattr(state, "limit"):
        params["limit"] = state.limit
        params["offset"] = state.offset
    return params


def summary_params(params: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in params.items() if k not in ("limit", "offset")}


@dataclass(frozen=True)
class FetchResult:
    """An applied request-log fetch. Replaced wholesale, never patched."""
    rows: tuple[RequestLogRecord, ...]
    total: int
    summary: StatsSummary | None
    token: int
    fetched_at: float

    @property
    def items(self) -> tuple[RequestLogRecord, ...]:
        return self.rows


@dataclass(frozen=True)
class SpendingResult:
    report: SpendingReport
    token: int
    fetched_at: float


class _GuardedFetcher:
    """Token bookkeeping shared by the row and spending fetch cycles."""

    label = "fetch"

    def __init__(
        self,
        source: TelemetrySource,
        *,
        clock: Callable[[], datetime] | None = None,
        timeout: float | None = None,
    ) -> None:
        self.source = source
        self.clock = clock or utc_now
        self.timeout = timeout
        self.last_error: str | None = None
        self._issued = 0
        self._applied = 0

    @property
    def latest_token(self) -> int:
        return self._issued

    @property
    def loading(self) -> bool:
        return self._applied < self._issued

    def is_current(self, token: int) -> bool:
        return token == self._issued

    async def _run(self, call: Awaitable[Any]) -> tuple[int, Any] | None:
        """Await ``call`` under a fresh token.

        Returns ``(token, value)`` when the value should be applied, None when
        the call failed or was superseded. Failures of the latest fetch are
        recorded in ``last_error``; the previous good result is kept.
        """
        self._issued += 1
        token = self._issued
        try:
            if self.timeout:
                value = await asyncio.wait_for(call, self.timeout)
            else:
                value = await call
        except FETCH_ERRORS as exc:
            if not self.is_current(token):
                logger.debug("Ignoring failure of superseded %s #%d: %s", self.label, token, exc)
                return None
            self._applied = token
            self.last_error = str(exc) or type(exc).__name__
            logger.warning("%s #%d failed: %s", self.label.capitalize(), token, self.last_error)
            return None
        except BaseException:
            # Unexpected errors propagate, but loading must still clear.
            if self.is_current(token):
                self._applied = max(self._applied, token)
            raise

        if not self.is_current(token):
            logger.debug(
                "Discarding stale %s #%d (latest is #%d)", self.label, token, self._issued,
            )
            return None
        self._applied = token
        self.last_error = None
        return token, value


class LogFetcher(_GuardedFetcher):
    """Row-query cycle: request logs, plus the summary when asked for."""

    label = "request log fetch"

    def __init__(
        self,
        source: TelemetrySource,
        *,
        clock: Callable[[], datetime] | None = None,
        include_summary: bool = False,
        fetch_limit: int | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(source, clock=clock, timeout=timeout)
        self.include_summary = include_summary
        self.fetch_limit = fetch_limit
        self.result: FetchResult | None = None

    @property
    def rows(self) -> tuple[RequestLogRecord, ...]:
        return self.result.rows if self.result is not None else ()

    @property
    def total(self) -> int:
        return self.result.total if self.result is not None else 0

    @property
    def summary(self) -> StatsSummary | None:
        return self.result.summary if self.result is not None else None

    async def _query(self, params: dict[str, Any]) -> tuple[LogPage, StatsSummary | None]:
        if not self.include_summary:
            return await self.source.query_request_logs(params), None
        tasks = (
            asyncio.ensure_future(self.source.query_request_logs(params)),
            asyncio.ensure_future(self.source.query_summary(summary_params(params))),
        )
        try:
            page, summary = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        return page, summary

    async def refresh(self, state: RequestLogsFilter | OperationsFilter) -> bool:
        """Fetch for ``state``. Returns True when the result was applied."""
        params = build_log_params(state, self.clock(), self.fetch_limit)
        logger.debug("Fetching request logs: %s", params)
        outcome = await self._run(self._query(params))
        if outcome is None:
            return False
        token, (page, summary) = outcome
        self.result = FetchResult(
            rows=tuple(page.items),
            total=page.total,
            summary=summary,
            token=token,
            fetched_at=time.time(),
        )
        logger.debug("Applied request log fetch #%d: %d of %d rows", token, len(page.items), page.total)
        return True


class SpendingFetcher(_GuardedFetcher):
    """Spending cycle; independent of the row-query cycle."""

    label = "spending fetch"

    def __init__(
        self,
        source: TelemetrySource,
        *,
        clock: Callable[[], datetime] | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(source, clock=clock, timeout=timeout)
        self.result: SpendingResult | None = None

    @property
    def report(self) -> SpendingReport | None:
        return self.result.report if self.result is not None else None

    async def refresh(self, state: SpendingFilter) -> bool:
        params = build_spending_params(state)
        logger.debug("Fetching spending report: %s", params)
        outcome = await self._run(self.source.query_spending_report(params))
        if outcome is None:
            return False
        token, report = outcome
        self.result = SpendingResult(report=report, token=token, fetched_at=time.time())
        return True
