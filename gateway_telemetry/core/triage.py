"""Triage orderings and the Request Logs local row filters."""

from __future__ import annotations

from typing import Callable, Iterable

from ..types import RequestLogRecord, RequestLogsFilter
from .coverage import matches_special_token_filter

SORT_KEYS: dict[str, Callable[[RequestLogRecord], float]] = {
    "slowest": lambda r: r.response_time_ms,
    "expensive": lambda r: r.total_cost_user_currency_micros or 0,
    "most_tokens": lambda r: r.total_tokens or 0,
}

FILTER_MODES: dict[str, Callable[[RequestLogRecord], bool]] = {
    "errors_only": lambda r: r.status_code >= 400,
    "unpriced_only": lambda r: not r.priced_flag,
}


def triage_rows(rows: Iterable[RequestLogRecord], mode: str) -> list[RequestLogRecord]:
    """Rank or narrow rows for outlier investigation.

    Sort modes are descending and stable, so equal keys keep their
    original order. Filter modes drop rows and keep order. ``"none"`` and
    unknown modes return the rows unchanged.
    """
    rows = list(rows)
    key = SORT_KEYS.get(mode)
    if key is not None:
        return sorted(rows, key=key, reverse=True)
    keep = FILTER_MODES.get(mode)
    if keep is not None:
        return [row for row in rows if keep(row)]
    return rows


def top_rows(rows: Iterable[RequestLogRecord], mode: str, n: int) -> list[RequestLogRecord]:
    return triage_rows(rows, mode)[:max(0, n)]


def matches_latency_bucket(bucket: str, response_time_ms: float) -> bool:
    if bucket == "under_500ms":
        return response_time_ms < 500
    if bucket == "between_500ms_1s":
        return 500 <= response_time_ms < 1000
    if bucket == "between_1s_3s":
        return 1000 <= response_time_ms < 3000
    if bucket == "over_3s":
        return response_time_ms >= 3000
    return True


def matches_search(row: RequestLogRecord, query: str) -> bool:
    needle = query.lower()
    return (
        needle in row.model_id.lower()
        or needle in row.provider_type.lower()
        or needle in row.endpoint_label.lower()
        or needle in (row.error_detail or "").lower()
        or needle in str(row.status_code)
        or needle in str(row.id)
    )


def _keep(row: RequestLogRecord, state: RequestLogsFilter) -> bool:
    if state.search and not matches_search(row, state.search):
        return False
    if not matches_latency_bucket(state.latency_bucket, row.response_time_ms):
        return False

    total_tokens = row.total_tokens or 0
    if state.token_min is not None and total_tokens < state.token_min:
        return False
    if state.token_max is not None and total_tokens > state.token_max:
        return False

    if state.priced_only and not row.priced_flag:
        return False
    if state.billable_only and not row.billable_flag:
        return False
    if not matches_special_token_filter(row, state.special_token_filter):
        return False

    if state.outcome_filter == "success" and row.status_code >= 400:
        return False
    if state.outcome_filter == "error" and row.status_code < 400:
        return False
    if state.stream_filter == "stream" and not row.is_stream:
        return False
    if state.stream_filter == "non_stream" and row.is_stream:
        return False
    return True


def filter_rows(
    rows: Iterable[RequestLogRecord], state: RequestLogsFilter,
) -> list[RequestLogRecord]:
    """Apply every local filter of the Request Logs screen, then triage."""
    return triage_rows((row for row in rows if _keep(row, state)), state.triage)
