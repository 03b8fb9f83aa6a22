"""Special-token coverage: which optional metrics the upstream actually reported.

A metric is *captured* when it is present, including a reported zero.
Absence (``None``) and zero are never conflated here.
"""

from __future__ import annotations

from typing import Iterable

from ..types import CoverageStats, RequestLogRecord

REASON_FAILED = "request failed before usage accounting"
REASON_STREAM = "stream ended without usage event"
REASON_NOT_REPORTED = "upstream did not report this metric"


def has_metric(value: int | float | None) -> bool:
    return value is not None


def has_any_special_token(row: RequestLogRecord) -> bool:
    return (
        has_metric(row.cache_read_input_tokens)
        or has_metric(row.cache_creation_input_tokens)
        or has_metric(row.reasoning_tokens)
    )


def has_no_token_usage(row: RequestLogRecord) -> bool:
    return (
        not has_metric(row.input_tokens)
        and not has_metric(row.output_tokens)
        and not has_metric(row.total_tokens)
    )


def metric_unavailable_reason(row: RequestLogRecord, value: int | float | None) -> str:
    """Advisory text for an absent metric; empty when the metric is present."""
    if has_metric(value):
        return ""
    if row.status_code >= 400:
        return REASON_FAILED
    if row.is_stream:
        return REASON_STREAM
    return REASON_NOT_REPORTED


def matches_special_token_filter(row: RequestLogRecord, mode: str) -> bool:
    if mode == "has_cached":
        return has_metric(row.cache_read_input_tokens)
    if mode == "has_reasoning":
        return has_metric(row.reasoning_tokens)
    if mode == "has_any_special":
        return has_any_special_token(row)
    if mode == "missing_special":
        return not has_any_special_token(row)
    return True


def filter_special_tokens(
    rows: Iterable[RequestLogRecord], mode: str,
) -> list[RequestLogRecord]:
    return [row for row in rows if matches_special_token_filter(row, mode)]


def analyze_coverage(rows: Iterable[RequestLogRecord]) -> CoverageStats:
    total = cached = reasoning = any_special = no_usage = 0
    for row in rows:
        total += 1
        if has_metric(row.cache_read_input_tokens):
            cached += 1
        if has_metric(row.reasoning_tokens):
            reasoning += 1
        if has_any_special_token(row):
            any_special += 1
        if has_no_token_usage(row):
            no_usage += 1
    return CoverageStats(
        total_rows=total,
        cached_captured=cached,
        reasoning_captured=reasoning,
        any_special_captured=any_special,
        no_token_usage=no_usage,
    )
