"""Spending report: request parameters, time windows and client-side ratios.

Grouped totals come from the gateway; everything here is derived locally
from those totals and never mutates them.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Literal

from ..types import (
    GroupMetrics,
    LogPage,
    PageWindow,
    SpendingFilter,
    SpendingGroup,
    SpendingReport,
    SpendingSummary,
    TopSpendingItem,
    format_instant,
)

_END_OF_DAY = time(23, 59, 59, 999_000)

PRESET_LOOKBACK = {
    "last_7_days": timedelta(days=7),
    "last_30_days": timedelta(days=30),
}


def date_boundary(value: str, boundary: Literal["start", "end"] = "start") -> datetime | None:
    """Convert a ``YYYY-MM-DD`` calendar date to a UTC day-boundary instant.

    The start boundary is ``00:00:00.000`` and the end boundary is
    ``23:59:59.999`` of the same day. Returns None for blank or invalid input.
    """
    if not value:
        return None
    try:
        day = date.fromisoformat(value.strip())
    except ValueError:
        return None
    clock = _END_OF_DAY if boundary == "end" else time(0, 0)
    return datetime.combine(day, clock, tzinfo=timezone.utc)


def resolve_custom_range(from_date: str, to_date: str) -> tuple[datetime | None, datetime | None]:
    """Inclusive custom range; either bound may be open."""
    return date_boundary(from_date, "start"), date_boundary(to_date, "end")


def resolve_spending_window(
    state: SpendingFilter, now: datetime,
) -> tuple[datetime | None, datetime | None]:
    """The concrete window a spending preset covers at ``now``."""
    if state.preset == "custom":
        return resolve_custom_range(state.from_date, state.to_date)
    if state.preset == "today":
        midnight = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
        return midnight, now
    lookback = PRESET_LOOKBACK.get(state.preset)
    if lookback is not None:
        return now - lookback, now
    return None, None


def build_spending_params(state: SpendingFilter) -> dict:
    """Request parameters for the spending-report endpoint.

    The preset is resolved server-side; only a custom range sends explicit
    bounds.
    """
    params: dict = {"preset": state.preset}
    if state.preset == "custom":
        start, end = resolve_custom_range(state.from_date, state.to_date)
        if start is not None:
            params["from_time"] = format_instant(start)
        if end is not None:
            params["to_time"] = format_instant(end)
    if state.provider_type != "all":
        params["provider_type"] = state.provider_type
    if state.model_id:
        params["model_id"] = state.model_id
    if state.connection_id is not None:
        params["connection_id"] = state.connection_id
    params["group_by"] = state.group_by
    params["limit"] = state.limit
    params["offset"] = state.offset
    params["top_n"] = state.top_n
    return params


def _ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    if not denominator:
        return 0.0
    return numerator / denominator * scale


def percent_of_total(cost_micros: int, summary: SpendingSummary) -> float:
    return _ratio(cost_micros, summary.total_cost_micros, 100)


def group_metrics(group: SpendingGroup, summary: SpendingSummary) -> GroupMetrics:
    return GroupMetrics(
        group=group,
        percent_of_total=percent_of_total(group.total_cost_micros, summary),
        cost_per_request_micros=_ratio(group.total_cost_micros, group.total_requests),
        cost_per_1k_tokens_micros=_ratio(group.total_cost_micros, group.total_tokens, 1000),
        tokens_per_request=_ratio(group.total_tokens, group.total_requests),
        priced_percent=_ratio(group.priced_requests, group.total_requests, 100),
    )


def derive_group_metrics(report: SpendingReport) -> list[GroupMetrics]:
    return [group_metrics(g, report.summary) for g in report.groups]


def priced_percent(summary: SpendingSummary) -> float:
    """Priced share of successful requests (denominator floors at 1)."""
    return summary.priced_request_count / (summary.successful_request_count or 1) * 100


def top_spending_items(report: SpendingReport) -> dict[str, list[TopSpendingItem]]:
    """Leaderboard slices sized by ``top_n``, independent of group paging."""
    summary = report.summary
    models = [
        TopSpendingItem(
            label=m.model_id,
            cost_micros=m.total_cost_micros,
            percent_of_total=percent_of_total(m.total_cost_micros, summary),
        )
        for m in report.top_spending_models
    ]
    endpoints = [
        TopSpendingItem(
            label=e.endpoint_label,
            cost_micros=e.total_cost_micros,
            percent_of_total=percent_of_total(e.total_cost_micros, summary),
        )
        for e in report.top_spending_endpoints
    ]
    return {"models": models, "endpoints": endpoints}


def pagination(result: SpendingReport | LogPage | Any, state: Any) -> PageWindow:
    """Paging position for spending groups or a page of request-log rows."""
    if isinstance(result, SpendingReport):
        total, shown = result.groups_total, len(result.groups)
    else:
        total, shown = result.total, len(result.items)
    return PageWindow(offset=state.offset, limit=state.limit, total=total, shown=shown)
