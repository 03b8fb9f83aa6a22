"""Time-bucketed aggregation over a fetched window of request-log rows."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Iterable, Sequence

from ..types import RequestLogRecord, StatsSummary, TimeBucket, WindowTotals

PERCENTILE_FRACTIONS = (0.50, 0.95, 0.99)


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def percentile(sorted_values: Sequence[float], fraction: float) -> float:
    """Nearest-rank percentile: ``sorted_values[floor(n * fraction)]``.

    No interpolation between adjacent ranks. Returns 0 for an empty list.
    """
    if not sorted_values:
        return 0
    index = min(math.floor(len(sorted_values) * fraction), len(sorted_values) - 1)
    return sorted_values[index]


def bucket_start(created_at: datetime, time_range: str, tz: tzinfo) -> datetime:
    """Floor an instant to its bucket start in ``tz``.

    5-minute buckets for "1h", hourly for "24h", daily otherwise.
    """
    local = created_at.astimezone(tz)
    if time_range == "1h":
        return local.replace(minute=local.minute - local.minute % 5, second=0, microsecond=0)
    if time_range == "24h":
        return local.replace(minute=0, second=0, microsecond=0)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def bucket_label(start: datetime, time_range: str) -> str:
    if time_range in ("1h", "24h"):
        return start.strftime("%H:%M")
    return start.strftime("%m/%d")


@dataclass
class _Accumulator:
    start: datetime
    requests: int = 0
    errors: int = 0
    status_2xx: int = 0
    status_4xx: int = 0
    status_5xx: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost_micros: int = 0
    latencies: list[float] = field(default_factory=list)

    def add(self, row: RequestLogRecord) -> None:
        self.requests += 1
        code = row.status_code
        if code >= 400:
            self.errors += 1
        if 200 <= code < 300:
            self.status_2xx += 1
        elif 400 <= code < 500:
            self.status_4xx += 1
        elif 500 <= code < 600:
            self.status_5xx += 1
        self.latencies.append(row.response_time_ms)
        # Absent counts as zero for sums only; coverage tracks absence.
        self.input_tokens += row.input_tokens or 0
        self.output_tokens += row.output_tokens or 0
        self.cost_micros += row.total_cost_user_currency_micros or 0

    def finalize(self, label: str) -> TimeBucket:
        ordered = sorted(self.latencies)
        p50, p95, p99 = (percentile(ordered, f) for f in PERCENTILE_FRACTIONS)
        return TimeBucket(
            label=label,
            start=self.start,
            requests=self.requests,
            errors=self.errors,
            avg_latency_ms=round_half_up(sum(ordered) / len(ordered)),
            p50_latency_ms=p50,
            p95_latency_ms=p95,
            p99_latency_ms=p99,
            status_2xx=self.status_2xx,
            status_4xx=self.status_4xx,
            status_5xx=self.status_5xx,
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            cost_micros=self.cost_micros,
        )


def bucket_logs(
    rows: Iterable[RequestLogRecord],
    time_range: str,
    tz: tzinfo | None = None,
) -> list[TimeBucket]:
    """Aggregate rows into time buckets.

    Buckets are created lazily from observed rows and returned in
    chronological order. Buckets are keyed by their start instant, so equal
    labels on different days (e.g. two "10:00" hours in a 24h window) stay
    separate.
    """
    tz = tz or timezone.utc
    ordered = sorted(rows, key=lambda r: r.created_at)
    buckets: dict[datetime, _Accumulator] = {}
    for row in ordered:
        start = bucket_start(row.created_at, time_range, tz)
        acc = buckets.get(start)
        if acc is None:
            acc = buckets[start] = _Accumulator(start=start)
        acc.add(row)
    return [acc.finalize(bucket_label(start, time_range)) for start, acc in buckets.items()]


def summarize_rows(rows: Iterable[RequestLogRecord]) -> WindowTotals:
    """Totals over a whole window of rows."""
    rows = list(rows)
    if not rows:
        return WindowTotals()
    latencies = sorted(r.response_time_ms for r in rows)
    errors = sum(1 for r in rows if r.status_code >= 400)
    input_tokens = sum(r.input_tokens or 0 for r in rows)
    output_tokens = sum(r.output_tokens or 0 for r in rows)
    return WindowTotals(
        requests=len(rows),
        errors=errors,
        success_rate=round((len(rows) - errors) / len(rows) * 100, 1),
        avg_latency_ms=round_half_up(sum(latencies) / len(latencies)),
        p95_latency_ms=percentile(latencies, 0.95),
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        total_tokens=sum(r.total_tokens or 0 for r in rows),
        cost_micros=sum(r.total_cost_user_currency_micros or 0 for r in rows),
    )


def success_rate(summary: StatsSummary | None) -> float:
    """Percent of successful requests in a server summary, 0 when empty."""
    if summary is None or summary.total_requests <= 0:
        return 0.0
    return round(summary.success_count / summary.total_requests * 100, 1)
