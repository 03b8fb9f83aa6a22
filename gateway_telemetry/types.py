"""All dataclasses, Protocols, and type aliases for gateway-telemetry."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Protocol, runtime_checkable


# ---------------------------------------------------------------------------
# Enumerated choices
# ---------------------------------------------------------------------------

TimeRange = Literal["1h", "24h", "7d", "all"]
SpecialTokenFilter = Literal[
    "all", "has_cached", "has_reasoning", "has_any_special", "missing_special",
]
OutcomeFilter = Literal["all", "success", "error"]
StreamFilter = Literal["all", "stream", "non_stream"]
LatencyBucket = Literal[
    "all", "under_500ms", "between_500ms_1s", "between_1s_3s", "over_3s",
]
ViewType = Literal["overview", "performance", "tokens", "cost", "cache", "errors", "all"]
TriageMode = Literal[
    "none", "slowest", "expensive", "most_tokens", "errors_only", "unpriced_only",
]
SpendingPreset = Literal["today", "last_7_days", "last_30_days", "custom", "all"]
SpendingGroupBy = Literal[
    "none", "day", "week", "month", "provider", "model", "endpoint", "model_endpoint",
]

TIME_RANGES: tuple[str, ...] = ("1h", "24h", "7d", "all")
SPECIAL_TOKEN_FILTERS: tuple[str, ...] = (
    "all", "has_cached", "has_reasoning", "has_any_special", "missing_special",
)
OUTCOME_FILTERS: tuple[str, ...] = ("all", "success", "error")
STREAM_FILTERS: tuple[str, ...] = ("all", "stream", "non_stream")
LATENCY_BUCKETS: tuple[str, ...] = (
    "all", "under_500ms", "between_500ms_1s", "between_1s_3s", "over_3s",
)
VIEW_TYPES: tuple[str, ...] = (
    "overview", "performance", "tokens", "cost", "cache", "errors", "all",
)
TRIAGE_MODES: tuple[str, ...] = (
    "none", "slowest", "expensive", "most_tokens", "errors_only", "unpriced_only",
)
SPENDING_PRESETS: tuple[str, ...] = (
    "today", "last_7_days", "last_30_days", "custom", "all",
)
SPENDING_GROUP_BY: tuple[str, ...] = (
    "none", "day", "week", "month", "provider", "model", "endpoint", "model_endpoint",
)

REQUEST_LIMIT_OPTIONS: tuple[int, ...] = (25, 50, 100, 200)
DEFAULT_REQUEST_LIMIT = 100
SPENDING_LIMIT_OPTIONS: tuple[int, ...] = (10, 25, 50, 100)
DEFAULT_SPENDING_LIMIT = 25
TOP_N_MIN = 1
TOP_N_MAX = 50
DEFAULT_TOP_N = 5


def parse_instant(value: Any) -> datetime:
    """Parse an ISO-8601 instant. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_instant(value: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")


def _metric(raw: dict, key: str) -> int | float | None:
    """Read an optional metric. Absent, non-numeric or negative values are None."""
    value = raw.get(key)
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float)):
        try:
            value = float(value)
        except (TypeError, ValueError):
            return None
        if value.is_integer():
            value = int(value)
    if value < 0:
        return None
    return value


def _optional_int(raw: dict, key: str) -> int | None:
    value = raw.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_bool(raw: dict, key: str) -> bool | None:
    value = raw.get(key)
    if value is None:
        return None
    return bool(value)


# ---------------------------------------------------------------------------
# Request logs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RequestLogRecord:
    """One logged gateway request.

    Every optional metric is ``None`` when the upstream or the collector did
    not report it. ``0`` means the metric was reported as zero.
    """
    id: int
    created_at: datetime
    model_id: str
    provider_type: str
    status_code: int
    response_time_ms: float
    is_stream: bool = False
    connection_id: int | None = None
    endpoint_id: int | None = None
    endpoint_base_url: str | None = None
    endpoint_description: str | None = None
    request_path: str | None = None
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None
    cache_read_input_tokens: int | None = None
    cache_creation_input_tokens: int | None = None
    reasoning_tokens: int | None = None
    input_cost_micros: int | None = None
    output_cost_micros: int | None = None
    cache_read_input_cost_micros: int | None = None
    cache_creation_input_cost_micros: int | None = None
    reasoning_cost_micros: int | None = None
    total_cost_user_currency_micros: int | None = None
    report_currency_code: str | None = None
    report_currency_symbol: str | None = None
    billable_flag: bool | None = None
    priced_flag: bool | None = None
    unpriced_reason: str | None = None
    error_detail: str | None = None

    @property
    def endpoint_label(self) -> str:
        """Display label for the connection/endpoint that served the request."""
        return self.endpoint_description or self.endpoint_base_url or ""

    @property
    def is_error(self) -> bool:
        return self.status_code >= 400

    @classmethod
    def from_dict(cls, raw: dict) -> RequestLogRecord:
        return cls(
            id=int(raw.get("id", 0)),
            created_at=parse_instant(raw["created_at"]),
            model_id=str(raw.get("model_id") or ""),
            provider_type=str(raw.get("provider_type") or ""),
            status_code=int(raw.get("status_code", 0)),
            response_time_ms=_metric(raw, "response_time_ms") or 0,
            is_stream=bool(raw.get("is_stream", False)),
            connection_id=_optional_int(raw, "connection_id"),
            endpoint_id=_optional_int(raw, "endpoint_id"),
            endpoint_base_url=raw.get("endpoint_base_url"),
            endpoint_description=raw.get("endpoint_description"),
            request_path=raw.get("request_path"),
            input_tokens=_metric(raw, "input_tokens"),
            output_tokens=_metric(raw, "output_tokens"),
            total_tokens=_metric(raw, "total_tokens"),
            cache_read_input_tokens=_metric(raw, "cache_read_input_tokens"),
            cache_creation_input_tokens=_metric(raw, "cache_creation_input_tokens"),
            reasoning_tokens=_metric(raw, "reasoning_tokens"),
            input_cost_micros=_metric(raw, "input_cost_micros"),
            output_cost_micros=_metric(raw, "output_cost_micros"),
            cache_read_input_cost_micros=_metric(raw, "cache_read_input_cost_micros"),
            cache_creation_input_cost_micros=_metric(raw, "cache_creation_input_cost_micros"),
            reasoning_cost_micros=_metric(raw, "reasoning_cost_micros"),
            total_cost_user_currency_micros=_metric(raw, "total_cost_user_currency_micros"),
            report_currency_code=raw.get("report_currency_code"),
            report_currency_symbol=raw.get("report_currency_symbol"),
            billable_flag=_optional_bool(raw, "billable_flag"),
            priced_flag=_optional_bool(raw, "priced_flag"),
            unpriced_reason=raw.get("unpriced_reason"),
            error_detail=raw.get("error_detail"),
        )


@dataclass(frozen=True)
class LogPage:
    items: tuple[RequestLogRecord, ...] = ()
    total: int = 0
    limit: int = 0
    offset: int = 0

    @classmethod
    def from_dict(cls, raw: dict) -> LogPage:
        items = tuple(RequestLogRecord.from_dict(item) for item in raw.get("items", []))
        return cls(
            items=items,
            total=int(raw.get("total", len(items))),
            limit=int(raw.get("limit", 0) or 0),
            offset=int(raw.get("offset", 0) or 0),
        )


@dataclass(frozen=True)
class StatsSummary:
    total_requests: int = 0
    success_count: int = 0
    error_count: int = 0
    success_rate: float = 0.0
    avg_response_time_ms: float = 0.0
    p95_response_time_ms: float = 0.0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, raw: dict) -> StatsSummary:
        return cls(
            total_requests=int(raw.get("total_requests") or 0),
            success_count=int(raw.get("success_count") or 0),
            error_count=int(raw.get("error_count") or 0),
            success_rate=float(raw.get("success_rate") or 0.0),
            avg_response_time_ms=float(raw.get("avg_response_time_ms") or 0.0),
            p95_response_time_ms=float(raw.get("p95_response_time_ms") or 0.0),
            total_input_tokens=int(raw.get("total_input_tokens") or 0),
            total_output_tokens=int(raw.get("total_output_tokens") or 0),
            total_tokens=int(raw.get("total_tokens") or 0),
        )


@dataclass(frozen=True)
class TimeBucket:
    """Aggregate over one fixed-width time window. Derived, never persisted."""
    label: str
    start: datetime
    requests: int = 0
    errors: int = 0
    avg_latency_ms: int = 0
    p50_latency_ms: float = 0
    p95_latency_ms: float = 0
    p99_latency_ms: float = 0
    status_2xx: int = 0
    status_4xx: int = 0
    status_5xx: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost_micros: int = 0


@dataclass(frozen=True)
class WindowTotals:
    """Local rollup over every row of a fetched window."""
    requests: int = 0
    errors: int = 0
    success_rate: float = 0.0
    avg_latency_ms: int = 0
    p95_latency_ms: float = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost_micros: int = 0


@dataclass(frozen=True)
class CoverageStats:
    """Special-token coverage over a row set."""
    total_rows: int = 0
    cached_captured: int = 0
    reasoning_captured: int = 0
    any_special_captured: int = 0
    no_token_usage: int = 0

    def percent(self, count: int) -> int:
        """Whole-number percentage of ``count`` over the visible rows."""
        if self.total_rows <= 0:
            return 0
        return round(count / self.total_rows * 100)


# ---------------------------------------------------------------------------
# Spending report
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SpendingGroup:
    key: str
    total_requests: int = 0
    total_tokens: int = 0
    total_cost_micros: int = 0
    priced_requests: int = 0

    @classmethod
    def from_dict(cls, raw: dict) -> SpendingGroup:
        return cls(
            key=str(raw.get("key", "")),
            total_requests=int(raw.get("total_requests") or 0),
            total_tokens=int(raw.get("total_tokens") or 0),
            total_cost_micros=int(raw.get("total_cost_micros") or 0),
            priced_requests=int(raw.get("priced_requests") or 0),
        )


@dataclass(frozen=True)
class SpendingSummary:
    total_cost_micros: int = 0
    successful_request_count: int = 0
    priced_request_count: int = 0
    unpriced_request_count: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    avg_cost_per_successful_request_micros: int = 0

    @classmethod
    def from_dict(cls, raw: dict) -> SpendingSummary:
        return cls(**{
            name: int(raw.get(name) or 0)
            for name in cls.__dataclass_fields__
        })


@dataclass(frozen=True)
class TopSpendingModel:
    model_id: str
    total_cost_micros: int = 0


@dataclass(frozen=True)
class TopSpendingEndpoint:
    endpoint_label: str
    total_cost_micros: int = 0
    endpoint_id: int | None = None


@dataclass(frozen=True)
class SpendingReport:
    summary: SpendingSummary = field(default_factory=SpendingSummary)
    groups: tuple[SpendingGroup, ...] = ()
    groups_total: int = 0
    top_spending_models: tuple[TopSpendingModel, ...] = ()
    top_spending_endpoints: tuple[TopSpendingEndpoint, ...] = ()
    unpriced_breakdown: dict[str, int] = field(default_factory=dict)
    report_currency_code: str = "USD"
    report_currency_symbol: str = "$"

    @classmethod
    def from_dict(cls, raw: dict) -> SpendingReport:
        groups = tuple(SpendingGroup.from_dict(g) for g in raw.get("groups", []))
        return cls(
            summary=SpendingSummary.from_dict(raw.get("summary") or {}),
            groups=groups,
            groups_total=int(raw.get("groups_total", len(groups)) or 0),
            top_spending_models=tuple(
                TopSpendingModel(
                    model_id=str(m.get("model_id", "")),
                    total_cost_micros=int(m.get("total_cost_micros") or 0),
                )
                for m in raw.get("top_spending_models", [])
            ),
            top_spending_endpoints=tuple(
                TopSpendingEndpoint(
                    endpoint_label=str(c.get("endpoint_label", "")),
                    total_cost_micros=int(c.get("total_cost_micros") or 0),
                    endpoint_id=c.get("endpoint_id", c.get("connection_id")),
                )
                for c in raw.get("top_spending_endpoints", [])
            ),
            unpriced_breakdown={
                str(k): int(v or 0)
                for k, v in (raw.get("unpriced_breakdown") or {}).items()
            },
            report_currency_code=raw.get("report_currency_code") or "USD",
            report_currency_symbol=raw.get("report_currency_symbol") or "$",
        )


@dataclass(frozen=True)
class GroupMetrics:
    """Client-side derivations for one spending group."""
    group: SpendingGroup
    percent_of_total: float = 0.0
    cost_per_request_micros: float = 0.0
    cost_per_1k_tokens_micros: float = 0.0
    tokens_per_request: float = 0.0
    priced_percent: float = 0.0


@dataclass(frozen=True)
class TopSpendingItem:
    label: str
    cost_micros: int
    percent_of_total: float = 0.0


@dataclass(frozen=True)
class PageWindow:
    """Pagination position over a server-side list."""
    offset: int
    limit: int
    total: int
    shown: int

    @property
    def can_go_back(self) -> bool:
        return self.offset > 0

    @property
    def can_go_forward(self) -> bool:
        return self.offset + self.limit < self.total

    @property
    def range_start(self) -> int:
        return self.offset + 1 if self.total > 0 else 0

    @property
    def range_end(self) -> int:
        return min(self.offset + self.shown, self.total) if self.total > 0 else 0

    @property
    def current_page(self) -> int:
        return self.offset // self.limit + 1 if self.total > 0 and self.limit > 0 else 1

    @property
    def total_pages(self) -> int:
        if self.total <= 0 or self.limit <= 0:
            return 1
        return -(-self.total // self.limit)

    @property
    def previous_offset(self) -> int:
        return max(0, self.offset - self.limit)

    @property
    def next_offset(self) -> int:
        return self.offset + self.limit


# ---------------------------------------------------------------------------
# Filter states (one per screen)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RequestLogsFilter:
    model_id: str | None = None
    provider_type: str = "all"
    connection_id: int | None = None
    endpoint_id: int | None = None
    time_range: str = "24h"
    special_token_filter: str = "all"
    outcome_filter: str = "all"
    stream_filter: str = "all"
    view: str = "overview"
    triage: str = "none"
    search: str = ""
    latency_bucket: str = "all"
    priced_only: bool = False
    billable_only: bool = False
    token_min: int | None = None
    token_max: int | None = None
    limit: int = DEFAULT_REQUEST_LIMIT
    offset: int = 0


@dataclass(frozen=True)
class OperationsFilter:
    model_id: str | None = None
    provider_type: str = "all"
    connection_id: int | None = None
    time_range: str = "24h"
    special_token_filter: str = "all"


@dataclass(frozen=True)
class SpendingFilter:
    preset: str = "last_7_days"
    from_date: str = ""
    to_date: str = ""
    provider_type: str = "all"
    model_id: str | None = None
    connection_id: int | None = None
    group_by: str = "model"
    limit: int = DEFAULT_SPENDING_LIMIT
    offset: int = 0
    top_n: int = DEFAULT_TOP_N


# ---------------------------------------------------------------------------
# Collaborator
# ---------------------------------------------------------------------------

class GatewayAPIError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


@runtime_checkable
class TelemetrySource(Protocol):
    """The gateway's REST surface as consumed by the fetch cycles."""

    async def query_request_logs(self, params: dict) -> LogPage: ...

    async def query_summary(self, params: dict) -> StatsSummary: ...

    async def query_spending_report(self, params: dict) -> SpendingReport: ...


@runtime_checkable
class OwnerResolver(Protocol):
    async def resolve_owner(self, entity_id: int) -> int | None: ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class APIConfig:
    base_url: str = "http://localhost:8000"
    token: str = ""
    timeout_s: float = 30.0
    connect_timeout_s: float = 10.0


@dataclass
class DebounceConfig:
    request_logs_s: float = 0.3
    operations_s: float = 0.45
    spending_s: float = 0.3


@dataclass
class TelemetryConfig:
    version: str = "1.0"
    api: APIConfig = field(default_factory=APIConfig)
    debounce: DebounceConfig = field(default_factory=DebounceConfig)
    operations_fetch_limit: int = 500
    timezone: str = "UTC"
