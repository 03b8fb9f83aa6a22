"""Field sets and codecs for the Request Logs and Statistics screens."""

from __future__ import annotations

from ..types import (
    DEFAULT_REQUEST_LIMIT,
    DEFAULT_SPENDING_LIMIT,
    DEFAULT_TOP_N,
    LATENCY_BUCKETS,
    OUTCOME_FILTERS,
    REQUEST_LIMIT_OPTIONS,
    SPECIAL_TOKEN_FILTERS,
    SPENDING_GROUP_BY,
    SPENDING_LIMIT_OPTIONS,
    SPENDING_PRESETS,
    STREAM_FILTERS,
    TIME_RANGES,
    TOP_N_MAX,
    TOP_N_MIN,
    TRIAGE_MODES,
    VIEW_TYPES,
    OperationsFilter,
    RequestLogsFilter,
    SpendingFilter,
)
from .query_codec import (
    QueryField,
    QueryStateCodec,
    bounded_int_parser,
    clamp_coercer,
    coerce_bool,
    coerce_id,
    coerce_iso_date,
    coerce_raw_text,
    coerce_text,
    enum_coercer,
    enum_parser,
    option_coercer,
    option_parser,
    parse_bool,
    parse_id,
    parse_iso_date,
    parse_non_negative_int,
    parse_raw_text,
    parse_text,
)


def _enum(name: str, allowed: tuple[str, ...], default: str, **kwargs) -> QueryField:
    return QueryField(
        name=name,
        default=default,
        parse=enum_parser(allowed),
        coerce=enum_coercer(allowed),
        **kwargs,
    )


def _model_id() -> QueryField:
    return QueryField("model_id", None, parse_text, coerce_text)


def _id(name: str) -> QueryField:
    return QueryField(name, None, parse_id, coerce_id)


def _provider_type() -> QueryField:
    # Provider types are open-ended; any non-blank value is accepted.
    return QueryField(
        "provider_type", "all", parse_text, lambda v: coerce_text(v) or "all",
    )


def _offset() -> QueryField:
    return QueryField(
        "offset", 0, parse_non_negative_int, clamp_coercer(0), resets_offset=False,
    )


REQUEST_LOGS_FIELDS: tuple[QueryField, ...] = (
    _model_id(),
    _provider_type(),
    _id("connection_id"),
    _id("endpoint_id"),
    _enum("time_range", TIME_RANGES, "24h"),
    _enum("special_token_filter", SPECIAL_TOKEN_FILTERS, "all"),
    _enum("outcome_filter", OUTCOME_FILTERS, "all"),
    _enum("stream_filter", STREAM_FILTERS, "all"),
    _enum("view", VIEW_TYPES, "overview", resets_offset=False),
    _enum("triage", TRIAGE_MODES, "none"),
    QueryField("search", "", parse_raw_text, coerce_raw_text),
    _enum("latency_bucket", LATENCY_BUCKETS, "all"),
    QueryField("priced_only", False, parse_bool, coerce_bool),
    QueryField("billable_only", False, parse_bool, coerce_bool),
    QueryField("token_min", None, parse_non_negative_int, clamp_coercer(0, optional=True)),
    QueryField("token_max", None, parse_non_negative_int, clamp_coercer(0, optional=True)),
    QueryField(
        "limit", DEFAULT_REQUEST_LIMIT,
        option_parser(REQUEST_LIMIT_OPTIONS), option_coercer(REQUEST_LIMIT_OPTIONS),
    ),
    _offset(),
)

OPERATIONS_FIELDS: tuple[QueryField, ...] = (
    _model_id(),
    _provider_type(),
    _id("connection_id"),
    _enum("time_range", TIME_RANGES, "24h"),
    _enum("special_token_filter", SPECIAL_TOKEN_FILTERS, "all"),
)

SPENDING_FIELDS: tuple[QueryField, ...] = (
    _enum("preset", SPENDING_PRESETS, "last_7_days"),
    QueryField("from_date", "", parse_iso_date, coerce_iso_date, when=("preset", "custom")),
    QueryField("to_date", "", parse_iso_date, coerce_iso_date, when=("preset", "custom")),
    _provider_type(),
    _model_id(),
    _id("connection_id"),
    _enum("group_by", SPENDING_GROUP_BY, "model"),
    QueryField(
        "limit", DEFAULT_SPENDING_LIMIT,
        option_parser(SPENDING_LIMIT_OPTIONS), option_coercer(SPENDING_LIMIT_OPTIONS),
    ),
    _offset(),
    # top_n sizes the leaderboard slice only; it leaves the group page alone.
    QueryField(
        "top_n", DEFAULT_TOP_N,
        bounded_int_parser(TOP_N_MIN, TOP_N_MAX), clamp_coercer(TOP_N_MIN, TOP_N_MAX),
        resets_offset=False,
    ),
)

REQUEST_LOGS_CODEC = QueryStateCodec(RequestLogsFilter, REQUEST_LOGS_FIELDS)
OPERATIONS_CODEC = QueryStateCodec(OperationsFilter, OPERATIONS_FIELDS)
SPENDING_CODEC = QueryStateCodec(SpendingFilter, SPENDING_FIELDS)


VIEW_COLUMNS: dict[str, tuple[str, ...]] = {
    "overview": (
        "time", "model", "provider", "endpoint", "status", "latency",
        "total_tokens", "total_cost", "stream", "error",
    ),
    "performance": (
        "time", "request_id", "model", "provider", "endpoint", "status",
        "latency", "stream", "error",
    ),
    "tokens": (
        "time", "model", "provider", "input_tokens", "output_tokens",
        "cached_tokens", "cache_create_tokens", "reasoning_tokens",
        "total_tokens", "status",
    ),
    "cost": (
        "time", "model", "provider", "input_cost", "output_cost",
        "cache_read_cost", "cache_create_cost", "reasoning_cost", "total_cost",
        "billable", "priced", "unpriced_reason",
    ),
    "cache": (
        "time", "model", "provider", "status", "latency", "cached_tokens",
        "cache_create_tokens", "cache_read_cost", "cache_create_cost",
        "total_tokens",
    ),
    "errors": (
        "time", "request_id", "model", "provider", "endpoint", "status",
        "latency", "error", "total_cost",
    ),
    "all": (
        "time", "model", "provider", "endpoint", "request_id", "status",
        "latency", "stream", "input_tokens", "output_tokens", "total_tokens",
        "cached_tokens", "cache_create_tokens", "reasoning_tokens",
        "input_cost", "output_cost", "cache_read_cost", "cache_create_cost",
        "reasoning_cost", "total_cost", "billable", "priced",
        "unpriced_reason", "error",
    ),
}


def visible_columns(view: str) -> tuple[str, ...]:
    return VIEW_COLUMNS.get(view, VIEW_COLUMNS["overview"])
