"""gateway-telemetry: request-log statistics and spending analysis for an LLM gateway."""

from .config import load_config
from .types import (
    CoverageStats,
    GatewayAPIError,
    OperationsFilter,
    RequestLogRecord,
    RequestLogsFilter,
    SpendingFilter,
    SpendingReport,
    TelemetryConfig,
    TimeBucket,
)

__version__ = "0.1.0"

__all__ = [
    "load_config",
    "CoverageStats",
    "GatewayAPIError",
    "OperationsFilter",
    "RequestLogRecord",
    "RequestLogsFilter",
    "SpendingFilter",
    "SpendingReport",
    "TelemetryConfig",
    "TimeBucket",
]
