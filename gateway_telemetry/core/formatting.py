"""Display formatting for money, token counts, latencies and error payloads."""

from __future__ import annotations

import json

MICRO_FACTOR = 1_000_000


def micros_to_decimal(micros: int | float | None) -> float:
    if micros is None:
        return 0.0
    return micros / MICRO_FACTOR


def _group_decimal(value: float, min_fraction: int, max_fraction: int) -> str:
    text = f"{value:,.{max_fraction}f}"
    if max_fraction <= min_fraction or "." not in text:
        return text
    whole, frac = text.split(".")
    frac = frac.rstrip("0")
    if len(frac) < min_fraction:
        frac = frac.ljust(min_fraction, "0")
    return f"{whole}.{frac}" if frac else whole


def format_money_micros(
    micros: int | float | None,
    symbol: str,
    code: str | None = None,
    min_fraction: int = 2,
    max_fraction: int = 6,
) -> str:
    """Render a micros amount, e.g. ``$1.50 USD``. Absent amounts render ``-``."""
    if micros is None:
        return "-"
    formatted = _group_decimal(micros_to_decimal(micros), min_fraction, max_fraction)
    suffix = f" {code}" if code else ""
    return f"{symbol}{formatted}{suffix}"


def format_token_count(value: int | float | None) -> str:
    if value is None:
        return "-"
    return f"{value:,}"


def format_latency(ms: float) -> str:
    if ms >= 1000:
        digits = 1 if ms >= 10000 else 2
        return f"{ms / 1000:.{digits}f}s"
    return f"{ms:.0f}ms"


def format_percent(value: float, digits: int = 1) -> str:
    return f"{value:.{digits}f}%"


def format_error_detail(detail: str | None) -> str | None:
    """Extract a readable message from an upstream error payload.

    JSON payloads yield ``error.message``, ``error.msg``, ``detail`` or
    ``message`` (first non-empty). Anything else is returned unchanged.
    """
    if not detail:
        return None
    try:
        parsed = json.loads(detail)
    except (TypeError, ValueError):
        return detail
    if not isinstance(parsed, dict):
        return detail
    error = parsed.get("error")
    candidates = []
    if isinstance(error, dict):
        candidates += [error.get("message"), error.get("msg")]
    candidates += [parsed.get("detail"), parsed.get("message")]
    for candidate in candidates:
        if candidate:
            return str(candidate)
    return detail
