"""CLI: gateway-telemetry logs, stats, spending, config validate."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import yaml

from ..client.http import GatewayClient
from ..config import load_config, validate_config
from ..core.dashboard import OperationsScreen, RequestLogsScreen, SpendingScreen
from ..core.formatting import (
    format_error_detail,
    format_latency,
    format_money_micros,
    format_percent,
    format_token_count,
)
from ..types import TelemetryConfig


def _get_source(config: TelemetryConfig) -> GatewayClient:
    return GatewayClient.from_config(config.api)


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 1] + "~"


async def _run_screen(screen) -> bool:
    """Fetch once for the screen's parsed state; report failures to stderr."""
    try:
        applied = await screen.refresh()
    finally:
        screen.close()
        aclose = getattr(screen.fetcher.source, "aclose", None)
        if aclose is not None:
            await aclose()
    if not applied:
        print(f"Fetch failed: {screen.error or 'unknown error'}", file=sys.stderr)
    return applied


def cmd_logs(args):
    """Fetch one page of request logs and print the triaged table."""
    config = load_config(args.config)
    screen = RequestLogsScreen(_get_source(config), config, args.query)
    if not asyncio.run(_run_screen(screen)):
        sys.exit(1)

    rows = screen.visible_rows
    page = screen.page
    if not rows:
        print("No request logs match the current filters.")
        return

    print(f"{'ID':>8} {'Time':<20} {'Model':<28} {'Status':>6} {'Latency':>9} {'Tokens':>10} {'Cost':>12}")
    print("-" * 99)
    for row in rows:
        symbol = row.report_currency_symbol or "$"
        print(
            f"{row.id:>8} {row.created_at.strftime('%Y-%m-%d %H:%M:%S'):<20} "
            f"{_truncate(row.model_id, 28):<28} {row.status_code:>6} "
            f"{format_latency(row.response_time_ms):>9} "
            f"{format_token_count(row.total_tokens):>10} "
            f"{format_money_micros(row.total_cost_user_currency_micros, symbol):>12}"
        )
        if row.is_error and row.error_detail:
            print(f"{'':>8} {_truncate(format_error_detail(row.error_detail) or '', 88)}")
    print()
    print(
        f"Showing {page.range_start}-{page.range_end} of {page.total:,} "
        f"(page {page.current_page}/{page.total_pages})"
    )


def cmd_stats(args):
    """Print time buckets, totals and special-token coverage."""
    config = load_config(args.config)
    screen = OperationsScreen(_get_source(config), config, args.query)
    if not asyncio.run(_run_screen(screen)):
        sys.exit(1)

    summary = screen.fetcher.summary
    if summary is not None:
        print(f"Requests:      {summary.total_requests:,}")
        print(f"Success rate:  {format_percent(screen.success_rate)}")
        print(f"Avg latency:   {format_latency(summary.avg_response_time_ms)}")
        print(f"P95 latency:   {format_latency(summary.p95_response_time_ms)}")
        print(f"Total tokens:  {summary.total_tokens:,}")
        print()

    buckets = screen.buckets
    if not buckets:
        print("No requests in this window.")
        return

    print(f"{'Bucket':<8} {'Reqs':>6} {'Errors':>6} {'Avg':>9} {'P50':>9} {'P95':>9} {'P99':>9} {'Tokens':>12}")
    print("-" * 75)
    for b in buckets:
        print(
            f"{b.label:<8} {b.requests:>6} {b.errors:>6} "
            f"{format_latency(b.avg_latency_ms):>9} {format_latency(b.p50_latency_ms):>9} "
            f"{format_latency(b.p95_latency_ms):>9} {format_latency(b.p99_latency_ms):>9} "
            f"{b.input_tokens + b.output_tokens:>12,}"
        )

    cov = screen.coverage
    print()
    print(f"Coverage over {cov.total_rows} rows:")
    print(f"  Cached tokens captured:    {cov.cached_captured:>6} ({cov.percent(cov.cached_captured)}%)")
    print(f"  Reasoning tokens captured: {cov.reasoning_captured:>6} ({cov.percent(cov.reasoning_captured)}%)")
    print(f"  Any special captured:      {cov.any_special_captured:>6} ({cov.percent(cov.any_special_captured)}%)")
    print(f"  No token usage:            {cov.no_token_usage:>6} ({cov.percent(cov.no_token_usage)}%)")


def cmd_spending(args):
    """Print the grouped spending report and leaderboards."""
    config = load_config(args.config)
    screen = SpendingScreen(_get_source(config), config, args.query)
    if not asyncio.run(_run_screen(screen)):
        sys.exit(1)

    report = screen.report
    symbol, code = report.report_currency_symbol, report.report_currency_code
    summary = report.summary
    print(f"Total cost:    {format_money_micros(summary.total_cost_micros, symbol, code)}")
    print(f"Priced:        {format_percent(screen.priced_percent)} of successful requests")
    print(f"Total tokens:  {format_token_count(summary.total_tokens)}")
    print()

    metrics = screen.group_metrics
    if not metrics:
        print("No spending in this window.")
        return

    print(f"{'Group':<32} {'Requests':>9} {'Tokens':>12} {'Cost':>14} {'Share':>7} {'Cost/req':>12}")
    print("-" * 91)
    for m in metrics:
        g = m.group
        print(
            f"{_truncate(g.key, 32):<32} {g.total_requests:>9,} {g.total_tokens:>12,} "
            f"{format_money_micros(g.total_cost_micros, symbol):>14} "
            f"{format_percent(m.percent_of_total):>7} "
            f"{format_money_micros(m.cost_per_request_micros, symbol):>12}"
        )
    page = screen.page
    print(f"Showing {page.range_start}-{page.range_end} of {page.total:,} groups")

    boards = screen.leaderboards
    for title, key in (("Top models", "models"), ("Top endpoints", "endpoints")):
        if boards[key]:
            print()
            print(f"{title}:")
            for item in boards[key]:
                print(
                    f"  {_truncate(item.label, 40):<40} "
                    f"{format_money_micros(item.cost_micros, symbol):>14} "
                    f"{format_percent(item.percent_of_total):>7}"
                )


def cmd_config_validate(args):
    """Validate config file."""
    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    errors = validate_config(config)
    if errors:
        print("Config validation errors:")
        for err in errors:
            print(f"  - {err}")
        sys.exit(1)
    else:
        print("Config is valid.")
        print(f"  API: {config.api.base_url}")
        print(f"  Timeout: {config.api.timeout_s}s")
        print(
            f"  Debounce: logs {config.debounce.request_logs_s * 1000:.0f}ms, "
            f"operations {config.debounce.operations_s * 1000:.0f}ms, "
            f"spending {config.debounce.spending_s * 1000:.0f}ms"
        )
        print(f"  Operations fetch limit: {config.operations_fetch_limit}")
        print(f"  Timezone: {config.timezone}")


def main(argv: list[str] | None = None):
    parser = argparse.ArgumentParser(
        prog="gateway-telemetry",
        description="Request-log statistics and spending reports for an LLM gateway",
    )
    parser.add_argument("--config", "-c", help="Path to config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    query_help = "Persisted filter query string (e.g. 'time_range=1h&triage=slowest')"

    # logs
    logs_parser = subparsers.add_parser("logs", help="Show a page of request logs")
    logs_parser.add_argument("--query", "-q", default="", help=query_help)

    # stats
    stats_parser = subparsers.add_parser("stats", help="Show bucketed operations statistics")
    stats_parser.add_argument("--query", "-q", default="", help=query_help)

    # spending
    spending_parser = subparsers.add_parser("spending", help="Show the spending report")
    spending_parser.add_argument("--query", "-q", default="", help=query_help)

    # config validate
    config_parser = subparsers.add_parser("config", help="Config operations")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("validate", help="Validate config file")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        sys.exit(1)

    if args.command == "logs":
        cmd_logs(args)
    elif args.command == "stats":
        cmd_stats(args)
    elif args.command == "spending":
        cmd_spending(args)
    elif args.command == "config":
        if args.config_command == "validate":
            cmd_config_validate(args)
        else:
            config_parser.print_help()
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
