"""Configuration loading, validation, and defaults."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml

from .types import APIConfig, DebounceConfig, TelemetryConfig

CONFIG_FILENAMES = [
    "gateway-telemetry.yaml",
    "gateway-telemetry.yml",
    "gateway-telemetry.json",
]

ENV_BASE_URL = "GATEWAY_TELEMETRY_BASE_URL"
ENV_TOKEN = "GATEWAY_TELEMETRY_TOKEN"


def _discover_config() -> Path | None:
    """Search CWD then parent dirs up to home for a config file."""
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def _build_config(raw: dict[str, Any]) -> TelemetryConfig:
    """Build a TelemetryConfig from a raw dict, then apply env overrides."""
    api_raw = raw.get("api", {}) or {}
    api = APIConfig(
        base_url=api_raw.get("base_url", "http://localhost:8000"),
        token=api_raw.get("token", ""),
        timeout_s=api_raw.get("timeout_s", 30.0),
        connect_timeout_s=api_raw.get("connect_timeout_s", 10.0),
    )

    # Debounce delays are configured in milliseconds
    debounce_raw = raw.get("debounce_ms", {}) or {}
    debounce = DebounceConfig(
        request_logs_s=debounce_raw.get("request_logs", 300) / 1000,
        operations_s=debounce_raw.get("operations", 450) / 1000,
        spending_s=debounce_raw.get("spending", 300) / 1000,
    )

    base_url = os.environ.get(ENV_BASE_URL)
    if base_url:
        api.base_url = base_url
    token = os.environ.get(ENV_TOKEN)
    if token:
        api.token = token

    return TelemetryConfig(
        version=str(raw.get("version", "1.0")),
        api=api,
        debounce=debounce,
        operations_fetch_limit=raw.get("operations_fetch_limit", 500),
        timezone=raw.get("timezone", "UTC"),
    )


def validate_config(config: TelemetryConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors: list[str] = []

    if not config.api.base_url.startswith(("http://", "https://")):
        errors.append(f"api.base_url must be an http(s) URL, got '{config.api.base_url}'")

    if config.api.timeout_s <= 0:
        errors.append("api.timeout_s must be > 0")
    if config.api.connect_timeout_s <= 0:
        errors.append("api.connect_timeout_s must be > 0")

    for name in ("request_logs_s", "operations_s", "spending_s"):
        if getattr(config.debounce, name) < 0:
            errors.append(f"debounce_ms.{name[:-2]} must be >= 0")

    if not 1 <= config.operations_fetch_limit <= 10_000:
        errors.append(
            f"operations_fetch_limit ({config.operations_fetch_limit}) must be between 1 and 10000"
        )

    if not config.timezone:
        errors.append("timezone must not be empty")

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
) -> TelemetryConfig:
    """Load config from dict, explicit path, or auto-discover."""
    if config_dict is not None:
        return _build_config(config_dict)

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        return _build_config({})

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    return _build_config(raw)
