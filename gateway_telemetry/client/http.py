"""GatewayClient: the gateway's statistics REST API via httpx."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ..types import (
    APIConfig,
    GatewayAPIError,
    LogPage,
    SpendingReport,
    StatsSummary,
)

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF = [0.5, 1.0, 2.0]

REQUESTS_PATH = "/api/stats/requests"
SUMMARY_PATH = "/api/stats/summary"
SPENDING_PATH = "/api/stats/spending"
OWNER_PATHS = {
    "connection": "/api/connections/{id}/owner",
    "endpoint": "/api/endpoints/{id}/owner",
}


def clean_params(params: dict[str, Any] | None) -> dict[str, str]:
    """Drop unset values; booleans go over the wire as ``true``/``false``."""
    cleaned: dict[str, str] = {}
    for key, value in (params or {}).items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            cleaned[key] = "true" if value else "false"
        else:
            cleaned[key] = str(value)
    return cleaned


def error_message(response: httpx.Response) -> str:
    """The ``detail`` of a JSON error body, else ``HTTP <status>``."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("detail"):
        detail = body["detail"]
        return detail if isinstance(detail, str) else str(detail)
    return f"HTTP {response.status_code}"


class GatewayClient:
    """Async client for the gateway's statistics endpoints.

    Implements ``TelemetrySource`` and ``OwnerResolver``. Transient failures
    (429, 5xx, transport errors) are retried with backoff; everything else
    raises ``GatewayAPIError`` immediately.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        token: str = "",
        timeout: float = 30.0,
        connect_timeout: float = 10.0,
        *,
        owner_kind: str = "connection",
        max_retries: int = MAX_RETRIES,
        retry_backoff: list[float] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if owner_kind not in OWNER_PATHS:
            raise ValueError(f"owner_kind must be one of {sorted(OWNER_PATHS)}")
        self.base_url = base_url.rstrip("/")
        self.owner_kind = owner_kind
        self.max_retries = max(1, max_retries)
        self.retry_backoff = RETRY_BACKOFF if retry_backoff is None else retry_backoff
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout, connect=connect_timeout),
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: APIConfig, **kwargs: Any) -> GatewayClient:
        return cls(
            base_url=config.base_url,
            token=config.token,
            timeout=config.timeout_s,
            connect_timeout=config.connect_timeout_s,
            **kwargs,
        )

    async def __aenter__(self) -> GatewayClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _sleep_before_retry(self, attempt: int) -> None:
        if attempt < self.max_retries - 1 and self.retry_backoff:
            await asyncio.sleep(self.retry_backoff[min(attempt, len(self.retry_backoff) - 1)])

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        query = clean_params(params)
        last_error: GatewayAPIError | None = None

        for attempt in range(self.max_retries):
            try:
                response = await self._client.get(path, params=query)
            except httpx.HTTPError as e:
                last_error = GatewayAPIError(f"HTTP error: {e}")
                logger.debug("GET %s attempt %d failed: %s", path, attempt + 1, e)
                await self._sleep_before_retry(attempt)
                continue

            if response.is_success:
                if response.status_code == 204:
                    return None
                try:
                    return response.json()
                except ValueError:
                    raise GatewayAPIError(
                        f"Invalid JSON from {path}", status_code=response.status_code,
                    ) from None

            last_error = GatewayAPIError(error_message(response), status_code=response.status_code)
            if response.status_code == 429 or response.status_code >= 500:
                logger.debug(
                    "GET %s attempt %d returned %d", path, attempt + 1, response.status_code,
                )
                await self._sleep_before_retry(attempt)
                continue
            raise last_error

        raise last_error or GatewayAPIError("Max retries exceeded")

    # -- TelemetrySource --

    async def _get_model(self, path: str, params: dict, model: type) -> Any:
        data = await self._get(path, params) or {}
        try:
            return model.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise GatewayAPIError(f"Malformed response from {path}: {e}") from e

    async def query_request_logs(self, params: dict) -> LogPage:
        return await self._get_model(REQUESTS_PATH, params, LogPage)

    async def query_summary(self, params: dict) -> StatsSummary:
        return await self._get_model(SUMMARY_PATH, params, StatsSummary)

    async def query_spending_report(self, params: dict) -> SpendingReport:
        return await self._get_model(SPENDING_PATH, params, SpendingReport)

    # -- OwnerResolver --

    async def resolve_owner(self, entity_id: int) -> int | None:
        path = OWNER_PATHS[self.owner_kind].format(id=entity_id)
        data = await self._get(path) or {}
        owner = data.get("model_config_id")
        return int(owner) if owner is not None else None
