"""Thin async client for the viewer backend's aggregate and record endpoints."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from tsview_graphs.config import AGGREGATE_NAMES, BackendConfig
from tsview_graphs.errors import AggregateLoadError
from tsview_graphs.io.payloads import AggregatePayload, DrillDownPayload

LOGGER = logging.getLogger(__name__)

AGGREGATES_PATH = "srcs/v1"
RECORD_PATH = "record/v1/{record_id}"
DATE_RANGE_PARAMS = ("startDate", "endDate", "daysOfData")


def build_aggregate_params(
    query: dict[str, Any],
    *,
    aggregate_names: list[str] | None = None,
    force_uncached: bool = False,
) -> dict[str, Any]:
    params = dict(query)
    params["returnConfigs"] = 1
    params["returnIds"] = 1
    params["aggregates"] = ",".join(aggregate_names or AGGREGATE_NAMES)
    params["setAggregateIfMissing"] = 1
    last_points = int(params.get("last_pts") or 0)
    if last_points > 0:
        # A last-N query replaces any date range.
        for name in DATE_RANGE_PARAMS:
            params.pop(name, None)
        params["maxResults"] = last_points
    if force_uncached:
        params["force_uncached"] = 1
    return params


class BackendClient:
    def __init__(
        self,
        base_url: str,
        timeout_s: float = 60.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_s),
            follow_redirects=False,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls, config: BackendConfig, *, transport: httpx.AsyncBaseTransport | None = None
    ) -> BackendClient:
        if not config.base_url:
            raise ValueError("backend.base_url must be set (or TSVIEW_BASE_URL)")
        return cls(config.base_url, config.timeout_seconds, transport=transport)

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def load_aggregates(
        self,
        query: dict[str, Any],
        *,
        aggregate_names: list[str] | None = None,
        force_uncached: bool = False,
    ) -> AggregatePayload:
        params = build_aggregate_params(
            query, aggregate_names=aggregate_names, force_uncached=force_uncached
        )
        try:
            resp = await self._client.get(AGGREGATES_PATH, params=params)
        except httpx.TimeoutException as exc:
            raise AggregateLoadError(
                "timeout",
                "Graph loading timeout: Try reloading (perhaps the database backends are slow).",
            ) from exc
        except httpx.TransportError as exc:
            raise AggregateLoadError("http", f"Graph loading error: {exc}") from exc

        if resp.is_redirect:
            # Unauthenticated sessions get bounced to a login server.
            raise AggregateLoadError(
                "authentication",
                "Please try reloading (perhaps your authentication needs refreshing).",
            )
        if resp.status_code >= 400:
            raise AggregateLoadError(
                "http",
                f"Graph loading error: ({resp.status_code}): {resp.reason_phrase}",
            )
        payload = AggregatePayload.model_validate(resp.json())
        LOGGER.debug("Fetched %d aggregate rows", len(payload.aggregates))
        return payload

    async def fetch_record(self, record_id: str) -> DrillDownPayload:
        resp = await self._client.get(
            RECORD_PATH.format(record_id=record_id),
            params={"noReturnAggregates": 1},
        )
        resp.raise_for_status()
        return DrillDownPayload.model_validate(resp.json())
