from __future__ import annotations

import asyncio

import httpx
import pytest

from tsview_graphs.config import BackendConfig
from tsview_graphs.errors import AggregateLoadError
from tsview_graphs.io.client import BackendClient, build_aggregate_params
from tsview_graphs.io.payloads import AggregatePayload, DrillDownPayload

AGGREGATE_BODY = {
    "aggregates": [[0, *range(12)]],
    "aggregatesColumnNames": ["g/cpu.min"],
    "ids": ["r0"],
}


def _load(handler, query: dict | None = None, **kwargs) -> AggregatePayload:
    transport = httpx.MockTransport(handler)

    async def _run() -> AggregatePayload:
        async with BackendClient("http://tsview.test/api", transport=transport) as client:
            return await client.load_aggregates(query or {"src": "g"}, **kwargs)

    return asyncio.run(_run())


def test_build_aggregate_params_requests_all_aggregates() -> None:
    params = build_aggregate_params({"src": "g", "startDate": "2024-01-01"})

    assert params["returnConfigs"] == 1
    assert params["returnIds"] == 1
    assert params["setAggregateIfMissing"] == 1
    assert params["aggregates"].split(",")[0] == "min"
    assert len(params["aggregates"].split(",")) == 12
    assert params["startDate"] == "2024-01-01"
    assert "force_uncached" not in params


def test_build_aggregate_params_last_points_replaces_date_range() -> None:
    params = build_aggregate_params(
        {"src": "g", "startDate": "2024-01-01", "daysOfData": 3, "last_pts": "50"},
        force_uncached=True,
    )

    assert params["maxResults"] == 50
    assert "startDate" not in params
    assert "daysOfData" not in params
    assert params["force_uncached"] == 1


def test_load_aggregates_parses_payload() -> None:
    seen: dict[str, httpx.URL] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(200, json=AGGREGATE_BODY)

    payload = _load(handler)

    assert seen["url"].path == "/api/srcs/v1"
    assert seen["url"].params["src"] == "g"
    assert seen["url"].params["returnIds"] == "1"
    assert payload.record_ids() == {0: "r0"}


def test_load_aggregates_timeout_is_classified() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(AggregateLoadError) as exc_info:
        _load(handler)

    assert exc_info.value.kind == "timeout"


def test_load_aggregates_redirect_is_authentication_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"Location": "https://login.test/"})

    with pytest.raises(AggregateLoadError) as exc_info:
        _load(handler)

    assert exc_info.value.kind == "authentication"


def test_load_aggregates_http_error_reports_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    with pytest.raises(AggregateLoadError) as exc_info:
        _load(handler)

    assert exc_info.value.kind == "http"
    assert "(500)" in exc_info.value.message


def test_fetch_record_requests_samples_only() -> None:
    seen: dict[str, httpx.URL] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(
            200,
            json={"points": [[0, 1.0]], "pointsColumnNames": ["x", "cpu"], "unit": "ms"},
        )

    transport = httpx.MockTransport(handler)

    async def _run() -> DrillDownPayload:
        async with BackendClient("http://tsview.test", transport=transport) as client:
            return await client.fetch_record("abc")

    payload = asyncio.run(_run())

    assert seen["url"].path == "/record/v1/abc"
    assert seen["url"].params["noReturnAggregates"] == "1"
    assert payload.unit == "ms"


def test_from_config_requires_base_url() -> None:
    with pytest.raises(ValueError):
        BackendClient.from_config(BackendConfig())
