# tests/services/test_driver_location_client.py
"""
Тесты HTTP клиента Driver Location Service на httpx.MockTransport.
"""

from __future__ import annotations

import json
from typing import Callable

import httpx
import pytest

from ridehail.common.exceptions import (
    InvalidUpstreamPayloadError,
    UpstreamError,
    UpstreamUnavailableError,
)
from ridehail.services.matching_service.circuit_breaker import CircuitBreaker
from ridehail.services.matching_service.client import DriverLocationClient
from ridehail.shared.models import GeoPoint

Handler = Callable[[httpx.Request], httpx.Response]

SEARCH_OK = {
    "success": True,
    "data": {
        "count": 2,
        "drivers": [
            {"driver": {"id": "a", "location": {"type": "Point", "coordinates": [29.0, 41.0]}}, "distance": 0.0},
            {"driver": {"id": "b", "location": {"type": "Point", "coordinates": [29.001, 41.0]}}, "distance": 84.0},
        ],
    },
}


def make_client(handler: Handler, api_key: str = "secret", breaker: CircuitBreaker | None = None) -> DriverLocationClient:
    return DriverLocationClient(
        "http://location:8086/",
        api_key=api_key,
        breaker=breaker,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.fixture
def center() -> GeoPoint:
    return GeoPoint.new(29.0, 41.0)


class TestFindNearbyDrivers:
    @pytest.mark.asyncio
    async def test_success(self, center: GeoPoint) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=SEARCH_OK)

        client = make_client(handler)
        drivers = await client.find_nearby_drivers(center, 500)

        assert [d.driver.id for d in drivers] == ["a", "b"]
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "http://location:8086/api/v1/drivers/search"
        assert request.headers["X-API-Key"] == "secret"
        assert json.loads(request.content) == {
            "location": {"type": "Point", "coordinates": [29.0, 41.0]},
            "radius": 500,
        }

    @pytest.mark.asyncio
    async def test_no_api_key_header_when_empty(self, center: GeoPoint) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"success": True, "data": {"count": 0, "drivers": []}})

        assert await make_client(handler, api_key="").find_nearby_drivers(center, 500) == []
        assert "X-API-Key" not in seen[0].headers

    @pytest.mark.asyncio
    async def test_non_200_status(self, center: GeoPoint) -> None:
        client = make_client(lambda r: httpx.Response(500, text="boom"))

        with pytest.raises(UpstreamError, match="unexpected status: 500") as exc_info:
            await client.find_nearby_drivers(center, 500)

        assert exc_info.value.status == 500

    @pytest.mark.asyncio
    async def test_success_false(self, center: GeoPoint) -> None:
        body = {"success": False, "error": "invalid_request", "message": "radius must be greater than 0"}
        client = make_client(lambda r: httpx.Response(200, json=body))

        with pytest.raises(UpstreamError) as exc_info:
            await client.find_nearby_drivers(center, 500)

        assert exc_info.value.message == (
            "driver location service error: invalid_request - radius must be greater than 0"
        )
        assert exc_info.value.upstream_error == "invalid_request"

    @pytest.mark.asyncio
    async def test_transport_error(self, center: GeoPoint) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamError, match="request failed"):
            await make_client(handler).find_nearby_drivers(center, 500)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"success": True, "data": "not an object"},
        {"success": True, "data": {"count": 1, "drivers": [{"unexpected": True}]}},
        ["not", "an", "envelope"],
    ])
    async def test_invalid_payload(self, center: GeoPoint, body: object) -> None:
        client = make_client(lambda r: httpx.Response(200, json=body))

        with pytest.raises(InvalidUpstreamPayloadError):
            await client.find_nearby_drivers(center, 500)

    @pytest.mark.asyncio
    async def test_breaker_stops_calls(self, center: GeoPoint, fake_clock) -> None:
        """После серии 500 следующий вызов отклоняется без HTTP запроса."""
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return httpx.Response(500, text="boom")

        client = make_client(handler, breaker=CircuitBreaker("driver location service", clock=fake_clock))
        for _ in range(6):
            with pytest.raises(UpstreamError):
                await client.find_nearby_drivers(center, 500)

        with pytest.raises(UpstreamUnavailableError):
            await client.find_nearby_drivers(center, 500)

        assert attempts == 6
