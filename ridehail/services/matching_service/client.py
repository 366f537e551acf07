# ridehail/services/matching_service/client.py
"""
HTTP клиент поиска водителей в Driver Location Service.
Каждый вызов идёт через circuit breaker.
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError

from ridehail.common.constants import API_KEY_HEADER
from ridehail.common.exceptions import InvalidUpstreamPayloadError, UpstreamError
from ridehail.common.logger import log_warning
from ridehail.services.matching_service.circuit_breaker import CircuitBreaker
from ridehail.shared.models import DriverSearchData, DriverWithDistance, GeoPoint

SEARCH_PATH = "/api/v1/drivers/search"


class DriverLocationClient:
    """
    Клиент Driver Location Service.

    Неуспехом для breaker считаются: транспортная ошибка, статус не 200,
    success=false в конверте и ответ неожиданной формы.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        breaker: CircuitBreaker | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.breaker = breaker or CircuitBreaker("driver location service")
        self.client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self.client.aclose()

    async def find_nearby_drivers(self, location: GeoPoint, radius: float) -> list[DriverWithDistance]:
        """
        Водители в радиусе от точки, по возрастанию расстояния (порядок Location Service).

        Raises:
            UpstreamUnavailableError: breaker не пропустил вызов
            UpstreamError: транспорт, статус или success=false
            InvalidUpstreamPayloadError: ответ не той формы
        """
        body = {"location": location.model_dump(mode="json"), "radius": radius}
        return await self.breaker.call(self._search, body)

    async def _search(self, body: dict[str, Any]) -> list[DriverWithDistance]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers[API_KEY_HEADER] = self.api_key

        try:
            response = await self.client.post(f"{self.base_url}{SEARCH_PATH}", json=body, headers=headers)
        except httpx.HTTPError as e:
            await log_warning(f"Запрос к Driver Location Service не удался: {e}")
            raise UpstreamError(f"driver location service request failed: {e}") from e

        if response.status_code != httpx.codes.OK:
            await log_warning(f"Driver Location Service вернул {response.status_code}: {response.text[:500]}")
            raise UpstreamError(
                f"unexpected status: {response.status_code}, body: {response.text}",
                status=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidUpstreamPayloadError(f"invalid JSON from driver location service: {e}") from e

        if not isinstance(payload, dict):
            raise InvalidUpstreamPayloadError("invalid response format from driver location service")

        if not payload.get("success"):
            error = payload.get("error", "")
            message = payload.get("message", "")
            raise UpstreamError(
                f"driver location service error: {error} - {message}",
                status=response.status_code,
                upstream_error=error,
                upstream_message=message,
            )

        data = payload.get("data")
        if not isinstance(data, dict):
            raise InvalidUpstreamPayloadError("invalid response data format from driver location service")

        try:
            return DriverSearchData.model_validate(data).drivers
        except ValidationError as e:
            raise InvalidUpstreamPayloadError(f"invalid drivers data format from driver location service: {e}") from e
