# ridehail/services/matching_service/dependencies.py
"""
Dependency Injection для Matching Service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ridehail.config import Settings
    from ridehail.services.matching_service.service import MatchingService


# Синглтоны
_matching_service: "MatchingService | None" = None


def init_dependencies(settings: "Settings") -> "MatchingService":
    """Собирает клиент, breaker и сервис при старте приложения."""
    global _matching_service

    from ridehail.common.logger import get_logger
    from ridehail.services.matching_service.circuit_breaker import CircuitBreaker
    from ridehail.services.matching_service.client import DriverLocationClient
    from ridehail.services.matching_service.service import MatchingService

    cfg = settings.matching_service
    breaker = CircuitBreaker(
        "driver location service",
        max_requests=cfg.BREAKER_MAX_REQUESTS,
        interval=cfg.BREAKER_INTERVAL,
        timeout=cfg.BREAKER_TIMEOUT,
        failure_threshold=cfg.BREAKER_FAILURE_THRESHOLD,
    )
    get_logger("matching").info(
        f"Driver Location Service: {cfg.DRIVER_LOCATION_BASE_URL} "
        f"(breaker max_requests={cfg.BREAKER_MAX_REQUESTS}, interval={cfg.BREAKER_INTERVAL}s, "
        f"timeout={cfg.BREAKER_TIMEOUT}s)"
    )
    client = DriverLocationClient(
        cfg.DRIVER_LOCATION_BASE_URL,
        api_key=cfg.DRIVER_LOCATION_API_KEY,
        timeout=cfg.REQUEST_TIMEOUT,
        breaker=breaker,
    )
    _matching_service = MatchingService(
        client,
        min_radius=settings.search.MIN_RADIUS,
        max_radius=settings.search.MAX_RADIUS,
    )
    return _matching_service


def set_matching_service(service: "MatchingService | None") -> None:
    """Подменяет сервис (тесты, ручная сборка)."""
    global _matching_service
    _matching_service = service


def get_matching_service() -> "MatchingService":
    """Получить сервис подбора."""
    if _matching_service is None:
        raise RuntimeError("MatchingService не инициализирован. Вызовите init_dependencies()")
    return _matching_service


async def cleanup_dependencies() -> None:
    """Закрыть HTTP клиент при остановке приложения."""
    global _matching_service
    if _matching_service:
        await _matching_service.close()
        _matching_service = None
