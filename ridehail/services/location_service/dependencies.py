# ridehail/services/location_service/dependencies.py
"""
Dependency Injection для Location Service.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ridehail.config import Settings
    from ridehail.infra.database import DatabaseManager
    from ridehail.infra.redis_client import RedisClient
    from ridehail.services.location_service.service import DriverService


# Синглтоны
_driver_service: "DriverService | None" = None


def init_dependencies(
    db: "DatabaseManager",
    redis: "RedisClient | None",
    settings: "Settings",
) -> "DriverService":
    """
    Собирает сервис при старте приложения.
    redis=None означает работу без кэша.
    """
    global _driver_service

    from ridehail.services.location_service.cache import DriverCache
    from ridehail.services.location_service.repository import DriverRepository
    from ridehail.services.location_service.service import DriverService

    repository = DriverRepository(
        db,
        write_timeout=settings.store_timeouts.WRITE_TIMEOUT,
        batch_timeout=settings.store_timeouts.BATCH_TIMEOUT,
        search_timeout=settings.store_timeouts.SEARCH_TIMEOUT,
    )
    cache = None
    if redis is not None:
        cache = DriverCache(
            redis,
            driver_ttl=settings.cache_ttl.DRIVER_TTL,
            nearby_ttl=settings.cache_ttl.NEARBY_TTL,
        )

    _driver_service = DriverService(
        repository,
        cache,
        default_limit=settings.search.DEFAULT_SEARCH_LIMIT,
        max_limit=settings.search.MAX_SEARCH_LIMIT,
        driver_ttl=settings.cache_ttl.DRIVER_TTL,
        nearby_ttl=settings.cache_ttl.NEARBY_TTL,
    )
    return _driver_service


def set_driver_service(service: "DriverService | None") -> None:
    """Подменяет сервис (тесты, ручная сборка)."""
    global _driver_service
    _driver_service = service


def get_driver_service() -> "DriverService":
    """Получить сервис водителей."""
    if _driver_service is None:
        raise RuntimeError("DriverService не инициализирован. Вызовите init_dependencies()")
    return _driver_service


def cleanup_dependencies() -> None:
    """Сбросить синглтоны при остановке приложения."""
    global _driver_service
    _driver_service = None
