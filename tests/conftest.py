# tests/conftest.py
"""
Общие фикстуры для тестов.
"""

from __future__ import annotations

import os

# Переменные окружения выставляются до импорта настроек
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("MATCHING_API_KEY", "test-api-key")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("REDIS_ENABLED", "false")

import fnmatch
import json
from datetime import datetime, timezone
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

from ridehail.common.exceptions import DriverAlreadyExistsError, DriverNotFoundError
from ridehail.services.location_service.repository import new_driver_id
from ridehail.shared.models import Driver, DriverWithDistance, GeoPoint


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="INSERT 0 1")
    db.fetchval = AsyncMock(return_value=None)
    db.health_check = AsyncMock(return_value=True)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок клиента Redis."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock(return_value=True)
    redis.delete = AsyncMock(return_value=1)
    redis.incr = AsyncMock(return_value=1)
    redis.delete_pattern = AsyncMock(return_value=0)
    redis.get_model = AsyncMock(return_value=None)
    redis.set_model = AsyncMock(return_value=True)
    redis.get_json = AsyncMock(return_value=None)
    redis.set_json = AsyncMock(return_value=True)
    redis.health_check = AsyncMock(return_value=True)
    return redis


@pytest.fixture
def mock_repository() -> AsyncMock:
    """Мок репозитория водителей."""
    repository = AsyncMock()
    repository.health_check = AsyncMock(return_value=True)
    repository.is_empty = AsyncMock(return_value=True)
    return repository


@pytest.fixture
def mock_cache() -> AsyncMock:
    """Мок кэша водителей: по умолчанию всегда промах."""
    cache = AsyncMock()
    cache.driver_version = AsyncMock(return_value="0")
    cache.nearby_generation = AsyncMock(return_value="0")
    cache.get = AsyncMock(return_value=None)
    cache.get_nearby = AsyncMock(return_value=None)
    cache.is_healthy = AsyncMock(return_value=True)
    return cache


# =============================================================================
# ФЕЙКИ В ПАМЯТИ
# =============================================================================

class FakeRedisClient:
    """RedisClient на словаре. TTL запоминается, но не истекает."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> bool:
        self.data[key] = value
        self.ttls[key] = ttl
        return True

    async def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self.data.pop(key, None) is not None)

    async def incr(self, key: str, ttl: int | None = None) -> int:
        value = int(self.data.get(key, "0")) + 1
        self.data[key] = str(value)
        if ttl is not None:
            self.ttls[key] = ttl
        return value

    async def scan_keys(self, pattern: str, count: int = 500) -> list[str]:
        return [key for key in self.data if fnmatch.fnmatchcase(key, pattern)]

    async def delete_pattern(self, pattern: str, keep: set[str] | None = None) -> int:
        keep = keep or set()
        return await self.delete(*(k for k in await self.scan_keys(pattern) if k not in keep))

    async def get_model(self, key: str, model_class: Any) -> Any:
        data = self.data.get(key)
        return None if data is None else model_class.model_validate_json(data)

    async def set_model(self, key: str, model: Any, ttl: int | None = None) -> bool:
        return await self.set(key, model.model_dump_json(), ttl=ttl)

    async def get_json(self, key: str) -> Any:
        data = self.data.get(key)
        return None if data is None else json.loads(data)

    async def set_json(self, key: str, data: Any, ttl: int | None = None) -> bool:
        return await self.set(key, json.dumps(data), ttl=ttl)

    async def health_check(self) -> bool:
        return True


class InMemoryDriverRepository:
    """Хранилище в памяти с тем же контрактом, что и DriverRepository."""

    def __init__(self) -> None:
        self.drivers: dict[str, Driver] = {}
        self.calls: list[str] = []
        self.healthy = True

    async def create(self, driver: Driver) -> Driver:
        self.calls.append("create")
        driver_id = driver.id or new_driver_id()
        if driver_id in self.drivers:
            raise DriverAlreadyExistsError(driver_id)
        now = datetime.now(timezone.utc)
        stored = driver.model_copy(update={"id": driver_id, "created_at": now, "updated_at": now})
        self.drivers[driver_id] = stored
        return stored

    async def batch_create(self, drivers: list[Driver]) -> list[Driver]:
        self.calls.append("batch_create")
        return [await self.create(d) for d in drivers]

    async def get(self, driver_id: str) -> Driver:
        self.calls.append("get")
        if driver_id not in self.drivers:
            raise DriverNotFoundError(driver_id)
        return self.drivers[driver_id]

    async def update(self, driver: Driver) -> Driver:
        self.calls.append("update")
        if driver.id not in self.drivers:
            raise DriverNotFoundError(driver.id)
        stored = self.drivers[driver.id].model_copy(update={
            "location": driver.location,
            "updated_at": datetime.now(timezone.utc),
        })
        self.drivers[driver.id] = stored
        return stored

    async def delete(self, driver_id: str) -> None:
        self.calls.append("delete")
        if self.drivers.pop(driver_id, None) is None:
            raise DriverNotFoundError(driver_id)

    async def search_nearby(self, center: GeoPoint, radius: float, limit: int) -> list[DriverWithDistance]:
        self.calls.append("search_nearby")
        found = [
            DriverWithDistance(driver=d, distance=center.distance(d.location))
            for d in self.drivers.values()
        ]
        found = sorted((r for r in found if r.distance <= radius), key=lambda r: r.distance)
        return found[:limit] if limit > 0 else found

    async def is_empty(self) -> bool:
        return not self.drivers

    async def health_check(self) -> bool:
        return self.healthy


@pytest.fixture
def fake_redis() -> FakeRedisClient:
    return FakeRedisClient()


@pytest.fixture
def memory_repository() -> InMemoryDriverRepository:
    return InMemoryDriverRepository()


# =============================================================================
# ФИКСТУРЫ МОДЕЛЕЙ
# =============================================================================

@pytest.fixture
def istanbul() -> GeoPoint:
    """Центр Стамбула (lon, lat)."""
    return GeoPoint.new(28.9784, 41.0082)


@pytest.fixture
def ankara() -> GeoPoint:
    return GeoPoint.new(32.8597, 39.9334)


@pytest.fixture
def sample_driver(istanbul: GeoPoint) -> Driver:
    """Пример сохранённого водителя."""
    now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    return Driver(id="507f1f77bcf86cd799439011", location=istanbul, created_at=now, updated_at=now)


@pytest.fixture
def driver_row() -> dict[str, Any]:
    """Строка таблицы drivers в том виде, в каком её отдаёт SELECT репозитория."""
    now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
    return {
        "id": "507f1f77bcf86cd799439011",
        "lon": 28.9784,
        "lat": 41.0082,
        "created_at": now,
        "updated_at": now,
    }


@pytest.fixture
def make_nearby() -> Callable[[str, float, float, float], DriverWithDistance]:
    """Фабрика результатов поиска в радиусе."""
    def factory(driver_id: str, lon: float, lat: float, distance: float) -> DriverWithDistance:
        return DriverWithDistance(
            driver=Driver(id=driver_id, location=GeoPoint.new(lon, lat)),
            distance=distance,
        )
    return factory


class FakeClock:
    """Управляемые монотонные часы."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    """Часы для circuit breaker, время двигается вручную."""
    return FakeClock()
