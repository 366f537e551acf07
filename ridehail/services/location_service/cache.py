# ridehail/services/location_service/cache.py
"""
Кэш водителей в Redis.

Записи (TTL ~60 с):
    driver:<id>:version                          - версия водителя
    driver:<id>:v<version>                       - водитель
    nearby:generation                            - поколение результатов поиска
    nearby:<gen>:<lat>:<lon>:<radius>:<limit>    - результат поиска в радиусе

Версия и поколение читаются до обращения к хранилищу и передаются в запись.
Мутация увеличивает счётчик, поэтому результат, прочитанный из хранилища до неё,
ложится под старый ключ и больше никогда не читается.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from pydantic import TypeAdapter, ValidationError
from redis.exceptions import RedisError

from ridehail.common.exceptions import CacheError
from ridehail.common.logger import log_debug
from ridehail.infra.redis_client import RedisClient
from ridehail.shared.models import Driver, DriverWithDistance

NEARBY_PREFIX = "nearby"
NEARBY_GENERATION_KEY = f"{NEARBY_PREFIX}:generation"

# Счётчик версии живёт дольше любой записи водителя
DRIVER_VERSION_TTL_FACTOR = 10

_nearby_adapter = TypeAdapter(list[DriverWithDistance])


def driver_version_key(driver_id: str) -> str:
    return f"driver:{driver_id}:version"


def driver_key(driver_id: str, version: str = "0") -> str:
    return f"driver:{driver_id}:v{version}"


def nearby_fingerprint(lat: float, lon: float, radius: float, limit: int) -> str:
    """Стабильный отпечаток запроса: эквивалентные запросы дают один ключ."""
    return f"{lat:.6f}:{lon:.6f}:{radius:.2f}:{int(limit)}"


def nearby_key(generation: str, lat: float, lon: float, radius: float, limit: int) -> str:
    return f"{NEARBY_PREFIX}:{generation}:{nearby_fingerprint(lat, lon, radius, limit)}"


@contextmanager
def _cache_errors(action: str) -> Iterator[None]:
    try:
        yield
    except (RedisError, ConnectionError, TimeoutError, OSError) as e:
        raise CacheError(f"failed to {action}: {e}") from e


class DriverCache:
    """Кэш поверх RedisClient. Любая ошибка бэкенда поднимается как CacheError."""

    def __init__(self, redis: RedisClient, driver_ttl: int = 60, nearby_ttl: int = 60):
        self.redis = redis
        self.driver_ttl = driver_ttl
        self.nearby_ttl = nearby_ttl

    # =========================================================================
    # ВОДИТЕЛИ
    # =========================================================================

    async def driver_version(self, driver_id: str) -> str:
        with _cache_errors("read driver version"):
            return await self.redis.get(driver_version_key(driver_id)) or "0"

    async def get(self, driver_id: str, version: str | None = None) -> Driver | None:
        """None означает промах, а не ошибку."""
        if version is None:
            version = await self.driver_version(driver_id)
        with _cache_errors("get driver from cache"):
            return await self.redis.get_model(driver_key(driver_id, version), Driver)

    async def set(
        self,
        driver_id: str,
        driver: Driver,
        version: str | None = None,
        ttl: int | None = None,
    ) -> None:
        """
        Записывает водителя под версией, прочитанной до обращения к хранилищу.
        Без version берётся текущая.
        """
        if version is None:
            version = await self.driver_version(driver_id)
        with _cache_errors("set driver in cache"):
            await self.redis.set_model(driver_key(driver_id, version), driver, ttl=ttl or self.driver_ttl)

    async def delete(self, driver_id: str) -> None:
        """Увеличивает версию водителя и удаляет запись предыдущей версии."""
        with _cache_errors("delete driver from cache"):
            version = await self.redis.incr(
                driver_version_key(driver_id),
                ttl=self.driver_ttl * DRIVER_VERSION_TTL_FACTOR,
            )
            await self.redis.delete(driver_key(driver_id, str(version - 1)))

    # =========================================================================
    # ПОИСК В РАДИУСЕ
    # =========================================================================

    async def nearby_generation(self) -> str:
        with _cache_errors("read nearby generation"):
            return await self.redis.get(NEARBY_GENERATION_KEY) or "0"

    async def get_nearby(
        self,
        lat: float,
        lon: float,
        radius: float,
        limit: int,
        generation: str | None = None,
    ) -> list[DriverWithDistance] | None:
        if generation is None:
            generation = await self.nearby_generation()
        with _cache_errors("get nearby drivers from cache"):
            data = await self.redis.get_json(nearby_key(generation, lat, lon, radius, limit))
        if data is None:
            return None

        try:
            return _nearby_adapter.validate_python(data)
        except ValidationError as e:
            raise CacheError(f"failed to decode nearby drivers: {e}") from e

    async def set_nearby(
        self,
        lat: float,
        lon: float,
        radius: float,
        limit: int,
        results: list[DriverWithDistance],
        generation: str,
        ttl: int | None = None,
    ) -> None:
        """
        Записывает результат под поколением, прочитанным до запроса к хранилищу.
        Если с тех пор была инвалидация, запись недостижима и истечёт по TTL.
        """
        payload = _nearby_adapter.dump_python(results, mode="json")
        with _cache_errors("set nearby drivers in cache"):
            await self.redis.set_json(
                nearby_key(generation, lat, lon, radius, limit),
                payload,
                ttl=ttl or self.nearby_ttl,
            )

    async def invalidate_nearby(self) -> None:
        """
        Делает все ранее закэшированные результаты поиска недостижимыми,
        затем удаляет их.
        """
        with _cache_errors("invalidate nearby drivers"):
            generation = await self.redis.incr(NEARBY_GENERATION_KEY)
            removed = await self.redis.delete_pattern(
                f"{NEARBY_PREFIX}:*",
                keep={NEARBY_GENERATION_KEY},
            )
        await log_debug(f"Nearby-кэш инвалидирован: поколение {generation}, удалено ключей {removed}")

    async def is_healthy(self) -> bool:
        return await self.redis.health_check()
