# ridehail/services/location_service/service.py
"""
Прикладной сервис водителей.

Порядок шагов в каждой операции: валидация -> хранилище -> кэш.
Кэш рекомендательный: его ошибки логируются как WARNING и не ломают запрос.
После любой мутации все закэшированные результаты поиска инвалидируются.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path

from ridehail.common.exceptions import CacheError, InvalidRequestError, RideHailError
from ridehail.common.logger import log_debug, log_error, log_info, log_warning
from ridehail.services.location_service.cache import DriverCache
from ridehail.services.location_service.repository import DriverRepository
from ridehail.shared.models import (
    BatchCreateRequest,
    CreateDriverRequest,
    Driver,
    DriverWithDistance,
    GeoPoint,
    SearchRequest,
)

DEFAULT_SEARCH_LIMIT = 10


def _validate_location(location: GeoPoint) -> None:
    error = location.validation_error()
    if error:
        raise InvalidRequestError(f"invalid location: {error}")


def _require_id(driver_id: str | None) -> str:
    driver_id = (driver_id or "").strip()
    if not driver_id:
        raise InvalidRequestError("driver ID is required")
    return driver_id


class DriverService:
    def __init__(
        self,
        repository: DriverRepository,
        cache: DriverCache | None = None,
        default_limit: int = DEFAULT_SEARCH_LIMIT,
        max_limit: int = 100,
        driver_ttl: int = 60,
        nearby_ttl: int = 60,
    ):
        self.repository = repository
        self.cache = cache
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.driver_ttl = driver_ttl
        self.nearby_ttl = nearby_ttl

    # =========================================================================
    # СОЗДАНИЕ
    # =========================================================================

    async def create(self, request: CreateDriverRequest) -> Driver:
        _validate_location(request.location)

        driver = await self.repository.create(request.to_driver())
        await log_info(f"Создан водитель {driver.id}")

        if self.cache is not None:
            try:
                await self.cache.set(driver.id, driver, ttl=self.driver_ttl)
            except CacheError as e:
                await log_warning(f"Не удалось закэшировать водителя {driver.id}: {e}")
            await self._invalidate_nearby()

        return driver

    async def batch_create(self, request: BatchCreateRequest) -> list[Driver]:
        """Пачка целиком или ничего. Кэш отдельных водителей не заполняется."""
        if not request.drivers:
            raise InvalidRequestError("at least one driver is required")
        for item in request.drivers:
            _validate_location(item.location)

        drivers = await self.repository.batch_create([item.to_driver() for item in request.drivers])
        await log_info(f"Пакетно создано водителей: {len(drivers)}")

        if self.cache is not None:
            await self._invalidate_nearby()

        return drivers

    # =========================================================================
    # ЧТЕНИЕ
    # =========================================================================

    async def get(self, driver_id: str) -> Driver:
        driver_id = _require_id(driver_id)

        # Версия читается до хранилища: строка, обогнанная update/delete, ляжет под старую версию
        version: str | None = None
        if self.cache is not None:
            try:
                version = await self.cache.driver_version(driver_id)
                cached = await self.cache.get(driver_id, version)
            except CacheError as e:
                await log_warning(f"Не удалось прочитать водителя {driver_id} из кэша: {e}")
            else:
                if cached is not None:
                    await log_debug(f"Кэш: попадание для водителя {driver_id}")
                    return cached

        driver = await self.repository.get(driver_id)

        if version is not None:
            try:
                await self.cache.set(driver_id, driver, version, self.driver_ttl)
            except CacheError as e:
                await log_warning(f"Не удалось закэшировать водителя {driver_id}: {e}")

        return driver

    async def search_nearby(self, request: SearchRequest) -> list[DriverWithDistance]:
        """
        Поиск в радиусе. limit <= 0 заменяется значением по умолчанию,
        слишком большой limit обрезается до max_limit.
        Порядок (по возрастанию расстояния) задаёт хранилище.
        """
        _validate_location(request.location)
        if request.radius <= 0:
            raise InvalidRequestError("radius must be greater than 0")

        limit = request.limit if request.limit > 0 else self.default_limit
        if self.max_limit > 0:
            limit = min(limit, self.max_limit)

        lat = request.location.latitude()
        lon = request.location.longitude()

        # Поколение фиксируется до запроса к хранилищу и используется и для чтения, и для записи
        generation: str | None = None
        if self.cache is not None:
            try:
                generation = await self.cache.nearby_generation()
                cached = await self.cache.get_nearby(lat, lon, request.radius, limit, generation)
            except CacheError as e:
                await log_warning(f"Не удалось прочитать результаты поиска из кэша: {e}")
            else:
                if cached is not None:
                    await log_debug(f"Кэш: попадание поиска ({lat}, {lon}, r={request.radius}, limit={limit})")
                    return cached

        results = await self.repository.search_nearby(request.location, request.radius, limit)

        if generation is not None:
            try:
                await self.cache.set_nearby(lat, lon, request.radius, limit, results, generation, self.nearby_ttl)
            except CacheError as e:
                await log_warning(f"Не удалось закэшировать результаты поиска: {e}")

        return results

    # =========================================================================
    # ИЗМЕНЕНИЕ И УДАЛЕНИЕ
    # =========================================================================

    async def update(self, driver: Driver) -> Driver:
        driver_id = _require_id(driver.id)
        _validate_location(driver.location)

        updated = await self.repository.update(driver.model_copy(update={"id": driver_id}))
        await self._evict(driver_id)
        return updated

    async def update_location(self, driver_id: str, location: GeoPoint) -> Driver:
        driver_id = _require_id(driver_id)
        _validate_location(location)

        driver = await self.repository.get(driver_id)
        driver = driver.model_copy(update={
            "location": location,
            "updated_at": datetime.now(timezone.utc),
        })

        updated = await self.repository.update(driver)
        await self._evict(driver_id)
        return updated

    async def delete(self, driver_id: str) -> None:
        driver_id = _require_id(driver_id)

        await self.repository.delete(driver_id)
        await log_info(f"Удалён водитель {driver_id}")
        await self._evict(driver_id)

    async def _evict(self, driver_id: str) -> None:
        """Убирает водителя из кэша и инвалидирует результаты поиска."""
        if self.cache is None:
            return
        try:
            await self.cache.delete(driver_id)
        except CacheError as e:
            await log_warning(f"Не удалось удалить водителя {driver_id} из кэша: {e}")
        await self._invalidate_nearby()

    async def _invalidate_nearby(self) -> None:
        try:
            await self.cache.invalidate_nearby()
        except CacheError as e:
            await log_warning(f"Не удалось инвалидировать nearby-кэш: {e}")

    # =========================================================================
    # СЛУЖЕБНОЕ
    # =========================================================================

    async def is_cache_healthy(self) -> bool:
        if self.cache is None:
            return False
        return await self.cache.is_healthy()

    async def seed_if_empty(self, csv_path: str | Path, batch_size: int = 100) -> int:
        """
        Начальное наполнение из CSV (latitude,longitude), только если хранилище пусто.
        Ошибка одной пачки логируется, остальные продолжают загружаться.

        Returns:
            Количество созданных водителей
        """
        from ridehail.importer.importer import ImportStats, read_batches

        if not await self.repository.is_empty():
            await log_info("Хранилище не пусто, начальная загрузка пропущена")
            return 0

        path = Path(csv_path)
        if not path.exists():
            await log_warning(f"Файл начальной загрузки не найден: {path}")
            return 0

        stats = ImportStats()
        batches = await asyncio.to_thread(lambda: list(read_batches(path, batch_size, stats)))

        created = 0
        for batch in batches:
            try:
                drivers = await self.batch_create(BatchCreateRequest(drivers=batch))
            except RideHailError as e:
                stats.add_errors(len(batch))
                await log_error(f"Не удалось загрузить пачку из {len(batch)} водителей: {e.message}")
                continue
            created += len(drivers)

        await log_info(f"Начальная загрузка завершена: success={created}, error={stats.errors}")
        return created
