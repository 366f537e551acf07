# ridehail/services/location_service/repository.py
"""
Хранилище водителей: PostgreSQL + PostGIS.
Единственный источник истины о позициях водителей.
"""

from __future__ import annotations

import secrets
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

import asyncpg

from ridehail.common.exceptions import (
    BatchCreateError,
    DriverAlreadyExistsError,
    DriverNotFoundError,
    StoreUnavailableError,
)
from ridehail.common.logger import log_debug, log_error
from ridehail.infra.database import CONNECTION_ERRORS, DatabaseManager
from ridehail.shared.models import Driver, DriverWithDistance, GeoPoint

# Точка из ($lon, $lat) в geography
_POINT_SQL = "ST_SetSRID(ST_MakePoint({lon}, {lat}), 4326)::geography"

_SELECT_COLUMNS = """
    id,
    ST_X(location::geometry) AS lon,
    ST_Y(location::geometry) AS lat,
    created_at,
    updated_at
"""

STORE_ERRORS: tuple[type[BaseException], ...] = (
    TimeoutError,
    asyncpg.PostgresError,
    *CONNECTION_ERRORS,
)


def new_driver_id() -> str:
    """24 hex-символа: форма идентификатора, которую ждут клиенты."""
    return secrets.token_hex(12)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_driver(row: Any) -> Driver:
    return Driver(
        id=row["id"],
        location=GeoPoint.new(row["lon"], row["lat"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    """Переводит ошибки драйвера в StoreUnavailableError с контекстом операции."""
    try:
        yield
    except STORE_ERRORS as e:
        raise StoreUnavailableError(f"failed to {action}: {e}") from e


class DriverRepository:
    """
    Репозиторий водителей.

    Таймауты операций (секунды):
        write_timeout  - create / get / update / delete
        batch_timeout  - batch_create
        search_timeout - search_nearby
    """

    def __init__(
        self,
        db: DatabaseManager,
        write_timeout: float = 5.0,
        batch_timeout: float = 30.0,
        search_timeout: float = 10.0,
    ):
        self.db = db
        self.write_timeout = write_timeout
        self.batch_timeout = batch_timeout
        self.search_timeout = search_timeout

    async def create(self, driver: Driver) -> Driver:
        """
        Сохраняет водителя. Пустой id заменяется сгенерированным,
        created_at и updated_at проставляются здесь.

        Raises:
            DriverAlreadyExistsError: id уже занят
            StoreUnavailableError: ошибка хранилища
        """
        now = _utcnow()
        stored = driver.model_copy(update={
            "id": driver.id or new_driver_id(),
            "created_at": now,
            "updated_at": now,
        })

        query = f"""
            INSERT INTO drivers (id, location, created_at, updated_at)
            VALUES ($1, {_POINT_SQL.format(lon="$2", lat="$3")}, $4, $4)
        """
        try:
            with _store_errors("create driver"):
                await self.db.execute(
                    query,
                    stored.id,
                    stored.location.longitude(),
                    stored.location.latitude(),
                    now,
                    timeout=self.write_timeout,
                )
        except StoreUnavailableError as e:
            if isinstance(e.__cause__, asyncpg.UniqueViolationError):
                raise DriverAlreadyExistsError(stored.id) from e.__cause__
            raise

        return stored

    async def batch_create(self, drivers: list[Driver]) -> list[Driver]:
        """
        Сохраняет пачку водителей одной транзакцией: либо все, либо никто.
        Пустой список ничего не делает.

        Raises:
            BatchCreateError: пачка откатилась
        """
        if not drivers:
            return []

        now = _utcnow()
        stored = [
            d.model_copy(update={
                "id": d.id or new_driver_id(),
                "created_at": now,
                "updated_at": now,
            })
            for d in drivers
        ]

        # WITH ORDINALITY сохраняет порядок вставки (seq)
        query = f"""
            INSERT INTO drivers (id, location, created_at, updated_at)
            SELECT t.id, {_POINT_SQL.format(lon="t.lon", lat="t.lat")}, $4, $4
            FROM unnest($1::text[], $2::float8[], $3::float8[]) WITH ORDINALITY AS t(id, lon, lat, ord)
            ORDER BY t.ord
        """
        try:
            async with self.db.transaction() as conn:
                await conn.execute(
                    query,
                    [d.id for d in stored],
                    [d.location.longitude() for d in stored],
                    [d.location.latitude() for d in stored],
                    now,
                    timeout=self.batch_timeout,
                )
        except STORE_ERRORS as e:
            await log_error(f"Пакетная вставка {len(stored)} водителей откатилась: {e}")
            raise BatchCreateError(f"failed to batch create drivers: {e}") from e

        await log_debug(f"Вставлено водителей: {len(stored)}")
        return stored

    async def get(self, driver_id: str) -> Driver:
        """
        Raises:
            DriverNotFoundError: водителя нет
        """
        with _store_errors("get driver"):
            row = await self.db.fetchrow(
                f"SELECT {_SELECT_COLUMNS} FROM drivers WHERE id = $1",
                driver_id,
                timeout=self.write_timeout,
            )
        if row is None:
            raise DriverNotFoundError(driver_id)
        return _row_to_driver(row)

    async def update(self, driver: Driver) -> Driver:
        """Обновляет позицию и updated_at. Водитель должен существовать."""
        now = _utcnow()
        query = f"""
            UPDATE drivers
            SET location = {_POINT_SQL.format(lon="$2", lat="$3")}, updated_at = $4
            WHERE id = $1
            RETURNING {_SELECT_COLUMNS}
        """
        with _store_errors("update driver"):
            row = await self.db.fetchrow(
                query,
                driver.id,
                driver.location.longitude(),
                driver.location.latitude(),
                now,
                timeout=self.write_timeout,
            )
        if row is None:
            raise DriverNotFoundError(driver.id)
        return _row_to_driver(row)

    async def delete(self, driver_id: str) -> None:
        with _store_errors("delete driver"):
            status = await self.db.execute(
                "DELETE FROM drivers WHERE id = $1",
                driver_id,
                timeout=self.write_timeout,
            )
        # asyncpg возвращает статус вида "DELETE <n>"
        if status.split()[-1] == "0":
            raise DriverNotFoundError(driver_id)

    async def search_nearby(
        self,
        center: GeoPoint,
        radius: float,
        limit: int,
    ) -> list[DriverWithDistance]:
        """
        Водители в радиусе radius (метры) от center, по возрастанию расстояния.
        Равные расстояния упорядочены по порядку вставки.
        limit <= 0 означает без ограничения.
        """
        center_sql = _POINT_SQL.format(lon="$1", lat="$2")
        query = f"""
            SELECT {_SELECT_COLUMNS}
            FROM drivers
            WHERE ST_DWithin(location, {center_sql}, $3, false)
            ORDER BY location <-> {center_sql}, seq
            LIMIT $4
        """
        with _store_errors("search nearby drivers"):
            rows = await self.db.fetch(
                query,
                center.longitude(),
                center.latitude(),
                radius,
                limit if limit > 0 else None,
                timeout=self.search_timeout,
            )

        results = []
        for row in rows:
            driver = _row_to_driver(row)
            results.append(DriverWithDistance(driver=driver, distance=center.distance(driver.location)))

        # Стабильная сортировка: порядок хранилища сохраняется при равных расстояниях
        results.sort(key=lambda r: r.distance)
        return results

    async def is_empty(self) -> bool:
        with _store_errors("check drivers table"):
            return bool(await self.db.fetchval(
                "SELECT NOT EXISTS (SELECT 1 FROM drivers)",
                timeout=self.write_timeout,
            ))

    async def health_check(self) -> bool:
        return await self.db.health_check()
