# ridehail/shared/models/driver.py
"""
DTO водителей для Location Service.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from ridehail.shared.models.geo import GeoPoint


class Driver(BaseModel):
    """Водитель и его текущая позиция."""

    id: str = ""
    location: GeoPoint

    # Временные метки проставляет хранилище
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("id", mode="before")
    @classmethod
    def strip_id(cls, v: str | None) -> str:
        return (v or "").strip()


class DriverWithDistance(BaseModel):
    """Водитель и расстояние до центра поиска (метры)."""

    driver: Driver
    distance: float


class CreateDriverRequest(BaseModel):
    """Запрос на создание водителя. Пустой id означает, что id выдаст хранилище."""

    id: str | None = None
    location: GeoPoint

    @field_validator("id", mode="before")
    @classmethod
    def strip_id(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip()

    def to_driver(self) -> Driver:
        return Driver(id=self.id or "", location=self.location)


class BatchCreateRequest(BaseModel):
    """Пакетное создание водителей."""

    drivers: list[CreateDriverRequest] = Field(default_factory=list)


class SearchRequest(BaseModel):
    """Поиск водителей в радиусе (метры). limit <= 0 означает лимит по умолчанию."""

    location: GeoPoint
    radius: float
    limit: int = 0


class DriverList(BaseModel):
    """Список водителей в ответе (батч или поиск)."""

    drivers: list[Driver] | list[DriverWithDistance]
    count: int
