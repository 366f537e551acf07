# ridehail/shared/models/geo.py
"""
GeoJSON точка и расстояние между точками.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, field_validator

from ridehail.common.constants import GEO_POINT_TYPE
from ridehail.services.utils.geo_utils import calculate_distance


def coordinates_error(coordinates: list[float] | tuple[float, ...]) -> str | None:
    """
    Проверяет пару [longitude, latitude].

    Returns:
        Текст ошибки или None, если координаты валидны
    """
    if len(coordinates) != 2:
        return "coordinates must have length 2"
    longitude, latitude = coordinates
    if not -180 <= longitude <= 180:
        return "longitude must be between -180 and 180"
    if not -90 <= latitude <= 90:
        return "latitude must be between -90 and 90"
    return None


class GeoPoint(BaseModel):
    """
    GeoJSON Point: coordinates = [longitude, latitude].
    Формат совпадает с тем, что принимает пространственный индекс хранилища.
    """

    type: Literal["Point"] = GEO_POINT_TYPE
    coordinates: list[float]

    @field_validator("coordinates")
    @classmethod
    def check_coordinates(cls, v: list[float]) -> list[float]:
        error = coordinates_error(v)
        if error:
            raise ValueError(error)
        return v

    @classmethod
    def new(cls, longitude: float, latitude: float) -> GeoPoint:
        """Создаёт точку из долготы и широты."""
        return cls(type=GEO_POINT_TYPE, coordinates=[longitude, latitude])

    def longitude(self) -> float:
        return self.coordinates[0]

    def latitude(self) -> float:
        return self.coordinates[1]

    def distance(self, other: GeoPoint) -> float:
        """Расстояние до другой точки в метрах (haversine)."""
        return calculate_distance(
            self.latitude(),
            self.longitude(),
            other.latitude(),
            other.longitude(),
        )

    def validation_error(self) -> str | None:
        """Повторная проверка для объектов, собранных без валидации."""
        if self.type != GEO_POINT_TYPE:
            return f"location type must be {GEO_POINT_TYPE}"
        return coordinates_error(self.coordinates)
