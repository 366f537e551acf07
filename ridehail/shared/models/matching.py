# ridehail/shared/models/matching.py
"""
DTO для Matching Service.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from ridehail.shared.models.driver import DriverWithDistance
from ridehail.shared.models.geo import GeoPoint


class Rider(BaseModel):
    """Пассажир: id берётся из токена, позиция из запроса."""

    id: str
    location: GeoPoint


class MatchRequest(BaseModel):
    """Запрос на подбор ближайшего водителя."""

    location: GeoPoint
    radius: float = Field(..., description="Радиус поиска в метрах")

    def to_rider(self, user_id: str) -> Rider:
        return Rider(id=user_id, location=self.location)


class MatchResult(BaseModel):
    """Результат подбора. distance округлено до 0.01 м."""

    rider_id: str
    driver_id: str
    distance: float


class MatchResponse(BaseModel):
    """Ответ /api/v1/match."""

    driver: str
    rider: str
    distance: float

    @classmethod
    def from_result(cls, result: MatchResult) -> MatchResponse:
        return cls(driver=result.driver_id, rider=result.rider_id, distance=result.distance)


class DriverSearchData(BaseModel):
    """Поле data в ответе поиска Location Service."""

    count: int
    drivers: list[DriverWithDistance]
