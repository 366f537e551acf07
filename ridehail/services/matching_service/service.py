# ridehail/services/matching_service/service.py
"""
Подбор ближайшего водителя для пассажира.
Состояния между запросами нет.
"""

from __future__ import annotations

from ridehail.common.exceptions import MatchValidationError, NoDriversFoundError
from ridehail.common.logger import log_info
from ridehail.services.matching_service.client import DriverLocationClient
from ridehail.services.utils.geo_utils import round_distance
from ridehail.shared.models import FieldError, MatchRequest, MatchResult, Rider


class MatchingService:
    def __init__(
        self,
        driver_location: DriverLocationClient,
        min_radius: float = 0.1,
        max_radius: float = 50000.0,
    ):
        self.driver_location = driver_location
        self.min_radius = min_radius
        self.max_radius = max_radius

    def validate(self, request: MatchRequest) -> None:
        """
        Raises:
            MatchValidationError: с details [{field, message}]
        """
        errors: list[FieldError] = []

        location_error = request.location.validation_error()
        if location_error:
            errors.append(FieldError(
                field="location",
                message="location coordinates are invalid (longitude: -180 to 180, latitude: -90 to 90)",
            ))
        if not self.min_radius <= request.radius <= self.max_radius:
            errors.append(FieldError(
                field="radius",
                message=f"radius must be between {self.min_radius:g} and {self.max_radius:g} meters",
            ))

        if errors:
            raise MatchValidationError(
                "Request validation failed",
                details=[e.model_dump() for e in errors],
            )

    async def match(self, rider: Rider, radius: float) -> MatchResult:
        """
        Ближайший водитель: первый в ответе Location Service
        (список уже упорядочен по возрастанию расстояния).

        Raises:
            NoDriversFoundError: в радиусе никого нет
        """
        drivers = await self.driver_location.find_nearby_drivers(rider.location, radius)
        if not drivers:
            raise NoDriversFoundError()

        nearest = drivers[0]
        result = MatchResult(
            rider_id=rider.id,
            driver_id=nearest.driver.id,
            distance=round_distance(nearest.distance),
        )
        await log_info(f"Пассажир {rider.id} -> водитель {result.driver_id} ({result.distance} м)")
        return result

    async def close(self) -> None:
        await self.driver_location.close()
