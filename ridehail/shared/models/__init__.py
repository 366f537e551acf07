# ridehail/shared/models/__init__.py
"""
Общие DTO и Pydantic-модели для межсервисного взаимодействия.
"""

from ridehail.shared.models.geo import GeoPoint
from ridehail.shared.models.driver import (
    Driver,
    DriverWithDistance,
    CreateDriverRequest,
    BatchCreateRequest,
    SearchRequest,
    DriverList,
)
from ridehail.shared.models.matching import (
    Rider,
    MatchRequest,
    MatchResult,
    MatchResponse,
    DriverSearchData,
)
from ridehail.shared.models.common import (
    APIResponse,
    FieldError,
    HealthStatus,
)

__all__ = [
    # Geo
    "GeoPoint",
    # Driver
    "Driver",
    "DriverWithDistance",
    "CreateDriverRequest",
    "BatchCreateRequest",
    "SearchRequest",
    "DriverList",
    # Matching
    "Rider",
    "MatchRequest",
    "MatchResult",
    "MatchResponse",
    "DriverSearchData",
    # Common
    "APIResponse",
    "FieldError",
    "HealthStatus",
]
