# ridehail/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCode(str, Enum):
    """Коды ошибок, которые видит клиент."""
    INVALID_REQUEST = "invalid_request"
    VALIDATION_ERROR = "validation_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL_ERROR = "internal_error"


class BreakerState(str, Enum):
    """Состояния circuit breaker."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


# Имена сервисов (используются в /health и логах)
LOCATION_SERVICE_NAME = "driver-location-service"
MATCHING_SERVICE_NAME = "matching-service"

# GeoJSON
GEO_POINT_TYPE = "Point"

# Радиус Земли в метрах (сфера)
EARTH_RADIUS_METERS = 6_371_000.0

# Заголовок с API-ключом Location Service
API_KEY_HEADER = "X-API-Key"
