# ridehail/common/exceptions.py
"""
Иерархия исключений сервисов.

Каждое исключение знает свой код ошибки и HTTP-статус,
поэтому HTTP-слой рендерит их единообразно.
"""

from __future__ import annotations

from typing import Any

from ridehail.common.constants import ErrorCode


class RideHailError(Exception):
    """Базовое исключение."""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500

    def __init__(self, message: str, details: Any | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


# =============================================================================
# ВАЛИДАЦИЯ И АВТОРИЗАЦИЯ
# =============================================================================

class InvalidRequestError(RideHailError):
    """Невалидный запрос (координаты, радиус, пустой батч, пустой id)."""
    error_code = ErrorCode.INVALID_REQUEST
    status_code = 400


class MatchValidationError(InvalidRequestError):
    """Ошибка валидации запроса Matching Service."""
    error_code = ErrorCode.VALIDATION_ERROR


class UnauthorizedError(RideHailError):
    """Запрос без валидных учётных данных."""
    error_code = ErrorCode.UNAUTHORIZED
    status_code = 401


# =============================================================================
# ХРАНИЛИЩЕ
# =============================================================================

class DriverNotFoundError(RideHailError):
    """Водитель не найден в хранилище."""
    error_code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, driver_id: str) -> None:
        super().__init__(f"driver not found: {driver_id}")
        self.driver_id = driver_id


class DriverAlreadyExistsError(RideHailError):
    """Водитель с таким id уже существует."""
    error_code = ErrorCode.CONFLICT
    status_code = 409

    def __init__(self, driver_id: str) -> None:
        super().__init__(f"driver already exists: {driver_id}")
        self.driver_id = driver_id


class StoreUnavailableError(RideHailError):
    """Хранилище недоступно (транспорт, таймаут)."""


class BatchCreateError(RideHailError):
    """Пакетная вставка откатилась целиком."""


# =============================================================================
# КЭШ
# =============================================================================

class CacheError(RideHailError):
    """Ошибка кэша. Никогда не пробрасывается клиенту."""


# =============================================================================
# MATCHING / UPSTREAM
# =============================================================================

class NoDriversFoundError(RideHailError):
    """В радиусе нет ни одного водителя."""
    error_code = ErrorCode.NOT_FOUND
    status_code = 404

    def __init__(self, message: str = "no drivers found") -> None:
        super().__init__(message)


class UpstreamUnavailableError(RideHailError):
    """Circuit breaker не пропустил вызов к Location Service."""

    def __init__(self, message: str, state: str | None = None) -> None:
        super().__init__(message)
        self.state = state


class UpstreamError(RideHailError):
    """Location Service ответил ошибкой (статус или success=false)."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        upstream_error: str | None = None,
        upstream_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status = status
        self.upstream_error = upstream_error
        self.upstream_message = upstream_message


class InvalidUpstreamPayloadError(RideHailError):
    """Ответ Location Service не соответствует ожидаемой схеме."""
