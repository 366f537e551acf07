# tests/common/test_constants.py
"""
Тесты для модуля констант.
"""

from ridehail.common.constants import (
    API_KEY_HEADER,
    EARTH_RADIUS_METERS,
    GEO_POINT_TYPE,
    BreakerState,
    ErrorCode,
    TypeMsg,
)


class TestTypeMsg:
    """Тесты для enum TypeMsg."""

    def test_type_msg_values(self) -> None:
        assert TypeMsg.DEBUG.value == "debug"
        assert TypeMsg.INFO.value == "info"
        assert TypeMsg.WARNING.value == "warning"
        assert TypeMsg.ERROR.value == "error"
        assert TypeMsg.CRITICAL.value == "critical"

    def test_type_msg_is_str_enum(self) -> None:
        """Проверяет, что TypeMsg является строковым enum."""
        assert isinstance(TypeMsg.DEBUG, str)
        assert TypeMsg.INFO == "info"


class TestErrorCode:
    """Коды ошибок видны клиентам и не должны меняться."""

    def test_error_code_values(self) -> None:
        assert ErrorCode.INVALID_REQUEST == "invalid_request"
        assert ErrorCode.VALIDATION_ERROR == "validation_error"
        assert ErrorCode.UNAUTHORIZED == "unauthorized"
        assert ErrorCode.NOT_FOUND == "not_found"
        assert ErrorCode.CONFLICT == "conflict"
        assert ErrorCode.INTERNAL_ERROR == "internal_error"


class TestBreakerState:
    def test_breaker_state_values(self) -> None:
        assert BreakerState.CLOSED.value == "closed"
        assert BreakerState.OPEN.value == "open"
        assert BreakerState.HALF_OPEN.value == "half-open"


def test_geo_constants() -> None:
    assert GEO_POINT_TYPE == "Point"
    assert EARTH_RADIUS_METERS == 6_371_000.0
    assert API_KEY_HEADER == "X-API-Key"
