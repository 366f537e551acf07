# ridehail/services/location_service/auth.py
"""
Проверка API-ключа для Location Service.
Вызывающий сервис передаёт общий секрет в заголовке X-API-Key.
"""

from __future__ import annotations

from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from ridehail.common.constants import API_KEY_HEADER, ErrorCode
from ridehail.common.logger import log_warning
from ridehail.shared.models import APIResponse

# Пути без проверки ключа
EXEMPT_PATHS = frozenset({"/health", "/"})
EXEMPT_PREFIXES = ("/swagger/",)


class APIKeyError(Exception):
    """Ключ отсутствует или не совпадает."""
    pass


def is_exempt_path(path: str) -> bool:
    return path in EXEMPT_PATHS or path.startswith(EXEMPT_PREFIXES)


def verify_api_key(provided: str | None, expected: str) -> None:
    """
    Сравнивает ключи после обрезки пробелов, с учётом регистра.

    Raises:
        APIKeyError: ключ не передан или не совпадает
    """
    if not provided:
        raise APIKeyError("API key is required")
    if provided.strip() != expected.strip():
        raise APIKeyError("Invalid API key")


def install_api_key_gate(
    app: FastAPI,
    expected_key: Callable[[], str],
    header_name: str = API_KEY_HEADER,
) -> None:
    """
    Регистрирует middleware проверки ключа.
    Middleware срабатывает до разбора тела, поэтому отклонённый запрос
    не доходит ни до валидации, ни до обработчика.

    Args:
        app: Приложение FastAPI
        expected_key: Функция, возвращающая ожидаемый ключ (читается на каждый запрос)
        header_name: Имя заголовка
    """

    @app.middleware("http")
    async def api_key_gate(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if is_exempt_path(request.url.path):
            return await call_next(request)

        try:
            verify_api_key(request.headers.get(header_name), expected_key())
        except APIKeyError as e:
            await log_warning(f"Отклонён запрос {request.method} {request.url.path}: {e}")
            body = APIResponse.fail(ErrorCode.UNAUTHORIZED.value, str(e))
            return JSONResponse(status_code=401, content=body.to_dict())

        return await call_next(request)
