# ridehail/common/http_errors.py
"""
Обработчики исключений FastAPI.
Все ошибки отдаются в одном конверте: {success: false, error, message, details?}.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ridehail.common.constants import ErrorCode
from ridehail.common.exceptions import RideHailError
from ridehail.common.logger import log_error, log_warning
from ridehail.shared.models import APIResponse, FieldError


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    body = APIResponse.fail(error, message, details)
    return JSONResponse(status_code=status_code, content=body.to_dict())


def validation_details(exc: RequestValidationError) -> list[dict[str, str]]:
    """Ошибки pydantic -> [{field, message}]."""
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        field = ".".join(loc) or "body"
        details.append(FieldError(field=field, message=err.get("msg", "invalid value")).model_dump())
    return details


def register_exception_handlers(
    app: FastAPI,
    validation_code: ErrorCode = ErrorCode.INVALID_REQUEST,
    validation_message: str = "Invalid request body",
) -> None:
    """
    Регистрирует обработчики исключений приложения.

    Args:
        app: Приложение FastAPI
        validation_code: Код ошибки для невалидного тела запроса
        validation_message: Сообщение для невалидного тела запроса
    """

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = validation_details(exc)
        await log_warning(f"Невалидный запрос {request.method} {request.url.path}: {details}")
        return error_response(400, validation_code.value, validation_message, details)

    @app.exception_handler(RideHailError)
    async def handle_service_error(request: Request, exc: RideHailError) -> JSONResponse:
        if exc.status_code >= 500:
            await log_error(f"{request.method} {request.url.path}: {exc.message}")
        return error_response(exc.status_code, exc.error_code.value, exc.message, exc.details)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        await log_error(f"Необработанная ошибка {request.method} {request.url.path}: {exc}", exc_info=True)
        return error_response(500, ErrorCode.INTERNAL_ERROR.value, "internal server error")
