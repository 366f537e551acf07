# ridehail/services/matching_service/auth.py
"""
JWT авторизация Matching Service.

Токен в заголовке Authorization (префикс "Bearer " необязателен).
После проверки в request.state.context кладётся RequestContext:
user_id, claims и is_authenticated (из булевого claim "authenticated").
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from jose import JWTError, jwt
from pydantic import BaseModel, Field

from ridehail.common.constants import ErrorCode
from ridehail.common.exceptions import UnauthorizedError
from ridehail.common.logger import log_warning
from ridehail.shared.models import APIResponse

EXEMPT_PATHS = frozenset({"/health"})
BEARER_PREFIX = "Bearer "


class RequestContext(BaseModel):
    """Данные авторизованного запроса."""

    user_id: str
    is_authenticated: bool = False
    claims: dict[str, Any] = Field(default_factory=dict)


class TokenError(Exception):
    """Токен отсутствует, невалиден или без нужных claims."""
    pass


def decode_token(authorization: str | None, secret: str, algorithm: str = "HS256") -> RequestContext:
    """
    Проверить токен и собрать контекст запроса.

    Raises:
        TokenError: с текстом для ответа 401
    """
    if not authorization:
        raise TokenError("Missing Authorization header")

    token = authorization
    if len(token) > len(BEARER_PREFIX) and token.startswith(BEARER_PREFIX):
        token = token[len(BEARER_PREFIX):]

    try:
        claims = jwt.decode(token, secret, algorithms=[algorithm])
    except JWTError as e:
        raise TokenError("Invalid or expired token") from e

    user_id = claims.get("user_id")
    if not isinstance(user_id, str):
        user_id = claims.get("sub")
    if not isinstance(user_id, str):
        raise TokenError("user_id or sub claim is required in JWT")

    return RequestContext(
        user_id=user_id,
        is_authenticated=claims.get("authenticated") is True,
        claims=claims,
    )


def install_jwt_gate(
    app: FastAPI,
    secret: Callable[[], str],
    algorithm: Callable[[], str] = lambda: "HS256",
) -> None:
    """
    Регистрирует middleware проверки JWT.
    Отклонённый запрос не доходит до разбора тела и обработчика.
    """

    @app.middleware("http")
    async def jwt_gate(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        try:
            request.state.context = decode_token(
                request.headers.get("Authorization"),
                secret(),
                algorithm(),
            )
        except TokenError as e:
            await log_warning(f"Отклонён запрос {request.method} {request.url.path}: {e}")
            body = APIResponse.fail(ErrorCode.UNAUTHORIZED.value, str(e))
            return JSONResponse(status_code=401, content=body.to_dict())

        return await call_next(request)


def get_request_context(request: Request) -> RequestContext:
    """FastAPI dependency: контекст, положенный middleware."""
    context = getattr(request.state, "context", None)
    if context is None:
        raise UnauthorizedError("User not authenticated")
    return context


def require_authenticated(request: Request) -> RequestContext:
    """FastAPI dependency: только для токенов с authenticated=true."""
    context = get_request_context(request)
    if not context.is_authenticated:
        raise UnauthorizedError("User not authenticated")
    return context
