# ridehail/services/matching_service/app.py
"""
FastAPI приложение Matching Service.

Endpoints:
- GET /health - проверка живости (без токена)
- POST /api/v1/match - подобрать ближайшего водителя (JWT)
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ridehail import __version__
from ridehail.common.constants import MATCHING_SERVICE_NAME, ErrorCode, TypeMsg
from ridehail.common.http_errors import register_exception_handlers
from ridehail.common.logger import log_info, setup_logging
from ridehail.config import settings
from ridehail.services.matching_service.auth import install_jwt_gate
from ridehail.services.matching_service.dependencies import cleanup_dependencies, init_dependencies
from ridehail.services.matching_service.routes import router


# === LIFESPAN ===

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    os.environ.setdefault("SERVICE_NAME", MATCHING_SERVICE_NAME)
    setup_logging()
    await log_info("Запуск Matching Service...", type_msg=TypeMsg.INFO)

    settings.validate_required()
    init_dependencies(settings)

    await log_info(
        f"Matching Service слушает {settings.matching_service.HOST}:{settings.matching_service.PORT}",
        type_msg=TypeMsg.INFO,
    )

    yield

    await log_info("Остановка Matching Service...", type_msg=TypeMsg.INFO)
    await cleanup_dependencies()


# === APP ===

app = FastAPI(
    title="Matching Service",
    description="Подбор ближайшего водителя для пассажира",
    version=__version__,
    lifespan=lifespan,
    docs_url="/swagger/index.html",
    openapi_url="/swagger/doc.json",
    redoc_url=None,
)

register_exception_handlers(
    app,
    validation_code=ErrorCode.VALIDATION_ERROR,
    validation_message="Request validation failed",
)

install_jwt_gate(
    app,
    secret=lambda: settings.matching_service.JWT_SECRET,
    algorithm=lambda: settings.matching_service.JWT_ALGORITHM,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(router, prefix="/api/v1")


# === HEALTH CHECK ===

@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Проверка живости сервиса."""
    return {"status": "healthy", "service": MATCHING_SERVICE_NAME}
