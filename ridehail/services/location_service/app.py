# ridehail/services/location_service/app.py
"""
FastAPI приложение Driver Location Service.

Endpoints:
- GET /health - проверка живости (без ключа)
- GET /ready - состояние хранилища и кэша
- POST /api/v1/drivers - создать водителя (объект или массив)
- POST /api/v1/drivers/batch - пакетное создание
- POST /api/v1/drivers/search - поиск в радиусе
- GET /api/v1/drivers/{id} - получить водителя
- PUT /api/v1/drivers/{id} - обновить водителя
- PATCH /api/v1/drivers/{id}/location - обновить позицию
- DELETE /api/v1/drivers/{id} - удалить водителя

Все /api/v1 endpoints требуют заголовок X-API-Key.
"""

from __future__ import annotations

import asyncio
import os
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ridehail import __version__
from ridehail.common.constants import LOCATION_SERVICE_NAME, ErrorCode, TypeMsg
from ridehail.common.http_errors import register_exception_handlers
from ridehail.common.logger import log_error, log_info, log_warning, setup_logging
from ridehail.config import settings
from ridehail.infra.database import close_db, init_db
from ridehail.infra.redis_client import close_redis, init_redis
from ridehail.services.location_service.auth import install_api_key_gate
from ridehail.services.location_service.dependencies import (
    cleanup_dependencies,
    get_driver_service,
    init_dependencies,
)
from ridehail.services.location_service.routes import router
from ridehail.services.location_service.service import DriverService
from ridehail.shared.models import HealthStatus


async def _seed_drivers(service: DriverService) -> None:
    """Фоновая начальная загрузка. Ошибки не останавливают сервис."""
    try:
        await service.seed_if_empty(
            settings.location_service.IMPORT_CSV_PATH,
            batch_size=settings.importer.BATCH_SIZE,
        )
    except asyncio.CancelledError:
        raise
    except Exception as e:
        await log_error(f"Начальная загрузка водителей не удалась: {e}", exc_info=True)


# === LIFESPAN ===

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Жизненный цикл приложения."""
    os.environ.setdefault("SERVICE_NAME", LOCATION_SERVICE_NAME)
    setup_logging()
    await log_info("Запуск Driver Location Service...", type_msg=TypeMsg.INFO)

    # Невалидный конфиг и недоступная БД фатальны
    settings.validate_required()
    db = await init_db()

    # Недоступный Redis не фатален: работаем без кэша
    redis = None
    if settings.redis.REDIS_ENABLED:
        try:
            redis = await init_redis()
        except Exception as e:
            await log_warning(f"Redis недоступен, сервис работает без кэша: {e}")
            redis = None

    service = init_dependencies(db, redis, settings)

    seed_task: asyncio.Task | None = None
    if settings.location_service.IMPORT_ON_STARTUP:
        seed_task = asyncio.create_task(_seed_drivers(service))

    await log_info(
        f"Driver Location Service слушает {settings.location_service.address}",
        type_msg=TypeMsg.INFO,
    )

    yield

    await log_info("Остановка Driver Location Service...", type_msg=TypeMsg.INFO)
    if seed_task is not None and not seed_task.done():
        seed_task.cancel()
        try:
            await seed_task
        except asyncio.CancelledError:
            pass

    cleanup_dependencies()
    if redis is not None:
        await close_redis()
    await close_db()


# === APP ===

app = FastAPI(
    title="Driver Location Service",
    description="Реестр водителей с геопоиском в радиусе",
    version=__version__,
    lifespan=lifespan,
    docs_url="/swagger/index.html",
    openapi_url="/swagger/doc.json",
    redoc_url=None,
)

register_exception_handlers(app, validation_code=ErrorCode.INVALID_REQUEST)

# Ожидаемый ключ читается из настроек на каждый запрос
install_api_key_gate(
    app,
    expected_key=lambda: settings.location_service.API_KEY,
    header_name=settings.location_service.API_KEY_HEADER,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", settings.location_service.API_KEY_HEADER],
)

app.include_router(router, prefix="/api/v1")


# === HEALTH CHECK ===

@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, str]:
    """Проверка живости сервиса."""
    return {"status": "healthy", "service": LOCATION_SERVICE_NAME}


@app.get("/", tags=["Health"])
async def root() -> dict[str, Any]:
    return {
        "service": LOCATION_SERVICE_NAME,
        "version": __version__,
        "docs": "/swagger/index.html",
    }


@app.get("/ready", response_model=HealthStatus, tags=["Health"])
async def readiness_check():
    """
    Готовность: хранилище обязательно, кэш желателен.
    503 если хранилище недоступно, degraded если нет кэша.
    """
    service = get_driver_service()
    db_ok = await service.repository.health_check()
    cache_ok = await service.is_cache_healthy()

    health = HealthStatus(
        service=LOCATION_SERVICE_NAME,
        version=__version__,
        dependencies={
            "postgres": "healthy" if db_ok else "unhealthy",
            "redis": "healthy" if cache_ok else "unavailable",
        },
    )
    if not db_ok:
        health.status = "unhealthy"
        return JSONResponse(status_code=503, content=health.model_dump(mode="json"))
    if not cache_ok:
        health.status = "degraded"
    return health
