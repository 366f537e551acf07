#!/usr/bin/env python3
# entrypoint_location_service.py
"""
Точка входа для Driver Location Service.
Порт: 8086
"""

import asyncio
import sys
from pathlib import Path

# Добавляем корневую директорию в путь
sys.path.insert(0, str(Path(__file__).parent.parent.resolve()))

import uvicorn

from ridehail.config import settings
from ridehail.common.logger import log_info
from ridehail.common.constants import TypeMsg


async def main() -> None:
    """Запуск Driver Location Service."""
    await log_info(
        f"Запуск Driver Location Service на порту {settings.location_service.PORT}",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "ridehail.services.location_service.app:app",
        host=settings.location_service.HOST,
        port=settings.location_service.PORT,
        reload=settings.system.DEBUG,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
