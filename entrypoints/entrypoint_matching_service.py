#!/usr/bin/env python3
# entrypoint_matching_service.py
"""
Точка входа для Matching Service.
Порт: 8087
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
    """Запуск Matching Service."""
    await log_info(
        f"Запуск Matching Service на порту {settings.matching_service.PORT}",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "ridehail.services.matching_service.app:app",
        host=settings.matching_service.HOST,
        port=settings.matching_service.PORT,
        reload=settings.system.DEBUG,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
