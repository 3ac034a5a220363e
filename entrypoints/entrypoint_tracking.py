#!/usr/bin/env python3
# entrypoint_tracking.py
"""
Точка входа для Tracking Service.
Порт: TRACKING_PORT (по умолчанию 3000)
"""

import asyncio
import sys
from pathlib import Path

# Добавляем корневую директорию проекта в путь
project_root = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(project_root))

import uvicorn

from fleettrack.config import settings
from fleettrack.common.logger import log_info, setup_logging
from fleettrack.common.constants import TypeMsg


async def main() -> None:
    """Запуск Tracking Service."""
    setup_logging()
    await log_info(
        f"Запуск Tracking Service на порту {settings.deployment.TRACKING_PORT}",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "fleettrack.services.tracking.app:app",
        host=settings.deployment.TRACKING_HOST,
        port=settings.deployment.TRACKING_PORT,
        reload=settings.system.DEBUG,
        log_level="debug" if settings.system.DEBUG else "info",
    )

    server = uvicorn.Server(config)
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
