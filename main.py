#!/usr/bin/env python3
# main.py
"""
Главная точка входа FleetTrack.

Режимы:
- tracking — Tracking Service (HTTP + WebSocket), по умолчанию
- migrate — применить migrations/init.sql и выйти
"""

from __future__ import annotations

import argparse
import asyncio

from fleettrack.common.constants import StorageBackend, TypeMsg
from fleettrack.common.logger import log_info, setup_logging
from fleettrack.config import settings
from fleettrack.infra.database import close_db, init_db


VALID_MODES = ("tracking", "migrate")


async def run_tracking_service() -> None:
    """Запускает Tracking Service."""
    import uvicorn

    await log_info(
        f"Запуск Tracking Service на {settings.deployment.TRACKING_HOST}:{settings.deployment.TRACKING_PORT}...",
        type_msg=TypeMsg.INFO,
    )

    config = uvicorn.Config(
        "fleettrack.services.tracking.app:app",
        host=settings.deployment.TRACKING_HOST,
        port=settings.deployment.TRACKING_PORT,
        log_level="debug" if settings.system.DEBUG else "info",
        log_config=None,
    )

    # SIGINT/SIGTERM обрабатывает uvicorn (graceful shutdown + lifespan)
    server = uvicorn.Server(config)
    await server.serve()


async def run_migrations() -> None:
    """Применяет схему БД."""
    if settings.tracking.STORAGE_BACKEND != StorageBackend.POSTGRES:
        await log_info("STORAGE_BACKEND=memory, миграции не нужны", type_msg=TypeMsg.WARNING)
        return

    await init_db()
    await close_db()
    await log_info("Схема БД применена", type_msg=TypeMsg.INFO)


async def main(mode: str = "tracking") -> None:
    """
    Главная функция запуска.

    Args:
        mode: Режим запуска (tracking, migrate)
    """
    setup_logging()

    await log_info(
        f"FleetTrack v{settings.system.VERSION} — запуск в режиме '{mode}' ({settings.system.ENVIRONMENT})",
        type_msg=TypeMsg.INFO,
    )

    if mode == "migrate":
        await run_migrations()
    else:
        await run_tracking_service()


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="FleetTrack")
    parser.add_argument("mode", nargs="?", default="tracking", choices=VALID_MODES)
    return parser.parse_args()


if __name__ == "__main__":
    args = parse_args()
    try:
        asyncio.run(main(args.mode))
    except KeyboardInterrupt:
        print("\nПолучен сигнал остановки, завершение работы...")
