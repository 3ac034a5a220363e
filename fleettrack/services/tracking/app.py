# fleettrack/services/tracking/app.py
"""
FastAPI приложение Tracking Service.

REST endpoints:
- POST /api/gps-data — принять отчёт о позиции
- POST /api/gps-data/batch — пакетный приём
- GET /api/vehicles — вся история
- GET /api/vehicles/nearby — машины рядом с точкой
- GET /api/vehicles/{vehicle_id} — история машины
- GET /api/map-data — последние позиции для карты
- GET /health — проверка здоровья
- GET /stats — статистика

WebSocket:
- /ws/vehicles — real-time обновления позиций
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fleettrack import __version__
from fleettrack.common.constants import BroadcastBackend, StorageBackend, TypeMsg
from fleettrack.common.logger import log_error, log_info, log_warning, setup_logging
from fleettrack.config import Settings, settings as default_settings
from fleettrack.core.positions.broadcaster import LiveUpdateBroadcaster
from fleettrack.core.positions.errors import StorageError, ValidationError
from fleettrack.core.positions.memory_store import MemoryPositionStore
from fleettrack.core.positions.repository import PositionStore, PostgresPositionStore
from fleettrack.core.positions.service import PositionIngestService, PositionQueryService
from fleettrack.core.positions.validator import describe_errors
from fleettrack.infra.database import close_db, init_db
from fleettrack.infra.redis_client import close_redis, init_redis
from fleettrack.services.realtime_ws.connection_manager import SubscriberRegistry
from fleettrack.services.realtime_ws.redis_relay import RedisUpdateRelay
from fleettrack.services.realtime_ws.routes import router as realtime_router
from fleettrack.services.tracking.routes import router as tracking_router
from fleettrack.shared.models.common import ErrorResponse, HealthStatus, StatsResponse

SERVICE_NAME = "tracking_service"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def create_app(store: PositionStore | None = None, config: Settings | None = None) -> FastAPI:
    """
    Собирает приложение.

    Args:
        store: Готовое хранилище (тесты). Если None — по STORAGE_BACKEND из конфига
        config: Настройки (по умолчанию — глобальный settings)
    """
    config = config or default_settings
    tracking = config.tracking

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        setup_logging()

        position_store = store
        owns_db = False
        if position_store is None:
            if tracking.STORAGE_BACKEND == StorageBackend.POSTGRES:
                position_store = PostgresPositionStore(await init_db())
                owns_db = True
            else:
                position_store = MemoryPositionStore()
                await log_warning("Хранилище в памяти: история не переживёт перезапуск")

        registry = SubscriberRegistry(
            queue_size=tracking.SUBSCRIBER_QUEUE_SIZE,
            send_timeout=tracking.SUBSCRIBER_SEND_TIMEOUT,
        )

        relay: RedisUpdateRelay | None = None
        if tracking.BROADCAST_BACKEND == BroadcastBackend.REDIS:
            relay = RedisUpdateRelay(
                await init_redis(),
                registry,
                channel=tracking.UPDATES_CHANNEL,
                outbox_size=tracking.RELAY_OUTBOX_SIZE,
            )
            await relay.start()
            # Локальные подписчики получают обновления из канала, как и остальные инстансы
            broadcaster = LiveUpdateBroadcaster([relay])
        else:
            broadcaster = LiveUpdateBroadcaster([registry])

        app.state.tracking_settings = tracking
        app.state.store = position_store
        app.state.registry = registry
        app.state.relay = relay
        app.state.broadcaster = broadcaster
        app.state.ingest_service = PositionIngestService(position_store, broadcaster)
        app.state.query_service = PositionQueryService(position_store)
        app.state.started_at = time.monotonic()

        await log_info(
            f"Tracking Service запущен (storage={tracking.STORAGE_BACKEND.value}, "
            f"broadcast={tracking.BROADCAST_BACKEND.value})",
            type_msg=TypeMsg.INFO,
        )

        yield

        await registry.close_all()
        if relay is not None:
            await relay.stop()
            await close_redis()
        if owns_db:
            await close_db()

        await log_info("Tracking Service остановлен", type_msg=TypeMsg.INFO)

    app = FastAPI(
        title="Tracking Service",
        description="Приём GPS-данных транспорта, история, карта и live-обновления.",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=tracking.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # === ERROR HANDLERS ===

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, exc.message)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(400, describe_errors(exc.errors(), skip_loc=("body", "query", "path")))

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        await log_error(f"{request.method} {request.url.path}: {exc.message}")
        return _error(503, exc.message)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        await log_error(f"{request.method} {request.url.path}: {exc!r}", exc_info=True)
        return _error(500, "Internal server error")

    # === HEALTH CHECK ===

    @app.get("/health", response_model=HealthStatus, tags=["Health"])
    async def health_check(request: Request) -> HealthStatus:
        """Проверка здоровья сервиса и зависимостей."""
        state = request.app.state
        dependencies = {
            "storage": "healthy" if await state.store.health_check() else "unhealthy",
        }
        if state.relay is not None:
            redis_ok = await state.relay.health_check()
            dependencies["redis"] = "healthy" if redis_ok else "unhealthy"

        status = "healthy" if all(v == "healthy" for v in dependencies.values()) else "degraded"
        return HealthStatus(
            service=SERVICE_NAME,
            status=status,
            version=__version__,
            uptime_seconds=round(time.monotonic() - state.started_at, 1),
            dependencies=dependencies,
        )

    # === STATS ===

    @app.get("/stats", response_model=StatsResponse, tags=["Stats"])
    async def get_stats(request: Request) -> StatsResponse:
        """Статистика приёма, рассылки и подписчиков."""
        state = request.app.state
        return StatsResponse(
            ingest=state.ingest_service.get_stats(),
            broadcast=state.broadcaster.get_stats(),
            subscribers=state.registry.get_stats(),
            relay=state.relay.get_stats() if state.relay is not None else None,
        )

    app.include_router(tracking_router)
    app.include_router(realtime_router)

    return app


app = create_app()
