# tests/conftest.py
"""
Общие фикстуры и настройки для тестов.
"""

from __future__ import annotations

import json
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable
from unittest.mock import AsyncMock

import pytest

# Устанавливаем переменные окружения перед импортом модулей
os.environ.setdefault("DB_PASSWORD", "test_password")
os.environ.setdefault("REDIS_PASSWORD", "")

from fleettrack.core.positions.broadcaster import LiveUpdateBroadcaster
from fleettrack.core.positions.memory_store import MemoryPositionStore
from fleettrack.core.positions.models import GeoPoint, PositionRecord


# =============================================================================
# ФИКСТУРЫ КОНФИГУРАЦИИ
# =============================================================================

@pytest.fixture(scope="session")
def project_root() -> Path:
    """Корневая директория проекта."""
    return Path(__file__).parent.parent


@pytest.fixture(scope="session")
def config_path(project_root: Path) -> Path:
    """Путь к файлу конфигурации."""
    return project_root / "config" / "config.json"


@pytest.fixture
def mock_config() -> dict[str, Any]:
    """Мок конфигурации для тестов."""
    return {
        "_comment_system": "Системные настройки",
        "PROJECT_NAME": "fleettrack_test",
        "VERSION": "1.0.0-test",
        "DEBUG": True,
        "ENVIRONMENT": "test",
        "TRACKING_HOST": "127.0.0.1",
        "TRACKING_PORT": 3100,
        "LOG_LEVEL": "DEBUG",
        "LOG_FORMAT": "json",
        "LOG_TO_FILE": False,
        "LOG_FILE_PATH": "logs/test.log",
        "LOG_MAX_BYTES": 1024,
        "DB_HOST": "db.test",
        "DB_PORT": 5433,
        "DB_NAME": "fleettrack_test",
        "DB_USER": "tester",
        "DB_PASSWORD": "secret",
        "DB_MIN_POOL_SIZE": 1,
        "DB_MAX_POOL_SIZE": 5,
        "DB_COMMAND_TIMEOUT": 10,
        "REDIS_HOST": "redis.test",
        "REDIS_PORT": 6380,
        "REDIS_DB": 2,
        "REDIS_PASSWORD": "",
        "REDIS_MAX_CONNECTIONS": 5,
        "STORAGE_BACKEND": "memory",
        "BROADCAST_BACKEND": "redis",
        "UPDATES_CHANNEL": "vehicle-updates-test",
        "SUBSCRIBER_QUEUE_SIZE": 10,
        "SUBSCRIBER_SEND_TIMEOUT": 0.5,
        "RELAY_OUTBOX_SIZE": 50,
        "NEARBY_DEFAULT_RADIUS_KM": 2.0,
        "NEARBY_MAX_RADIUS_KM": 20.0,
        "NEARBY_MAX_LIMIT": 5,
        "CORS_ORIGINS": ["http://localhost:5173"],
    }


@pytest.fixture
def temp_config_file(tmp_path: Path, mock_config: dict[str, Any]) -> Path:
    """Создаёт временный файл конфигурации."""
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps(mock_config, ensure_ascii=False, indent=2))
    return config_file


# =============================================================================
# ФИКСТУРЫ ИНФРАСТРУКТУРЫ (МОКИ)
# =============================================================================

@pytest.fixture
def mock_db() -> AsyncMock:
    """Мок менеджера базы данных."""
    db = AsyncMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchval = AsyncMock(return_value=None)
    db.health_check = AsyncMock(return_value=True)
    return db


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Мок RedisClient."""
    redis = AsyncMock()
    redis.publish = AsyncMock(return_value=1)
    redis.health_check = AsyncMock(return_value=True)
    return redis


# =============================================================================
# ФИКСТУРЫ ДОМЕНА
# =============================================================================

@pytest.fixture
def fixed_now() -> datetime:
    """Фиксированное время приёма."""
    return datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def ticking_clock(fixed_now: datetime) -> Callable[[], datetime]:
    """Часы, которые при каждом вызове сдвигаются на секунду."""
    state = {"now": fixed_now}

    def clock() -> datetime:
        current = state["now"]
        state["now"] = current + timedelta(seconds=1)
        return current

    return clock


@pytest.fixture
def make_record(fixed_now: datetime) -> Callable[..., PositionRecord]:
    """Фабрика записей позиций."""
    def factory(
        vehicle_id: str = "bus-1",
        lng: float = 12.5,
        lat: float = 41.9,
        seconds: int = 0,
        speed: float | None = 30.0,
        route_segment: str | None = "A",
        record_id: int | None = None,
    ) -> PositionRecord:
        return PositionRecord(
            id=record_id,
            vehicle_id=vehicle_id,
            location=GeoPoint(coordinates=(lng, lat)),
            timestamp=fixed_now + timedelta(seconds=seconds),
            speed=speed,
            route_segment=route_segment,
        )

    return factory


@pytest.fixture
def memory_store() -> MemoryPositionStore:
    """Хранилище в памяти."""
    return MemoryPositionStore()


class RecordingSink:
    """Приёмник, запоминающий все сообщения."""

    def __init__(self) -> None:
        self.messages: list[dict[str, Any]] = []

    def offer(self, message: dict[str, Any]) -> None:
        self.messages.append(message)


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def broadcaster(recording_sink: RecordingSink) -> LiveUpdateBroadcaster:
    """Broadcaster с записывающим приёмником."""
    return LiveUpdateBroadcaster([recording_sink])


@pytest.fixture
def valid_report() -> dict[str, Any]:
    """Корректный отчёт о позиции."""
    return {
        "vehicleId": "bus-1",
        "coordinates": [12.5, 41.9],
        "speed": 30,
        "routeSegment": "A",
    }
