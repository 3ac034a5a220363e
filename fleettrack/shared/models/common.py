# fleettrack/shared/models/common.py
"""
Общие модели ответов для всех сервисов.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Стандартный ответ с ошибкой."""

    success: bool = False
    error: str


class HealthStatus(BaseModel):
    """Статус здоровья сервиса."""

    service: str
    status: str = "healthy"  # healthy, degraded, unhealthy
    version: str | None = None
    uptime_seconds: float | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
    # dependencies: {"storage": "healthy", "redis": "healthy"}


class StatsResponse(BaseModel):
    """Статистика сервиса по компонентам."""

    ingest: dict[str, Any]
    broadcast: dict[str, Any]
    subscribers: dict[str, Any]
    relay: dict[str, Any] | None = None
