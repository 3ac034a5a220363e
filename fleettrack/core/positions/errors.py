# fleettrack/core/positions/errors.py
"""
Ошибки домена позиций.

- ValidationError — некорректный отчёт от клиента: не сохраняется и не рассылается
- StorageError — хранилище недоступно или запрос не выполнен; повтор — на стороне вызывающего
- BroadcastError — сбой доставки подписчикам; только логируется, наружу не пробрасывается
"""

from __future__ import annotations


class TrackingError(Exception):
    """Базовая ошибка сервиса трекинга."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TrackingError):
    """Отчёт о позиции не прошёл валидацию."""


class StorageError(TrackingError):
    """Ошибка записи или чтения хранилища позиций."""


class BroadcastError(TrackingError):
    """Ошибка доставки real-time обновления."""
