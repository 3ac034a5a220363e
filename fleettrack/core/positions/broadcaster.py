# fleettrack/core/positions/broadcaster.py
"""
Публикация принятых позиций подписчикам real-time канала.

Broadcaster только раскладывает сообщение по приёмникам (sinks) через
неблокирующий offer(); доставку и очереди реализуют сами приёмники.
"""

from __future__ import annotations

from typing import Any, Iterable, Protocol

from fleettrack.common.constants import VEHICLE_UPDATE_EVENT
from fleettrack.common.logger import get_logger
from fleettrack.core.positions.errors import BroadcastError
from fleettrack.core.positions.models import PositionRecord
from fleettrack.core.positions.resolver import to_vehicle_update

logger = get_logger("broadcaster")


class UpdateSink(Protocol):
    """Приёмник сообщений. offer() не должен блокировать и ждать I/O."""

    def offer(self, message: dict[str, Any]) -> None:
        ...


def build_update_message(record: PositionRecord) -> dict[str, Any]:
    """Сообщение vehicle-update в JSON-совместимом виде."""
    return {
        "event": VEHICLE_UPDATE_EVENT,
        "data": to_vehicle_update(record).model_dump(mode="json", by_alias=True),
    }


class LiveUpdateBroadcaster:
    """
    Рассылка обновлений позиций.

    Гарантии:
    - publish() никогда не бросает исключений и не ждёт подписчиков
    - ошибка одного приёмника не влияет на остальные
    - порядок публикаций сохраняется в каждом приёмнике (FIFO)
    """

    def __init__(self, sinks: Iterable[UpdateSink] = ()) -> None:
        self._sinks: list[UpdateSink] = list(sinks)
        self._published = 0
        self._failed = 0

    def publish(self, record: PositionRecord) -> None:
        """Отправить принятую запись во все приёмники."""
        try:
            message = build_update_message(record)
        except Exception as e:
            self._failed += 1
            logger.error(f"Не удалось собрать vehicle-update для {record.vehicle_id}: {e}")
            return

        for sink in self._sinks:
            try:
                sink.offer(message)
            except Exception as e:
                self._failed += 1
                error = BroadcastError(f"{type(sink).__name__}: {e}")
                logger.warning(f"Сбой рассылки, пропускаем приёмник: {error.message}")

        self._published += 1

    def get_stats(self) -> dict[str, int]:
        return {
            "published": self._published,
            "failed": self._failed,
            "sinks": len(self._sinks),
        }
