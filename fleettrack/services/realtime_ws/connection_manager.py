# fleettrack/services/realtime_ws/connection_manager.py
"""
Реестр WebSocket подписчиков на обновления позиций.

У каждого подписчика своя ограниченная очередь и своя задача отправки:
медленный клиент теряет старые сообщения, но не задерживает остальных
и не задерживает приём позиций.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import count
from typing import Any, Protocol

from fleettrack.common.logger import get_logger, log_info, log_warning

logger = get_logger("realtime_ws")


class MessageSocket(Protocol):
    """Минимальный интерфейс WebSocket, нужный реестру."""

    async def accept(self) -> None: ...

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


@dataclass
class Subscriber:
    """Подключённый подписчик."""
    subscriber_id: int
    websocket: MessageSocket
    queue: asyncio.Queue
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sender: asyncio.Task | None = None
    sent: int = 0
    dropped: int = 0


class SubscriberRegistry:
    """
    Реестр подписчиков канала vehicle-updates.

    Поддерживает:
    - Подключение/отключение клиентов
    - Неблокирующую раздачу сообщения всем (offer)
    - Отключение клиентов, которые не успевают принять сообщение
    """

    def __init__(self, queue_size: int = 100, send_timeout: float = 5.0) -> None:
        self._queue_size = queue_size
        self._send_timeout = send_timeout
        self._subscribers: dict[int, Subscriber] = {}
        self._ids = count(1)

        self._total_connections = 0
        self._total_sent = 0
        self._total_dropped = 0

    @property
    def active_connections(self) -> int:
        return len(self._subscribers)

    async def connect(self, websocket: MessageSocket) -> Subscriber:
        """Принять соединение и зарегистрировать подписчика."""
        await websocket.accept()

        subscriber = Subscriber(
            subscriber_id=next(self._ids),
            websocket=websocket,
            queue=asyncio.Queue(maxsize=self._queue_size),
        )
        self._subscribers[subscriber.subscriber_id] = subscriber
        subscriber.sender = asyncio.create_task(self._send_loop(subscriber))
        self._total_connections += 1

        await log_info(
            f"Подписчик #{subscriber.subscriber_id} подключён (активных: {self.active_connections})",
            logger_name="realtime_ws",
        )
        return subscriber

    async def disconnect(self, subscriber_id: int) -> None:
        """Отключить подписчика. Повторный вызов ничего не делает."""
        subscriber = self._subscribers.pop(subscriber_id, None)
        if subscriber is None:
            return

        sender = subscriber.sender
        if sender is not None and sender is not asyncio.current_task() and not sender.done():
            sender.cancel()
            try:
                await sender
            except asyncio.CancelledError:
                pass

        await log_info(
            f"Подписчик #{subscriber_id} отключён (активных: {self.active_connections})",
            logger_name="realtime_ws",
        )

    def offer(self, message: dict[str, Any]) -> None:
        """
        Положить сообщение в очередь каждого подписчика.

        Не ждёт: при переполнении очереди выкидывает самое старое сообщение.
        """
        for subscriber in list(self._subscribers.values()):
            queue = subscriber.queue
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                else:
                    subscriber.dropped += 1
                    self._total_dropped += 1
            queue.put_nowait(message)

    async def send_personal(self, subscriber_id: int, message: dict[str, Any]) -> bool:
        """Поставить сообщение в очередь одного подписчика."""
        subscriber = self._subscribers.get(subscriber_id)
        if subscriber is None:
            return False
        if subscriber.queue.full():
            return False
        subscriber.queue.put_nowait(message)
        return True

    async def close_all(self) -> None:
        """Закрыть все соединения (остановка сервиса)."""
        for subscriber_id, subscriber in list(self._subscribers.items()):
            await self.disconnect(subscriber_id)
            await self._close_socket(subscriber)

    def get_stats(self) -> dict[str, Any]:
        """Статистика подписчиков."""
        return {
            "active_connections": self.active_connections,
            "total_connections_ever": self._total_connections,
            "total_messages_sent": self._total_sent,
            "total_messages_dropped": self._total_dropped,
        }

    async def _send_loop(self, subscriber: Subscriber) -> None:
        """Отправлять сообщения из очереди подписчика по одному."""
        while True:
            message = await subscriber.queue.get()
            try:
                await asyncio.wait_for(
                    subscriber.websocket.send_json(message),
                    timeout=self._send_timeout,
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # Ошибка доставки одному подписчику не затрагивает остальных
                await log_warning(
                    f"Подписчик #{subscriber.subscriber_id} не принимает сообщения, отключаем: {e!r}",
                    logger_name="realtime_ws",
                )
                await self.disconnect(subscriber.subscriber_id)
                # Клиент должен увидеть закрытие и переподключиться
                await self._close_socket(subscriber, code=1011)
                return

            subscriber.sent += 1
            self._total_sent += 1

    async def _close_socket(self, subscriber: Subscriber, code: int = 1000) -> None:
        """Закрыть соединение."""
        try:
            await asyncio.wait_for(subscriber.websocket.close(code=code), timeout=self._send_timeout)
        except Exception as e:
            logger.debug(f"Закрытие сокета #{subscriber.subscriber_id}: {e!r}")
