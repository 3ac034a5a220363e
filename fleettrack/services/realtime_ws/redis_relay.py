# fleettrack/services/realtime_ws/redis_relay.py
"""
Пересылка обновлений позиций через Redis Pub/Sub.

Нужна, когда запущено несколько инстансов сервиса: позиция, принятая
одним инстансом, должна дойти до WebSocket подписчиков всех инстансов.

Исходящие сообщения складываются в ограниченную очередь (outbox) и
публикуются одной задачей строго по порядку. Входящие сообщения канала
раздаются локальному реестру подписчиков.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

from fleettrack.common.constants import VEHICLE_UPDATES_CHANNEL, TypeMsg
from fleettrack.common.logger import log_info, log_warning

if TYPE_CHECKING:
    from fleettrack.infra.redis_client import RedisClient
    from fleettrack.services.realtime_ws.connection_manager import SubscriberRegistry


class RedisUpdateRelay:
    """
    Приёмник для LiveUpdateBroadcaster (offer) + слушатель канала Redis.

    offer() не ждёт Redis: при переполнении outbox выкидывается самое
    старое сообщение.
    """

    def __init__(
        self,
        redis_client: "RedisClient",
        registry: "SubscriberRegistry",
        channel: str = VEHICLE_UPDATES_CHANNEL,
        outbox_size: int = 1000,
    ) -> None:
        """
        Args:
            redis_client: Подключённый RedisClient
            registry: Локальный реестр подписчиков
            channel: Канал Pub/Sub
            outbox_size: Максимум неотправленных сообщений
        """
        self._redis = redis_client
        self._registry = registry
        self._channel = channel
        self._outbox: asyncio.Queue = asyncio.Queue(maxsize=outbox_size)

        self._pubsub = None
        self._publisher: asyncio.Task | None = None
        self._listener: asyncio.Task | None = None
        self._running = False

        self._published = 0
        self._publish_errors = 0
        self._dropped = 0
        self._received = 0

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Подписаться на канал и запустить задачи публикации и прослушивания."""
        if self._running:
            return

        self._pubsub = self._redis.pubsub()
        await self._pubsub.subscribe(self._channel)
        self._running = True

        self._publisher = asyncio.create_task(self._publish_loop())
        self._listener = asyncio.create_task(self._listen_loop())

        await log_info(
            f"Redis relay запущен, канал: {self._channel}",
            type_msg=TypeMsg.INFO,
            logger_name="realtime_ws",
        )

    async def stop(self) -> None:
        """Остановить задачи и закрыть подписку."""
        self._running = False

        for task in (self._publisher, self._listener):
            if task is None:
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._publisher = None
        self._listener = None

        if self._pubsub is not None:
            await self._pubsub.unsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None

    def offer(self, message: dict[str, Any]) -> None:
        """Поставить сообщение в outbox."""
        if self._outbox.full():
            try:
                self._outbox.get_nowait()
            except asyncio.QueueEmpty:
                pass
            else:
                self._dropped += 1
        self._outbox.put_nowait(message)

    async def health_check(self) -> bool:
        """Relay запущен и Redis отвечает."""
        return self.is_running and await self._redis.health_check()

    def get_stats(self) -> dict[str, Any]:
        return {
            "channel": self._channel,
            "running": self._running,
            "pending": self._outbox.qsize(),
            "published": self._published,
            "publish_errors": self._publish_errors,
            "dropped": self._dropped,
            "received": self._received,
        }

    async def _publish_loop(self) -> None:
        """Публиковать сообщения из outbox по одному, сохраняя порядок."""
        while True:
            message = await self._outbox.get()
            try:
                await self._redis.publish(self._channel, message)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._publish_errors += 1
                await log_warning(
                    f"Не удалось опубликовать обновление в {self._channel}: {e}",
                    logger_name="realtime_ws",
                )
                continue
            self._published += 1

    async def _listen_loop(self) -> None:
        """Слушать канал и раздавать сообщения локальным подписчикам."""
        while self._running:
            try:
                message = await self._pubsub.get_message(
                    ignore_subscribe_messages=True,
                    timeout=1.0,
                )
                if message is None:
                    continue
                self._process_message(message)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                await log_warning(
                    f"Ошибка чтения канала {self._channel}: {e}",
                    logger_name="realtime_ws",
                )
                await asyncio.sleep(1)

    def _process_message(self, message: dict[str, Any]) -> None:
        if message.get("type") != "message":
            return

        data = message.get("data")
        if isinstance(data, bytes):
            data = data.decode("utf-8")

        try:
            payload = json.loads(data)
        except (TypeError, json.JSONDecodeError):
            return

        self._received += 1
        self._registry.offer(payload)
