# fleettrack/infra/redis_client.py
"""
Клиент Redis для Pub/Sub рассылки обновлений между инстансами сервиса.
"""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis
from redis.asyncio.client import PubSub

from fleettrack.common.constants import TypeMsg
from fleettrack.common.logger import get_logger, log_error, log_info

logger = get_logger("redis")


class RedisClient:
    """
    Асинхронный клиент Redis (Singleton).

    Поддерживает:
    - Публикацию JSON-сообщений в каналы
    - Создание PubSub для подписчиков
    - Health check
    """

    _instance: RedisClient | None = None
    _client: redis.Redis | None = None

    def __new__(cls) -> RedisClient:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        if hasattr(self, "_initialized"):
            return
        self._initialized = True
        self._client = None

    @property
    def client(self) -> redis.Redis:
        """Возвращает клиент Redis."""
        if self._client is None:
            raise RuntimeError("Redis клиент не инициализирован. Вызовите connect() сначала.")
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self, url: str, max_connections: int = 20) -> None:
        """
        Подключается к Redis и проверяет соединение.

        Args:
            url: URL Redis
            max_connections: Размер пула соединений
        """
        if self._client is not None:
            return

        await log_info("Подключение к Redis...", type_msg=TypeMsg.INFO)

        self._client = redis.from_url(
            url,
            max_connections=max_connections,
            decode_responses=True,
        )
        await self._client.ping()

        await log_info("Подключение к Redis установлено", type_msg=TypeMsg.INFO)

    async def disconnect(self) -> None:
        """Закрывает соединение с Redis."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            await log_info("Соединение с Redis закрыто", type_msg=TypeMsg.INFO)

    async def publish(self, channel: str, message: dict[str, Any]) -> int:
        """
        Публикует сообщение в канал.

        Returns:
            Количество получателей (по данным Redis)
        """
        payload = json.dumps(message, ensure_ascii=False, default=str)
        return await self.client.publish(channel, payload)

    def pubsub(self) -> PubSub:
        """Новый объект PubSub (отдельное соединение на подписчика)."""
        return self.client.pubsub(ignore_subscribe_messages=True)

    async def health_check(self) -> bool:
        """Проверяет, что Redis отвечает на PING."""
        if not self.is_connected:
            return False
        try:
            return bool(await self.client.ping())
        except Exception as e:
            await log_error(f"Health check Redis failed: {e}")
            return False


def get_redis() -> RedisClient:
    """Возвращает глобальный экземпляр RedisClient."""
    return RedisClient()


async def init_redis() -> RedisClient:
    """Подключается к Redis по настройкам из конфига."""
    from fleettrack.config import settings

    redis_client = get_redis()
    await redis_client.connect(
        url=settings.redis.url,
        max_connections=settings.redis.REDIS_MAX_CONNECTIONS,
    )
    await log_info(
        f"Redis подключён: {settings.redis.REDIS_HOST}:{settings.redis.REDIS_PORT}/{settings.redis.REDIS_DB}",
        type_msg=TypeMsg.INFO,
    )
    return redis_client


async def close_redis() -> None:
    """Закрывает подключение к Redis."""
    await get_redis().disconnect()
