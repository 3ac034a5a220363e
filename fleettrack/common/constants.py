# fleettrack/common/constants.py
"""
Общие константы и перечисления.
"""

from enum import Enum


class TypeMsg(str, Enum):
    """Типы сообщений для логирования."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class StorageBackend(str, Enum):
    """Хранилище истории позиций."""
    POSTGRES = "postgres"
    MEMORY = "memory"


class BroadcastBackend(str, Enum):
    """Способ доставки real-time обновлений."""
    LOCAL = "local"  # только подписчики текущего процесса
    REDIS = "redis"  # через Redis Pub/Sub между инстансами


# Имя события, которое получают подписчики WebSocket
VEHICLE_UPDATE_EVENT = "vehicle-update"

# Канал Redis Pub/Sub по умолчанию
VEHICLE_UPDATES_CHANNEL = "vehicle-updates"
