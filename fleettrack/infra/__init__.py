# fleettrack/infra/__init__.py
"""
Инфраструктурный слой.
Работа с внешними сервисами: PostgreSQL (PostGIS), Redis.
"""

from fleettrack.infra.database import DatabaseManager, get_db
from fleettrack.infra.redis_client import RedisClient, get_redis

__all__ = [
    "DatabaseManager",
    "get_db",
    "RedisClient",
    "get_redis",
]
