# fleettrack/core/positions/repository.py
"""
Хранилище истории позиций.

PositionStore — контракт, на который опирается домен.
PostgresPositionStore — реализация на PostgreSQL + PostGIS (asyncpg).
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping, Protocol, runtime_checkable

import asyncpg

from fleettrack.common.logger import log_error
from fleettrack.core.positions.errors import StorageError
from fleettrack.core.positions.models import GeoPoint, PositionRecord
from fleettrack.infra.database import DatabaseManager


@runtime_checkable
class PositionStore(Protocol):
    """
    Контракт хранилища позиций.

    Все выборки возвращают новый список на каждый вызов (общих курсоров нет),
    отсортированный от новых к старым; при равном timestamp — по убыванию id.
    """

    async def append(self, record: PositionRecord) -> int:
        """Сохраняет запись целиком и возвращает её ID."""
        ...

    async def query_by_vehicle(self, vehicle_id: str) -> list[PositionRecord]:
        ...

    async def query_all(self) -> list[PositionRecord]:
        ...

    async def latest_per_vehicle(self) -> list[PositionRecord]:
        """Первая запись каждой машины после сортировки по убыванию времени."""
        ...

    async def query_nearby(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        limit: int,
    ) -> list[tuple[PositionRecord, float]]:
        """Последние позиции машин в радиусе, ближайшие первыми, с расстоянием в метрах."""
        ...

    async def health_check(self) -> bool:
        ...


# Ошибки драйвера и соединения, которые превращаются в StorageError
_DRIVER_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,  # command_timeout и ожидание соединения из пула
    RuntimeError,  # пул не инициализирован
)

_POINT = "ST_SetSRID(ST_MakePoint($1, $2), 4326)::geography"

_COLUMNS = """
    id, vehicle_id,
    ST_X(location::geometry) AS lng,
    ST_Y(location::geometry) AS lat,
    "timestamp", speed, route_segment
"""


class PostgresPositionStore:
    """
    История позиций в таблице tracking.vehicle_positions.

    Записи только добавляются. Снимок последних позиций строится через
    DISTINCT ON (vehicle_id) с сортировкой "timestamp" DESC, id DESC.
    """

    TABLE = "tracking.vehicle_positions"

    def __init__(self, db: DatabaseManager) -> None:
        """
        Args:
            db: Менеджер базы данных (Dependency Injection)
        """
        self._db = db

    @asynccontextmanager
    async def _storage_errors(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except _DRIVER_ERRORS as e:
            await log_error(f"Ошибка хранилища позиций ({operation}): {e}")
            raise StorageError(f"Storage unavailable: {operation} failed") from e

    async def append(self, record: PositionRecord) -> int:
        """
        Сохраняет запись.

        Raises:
            StorageError: запись не выполнена (частичной записи не бывает)
        """
        query = f"""
            INSERT INTO {self.TABLE} (vehicle_id, location, "timestamp", speed, route_segment)
            VALUES ($3, {_POINT}, $4, $5, $6)
            RETURNING id
        """
        async with self._storage_errors("append"):
            record_id = await self._db.fetchval(
                query,
                record.location.lng,
                record.location.lat,
                record.vehicle_id,
                record.timestamp,
                record.speed,
                record.route_segment,
            )
        return int(record_id)

    async def query_by_vehicle(self, vehicle_id: str) -> list[PositionRecord]:
        """История одной машины, новые сверху. Неизвестная машина — пустой список."""
        query = f"""
            SELECT {_COLUMNS}
            FROM {self.TABLE}
            WHERE vehicle_id = $1
            ORDER BY "timestamp" DESC, id DESC
        """
        async with self._storage_errors("query_by_vehicle"):
            rows = await self._db.fetch(query, vehicle_id)
        return [self._row_to_record(row) for row in rows]

    async def query_all(self) -> list[PositionRecord]:
        """Вся история, новые сверху."""
        query = f"""
            SELECT {_COLUMNS}
            FROM {self.TABLE}
            ORDER BY "timestamp" DESC, id DESC
        """
        async with self._storage_errors("query_all"):
            rows = await self._db.fetch(query)
        return [self._row_to_record(row) for row in rows]

    async def latest_per_vehicle(self) -> list[PositionRecord]:
        """Последняя запись каждой машины."""
        query = f"""
            SELECT DISTINCT ON (vehicle_id) {_COLUMNS}
            FROM {self.TABLE}
            ORDER BY vehicle_id, "timestamp" DESC, id DESC
        """
        async with self._storage_errors("latest_per_vehicle"):
            rows = await self._db.fetch(query)
        return [self._row_to_record(row) for row in rows]

    async def query_nearby(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        limit: int,
    ) -> list[tuple[PositionRecord, float]]:
        """
        Машины, чья последняя позиция лежит в радиусе radius_m от точки.

        Returns:
            Пары (запись, расстояние в метрах), ближайшие первыми
        """
        query = f"""
            WITH latest AS (
                SELECT DISTINCT ON (vehicle_id)
                    id, vehicle_id, location, "timestamp", speed, route_segment
                FROM {self.TABLE}
                ORDER BY vehicle_id, "timestamp" DESC, id DESC
            )
            SELECT {_COLUMNS},
                ST_Distance(location, {_POINT}) AS distance_m
            FROM latest
            WHERE ST_DWithin(location, {_POINT}, $3)
            ORDER BY distance_m ASC, id DESC
            LIMIT $4
        """
        async with self._storage_errors("query_nearby"):
            rows = await self._db.fetch(query, lng, lat, radius_m, limit)
        return [(self._row_to_record(row), float(row["distance_m"])) for row in rows]

    async def health_check(self) -> bool:
        return await self._db.health_check()

    @staticmethod
    def _row_to_record(row: Mapping[str, Any]) -> PositionRecord:
        speed = row["speed"]
        return PositionRecord(
            id=row["id"],
            vehicle_id=row["vehicle_id"],
            location=GeoPoint(coordinates=(float(row["lng"]), float(row["lat"]))),
            timestamp=row["timestamp"],
            speed=float(speed) if speed is not None else None,
            route_segment=row["route_segment"],
        )
