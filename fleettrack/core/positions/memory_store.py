# fleettrack/core/positions/memory_store.py
"""
Хранилище позиций в памяти процесса.

Для разработки без PostgreSQL (STORAGE_BACKEND=memory) и для тестов.
Мутации не содержат await, поэтому безопасны при конкурентных корутинах
одного event loop.
"""

from __future__ import annotations

from itertools import count

from fleettrack.core.positions.models import PositionRecord
from fleettrack.core.positions.resolver import resolve_latest, sort_newest_first
from fleettrack.common.geo_utils import calculate_distance


class MemoryPositionStore:
    """Список записей + счётчик ID (порядок вставки)."""

    def __init__(self) -> None:
        self._records: list[PositionRecord] = []
        self._ids = count(1)

    def __len__(self) -> int:
        return len(self._records)

    async def append(self, record: PositionRecord) -> int:
        stored = record.with_id(next(self._ids))
        self._records.append(stored)
        return stored.id

    async def query_by_vehicle(self, vehicle_id: str) -> list[PositionRecord]:
        return sort_newest_first(r for r in self._records if r.vehicle_id == vehicle_id)

    async def query_all(self) -> list[PositionRecord]:
        return sort_newest_first(self._records)

    async def latest_per_vehicle(self) -> list[PositionRecord]:
        return resolve_latest(self._records)

    async def query_nearby(
        self,
        lat: float,
        lng: float,
        radius_m: float,
        limit: int,
    ) -> list[tuple[PositionRecord, float]]:
        found = []
        for record in resolve_latest(self._records):
            distance_m = calculate_distance(lat, lng, record.location.lat, record.location.lng) * 1000
            if distance_m <= radius_m:
                found.append((record, distance_m))
        found.sort(key=lambda item: item[1])
        return found[:limit]

    async def health_check(self) -> bool:
        return True
