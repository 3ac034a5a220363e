# fleettrack/core/positions/resolver.py
"""
Снимок последних позиций: одна самая свежая запись на машину.

Снимок пересчитывается на каждый запрос полным проходом по истории,
материализованного представления нет.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from fleettrack.core.positions.models import PositionRecord, VehicleUpdate

if TYPE_CHECKING:
    from fleettrack.core.positions.repository import PositionStore


def recency_key(record: PositionRecord) -> tuple:
    """
    Ключ "свежести": timestamp, при равенстве — порядковый номер вставки.
    Запись без ID считается самой старой среди равных по времени.
    """
    return (record.timestamp, record.id if record.id is not None else -1)


def sort_newest_first(records: Iterable[PositionRecord]) -> list[PositionRecord]:
    return sorted(records, key=recency_key, reverse=True)


def resolve_latest(records: Iterable[PositionRecord]) -> list[PositionRecord]:
    """
    Сортирует записи по убыванию свежести и берёт первую в каждой группе vehicle_id.

    Returns:
        Ровно одна запись на каждую машину; порядок между машинами —
        по убыванию свежести их последних записей.
    """
    latest: dict[str, PositionRecord] = {}
    for record in sort_newest_first(records):
        if record.vehicle_id not in latest:
            latest[record.vehicle_id] = record
    return list(latest.values())


def to_vehicle_update(record: PositionRecord) -> VehicleUpdate:
    """Запись → плоская позиция для карты ([lng, lat] → lat, lng)."""
    return VehicleUpdate(
        vehicle_id=record.vehicle_id,
        lat=record.location.lat,
        lng=record.location.lng,
        speed=record.speed,
        timestamp=record.timestamp,
        route_segment=record.route_segment,
    )


class LatestPositionResolver:
    """Строит снимок последних позиций из хранилища."""

    def __init__(self, store: "PositionStore") -> None:
        self._store = store

    async def latest_records(self) -> list[PositionRecord]:
        """Последние записи по каждой машине (группировку делает хранилище)."""
        return await self._store.latest_per_vehicle()

    async def snapshot(self) -> list[VehicleUpdate]:
        """
        Снимок для карты.

        Raises:
            StorageError: хранилище недоступно
        """
        return [to_vehicle_update(record) for record in await self.latest_records()]
