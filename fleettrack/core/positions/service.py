# fleettrack/core/positions/service.py
"""
Бизнес-логика приёма и чтения позиций.

PositionIngestService: валидация → запись в хранилище → рассылка.
PositionQueryService: история и снимок последних позиций (только чтение).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Mapping, Sequence

from fleettrack.common.constants import TypeMsg
from fleettrack.common.geo_utils import km_to_meters
from fleettrack.common.logger import log_info
from fleettrack.core.positions.broadcaster import LiveUpdateBroadcaster
from fleettrack.core.positions.errors import StorageError, ValidationError
from fleettrack.core.positions.models import (
    BatchIngestResult,
    BatchItemResult,
    IngestAck,
    NearbyVehicle,
    PositionRecord,
    PositionReport,
    VehicleUpdate,
)
from fleettrack.core.positions.repository import PositionStore
from fleettrack.core.positions.resolver import LatestPositionResolver, to_vehicle_update
from fleettrack.core.positions.validator import validate_report


class PositionIngestService:
    """
    Приём отчётов о позиции.

    Ответственности:
    - Валидация отчёта (без побочных эффектов)
    - Запись в хранилище
    - Публикация в real-time канал (не влияет на ответ клиенту)
    - Статистика приёма
    """

    def __init__(
        self,
        store: PositionStore,
        broadcaster: LiveUpdateBroadcaster,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._broadcaster = broadcaster
        self._clock = clock

        self._accepted = 0
        self._rejected = 0
        self._storage_failures = 0
        self._updates_per_vehicle: dict[str, int] = {}

    async def submit(self, report: PositionReport | Mapping[str, Any]) -> IngestAck:
        """
        Принять один отчёт.

        Raises:
            ValidationError: отчёт некорректен — ничего не сохранено и не разослано
            StorageError: запись не удалась — ничего не разослано
        """
        try:
            record = validate_report(report, now=self._clock)
        except ValidationError:
            self._rejected += 1
            raise

        try:
            record_id = await self._store.append(record)
        except StorageError:
            self._storage_failures += 1
            raise

        stored = record.with_id(record_id)
        self._broadcaster.publish(stored)

        self._accepted += 1
        self._updates_per_vehicle[stored.vehicle_id] = self._updates_per_vehicle.get(stored.vehicle_id, 0) + 1

        await log_info(
            f"Позиция принята: {stored.vehicle_id} #{record_id}",
            type_msg=TypeMsg.DEBUG,
        )
        return IngestAck(id=record_id)

    async def submit_batch(
        self,
        reports: Sequence[PositionReport | Mapping[str, Any]],
    ) -> BatchIngestResult:
        """
        Пакетный приём. Каждый отчёт обрабатывается независимо,
        ошибка одного не отменяет остальные.
        """
        results: list[BatchItemResult] = []

        for index, report in enumerate(reports):
            try:
                ack = await self.submit(report)
                results.append(BatchItemResult(index=index, success=True, id=ack.id))
            except (ValidationError, StorageError) as e:
                results.append(BatchItemResult(index=index, success=False, error=e.message))

        accepted = sum(1 for r in results if r.success)
        return BatchIngestResult(
            accepted=accepted,
            rejected=len(results) - accepted,
            results=results,
        )

    def get_stats(self) -> dict[str, Any]:
        """Статистика приёма."""
        return {
            "total_accepted": self._accepted,
            "total_rejected": self._rejected,
            "storage_failures": self._storage_failures,
            "unique_vehicles": len(self._updates_per_vehicle),
            "top_vehicles": sorted(
                self._updates_per_vehicle.items(),
                key=lambda x: x[1],
                reverse=True,
            )[:10],
        }


class PositionQueryService:
    """Запросы истории и снимка. Без побочных эффектов, идемпотентны."""

    def __init__(self, store: PositionStore, resolver: LatestPositionResolver | None = None) -> None:
        self._store = store
        self._resolver = resolver or LatestPositionResolver(store)

    async def get_history(self, vehicle_id: str) -> list[PositionRecord]:
        """История машины, новые сверху; пустой список для неизвестной машины."""
        return await self._store.query_by_vehicle(vehicle_id)

    async def get_all_history(self) -> list[PositionRecord]:
        """Вся история, новые сверху."""
        return await self._store.query_all()

    async def get_latest_snapshot(self) -> list[VehicleUpdate]:
        """Одна последняя позиция на машину."""
        return await self._resolver.snapshot()

    async def find_nearby(
        self,
        lat: float,
        lng: float,
        radius_km: float,
        limit: int,
    ) -> list[NearbyVehicle]:
        """Машины, последняя позиция которых в радиусе radius_km, ближайшие первыми."""
        found = await self._store.query_nearby(lat, lng, km_to_meters(radius_km), limit)
        return [
            NearbyVehicle(
                **to_vehicle_update(record).model_dump(),
                distance_m=round(distance_m, 1),
            )
            for record, distance_m in found
        ]
