# tests/core/test_position_service.py
"""
Тесты сервисов приёма и чтения позиций.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Any, Callable
from unittest.mock import AsyncMock, MagicMock

import pytest

from fleettrack.core.positions.broadcaster import LiveUpdateBroadcaster
from fleettrack.core.positions.errors import StorageError, ValidationError
from fleettrack.core.positions.memory_store import MemoryPositionStore
from fleettrack.core.positions.service import PositionIngestService, PositionQueryService
from fleettrack.services.realtime_ws.connection_manager import SubscriberRegistry


@pytest.fixture
def ingest(
    memory_store: MemoryPositionStore,
    broadcaster: LiveUpdateBroadcaster,
    ticking_clock: Callable[[], datetime],
) -> PositionIngestService:
    return PositionIngestService(memory_store, broadcaster, clock=ticking_clock)


@pytest.fixture
def query(memory_store: MemoryPositionStore) -> PositionQueryService:
    return PositionQueryService(memory_store)


class TestSubmit:

    @pytest.mark.asyncio
    async def test_end_to_end(
        self,
        ingest: PositionIngestService,
        query: PositionQueryService,
        recording_sink: Any,
    ) -> None:
        """Отчёт сохраняется, попадает в историю, в снимок и подписчикам."""
        ack = await ingest.submit({"vehicleId": "bus-1", "coordinates": [12.5, 41.9], "speed": 30})

        assert ack.success is True
        assert ack.id == 1
        assert ack.message == "GPS data saved"

        history = await query.get_history("bus-1")
        assert len(history) == 1
        assert history[0].location.coordinates == (12.5, 41.9)

        (update,) = await query.get_latest_snapshot()
        assert (update.vehicle_id, update.lat, update.lng, update.speed) == ("bus-1", 41.9, 12.5, 30.0)

        (message,) = recording_sink.messages
        assert message["event"] == "vehicle-update"
        assert message["data"]["vehicleId"] == "bus-1"
        assert message["data"]["lat"] == 41.9

    @pytest.mark.asyncio
    async def test_rejected_report_is_not_stored_or_broadcast(
        self,
        ingest: PositionIngestService,
        memory_store: MemoryPositionStore,
        recording_sink: Any,
    ) -> None:
        with pytest.raises(ValidationError, match="latitude"):
            await ingest.submit({"vehicleId": "bus-1", "coordinates": [12.5, 91.0]})

        assert len(memory_store) == 0
        assert recording_sink.messages == []
        assert ingest.get_stats()["total_rejected"] == 1

    @pytest.mark.asyncio
    async def test_storage_failure_is_not_broadcast(self, valid_report: dict[str, Any]) -> None:
        store = MagicMock()
        store.append = AsyncMock(side_effect=StorageError("Storage unavailable: append failed"))
        broadcaster = MagicMock()
        service = PositionIngestService(store, broadcaster)

        with pytest.raises(StorageError):
            await service.submit(valid_report)

        broadcaster.publish.assert_not_called()
        assert service.get_stats()["storage_failures"] == 1

    @pytest.mark.asyncio
    async def test_broadcast_failure_does_not_fail_submit(
        self,
        memory_store: MemoryPositionStore,
        valid_report: dict[str, Any],
    ) -> None:
        class BrokenSink:
            def offer(self, message: dict[str, Any]) -> None:
                raise ConnectionError("gone")

        service = PositionIngestService(memory_store, LiveUpdateBroadcaster([BrokenSink()]))

        ack = await service.submit(valid_report)

        assert ack.success is True
        assert len(memory_store) == 1

    @pytest.mark.asyncio
    async def test_broadcast_order_matches_submission(
        self,
        ingest: PositionIngestService,
        recording_sink: Any,
    ) -> None:
        for lng in (1.0, 2.0, 3.0):
            await ingest.submit({"vehicleId": "bus-1", "coordinates": [lng, 0.0]})

        assert [m["data"]["lng"] for m in recording_sink.messages] == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_stats(self, ingest: PositionIngestService) -> None:
        await ingest.submit({"vehicleId": "bus-1", "coordinates": [1, 2]})
        await ingest.submit({"vehicleId": "bus-1", "coordinates": [1, 2]})
        await ingest.submit({"vehicleId": "tram-7", "coordinates": [1, 2]})

        stats = ingest.get_stats()

        assert stats["total_accepted"] == 3
        assert stats["unique_vehicles"] == 2
        assert stats["top_vehicles"][0] == ("bus-1", 2)


class TestSubmitBatch:

    @pytest.mark.asyncio
    async def test_items_are_independent(
        self,
        ingest: PositionIngestService,
        memory_store: MemoryPositionStore,
    ) -> None:
        result = await ingest.submit_batch([
            {"vehicleId": "bus-1", "coordinates": [1, 2]},
            {"vehicleId": "", "coordinates": [1, 2]},
            "not an object",
            {"vehicleId": "bus-2", "coordinates": [3, 4]},
        ])

        assert result.accepted == 2
        assert result.rejected == 2
        assert [r.success for r in result.results] == [True, False, False, True]
        assert result.results[1].error == "vehicleId is required"
        assert result.results[2].error == "Report must be a JSON object"
        assert len(memory_store) == 2

    @pytest.mark.asyncio
    async def test_empty_batch(self, ingest: PositionIngestService) -> None:
        result = await ingest.submit_batch([])

        assert (result.accepted, result.rejected, result.results) == (0, 0, [])


class TestQueries:

    @pytest.mark.asyncio
    async def test_history_newest_first(self, ingest: PositionIngestService, query: PositionQueryService) -> None:
        for lng in (1.0, 2.0, 3.0):
            await ingest.submit({"vehicleId": "bus-1", "coordinates": [lng, 0.0]})

        history = await query.get_history("bus-1")

        assert [r.location.lng for r in history] == [3.0, 2.0, 1.0]

    @pytest.mark.asyncio
    async def test_unknown_vehicle(self, query: PositionQueryService) -> None:
        assert await query.get_history("ghost") == []

    @pytest.mark.asyncio
    async def test_queries_are_idempotent(self, ingest: PositionIngestService, query: PositionQueryService) -> None:
        await ingest.submit({"vehicleId": "bus-1", "coordinates": [1, 2]})
        await ingest.submit({"vehicleId": "tram-7", "coordinates": [3, 4]})

        assert await query.get_all_history() == await query.get_all_history()
        assert await query.get_latest_snapshot() == await query.get_latest_snapshot()

    @pytest.mark.asyncio
    async def test_snapshot_one_per_vehicle(self, ingest: PositionIngestService, query: PositionQueryService) -> None:
        await ingest.submit({"vehicleId": "bus-1", "coordinates": [1, 2]})
        await ingest.submit({"vehicleId": "bus-1", "coordinates": [5, 6]})
        await ingest.submit({"vehicleId": "tram-7", "coordinates": [3, 4]})

        snapshot = {u.vehicle_id: u for u in await query.get_latest_snapshot()}

        assert len(snapshot) == 2
        assert (snapshot["bus-1"].lng, snapshot["bus-1"].lat) == (5.0, 6.0)

    @pytest.mark.asyncio
    async def test_find_nearby(self, ingest: PositionIngestService, query: PositionQueryService) -> None:
        await ingest.submit({"vehicleId": "near", "coordinates": [12.5, 41.91]})
        await ingest.submit({"vehicleId": "far", "coordinates": [9.19, 45.46]})

        found = await query.find_nearby(41.9, 12.5, radius_km=5, limit=10)

        assert [v.vehicle_id for v in found] == ["near"]
        assert found[0].lat == 41.91
        assert found[0].distance_m == pytest.approx(1112, rel=0.01)

    @pytest.mark.asyncio
    async def test_storage_error_propagates(self) -> None:
        store = MagicMock()
        store.query_all = AsyncMock(side_effect=StorageError("Storage unavailable: query_all failed"))

        with pytest.raises(StorageError):
            await PositionQueryService(store).get_all_history()


class _Socket:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self.closed = False

    async def accept(self) -> None:
        pass

    async def send_json(self, data: dict[str, Any]) -> None:
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed = True


class _StuckSocket(_Socket):
    """Клиент, который принял первое сообщение и перестал читать."""

    async def send_json(self, data: dict[str, Any]) -> None:
        self.sent.append(data)
        await asyncio.Event().wait()


class TestBroadcastIsolation:
    """Зависший подписчик не задерживает приём и других подписчиков."""

    @pytest.mark.asyncio
    async def test_submit_is_not_delayed_by_stuck_subscriber(
        self,
        memory_store: MemoryPositionStore,
        valid_report: dict[str, Any],
    ) -> None:
        registry = SubscriberRegistry(queue_size=10, send_timeout=30)
        stuck = _StuckSocket()
        healthy = _Socket()
        await registry.connect(stuck)
        await registry.connect(healthy)
        service = PositionIngestService(memory_store, LiveUpdateBroadcaster([registry]))

        for lng in (12.0, 12.1, 12.2, 12.3, 12.4):
            report = {**valid_report, "coordinates": [lng, 41.9]}
            ack = await asyncio.wait_for(service.submit(report), timeout=0.5)
            assert ack.success is True

        loop = asyncio.get_running_loop()
        deadline = loop.time() + 1.0
        while len(healthy.sent) < 5 and loop.time() < deadline:
            await asyncio.sleep(0.005)

        assert [m["data"]["lng"] for m in healthy.sent] == [12.0, 12.1, 12.2, 12.3, 12.4]
        assert len(stuck.sent) == 1
        # Зависший клиент ещё не отключён: таймаут отправки не истёк
        assert registry.active_connections == 2
        assert len(memory_store) == 5
        await registry.close_all()
