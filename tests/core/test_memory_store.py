# tests/core/test_memory_store.py
"""
Тесты хранилища позиций в памяти.
"""

from __future__ import annotations

from typing import Callable

import pytest

from fleettrack.core.positions.memory_store import MemoryPositionStore
from fleettrack.core.positions.models import PositionRecord
from fleettrack.core.positions.repository import PositionStore


class TestMemoryPositionStore:

    def test_implements_store_contract(self, memory_store: MemoryPositionStore) -> None:
        assert isinstance(memory_store, PositionStore)

    @pytest.mark.asyncio
    async def test_append_assigns_increasing_ids(
        self,
        memory_store: MemoryPositionStore,
        make_record: Callable[..., PositionRecord],
    ) -> None:
        first = await memory_store.append(make_record())
        second = await memory_store.append(make_record())

        assert second > first
        assert len(memory_store) == 2

    @pytest.mark.asyncio
    async def test_history_newest_first(
        self,
        memory_store: MemoryPositionStore,
        make_record: Callable[..., PositionRecord],
    ) -> None:
        await memory_store.append(make_record("bus-1", seconds=0))
        await memory_store.append(make_record("bus-2", seconds=1))
        await memory_store.append(make_record("bus-1", seconds=2))

        history = await memory_store.query_by_vehicle("bus-1")

        assert [r.vehicle_id for r in history] == ["bus-1", "bus-1"]
        assert history[0].timestamp > history[1].timestamp
        assert all(r.id is not None for r in history)

    @pytest.mark.asyncio
    async def test_unknown_vehicle_is_empty(self, memory_store: MemoryPositionStore) -> None:
        assert await memory_store.query_by_vehicle("ghost") == []

    @pytest.mark.asyncio
    async def test_query_all_returns_new_list(
        self,
        memory_store: MemoryPositionStore,
        make_record: Callable[..., PositionRecord],
    ) -> None:
        await memory_store.append(make_record(seconds=0))
        await memory_store.append(make_record(seconds=1))

        first = await memory_store.query_all()
        first.clear()
        second = await memory_store.query_all()

        assert len(second) == 2

    @pytest.mark.asyncio
    async def test_latest_per_vehicle(
        self,
        memory_store: MemoryPositionStore,
        make_record: Callable[..., PositionRecord],
    ) -> None:
        await memory_store.append(make_record("bus-1", seconds=0))
        await memory_store.append(make_record("bus-1", seconds=0, lng=13.0))

        (latest,) = await memory_store.latest_per_vehicle()

        assert latest.location.lng == 13.0

    @pytest.mark.asyncio
    async def test_query_nearby(
        self,
        memory_store: MemoryPositionStore,
        make_record: Callable[..., PositionRecord],
    ) -> None:
        # Рим, ~1.1 км к северу и Милан
        await memory_store.append(make_record("near", lng=12.5, lat=41.91))
        await memory_store.append(make_record("here", lng=12.5, lat=41.9))
        await memory_store.append(make_record("far", lng=9.19, lat=45.46))

        found = await memory_store.query_nearby(41.9, 12.5, radius_m=5_000, limit=10)

        assert [record.vehicle_id for record, _ in found] == ["here", "near"]
        assert found[0][1] == pytest.approx(0.0, abs=0.01)
        assert found[1][1] == pytest.approx(1112, rel=0.01)

    @pytest.mark.asyncio
    async def test_query_nearby_uses_latest_position_and_limit(
        self,
        memory_store: MemoryPositionStore,
        make_record: Callable[..., PositionRecord],
    ) -> None:
        await memory_store.append(make_record("moved", lng=12.5, lat=41.9, seconds=0))
        await memory_store.append(make_record("moved", lng=9.19, lat=45.46, seconds=1))
        await memory_store.append(make_record("a", lng=12.5, lat=41.9))
        await memory_store.append(make_record("b", lng=12.5, lat=41.901))

        found = await memory_store.query_nearby(41.9, 12.5, radius_m=1_000, limit=1)

        assert [record.vehicle_id for record, _ in found] == ["a"]

    @pytest.mark.asyncio
    async def test_health_check(self, memory_store: MemoryPositionStore) -> None:
        assert await memory_store.health_check() is True
