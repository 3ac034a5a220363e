# fleettrack/core/positions/__init__.py
"""
Домен позиций транспорта.
Валидация, хранение, снимок последних позиций и рассылка обновлений.
"""

from fleettrack.core.positions.broadcaster import LiveUpdateBroadcaster
from fleettrack.core.positions.errors import BroadcastError, StorageError, TrackingError, ValidationError
from fleettrack.core.positions.memory_store import MemoryPositionStore
from fleettrack.core.positions.models import PositionRecord, PositionReport, VehicleUpdate
from fleettrack.core.positions.repository import PositionStore, PostgresPositionStore
from fleettrack.core.positions.resolver import LatestPositionResolver
from fleettrack.core.positions.service import PositionIngestService, PositionQueryService
from fleettrack.core.positions.validator import validate_report

__all__ = [
    "BroadcastError",
    "LatestPositionResolver",
    "LiveUpdateBroadcaster",
    "MemoryPositionStore",
    "PositionIngestService",
    "PositionQueryService",
    "PositionRecord",
    "PositionReport",
    "PositionStore",
    "PostgresPositionStore",
    "StorageError",
    "TrackingError",
    "ValidationError",
    "VehicleUpdate",
    "validate_report",
]
