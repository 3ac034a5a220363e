# fleettrack/core/positions/models.py
"""
Модели данных позиций транспорта.

Имена полей в JSON (vehicleId, location.type, location.coordinates,
timestamp, speed, routeSegment) — часть внешнего контракта.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr
from pydantic.alias_generators import to_camel


Number = Union[StrictInt, StrictFloat]


class GeoPoint(BaseModel):
    """Точка GeoJSON. Порядок координат — [lng, lat]."""

    model_config = ConfigDict(frozen=True)

    type: Literal["Point"] = "Point"
    coordinates: tuple[float, float]

    @property
    def lng(self) -> float:
        return self.coordinates[0]

    @property
    def lat(self) -> float:
        return self.coordinates[1]


class PositionRecord(BaseModel):
    """
    Одно неизменяемое GPS-наблюдение одной машины.

    id — порядковый номер вставки, назначается хранилищем.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    id: Optional[int] = Field(None, description="ID записи в хранилище")
    vehicle_id: str = Field(..., min_length=1, description="ID машины")
    location: GeoPoint
    timestamp: datetime = Field(..., description="Время приёма отчёта (UTC)")
    speed: Optional[float] = Field(None, ge=0.0, description="Скорость; None — неизвестна")
    route_segment: Optional[str] = Field(None, description="Участок маршрута")

    def with_id(self, record_id: int) -> "PositionRecord":
        """Копия записи с назначенным ID."""
        return self.model_copy(update={"id": record_id})


class VehicleUpdate(BaseModel):
    """
    Плоская позиция для карты и real-time событий.
    Координаты развёрнуты из [lng, lat] в отдельные lat/lng.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    vehicle_id: str
    lat: float
    lng: float
    speed: Optional[float] = None
    timestamp: datetime
    route_segment: Optional[str] = None


class NearbyVehicle(VehicleUpdate):
    """Последняя позиция машины с расстоянием до точки поиска."""

    distance_m: float


class PositionReport(BaseModel):
    """
    Входящий отчёт о позиции (до валидации).

    Типы строгие, чтобы "12.5" или true не превращались в координаты молча;
    доменные проверки (пустой ID, длина пары, диапазоны) — в validator.
    Поле timestamp от клиента игнорируется.
    """

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel, extra="ignore")

    vehicle_id: Optional[StrictStr] = None
    coordinates: Optional[list[Number]] = None
    speed: Optional[Number] = None
    route_segment: Optional[StrictStr] = None


class IngestAck(BaseModel):
    """Подтверждение приёма отчёта."""

    success: bool = True
    id: int
    message: str = "GPS data saved"


class BatchItemResult(BaseModel):
    """Результат обработки одного отчёта из пакета."""

    index: int
    success: bool
    id: Optional[int] = None
    error: Optional[str] = None


class BatchIngestResult(BaseModel):
    """Результат пакетного приёма."""

    accepted: int
    rejected: int
    results: list[BatchItemResult]
