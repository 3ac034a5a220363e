# fleettrack/core/positions/validator.py
"""
Валидация и нормализация входящих отчётов о позиции.

Чистая функция: ничего не пишет в хранилище и ничего не рассылает.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence

from pydantic import ValidationError as PydanticValidationError

from fleettrack.core.positions.errors import ValidationError
from fleettrack.core.positions.models import GeoPoint, PositionRecord, PositionReport


LNG_RANGE = (-180.0, 180.0)
LAT_RANGE = (-90.0, 90.0)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def describe_errors(errors: Sequence[Mapping[str, Any]], *, skip_loc: tuple[str, ...] = ()) -> str:
    """Первая ошибка из списка pydantic errors() в виде 'field: message'."""
    if not errors:
        return "invalid request"
    first = errors[0]
    parts = [str(part) for part in first.get("loc", ()) if part not in skip_loc]
    location = ".".join(parts) or "body"
    return f"{location}: {first.get('msg', 'invalid value')}"


def describe_pydantic_error(error: PydanticValidationError) -> str:
    """Первая ошибка pydantic в виде 'field: message'."""
    return describe_errors(error.errors())


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int из JSON, который не помещается во float
        return False


def validate_report(
    report: PositionReport | Mapping[str, Any],
    *,
    now: Callable[[], datetime] | None = None,
) -> PositionRecord:
    """
    Проверяет отчёт и строит каноническую запись позиции.

    Args:
        report: PositionReport или сырой словарь (ключи vehicleId, coordinates,
            speed, routeSegment)
        now: Источник времени приёма (по умолчанию — текущее UTC)

    Returns:
        PositionRecord без ID (ID назначает хранилище)

    Raises:
        ValidationError: отчёт некорректен
    """
    if not isinstance(report, PositionReport):
        if not isinstance(report, Mapping):
            raise ValidationError("Report must be a JSON object")
        try:
            report = PositionReport.model_validate(dict(report))
        except PydanticValidationError as e:
            raise ValidationError(describe_pydantic_error(e)) from e

    vehicle_id = report.vehicle_id
    if vehicle_id is None or not vehicle_id.strip():
        raise ValidationError("vehicleId is required")

    coordinates = report.coordinates
    if coordinates is None:
        raise ValidationError("coordinates are required")
    if len(coordinates) != 2:
        raise ValidationError("coordinates must be a [longitude, latitude] pair")
    if not all(_is_finite_number(c) for c in coordinates):
        raise ValidationError("coordinates must be finite numbers")

    lng, lat = float(coordinates[0]), float(coordinates[1])
    if not LNG_RANGE[0] <= lng <= LNG_RANGE[1]:
        raise ValidationError("longitude must be within [-180, 180]")
    if not LAT_RANGE[0] <= lat <= LAT_RANGE[1]:
        raise ValidationError("latitude must be within [-90, 90]")

    speed = report.speed
    if speed is not None:
        if not _is_finite_number(speed):
            raise ValidationError("speed must be a finite number")
        if speed < 0:
            raise ValidationError("speed must be non-negative")
        speed = float(speed)

    # Время всегда назначается при приёме, клиентскому не доверяем
    accepted_at = (now or utc_now)()

    return PositionRecord(
        vehicle_id=vehicle_id,
        location=GeoPoint(coordinates=(lng, lat)),
        timestamp=accepted_at,
        speed=speed,
        route_segment=report.route_segment,
    )
