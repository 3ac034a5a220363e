from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Query

from fleettrack.config.loader import TrackingSettings
from fleettrack.core.positions.errors import ValidationError
from fleettrack.core.positions.models import (
    BatchIngestResult,
    IngestAck,
    NearbyVehicle,
    PositionRecord,
    PositionReport,
    VehicleUpdate,
)
from fleettrack.core.positions.service import PositionIngestService, PositionQueryService
from fleettrack.services.tracking.dependencies import (
    get_ingest_service,
    get_query_service,
    get_tracking_settings,
)
from fleettrack.shared.models.common import ErrorResponse

router = APIRouter(prefix="/api", tags=["Tracking"])

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid report"},
    503: {"model": ErrorResponse, "description": "Storage unavailable"},
}


@router.post("/gps-data", response_model=IngestAck, responses=_ERRORS)
async def submit_gps_data(
    report: PositionReport,
    service: PositionIngestService = Depends(get_ingest_service),
):
    return await service.submit(report)


@router.post("/gps-data/batch", response_model=BatchIngestResult, responses={400: _ERRORS[400]})
async def submit_gps_data_batch(
    reports: List[Any] = Body(...),
    service: PositionIngestService = Depends(get_ingest_service),
):
    # Items are validated one by one so a bad report does not reject the batch
    return await service.submit_batch(reports)


@router.get("/vehicles", response_model=List[PositionRecord], responses={503: _ERRORS[503]})
async def list_vehicle_positions(
    service: PositionQueryService = Depends(get_query_service),
):
    return await service.get_all_history()


# Must be registered before /vehicles/{vehicle_id}
@router.get("/vehicles/nearby", response_model=List[NearbyVehicle], responses=_ERRORS)
async def find_nearby_vehicles(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius_km: Optional[float] = Query(None, gt=0),
    limit: Optional[int] = Query(None, ge=1),
    service: PositionQueryService = Depends(get_query_service),
    tracking: TrackingSettings = Depends(get_tracking_settings),
):
    if radius_km is None:
        radius_km = tracking.NEARBY_DEFAULT_RADIUS_KM
    if radius_km > tracking.NEARBY_MAX_RADIUS_KM:
        raise ValidationError(f"radius_km must not exceed {tracking.NEARBY_MAX_RADIUS_KM:g}")
    if limit is None or limit > tracking.NEARBY_MAX_LIMIT:
        limit = tracking.NEARBY_MAX_LIMIT
    return await service.find_nearby(lat, lng, radius_km, limit)


@router.get("/vehicles/{vehicle_id}", response_model=List[PositionRecord], responses={503: _ERRORS[503]})
async def get_vehicle_history(
    vehicle_id: str,
    service: PositionQueryService = Depends(get_query_service),
):
    return await service.get_history(vehicle_id)


@router.get("/map-data", response_model=List[VehicleUpdate], responses={503: _ERRORS[503]})
async def get_map_data(
    service: PositionQueryService = Depends(get_query_service),
):
    return await service.get_latest_snapshot()
