from fastapi import Request

from fleettrack.config.loader import TrackingSettings
from fleettrack.core.positions.service import PositionIngestService, PositionQueryService


def get_ingest_service(request: Request) -> PositionIngestService:
    return request.app.state.ingest_service


def get_query_service(request: Request) -> PositionQueryService:
    return request.app.state.query_service


def get_tracking_settings(request: Request) -> TrackingSettings:
    return request.app.state.tracking_settings
