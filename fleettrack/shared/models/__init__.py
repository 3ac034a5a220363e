# fleettrack/shared/models/__init__.py
from fleettrack.shared.models.common import ErrorResponse, HealthStatus, StatsResponse

__all__ = ["ErrorResponse", "HealthStatus", "StatsResponse"]
