from fastapi import APIRouter, Depends

from doseflow.api.deps import require_api_token
from doseflow.api.routes import (
    grace_periods,
    health,
    internal,
    medication_events,
    medication_schedules,
    medication_views,
    time_buckets,
    time_preferences,
)

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(time_preferences.router, prefix="/patients", tags=["time-preferences"])
api_router.include_router(grace_periods.router, prefix="/patients", tags=["grace-periods"])
api_router.include_router(time_buckets.router, prefix="/time-buckets", tags=["time-buckets"])
api_router.include_router(
    medication_schedules.router,
    prefix="/medication-schedules",
    tags=["medication-schedules"],
)
api_router.include_router(
    medication_events.router,
    prefix="/medication-events",
    tags=["medication-events"],
)
api_router.include_router(
    medication_views.router,
    prefix="/medication-views",
    tags=["medication-views"],
)
api_router.include_router(
    internal.router,
    prefix="/internal",
    tags=["internal"],
    dependencies=[Depends(require_api_token)],
)
