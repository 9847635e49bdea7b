from uuid import uuid4

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from doseflow.api.deps import (
    AuthenticatedUser,
    check_patient_access,
    get_access_client,
    get_authenticated_user,
)
from doseflow.crud import time_preferences as preferences_crud
from doseflow.db.session import get_db
from doseflow.schemas.time_preferences import (
    ComputeScheduleRequest,
    ComputeScheduleResponse,
    ValidatePreferencesRequest,
    ValidationReportOut,
)
from doseflow.services.access import AccessClient
from doseflow.services.schedule_compiler import compile_schedule
from doseflow.services.time_buckets import default_preferences
from doseflow.services.validation import validate_time_preferences

router = APIRouter()


@router.post("/compute-schedule", response_model=ComputeScheduleResponse)
def compute_schedule(
    payload: ComputeScheduleRequest,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> ComputeScheduleResponse:
    check_patient_access(user, access, payload.patient_id)
    preferences = preferences_crud.require_preferences(db, payload.patient_id)
    compiled = compile_schedule(payload.frequency, preferences, payload.overrides)
    return ComputeScheduleResponse(
        times=compiled.times,
        applied_bucket_ids=compiled.bucket_names,
        warnings=compiled.warnings,
        preferences_version=compiled.preferences_version,
    )


@router.post("/validate", response_model=ValidationReportOut)
def validate_preferences(
    payload: ValidatePreferencesRequest,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> ValidationReportOut:
    base = None
    if payload.patient_id is not None:
        check_patient_access(user, access, payload.patient_id)
        base = preferences_crud.get_preferences(db, payload.patient_id)
    base = base or default_preferences(payload.patient_id or uuid4())

    candidate = preferences_crud.merge_preferences(base, payload)

    report = validate_time_preferences(candidate)
    return ValidationReportOut(
        is_valid=report.is_valid,
        errors=report.errors,
        warnings=report.warnings,
        suggested_fixes=report.suggested_fixes,
    )
