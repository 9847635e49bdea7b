import logging
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from doseflow.api.deps import (
    AuthenticatedUser,
    check_patient_access,
    get_access_client,
    get_authenticated_user,
)
from doseflow.core.errors import MissingTimezoneError, NotFoundError
from doseflow.crud import time_preferences as preferences_crud
from doseflow.db.models import PatientTimePreferences
from doseflow.db.session import get_db
from doseflow.schemas.time_preferences import (
    TimePreferencesCreate,
    TimePreferencesOut,
    TimePreferencesUpdate,
)
from doseflow.services.access import AccessClient
from doseflow.services.event_generator import EventGenerator
from doseflow.services.validation import validate_time_preferences

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_out(row: PatientTimePreferences, warnings: list[str]) -> TimePreferencesOut:
    snapshot = preferences_crud.to_snapshot(row)
    return TimePreferencesOut(
        id=row.id,
        updated_by=row.updated_by,
        created_at=row.created_at,
        updated_at=row.updated_at,
        warnings=warnings,
        **dict(snapshot),
    )


@router.get("/{patient_id}/time-preferences", response_model=TimePreferencesOut)
def get_time_preferences(
    patient_id: UUID,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> TimePreferencesOut:
    check_patient_access(user, access, patient_id)
    row = preferences_crud.get_preferences_row(db, patient_id)
    if not row:
        raise NotFoundError(
            f"time preferences for patient {patient_id} not found",
            suggested_fix="onboard the patient with POST /patients/{id}/time-preferences",
        )
    report = validate_time_preferences(preferences_crud.to_snapshot(row))
    return _to_out(row, report.warnings)


@router.post("/{patient_id}/time-preferences", response_model=TimePreferencesOut, status_code=201)
def create_time_preferences(
    patient_id: UUID,
    payload: TimePreferencesCreate | None = Body(None),
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> TimePreferencesOut:
    check_patient_access(user, access, patient_id, edit=True)
    row, report = preferences_crud.create_preferences(db, patient_id, payload, created_by=user.user_id)
    return _to_out(row, report.warnings)


@router.put("/{patient_id}/time-preferences", response_model=TimePreferencesOut)
def update_time_preferences(
    patient_id: UUID,
    payload: TimePreferencesUpdate,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> TimePreferencesOut:
    check_patient_access(user, access, patient_id, edit=True)
    row, report = preferences_crud.update_preferences(db, patient_id, payload, updated_by=user.user_id)
    warnings = list(report.warnings)
    try:
        result = EventGenerator(db).regenerate_patient(patient_id)
    except MissingTimezoneError as exc:
        warnings.append(exc.message)
    else:
        logger.info(
            "Regenerated %s schedules for patient %s: %s removed, %s created",
            result.schedules,
            patient_id,
            result.removed,
            result.created,
        )
    db.refresh(row)
    return _to_out(row, warnings)
