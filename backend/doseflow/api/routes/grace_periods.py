from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from doseflow.api.deps import (
    AuthenticatedUser,
    check_patient_access,
    get_access_client,
    get_authenticated_user,
)
from doseflow.crud import grace_period as grace_crud
from doseflow.db.session import get_db
from doseflow.schemas.grace_period import GracePeriodOut, GracePeriodUpdate
from doseflow.services.access import AccessClient

router = APIRouter()


@router.get("/{patient_id}/grace-periods", response_model=GracePeriodOut)
def get_grace_periods(
    patient_id: UUID,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> GracePeriodOut:
    """Return the patient's grace configuration, or the system defaults."""
    check_patient_access(user, access, patient_id)
    row = grace_crud.get_config_row(db, patient_id)
    settings = grace_crud.get_grace_settings(db, patient_id)
    return GracePeriodOut(
        patient_id=patient_id,
        updated_at=row.updated_at if row else None,
        **dict(settings),
    )


@router.put("/{patient_id}/grace-periods", response_model=GracePeriodOut)
def update_grace_periods(
    patient_id: UUID,
    payload: GracePeriodUpdate,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> GracePeriodOut:
    check_patient_access(user, access, patient_id, edit=True)
    row, report = grace_crud.upsert_grace_settings(db, patient_id, payload)
    return GracePeriodOut(
        patient_id=patient_id,
        updated_at=row.updated_at,
        warnings=report.warnings,
        **dict(grace_crud.to_settings(row)),
    )
