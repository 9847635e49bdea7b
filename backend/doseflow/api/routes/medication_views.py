from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from doseflow.api.deps import (
    AuthenticatedUser,
    check_patient_access,
    get_access_client,
    get_authenticated_user,
)
from doseflow.db.session import get_db
from doseflow.services.access import AccessClient
from doseflow.services.today_view import FIXED_GROUPS, build_today_buckets

router = APIRouter()


@router.get("/today-buckets")
def today_buckets(
    patient_id: UUID = Query(..., alias="patientId"),
    target_date: date | None = Query(None, alias="date"),
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> dict:
    check_patient_access(user, access, patient_id)
    groups = build_today_buckets(db, patient_id, target_date)
    # Urgency groups are camelCased; bucket names pass through untouched.
    return {
        (to_camel(name) if name in FIXED_GROUPS else name): [
            item.model_dump(mode="json", by_alias=True) for item in items
        ]
        for name, items in groups.items()
    }
