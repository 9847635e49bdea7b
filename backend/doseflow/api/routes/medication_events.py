from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from doseflow.api.deps import (
    AuthenticatedUser,
    check_patient_access,
    get_access_client,
    get_authenticated_user,
    get_notifier,
)
from doseflow.core.errors import NotFoundError, ValidationError
from doseflow.crud import daily_summary as summary_crud
from doseflow.crud import dose_event as event_crud
from doseflow.db.session import get_db
from doseflow.schemas.dose_event import (
    ArchivedEventsOut,
    DailyResetResultOut,
    DailySummaryOut,
    DoseEventOut,
    MarkTakenRequest,
    SkipRequest,
    TriggerDailyResetRequest,
)
from doseflow.services.access import AccessClient
from doseflow.services.daily_reset import DailyResetService
from doseflow.services.dose_lifecycle import mark_skipped, mark_taken
from doseflow.services.notifier import Notifier

router = APIRouter()


@router.post("/{event_id}/taken", response_model=DoseEventOut)
def mark_event_taken(
    event_id: UUID,
    payload: MarkTakenRequest,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> DoseEventOut:
    event = event_crud.require_event(db, event_id)
    check_patient_access(user, access, event.patient_id, edit=True)
    updated = mark_taken(db, event, user.user_id, acted_at=payload.acted_at, notes=payload.notes)
    return DoseEventOut.model_validate(updated)


@router.post("/{event_id}/skip", response_model=DoseEventOut)
def mark_event_skipped(
    event_id: UUID,
    payload: SkipRequest,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> DoseEventOut:
    event = event_crud.require_event(db, event_id)
    check_patient_access(user, access, event.patient_id, edit=True)
    updated = mark_skipped(db, event, user.user_id, payload.reason, notes=payload.notes)
    return DoseEventOut.model_validate(updated)


@router.get("/archived", response_model=ArchivedEventsOut)
def list_archived(
    patient_id: UUID = Query(..., alias="patientId"),
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> ArchivedEventsOut:
    check_patient_access(user, access, patient_id)
    if end_date < start_date:
        raise ValidationError("endDate is before startDate", suggested_fix="swap the two dates")
    events = event_crud.list_archived_events(db, patient_id, start_date, end_date)
    return ArchivedEventsOut(
        patient_id=patient_id,
        start_date=start_date,
        end_date=end_date,
        total=len(events),
        events=[DoseEventOut.model_validate(event) for event in events],
    )


@router.get("/daily-summaries", response_model=list[DailySummaryOut])
def list_daily_summaries(
    patient_id: UUID = Query(..., alias="patientId"),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> list[DailySummaryOut]:
    """Adherence history over an optional date range, oldest day first."""
    check_patient_access(user, access, patient_id)
    if start_date and end_date and end_date < start_date:
        raise ValidationError("endDate is before startDate", suggested_fix="swap the two dates")
    summaries = summary_crud.list_summaries(db, patient_id, start_date, end_date)
    return [DailySummaryOut.model_validate(summary) for summary in summaries]


@router.get("/daily-summaries/{local_date}", response_model=DailySummaryOut)
def get_daily_summary(
    local_date: date,
    patient_id: UUID = Query(..., alias="patientId"),
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> DailySummaryOut:
    check_patient_access(user, access, patient_id)
    summary = summary_crud.get_summary(db, patient_id, local_date)
    if not summary:
        raise NotFoundError(f"no daily summary for {local_date}")
    return DailySummaryOut.model_validate(summary)


@router.post("/trigger-daily-reset", response_model=DailyResetResultOut)
def trigger_daily_reset(
    payload: TriggerDailyResetRequest,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
    notifier: Notifier = Depends(get_notifier),
) -> DailyResetResultOut:
    check_patient_access(user, access, payload.patient_id, edit=True)
    service = DailyResetService(db, notifier=notifier)
    result = service.execute(
        payload.patient_id,
        timezone=payload.timezone,
        dry_run=payload.dry_run,
        target_date=payload.target_date,
    )
    return DailyResetResultOut(
        patient_id=result.patient_id,
        local_date=result.local_date,
        status=result.status,
        events_archived=result.events_archived,
        missed_marked=result.missed_marked,
        summary=DailySummaryOut.model_validate(result.summary) if result.summary else None,
    )
