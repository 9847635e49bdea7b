from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from doseflow.api.deps import (
    AuthenticatedUser,
    check_patient_access,
    get_access_client,
    get_authenticated_user,
)
from doseflow.core.errors import ValidationError
from doseflow.crud import medication as medication_crud
from doseflow.crud import time_preferences as preferences_crud
from doseflow.db.models import MedicationSchedule
from doseflow.db.session import get_db
from doseflow.schemas.medication import MedicationOut, MedicationScheduleCreate, MedicationScheduleOut
from doseflow.services.access import AccessClient
from doseflow.services.event_generator import EventGenerator
from doseflow.services.frequency import normalize_frequency
from doseflow.services.medication_class import MEDICATION_CLASSES
from doseflow.services.schedule_compiler import compile_schedule
from doseflow.services.timezones import resolve_zone

router = APIRouter()


def _to_out(db: Session, schedule: MedicationSchedule, **extra) -> MedicationScheduleOut:
    out = MedicationScheduleOut.model_validate(schedule)
    medication = medication_crud.get_medication(db, schedule.medication_id)
    if medication:
        out.medication = MedicationOut.model_validate(medication)
    return out.model_copy(update=extra)


@router.post("", response_model=MedicationScheduleOut, status_code=201)
def create_medication_schedule(
    payload: MedicationScheduleCreate,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> MedicationScheduleOut:
    check_patient_access(user, access, payload.patient_id, edit=True)
    if payload.medication_class and payload.medication_class not in MEDICATION_CLASSES:
        raise ValidationError(
            f"unknown medication class {payload.medication_class!r}",
            suggested_fix="use one of: " + ", ".join(MEDICATION_CLASSES),
        )
    if payload.start_date and payload.end_date and payload.end_date < payload.start_date:
        raise ValidationError("endDate is before startDate", suggested_fix="swap the two dates")

    preferences = preferences_crud.require_preferences(db, payload.patient_id)
    zone = resolve_zone(preferences.lifestyle.timezone, payload.patient_id)
    frequency = normalize_frequency(payload.frequency)
    compiled = compile_schedule(frequency, preferences, payload.custom_times)

    now = datetime.now(timezone.utc)
    medication = medication_crud.create_medication(
        db,
        payload.patient_id,
        payload.medication_name,
        generic_name=payload.generic_name,
        dosage=payload.dosage,
        medication_class=payload.medication_class,
        is_prn=payload.is_prn or frequency.value == "as_needed",
    )
    schedule = medication_crud.create_schedule(
        db,
        medication,
        frequency.value,
        compiled.times,
        compiled.bucket_names,
        compiled.preferences_version,
        start_date=payload.start_date or now.astimezone(zone).date(),
        end_date=payload.end_date,
        custom_times=payload.custom_times,
    )
    db.commit()
    db.refresh(schedule)

    created = EventGenerator(db).generate_for_schedule(schedule, now, preferences)
    db.refresh(schedule)
    return _to_out(db, schedule, warnings=compiled.warnings, events_created=created)


@router.post("/{schedule_id}/pause", response_model=MedicationScheduleOut)
def pause_schedule(
    schedule_id: UUID,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> MedicationScheduleOut:
    schedule = medication_crud.require_schedule(db, schedule_id)
    check_patient_access(user, access, schedule.patient_id, edit=True)
    schedule.is_paused = True
    db.commit()
    removed = EventGenerator(db).remove_future_scheduled(schedule)
    db.refresh(schedule)
    return _to_out(db, schedule, events_removed=removed)


@router.post("/{schedule_id}/resume", response_model=MedicationScheduleOut)
def resume_schedule(
    schedule_id: UUID,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> MedicationScheduleOut:
    schedule = medication_crud.require_schedule(db, schedule_id)
    check_patient_access(user, access, schedule.patient_id, edit=True)
    if not schedule.is_active:
        raise ValidationError(
            "a deactivated schedule cannot be resumed",
            suggested_fix="create a new schedule for this medication",
        )
    schedule.is_paused = False
    db.commit()
    created = EventGenerator(db).generate_for_schedule(schedule)
    db.refresh(schedule)
    return _to_out(db, schedule, events_created=created)


@router.delete("/{schedule_id}", response_model=MedicationScheduleOut)
def deactivate_schedule(
    schedule_id: UUID,
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_authenticated_user),
    access: AccessClient = Depends(get_access_client),
) -> MedicationScheduleOut:
    schedule = medication_crud.require_schedule(db, schedule_id)
    check_patient_access(user, access, schedule.patient_id, edit=True)
    schedule.is_active = False
    db.commit()
    removed = EventGenerator(db).remove_future_scheduled(schedule)
    db.refresh(schedule)
    return _to_out(db, schedule, events_removed=removed)
