from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from doseflow.core.errors import NotFoundError
from doseflow.db.models import Medication, MedicationSchedule
from doseflow.services.medication_class import classify_medication


def create_medication(
    db: Session,
    patient_id: UUID,
    name: str,
    generic_name: str | None = None,
    dosage: str | None = None,
    medication_class: str | None = None,
    is_prn: bool = False,
) -> Medication:
    medication = Medication(
        patient_id=patient_id,
        name=name,
        generic_name=generic_name,
        dosage=dosage,
        medication_class=medication_class or classify_medication(name, generic_name, is_prn),
        is_prn=is_prn,
    )
    db.add(medication)
    db.flush()
    return medication


def get_medication(db: Session, medication_id: UUID) -> Medication | None:
    return db.query(Medication).filter(Medication.id == medication_id).first()


def create_schedule(
    db: Session,
    medication: Medication,
    frequency: str,
    times: list[str],
    bucket_names: list[str],
    preferences_version: int,
    start_date: date,
    end_date: date | None = None,
    custom_times: dict[str, str] | None = None,
) -> MedicationSchedule:
    schedule = MedicationSchedule(
        medication_id=medication.id,
        patient_id=medication.patient_id,
        frequency=frequency,
        custom_times=custom_times or None,
        times=times,
        bucket_names=bucket_names,
        preferences_version=preferences_version,
        start_date=start_date,
        end_date=end_date,
        is_active=True,
        is_paused=False,
    )
    db.add(schedule)
    db.flush()
    return schedule


def get_schedule(db: Session, schedule_id: UUID) -> MedicationSchedule | None:
    return db.query(MedicationSchedule).filter(MedicationSchedule.id == schedule_id).first()


def require_schedule(db: Session, schedule_id: UUID) -> MedicationSchedule:
    schedule = get_schedule(db, schedule_id)
    if not schedule:
        raise NotFoundError(f"medication schedule {schedule_id} not found")
    return schedule


def list_active_schedules(db: Session, patient_id: UUID | None = None) -> list[MedicationSchedule]:
    query = db.query(MedicationSchedule).filter(
        MedicationSchedule.is_active.is_(True),
        MedicationSchedule.is_paused.is_(False),
    )
    if patient_id is not None:
        query = query.filter(MedicationSchedule.patient_id == patient_id)
    return query.order_by(MedicationSchedule.created_at.asc()).all()


def list_scheduled_patient_ids(db: Session) -> list[UUID]:
    rows = (
        db.query(MedicationSchedule.patient_id)
        .filter(MedicationSchedule.is_active.is_(True))
        .distinct()
        .all()
    )
    return [row[0] for row in rows]
