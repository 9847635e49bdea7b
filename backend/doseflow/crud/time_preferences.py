from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from doseflow.core.errors import NotFoundError
from doseflow.db.models import PatientTimePreferences
from doseflow.schemas.time_preferences import (
    FrequencyRule,
    Lifestyle,
    TimeBucket,
    TimePreferences,
    TimePreferencesCreate,
    TimePreferencesUpdate,
)
from doseflow.services.time_buckets import default_preferences, normalize_legacy_buckets
from doseflow.services.validation import ValidationReport, validate_time_preferences

logger = logging.getLogger(__name__)


def _dump(preferences: TimePreferences) -> dict:
    return {
        "time_buckets": {
            name: bucket.model_dump() for name, bucket in preferences.time_buckets.items()
        },
        "frequency_mapping": {
            name: rule.model_dump() for name, rule in preferences.frequency_mapping.items()
        },
        "lifestyle": preferences.lifestyle.model_dump(),
    }


def to_snapshot(row: PatientTimePreferences) -> TimePreferences:
    """Build the compiler's view of a stored row, normalising legacy shapes."""
    lifestyle = Lifestyle.model_validate(row.lifestyle or {})
    buckets, _ = normalize_legacy_buckets(row.time_buckets, lifestyle.work_schedule)
    return TimePreferences(
        patient_id=row.patient_id,
        time_buckets={name: TimeBucket.model_validate(b) for name, b in buckets.items()},
        frequency_mapping={
            name: FrequencyRule.model_validate(rule)
            for name, rule in (row.frequency_mapping or {}).items()
        },
        lifestyle=lifestyle,
        version=row.version,
    )


def get_preferences_row(db: Session, patient_id: UUID) -> PatientTimePreferences | None:
    return (
        db.query(PatientTimePreferences)
        .filter(PatientTimePreferences.patient_id == patient_id)
        .first()
    )


def get_preferences(db: Session, patient_id: UUID) -> TimePreferences | None:
    row = get_preferences_row(db, patient_id)
    return to_snapshot(row) if row else None


def require_preferences(db: Session, patient_id: UUID) -> TimePreferences:
    preferences = get_preferences(db, patient_id)
    if preferences is None:
        raise NotFoundError(
            f"time preferences for patient {patient_id} not found",
            suggested_fix="onboard the patient with POST /patients/{id}/time-preferences",
        )
    return preferences


def list_preferences(db: Session) -> list[PatientTimePreferences]:
    return db.query(PatientTimePreferences).order_by(PatientTimePreferences.patient_id).all()


def merge_preferences(
    base: TimePreferences,
    payload: TimePreferencesCreate | TimePreferencesUpdate,
) -> TimePreferences:
    merged = base.model_copy(deep=True)
    if payload.time_buckets is not None:
        merged.time_buckets = {**merged.time_buckets, **payload.time_buckets}
    if payload.frequency_mapping is not None:
        merged.frequency_mapping = {**merged.frequency_mapping, **payload.frequency_mapping}
    if payload.lifestyle is not None:
        merged.lifestyle = payload.lifestyle
    return merged


def create_preferences(
    db: Session,
    patient_id: UUID,
    payload: TimePreferencesCreate | None = None,
    created_by: str | None = None,
) -> tuple[PatientTimePreferences, ValidationReport]:
    """Onboard a patient with system defaults. Existing rows are returned as-is."""
    existing = get_preferences_row(db, patient_id)
    if existing:
        return existing, validate_time_preferences(to_snapshot(existing))

    preferences = default_preferences(patient_id)
    if payload is not None:
        preferences = merge_preferences(preferences, payload)
    report = validate_time_preferences(preferences)
    report.raise_for_errors()

    row = PatientTimePreferences(
        patient_id=patient_id,
        version=1,
        created_by=created_by,
        updated_by=created_by,
        **_dump(preferences),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Created time preferences for patient %s", patient_id)
    return row, report


def update_preferences(
    db: Session,
    patient_id: UUID,
    payload: TimePreferencesUpdate,
    updated_by: str | None = None,
) -> tuple[PatientTimePreferences, ValidationReport]:
    row = get_preferences_row(db, patient_id)
    base = to_snapshot(row) if row else default_preferences(patient_id)
    merged = merge_preferences(base, payload)
    report = validate_time_preferences(merged)
    report.raise_for_errors()

    if row is None:
        row = PatientTimePreferences(patient_id=patient_id, version=1, created_by=updated_by)
        db.add(row)
    else:
        row.version = (row.version or 0) + 1
    for key, value in _dump(merged).items():
        setattr(row, key, value)
    row.updated_by = updated_by
    db.commit()
    db.refresh(row)
    logger.info(
        "Updated time preferences for patient %s to version %s (reason=%s)",
        patient_id,
        row.version,
        payload.reason,
    )
    return row, report
