from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from doseflow.db.models import GracePeriodConfig
from doseflow.schemas.grace_period import GracePeriodSettings, GracePeriodUpdate
from doseflow.services.grace_period import default_grace_settings
from doseflow.services.validation import ValidationReport, validate_grace_settings


def get_config_row(db: Session, patient_id: UUID) -> GracePeriodConfig | None:
    return db.query(GracePeriodConfig).filter(GracePeriodConfig.patient_id == patient_id).first()


def to_settings(row: GracePeriodConfig) -> GracePeriodSettings:
    return GracePeriodSettings(
        default_minutes=row.default_minutes or {},
        medication_class_rules=row.medication_class_rules or {},
        medication_overrides=row.medication_overrides or {},
        weekend_multiplier=row.weekend_multiplier,
        holiday_multiplier=row.holiday_multiplier,
        use_us_holidays=row.use_us_holidays,
        holidays=row.holidays or [],
        version=row.version,
    )


def get_grace_settings(db: Session, patient_id: UUID) -> GracePeriodSettings:
    row = get_config_row(db, patient_id)
    return to_settings(row) if row else default_grace_settings()


def upsert_grace_settings(
    db: Session,
    patient_id: UUID,
    payload: GracePeriodUpdate,
) -> tuple[GracePeriodConfig, ValidationReport]:
    row = get_config_row(db, patient_id)
    current = to_settings(row) if row else default_grace_settings()
    data = current.model_dump()
    data.update(payload.model_dump(exclude_unset=True, exclude_none=True))
    merged = GracePeriodSettings.model_validate(data)
    report = validate_grace_settings(merged)
    report.raise_for_errors()

    if row is None:
        row = GracePeriodConfig(patient_id=patient_id, version=1)
        db.add(row)
    else:
        row.version = (row.version or 0) + 1

    data = merged.model_dump(mode="json", exclude={"version"})
    for key, value in data.items():
        setattr(row, key, value)
    db.commit()
    db.refresh(row)
    return row, report
