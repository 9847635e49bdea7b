from datetime import date, datetime
from uuid import UUID

from pydantic import Field

from doseflow.schemas.base import ApiModel


class MedicationOut(ApiModel):
    id: UUID
    patient_id: UUID
    name: str
    generic_name: str | None = None
    dosage: str | None = None
    medication_class: str
    is_prn: bool = False


class MedicationScheduleCreate(ApiModel):
    patient_id: UUID
    medication_name: str = Field(min_length=1)
    generic_name: str | None = None
    dosage: str | None = None
    medication_class: str | None = None
    is_prn: bool = False
    frequency: str
    # Bucket name -> HH:MM, replacing the bucket-derived time.
    custom_times: dict[str, str] | None = None
    start_date: date | None = None
    end_date: date | None = None


class MedicationScheduleOut(ApiModel):
    id: UUID
    medication_id: UUID
    patient_id: UUID
    frequency: str
    custom_times: dict[str, str] | None = None
    times: list[str]
    bucket_names: list[str]
    preferences_version: int
    start_date: date
    end_date: date | None = None
    is_active: bool
    is_paused: bool
    created_at: datetime | None = None
    medication: MedicationOut | None = None
    warnings: list[str] = Field(default_factory=list)
    events_created: int = 0
    events_removed: int = 0
