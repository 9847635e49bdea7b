from datetime import datetime
from uuid import UUID

from pydantic import Field

from doseflow.schemas.base import ApiModel


class TimeRange(ApiModel):
    earliest: str
    latest: str


class TimeBucket(ApiModel):
    default_time: str
    range: TimeRange
    label: str | None = None
    is_active: bool = True
    # Only the late-night bucket may have earliest > latest.
    wraps_midnight: bool = False


class FrequencyRule(ApiModel):
    buckets: list[str] = Field(default_factory=list)
    fallback_buckets: list[str] = Field(default_factory=list)


class Lifestyle(ApiModel):
    wake_time: str | None = "07:00"
    sleep_time: str | None = "23:00"
    timezone: str | None = None
    work_schedule: str = "standard"


class TimePreferences(ApiModel):
    """Snapshot of a patient's time preferences, as consumed by the compiler."""

    patient_id: UUID
    time_buckets: dict[str, TimeBucket]
    frequency_mapping: dict[str, FrequencyRule]
    lifestyle: Lifestyle
    version: int = 1


class TimePreferencesCreate(ApiModel):
    time_buckets: dict[str, TimeBucket] | None = None
    frequency_mapping: dict[str, FrequencyRule] | None = None
    lifestyle: Lifestyle | None = None


class TimePreferencesUpdate(ApiModel):
    time_buckets: dict[str, TimeBucket] | None = None
    frequency_mapping: dict[str, FrequencyRule] | None = None
    lifestyle: Lifestyle | None = None
    reason: str | None = None


class TimePreferencesOut(TimePreferences):
    id: UUID
    updated_by: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    warnings: list[str] = Field(default_factory=list)


class ValidationReportOut(ApiModel):
    is_valid: bool
    errors: list[str]
    warnings: list[str]
    suggested_fixes: list[str]


class ComputeScheduleRequest(ApiModel):
    patient_id: UUID
    frequency: str
    overrides: dict[str, str] | None = None


class ComputeScheduleResponse(ApiModel):
    times: list[str]
    applied_bucket_ids: list[str]
    warnings: list[str]
    preferences_version: int


class ValidatePreferencesRequest(TimePreferencesCreate):
    """Candidate preferences; omitted sections fall back to the stored or default ones."""

    patient_id: UUID | None = None
