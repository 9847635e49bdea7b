from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from doseflow.schemas.base import ApiModel


class MarkTakenRequest(ApiModel):
    acted_at: datetime | None = None
    notes: str | None = None


class SkipRequest(ApiModel):
    reason: str = Field(min_length=1)
    notes: str | None = None


class DoseEventOut(ApiModel):
    id: UUID
    patient_id: UUID
    medication_id: UUID
    schedule_id: UUID
    scheduled_at: datetime
    local_date: date | None = None
    bucket_name: str | None = None
    schedule_version: int
    status: str
    grace_minutes: int
    grace_end: datetime
    grace_rules: list[str] = Field(default_factory=list)
    acted_by: str | None = None
    acted_at: datetime | None = None
    notes: str | None = None
    skip_reason: str | None = None
    is_on_time: bool | None = None
    minutes_late: int | None = None
    is_archived: bool = False
    archived_at: datetime | None = None
    daily_summary_id: UUID | None = None
    updated_at: datetime | None = None
    minutes_until_due: int | None = None


class DailySummaryOut(ApiModel):
    id: UUID | None = None
    patient_id: UUID
    local_date: date
    timezone: str
    day_start: datetime
    day_end: datetime
    total_scheduled: int
    total_taken: int
    total_late: int
    total_missed: int
    total_skipped: int
    total_pending: int
    adherence_rate: float
    on_time_rate: float
    average_delay_minutes: float
    longest_delay_minutes: int
    medication_breakdown: dict[str, Any] = Field(default_factory=dict)
    event_ids: list[str] = Field(default_factory=list)
    created_at: datetime | None = None


class ArchivedEventsOut(ApiModel):
    patient_id: UUID
    start_date: date
    end_date: date
    total: int
    events: list[DoseEventOut]


class TriggerDailyResetRequest(ApiModel):
    patient_id: UUID
    timezone: str | None = None
    dry_run: bool = False
    target_date: date | None = Field(default=None, alias="date")


class DailyResetResultOut(ApiModel):
    patient_id: UUID
    local_date: date | None = None
    status: str
    events_archived: int = 0
    missed_marked: int = 0
    summary: DailySummaryOut | None = None
