import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.sql import text

from doseflow.db.base import Base
from doseflow.db.types import JSONType, UTCDateTime, utcnow


class PatientTimePreferences(Base):
    __tablename__ = "patient_time_preferences"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id = Column(Uuid(as_uuid=True), nullable=False, unique=True)
    time_buckets = Column(JSONType, nullable=False)
    frequency_mapping = Column(JSONType, nullable=False)
    lifestyle = Column(JSONType, nullable=False)
    version = Column(Integer, nullable=False, default=1, server_default=text("1"))
    created_by = Column(String(100))
    updated_by = Column(String(100))
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)


class GracePeriodConfig(Base):
    __tablename__ = "grace_period_configs"
    __table_args__ = (
        CheckConstraint("weekend_multiplier >= 1.0", name="ck_grace_weekend_multiplier"),
        CheckConstraint("holiday_multiplier >= 1.0", name="ck_grace_holiday_multiplier"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id = Column(Uuid(as_uuid=True), nullable=False, unique=True)
    default_minutes = Column(JSONType, nullable=False)
    medication_class_rules = Column(JSONType, nullable=False)
    medication_overrides = Column(JSONType, nullable=False)
    weekend_multiplier = Column(Float, nullable=False, default=1.5)
    holiday_multiplier = Column(Float, nullable=False, default=2.0)
    use_us_holidays = Column(Boolean, nullable=False, default=True)
    holidays = Column(JSONType, nullable=False)
    version = Column(Integer, nullable=False, default=1, server_default=text("1"))
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)


class Medication(Base):
    __tablename__ = "medications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    generic_name = Column(String(200))
    dosage = Column(String(100))
    medication_class = Column(String(20), nullable=False, default="standard")
    is_prn = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, default=utcnow)


class MedicationSchedule(Base):
    __tablename__ = "medication_schedules"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    medication_id = Column(Uuid(as_uuid=True), ForeignKey("medications.id"), nullable=False)
    patient_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    frequency = Column(String(30), nullable=False)
    custom_times = Column(JSONType)
    times = Column(JSONType, nullable=False)
    bucket_names = Column(JSONType, nullable=False)
    preferences_version = Column(Integer, nullable=False, default=1)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date)
    is_active = Column(Boolean, nullable=False, default=True)
    is_paused = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)


class DoseEvent(Base):
    __tablename__ = "dose_events"
    __table_args__ = (
        UniqueConstraint(
            "medication_id", "schedule_id", "scheduled_at", name="uq_dose_event_identity"
        ),
        Index("ix_dose_events_status_grace_end", "status", "grace_end"),
        Index("ix_dose_events_patient_local_date", "patient_id", "local_date"),
        CheckConstraint(
            "status IN ('scheduled', 'taken', 'late', 'missed', 'skipped')",
            name="ck_dose_events_status",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id = Column(Uuid(as_uuid=True), nullable=False)
    medication_id = Column(Uuid(as_uuid=True), ForeignKey("medications.id"), nullable=False)
    schedule_id = Column(Uuid(as_uuid=True), ForeignKey("medication_schedules.id"), nullable=False)
    scheduled_at = Column(UTCDateTime, nullable=False)
    local_date = Column(Date)
    bucket_name = Column(String(50))
    schedule_version = Column(Integer, nullable=False, default=1)

    status = Column(String(20), nullable=False, default="scheduled", server_default=text("'scheduled'"))

    grace_minutes = Column(Integer, nullable=False, default=0)
    grace_end = Column(UTCDateTime, nullable=False)
    grace_rules = Column(JSONType, nullable=False)
    grace_config_version = Column(Integer, nullable=False, default=0)

    acted_by = Column(String(100))
    acted_at = Column(UTCDateTime)
    notes = Column(Text)
    skip_reason = Column(Text)
    is_on_time = Column(Boolean)
    minutes_late = Column(Integer)

    is_archived = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    archived_at = Column(UTCDateTime)
    daily_summary_id = Column(Uuid(as_uuid=True), ForeignKey("daily_summaries.id"))

    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow)


class DailySummary(Base):
    __tablename__ = "daily_summaries"
    __table_args__ = (
        UniqueConstraint("patient_id", "local_date", name="uq_daily_summary_patient_date"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    patient_id = Column(Uuid(as_uuid=True), nullable=False)
    local_date = Column(Date, nullable=False)
    timezone = Column(String(64), nullable=False)
    day_start = Column(UTCDateTime, nullable=False)
    day_end = Column(UTCDateTime, nullable=False)

    total_scheduled = Column(Integer, nullable=False, default=0)
    total_taken = Column(Integer, nullable=False, default=0)
    total_late = Column(Integer, nullable=False, default=0)
    total_missed = Column(Integer, nullable=False, default=0)
    total_skipped = Column(Integer, nullable=False, default=0)
    total_pending = Column(Integer, nullable=False, default=0)
    adherence_rate = Column(Float, nullable=False, default=0.0)
    on_time_rate = Column(Float, nullable=False, default=0.0)
    average_delay_minutes = Column(Float, nullable=False, default=0.0)
    longest_delay_minutes = Column(Integer, nullable=False, default=0)

    medication_breakdown = Column(JSONType, nullable=False)
    event_ids = Column(JSONType, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow)


class ProcessingRun(Base):
    __tablename__ = "processing_runs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    job_name = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="running")
    started_at = Column(UTCDateTime, nullable=False, default=utcnow)
    finished_at = Column(UTCDateTime)
    patients_considered = Column(Integer, nullable=False, default=0)
    successes = Column(Integer, nullable=False, default=0)
    failures = Column(Integer, nullable=False, default=0)
    events_processed = Column(Integer, nullable=False, default=0)
    details = Column(JSONType)
