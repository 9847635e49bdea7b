"""initial schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "patient_time_preferences",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("patient_id", postgresql.UUID(as_uuid=True), nullable=False, unique=True),
        sa.Column("time_buckets", postgresql.JSONB(), nullable=False),
        sa.Column("frequency_mapping", postgresql.JSONB(), nullable=False),
        sa.Column("lifestyle", postgresql.JSONB(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_by", sa.String(length=100), nullable=True),
        sa.Column("updated_by", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=True),
    )

    op.create_table(
        "grace_period_configs",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("patient_id", postgresql.UUID(as_uuid=True), nullable=False, unique=True),
        sa.Column("default_minutes", postgresql.JSONB(), nullable=False),
        sa.Column("medication_class_rules", postgresql.JSONB(), nullable=False),
        sa.Column("medication_overrides", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("weekend_multiplier", sa.Float(), nullable=False, server_default=sa.text("1.5")),
        sa.Column("holiday_multiplier", sa.Float(), nullable=False, server_default=sa.text("2.0")),
        sa.Column("use_us_holidays", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("holidays", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=True),
        sa.CheckConstraint("weekend_multiplier >= 1.0", name="ck_grace_weekend_multiplier"),
        sa.CheckConstraint("holiday_multiplier >= 1.0", name="ck_grace_holiday_multiplier"),
    )

    op.create_table(
        "medications",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("patient_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("generic_name", sa.String(length=200), nullable=True),
        sa.Column("dosage", sa.String(length=100), nullable=True),
        sa.Column("medication_class", sa.String(length=20), nullable=False, server_default=sa.text("'standard'")),
        sa.Column("is_prn", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=True),
    )
    op.create_index("ix_medications_patient_id", "medications", ["patient_id"])

    op.create_table(
        "medication_schedules",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("medication_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("medications.id"), nullable=False),
        sa.Column("patient_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("frequency", sa.String(length=30), nullable=False),
        sa.Column("custom_times", postgresql.JSONB(), nullable=True),
        sa.Column("times", postgresql.JSONB(), nullable=False),
        sa.Column("bucket_names", postgresql.JSONB(), nullable=False),
        sa.Column("preferences_version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("is_paused", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=True),
    )
    op.create_index("ix_medication_schedules_patient_id", "medication_schedules", ["patient_id"])

    op.create_table(
        "daily_summaries",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("patient_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("local_date", sa.Date(), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("day_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("day_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total_scheduled", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_taken", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_late", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_missed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_skipped", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_pending", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("adherence_rate", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("on_time_rate", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("average_delay_minutes", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("longest_delay_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("medication_breakdown", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("event_ids", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=True),
        sa.UniqueConstraint("patient_id", "local_date", name="uq_daily_summary_patient_date"),
    )

    op.create_table(
        "dose_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("patient_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("medication_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("medications.id"), nullable=False),
        sa.Column(
            "schedule_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("medication_schedules.id"),
            nullable=False,
        ),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("local_date", sa.Date(), nullable=True),
        sa.Column("bucket_name", sa.String(length=50), nullable=True),
        sa.Column("schedule_version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'scheduled'")),
        sa.Column("grace_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("grace_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("grace_rules", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("grace_config_version", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("acted_by", sa.String(length=100), nullable=True),
        sa.Column("acted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("skip_reason", sa.Text(), nullable=True),
        sa.Column("is_on_time", sa.Boolean(), nullable=True),
        sa.Column("minutes_late", sa.Integer(), nullable=True),
        sa.Column("is_archived", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "daily_summary_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("daily_summaries.id"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=True),
        sa.UniqueConstraint("medication_id", "schedule_id", "scheduled_at", name="uq_dose_event_identity"),
        sa.CheckConstraint(
            "status IN ('scheduled', 'taken', 'late', 'missed', 'skipped')",
            name="ck_dose_events_status",
        ),
    )
    op.create_index("ix_dose_events_status_grace_end", "dose_events", ["status", "grace_end"])
    op.create_index("ix_dose_events_patient_local_date", "dose_events", ["patient_id", "local_date"])

    op.create_table(
        "processing_runs",
        sa.Column("id", postgresql.UUID(as_uuid=True), server_default=sa.text("gen_random_uuid()"), primary_key=True),
        sa.Column("job_name", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default=sa.text("'running'")),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("patients_considered", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("successes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("failures", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("events_processed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("details", postgresql.JSONB(), nullable=True),
    )
    op.create_index("ix_processing_runs_job_started", "processing_runs", ["job_name", "started_at"])


def downgrade() -> None:
    op.drop_index("ix_processing_runs_job_started", table_name="processing_runs")
    op.drop_table("processing_runs")
    op.drop_index("ix_dose_events_patient_local_date", table_name="dose_events")
    op.drop_index("ix_dose_events_status_grace_end", table_name="dose_events")
    op.drop_table("dose_events")
    op.drop_table("daily_summaries")
    op.drop_index("ix_medication_schedules_patient_id", table_name="medication_schedules")
    op.drop_table("medication_schedules")
    op.drop_index("ix_medications_patient_id", table_name="medications")
    op.drop_table("medications")
    op.drop_table("grace_period_configs")
    op.drop_table("patient_time_preferences")
