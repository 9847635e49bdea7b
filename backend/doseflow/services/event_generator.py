"""Materialises dose events from medication schedules on a rolling horizon."""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from doseflow.core.errors import DoseflowError
from doseflow.core.settings import get_settings
from doseflow.crud import grace_period as grace_crud
from doseflow.crud import medication as medication_crud
from doseflow.crud import processing_log
from doseflow.crud import time_preferences as preferences_crud
from doseflow.db.models import DoseEvent, MedicationSchedule
from doseflow.db.types import utcnow
from doseflow.schemas.grace_period import GracePeriodSettings
from doseflow.schemas.time_preferences import TimePreferences
from doseflow.services.frequency import Frequency, normalize_frequency
from doseflow.services.grace_period import resolve_grace_period
from doseflow.services.schedule_compiler import compile_schedule
from doseflow.services.time_buckets import is_after_midnight_portion, parse_hhmm
from doseflow.services.timezones import localize, resolve_zone

logger = logging.getLogger(__name__)

JOB_NAME = "generate_events"


@dataclass
class GenerationResult:
    patient_id: UUID
    schedules: int = 0
    created: int = 0
    removed: int = 0
    warnings: list[str] = field(default_factory=list)


def _occurs_on(frequency: Frequency, start: date, day: date) -> bool:
    if frequency == Frequency.WEEKLY:
        return day.weekday() == start.weekday()
    if frequency == Frequency.MONTHLY:
        last_day = calendar.monthrange(day.year, day.month)[1]
        return day.day == min(start.day, last_day)
    return frequency != Frequency.AS_NEEDED


class EventGenerator:
    def __init__(self, db: Session, horizon_days: int | None = None) -> None:
        self.db = db
        self.horizon_days = horizon_days or get_settings().generation_horizon_days

    def generate_for_schedule(
        self,
        schedule: MedicationSchedule,
        now: datetime | None = None,
        preferences: TimePreferences | None = None,
        grace: GracePeriodSettings | None = None,
    ) -> int:
        """Create missing future events for one schedule; returns how many were added."""
        now = now or utcnow()
        if not schedule.is_active or schedule.is_paused:
            return 0

        preferences = preferences or preferences_crud.require_preferences(self.db, schedule.patient_id)
        zone = resolve_zone(preferences.lifestyle.timezone, schedule.patient_id)
        grace = grace or grace_crud.get_grace_settings(self.db, schedule.patient_id)

        if schedule.preferences_version != preferences.version:
            self._recompile(schedule, preferences, now)

        frequency = normalize_frequency(schedule.frequency)
        medication = medication_crud.get_medication(self.db, schedule.medication_id)
        medication_class = medication.medication_class if medication else None
        is_prn = bool(medication and medication.is_prn)
        if is_prn or medication_class == "prn":
            # Taken ad hoc; there is no slot to miss.
            return 0

        existing = {
            row[0]
            for row in self.db.query(DoseEvent.scheduled_at)
            .filter(DoseEvent.schedule_id == schedule.id, DoseEvent.scheduled_at > now)
            .all()
        }

        today = now.astimezone(zone).date()
        slots = list(zip(schedule.times or [], schedule.bucket_names or []))
        events: list[DoseEvent] = []
        for offset in range(self.horizon_days):
            day = today + timedelta(days=offset)
            if day < schedule.start_date:
                continue
            if schedule.end_date and day > schedule.end_date:
                break
            if not _occurs_on(frequency, schedule.start_date, day):
                continue

            for time_value, bucket_name in slots:
                minutes = parse_hhmm(time_value)
                bucket = preferences.time_buckets.get(bucket_name)
                # After-midnight half of a late-night bucket belongs to ``day``.
                calendar_day = day + timedelta(days=1) if is_after_midnight_portion(bucket, minutes) else day
                scheduled_at = localize(calendar_day, minutes, zone)
                if scheduled_at <= now or scheduled_at in existing:
                    continue
                existing.add(scheduled_at)

                resolution = resolve_grace_period(
                    scheduled_at,
                    zone,
                    bucket_name,
                    schedule.medication_id,
                    medication_class,
                    is_prn,
                    grace,
                    local_date=day,
                )
                events.append(
                    DoseEvent(
                        patient_id=schedule.patient_id,
                        medication_id=schedule.medication_id,
                        schedule_id=schedule.id,
                        scheduled_at=scheduled_at,
                        local_date=day,
                        bucket_name=bucket_name,
                        schedule_version=schedule.preferences_version,
                        status="scheduled",
                        grace_minutes=resolution.grace_minutes,
                        grace_end=resolution.grace_end,
                        grace_rules=resolution.applied_rules,
                        grace_config_version=grace.version,
                        created_at=now,
                        updated_at=now,
                    )
                )

        return self._insert(events)

    def generate_for_patient(self, patient_id: UUID, now: datetime | None = None) -> GenerationResult:
        now = now or utcnow()
        preferences = preferences_crud.require_preferences(self.db, patient_id)
        resolve_zone(preferences.lifestyle.timezone, patient_id)
        grace = grace_crud.get_grace_settings(self.db, patient_id)

        result = GenerationResult(patient_id=patient_id)
        for schedule in medication_crud.list_active_schedules(self.db, patient_id):
            result.schedules += 1
            result.created += self.generate_for_schedule(schedule, now, preferences, grace)
        return result

    def generate_all(self, now: datetime | None = None):
        """Run generation for every patient with an active schedule.

        A failing patient is logged and counted; the others still run.
        """
        now = now or utcnow()
        run = processing_log.start_run(self.db, JOB_NAME, now)
        patient_ids = medication_crud.list_scheduled_patient_ids(self.db)
        successes = failures = created = 0
        errors: list[dict] = []
        for patient_id in patient_ids:
            try:
                result = self.generate_for_patient(patient_id, now)
            except DoseflowError as exc:
                self.db.rollback()
                failures += 1
                errors.append({"patient_id": str(patient_id), "error": exc.code, "message": exc.message})
                logger.warning(
                    "Skipping event generation for patient %s: %s",
                    patient_id,
                    exc.message,
                    extra={"doseflow_job": JOB_NAME, "doseflow_patient_id": str(patient_id)},
                )
                continue
            except Exception as exc:
                self.db.rollback()
                failures += 1
                errors.append({"patient_id": str(patient_id), "error": "exception", "message": str(exc)})
                logger.exception("Event generation failed for patient %s", patient_id)
                continue
            successes += 1
            created += result.created

        logger.info(
            "Event generation finished: %s patients, %s events created, %s failures",
            len(patient_ids),
            created,
            failures,
            extra={"doseflow_job": JOB_NAME, "doseflow_events": created},
        )
        return processing_log.finish_run(
            self.db,
            run,
            patients_considered=len(patient_ids),
            successes=successes,
            failures=failures,
            events_processed=created,
            errors=errors,
        )

    def remove_future_scheduled(self, schedule: MedicationSchedule, now: datetime | None = None) -> int:
        """Delete future events that nobody has acted on yet."""
        now = now or utcnow()
        removed = (
            self.db.query(DoseEvent)
            .filter(
                DoseEvent.schedule_id == schedule.id,
                DoseEvent.status == "scheduled",
                DoseEvent.is_archived.is_(False),
                DoseEvent.scheduled_at > now,
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if removed:
            logger.info("Removed %s future events for schedule %s", removed, schedule.id)
        return removed

    def regenerate(
        self,
        schedule: MedicationSchedule,
        now: datetime | None = None,
        preferences: TimePreferences | None = None,
    ) -> tuple[int, int]:
        """Recompile a schedule against current preferences and rebuild its future events."""
        now = now or utcnow()
        preferences = preferences or preferences_crud.require_preferences(self.db, schedule.patient_id)
        removed = self._recompile(schedule, preferences, now, force=True)
        created = self.generate_for_schedule(schedule, now, preferences)
        return removed, created

    def regenerate_patient(self, patient_id: UUID, now: datetime | None = None) -> GenerationResult:
        now = now or utcnow()
        preferences = preferences_crud.require_preferences(self.db, patient_id)
        result = GenerationResult(patient_id=patient_id)
        for schedule in medication_crud.list_active_schedules(self.db, patient_id):
            result.schedules += 1
            removed, created = self.regenerate(schedule, now, preferences)
            result.removed += removed
            result.created += created
        return result

    def _recompile(
        self,
        schedule: MedicationSchedule,
        preferences: TimePreferences,
        now: datetime,
        force: bool = False,
    ) -> int:
        compiled = compile_schedule(schedule.frequency, preferences, schedule.custom_times)
        changed = compiled.times != schedule.times or compiled.bucket_names != schedule.bucket_names
        schedule.preferences_version = compiled.preferences_version
        removed = 0
        if changed or force:
            schedule.times = compiled.times
            schedule.bucket_names = compiled.bucket_names
            self.db.add(schedule)
            removed = self.remove_future_scheduled(schedule, now)
        else:
            self.db.add(schedule)
            self.db.commit()
        return removed

    def _insert(self, events: list[DoseEvent]) -> int:
        if not events:
            return 0
        self.db.add_all(events)
        try:
            self.db.commit()
            return len(events)
        except IntegrityError:
            # A concurrent run inserted some of the same slots.
            self.db.rollback()

        created = 0
        for event in events:
            try:
                with self.db.begin_nested():
                    self.db.add(event)
                created += 1
            except IntegrityError:
                logger.debug("Dose event already exists for %s at %s", event.schedule_id, event.scheduled_at)
        self.db.commit()
        return created
