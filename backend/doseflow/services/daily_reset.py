"""Closes a patient's local day into an immutable daily summary.

A patient-day is due once local time passes midnight plus the end of any
late-night bucket that wraps it, and is only closed once none of its doses is
still inside its grace window. Days missed while the worker was down are
caught up oldest first. Each ``(patient, local_date)`` is processed
at most once: an existing summary short-circuits the run, and the unique
constraint on the summary table catches concurrent runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from doseflow.core.errors import DoseflowError, ValidationError
from doseflow.crud import daily_summary as summary_crud
from doseflow.crud import dose_event as event_crud
from doseflow.crud import processing_log
from doseflow.crud import time_preferences as preferences_crud
from doseflow.db.models import DailySummary, DoseEvent, Medication
from doseflow.db.types import utcnow
from doseflow.services.dose_lifecycle import DoseStatus
from doseflow.services.missed_detection import MissedDoseSweep
from doseflow.services.notifier import Notifier
from doseflow.services.time_buckets import day_rollover_minutes
from doseflow.services.timezones import local_day_bounds, resolve_zone

logger = logging.getLogger(__name__)

JOB_NAME = "daily_reset"


@dataclass
class DailyResetResult:
    patient_id: UUID
    local_date: date | None
    status: str
    events_archived: int = 0
    missed_marked: int = 0
    summary: DailySummary | None = None


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def compute_statistics(events: list[DoseEvent], medications: dict[UUID, Medication]) -> dict:
    """Aggregate counts and rates. ``total_taken`` includes late doses."""
    counts = {status: 0 for status in DoseStatus}
    delays: list[int] = []
    breakdown: dict[str, dict] = {}
    for event in events:
        status = DoseStatus(event.status)
        counts[status] += 1
        if status == DoseStatus.LATE and event.minutes_late:
            delays.append(event.minutes_late)

        medication = medications.get(event.medication_id)
        entry = breakdown.setdefault(
            str(event.medication_id),
            {
                "name": medication.name if medication else None,
                "scheduled": 0,
                "taken": 0,
                "late": 0,
                "missed": 0,
                "skipped": 0,
                "pending": 0,
            },
        )
        entry["scheduled"] += 1
        entry["pending" if status == DoseStatus.SCHEDULED else status.value] += 1

    for entry in breakdown.values():
        entry["adherence_rate"] = _rate(entry["taken"] + entry["late"], entry["scheduled"])

    total = len(events)
    taken_count = counts[DoseStatus.TAKEN] + counts[DoseStatus.LATE]
    return {
        "total_scheduled": total,
        "total_taken": taken_count,
        "total_late": counts[DoseStatus.LATE],
        "total_missed": counts[DoseStatus.MISSED],
        "total_skipped": counts[DoseStatus.SKIPPED],
        "total_pending": counts[DoseStatus.SCHEDULED],
        "adherence_rate": _rate(taken_count, total),
        "on_time_rate": _rate(counts[DoseStatus.TAKEN], taken_count),
        "average_delay_minutes": round(sum(delays) / len(delays), 2) if delays else 0.0,
        "longest_delay_minutes": max(delays) if delays else 0,
        "medication_breakdown": breakdown,
    }


class DailyResetService:
    def __init__(
        self,
        db: Session,
        sweep: MissedDoseSweep | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.db = db
        self.notifier = notifier or Notifier()
        self.sweep = sweep or MissedDoseSweep(db, notifier=self.notifier)

    def _timezone_for(self, patient_id: UUID) -> str | None:
        preferences = preferences_crud.get_preferences(self.db, patient_id)
        return preferences.lifestyle.timezone if preferences else None

    def latest_due_date(self, patient_id: UUID, zone, now: datetime) -> date:
        preferences = preferences_crud.get_preferences(self.db, patient_id)
        rollover = day_rollover_minutes(preferences.time_buckets) if preferences else 0
        local = now.astimezone(zone)
        minutes = local.hour * 60 + local.minute
        back = 1 if minutes >= rollover else 2
        return local.date() - timedelta(days=back)

    def execute(
        self,
        patient_id: UUID,
        timezone: str | None = None,
        now: datetime | None = None,
        dry_run: bool = False,
        target_date: date | None = None,
    ) -> DailyResetResult:
        now = now or utcnow()
        zone = resolve_zone(timezone or self._timezone_for(patient_id), patient_id)

        latest = self.latest_due_date(patient_id, zone, now)
        if target_date is None:
            target_date = latest
        elif target_date > latest:
            raise ValidationError(
                f"local day {target_date} has not closed yet for patient {patient_id}",
                suggested_fix=f"archive {latest} or an earlier day",
            )

        existing = summary_crud.get_summary(self.db, patient_id, target_date)
        if existing:
            return DailyResetResult(patient_id, target_date, "already_archived", summary=existing)

        missed_marked = 0
        if not dry_run:
            missed_marked = self.sweep.run_for_patient(patient_id, now).missed

        day_start, day_end = local_day_bounds(target_date, zone)
        events = event_crud.list_events_for_day(self.db, patient_id, target_date, day_start, day_end)
        if not events:
            return DailyResetResult(patient_id, target_date, "no_events", missed_marked=missed_marked)

        still_open = [
            event for event in events
            if event.status == DoseStatus.SCHEDULED.value and event.grace_end > now
        ]
        if still_open and not dry_run:
            logger.info(
                "Deferring %s for patient %s: %s doses still inside their grace window",
                target_date,
                patient_id,
                len(still_open),
            )
            return DailyResetResult(patient_id, target_date, "grace_open", missed_marked=missed_marked)

        medication_ids = {event.medication_id for event in events}
        medications = {
            med.id: med
            for med in self.db.query(Medication).filter(Medication.id.in_(medication_ids)).all()
        }
        summary = DailySummary(
            patient_id=patient_id,
            local_date=target_date,
            timezone=zone.key,
            day_start=day_start,
            day_end=day_end,
            event_ids=[str(event.id) for event in events],
            created_at=now,
            **compute_statistics(events, medications),
        )
        if dry_run:
            return DailyResetResult(patient_id, target_date, "dry_run", summary=summary)

        try:
            self.db.add(summary)
            self.db.flush()
            for event in events:
                event.is_archived = True
                event.archived_at = now
                event.daily_summary_id = summary.id
                if event.local_date is None:
                    event.local_date = target_date
                self.db.add(event)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.info("Daily summary for %s on %s already written by another run", patient_id, target_date)
            existing = summary_crud.get_summary(self.db, patient_id, target_date)
            return DailyResetResult(patient_id, target_date, "already_archived", summary=existing)

        self.db.refresh(summary)
        logger.info(
            "Archived %s events for patient %s on %s",
            len(events),
            patient_id,
            target_date,
            extra={"doseflow_job": JOB_NAME, "doseflow_patient_id": str(patient_id)},
        )
        self.notifier.notify(
            patient_id,
            {
                "type": "daily_summary",
                "local_date": target_date.isoformat(),
                "adherence_rate": summary.adherence_rate,
                "total_missed": summary.total_missed,
            },
        )
        return DailyResetResult(
            patient_id,
            target_date,
            "created",
            events_archived=len(events),
            missed_marked=missed_marked,
            summary=summary,
        )

    def catch_up(
        self,
        patient_id: UUID,
        timezone: str | None = None,
        now: datetime | None = None,
    ) -> list[DailyResetResult]:
        """Archive every closed day that still holds unarchived events, oldest first."""
        now = now or utcnow()
        zone = resolve_zone(timezone or self._timezone_for(patient_id), patient_id)
        latest = self.latest_due_date(patient_id, zone, now)
        days = event_crud.list_unarchived_dates(self.db, patient_id, latest)
        if latest not in days:
            days.append(latest)
        return [
            self.execute(patient_id, timezone=zone.key, now=now, target_date=day)
            for day in days
        ]

    def run_due(self, now: datetime | None = None):
        """Catch up every patient with preferences; one failure never stops the rest."""
        now = now or utcnow()
        run = processing_log.start_run(self.db, JOB_NAME, now)
        rows = preferences_crud.list_preferences(self.db)
        results: list[DailyResetResult] = []
        errors: list[dict] = []
        succeeded = 0
        for row in rows:
            patient_id = row.patient_id
            timezone = (row.lifestyle or {}).get("timezone")
            try:
                patient_results = self.catch_up(patient_id, timezone=timezone, now=now)
            except DoseflowError as exc:
                self.db.rollback()
                errors.append({"patient_id": str(patient_id), "error": exc.code, "message": exc.message})
                logger.warning("Skipping daily reset for patient %s: %s", patient_id, exc.message)
                continue
            except Exception as exc:
                self.db.rollback()
                errors.append({"patient_id": str(patient_id), "error": "exception", "message": str(exc)})
                logger.exception("Daily reset failed for patient %s", patient_id)
                continue
            results.extend(patient_results)
            succeeded += 1

        archived = sum(result.events_archived for result in results)
        run = processing_log.finish_run(
            self.db,
            run,
            patients_considered=len(rows),
            successes=succeeded,
            failures=len(errors),
            events_processed=archived,
            errors=errors,
        )
        logger.info(
            "Daily reset finished: %s patients, %s days closed, %s events archived, %s failures",
            len(rows),
            sum(1 for result in results if result.status == "created"),
            archived,
            len(errors),
            extra={"doseflow_job": JOB_NAME, "doseflow_events": archived},
        )
        return results, run
