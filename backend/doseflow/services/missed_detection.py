from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from doseflow.core.errors import DoseflowError
from doseflow.core.settings import get_settings
from doseflow.crud import grace_period as grace_crud
from doseflow.crud import medication as medication_crud
from doseflow.crud import processing_log
from doseflow.crud import time_preferences as preferences_crud
from doseflow.db.models import DoseEvent, Medication
from doseflow.db.types import utcnow
from doseflow.schemas.grace_period import GracePeriodSettings
from doseflow.services.dose_lifecycle import DoseStatus, mark_missed
from doseflow.services.grace_period import resolve_grace_period
from doseflow.services.notifier import Notifier
from doseflow.services.timezones import resolve_zone

logger = logging.getLogger(__name__)

JOB_NAME = "detect_missed"


@dataclass
class SweepResult:
    batches: int = 0
    examined: int = 0
    missed: int = 0
    regraced: int = 0
    failures: int = 0
    patient_ids: set[UUID] = field(default_factory=set)
    errors: list[dict] = field(default_factory=list)


class MissedDoseSweep:
    def __init__(
        self,
        db: Session,
        notifier: Notifier | None = None,
        batch_size: int | None = None,
        max_batches: int | None = None,
    ) -> None:
        settings = get_settings()
        self.db = db
        self.notifier = notifier or Notifier()
        self.batch_size = batch_size or settings.sweep_batch_size
        self.max_batches = max_batches or settings.sweep_max_batches
        self._grace_cache: dict[UUID, GracePeriodSettings] = {}

    def run(self, now: datetime | None = None):
        now = now or utcnow()
        run = processing_log.start_run(self.db, JOB_NAME, now)
        result = self._sweep(now)
        logger.info(
            "Missed-dose sweep finished: %s examined, %s missed, %s regraced, %s failed batches",
            result.examined,
            result.missed,
            result.regraced,
            result.failures,
            extra={"doseflow_job": JOB_NAME, "doseflow_events": result.missed},
        )
        processing_log.finish_run(
            self.db,
            run,
            patients_considered=len(result.patient_ids),
            successes=result.batches - result.failures,
            failures=result.failures,
            events_processed=result.missed,
            errors=result.errors,
        )
        return result, run

    def run_for_patient(self, patient_id: UUID, now: datetime | None = None) -> SweepResult:
        return self._sweep(now or utcnow(), patient_id)

    def _sweep(self, now: datetime, patient_id: UUID | None = None) -> SweepResult:
        result = SweepResult()
        self._grace_cache.clear()
        while result.batches < self.max_batches:
            # As-needed medications are never missed.
            query = (
                self.db.query(DoseEvent)
                .join(Medication, Medication.id == DoseEvent.medication_id)
                .filter(
                    DoseEvent.status == DoseStatus.SCHEDULED.value,
                    DoseEvent.grace_end <= now,
                    DoseEvent.is_archived.is_(False),
                    Medication.is_prn.is_(False),
                    Medication.medication_class != "prn",
                )
            )
            if patient_id is not None:
                query = query.filter(DoseEvent.patient_id == patient_id)
            batch = query.order_by(DoseEvent.grace_end.asc()).limit(self.batch_size).all()
            if not batch:
                break

            result.batches += 1
            result.examined += len(batch)
            try:
                missed, regraced = self._process_batch(batch, now)
                self.db.commit()
            except Exception as exc:
                # Rolled back whole; the next run retries these events.
                self.db.rollback()
                result.failures += 1
                result.errors.append({"batch": result.batches, "error": str(exc)})
                logger.exception("Missed-dose batch %s failed", result.batches)
                break

            result.missed += len(missed)
            result.regraced += regraced
            for event in missed:
                result.patient_ids.add(event.patient_id)
                self.notifier.notify(
                    event.patient_id,
                    {
                        "type": "dose_missed",
                        "event_id": str(event.id),
                        "medication_id": str(event.medication_id),
                        "scheduled_at": event.scheduled_at.isoformat(),
                        "bucket_name": event.bucket_name,
                    },
                )
            if not missed and not regraced:
                break
        return result

    def _process_batch(self, batch: list[DoseEvent], now: datetime) -> tuple[list[DoseEvent], int]:
        missed: list[DoseEvent] = []
        regraced = 0
        for event in batch:
            grace = self._grace_for(event.patient_id)
            if event.grace_config_version != grace.version and self._regrace(event, grace, now):
                regraced += 1
                continue
            if mark_missed(self.db, event.id, now):
                missed.append(event)
        return missed, regraced

    def _grace_for(self, patient_id: UUID) -> GracePeriodSettings:
        if patient_id not in self._grace_cache:
            self._grace_cache[patient_id] = grace_crud.get_grace_settings(self.db, patient_id)
        return self._grace_cache[patient_id]

    def _regrace(self, event: DoseEvent, grace: GracePeriodSettings, now: datetime) -> bool:
        """Re-resolve a stale grace window. True when the event is not yet overdue."""
        preferences = preferences_crud.get_preferences(self.db, event.patient_id)
        try:
            zone = resolve_zone(preferences.lifestyle.timezone if preferences else None, event.patient_id)
        except DoseflowError as exc:
            logger.warning("Keeping stored grace for event %s: %s", event.id, exc.message)
            return False

        medication = medication_crud.get_medication(self.db, event.medication_id)
        resolution = resolve_grace_period(
            event.scheduled_at,
            zone,
            event.bucket_name,
            event.medication_id,
            medication.medication_class if medication else None,
            bool(medication and medication.is_prn),
            grace,
            local_date=event.local_date,
        )
        event.grace_minutes = resolution.grace_minutes
        event.grace_end = resolution.grace_end
        event.grace_rules = resolution.applied_rules
        event.grace_config_version = grace.version
        event.updated_at = now
        self.db.add(event)
        self.db.flush()
        return resolution.grace_end > now
