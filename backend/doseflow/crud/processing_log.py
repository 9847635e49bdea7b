from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from doseflow.db.models import ProcessingRun
from doseflow.db.types import utcnow


def start_run(db: Session, job_name: str, now: datetime | None = None) -> ProcessingRun:
    run = ProcessingRun(job_name=job_name, status="running", started_at=now or utcnow())
    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def finish_run(
    db: Session,
    run: ProcessingRun,
    patients_considered: int = 0,
    successes: int = 0,
    failures: int = 0,
    events_processed: int = 0,
    errors: list[dict[str, Any]] | None = None,
) -> ProcessingRun:
    run.patients_considered = patients_considered
    run.successes = successes
    run.failures = failures
    run.events_processed = events_processed
    run.status = "completed" if not failures else "completed_with_errors"
    run.finished_at = utcnow()
    run.details = {"errors": errors or []}
    db.add(run)
    db.commit()
    db.refresh(run)
    return run


def list_runs(db: Session, job_name: str | None = None, limit: int = 20) -> list[ProcessingRun]:
    query = db.query(ProcessingRun)
    if job_name:
        query = query.filter(ProcessingRun.job_name == job_name)
    return query.order_by(ProcessingRun.started_at.desc()).limit(limit).all()
