from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from doseflow.api.deps import get_notifier
from doseflow.crud import processing_log
from doseflow.db.session import get_db
from doseflow.schemas.jobs import ProcessingRunOut
from doseflow.services.daily_reset import DailyResetService
from doseflow.services.event_generator import EventGenerator
from doseflow.services.missed_detection import MissedDoseSweep
from doseflow.services.notifier import Notifier

router = APIRouter()


@router.post("/generate-events", response_model=ProcessingRunOut)
def generate_events(db: Session = Depends(get_db)) -> ProcessingRunOut:
    run = EventGenerator(db).generate_all()
    return ProcessingRunOut.model_validate(run)


@router.post("/detect-missed", response_model=ProcessingRunOut)
def detect_missed(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> ProcessingRunOut:
    _, run = MissedDoseSweep(db, notifier=notifier).run()
    return ProcessingRunOut.model_validate(run)


@router.post("/daily-reset", response_model=ProcessingRunOut)
def daily_reset(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> ProcessingRunOut:
    _, run = DailyResetService(db, notifier=notifier).run_due()
    return ProcessingRunOut.model_validate(run)


@router.get("/processing-runs", response_model=list[ProcessingRunOut])
def list_processing_runs(
    job_name: str | None = Query(None, alias="jobName"),
    limit: int = Query(20, ge=1, le=200),
    db: Session = Depends(get_db),
) -> list[ProcessingRunOut]:
    runs = processing_log.list_runs(db, job_name=job_name, limit=limit)
    return [ProcessingRunOut.model_validate(run) for run in runs]
