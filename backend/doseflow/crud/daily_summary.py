from __future__ import annotations

from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from doseflow.db.models import DailySummary


def get_summary(db: Session, patient_id: UUID, local_date: date) -> DailySummary | None:
    return (
        db.query(DailySummary)
        .filter(DailySummary.patient_id == patient_id, DailySummary.local_date == local_date)
        .first()
    )


def list_summaries(
    db: Session,
    patient_id: UUID,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[DailySummary]:
    query = db.query(DailySummary).filter(DailySummary.patient_id == patient_id)
    if start_date:
        query = query.filter(DailySummary.local_date >= start_date)
    if end_date:
        query = query.filter(DailySummary.local_date <= end_date)
    return query.order_by(DailySummary.local_date.asc()).all()
