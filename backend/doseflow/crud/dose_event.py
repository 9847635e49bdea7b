from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from doseflow.core.errors import NotFoundError
from doseflow.db.models import DoseEvent


def get_event(db: Session, event_id: UUID) -> DoseEvent | None:
    return db.query(DoseEvent).filter(DoseEvent.id == event_id).first()


def require_event(db: Session, event_id: UUID) -> DoseEvent:
    event = get_event(db, event_id)
    if not event:
        raise NotFoundError(f"dose event {event_id} not found")
    return event


def list_events_for_day(
    db: Session,
    patient_id: UUID,
    local_date: date,
    day_start: datetime,
    day_end: datetime,
    include_archived: bool = False,
) -> list[DoseEvent]:
    """Events belonging to a local day; rows without ``local_date`` match by instant."""
    query = db.query(DoseEvent).filter(
        DoseEvent.patient_id == patient_id,
        or_(
            DoseEvent.local_date == local_date,
            and_(
                DoseEvent.local_date.is_(None),
                DoseEvent.scheduled_at >= day_start,
                DoseEvent.scheduled_at < day_end,
            ),
        ),
    )
    if not include_archived:
        query = query.filter(DoseEvent.is_archived.is_(False))
    return query.order_by(DoseEvent.scheduled_at.asc()).all()


def list_archived_events(
    db: Session,
    patient_id: UUID,
    start_date: date,
    end_date: date,
) -> list[DoseEvent]:
    return (
        db.query(DoseEvent)
        .filter(
            DoseEvent.patient_id == patient_id,
            DoseEvent.is_archived.is_(True),
            DoseEvent.local_date >= start_date,
            DoseEvent.local_date <= end_date,
        )
        .order_by(DoseEvent.scheduled_at.asc())
        .all()
    )


def list_unarchived_dates(db: Session, patient_id: UUID, up_to: date) -> list[date]:
    """Local days up to ``up_to`` that still hold unarchived events, oldest first."""
    rows = (
        db.query(DoseEvent.local_date)
        .filter(
            DoseEvent.patient_id == patient_id,
            DoseEvent.is_archived.is_(False),
            DoseEvent.local_date.is_not(None),
            DoseEvent.local_date <= up_to,
        )
        .distinct()
        .order_by(DoseEvent.local_date.asc())
        .all()
    )
    return [row[0] for row in rows]
