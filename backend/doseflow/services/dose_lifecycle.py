"""Dose event state machine.

Every transition leaves ``scheduled`` through a conditional UPDATE, so a user
action and the missed-dose sweep can never both win the same event. Archived
events are frozen along with their daily summary.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from doseflow.core.errors import ConcurrentTransitionConflict, ValidationError
from doseflow.core.settings import get_settings
from doseflow.crud.dose_event import require_event
from doseflow.db.models import DoseEvent
from doseflow.db.types import utcnow

logger = logging.getLogger(__name__)


class DoseStatus(str, Enum):
    SCHEDULED = "scheduled"
    TAKEN = "taken"
    LATE = "late"
    MISSED = "missed"
    SKIPPED = "skipped"


TERMINAL = frozenset({DoseStatus.TAKEN, DoseStatus.LATE, DoseStatus.MISSED, DoseStatus.SKIPPED})


def is_terminal(status: str) -> bool:
    return DoseStatus(status) in TERMINAL


def _transition(db: Session, event_id: UUID, values: dict, *conditions) -> DoseEvent:
    result = db.execute(
        update(DoseEvent)
        .where(
            DoseEvent.id == event_id,
            DoseEvent.status == DoseStatus.SCHEDULED.value,
            DoseEvent.is_archived.is_(False),
            *conditions,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        db.rollback()
        event = require_event(db, event_id)
        state = "archived" if event.is_archived else event.status
        raise ConcurrentTransitionConflict(
            f"dose event {event_id} is already {state}",
            suggested_fix="refresh the event; terminal doses cannot change again",
        )
    db.commit()
    event = require_event(db, event_id)
    db.refresh(event)
    return event


def minutes_late(acted_at: datetime, grace_end: datetime) -> int:
    return math.ceil((acted_at - grace_end) / timedelta(minutes=1))


def mark_taken(
    db: Session,
    event: DoseEvent,
    acted_by: str,
    acted_at: datetime | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> DoseEvent:
    now = now or utcnow()
    acted_at = acted_at or now
    if acted_at.tzinfo is None:
        raise ValidationError(
            "actedAt must include a timezone offset",
            suggested_fix="send an ISO-8601 timestamp such as 2024-03-01T08:45:00Z",
        )
    skew = timedelta(minutes=get_settings().acted_at_max_skew_minutes)
    if acted_at > now + skew:
        raise ValidationError(
            "actedAt is in the future",
            suggested_fix="omit actedAt to use the current time",
        )

    if acted_at <= event.grace_end:
        status, on_time, late_by = DoseStatus.TAKEN, True, 0
    else:
        status, on_time, late_by = DoseStatus.LATE, False, minutes_late(acted_at, event.grace_end)

    updated = _transition(
        db,
        event.id,
        {
            "status": status.value,
            "acted_by": acted_by,
            "acted_at": acted_at,
            "notes": notes,
            "is_on_time": on_time,
            "minutes_late": late_by,
            "updated_at": now,
        },
    )
    logger.info("Dose %s marked %s by %s", event.id, status.value, acted_by)
    return updated


def mark_skipped(
    db: Session,
    event: DoseEvent,
    acted_by: str,
    reason: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> DoseEvent:
    if not reason or not reason.strip():
        raise ValidationError("a skip reason is required", suggested_fix="explain why the dose was skipped")
    now = now or utcnow()
    updated = _transition(
        db,
        event.id,
        {
            "status": DoseStatus.SKIPPED.value,
            "acted_by": acted_by,
            "acted_at": now,
            "skip_reason": reason.strip(),
            "notes": notes,
            "updated_at": now,
        },
    )
    logger.info("Dose %s skipped by %s", event.id, acted_by)
    return updated


def mark_missed(db: Session, event_id: UUID, now: datetime) -> bool:
    """Flag one overdue event as missed inside the caller's transaction.

    Returns False when the event is no longer eligible; the caller commits.
    """
    result = db.execute(
        update(DoseEvent)
        .where(
            DoseEvent.id == event_id,
            DoseEvent.status == DoseStatus.SCHEDULED.value,
            DoseEvent.grace_end <= now,
            DoseEvent.is_archived.is_(False),
        )
        .values(status=DoseStatus.MISSED.value, is_on_time=False, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1
