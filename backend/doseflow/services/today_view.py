from __future__ import annotations

import math
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from doseflow.core.settings import get_settings
from doseflow.crud import dose_event as event_crud
from doseflow.crud import time_preferences as preferences_crud
from doseflow.db.types import utcnow
from doseflow.schemas.dose_event import DoseEventOut
from doseflow.services.dose_lifecycle import is_terminal
from doseflow.services.timezones import local_day_bounds, resolve_zone

FIXED_GROUPS = ("overdue", "now", "due_soon")


def build_today_buckets(
    db: Session,
    patient_id: UUID,
    target_date: date | None = None,
    now: datetime | None = None,
) -> dict[str, list[DoseEventOut]]:
    """Group a day's unarchived events by urgency, then by bucket.

    Keys: ``overdue``, ``now``, ``due_soon``, one key per bucket name, and
    ``completed`` for doses already in a terminal state.
    """
    settings = get_settings()
    now = now or utcnow()
    preferences = preferences_crud.require_preferences(db, patient_id)
    zone = resolve_zone(preferences.lifestyle.timezone, patient_id)
    target_date = target_date or now.astimezone(zone).date()
    day_start, day_end = local_day_bounds(target_date, zone)

    groups: dict[str, list[DoseEventOut]] = {name: [] for name in FIXED_GROUPS}
    for name, bucket in preferences.time_buckets.items():
        if bucket.is_active:
            groups[name] = []
    groups["completed"] = []

    for event in event_crud.list_events_for_day(db, patient_id, target_date, day_start, day_end):
        item = DoseEventOut.model_validate(event)
        if is_terminal(event.status):
            groups["completed"].append(item)
            continue
        minutes_until_due = math.floor((event.scheduled_at - now) / timedelta(minutes=1))
        item.minutes_until_due = minutes_until_due
        if minutes_until_due < 0:
            groups["overdue"].append(item)
        elif minutes_until_due <= settings.due_now_minutes:
            groups["now"].append(item)
        elif minutes_until_due <= settings.due_soon_minutes:
            groups["due_soon"].append(item)
        else:
            groups.setdefault(event.bucket_name or "unassigned", []).append(item)
    return groups
