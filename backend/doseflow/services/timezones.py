from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from doseflow.core.errors import MissingTimezoneError


def resolve_zone(name: str | None, patient_id=None) -> ZoneInfo:
    """Return the IANA zone for a patient. UTC is never assumed."""
    if not name:
        raise MissingTimezoneError(
            f"patient {patient_id} has no timezone configured",
            suggested_fix="set lifestyle.timezone to an IANA name such as America/Chicago",
        )
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise MissingTimezoneError(
            f"patient {patient_id} has an unknown timezone {name!r}",
            suggested_fix="use an IANA name such as America/Chicago",
        ) from exc


def localize(day: date, minutes: int, zone: ZoneInfo) -> datetime:
    """UTC instant for a local wall-clock time on ``day``.

    Nonexistent times (spring-forward gap) resolve forward through zoneinfo's
    fold handling.
    """
    wall = datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=zone)
    return wall.astimezone(timezone.utc)


def local_day_bounds(day: date, zone: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC ``[start, end)`` of a local calendar day, DST-correct."""
    start = datetime.combine(day, time.min, tzinfo=zone).astimezone(timezone.utc)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone).astimezone(timezone.utc)
    return start, end
