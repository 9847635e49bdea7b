"""Grace period resolution.

Rules apply in a fixed order: bucket default, medication class (may only
shrink), per-medication override (sets), weekend multiplier, holiday
multiplier. PRN medications never get a grace window.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from doseflow.schemas.grace_period import GracePeriodSettings
from doseflow.services.holidays import is_holiday

DEFAULT_GRACE_MINUTES: dict[str, int] = {
    "morning": 30,
    "noon": 45,
    "evening": 30,
    "bedtime": 60,
}
FALLBACK_GRACE_MINUTES = 30

DEFAULT_CLASS_RULES: dict[str, int] = {
    "critical": 15,
    "standard": 30,
    "vitamin": 120,
    "prn": 0,
}


@dataclass
class GraceResolution:
    grace_minutes: int
    grace_end: datetime
    applied_rules: list[str] = field(default_factory=list)


def default_grace_settings() -> GracePeriodSettings:
    return GracePeriodSettings(
        default_minutes=dict(DEFAULT_GRACE_MINUTES),
        medication_class_rules=dict(DEFAULT_CLASS_RULES),
        medication_overrides={},
        weekend_multiplier=1.5,
        holiday_multiplier=2.0,
        use_us_holidays=True,
        holidays=[],
        version=0,
    )


def resolve_grace_period(
    scheduled_at: datetime,
    zone: ZoneInfo,
    bucket_name: str | None,
    medication_id,
    medication_class: str | None,
    is_prn: bool,
    settings: GracePeriodSettings | None = None,
    local_date: date | None = None,
) -> GraceResolution:
    """Return the grace window for one dose.

    ``local_date`` is the day the dose belongs to; it defaults to the local
    calendar date of ``scheduled_at`` and drives the weekend/holiday checks.
    """
    settings = settings or default_grace_settings()

    if is_prn or medication_class == "prn":
        return GraceResolution(0, scheduled_at, ["prn_no_grace"])

    rules: list[str] = []
    if bucket_name and bucket_name in settings.default_minutes:
        minutes: float = settings.default_minutes[bucket_name]
        rules.append(f"default_{bucket_name}")
    else:
        minutes = FALLBACK_GRACE_MINUTES
        rules.append("default_fallback")

    if medication_class and medication_class in settings.medication_class_rules:
        class_minutes = settings.medication_class_rules[medication_class]
        if class_minutes < minutes:
            minutes = class_minutes
            rules.append(f"class_{medication_class}")

    override = settings.medication_overrides.get(str(medication_id)) if medication_id else None
    if override is not None:
        minutes = override.minutes
        rules.append("medication_override")

    day = local_date or scheduled_at.astimezone(zone).date()
    if day.weekday() >= 5 and settings.weekend_multiplier > 1.0:
        minutes *= settings.weekend_multiplier
        rules.append("weekend_multiplier")
    if settings.holiday_multiplier > 1.0 and is_holiday(
        day, settings.use_us_holidays, settings.holidays
    ):
        minutes *= settings.holiday_multiplier
        rules.append("holiday_multiplier")

    grace_minutes = int(math.ceil(minutes))
    return GraceResolution(
        grace_minutes=grace_minutes,
        grace_end=scheduled_at + timedelta(minutes=grace_minutes),
        applied_rules=rules,
    )
