"""Time bucket defaults and clock-time helpers.

Bucket ranges are inclusive on both ends. A bucket flagged ``wraps_midnight``
reads ``earliest > latest`` as two portions: ``[earliest, 24:00)`` on the
schedule day and ``[00:00, latest]`` on the following calendar day.
"""

from __future__ import annotations

import logging
import re
from copy import deepcopy
from typing import Any
from uuid import UUID

from doseflow.core.errors import ValidationError
from doseflow.schemas.time_preferences import (
    FrequencyRule,
    Lifestyle,
    TimeBucket,
    TimePreferences,
)

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

_HHMM_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")

DEFAULT_TIME_BUCKETS: dict[str, dict[str, Any]] = {
    "morning": {
        "default_time": "08:00",
        "range": {"earliest": "06:00", "latest": "10:00"},
        "label": "Morning",
        "is_active": True,
        "wraps_midnight": False,
    },
    "noon": {
        "default_time": "12:00",
        "range": {"earliest": "11:00", "latest": "14:00"},
        "label": "Noon",
        "is_active": True,
        "wraps_midnight": False,
    },
    "evening": {
        "default_time": "18:00",
        "range": {"earliest": "17:00", "latest": "20:00"},
        "label": "Evening",
        "is_active": True,
        "wraps_midnight": False,
    },
    "bedtime": {
        "default_time": "22:00",
        "range": {"earliest": "21:00", "latest": "23:30"},
        "label": "Bedtime",
        "is_active": True,
        "wraps_midnight": False,
    },
}

DEFAULT_FREQUENCY_MAPPING: dict[str, dict[str, list[str]]] = {
    "daily": {"buckets": ["morning"], "fallback_buckets": ["evening", "noon", "bedtime"]},
    "twice_daily": {"buckets": ["morning", "evening"], "fallback_buckets": ["noon", "bedtime"]},
    "three_times_daily": {"buckets": ["morning", "noon", "evening"], "fallback_buckets": ["bedtime"]},
    "four_times_daily": {"buckets": ["morning", "noon", "evening", "bedtime"], "fallback_buckets": []},
    "weekly": {"buckets": ["morning"], "fallback_buckets": ["evening", "noon", "bedtime"]},
    "monthly": {"buckets": ["morning"], "fallback_buckets": ["evening", "noon", "bedtime"]},
    "as_needed": {"buckets": [], "fallback_buckets": []},
}

DEFAULT_LIFESTYLE: dict[str, Any] = {
    "wake_time": "07:00",
    "sleep_time": "23:00",
    "timezone": None,
    "work_schedule": "standard",
}

# Used when neither a bucket nor any of its fallbacks is active.
SAFE_DEFAULT_TIMES: dict[str, str] = {
    "morning": "08:00",
    "noon": "12:00",
    "evening": "18:00",
    "bedtime": "22:00",
    "night": "00:00",
}
SAFE_FALLBACK_TIME = "08:00"

# Canonical late-night shape for night-shift patients.
NIGHT_SHIFT_RANGE = {"earliest": "23:00", "latest": "02:00"}
NIGHT_SHIFT_DEFAULT = "00:00"


def is_valid_hhmm(value: Any) -> bool:
    return isinstance(value, str) and bool(_HHMM_RE.match(value))


def parse_hhmm(value: str, field: str = "time") -> int:
    """Return minutes since midnight for an ``HH:MM`` string."""
    if not is_valid_hhmm(value):
        raise ValidationError(
            f"{field} must be a 24-hour HH:MM time, got {value!r}",
            suggested_fix="use a value such as 08:00 or 21:30",
        )
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_minutes(minutes: int) -> str:
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def bucket_wraps(bucket: TimeBucket) -> bool:
    earliest = parse_hhmm(bucket.range.earliest)
    latest = parse_hhmm(bucket.range.latest)
    return bucket.wraps_midnight and earliest > latest


def bucket_contains(bucket: TimeBucket, minutes: int) -> bool:
    earliest = parse_hhmm(bucket.range.earliest)
    latest = parse_hhmm(bucket.range.latest)
    if bucket_wraps(bucket):
        return minutes >= earliest or minutes <= latest
    return earliest <= minutes <= latest


def is_after_midnight_portion(bucket: TimeBucket | None, minutes: int) -> bool:
    """True when ``minutes`` falls in the next-calendar-day half of a wrapping bucket."""
    if bucket is None or not bucket_wraps(bucket):
        return False
    return minutes <= parse_hhmm(bucket.range.latest)


def bucket_for_time(buckets: dict[str, TimeBucket], value: str) -> str | None:
    minutes = parse_hhmm(value)
    for name, bucket in buckets.items():
        if bucket.is_active and bucket_contains(bucket, minutes):
            return name
    return None


def day_rollover_minutes(buckets: dict[str, TimeBucket]) -> int:
    """Minutes past local midnight before the previous day can be closed.

    Non-zero only when an active bucket wraps midnight.
    """
    rollover = 0
    for bucket in buckets.values():
        if bucket.is_active and bucket_wraps(bucket):
            rollover = max(rollover, parse_hhmm(bucket.range.latest))
    return rollover


def default_preferences(patient_id: UUID, timezone: str | None = None) -> TimePreferences:
    lifestyle = dict(DEFAULT_LIFESTYLE)
    lifestyle["timezone"] = timezone
    return TimePreferences(
        patient_id=patient_id,
        time_buckets={k: TimeBucket.model_validate(v) for k, v in DEFAULT_TIME_BUCKETS.items()},
        frequency_mapping={
            k: FrequencyRule.model_validate(v) for k, v in DEFAULT_FREQUENCY_MAPPING.items()
        },
        lifestyle=Lifestyle.model_validate(lifestyle),
        version=1,
    )


def normalize_legacy_buckets(
    raw_buckets: dict[str, Any],
    work_schedule: str | None,
) -> tuple[dict[str, Any], list[str]]:
    """Rewrite historical night-shift bucket shapes into the canonical one.

    Two shapes exist in stored data: an evening/night bucket defaulting to
    02:00 inside 01:00-04:00, and a 23:00-02:00 range saved without the
    ``wraps_midnight`` flag. Both become 23:00-02:00 / 00:00.
    """
    buckets = deepcopy(raw_buckets or {})
    notes: list[str] = []
    for name, bucket in buckets.items():
        if not isinstance(bucket, dict):
            continue
        # Older rows stored the range under "time_range" or flat start/end keys.
        if "range" not in bucket:
            time_range = bucket.pop("time_range", None) or bucket.pop("timeRange", None)
            if time_range is None and "start" in bucket and "end" in bucket:
                time_range = {"earliest": bucket.pop("start"), "latest": bucket.pop("end")}
            if isinstance(time_range, dict):
                bucket["range"] = {
                    "earliest": time_range.get("earliest") or time_range.get("start"),
                    "latest": time_range.get("latest") or time_range.get("end"),
                }
        if "default_time" not in bucket and "defaultTime" in bucket:
            bucket["default_time"] = bucket.pop("defaultTime")

        time_range = bucket.get("range") or {}
        default_time = bucket.get("default_time")
        is_night_slot = work_schedule == "night_shift" and name in {"evening", "night", "late_night"}

        if is_night_slot and default_time == "02:00" and time_range.get("earliest") == "01:00":
            bucket["range"] = dict(NIGHT_SHIFT_RANGE)
            bucket["default_time"] = NIGHT_SHIFT_DEFAULT
            bucket["wraps_midnight"] = True
            notes.append(f"{name}: legacy 02:00 night-shift default normalized to 23:00-02:00 / 00:00")
        elif is_night_slot and default_time == "02:00":
            bucket["default_time"] = NIGHT_SHIFT_DEFAULT
            notes.append(f"{name}: legacy 02:00 night-shift default normalized to 00:00")

        earliest = time_range.get("earliest")
        latest = time_range.get("latest")
        if (
            is_valid_hhmm(earliest)
            and is_valid_hhmm(latest)
            and parse_hhmm(earliest) > parse_hhmm(latest)
            and not bucket.get("wraps_midnight")
            and is_night_slot
        ):
            bucket["wraps_midnight"] = True
            notes.append(f"{name}: midnight-crossing range flagged as late-night bucket")

    for note in notes:
        logger.info("Normalized time preferences on read: %s", note)
    return buckets, notes
