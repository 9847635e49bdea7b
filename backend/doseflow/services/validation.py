"""Single validation pass for time preferences and grace period settings.

Both the API boundary and the background jobs consume the same
:class:`ValidationReport`, so a configuration is judged the same way
everywhere.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from doseflow.core.errors import UnsupportedFrequency, ValidationError
from doseflow.services.frequency import bucket_count, normalize_frequency
from doseflow.services.medication_class import MEDICATION_CLASSES
from doseflow.services.time_buckets import (
    MINUTES_PER_DAY,
    bucket_contains,
    format_minutes,
    is_valid_hhmm,
    parse_hhmm,
)

MAX_GRACE_MINUTES = 24 * 60
MAX_MULTIPLIER = 10.0


@dataclass
class ValidationReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    suggested_fixes: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ValidationError(
                "; ".join(self.errors),
                suggested_fix="; ".join(self.suggested_fixes) or None,
            )


def suggested_default(earliest: int, latest: int) -> int:
    """Midpoint of a (possibly wrapping) range, floored to the hour."""
    span = (latest - earliest) % MINUTES_PER_DAY
    midpoint = (earliest + span // 2) % MINUTES_PER_DAY
    floored = midpoint - midpoint % 60
    offset = (floored - earliest) % MINUTES_PER_DAY
    if offset > span:
        return earliest
    return floored


def validate_time_preferences(preferences) -> ValidationReport:
    report = ValidationReport()
    buckets = preferences.time_buckets

    wrapping: list[str] = []
    parsed: dict[str, tuple[int, int]] = {}
    for name, bucket in buckets.items():
        fields = {
            "default time": bucket.default_time,
            "earliest time": bucket.range.earliest,
            "latest time": bucket.range.latest,
        }
        bad = [label for label, value in fields.items() if not is_valid_hhmm(value)]
        if bad:
            for label in bad:
                report.errors.append(f"{name} bucket {label} {fields[label]!r} is not HH:MM")
            report.suggested_fixes.append(f"use 24-hour HH:MM values for the {name} bucket")
            continue

        earliest = parse_hhmm(bucket.range.earliest)
        latest = parse_hhmm(bucket.range.latest)
        default = parse_hhmm(bucket.default_time)

        if earliest == latest:
            report.errors.append(f"{name} bucket range is empty ({bucket.range.earliest})")
            report.suggested_fixes.append(f"give the {name} bucket a range of at least one minute")
            continue
        if earliest > latest and not bucket.wraps_midnight:
            report.errors.append(
                f"{name} bucket earliest {bucket.range.earliest} is after latest {bucket.range.latest}"
            )
            report.suggested_fixes.append(
                f"swap the {name} range bounds, or mark it as the late-night bucket (wrapsMidnight)"
            )
            continue
        if earliest > latest:
            wrapping.append(name)

        if not bucket_contains(bucket, default):
            suggestion = format_minutes(suggested_default(earliest, latest))
            report.errors.append(
                f"{name} bucket default time {bucket.default_time} is outside its allowed range "
                f"{bucket.range.earliest}-{bucket.range.latest}"
            )
            report.suggested_fixes.append(f"{name}: suggested default {suggestion}")
        if bucket.is_active:
            parsed[name] = (earliest, latest)

    if len(wrapping) > 1:
        report.errors.append(
            "only one late-night bucket may wrap midnight, found: " + ", ".join(sorted(wrapping))
        )
        report.suggested_fixes.append("keep a single midnight-crossing bucket")

    names = sorted(parsed)
    for i, first in enumerate(names):
        for second in names[i + 1:]:
            if _ranges_overlap(parsed[first], parsed[second]):
                report.warnings.append(f"time ranges overlap between {first} and {second}")

    for raw_frequency, rule in preferences.frequency_mapping.items():
        try:
            frequency = normalize_frequency(raw_frequency)
        except UnsupportedFrequency:
            report.errors.append(f"frequency mapping has unsupported key {raw_frequency!r}")
            continue
        missing = [b for b in [*rule.buckets, *rule.fallback_buckets] if b not in buckets]
        if missing:
            report.errors.append(
                f"{frequency.value} mapping references unknown buckets: {', '.join(missing)}"
            )
            report.suggested_fixes.append(
                f"map {frequency.value} to existing buckets: {', '.join(sorted(buckets))}"
            )
            continue
        expected = bucket_count(frequency)
        if len(rule.buckets) != expected:
            report.errors.append(
                f"{frequency.value} needs {expected} bucket(s), mapping lists {len(rule.buckets)}"
            )
        inactive = [b for b in rule.buckets if not buckets[b].is_active]
        if inactive and not any(buckets[b].is_active for b in rule.fallback_buckets):
            report.warnings.append(
                f"{frequency.value}: inactive buckets {', '.join(inactive)} have no active fallback; "
                "safe default times will be used"
            )

    lifestyle = preferences.lifestyle
    for label, value in (("wake time", lifestyle.wake_time), ("sleep time", lifestyle.sleep_time)):
        if value is not None and not is_valid_hhmm(value):
            report.errors.append(f"lifestyle {label} {value!r} is not HH:MM")
    if lifestyle.timezone:
        try:
            ZoneInfo(lifestyle.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            report.errors.append(f"unknown IANA timezone {lifestyle.timezone!r}")
            report.suggested_fixes.append("use an IANA name such as America/Chicago")
    else:
        report.warnings.append("no timezone configured; dose events cannot be generated")

    return report


def validate_grace_settings(grace) -> ValidationReport:
    report = ValidationReport()

    for name, minutes in grace.default_minutes.items():
        if not 0 <= minutes <= MAX_GRACE_MINUTES:
            report.errors.append(f"default grace for {name} must be 0-{MAX_GRACE_MINUTES} minutes")
    for cls, minutes in grace.medication_class_rules.items():
        if cls not in MEDICATION_CLASSES:
            report.errors.append(f"unknown medication class {cls!r}")
            report.suggested_fixes.append("use one of: " + ", ".join(MEDICATION_CLASSES))
        if not 0 <= minutes <= MAX_GRACE_MINUTES:
            report.errors.append(f"grace for class {cls} must be 0-{MAX_GRACE_MINUTES} minutes")
    for medication_id, override in grace.medication_overrides.items():
        if not 0 <= override.minutes <= MAX_GRACE_MINUTES:
            report.errors.append(
                f"override for medication {medication_id} must be 0-{MAX_GRACE_MINUTES} minutes"
            )

    for label, value in (
        ("weekend", grace.weekend_multiplier),
        ("holiday", grace.holiday_multiplier),
    ):
        if value < 1.0:
            report.errors.append(f"{label} multiplier {value} would shorten the grace period")
            report.suggested_fixes.append(f"set the {label} multiplier to 1.0 or higher")
        elif value > MAX_MULTIPLIER:
            report.errors.append(f"{label} multiplier {value} exceeds {MAX_MULTIPLIER}")

    return report


def _ranges_overlap(first: tuple[int, int], second: tuple[int, int]) -> bool:
    def segments(bounds: tuple[int, int]) -> list[tuple[int, int]]:
        start, end = bounds
        if start <= end:
            return [(start, end)]
        return [(start, MINUTES_PER_DAY - 1), (0, end)]

    return any(
        a_start < b_end and b_start < a_end
        for a_start, a_end in segments(first)
        for b_start, b_end in segments(second)
    )
