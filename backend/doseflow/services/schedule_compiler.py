from __future__ import annotations

import logging
from dataclasses import dataclass, field

from doseflow.core.errors import ValidationError
from doseflow.schemas.time_preferences import TimePreferences
from doseflow.services.frequency import Frequency, bucket_count, normalize_frequency
from doseflow.services.time_buckets import (
    DEFAULT_FREQUENCY_MAPPING,
    SAFE_DEFAULT_TIMES,
    SAFE_FALLBACK_TIME,
    bucket_contains,
    is_valid_hhmm,
    parse_hhmm,
)

logger = logging.getLogger(__name__)


@dataclass
class CompiledSchedule:
    times: list[str] = field(default_factory=list)
    bucket_names: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    preferences_version: int = 1


def _preferred_buckets(frequency: Frequency, preferences: TimePreferences) -> tuple[list[str], list[str]]:
    rule = preferences.frequency_mapping.get(frequency.value)
    if rule is not None:
        return list(rule.buckets), list(rule.fallback_buckets)
    default = DEFAULT_FREQUENCY_MAPPING[frequency.value]
    return list(default["buckets"]), list(default["fallback_buckets"])


def compile_schedule(
    frequency: str | Frequency,
    preferences: TimePreferences,
    overrides: dict[str, str] | None = None,
) -> CompiledSchedule:
    """Resolve a frequency into concrete local clock times.

    Each preferred bucket yields exactly one time: its own default when active,
    else the first active fallback, else a hard-coded safe default. Overrides
    keyed by bucket name replace the resolved time.
    """
    freq = normalize_frequency(frequency)
    result = CompiledSchedule(preferences_version=preferences.version)
    expected = bucket_count(freq)
    if expected == 0:
        return result

    overrides = overrides or {}
    for bucket_name, value in overrides.items():
        if not is_valid_hhmm(value):
            raise ValidationError(
                f"override for {bucket_name} must be HH:MM, got {value!r}",
                suggested_fix="use a 24-hour time such as 08:30",
            )

    preferred, fallbacks = _preferred_buckets(freq, preferences)
    if len(preferred) != expected:
        result.warnings.append(
            f"{freq.value} mapping lists {len(preferred)} bucket(s), expected {expected}; "
            "using system defaults"
        )
        default = DEFAULT_FREQUENCY_MAPPING[freq.value]
        preferred, fallbacks = list(default["buckets"]), list(default["fallback_buckets"])

    buckets = preferences.time_buckets
    used_fallbacks: set[str] = set()
    for name in preferred:
        bucket = buckets.get(name)
        resolved_name = name
        if bucket is not None and bucket.is_active:
            time = bucket.default_time
        else:
            fallback = next(
                (
                    f for f in fallbacks
                    if f in buckets and buckets[f].is_active and f not in used_fallbacks
                ),
                None,
            )
            if fallback is not None:
                used_fallbacks.add(fallback)
                resolved_name = fallback
                time = buckets[fallback].default_time
                result.warnings.append(f"{name} bucket inactive; using {fallback} at {time}")
            else:
                time = SAFE_DEFAULT_TIMES.get(name, SAFE_FALLBACK_TIME)
                result.warnings.append(
                    f"{name} bucket unavailable and no active fallback; using safe default {time}"
                )

        if name in overrides:
            time = overrides[name]
            target = buckets.get(resolved_name)
            if target is not None and not bucket_contains(target, parse_hhmm(time)):
                result.warnings.append(
                    f"override {time} for {name} is outside its range "
                    f"{target.range.earliest}-{target.range.latest}"
                )

        result.times.append(time)
        result.bucket_names.append(resolved_name)

    seen: set[str] = set()
    for time in result.times:
        if time in seen:
            result.warnings.append(f"duplicate dose time {time} in compiled schedule")
        seen.add(time)

    unknown = sorted(set(overrides) - set(preferred))
    if unknown:
        result.warnings.append("overrides ignored for unused buckets: " + ", ".join(unknown))

    if result.warnings:
        logger.info(
            "Compiled %s for patient %s with warnings: %s",
            freq.value,
            preferences.patient_id,
            result.warnings,
        )
    return result
