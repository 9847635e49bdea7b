import uuid

import pytest

from doseflow.core.errors import UnsupportedFrequency, ValidationError
from doseflow.services.frequency import Frequency, bucket_count
from doseflow.services.schedule_compiler import compile_schedule
from doseflow.services.time_buckets import bucket_contains, default_preferences, parse_hhmm


@pytest.fixture()
def preferences():
    return default_preferences(uuid.uuid4(), "America/Chicago")


def _deactivate(preferences, *names):
    for name in names:
        preferences.time_buckets[name].is_active = False
    return preferences


def test_twice_daily_uses_morning_and_evening(preferences):
    compiled = compile_schedule("twice_daily", preferences)
    assert compiled.times == ["08:00", "18:00"]
    assert compiled.bucket_names == ["morning", "evening"]
    assert compiled.warnings == []


@pytest.mark.parametrize("frequency", list(Frequency))
def test_length_matches_bucket_count(preferences, frequency):
    compiled = compile_schedule(frequency, preferences)
    assert len(compiled.times) == bucket_count(frequency)
    assert len(compiled.bucket_names) == len(compiled.times)


@pytest.mark.parametrize("frequency", list(Frequency))
def test_every_time_sits_inside_its_bucket(preferences, frequency):
    compiled = compile_schedule(frequency, preferences)
    for time_value, name in zip(compiled.times, compiled.bucket_names):
        assert bucket_contains(preferences.time_buckets[name], parse_hhmm(time_value))


def test_as_needed_has_no_times(preferences):
    compiled = compile_schedule("PRN", preferences)
    assert compiled.times == []
    assert compiled.bucket_names == []


def test_inactive_bucket_uses_first_active_fallback(preferences):
    _deactivate(preferences, "morning")
    compiled = compile_schedule("daily", preferences)
    assert compiled.times == ["18:00"]
    assert compiled.bucket_names == ["evening"]
    assert any("inactive" in warning for warning in compiled.warnings)


def test_no_active_fallback_uses_safe_default(preferences):
    _deactivate(preferences, "morning", "noon", "evening", "bedtime")
    compiled = compile_schedule("daily", preferences)
    assert compiled.times == ["08:00"]
    assert any("safe default" in warning for warning in compiled.warnings)


def test_override_replaces_bucket_time(preferences):
    compiled = compile_schedule("twice_daily", preferences, {"morning": "07:30"})
    assert compiled.times == ["07:30", "18:00"]
    assert compiled.warnings == []


def test_override_outside_range_is_a_warning(preferences):
    compiled = compile_schedule("daily", preferences, {"morning": "11:30"})
    assert compiled.times == ["11:30"]
    assert any("outside its range" in warning for warning in compiled.warnings)


@pytest.mark.parametrize("bad", ["25:00", "7:3", "noon", ""])
def test_malformed_override_raises(preferences, bad):
    with pytest.raises(ValidationError):
        compile_schedule("daily", preferences, {"morning": bad})


def test_duplicate_times_are_kept_and_reported(preferences):
    compiled = compile_schedule("twice_daily", preferences, {"morning": "18:00"})
    assert compiled.times == ["18:00", "18:00"]
    assert any("duplicate" in warning for warning in compiled.warnings)


def test_unsupported_frequency_never_defaults_to_daily(preferences):
    with pytest.raises(UnsupportedFrequency):
        compile_schedule("every other tuesday", preferences)


def test_preferences_version_is_carried(preferences):
    preferences.version = 7
    assert compile_schedule("daily", preferences).preferences_version == 7
