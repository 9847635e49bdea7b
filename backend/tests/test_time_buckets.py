import uuid

import pytest

from doseflow.core.errors import ValidationError
from doseflow.schemas.grace_period import MedicationOverride
from doseflow.schemas.time_preferences import FrequencyRule, TimeBucket
from doseflow.services.grace_period import default_grace_settings
from doseflow.services.time_buckets import (
    bucket_contains,
    bucket_for_time,
    day_rollover_minutes,
    default_preferences,
    is_after_midnight_portion,
    normalize_legacy_buckets,
    parse_hhmm,
)
from doseflow.services.validation import validate_grace_settings, validate_time_preferences


@pytest.fixture()
def preferences():
    return default_preferences(uuid.uuid4(), "America/Chicago")


def late_night_bucket(default="00:00", earliest="23:00", latest="02:00", wraps=True):
    return TimeBucket(
        default_time=default,
        range={"earliest": earliest, "latest": latest},
        wraps_midnight=wraps,
    )


class TestClockHelpers:
    def test_parse_hhmm(self):
        assert parse_hhmm("00:00") == 0
        assert parse_hhmm("23:59") == 23 * 60 + 59

    @pytest.mark.parametrize("bad", ["24:00", "12:60", "1200", None, "ab:cd"])
    def test_parse_rejects_malformed(self, bad):
        with pytest.raises(ValidationError):
            parse_hhmm(bad)

    def test_ranges_are_inclusive(self, preferences):
        morning = preferences.time_buckets["morning"]
        assert bucket_contains(morning, parse_hhmm("06:00"))
        assert bucket_contains(morning, parse_hhmm("10:00"))
        assert not bucket_contains(morning, parse_hhmm("10:01"))

    def test_wrapping_bucket_reads_as_two_portions(self):
        bucket = late_night_bucket()
        assert bucket_contains(bucket, parse_hhmm("23:30"))
        assert bucket_contains(bucket, parse_hhmm("01:15"))
        assert not bucket_contains(bucket, parse_hhmm("03:00"))
        assert is_after_midnight_portion(bucket, parse_hhmm("00:00"))
        assert not is_after_midnight_portion(bucket, parse_hhmm("23:30"))

    def test_bucket_for_time(self, preferences):
        assert bucket_for_time(preferences.time_buckets, "12:30") == "noon"
        assert bucket_for_time(preferences.time_buckets, "03:00") is None

    def test_rollover_only_with_wrapping_bucket(self, preferences):
        assert day_rollover_minutes(preferences.time_buckets) == 0
        preferences.time_buckets["evening"] = late_night_bucket()
        assert day_rollover_minutes(preferences.time_buckets) == 120


class TestLegacyNormalisation:
    def test_night_shift_two_am_default_becomes_canonical(self):
        raw = {
            "evening": {
                "default_time": "02:00",
                "range": {"earliest": "01:00", "latest": "04:00"},
                "label": "Evening",
            }
        }
        buckets, notes = normalize_legacy_buckets(raw, "night_shift")
        assert buckets["evening"]["range"] == {"earliest": "23:00", "latest": "02:00"}
        assert buckets["evening"]["default_time"] == "00:00"
        assert buckets["evening"]["wraps_midnight"] is True
        assert len(notes) == 1

    def test_unflagged_wrapping_range_gets_flag(self):
        raw = {"late_night": {"defaultTime": "00:00", "timeRange": {"start": "23:00", "end": "02:00"}}}
        buckets, _ = normalize_legacy_buckets(raw, "night_shift")
        assert buckets["late_night"]["default_time"] == "00:00"
        assert buckets["late_night"]["range"] == {"earliest": "23:00", "latest": "02:00"}
        assert buckets["late_night"]["wraps_midnight"] is True

    def test_standard_schedule_is_untouched(self):
        raw = {"evening": {"default_time": "02:00", "range": {"earliest": "01:00", "latest": "04:00"}}}
        buckets, notes = normalize_legacy_buckets(raw, "standard")
        assert buckets == raw
        assert notes == []

    def test_input_is_not_mutated(self):
        raw = {"evening": {"default_time": "02:00", "range": {"earliest": "01:00", "latest": "04:00"}}}
        normalize_legacy_buckets(raw, "night_shift")
        assert raw["evening"]["default_time"] == "02:00"


class TestValidateTimePreferences:
    def test_defaults_are_valid(self, preferences):
        report = validate_time_preferences(preferences)
        assert report.is_valid
        assert report.errors == []

    def test_missing_timezone_is_only_a_warning(self):
        report = validate_time_preferences(default_preferences(uuid.uuid4()))
        assert report.is_valid
        assert any("timezone" in warning for warning in report.warnings)

    def test_unknown_timezone_is_an_error(self, preferences):
        preferences.lifestyle.timezone = "Mars/Olympus"
        report = validate_time_preferences(preferences)
        assert not report.is_valid

    def test_default_outside_range_suggests_fix(self, preferences):
        preferences.time_buckets["evening"] = late_night_bucket(default="02:30")
        report = validate_time_preferences(preferences)
        assert any("outside its allowed range" in error for error in report.errors)
        assert "evening: suggested default 00:00" in report.suggested_fixes

    def test_reversed_range_needs_wrap_flag(self, preferences):
        preferences.time_buckets["evening"] = late_night_bucket(wraps=False)
        report = validate_time_preferences(preferences)
        assert not report.is_valid
        assert any("wrapsMidnight" in fix for fix in report.suggested_fixes)

    def test_only_one_bucket_may_wrap(self, preferences):
        preferences.time_buckets["evening"] = late_night_bucket()
        preferences.time_buckets["bedtime"] = late_night_bucket(default="23:30", earliest="22:00", latest="01:00")
        report = validate_time_preferences(preferences)
        assert any("only one late-night bucket" in error for error in report.errors)

    def test_overlapping_ranges_warn(self, preferences):
        preferences.time_buckets["noon"].range.earliest = "09:00"
        report = validate_time_preferences(preferences)
        assert report.is_valid
        assert "time ranges overlap between morning and noon" in report.warnings

    def test_mapping_to_unknown_bucket_is_an_error(self, preferences):
        preferences.frequency_mapping["daily"] = FrequencyRule(buckets=["brunch"])
        report = validate_time_preferences(preferences)
        assert any("unknown buckets: brunch" in error for error in report.errors)

    def test_mapping_with_wrong_bucket_count_is_an_error(self, preferences):
        preferences.frequency_mapping["twice_daily"] = FrequencyRule(buckets=["morning"])
        report = validate_time_preferences(preferences)
        assert any("needs 2 bucket(s)" in error for error in report.errors)

    def test_raise_for_errors(self, preferences):
        preferences.time_buckets["morning"].default_time = "8am"
        with pytest.raises(ValidationError) as excinfo:
            validate_time_preferences(preferences).raise_for_errors()
        assert "not HH:MM" in excinfo.value.message


class TestValidateGraceSettings:
    def test_defaults_are_valid(self):
        assert validate_grace_settings(default_grace_settings()).is_valid

    def test_multiplier_below_one_is_rejected(self):
        settings = default_grace_settings()
        settings.weekend_multiplier = 0.8
        report = validate_grace_settings(settings)
        assert not report.is_valid
        assert "set the weekend multiplier to 1.0 or higher" in report.suggested_fixes

    def test_unknown_class_and_bad_minutes(self):
        settings = default_grace_settings()
        settings.medication_class_rules["antibiotic"] = 20
        settings.medication_overrides["abc"] = MedicationOverride(minutes=5000)
        report = validate_grace_settings(settings)
        assert len(report.errors) == 2
        assert "use one of: critical, standard, vitamin, prn" in report.suggested_fixes
