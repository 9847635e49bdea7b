"""Property tests for the schedule compiler over generated bucket sets."""

import uuid

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from doseflow.schemas.time_preferences import TimeBucket
from doseflow.services.frequency import Frequency, bucket_count
from doseflow.services.schedule_compiler import compile_schedule
from doseflow.services.time_buckets import bucket_contains, default_preferences, format_minutes, parse_hhmm

BUCKET_NAMES = ["morning", "noon", "evening", "bedtime"]
DAY_MINUTES = 24 * 60

PROPERTY_SETTINGS = settings(
    max_examples=150,
    suppress_health_check=[HealthCheck.too_slow],
    deadline=None,
)


@st.composite
def time_buckets(draw):
    earliest = draw(st.integers(min_value=0, max_value=DAY_MINUTES - 1))
    span = draw(st.integers(min_value=0, max_value=300))
    offset = draw(st.integers(min_value=0, max_value=span))
    return TimeBucket(
        default_time=format_minutes((earliest + offset) % DAY_MINUTES),
        range={
            "earliest": format_minutes(earliest),
            "latest": format_minutes((earliest + span) % DAY_MINUTES),
        },
        is_active=draw(st.booleans()),
        wraps_midnight=earliest + span >= DAY_MINUTES,
    )


bucket_sets = st.dictionaries(st.sampled_from(BUCKET_NAMES), time_buckets(), max_size=len(BUCKET_NAMES))


def _preferences(buckets):
    preferences = default_preferences(uuid.uuid4(), timezone="America/Chicago")
    return preferences.model_copy(update={"time_buckets": buckets})


class TestCompilerProperties:
    @PROPERTY_SETTINGS
    @given(buckets=bucket_sets, frequency=st.sampled_from(list(Frequency)))
    def test_one_time_per_expected_dose(self, buckets, frequency):
        compiled = compile_schedule(frequency, _preferences(buckets))

        assert len(compiled.times) == bucket_count(frequency)
        assert len(compiled.bucket_names) == len(compiled.times)
        for value in compiled.times:
            assert 0 <= parse_hhmm(value) < DAY_MINUTES

    @PROPERTY_SETTINGS
    @given(buckets=bucket_sets, frequency=st.sampled_from(list(Frequency)))
    def test_active_bucket_times_stay_in_range(self, buckets, frequency):
        compiled = compile_schedule(frequency, _preferences(buckets))

        for name, value in zip(compiled.bucket_names, compiled.times):
            bucket = buckets.get(name)
            if bucket is not None and bucket.is_active:
                assert bucket_contains(bucket, parse_hhmm(value))

    @PROPERTY_SETTINGS
    @given(buckets=bucket_sets, frequency=st.sampled_from(list(Frequency)))
    def test_substitutes_are_active_and_distinct(self, buckets, frequency):
        compiled = compile_schedule(frequency, _preferences(buckets))
        preferred = _preferences(buckets).frequency_mapping[frequency.value].buckets

        substituted = [name for wanted, name in zip(preferred, compiled.bucket_names) if name != wanted]
        assert len(substituted) == len(set(substituted))
        assert all(buckets[name].is_active for name in substituted)

    @PROPERTY_SETTINGS
    @given(buckets=st.fixed_dictionaries({name: time_buckets() for name in BUCKET_NAMES}))
    def test_fully_active_sets_need_no_fallback(self, buckets):
        active = {name: bucket.model_copy(update={"is_active": True}) for name, bucket in buckets.items()}

        compiled = compile_schedule(Frequency.FOUR_TIMES_DAILY, _preferences(active))

        assert compiled.bucket_names == BUCKET_NAMES
        assert all("duplicate" in warning for warning in compiled.warnings)
