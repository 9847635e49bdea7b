import uuid
from datetime import date

import pytest

from conftest import make_night_shift_preferences, make_preferences, make_schedule, utc
from doseflow.core.errors import MissingTimezoneError
from doseflow.crud import time_preferences as preferences_crud
from doseflow.db import DoseEvent, ProcessingRun
from doseflow.schemas.time_preferences import TimeBucket, TimePreferencesUpdate
from doseflow.services.event_generator import EventGenerator

# 06:00 in Chicago on Tuesday 2024-03-05.
NOW = utc(2024, 3, 5, 12, 0)


def events_for(db, schedule):
    return (
        db.query(DoseEvent)
        .filter(DoseEvent.schedule_id == schedule.id)
        .order_by(DoseEvent.scheduled_at)
        .all()
    )


class TestGenerateForSchedule:
    def test_materialises_local_times_in_utc(self, db, patient_id):
        make_preferences(db, patient_id)
        schedule = make_schedule(db, patient_id)
        created = EventGenerator(db, horizon_days=3).generate_for_schedule(schedule, NOW)

        events = events_for(db, schedule)
        assert created == 6
        assert [e.scheduled_at for e in events[:2]] == [utc(2024, 3, 5, 14, 0), utc(2024, 3, 6, 0, 0)]
        assert events[0].local_date == date(2024, 3, 5)
        assert events[0].bucket_name == "morning"
        assert events[0].status == "scheduled"
        assert events[0].grace_end == utc(2024, 3, 5, 14, 15)  # lisinopril is critical
        assert events[0].grace_rules == ["default_morning", "class_critical"]

    def test_is_idempotent(self, db, patient_id):
        make_preferences(db, patient_id)
        schedule = make_schedule(db, patient_id)
        generator = EventGenerator(db, horizon_days=5)
        first = generator.generate_for_schedule(schedule, NOW)
        second = generator.generate_for_schedule(schedule, NOW)
        assert first == 10
        assert second == 0
        assert len(events_for(db, schedule)) == 10

    def test_skips_slots_already_past(self, db, patient_id):
        make_preferences(db, patient_id)
        schedule = make_schedule(db, patient_id)
        # 09:00 local: today's 08:00 dose is gone, 18:00 remains.
        created = EventGenerator(db, horizon_days=1).generate_for_schedule(schedule, utc(2024, 3, 5, 15, 0))
        assert created == 1
        assert events_for(db, schedule)[0].bucket_name == "evening"

    def test_follows_dst_change(self, db, patient_id):
        make_preferences(db, patient_id)
        schedule = make_schedule(db, patient_id, name="Amoxicillin", frequency="daily")
        EventGenerator(db, horizon_days=7).generate_for_schedule(schedule, NOW)
        by_date = {e.local_date: e.scheduled_at for e in events_for(db, schedule)}
        assert by_date[date(2024, 3, 9)] == utc(2024, 3, 9, 14, 0)
        assert by_date[date(2024, 3, 11)] == utc(2024, 3, 11, 13, 0)

    def test_respects_start_and_end_dates(self, db, patient_id):
        make_preferences(db, patient_id)
        schedule = make_schedule(
            db, patient_id, frequency="daily", start_date=date(2024, 3, 6), end_date=date(2024, 3, 8)
        )
        EventGenerator(db, horizon_days=10).generate_for_schedule(schedule, NOW)
        assert [e.local_date for e in events_for(db, schedule)] == [
            date(2024, 3, 6),
            date(2024, 3, 7),
            date(2024, 3, 8),
        ]

    def test_weekly_runs_on_start_weekday(self, db, patient_id):
        make_preferences(db, patient_id)
        schedule = make_schedule(db, patient_id, frequency="weekly", start_date=date(2024, 3, 6))
        EventGenerator(db, horizon_days=14).generate_for_schedule(schedule, NOW)
        assert [e.local_date for e in events_for(db, schedule)] == [date(2024, 3, 6), date(2024, 3, 13)]

    def test_monthly_clamps_to_month_end(self, db, patient_id):
        make_preferences(db, patient_id)
        schedule = make_schedule(db, patient_id, frequency="monthly", start_date=date(2024, 1, 31))
        EventGenerator(db, horizon_days=15).generate_for_schedule(schedule, utc(2024, 2, 20, 12, 0))
        assert [e.local_date for e in events_for(db, schedule)] == [date(2024, 2, 29)]

    def test_as_needed_creates_nothing(self, db, patient_id):
        make_preferences(db, patient_id)
        schedule = make_schedule(db, patient_id, name="Ibuprofen", frequency="PRN", is_prn=True)
        assert EventGenerator(db, horizon_days=5).generate_for_schedule(schedule, NOW) == 0

    def test_prn_medication_with_regular_frequency_creates_nothing(self, db, patient_id):
        make_preferences(db, patient_id)
        schedule = make_schedule(db, patient_id, name="Ibuprofen", frequency="daily", is_prn=True)
        assert schedule.times == ["08:00"]
        assert EventGenerator(db, horizon_days=5).generate_for_schedule(schedule, NOW) == 0
        assert events_for(db, schedule) == []

    def test_paused_schedule_creates_nothing(self, db, patient_id):
        make_preferences(db, patient_id)
        schedule = make_schedule(db, patient_id)
        schedule.is_paused = True
        db.commit()
        assert EventGenerator(db, horizon_days=5).generate_for_schedule(schedule, NOW) == 0

    def test_missing_timezone_raises(self, db, patient_id):
        make_preferences(db, patient_id, timezone_name=None)
        schedule = make_schedule(db, patient_id)
        with pytest.raises(MissingTimezoneError):
            EventGenerator(db, horizon_days=2).generate_for_schedule(schedule, NOW)
        assert events_for(db, schedule) == []

    def test_night_shift_dose_keeps_schedule_day(self, db, patient_id):
        make_night_shift_preferences(db, patient_id)
        schedule = make_schedule(db, patient_id, name="Amoxicillin", frequency="daily")
        assert schedule.times == ["00:00"]
        EventGenerator(db, horizon_days=2).generate_for_schedule(schedule, NOW)

        first = events_for(db, schedule)[0]
        assert first.scheduled_at == utc(2024, 3, 6, 6, 0)  # 00:00 CST on the 6th
        assert first.local_date == date(2024, 3, 5)


class TestRemovalAndRegeneration:
    def test_remove_future_keeps_acted_events(self, db, patient_id):
        make_preferences(db, patient_id)
        schedule = make_schedule(db, patient_id)
        generator = EventGenerator(db, horizon_days=2)
        generator.generate_for_schedule(schedule, NOW)
        taken = events_for(db, schedule)[1]
        taken.status = "taken"
        db.commit()

        removed = generator.remove_future_scheduled(schedule, NOW)
        remaining = events_for(db, schedule)
        assert removed == 3
        assert [e.id for e in remaining] == [taken.id]

    def test_preference_change_regenerates_future_events(self, db, patient_id):
        make_preferences(db, patient_id)
        schedule = make_schedule(db, patient_id)
        generator = EventGenerator(db, horizon_days=2)
        generator.generate_for_schedule(schedule, NOW)
        taken = events_for(db, schedule)[0]
        taken.status = "taken"
        db.commit()

        preferences_crud.update_preferences(
            db,
            patient_id,
            TimePreferencesUpdate(
                time_buckets={
                    "morning": TimeBucket(default_time="09:00", range={"earliest": "06:00", "latest": "10:00"})
                }
            ),
        )
        result = generator.regenerate_patient(patient_id, NOW)
        db.refresh(schedule)

        assert schedule.times == ["09:00", "18:00"]
        assert schedule.preferences_version == 2
        assert result.removed == 3
        events = events_for(db, schedule)
        assert taken.id in {e.id for e in events}
        new_morning = [e for e in events if e.status == "scheduled" and e.bucket_name == "morning"]
        assert [e.scheduled_at for e in new_morning] == [utc(2024, 3, 5, 15, 0), utc(2024, 3, 6, 15, 0)]
        assert all(e.schedule_version == 2 for e in events if e.status == "scheduled")

    def test_stale_version_recompiles_on_generation(self, db, patient_id):
        make_preferences(db, patient_id)
        schedule = make_schedule(db, patient_id, frequency="daily")
        preferences_crud.update_preferences(
            db,
            patient_id,
            TimePreferencesUpdate(
                time_buckets={
                    "morning": TimeBucket(default_time="07:00", range={"earliest": "06:00", "latest": "10:00"})
                }
            ),
        )
        EventGenerator(db, horizon_days=1).generate_for_schedule(schedule, NOW)
        db.refresh(schedule)
        assert schedule.times == ["07:00"]
        assert events_for(db, schedule)[0].scheduled_at == utc(2024, 3, 5, 13, 0)


class TestGenerateAll:
    def test_failing_patient_does_not_block_others(self, db):
        good, bad = uuid.uuid4(), uuid.uuid4()
        make_preferences(db, good)
        make_preferences(db, bad, timezone_name=None)
        make_schedule(db, good, frequency="daily")
        make_schedule(db, bad, frequency="daily")

        run = EventGenerator(db, horizon_days=2).generate_all(NOW)

        assert run.patients_considered == 2
        assert run.successes == 1
        assert run.failures == 1
        assert run.events_processed == 2
        assert run.details["errors"][0]["error"] == "missing_timezone"
        assert db.query(ProcessingRun).count() == 1
