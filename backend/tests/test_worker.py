from datetime import timedelta

from conftest import make_preferences, make_schedule, utc
from doseflow import worker
from doseflow.core.settings import get_settings
from doseflow.db.models import ProcessingRun

NOW = utc(2024, 3, 5, 12, 0)


def test_first_tick_runs_every_job(session_factory):
    ran = worker.Worker(get_settings(), session_factory).tick(NOW)
    assert ran == ["generate_events", "detect_missed", "daily_reset"]


def test_jobs_wait_for_their_interval(session_factory):
    w = worker.Worker(get_settings(), session_factory)
    w.tick(NOW)

    assert w.tick(NOW + timedelta(minutes=1)) == []
    assert w.tick(NOW + timedelta(minutes=16)) == ["detect_missed", "daily_reset"]
    assert w.tick(NOW + timedelta(minutes=61)) == ["generate_events", "detect_missed", "daily_reset"]


def test_failing_job_does_not_stop_the_others(session_factory, db, patient_id, monkeypatch):
    make_preferences(db, patient_id)
    make_schedule(db, patient_id)

    def explode(_db, _now):
        raise RuntimeError("boom")

    monkeypatch.setattr(worker, "_generate", explode)
    ran = worker.Worker(get_settings(), session_factory).tick(NOW)

    assert ran == ["generate_events", "detect_missed", "daily_reset"]
    jobs = {run.job_name for run in db.query(ProcessingRun).all()}
    assert jobs == {"detect_missed", "daily_reset"}
