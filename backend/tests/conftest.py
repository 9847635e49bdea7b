from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["NOTIFY_MODE"] = "mock"
os.environ["ACCESS_MODE"] = "mock"
os.environ["LOG_FORMAT"] = "text"
os.environ.pop("API_TOKEN", None)

import uuid  # noqa: E402
from datetime import date, datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from doseflow.api.deps import get_notifier  # noqa: E402
from doseflow.crud import medication as medication_crud  # noqa: E402
from doseflow.crud import time_preferences as preferences_crud  # noqa: E402
from doseflow.db import Base, DoseEvent  # noqa: E402
from doseflow.db.session import get_db  # noqa: E402
from doseflow.main import app  # noqa: E402
from doseflow.schemas.time_preferences import (  # noqa: E402
    FrequencyRule,
    Lifestyle,
    TimeBucket,
    TimePreferencesCreate,
)
from doseflow.services.notifier import Notifier  # noqa: E402
from doseflow.services.schedule_compiler import compile_schedule  # noqa: E402

CHICAGO = "America/Chicago"


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def notifier():
    return Notifier(mode="mock")


@pytest.fixture()
def client(session_factory, notifier):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def patient_id():
    return uuid.uuid4()


@pytest.fixture()
def auth_headers(patient_id):
    return {"X-User-Id": str(patient_id), "X-User-Role": "patient"}


def make_preferences(db, patient_id, timezone_name=CHICAGO, work_schedule="standard", **sections):
    payload = TimePreferencesCreate(
        lifestyle=Lifestyle(timezone=timezone_name, work_schedule=work_schedule),
        **sections,
    )
    row, _ = preferences_crud.create_preferences(db, patient_id, payload)
    return row


def make_night_shift_preferences(db, patient_id, timezone_name=CHICAGO):
    return make_preferences(
        db,
        patient_id,
        timezone_name=timezone_name,
        work_schedule="night_shift",
        time_buckets={
            "evening": TimeBucket(
                default_time="00:00",
                range={"earliest": "23:00", "latest": "02:00"},
                label="Late night",
                wraps_midnight=True,
            ),
            "bedtime": TimeBucket(
                default_time="09:00",
                range={"earliest": "08:00", "latest": "11:00"},
                label="Sleep",
            ),
        },
        frequency_mapping={"daily": FrequencyRule(buckets=["evening"], fallback_buckets=["noon"])},
    )


def make_schedule(
    db,
    patient_id,
    name="Lisinopril",
    frequency="twice_daily",
    start_date=date(2024, 3, 1),
    end_date=None,
    custom_times=None,
    medication_class=None,
    is_prn=False,
):
    preferences = preferences_crud.require_preferences(db, patient_id)
    compiled = compile_schedule(frequency, preferences, custom_times)
    medication = medication_crud.create_medication(
        db, patient_id, name, medication_class=medication_class, is_prn=is_prn
    )
    schedule = medication_crud.create_schedule(
        db,
        medication,
        frequency,
        compiled.times,
        compiled.bucket_names,
        compiled.preferences_version,
        start_date=start_date,
        end_date=end_date,
        custom_times=custom_times,
    )
    db.commit()
    db.refresh(schedule)
    return schedule


def make_event(
    db,
    schedule,
    scheduled_at,
    grace_minutes=30,
    local_date=None,
    status="scheduled",
    bucket_name="morning",
    **fields,
):
    event = DoseEvent(
        patient_id=schedule.patient_id,
        medication_id=schedule.medication_id,
        schedule_id=schedule.id,
        scheduled_at=scheduled_at,
        local_date=local_date,
        bucket_name=bucket_name,
        schedule_version=schedule.preferences_version,
        status=status,
        grace_minutes=grace_minutes,
        grace_end=scheduled_at + timedelta(minutes=grace_minutes),
        grace_rules=[f"default_{bucket_name}"],
        grace_config_version=0,
        **fields,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event
