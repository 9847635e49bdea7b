from __future__ import annotations

import argparse
import os
from pathlib import Path
import sys
import uuid

import httpx

ROOT = Path(__file__).resolve().parents[1]
sys.path.append(str(ROOT / "backend"))

from doseflow.crud import time_preferences as preferences_crud  # noqa: E402
from doseflow.db.session import SessionLocal  # noqa: E402
from doseflow.schemas.time_preferences import Lifestyle, TimePreferencesCreate  # noqa: E402

DEMO_MEDICATIONS = [
    {"medicationName": "Metformin", "dosage": "500 mg", "frequency": "BID"},
    {"medicationName": "Vitamin D3", "dosage": "2000 IU", "frequency": "daily"},
    {"medicationName": "Atorvastatin", "dosage": "20 mg", "frequency": "once daily", "customTimes": {"morning": "21:00"}},
    {"medicationName": "Ibuprofen", "dosage": "200 mg", "frequency": "PRN"},
]


def seed_preferences(patient_id: uuid.UUID, timezone: str, work_schedule: str) -> int:
    db = SessionLocal()
    try:
        payload = TimePreferencesCreate(
            lifestyle=Lifestyle(timezone=timezone, work_schedule=work_schedule),
        )
        row, report = preferences_crud.create_preferences(db, patient_id, payload, created_by="seed")
        for warning in report.warnings:
            print(f"  warning: {warning}")
        return row.version
    finally:
        db.close()


def create_schedules(api_url: str, patient_id: uuid.UUID, api_token: str | None = None) -> list[dict]:
    headers = {"X-User-Id": str(patient_id), "X-User-Role": "patient"}
    created: list[dict] = []
    with httpx.Client(timeout=30.0, headers=headers) as client:
        for medication in DEMO_MEDICATIONS:
            resp = client.post(
                f"{api_url.rstrip('/')}/medication-schedules",
                json={"patientId": str(patient_id), **medication},
            )
            resp.raise_for_status()
            created.append(resp.json())

        internal_headers = {"Authorization": f"Bearer {api_token}"} if api_token else {}
        resp = client.post(f"{api_url.rstrip('/')}/internal/generate-events", headers=internal_headers)
        resp.raise_for_status()
    return created


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo patient with medication schedules")
    parser.add_argument("--patient-id", default=None)
    parser.add_argument("--timezone", default="America/Chicago")
    parser.add_argument("--work-schedule", default="standard", choices=["standard", "night_shift"])
    parser.add_argument("--api-url", default="http://localhost:8080/api")
    parser.add_argument("--api-token", default=None)
    args = parser.parse_args()

    patient_id = uuid.UUID(args.patient_id) if args.patient_id else uuid.uuid4()
    version = seed_preferences(patient_id, args.timezone, args.work_schedule)
    print(f"Seeded time preferences for {patient_id} (version {version})")

    api_token = args.api_token or os.getenv("API_TOKEN")
    for schedule in create_schedules(args.api_url, patient_id, api_token=api_token):
        medication = schedule.get("medication") or {}
        print(
            f"- {medication.get('name')}: {schedule['frequency']} at {', '.join(schedule['times']) or 'as needed'}"
            f" ({schedule['eventsCreated']} events)"
        )


if __name__ == "__main__":
    main()
