"""Database setup and models."""

from doseflow.db.base import Base
from doseflow.db.models import (
    DailySummary,
    DoseEvent,
    GracePeriodConfig,
    Medication,
    MedicationSchedule,
    PatientTimePreferences,
    ProcessingRun,
)

__all__ = [
    "Base",
    "PatientTimePreferences",
    "GracePeriodConfig",
    "Medication",
    "MedicationSchedule",
    "DoseEvent",
    "DailySummary",
    "ProcessingRun",
]
