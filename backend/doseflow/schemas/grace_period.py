from datetime import date, datetime
from uuid import UUID

from pydantic import Field

from doseflow.schemas.base import ApiModel


class MedicationOverride(ApiModel):
    minutes: int
    reason: str | None = None


class GracePeriodSettings(ApiModel):
    default_minutes: dict[str, int]
    medication_class_rules: dict[str, int]
    medication_overrides: dict[str, MedicationOverride] = Field(default_factory=dict)
    weekend_multiplier: float = 1.5
    holiday_multiplier: float = 2.0
    use_us_holidays: bool = True
    holidays: list[date] = Field(default_factory=list)
    # 0 means the system defaults are in effect.
    version: int = 0


class GracePeriodUpdate(ApiModel):
    default_minutes: dict[str, int] | None = None
    medication_class_rules: dict[str, int] | None = None
    medication_overrides: dict[str, MedicationOverride] | None = None
    weekend_multiplier: float | None = None
    holiday_multiplier: float | None = None
    use_us_holidays: bool | None = None
    holidays: list[date] | None = None


class GracePeriodOut(GracePeriodSettings):
    patient_id: UUID
    updated_at: datetime | None = None
    warnings: list[str] = Field(default_factory=list)
