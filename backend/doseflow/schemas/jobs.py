from datetime import datetime
from typing import Any
from uuid import UUID

from doseflow.schemas.base import ApiModel


class ProcessingRunOut(ApiModel):
    id: UUID
    job_name: str
    status: str
    started_at: datetime
    finished_at: datetime | None = None
    patients_considered: int
    successes: int
    failures: int
    events_processed: int
    details: dict[str, Any] | None = None
