from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal
from uuid import UUID

import httpx

from doseflow.core.settings import get_settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationResult:
    delivered: bool
    status: str


class Notifier:
    """Fire-and-forget delivery of dose notifications to the messaging service."""

    def __init__(
        self,
        webhook_url: str | None = None,
        api_key: str | None = None,
        mode: Literal["mock", "live"] | None = None,
    ) -> None:
        settings = get_settings()
        self.mode = mode or settings.notify_mode
        self.webhook_url = webhook_url or settings.notify_webhook_url
        self.api_key = api_key or settings.notify_api_key
        self.sent: list[dict[str, Any]] = []

    def notify(self, patient_id: UUID, event_summary: dict[str, Any]) -> NotificationResult:
        payload = {"patient_id": str(patient_id), "event": event_summary}
        if self.mode == "mock" or not self.webhook_url:
            self.sent.append(payload)
            logger.info("Notification (mock) for patient %s: %s", patient_id, event_summary.get("type"))
            return NotificationResult(delivered=False, status="mock")

        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            with httpx.Client(timeout=10.0) as client:
                resp = client.post(self.webhook_url, json=payload, headers=headers)
                resp.raise_for_status()
        except httpx.HTTPError:
            # Delivery failures never fail the caller's job.
            logger.exception("Notification delivery failed for patient %s", patient_id)
            return NotificationResult(delivered=False, status="failed")
        return NotificationResult(delivered=True, status="sent")
