from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal
from uuid import UUID

import httpx

from doseflow.core.errors import AccessDeniedError
from doseflow.core.settings import get_settings

logger = logging.getLogger(__name__)

PRIVILEGED_ROLES = frozenset({"admin", "system"})


@dataclass(frozen=True)
class Permissions:
    can_view: bool = False
    can_edit: bool = False


FULL_ACCESS = Permissions(can_view=True, can_edit=True)
NO_ACCESS = Permissions()


class AccessClient:
    """Asks the family-sharing service what a caller may do for a patient."""

    def __init__(
        self,
        base_url: str | None = None,
        mode: Literal["mock", "live"] | None = None,
    ) -> None:
        settings = get_settings()
        self.mode = mode or settings.access_mode
        self.base_url = base_url or settings.access_service_url

    def check_family_access(self, caller_id: str, patient_id: UUID) -> Permissions:
        if str(caller_id) == str(patient_id):
            return FULL_ACCESS
        if self.mode == "mock" or not self.base_url:
            return FULL_ACCESS

        url = f"{self.base_url.rstrip('/')}/family-access/check"
        params = {"caller_id": str(caller_id), "patient_id": str(patient_id)}
        try:
            with httpx.Client(timeout=5.0) as client:
                resp = client.get(url, params=params)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            logger.warning("Access check failed for %s on %s: %s", caller_id, patient_id, exc)
            return NO_ACCESS
        permissions = data.get("permissions") or data
        return Permissions(
            can_view=bool(permissions.get("can_view") or permissions.get("canView")),
            can_edit=bool(permissions.get("can_edit") or permissions.get("canEdit")),
        )

    def require(self, caller_id: str, role: str | None, patient_id: UUID, edit: bool = False) -> Permissions:
        if role in PRIVILEGED_ROLES:
            return FULL_ACCESS
        permissions = self.check_family_access(caller_id, patient_id)
        allowed = permissions.can_edit if edit else permissions.can_view
        if not allowed:
            action = "edit" if edit else "view"
            raise AccessDeniedError(
                f"caller {caller_id} may not {action} patient {patient_id}",
                suggested_fix="ask the patient to grant family access",
            )
        return permissions
