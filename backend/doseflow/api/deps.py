from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from doseflow.core.settings import get_settings
from doseflow.services.access import AccessClient, Permissions
from doseflow.services.notifier import Notifier

bearer_scheme = HTTPBearer(auto_error=False)


def require_api_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    x_api_token: str | None = Header(None),
) -> None:
    settings = get_settings()
    token = settings.api_token
    if not token:
        return

    provided = None
    if credentials and credentials.scheme.lower() == "bearer":
        provided = credentials.credentials
    elif x_api_token:
        provided = x_api_token

    if not provided or provided != token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API token",
        )


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str
    role: str | None = None


def get_authenticated_user(
    x_user_id: str | None = Header(None),
    x_user_role: str | None = Header(None),
) -> AuthenticatedUser:
    """Identity asserted by the gateway in front of this service."""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header.")
    return AuthenticatedUser(user_id=x_user_id, role=(x_user_role or "").lower() or None)


def get_access_client() -> AccessClient:
    return AccessClient()


def get_notifier() -> Notifier:
    return Notifier()


def check_patient_access(
    user: AuthenticatedUser,
    access: AccessClient,
    patient_id: UUID,
    edit: bool = False,
) -> Permissions:
    return access.require(user.user_id, user.role, patient_id, edit=edit)
