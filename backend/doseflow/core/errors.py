"""Error taxonomy shared by the API boundary and the background jobs."""

from __future__ import annotations


class DoseflowError(Exception):
    status_code = 500
    code = "internal_error"

    def __init__(self, message: str, suggested_fix: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.suggested_fix = suggested_fix

    def to_detail(self) -> dict[str, str | None]:
        return {
            "error": self.code,
            "message": self.message,
            "suggested_fix": self.suggested_fix,
        }


class ValidationError(DoseflowError):
    """Malformed time, frequency or grace configuration. Never coerced."""

    status_code = 422
    code = "validation_error"


class UnsupportedFrequency(ValidationError):
    code = "unsupported_frequency"


class NotFoundError(DoseflowError):
    status_code = 404
    code = "not_found"


class AccessDeniedError(DoseflowError):
    status_code = 403
    code = "access_denied"


class MissingTimezoneError(DoseflowError):
    """Patient configuration has no usable IANA timezone."""

    status_code = 422
    code = "missing_timezone"


class ConcurrentTransitionConflict(DoseflowError):
    """A transition was attempted on an event that is no longer scheduled."""

    status_code = 409
    code = "transition_conflict"
