"""Structured error taxonomy for the lineage and pipeline core."""

from typing import Optional

from fastapi import status


# Error code constants
VALIDATION_FAILED = "VALIDATION_FAILED"
AUTH_REQUIRED = "AUTH_REQUIRED"
VERSION_NOT_FOUND = "VERSION_NOT_FOUND"
INVALID_STATE = "INVALID_STATE"
SUBMISSION_FAILED = "SUBMISSION_FAILED"
FETCH_FAILED = "FETCH_FAILED"
INHERITANCE_FAILED = "INHERITANCE_FAILED"
LINEAGE_INCONSISTENT = "LINEAGE_INCONSISTENT"


class LineageError(Exception):
    """Base error with error code, HTTP mapping and optional metadata."""

    error_code: str = "LINEAGE_ERROR"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, extra: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    @property
    def detail(self) -> dict:
        detail = {"error": self.error_code, "message": self.message}
        detail.update(self.extra)
        return detail


class ValidationError(LineageError):
    """Bad parent reference, missing root data types or invalid method selection."""

    error_code = VALIDATION_FAILED
    status_code = 422


class AuthError(LineageError):
    error_code = AUTH_REQUIRED
    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(LineageError):
    error_code = VERSION_NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND


class StateError(LineageError):
    """Raised when a version cannot be started from its current status."""

    error_code = INVALID_STATE
    status_code = status.HTTP_409_CONFLICT


class SubmissionError(LineageError):
    """Remote processor rejected a submission. The version stays RAW."""

    error_code = SUBMISSION_FAILED
    status_code = status.HTTP_502_BAD_GATEWAY


class FetchError(LineageError):
    error_code = FETCH_FAILED
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class InheritanceError(LineageError):
    """Parent data types could not be resolved. Never blocks version creation."""

    error_code = INHERITANCE_FAILED
    status_code = status.HTTP_200_OK


class ConsistencyError(LineageError):
    """A version references a parent that is absent from the fetched set."""

    error_code = LINEAGE_INCONSISTENT
    status_code = status.HTTP_409_CONFLICT


def raise_version_not_found(version_id: int) -> None:
    raise NotFoundError(f"Version {version_id} not found", extra={"version_id": version_id})


def raise_invalid_state(version_id: int, current: str) -> None:
    raise StateError(
        f"Version {version_id} is {current}; only RAW versions can be started. Create a new version instead.",
        extra={"version_id": version_id, "status": current},
    )
