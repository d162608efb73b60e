from fastapi.responses import JSONResponse
from typing import Any, Optional


class StorageError(Exception):
    """Durable storage write or read failed"""


class ReferenceCollisionError(Exception):
    """A record with this reference number already exists in storage"""

    def __init__(self, reference_number: str):
        self.reference_number = reference_number
        super().__init__(f"Reference number already in use: {reference_number}")


class SubmissionError(Exception):
    """
    Base class for errors that terminate a submission request

    Carries everything needed to render the response envelope.
    """

    status_code: int = 500

    def __init__(
        self,
        message: str,
        errors: Optional[list[str]] = None,
        detail: Optional[str] = None,
    ):
        self.message = message
        self.errors = errors
        self.detail = detail
        super().__init__(message)


class MethodNotAllowed(SubmissionError):
    status_code = 405


class ValidationFailed(SubmissionError):
    status_code = 400


class PersistenceFailed(SubmissionError):
    status_code = 500


class ReferenceAllocationError(SubmissionError):
    """Every allocation attempt collided with an existing reference"""

    status_code = 500


def submission_body(
    success: bool,
    message: str,
    reference_number: Optional[str] = None,
    errors: Optional[list[str]] = None,
    detail: Optional[str] = None,
) -> dict[str, Any]:
    """
    Build the submission response envelope

    {success, message, referenceNumber?, errors?, error?}
    """
    body: dict[str, Any] = {"success": success, "message": message}
    if reference_number is not None:
        body["referenceNumber"] = reference_number
    if errors:
        body["errors"] = errors
    if detail is not None:
        body["error"] = detail
    return body


def submission_response(
    status: int,
    message: str,
    errors: Optional[list[str]] = None,
    detail: Optional[str] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Return a failure envelope with the given HTTP status"""
    return JSONResponse(
        status_code=status,
        content=submission_body(False, message, errors=errors, detail=detail),
        headers=headers,
    )
