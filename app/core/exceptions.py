"""
Error taxonomy shared by the access layers, the stores and the web surface.

Access-layer methods raise these; stores catch them at the action boundary and
turn them into strings in their error slots.
"""

from typing import Any, Optional


class WorkshopError(Exception):
    def __init__(
        self,
        message: str,
        code: str = "workshop_error",
        status_code: int = 400,
        detail: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.detail = detail

    def __str__(self) -> str:
        return self.message


class ApiRequestError(WorkshopError):
    """Non-success response (or transport failure) from the backend."""

    def __init__(
        self,
        message: str,
        status_code: int = 502,
        status_text: str = "",
        detail: Optional[Any] = None,
    ):
        super().__init__(message, code="api_request_failed", status_code=status_code, detail=detail)
        self.status_text = status_text


class EnrollmentError(WorkshopError):
    def __init__(self, message: str, code: str = "enrollment_conflict"):
        super().__init__(message, code=code, status_code=409)


class CertificateError(WorkshopError):
    def __init__(self, message: str, code: str = "certificate_error"):
        super().__init__(message, code=code, status_code=422)


class NotAuthenticatedError(WorkshopError):
    def __init__(self, message: str = "You must be logged in"):
        super().__init__(message, code="not_authenticated", status_code=401)


class DuplicateActionError(WorkshopError):
    def __init__(self, message: str):
        super().__init__(message, code="duplicate_action", status_code=409)


class StoreClosedError(WorkshopError):
    def __init__(self, message: str = "Request aborted: store was closed"):
        super().__init__(message, code="store_closed", status_code=499)
