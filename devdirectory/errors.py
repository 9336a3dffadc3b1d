"""Typed failures shared by the store, query engine, auth gate and HTTP layer."""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class DirectoryError(Exception):
    """Base class for every failure surfaced to API callers."""

    code = "INTERNAL_ERROR"
    http_status = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, *, details: Optional[List[Dict[str, Any]]] = None) -> None:
        self.message = message or self.default_message
        self.details = details or []
        super().__init__(self.message)

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = list(self.details)
        return {"error": body}


class ValidationError(DirectoryError):
    code = "VALIDATION_ERROR"
    http_status = 422
    default_message = "Invalid request data"


class InvalidParameter(DirectoryError):
    code = "INVALID_PARAMETER"
    http_status = 400
    default_message = "Invalid query parameter"


class NotFound(DirectoryError):
    code = "NOT_FOUND"
    http_status = 404
    default_message = "Resource not found"


class Conflict(DirectoryError):
    code = "CONFLICT"
    http_status = 409
    default_message = "Resource already exists"


class Unauthenticated(DirectoryError):
    code = "UNAUTHENTICATED"
    http_status = 401
    default_message = "Missing or malformed bearer token"


class Unauthorized(DirectoryError):
    code = "UNAUTHORIZED"
    http_status = 403
    default_message = "Credential rejected"


class InvalidCredentials(DirectoryError):
    code = "INVALID_CREDENTIALS"
    http_status = 401
    default_message = "Invalid email or password"


class Internal(DirectoryError):
    pass


class StoreCorruptedError(Internal):
    """The persisted document exists but cannot be parsed."""


_BY_CODE = {
    cls.code: cls
    for cls in (
        ValidationError,
        InvalidParameter,
        NotFound,
        Conflict,
        Unauthenticated,
        Unauthorized,
        InvalidCredentials,
        Internal,
    )
}


def error_from_code(code: Optional[str], message: Optional[str] = None) -> DirectoryError:
    """Rebuild a typed error from the ``code`` field of a response body."""

    cls = _BY_CODE.get(code or "", Internal)
    return cls(message)


__all__ = [
    "DirectoryError",
    "ValidationError",
    "InvalidParameter",
    "NotFound",
    "Conflict",
    "Unauthenticated",
    "Unauthorized",
    "InvalidCredentials",
    "Internal",
    "StoreCorruptedError",
    "error_from_code",
]
