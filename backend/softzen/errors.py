# backend/softzen/errors.py
from __future__ import annotations
from typing import Any, Dict, Optional


class AppError(Exception):
    """Base class for errors that translate directly into an API response."""

    status_code: int = 500
    error_type: str = "server_error"

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.message, "type": self.error_type}


class ValidationError(AppError):
    """Client input violated a field rule. ``field`` and ``code`` name the rule."""

    status_code = 400
    error_type = "validation_error"

    def __init__(self, message: str, field: str, code: str):
        super().__init__(message)
        self.field = field
        self.code = code

    def to_response(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "field": self.field,
            "code": self.code,
            "type": self.error_type,
        }

    def __repr__(self) -> str:
        return f"ValidationError(field={self.field!r}, code={self.code!r})"


class NetworkError(AppError):
    """Infrastructure failure surfaced by the retry wrapper."""

    error_type = "network_error"

    def __init__(self, message: str, *, is_retryable: bool = True, status_code: Optional[int] = None):
        super().__init__(message, status_code=status_code or 500)
        self.is_retryable = is_retryable

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.message, "type": self.error_type, "retryable": self.is_retryable}


class AuthError(AppError):
    """401 when the credential is missing, 403 when it is invalid, expired or lacks the role."""

    status_code = 403
    error_type = "auth_error"

    @classmethod
    def missing(cls, message: str = "Access token required") -> "AuthError":
        return cls(message, status_code=401)

    @classmethod
    def forbidden(cls, message: str = "Access denied") -> "AuthError":
        return cls(message, status_code=403)


class NotFoundError(AppError):
    status_code = 404
    error_type = "not_found"


class ConflictError(AppError):
    """The request is well formed but clashes with the current state."""

    status_code = 409
    error_type = "conflict"

    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code, "type": self.error_type}


class ServerError(AppError):
    status_code = 500
    error_type = "server_error"

    def to_response(self) -> Dict[str, Any]:
        return {"error": self.message, "type": self.error_type, "retryable": True}


# Errors the retry wrapper must never wrap or retry.
DOMAIN_ERRORS = (ValidationError, AuthError, NotFoundError, ConflictError)
