"""
Application error taxonomy.

Every failure raised by a service carries a stable ``code``, a human-readable
``message`` that is safe to return to clients, and the HTTP status the
transport layer should answer with. Underlying causes are chained with
``raise ... from exc`` and only ever reach the logs.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AppError(Exception):
    code = "INTERNAL_SERVER_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        cause = self.__cause__
        if cause is not None:
            return f"[{self.code}] {self.message}: {cause}"
        return f"[{self.code}] {self.message}"

    def to_payload(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code, "errors": None}


class ValidationError(AppError):
    """Caller supplied missing or malformed input."""

    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message)
        self.field_errors: Dict[str, str] = dict(field_errors or {})

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["errors"] = self.field_errors or None
        return payload


class NotFoundError(AppError):
    code = "NOT_FOUND"
    status_code = 404


class ConflictError(AppError):
    code = "CONFLICT_ERROR"
    status_code = 409


class AuthError(AppError):
    code = "AUTH_ERROR"
    status_code = 401


class ConfigurationError(AppError):
    """Admin-entered template data (schema, customization, layout file) is unusable."""

    code = "CONFIG_ERROR"


class RenderError(AppError):
    code = "RENDER_ERROR"


class RasterizationError(AppError):
    """The headless browser could not produce an artifact.

    ``retryable`` is set for failures a caller may reasonably retry once,
    such as a timeout.
    """

    code = "RASTERIZATION_ERROR"

    def __init__(self, message: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["retryable"] = self.retryable
        return payload


class DatabaseError(AppError):
    code = "DATABASE_ERROR"


class InternalError(AppError):
    code = "INTERNAL_SERVER_ERROR"
