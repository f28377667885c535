"""
Error taxonomy

Every error raised on a request path derives from AppError and is rendered by
the HTTP edge as ``{"error": message}`` (plus ``"details"`` when present).
"""

from typing import Any, Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    status_code = 400


class AuthError(AppError):
    status_code = 401


class ProviderError(AppError):
    """The identity provider rejected the request (e.g. duplicate email)."""

    status_code = 400


class InternalError(AppError):
    status_code = 500


class ConfigError(Exception):
    """Raised at startup when required configuration is missing or invalid."""
