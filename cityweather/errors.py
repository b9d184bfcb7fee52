"""Error taxonomy shared by the store, the handlers and the HTTP surface.

Every error carries the HTTP status it maps to and the message that is safe
to show to the caller. Driver-level causes are logged where they are caught
and never copied into the message.
"""
from __future__ import annotations
from typing import Any, Dict, Optional


class WeatherServiceError(Exception):
    """Base class for errors the API turns into JSON responses."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(WeatherServiceError):
    """Missing or malformed input. Raised before the store is touched."""

    status_code = 400


class ConflictError(WeatherServiceError):
    """An observation already exists for this city and date."""

    status_code = 409


class StoreError(WeatherServiceError):
    """Connectivity, query or driver failure."""

    status_code = 500
