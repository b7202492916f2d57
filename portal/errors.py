"""
portal/errors.py

Error taxonomy for the approval portal.

Every error carries an HTTP status code; the app factory renders them as
JSON envelopes:

    {"success": false, "message": "...", "fields": {...}}

IMPORTANT:
- NotFoundError is raised both for unknown ids and for records the caller
  may not see. The message is identical so existence never leaks across roles.
- Errors are raised before any state mutation; callers never observe a
  partially applied change.
"""

from __future__ import annotations

from typing import Dict, Optional


class PortalError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message}


class ValidationError(PortalError):
    """One or more input fields failed validation."""

    status_code = 400
    default_message = "Validation failed"

    def __init__(self, fields: Dict[str, str], message: Optional[str] = None):
        super().__init__(message)
        self.fields = dict(fields)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["fields"] = self.fields
        return data


class AuthorizationError(PortalError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(PortalError):
    status_code = 404
    default_message = "Requisition not found"


class InvalidTransitionError(PortalError):
    """Requested approval step is not legal from the current state."""

    status_code = 409
    default_message = "Invalid status transition"


class ConflictError(PortalError):
    """Concurrent modification detected; re-read and retry."""

    status_code = 409
    default_message = "Requisition was modified by another user, reload and retry"


class ExternalServiceError(PortalError):
    status_code = 502
    default_message = "A dependent service is unavailable"
