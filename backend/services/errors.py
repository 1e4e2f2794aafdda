"""
Field-force error taxonomy.

Services raise these; server.py renders them as
{"success": false, "message": ..., "detail": ..., "data": ...}.
"""

from typing import Any, Dict, Optional


class FieldForceError(Exception):
    """Base class for errors surfaced to the caller"""
    status_code = 400

    def __init__(self, message: str, data: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_dict(self) -> Dict[str, Any]:
        body = {"success": False, "message": self.message, "detail": self.message}
        if self.data is not None:
            body["data"] = self.data
        return body


class ValidationError(FieldForceError):
    """Malformed or missing input, date/time/geo out of bounds"""
    status_code = 400


class AuthorizationError(FieldForceError):
    """Role or scope violation"""
    status_code = 403


class NotFoundError(FieldForceError):
    status_code = 404


class ConflictError(FieldForceError):
    """Uniqueness violation. data carries the existing record's identity."""
    status_code = 409
