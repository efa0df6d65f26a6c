"""
Typed service errors for the F1 Predictions application

Services raise a ServiceError subclass; the application error handler maps the
error kind to an HTTP status, so views never inspect error messages.
"""

from enum import Enum

from flask import jsonify


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    PERMISSION = "permission"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    STATE = "state"


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.STATE: 400,
    ErrorKind.PERMISSION: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
}


class ServiceError(Exception):
    """Base class for errors raised by the service layer"""

    kind = None

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def status_code(self):
        return STATUS_BY_KIND.get(self.kind, 500)

    def to_dict(self):
        data = {
            "kind": self.kind.value if self.kind else "internal",
            "message": self.message,
        }
        if self.details:
            data["details"] = self.details
        return data


class ValidationError(ServiceError):
    """Malformed or missing input"""

    kind = ErrorKind.VALIDATION


class PermissionDenied(ServiceError):
    """Role or ownership check failed"""

    kind = ErrorKind.PERMISSION


class NotFound(ServiceError):
    """Referenced entity does not exist"""

    kind = ErrorKind.NOT_FOUND


class Conflict(ServiceError):
    """Uniqueness violation"""

    kind = ErrorKind.CONFLICT


class InvalidState(ServiceError):
    """Operation not allowed in the entity's current state"""

    kind = ErrorKind.STATE


def error_response(error):
    """Build the JSON error envelope for a ServiceError"""
    return jsonify({"success": False, "error": error.to_dict()}), error.status_code
