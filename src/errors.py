"""
Engine error taxonomy.

Every error carries an HTTP-equivalent status and renders to the structured
body the admin API returns ({error, errorType, field, details}).
"""
from typing import Any, Dict, Optional


class EngineError(Exception):
    status_code = 500
    error_type = "internal_error"

    def __init__(self, message: str, field: Optional[str] = None,
                 details: Optional[str] = None, error_type: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details
        if error_type:
            self.error_type = error_type

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message, "errorType": self.error_type}
        if self.field:
            body["field"] = self.field
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(EngineError):
    """Missing or malformed input, rejected before any store call."""
    status_code = 400
    error_type = "validation_error"


class NotFoundError(EngineError):
    status_code = 404
    error_type = "not_found"


class ConflictError(EngineError):
    """Possible-stop insert lost a race with an identical concurrent insert.

    Callers may treat this as "already present".
    """
    status_code = 409
    error_type = "duplicate_constraint"


class DependencyError(EngineError):
    """Route/booking/stop catalog unavailable; the run is aborted."""
    status_code = 503
    error_type = "dependency_error"
