"""
Custom Dimension Errors

Every error carries a stable ``code`` so API consumers can branch on it, and
an HTTP status used by the API layer when rendering it.
"""

from enum import Enum
from typing import Any, Dict, Optional


class CustomDimensionsError(Exception):
    """Base class for all custom dimension errors"""
    
    code = "custom_dimensions_error"
    status_code = 400
    
    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details or {}
    
    def to_dict(self) -> Dict[str, Any]:
        """Serializable error payload"""
        return {
            "code": self.code,
            "message": self.message,
            "field": self.field,
            "details": self.details,
        }


class InvalidScope(CustomDimensionsError):
    code = "invalid_scope"


class InvalidName(CustomDimensionsError):
    code = "invalid_name"


class InvalidActiveFlag(CustomDimensionsError):
    code = "invalid_active_flag"


class ExtractionErrorReason(str, Enum):
    """Why an extraction rule list was rejected"""
    UNSUPPORTED_SOURCE = "unsupported_source"
    MALFORMED_PATTERN = "malformed_pattern"
    CAPTURE_GROUP_COUNT = "capture_group_count"
    TOO_MANY_RULES = "too_many_rules"


class InvalidExtraction(CustomDimensionsError):
    code = "invalid_extraction"
    
    def __init__(
        self,
        message: str,
        reason: ExtractionErrorReason,
        position: Optional[int] = None,
    ):
        details: Dict[str, Any] = {"reason": reason.value}
        if position is not None:
            details["position"] = position
        super().__init__(message, field="extractions", details=details)
        self.reason = reason
        self.position = position


class InvalidPeriod(CustomDimensionsError):
    code = "invalid_period"


class NoSlotsAvailable(CustomDimensionsError):
    code = "no_slots_available"
    status_code = 409


class NotFound(CustomDimensionsError):
    code = "not_found"
    status_code = 404


class Inactive(CustomDimensionsError):
    code = "inactive"
    status_code = 409


class Unauthorized(CustomDimensionsError):
    code = "unauthorized"
    status_code = 403


class Unauthenticated(Unauthorized):
    code = "unauthenticated"
    status_code = 401


class PersistenceFailure(CustomDimensionsError):
    code = "persistence_failure"
    status_code = 503
