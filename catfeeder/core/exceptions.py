"""Application exceptions.

Every error the core raises derives from `AppException`, which carries the
HTTP status the error handlers answer with.
"""

from typing import Any, Dict, Optional


class AppException(Exception):
    """Base exception for the application.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code to return.
        details: Optional additional error context.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class InvalidInputError(AppException, ValueError):
    """A numeric input would produce a meaningless result (NaN, inf, negative food)."""

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        details: Dict[str, Any] = {}
        if field:
            details["field"] = field
            details["value"] = value
        super().__init__(message, status_code=400, details=details)


class NotFoundError(AppException):
    """A requested resource does not exist."""

    def __init__(self, resource: str, identifier: Any):
        message = f"{resource} with id '{identifier}' not found"
        super().__init__(message, status_code=404, details={"resource": resource, "id": identifier})


class MissingReferenceError(AppException):
    """A record points at a food that is no longer in the catalog."""

    def __init__(self, food_id: Any, referenced_by: Optional[str] = None):
        message = f"Food with id '{food_id}' is not in the catalog"
        details: Dict[str, Any] = {"food_id": food_id}
        if referenced_by:
            details["referenced_by"] = referenced_by
        super().__init__(message, status_code=404, details=details)


class StaleComparisonError(AppException):
    """The plan comparison being resolved was discarded or never existed."""

    def __init__(self, cat_id: Any):
        message = f"No pending plan comparison for cat '{cat_id}'"
        super().__init__(message, status_code=409, details={"cat_id": cat_id})
