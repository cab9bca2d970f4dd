"""
Custom exception classes for the application.
"""

from typing import Any, Dict, List, Optional

class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class StorageException(AppException):
    """Key-value storage operation exception."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="STORAGE_ERROR",
            status_code=500,
            details=details
        )

class ConflictException(AppException):
    """Resource conflict exception."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="CONFLICT",
            status_code=409,
            details=details
        )

class ValidationException(AppException):
    """Exception raised for validation errors."""
    def __init__(self, message: str, details: Dict = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details=details or {}
        )

class DependencyCycleException(ValidationException):
    """Exception raised when derived field dependencies would form a cycle."""
    def __init__(self, field_id: str, cycle: List[str]):
        if len(cycle) <= 1:
            message = f"Derived field cannot depend on itself: {field_id}"
        else:
            message = f"Derived field dependencies form a cycle: {' -> '.join(cycle + cycle[:1])}"
        super().__init__(message=message, details={"field_id": field_id, "cycle": cycle})
        self.error_code = "DEPENDENCY_CYCLE"

class NotFoundException(AppException):
    """Exception raised when a resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        message = f"{resource_type} not found: {resource_id}"
        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id}
        )

class FormulaError(ValueError):
    """Raised by the formula engine for malformed or failing formulas.

    Internal to derived-value evaluation; never surfaces to API callers.
    """

    def __init__(self, message: str, position: Optional[int] = None):
        self.position = position
        if position is not None:
            message = f"{message} (at position {position})"
        super().__init__(message)
