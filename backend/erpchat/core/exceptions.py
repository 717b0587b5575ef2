"""
Custom Exception Hierarchy
Standardized error handling with error codes and consistent messaging
"""

import uuid
from typing import Any, Dict, Optional


class BaseAppException(Exception):
    """Base exception class for application errors"""

    def __init__(
        self,
        message: str,
        error_code: str,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.correlation_id = correlation_id or str(uuid.uuid4())

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging"""
        return {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
                "correlation_id": self.correlation_id
            }
        }


class ValidationException(BaseAppException):
    """Exception for input validation errors"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        error_code: str = "VALIDATION_ERROR"
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            correlation_id=correlation_id
        )


class DatabaseException(BaseAppException):
    """Exception for database-related errors"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        error_code: str = "DATABASE_ERROR"
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            correlation_id=correlation_id
        )


class ExternalServiceException(BaseAppException):
    """Exception for external service failures"""

    def __init__(
        self,
        message: str,
        service_name: str,
        details: Optional[Dict[str, Any]] = None,
        correlation_id: Optional[str] = None,
        error_code: str = "EXTERNAL_SERVICE_ERROR"
    ):
        details = details or {}
        details["service"] = service_name
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            correlation_id=correlation_id
        )


class SchemaUnavailableException(DatabaseException):
    """Schema metadata could not be fetched; SQL must not be synthesized"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, details=details, error_code="SCHEMA_UNAVAILABLE")


class GenerationBackendException(ExternalServiceException):
    """Text-generation call failed or produced no text"""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None
    ):
        details: Dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        if body is not None:
            details["body"] = body[:500]
        super().__init__(
            message=message,
            service_name="generation",
            details=details,
            error_code="GENERATION_BACKEND_ERROR"
        )
        self.status_code = status_code
        self.body = body


class GuardRejectionException(ValidationException):
    """SQL statement failed the read-only guard"""

    def __init__(self, message: str, keyword: Optional[str] = None):
        super().__init__(
            message=message,
            details={"keyword": keyword} if keyword else None,
            error_code="GUARD_REJECTION"
        )
        self.keyword = keyword


class ScopeViolationException(ValidationException):
    """Generated SQL touches the order table without the caller's access filter"""

    def __init__(self, message: str, predicate: Optional[str] = None):
        super().__init__(
            message=message,
            details={"predicate": predicate} if predicate else None,
            error_code="SCOPE_VIOLATION"
        )
