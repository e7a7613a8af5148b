"""
Custom Exceptions for CIDCO Records
===================================

Services raise these instead of HTTPException so that the same rules apply
to every route: the exception handler in main.py turns them into
``{"error": ..., "code": ...}`` JSON bodies with the matching status code.

Usage:
    from cidco_records.core.exceptions import RecordNotFoundError

    if row is None:
        raise RecordNotFoundError(record_id)
"""

from typing import Optional, Any, Dict


class RecordsError(Exception):
    """Base exception for all CIDCO Records errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
        }


# ============================================
# Authentication & Authorization Errors
# ============================================

class AuthenticationError(RecordsError):
    """User authentication failed"""

    status_code = 401

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, code="AUTH_FAILED")


class InvalidTokenError(AuthenticationError):
    """Bearer token is missing, malformed or expired"""

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message)
        self.code = "INVALID_TOKEN"


class AuthorizationError(RecordsError):
    """User not authorized for this action"""

    status_code = 403

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message, code="NOT_AUTHORIZED")


class InvalidResetTokenError(RecordsError):
    """Password reset token is unknown, already used or expired"""

    status_code = 400

    def __init__(self):
        super().__init__("The reset link is invalid or has expired.", code="INVALID_RESET_TOKEN")


# ============================================
# Resource Errors (404-type)
# ============================================

class ResourceNotFoundError(RecordsError):
    """Base class for not found errors"""

    status_code = 404

    def __init__(self, resource_type: str, resource_id: str, message: Optional[str] = None):
        super().__init__(
            message or f"{resource_type} with ID '{resource_id}' not found",
            code=f"{resource_type.upper()}_NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class RecordNotFoundError(ResourceNotFoundError):
    """Plot record not found"""

    def __init__(self, record_id: str):
        super().__init__("Record", str(record_id), message="Record not found")


# ============================================
# Validation Errors (400-type)
# ============================================

class ValidationError(RecordsError):
    """Input validation failed"""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class UnknownColumnError(ValidationError):
    """Update payload names a column that all_data does not have"""

    def __init__(self, columns: list):
        super().__init__(f"Unknown column(s): {', '.join(sorted(columns))}")
        self.code = "UNKNOWN_COLUMN"
        self.details = {"columns": sorted(columns)}


# ============================================
# Database Errors (500-type)
# ============================================

class DatabaseWriteError(RecordsError):
    """A write statement failed; the driver message stays server-side"""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message, code="DATABASE_ERROR")
        if cause is not None:
            self.details["cause"] = str(cause)


# Export all exceptions
__all__ = [
    "RecordsError",
    "AuthenticationError",
    "InvalidTokenError",
    "AuthorizationError",
    "InvalidResetTokenError",
    "ResourceNotFoundError",
    "RecordNotFoundError",
    "ValidationError",
    "UnknownColumnError",
    "DatabaseWriteError",
]
