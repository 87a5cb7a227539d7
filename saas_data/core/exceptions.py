# ==============================================================================
# CUSTOM EXCEPTIONS - Application Error Hierarchy
# ==============================================================================
# Structured exception classes for consistent error handling
# Each exception maps to an HTTP status code for the API surface
# ==============================================================================

from __future__ import annotations

from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception for all application errors.

    Provides a consistent interface for error handling with:
    - Error code for programmatic identification
    - HTTP status code mapping
    - Detailed message and optional context

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error identifier
        status_code: HTTP status code to return
        details: Additional context dictionary
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary format for JSON response.

        Returns:
            Dictionary containing error details
        """
        return {
            "success": False,
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            }
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"status_code={self.status_code})"
        )


# ==============================================================================
# DATABASE EXCEPTIONS
# ==============================================================================

class DatabaseError(AppException):
    """
    Base exception for database-related errors.

    Raised when database operations fail due to:
    - Connection issues
    - Query execution failures
    - Transaction errors
    """

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="DATABASE_ERROR",
            status_code=503,
            details=details,
        )


class ConnectionUnavailableError(DatabaseError):
    """
    Raised when a database target has no live handle.

    The handle was either never initialized or has been shut down.
    """

    def __init__(
        self,
        message: str = "Database connection unavailable",
        database: Optional[str] = None,
    ) -> None:
        super().__init__(
            message=message,
            details={"database": database} if database else None,
        )
        self.error_code = "CONNECTION_UNAVAILABLE"
        self.database = database


class InitializationError(DatabaseError):
    """
    Raised when startup cannot open every database connection.

    Fatal: the data layer is one unit and does not start half-connected.
    """

    def __init__(
        self,
        message: str = "Database initialization failed",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, details=details)
        self.error_code = "INITIALIZATION_ERROR"


class PersistenceError(DatabaseError):
    """
    Raised when a write or query fails against a live connection.

    Covers constraint violations, stale references and transient
    network faults. No retry policy is built in.
    """

    def __init__(
        self,
        message: str = "Persistence operation failed",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, details=details)
        self.error_code = "PERSISTENCE_ERROR"
        self.status_code = 500


class UnsupportedDatabaseError(AppException):
    """Raised when an unrecognized database target is supplied."""

    def __init__(
        self,
        message: str = "Unsupported database type",
        database: Optional[str] = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="UNSUPPORTED_DATABASE",
            status_code=400,
            details={"database": database} if database is not None else None,
        )
        self.database = database


# ==============================================================================
# RESOURCE EXCEPTIONS
# ==============================================================================

class NotFoundError(AppException):
    """
    Raised when a requested resource does not exist.

    Maps to HTTP 404 Not Found.

    Attributes:
        resource_type: Type of resource that was not found
        resource_id: Identifier of the missing resource
    """

    def __init__(
        self,
        message: str = "Resource not found",
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
    ) -> None:
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = str(resource_id)

        super().__init__(
            message=message,
            error_code="NOT_FOUND",
            status_code=404,
            details=details,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


# ==============================================================================
# VALIDATION EXCEPTIONS
# ==============================================================================

class ValidationError(AppException):
    """
    Raised when input validation fails.

    Maps to HTTP 422 Unprocessable Entity.
    Contains field-level validation errors.
    """

    def __init__(
        self,
        message: str = "Validation error",
        errors: Optional[Any] = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=422,
            details={"validation_errors": errors or {}},
        )
        self.errors = errors or {}


# ==============================================================================
# MIGRATION EXCEPTIONS
# ==============================================================================

class MigrationError(AppException):
    """
    Raised when a migration cannot be applied, reverted or generated.

    Wraps the underlying driver error (available as ``__cause__``).
    No retry and no automatic schema rollback is implied.

    Attributes:
        database: Target the migration ran against
        migration: Migration unit name, when one was involved
    """

    def __init__(
        self,
        message: str = "Migration failed",
        database: Optional[str] = None,
        migration: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        _details = dict(details or {})
        if database:
            _details["database"] = database
        if migration:
            _details["migration"] = migration

        super().__init__(
            message=message,
            error_code="MIGRATION_ERROR",
            status_code=500,
            details=_details,
        )
        self.database = database
        self.migration = migration
