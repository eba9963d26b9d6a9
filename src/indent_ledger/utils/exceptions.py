"""Centralized exception classes for the indent ledger.

This module provides a hierarchy of custom exceptions with error codes,
HTTP status code mapping, and structured error details for consistent
error handling throughout the application.

Exception Hierarchy:
    LedgerError (base)
    ├── ValidationError
    ├── LookupFailedError
    │   ├── SheetNotFoundError
    │   └── CompanyNotFoundError
    ├── TemplateMissingError
    └── StorageError
        ├── WorkbookNotFoundError
        └── ConcurrentModificationError

Error Codes:
    All errors have a unique error code (e.g., "E2001") that can be used
    for programmatic error handling and documentation.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Enumeration of all error codes used in the application.

    Error codes are grouped by category:
    - E1xxx: Input validation errors
    - E2xxx: Sheet/header lookup errors
    - E3xxx: Workbook configuration errors
    - E4xxx: Storage errors
    - E9xxx: Internal/unexpected errors
    """

    # Validation errors (E1xxx)
    MISSING_FIELD = "E1001"
    INVALID_SHEET_NAME = "E1002"
    INVALID_QUANTITY = "E1003"
    SHEET_NAME_CONFLICT = "E1004"

    # Lookup errors (E2xxx)
    SHEET_NOT_FOUND = "E2001"
    COMPANY_NOT_FOUND = "E2002"

    # Configuration errors (E3xxx)
    TEMPLATE_MISSING = "E3001"

    # Storage errors (E4xxx)
    STORAGE_FAILED = "E4001"
    WORKBOOK_NOT_FOUND = "E4002"
    CONCURRENT_MODIFICATION = "E4003"

    # Internal errors (E9xxx)
    INTERNAL_ERROR = "E9001"


class HTTPStatusMixin:
    """Mixin that provides HTTP status code for exceptions.

    Subclasses should set the `http_status` class attribute.
    """

    http_status: int = 500

    def get_http_status(self) -> int:
        """Get the HTTP status code for this exception."""
        return self.http_status


class LedgerError(Exception, HTTPStatusMixin):
    """Base exception for all ledger errors.

    Attributes:
        message: Human-readable error message.
        error_code: Unique error code from ErrorCode enum.
        details: Optional dictionary with additional error details.
        http_status: HTTP status code for API responses (default 500).
    """

    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Error code from ErrorCode enum.
            details: Optional additional details about the error.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for API responses."""
        result: dict[str, Any] = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code.value}] {self.message}"


# =============================================================================
# Validation Errors (E1xxx)
# =============================================================================


class ValidationError(LedgerError):
    """Raised when a required input is missing or malformed.

    No state is changed when this is raised.
    """

    http_status: int = 400

    def __init__(
        self,
        message: str,
        field: str | None = None,
        error_code: ErrorCode = ErrorCode.MISSING_FIELD,
        errors: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with validation details.

        Args:
            message: Main error message.
            field: Field that failed validation.
            error_code: Error code.
            errors: List of validation errors.
            details: Additional details.
        """
        details = details or {}
        if field:
            details["field"] = field
        if errors:
            details["validation_errors"] = errors
        super().__init__(message=message, error_code=error_code, details=details)
        self.field = field
        self.errors = errors or []


# =============================================================================
# Lookup Errors (E2xxx)
# =============================================================================


class LookupFailedError(LedgerError):
    """Base class for sheet and header lookup failures."""

    http_status: int = 404


class SheetNotFoundError(LookupFailedError):
    """Raised when a date has no sheet yet.

    Recoverable by creating the daily sheet first.
    """

    http_status: int = 404

    def __init__(
        self,
        sheet_name: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        details["sheet_name"] = sheet_name
        super().__init__(
            message="Sheet not found",
            error_code=ErrorCode.SHEET_NOT_FOUND,
            details=details,
        )
        self.sheet_name = sheet_name


class CompanyNotFoundError(LookupFailedError):
    """Raised when a write targets a company missing from the header row."""

    http_status: int = 400

    def __init__(
        self,
        company: str,
        sheet_name: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        details["company"] = company
        if sheet_name:
            details["sheet_name"] = sheet_name
        super().__init__(
            message=f'Company "{company}" not found in header row',
            error_code=ErrorCode.COMPANY_NOT_FOUND,
            details=details,
        )
        self.company = company


# =============================================================================
# Configuration Errors (E3xxx)
# =============================================================================


class TemplateMissingError(LedgerError):
    """Raised when the workbook has no sheet usable as a template."""

    http_status: int = 500

    def __init__(
        self,
        message: str = "MASTER sheet not found!",
        candidates: list[str] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if candidates:
            details["candidates"] = candidates
        super().__init__(
            message=message,
            error_code=ErrorCode.TEMPLATE_MISSING,
            details=details,
        )


# =============================================================================
# Storage Errors (E4xxx)
# =============================================================================


class StorageError(LedgerError):
    """Raised when the workbook cannot be loaded or persisted."""

    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.STORAGE_FAILED,
        file_path: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with file path information.

        Args:
            message: Error message.
            error_code: Error code.
            file_path: Path to the workbook.
            details: Additional details.
        """
        details = details or {}
        if file_path:
            details["file_path"] = file_path
        super().__init__(message, error_code, details)
        self.file_path = file_path


class WorkbookNotFoundError(StorageError):
    """Raised when the backing workbook file does not exist."""

    http_status: int = 404

    def __init__(
        self,
        file_path: str,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message or f"Excel file not found at: {file_path}",
            error_code=ErrorCode.WORKBOOK_NOT_FOUND,
            file_path=file_path,
            details=details,
        )


class ConcurrentModificationError(StorageError):
    """Raised when the workbook changed on disk between load and persist."""

    http_status: int = 409

    def __init__(
        self,
        file_path: str,
        expected_version: str,
        actual_version: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        details["expected_version"] = expected_version
        details["actual_version"] = actual_version
        super().__init__(
            message="Workbook was modified by another writer; reload and retry",
            error_code=ErrorCode.CONCURRENT_MODIFICATION,
            file_path=file_path,
            details=details,
        )
