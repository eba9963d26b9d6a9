"""Utilities package for the indent ledger.

This package provides:
- Centralized exception classes (exceptions.py)
- Structured logging utilities (logging.py)
"""

from indent_ledger.utils.exceptions import (
    CompanyNotFoundError,
    ConcurrentModificationError,
    ErrorCode,
    HTTPStatusMixin,
    LedgerError,
    SheetNotFoundError,
    StorageError,
    TemplateMissingError,
    ValidationError,
    WorkbookNotFoundError,
)
from indent_ledger.utils.logging import (
    LogContext,
    StructuredLogger,
    get_logger,
    get_request_id,
    set_request_id,
)

__all__ = [
    # Exceptions
    "CompanyNotFoundError",
    "ConcurrentModificationError",
    "ErrorCode",
    "HTTPStatusMixin",
    "LedgerError",
    "SheetNotFoundError",
    "StorageError",
    "TemplateMissingError",
    "ValidationError",
    "WorkbookNotFoundError",
    # Logging
    "LogContext",
    "StructuredLogger",
    "get_logger",
    "get_request_id",
    "set_request_id",
]
