"""Pydantic models for API requests and responses.

Request fields are optional at the schema level so that a missing field is
reported by the ledger as a ValidationError rather than a framework error.
"""

from typing import Any

from pydantic import BaseModel, Field

from indent_ledger.services.sheet_ledger import SheetStatus, UpdateStatus

Quantity = str | int | float | None


class HealthResponse(BaseModel):
    """Response model for health check endpoint."""

    status: str
    timestamp: str
    version: str


class SheetRequest(BaseModel):
    """Request body for creating or opening a daily sheet."""

    date: str | int | None = Field(default=None, description="Date key")


class CompanyRequest(BaseModel):
    """Request body for reading one company's quantities."""

    date: str | int | None = Field(default=None, description="Date key")
    company: str | None = Field(default=None, description="Company header name")


class UpdateCompanyRequest(BaseModel):
    """Request body for writing one company's quantities."""

    date: str | int | None = Field(default=None, description="Date key")
    company: str | None = Field(default=None, description="Company header name")
    quantities: dict[str, Quantity] | None = Field(
        default=None, description="Item name to quantity"
    )


class SheetResponse(BaseModel):
    """Response model for the daily sheet endpoint."""

    status: SheetStatus
    sheetName: str = Field(..., description="Name of the dated sheet")


class QuantitiesResponse(BaseModel):
    """Response model for a company column read."""

    quantities: dict[str, Any] = Field(default_factory=dict)


class ItemUpdateResponse(BaseModel):
    """Outcome for one item in an update batch."""

    veg: str = Field(..., description="Item name as sent by the caller")
    status: UpdateStatus


class UpdateCompanyResponse(BaseModel):
    """Response model for a company column write."""

    updated: list[ItemUpdateResponse]


class ErrorDetail(BaseModel):
    """Structured error response."""

    error: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(default=None, description="Error code (Exxxx)")
    details: dict[str, Any] | None = None
    request_id: str | None = None
