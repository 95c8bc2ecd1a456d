"""
Shared Pydantic v2 schemas reused across multiple modules.

Provides pagination, bulk-operation, message and error envelopes so that
each domain module can compose them without duplicating field definitions.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class PaginationParams(BaseModel):
    """Pagination parameters for list endpoints.

    Attributes:
        page: 1-based page number.
        page_size: Number of rows per page (capped at 200 to protect DB).
    """

    page: int = Field(
        default=1,
        ge=1,
        description="Page number (1-based).",
    )
    page_size: int = Field(
        default=20,
        ge=1,
        le=200,
        description="Rows per page (maximum 200).",
    )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class MessageResponse(BaseModel):
    """Generic message envelope for operations that do not return a resource.

    Attributes:
        message: Short human-readable result summary.
        detail: Optional extended information (error description, hint, etc.).
    """

    message: str = Field(..., description="Summary of the operation result.")
    detail: str | None = Field(
        default=None,
        description="Additional information (error context, hint, etc.).",
    )


class BulkIdsRequest(BaseModel):
    """List of primary keys for bulk delete endpoints."""

    ids: list[int] = Field(
        default_factory=list,
        description="Primary keys to process. An empty list is rejected with 400.",
    )


class BulkItemError(BaseModel):
    """Failure for a single id inside a bulk operation."""

    id: int
    message: str


class BulkOperationResult(BaseModel):
    """Outcome of a bulk update or delete."""

    processed_count: int = Field(..., ge=0)
    total_requested: int = Field(..., ge=0)
    errors: list[BulkItemError] = Field(default_factory=list)


class ErrorBody(BaseModel):
    message: str
    status_code: int


class ErrorResponse(BaseModel):
    """JSON body returned for every error response."""

    success: bool = False
    error: ErrorBody
    detail: object | None = None
    timestamp: datetime
    path: str
    method: str
