"""
Pydantic v2 schemas for the Chart of Accounts module.

Covers CRUD payloads, the paginated list, the hierarchy tree, usage and
statistics views, and the bulk import/update/delete operations.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ExpenseType = Literal["CAPEX", "OPEX"]


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class COAFilterParams(BaseModel):
    """Query filters for ``GET /api/coa``.

    ``is_active`` defaults to ``True`` so that soft-deleted accounts are
    hidden unless explicitly requested; ``None`` returns both.
    """

    expense_type: ExpenseType | None = None
    department: str | None = Field(default=None, max_length=100)
    is_active: bool | None = True
    parent_id: int | None = Field(default=None, ge=1)
    search: str | None = Field(default=None, max_length=200)


# ---------------------------------------------------------------------------
# CRUD payloads
# ---------------------------------------------------------------------------


class COABase(BaseModel):
    coa_code: str = Field(..., min_length=1, max_length=50, description="Unique account code.")
    coa_name: str = Field(..., min_length=1, max_length=255)
    category: str | None = Field(default=None, max_length=100)
    expense_type: ExpenseType | None = None
    department: str | None = Field(default=None, max_length=100)
    parent_coa_id: int | None = Field(default=None, ge=1)
    description: str | None = None

    @field_validator("coa_code")
    @classmethod
    def _strip_code(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("coa_code must not be blank")
        return value


class COACreate(COABase):
    is_active: bool = True

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "coa_code": "MTIRMRAD496001",
                "coa_name": "IT Hardware - Laptops",
                "category": "Hardware",
                "expense_type": "CAPEX",
                "department": "IT",
                "description": "Laptop and workstation purchases",
            }
        }
    )


class COAUpdate(BaseModel):
    """Partial update; only fields present in the payload are written."""

    coa_code: str | None = Field(default=None, min_length=1, max_length=50)
    coa_name: str | None = Field(default=None, min_length=1, max_length=255)
    category: str | None = Field(default=None, max_length=100)
    expense_type: ExpenseType | None = None
    department: str | None = Field(default=None, max_length=100)
    parent_coa_id: int | None = Field(default=None, ge=1)
    description: str | None = None
    is_active: bool | None = None

    @field_validator("coa_code", "coa_name", "is_active")
    @classmethod
    def _not_null(cls, value: object) -> object:
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class COAResponse(BaseModel):
    id: int
    coa_code: str
    coa_name: str
    category: str | None = None
    expense_type: str | None = None
    department: str | None = None
    parent_coa_id: int | None = None
    description: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class COAPageResponse(BaseModel):
    """Paginated account list."""

    rows: list[COAResponse]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


class COAHierarchyNode(BaseModel):
    """Account in the hierarchy tree with its depth and ancestry path."""

    id: int
    coa_code: str
    coa_name: str
    parent_coa_id: int | None = None
    level: int = Field(..., ge=0)
    path: str = Field(..., description="Ancestor names joined with ' > '.")
    children: list[COAHierarchyNode] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Usage and statistics
# ---------------------------------------------------------------------------


class COAUsage(BaseModel):
    coa_id: int
    coa_code: str
    coa_name: str
    prf_count: int = Field(..., ge=0)
    budget_count: int = Field(..., ge=0)
    total_prf_amount: float = Field(..., description="Spend of Approved/Completed PRFs.")
    total_budget_amount: float


class CountByKey(BaseModel):
    key: str
    count: int


class COAStatistics(BaseModel):
    total_accounts: int
    active_accounts: int
    inactive_accounts: int
    root_accounts: int
    by_expense_type: list[CountByKey] = Field(default_factory=list)
    by_department: list[CountByKey] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Bulk operations
# ---------------------------------------------------------------------------


class COABulkImportRequest(BaseModel):
    accounts: list[COACreate] = Field(default_factory=list)


class COABulkImportResult(BaseModel):
    total: int
    created: int
    skipped: int
    errors: list[str] = Field(default_factory=list)


class COABulkUpdateRequest(BaseModel):
    """Apply the same field values to every account in ``ids``."""

    ids: list[int] = Field(default_factory=list)
    updates: COAUpdate

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "ids": [3, 4, 7],
                "updates": {"department": "IT", "expense_type": "OPEX"},
            }
        }
    )


class COABulkDeleteRequest(BaseModel):
    ids: list[int] = Field(default_factory=list)
    hard: bool = Field(default=False, description="Remove rows instead of deactivating them.")
