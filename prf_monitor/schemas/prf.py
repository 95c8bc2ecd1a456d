"""
Pydantic v2 schemas for the PRF (purchase request) module.

Covers PRF and item CRUD payloads, list/detail responses, bulk delete
results and the statistics view.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Priority = Literal["Low", "Medium", "High", "Critical"]
ItemStatus = Literal["Pending", "Approved", "Picked Up", "On Hold", "Cancelled"]


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class PRFFilterParams(BaseModel):
    status: str | None = Field(default=None, max_length=50)
    department: str | None = Field(default=None, max_length=100)
    priority: Priority | None = None
    requestor_id: int | None = Field(default=None, ge=1)
    coa_id: int | None = Field(default=None, ge=1)
    date_from: date | None = None
    date_to: date | None = None
    search: str | None = Field(default=None, max_length=200)


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


class PRFItemCreate(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    quantity: int = Field(default=1, ge=1)
    unit_price: float = Field(default=0, ge=0)
    specifications: str | None = None
    purchase_cost_code: str | None = Field(default=None, max_length=50)
    notes: str | None = None


class PRFItemUpdate(BaseModel):
    """Partial item update.

    Changing ``status`` marks the item as overridden; sending
    ``status_overridden=false`` hands the item back to the PRF cascade.
    """

    item_name: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    quantity: int | None = Field(default=None, ge=1)
    unit_price: float | None = Field(default=None, ge=0)
    specifications: str | None = None
    purchase_cost_code: str | None = Field(default=None, max_length=50)
    status: ItemStatus | None = None
    status_overridden: bool | None = None
    picked_up_by: str | None = Field(default=None, max_length=200)
    picked_up_date: date | None = None
    notes: str | None = None


class PRFItemResponse(BaseModel):
    id: int
    prf_id: int
    item_name: str
    description: str | None = None
    quantity: int
    unit_price: float
    total_price: float
    specifications: str | None = None
    purchase_cost_code: str | None = None
    status: str
    status_overridden: bool
    picked_up_by: str | None = None
    picked_up_date: date | None = None
    notes: str | None = None

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# PRF payloads
# ---------------------------------------------------------------------------


class PRFCreate(BaseModel):
    prf_no: str = Field(..., max_length=50, description="Unique PRF number (required).")
    title: str | None = Field(default=None, max_length=500)
    description: str | None = None
    requestor_id: int | None = Field(default=None, ge=1)
    department: str | None = Field(default=None, max_length=100)
    coa_id: int | None = Field(default=None, ge=1)
    requested_amount: float = Field(default=0, ge=0)
    approved_amount: float | None = Field(default=None, ge=0)
    actual_amount: float | None = Field(default=None, ge=0)
    priority: Priority = "Medium"
    status: str = Field(default="Draft", min_length=1, max_length=50)
    request_date: date | None = None
    required_date: date | None = None
    justification: str | None = None
    vendor_name: str | None = Field(default=None, max_length=255)
    vendor_contact: str | None = Field(default=None, max_length=255)
    notes: str | None = None
    date_submit: date | None = None
    submit_by: str | None = Field(default=None, max_length=200)
    sum_description_requested: str | None = Field(default=None, max_length=1000)
    purchase_cost_code: str | None = Field(default=None, max_length=50)
    required_for: str | None = Field(default=None, max_length=500)
    budget_year: int | None = Field(default=None, ge=2000, le=2100)
    items: list[PRFItemCreate] = Field(default_factory=list)

    @field_validator("prf_no")
    @classmethod
    def _strip_prf_no(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("prf_no is required")
        return value

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "prf_no": "PRF-2025-0001",
                "title": "Development laptops",
                "department": "IT",
                "requested_amount": 45000000,
                "priority": "High",
                "purchase_cost_code": "MTIRMRAD496001",
                "budget_year": 2025,
                "items": [
                    {"item_name": "Laptop 14in", "quantity": 3, "unit_price": 15000000}
                ],
            }
        }
    )


class PRFUpdate(BaseModel):
    """Partial update; only fields present in the payload are written."""

    prf_no: str | None = Field(default=None, max_length=50)
    title: str | None = Field(default=None, max_length=500)
    description: str | None = None
    requestor_id: int | None = Field(default=None, ge=1)
    department: str | None = Field(default=None, max_length=100)
    coa_id: int | None = Field(default=None, ge=1)
    requested_amount: float | None = Field(default=None, ge=0)
    approved_amount: float | None = Field(default=None, ge=0)
    actual_amount: float | None = Field(default=None, ge=0)
    priority: Priority | None = None
    status: str | None = Field(default=None, min_length=1, max_length=50)
    request_date: date | None = None
    required_date: date | None = None
    approval_date: date | None = None
    completion_date: date | None = None
    approved_by: int | None = Field(default=None, ge=1)
    justification: str | None = None
    vendor_name: str | None = Field(default=None, max_length=255)
    vendor_contact: str | None = Field(default=None, max_length=255)
    notes: str | None = None
    date_submit: date | None = None
    submit_by: str | None = Field(default=None, max_length=200)
    sum_description_requested: str | None = Field(default=None, max_length=1000)
    purchase_cost_code: str | None = Field(default=None, max_length=50)
    required_for: str | None = Field(default=None, max_length=500)
    budget_year: int | None = Field(default=None, ge=2000, le=2100)


class PRFResponse(BaseModel):
    id: int
    prf_no: str
    title: str | None = None
    description: str | None = None
    requestor_id: int | None = None
    requestor_name: str | None = None
    department: str | None = None
    coa_id: int | None = None
    coa_code: str | None = None
    coa_name: str | None = None
    requested_amount: float
    approved_amount: float | None = None
    actual_amount: float | None = None
    priority: str
    status: str
    request_date: date | None = None
    required_date: date | None = None
    approval_date: date | None = None
    completion_date: date | None = None
    approved_by: int | None = None
    justification: str | None = None
    vendor_name: str | None = None
    vendor_contact: str | None = None
    notes: str | None = None
    date_submit: date | None = None
    submit_by: str | None = None
    sum_description_requested: str | None = None
    purchase_cost_code: str | None = None
    required_for: str | None = None
    budget_year: int | None = None
    created_at: datetime
    updated_at: datetime
    items: list[PRFItemResponse] | None = None


class PRFPageResponse(BaseModel):
    rows: list[PRFResponse]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)


class PRFBulkDeleteResult(BaseModel):
    deleted_count: int = Field(..., ge=0)
    total_requested: int = Field(..., ge=0)
    errors: list[str] = Field(default_factory=list)


class PRFStatistics(BaseModel):
    period_start: date
    period_end: date
    total_prfs: int
    pending_prfs: int
    approved_prfs: int
    rejected_prfs: int
    completed_prfs: int
    total_requested_amount: float
    total_approved_amount: float
    avg_processing_days: float | None = None
