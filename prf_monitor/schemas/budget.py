"""
Pydantic v2 schemas for the Budget module.

Covers budget CRUD, utilization views, alerts, statistics and the
cost-code reconciliation summary served at ``/api/budgets/cost-codes``.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ExpenseType = Literal["CAPEX", "OPEX"]
BudgetType = Literal["Annual", "Quarterly", "Monthly"]
BudgetStatus = Literal["Active", "Closed", "Frozen"]
CostCodeStatus = Literal["Over Budget", "Under Budget", "On Track"]
UtilizationLevel = Literal["Low", "Medium", "High", "Critical"]


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class BudgetFilterParams(BaseModel):
    fiscal_year: int | None = Field(default=None, ge=2000, le=2100)
    coa_id: int | None = Field(default=None, ge=1)
    department: str | None = Field(default=None, max_length=100)
    expense_type: ExpenseType | None = None
    status: BudgetStatus | None = None
    search: str | None = Field(default=None, max_length=200)


# ---------------------------------------------------------------------------
# CRUD payloads
# ---------------------------------------------------------------------------


class BudgetCreate(BaseModel):
    coa_id: int = Field(..., ge=1)
    fiscal_year: int = Field(..., ge=2000, le=2100)
    quarter: int | None = Field(default=None, ge=1, le=4)
    month: int | None = Field(default=None, ge=1, le=12)
    allocated_amount: float = Field(..., ge=0)
    utilized_amount: float = Field(default=0, ge=0)
    department: str | None = Field(default=None, max_length=100)
    budget_type: BudgetType = "Annual"
    expense_type: ExpenseType | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: BudgetStatus = "Active"
    description: str | None = Field(default=None, max_length=500)
    notes: str | None = None

    @model_validator(mode="after")
    def _check_period(self) -> BudgetCreate:
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be earlier than start_date")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "coa_id": 1,
                "fiscal_year": 2025,
                "allocated_amount": 250000000,
                "department": "IT",
                "expense_type": "CAPEX",
            }
        }
    )


class BudgetUpdate(BaseModel):
    """Partial update; only fields present in the payload are written."""

    coa_id: int | None = Field(default=None, ge=1)
    fiscal_year: int | None = Field(default=None, ge=2000, le=2100)
    quarter: int | None = Field(default=None, ge=1, le=4)
    month: int | None = Field(default=None, ge=1, le=12)
    allocated_amount: float | None = Field(default=None, ge=0)
    utilized_amount: float | None = Field(default=None, ge=0)
    department: str | None = Field(default=None, max_length=100)
    budget_type: BudgetType | None = None
    expense_type: ExpenseType | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: BudgetStatus | None = None
    description: str | None = Field(default=None, max_length=500)
    notes: str | None = None

    @field_validator(
        "coa_id", "fiscal_year", "allocated_amount", "utilized_amount", "budget_type", "status"
    )
    @classmethod
    def _not_null(cls, value: object) -> object:
        # Omit the field to keep the stored value; these columns are NOT NULL.
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class BudgetResponse(BaseModel):
    id: int
    coa_id: int
    coa_code: str | None = None
    coa_name: str | None = None
    fiscal_year: int
    quarter: int | None = None
    month: int | None = None
    allocated_amount: float
    utilized_amount: float
    remaining_amount: float
    utilization_percentage: float
    department: str | None = None
    budget_type: str
    expense_type: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: str
    description: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class BudgetPageResponse(BaseModel):
    rows: list[BudgetResponse]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)


# ---------------------------------------------------------------------------
# Utilization
# ---------------------------------------------------------------------------


class BudgetUtilization(BaseModel):
    """Spend of one budget computed live from PRFs."""

    budget_id: int
    coa_id: int
    coa_code: str
    coa_name: str
    fiscal_year: int
    department: str | None = None
    allocated_amount: float
    utilized_amount: float
    remaining_amount: float
    utilization_percentage: float
    utilization_level: UtilizationLevel
    total_prfs: int
    approved_prfs: int
    pending_prfs: int


class DepartmentUtilization(BaseModel):
    department: str
    fiscal_year: int | None = None
    budget_count: int
    allocated_amount: float
    utilized_amount: float
    remaining_amount: float
    utilization_percentage: float


class YearlyUtilizationSummary(BaseModel):
    fiscal_year: int
    allocated_amount: float
    utilized_amount: float
    remaining_amount: float
    utilization_percentage: float
    departments: list[DepartmentUtilization] = Field(default_factory=list)


class BudgetAlert(BaseModel):
    budget_id: int
    coa_id: int
    coa_code: str
    coa_name: str
    department: str | None = None
    fiscal_year: int
    allocated_amount: float
    utilized_amount: float
    utilization_percentage: float
    alert_type: Literal["Over Budget", "Near Limit"]
    utilization_level: UtilizationLevel


class BudgetStatistics(BaseModel):
    fiscal_year: int | None = None
    total_budgets: int
    total_allocated: float
    total_utilized: float
    total_remaining: float
    avg_utilization_percentage: float
    over_budget_count: int
    near_limit_count: int


# ---------------------------------------------------------------------------
# Cost-code reconciliation
# ---------------------------------------------------------------------------


class CostCodeBudget(BaseModel):
    """One row of ``GET /api/budgets/cost-codes``."""

    purchase_cost_code: str
    coa_code: str | None = None
    coa_name: str | None = None
    department: str | None = None
    expense_type: str | None = None
    grand_total_allocated: float
    grand_total_requested: float
    grand_total_approved: float
    grand_total_actual: float
    total_requests: int
    years_active: int
    first_year: int | None = None
    last_year: int | None = None
    utilization_percentage: float
    approval_rate: float
    budget_status: CostCodeStatus


class CostCodeSummary(BaseModel):
    total_cost_codes: int
    total_budget_allocated: float
    total_budget_requested: float
    total_budget_approved: float
    total_budget_actual: float
    overall_utilization: float
    overall_approval_rate: float


class CostCodeBudgetResponse(BaseModel):
    cost_codes: list[CostCodeBudget]
    summary: CostCodeSummary
    fiscal_year: int | None = None


class PRFCostCodeBudget(BaseModel):
    """Budget position of one cost code used by a PRF's items."""

    cost_code: str
    coa_name: str | None = None
    total_budget: float
    total_spent: float
    remaining_budget: float
    prf_spent: float
    item_count: int
    item_names: str
    utilization_percentage: float
