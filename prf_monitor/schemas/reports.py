"""
Pydantic v2 schemas for the Reports module and the reconciliation checks.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


class DashboardBudget(BaseModel):
    total_budget: float
    total_spent: float
    total_remaining: float
    overall_utilization: float
    total_budget_items: int
    over_budget_count: int


class DashboardPRFs(BaseModel):
    total_prfs: int
    approved_prfs: int
    pending_prfs: int
    rejected_prfs: int


class ExpenseBreakdownItem(BaseModel):
    expense_type: str
    total_allocated: float
    total_spent: float
    budget_count: int
    utilization: float


class DashboardResponse(BaseModel):
    fiscal_year: int
    budget: DashboardBudget
    prfs: DashboardPRFs
    expense_breakdown: list[ExpenseBreakdownItem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Utilization by category
# ---------------------------------------------------------------------------


class UtilizationReportRow(BaseModel):
    category: str
    expense_type: str
    total_allocated: float
    total_spent: float
    utilization_percentage: float
    budget_count: int


# ---------------------------------------------------------------------------
# Unallocated budgets
# ---------------------------------------------------------------------------


class UnallocatedBudget(BaseModel):
    budget_id: int
    purchase_cost_code: str
    coa_code: str
    coa_name: str
    category: str | None = None
    department: str | None = None
    expense_type: str | None = None
    allocated_amount: float
    total_spent: float
    reason_type: Literal["Zero Allocation", "Non-IT Department", "Other"]


class UnallocatedBudgetSummary(BaseModel):
    zero_allocation_count: int
    non_it_count: int
    zero_allocation_spent: float
    non_it_budget: float
    non_it_spent: float
    total_items: int


class UnallocatedBudgetResponse(BaseModel):
    fiscal_year: int
    budgets: list[UnallocatedBudget]
    summary: UnallocatedBudgetSummary


# ---------------------------------------------------------------------------
# Reconciliation checks
# ---------------------------------------------------------------------------


class DuplicateBudgetGroup(BaseModel):
    coa_id: int
    coa_code: str | None = None
    fiscal_year: int
    budget_ids: list[int]
    keep_id: int = Field(..., description="Row kept by the dedupe operation.")


class DedupeResult(BaseModel):
    dry_run: bool
    groups: int
    kept_ids: list[int] = Field(default_factory=list)
    removed_ids: list[int] = Field(default_factory=list)


class OrphanedBudget(BaseModel):
    budget_id: int
    coa_id: int
    fiscal_year: int
    allocated_amount: float


class MissingCostCode(BaseModel):
    purchase_cost_code: str
    prf_count: int
    total_spent: float


class UnusedAccount(BaseModel):
    coa_id: int
    coa_code: str
    coa_name: str


class ReconciliationReport(BaseModel):
    duplicate_budget_groups: list[DuplicateBudgetGroup]
    orphaned_budgets: list[OrphanedBudget]
    missing_cost_codes: list[MissingCostCode]
    unused_accounts: list[UnusedAccount]
    issue_count: int
