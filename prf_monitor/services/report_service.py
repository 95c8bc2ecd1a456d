"""
Reports service layer.

Provides the dashboard summary, utilization by category and the list of
budgets without a usable allocation.  All spend figures come from
``budget_spend_query`` so they always reflect the current PRFs.
"""

from __future__ import annotations

import datetime
import logging
from collections import defaultdict
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from prf_monitor.models.budget import Budget
from prf_monitor.models.prf import PRF
from prf_monitor.schemas.reports import (
    DashboardBudget,
    DashboardPRFs,
    DashboardResponse,
    ExpenseBreakdownItem,
    UnallocatedBudget,
    UnallocatedBudgetResponse,
    UnallocatedBudgetSummary,
    UtilizationReportRow,
)
from prf_monitor.services.reconciliation_service import (
    budget_spend_query,
    prf_year,
    utilization_pct,
)
from prf_monitor.utils.constants import (
    IT_DEPARTMENT,
    PENDING_STATUSES,
    UTILIZING_STATUSES,
)

logger = logging.getLogger(__name__)


def _year_or_current(fiscal_year: int | None) -> int:
    return fiscal_year if fiscal_year is not None else datetime.date.today().year


def _rows_for_year(db: Session, fiscal_year: int) -> list[Any]:
    return budget_spend_query(db).filter(Budget.fiscal_year == fiscal_year).all()


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


def get_dashboard(db: Session, fiscal_year: int | None = None) -> DashboardResponse:
    """Budget totals, PRF counts and an expense-type breakdown for one year.

    "Approved" PRFs are those that count as spend (Approved or Completed).
    """
    year = _year_or_current(fiscal_year)
    rows = _rows_for_year(db, year)

    total_budget = 0.0
    total_spent = 0.0
    over_budget = 0
    by_type: dict[str, dict[str, Any]] = defaultdict(
        lambda: {"allocated": 0.0, "spent": 0.0, "count": 0}
    )
    for budget, account, spent, _count in rows:
        allocated = float(budget.allocated_amount or 0)
        spent_f = float(spent or 0)
        total_budget += allocated
        total_spent += spent_f
        if spent_f > allocated:
            over_budget += 1

        bucket = by_type[budget.expense_type or account.expense_type or "Unspecified"]
        bucket["allocated"] += allocated
        bucket["spent"] += spent_f
        bucket["count"] += 1

    status_counts = dict(
        db.query(PRF.status, func.count(PRF.id))
        .filter(prf_year() == year)
        .group_by(PRF.status)
        .all()
    )

    logger.debug(
        "get_dashboard: year=%d budgets=%d prf_statuses=%d", year, len(rows), len(status_counts)
    )
    return DashboardResponse(
        fiscal_year=year,
        budget=DashboardBudget(
            total_budget=total_budget,
            total_spent=total_spent,
            total_remaining=total_budget - total_spent,
            overall_utilization=utilization_pct(total_spent, total_budget),
            total_budget_items=len(rows),
            over_budget_count=over_budget,
        ),
        prfs=DashboardPRFs(
            total_prfs=sum(status_counts.values()),
            approved_prfs=sum(status_counts.get(s, 0) for s in UTILIZING_STATUSES),
            pending_prfs=sum(status_counts.get(s, 0) for s in PENDING_STATUSES),
            rejected_prfs=status_counts.get("Rejected", 0),
        ),
        expense_breakdown=[
            ExpenseBreakdownItem(
                expense_type=expense_type,
                total_allocated=b["allocated"],
                total_spent=b["spent"],
                budget_count=b["count"],
                utilization=utilization_pct(b["spent"], b["allocated"]),
            )
            for expense_type, b in sorted(by_type.items())
        ],
    )


# ---------------------------------------------------------------------------
# Utilization by category
# ---------------------------------------------------------------------------


def get_utilization_report(
    db: Session, fiscal_year: int | None = None
) -> list[UtilizationReportRow]:
    """Allocation and spend grouped by account category and expense type."""
    year = _year_or_current(fiscal_year)
    groups: dict[tuple[str, str], dict[str, Any]] = defaultdict(
        lambda: {"allocated": 0.0, "spent": 0.0, "count": 0}
    )
    for budget, account, spent, _count in _rows_for_year(db, year):
        key = (
            account.category or "Uncategorized",
            budget.expense_type or account.expense_type or "Unspecified",
        )
        groups[key]["allocated"] += float(budget.allocated_amount or 0)
        groups[key]["spent"] += float(spent or 0)
        groups[key]["count"] += 1

    result = [
        UtilizationReportRow(
            category=category,
            expense_type=expense_type,
            total_allocated=g["allocated"],
            total_spent=g["spent"],
            utilization_percentage=utilization_pct(g["spent"], g["allocated"]),
            budget_count=g["count"],
        )
        for (category, expense_type), g in groups.items()
    ]
    result.sort(key=lambda r: (-r.total_allocated, r.category, r.expense_type))
    return result


# ---------------------------------------------------------------------------
# Unallocated budgets
# ---------------------------------------------------------------------------


def _reason_type(allocated: float, department: str | None) -> str:
    if allocated <= 0:
        return "Zero Allocation"
    if department and department != IT_DEPARTMENT:
        return "Non-IT Department"
    return "Other"


def get_unallocated(db: Session, fiscal_year: int | None = None) -> UnallocatedBudgetResponse:
    """Budgets with nothing allocated or owned by a non-IT department.

    Sorted by spend, highest first.
    """
    year = _year_or_current(fiscal_year)

    budgets: list[UnallocatedBudget] = []
    for budget, account, spent, _count in _rows_for_year(db, year):
        allocated = float(budget.allocated_amount or 0)
        reason = _reason_type(allocated, account.department)
        if reason == "Other":
            continue
        budgets.append(
            UnallocatedBudget(
                budget_id=budget.id,
                purchase_cost_code=account.coa_code,
                coa_code=account.coa_code,
                coa_name=account.coa_name,
                category=account.category,
                department=account.department,
                expense_type=budget.expense_type or account.expense_type,
                allocated_amount=allocated,
                total_spent=float(spent or 0),
                reason_type=reason,
            )
        )
    budgets.sort(key=lambda b: b.total_spent, reverse=True)

    zero = [b for b in budgets if b.reason_type == "Zero Allocation"]
    non_it = [b for b in budgets if b.reason_type == "Non-IT Department"]
    summary = UnallocatedBudgetSummary(
        zero_allocation_count=len(zero),
        non_it_count=len(non_it),
        zero_allocation_spent=sum(b.total_spent for b in zero),
        non_it_budget=sum(b.allocated_amount for b in non_it),
        non_it_spent=sum(b.total_spent for b in non_it),
        total_items=len(budgets),
    )

    logger.debug(
        "get_unallocated: year=%d zero=%d non_it=%d", year, len(zero), len(non_it)
    )
    return UnallocatedBudgetResponse(fiscal_year=year, budgets=budgets, summary=summary)
