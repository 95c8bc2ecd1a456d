"""
Budget service layer.

All database access for the ``/api/budgets`` endpoints lives here, except
the cost-code reconciliation queries which live in
``reconciliation_service`` and are only re-exposed by the router.

Design notes
------------
- One budget per ``(coa_id, fiscal_year)``: creates and updates that would
  produce a second row for the same slot are refused with HTTP 409.
- Spend is always computed live from PRFs (``budget_spend_query``); the
  stored ``utilized_amount`` column is a cache refreshed by
  ``recalculate_utilization``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from prf_monitor.models.budget import Budget
from prf_monitor.models.chart_of_accounts import ChartOfAccounts
from prf_monitor.models.prf import PRF
from prf_monitor.models.user import AppUser
from prf_monitor.schemas.budget import (
    BudgetAlert,
    BudgetCreate,
    BudgetFilterParams,
    BudgetResponse,
    BudgetStatistics,
    BudgetUpdate,
    BudgetUtilization,
    DepartmentUtilization,
    BudgetPageResponse,
    YearlyUtilizationSummary,
)
from prf_monitor.schemas.common import PaginationParams
from prf_monitor.services.reconciliation_service import (
    budget_spend_query,
    prf_matches_account,
    prf_year,
    utilization_level,
    utilization_pct,
)
from prf_monitor.utils.constants import LEVEL_CRITICAL_MIN, PENDING_STATUSES, UTILIZING_STATUSES

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _apply_budget_filters(query: Any, filters: BudgetFilterParams) -> Any:
    """Apply ``BudgetFilterParams`` to a query already joined to ChartOfAccounts."""
    if filters.fiscal_year is not None:
        query = query.filter(Budget.fiscal_year == filters.fiscal_year)
    if filters.coa_id is not None:
        query = query.filter(Budget.coa_id == filters.coa_id)
    if filters.department is not None:
        query = query.filter(Budget.department == filters.department)
    if filters.expense_type is not None:
        query = query.filter(Budget.expense_type == filters.expense_type)
    if filters.status is not None:
        query = query.filter(Budget.status == filters.status)
    if filters.search:
        pattern = f"%{filters.search.strip()}%"
        query = query.filter(
            or_(
                ChartOfAccounts.coa_code.ilike(pattern),
                ChartOfAccounts.coa_name.ilike(pattern),
                Budget.description.ilike(pattern),
            )
        )
    return query


def _build_response(row: Budget, account: ChartOfAccounts | None = None) -> BudgetResponse:
    """Construct a ``BudgetResponse`` from the stored amounts of a budget."""
    account = account if account is not None else row.account
    allocated = float(row.allocated_amount or 0)
    utilized = float(row.utilized_amount or 0)
    return BudgetResponse(
        id=row.id,
        coa_id=row.coa_id,
        coa_code=account.coa_code if account is not None else None,
        coa_name=account.coa_name if account is not None else None,
        fiscal_year=row.fiscal_year,
        quarter=row.quarter,
        month=row.month,
        allocated_amount=allocated,
        utilized_amount=utilized,
        remaining_amount=allocated - utilized,
        utilization_percentage=utilization_pct(utilized, allocated),
        department=row.department,
        budget_type=row.budget_type,
        expense_type=row.expense_type,
        start_date=row.start_date,
        end_date=row.end_date,
        status=row.status,
        description=row.description,
        notes=row.notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _get_or_404(db: Session, budget_id: int) -> Budget:
    budget: Budget | None = db.query(Budget).filter(Budget.id == budget_id).first()
    if budget is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Budget with ID {budget_id} not found.",
        )
    return budget


def _ensure_account(db: Session, coa_id: int) -> ChartOfAccounts:
    account = db.query(ChartOfAccounts).filter(ChartOfAccounts.id == coa_id).first()
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Account with ID {coa_id} does not exist.",
        )
    return account


def _spend_row(db: Session, budget_id: int) -> tuple[Budget, ChartOfAccounts, Any, int]:
    """Return the ``budget_spend_query`` row of one budget.

    Raises:
        HTTPException 404: Budget not found.
        HTTPException 422: The budget points at an account that no longer exists.
    """
    budget = _get_or_404(db, budget_id)
    row = budget_spend_query(db).filter(Budget.id == budget_id).one_or_none()
    if row is None:
        logger.warning("orphaned budget: id=%d coa_id=%s", budget_id, budget.coa_id)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Budget {budget_id} references account {budget.coa_id}, which does not exist.",
        )
    return row


def _ensure_free_slot(
    db: Session, coa_id: int, fiscal_year: int, exclude_id: int | None = None
) -> None:
    q = db.query(Budget.id).filter(Budget.coa_id == coa_id, Budget.fiscal_year == fiscal_year)
    if exclude_id is not None:
        q = q.filter(Budget.id != exclude_id)
    existing = q.first()
    if existing is not None:
        logger.warning(
            "Budget conflict: coa_id=%d fiscal_year=%d already has budget id=%d",
            coa_id, fiscal_year, existing[0],
        )
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"A budget for account {coa_id} and fiscal year {fiscal_year} "
                f"already exists (ID {existing[0]})."
            ),
        )


def _utilization_row(
    db: Session, budget: Budget, account: ChartOfAccounts, spent: float
) -> BudgetUtilization:
    allocated = float(budget.allocated_amount or 0)
    counts = (
        db.query(PRF.status, func.count(PRF.id))
        .select_from(PRF)
        .join(ChartOfAccounts, prf_matches_account())
        .filter(ChartOfAccounts.id == account.id, prf_year() == budget.fiscal_year)
        .group_by(PRF.status)
        .all()
    )
    by_status = {s: int(c) for s, c in counts}
    pct = utilization_pct(spent, allocated)
    return BudgetUtilization(
        budget_id=budget.id,
        coa_id=account.id,
        coa_code=account.coa_code,
        coa_name=account.coa_name,
        fiscal_year=budget.fiscal_year,
        department=budget.department,
        allocated_amount=allocated,
        utilized_amount=spent,
        remaining_amount=allocated - spent,
        utilization_percentage=pct,
        utilization_level=utilization_level(pct),
        total_prfs=sum(by_status.values()),
        approved_prfs=sum(by_status.get(s, 0) for s in UTILIZING_STATUSES),
        pending_prfs=sum(by_status.get(s, 0) for s in PENDING_STATUSES),
    )


def _department_rows(rows: list[Any], fiscal_year: int | None) -> list[DepartmentUtilization]:
    grouped: dict[str, list[float]] = {}
    for budget, account, spent, _count in rows:
        dept = budget.department or account.department or "Unassigned"
        bucket = grouped.setdefault(dept, [0, 0.0, 0.0])
        bucket[0] += 1
        bucket[1] += float(budget.allocated_amount or 0)
        bucket[2] += float(spent or 0)

    return [
        DepartmentUtilization(
            department=dept,
            fiscal_year=fiscal_year,
            budget_count=int(count),
            allocated_amount=allocated,
            utilized_amount=spent,
            remaining_amount=allocated - spent,
            utilization_percentage=utilization_pct(spent, allocated),
        )
        for dept, (count, allocated, spent) in sorted(grouped.items())
    ]


# ---------------------------------------------------------------------------
# Public service functions: read operations
# ---------------------------------------------------------------------------


def get_table(
    db: Session,
    filters: BudgetFilterParams,
    pagination: PaginationParams,
) -> BudgetPageResponse:
    """Return a filtered, paginated budget list (newest fiscal year first)."""
    base_q = (
        db.query(Budget, ChartOfAccounts)
        .join(ChartOfAccounts, Budget.coa_id == ChartOfAccounts.id)
    )
    base_q = _apply_budget_filters(base_q, filters)
    base_q = base_q.order_by(Budget.fiscal_year.desc(), ChartOfAccounts.coa_code)

    total: int = base_q.count()
    page_rows = base_q.offset(pagination.offset).limit(pagination.page_size).all()

    logger.debug(
        "budget get_table: page=%d size=%d total=%d",
        pagination.page, pagination.page_size, total,
    )
    return BudgetPageResponse(
        rows=[_build_response(b, a) for b, a in page_rows],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


def get_detail(db: Session, budget_id: int) -> BudgetResponse:
    return _build_response(_get_or_404(db, budget_id))


def get_by_account_year(db: Session, coa_id: int, fiscal_year: int) -> BudgetResponse:
    budget: Budget | None = (
        db.query(Budget)
        .filter(Budget.coa_id == coa_id, Budget.fiscal_year == fiscal_year)
        .order_by(Budget.id)
        .first()
    )
    if budget is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No budget for account {coa_id} in fiscal year {fiscal_year}.",
        )
    return _build_response(budget)


def get_utilization(db: Session, budget_id: int) -> BudgetUtilization:
    """Live spend of a single budget from the PRFs charged to its account and year."""
    budget, account, spent, _count = _spend_row(db, budget_id)
    return _utilization_row(db, budget, account, float(spent or 0))


def get_department_utilization(
    db: Session, department: str, fiscal_year: int | None = None
) -> list[BudgetUtilization]:
    q = budget_spend_query(db).filter(Budget.department == department)
    if fiscal_year is not None:
        q = q.filter(Budget.fiscal_year == fiscal_year)
    rows = q.order_by(Budget.fiscal_year.desc(), ChartOfAccounts.coa_code).all()
    return [_utilization_row(db, b, a, float(s or 0)) for b, a, s, _c in rows]


def get_yearly_summary(db: Session, fiscal_year: int) -> YearlyUtilizationSummary:
    rows = budget_spend_query(db).filter(Budget.fiscal_year == fiscal_year).all()
    departments = _department_rows(rows, fiscal_year)
    allocated = sum(d.allocated_amount for d in departments)
    spent = sum(d.utilized_amount for d in departments)

    logger.debug(
        "get_yearly_summary: year=%d budgets=%d departments=%d",
        fiscal_year, len(rows), len(departments),
    )
    return YearlyUtilizationSummary(
        fiscal_year=fiscal_year,
        allocated_amount=allocated,
        utilized_amount=spent,
        remaining_amount=allocated - spent,
        utilization_percentage=utilization_pct(spent, allocated),
        departments=departments,
    )


def get_alerts(
    db: Session,
    threshold: float,
    fiscal_year: int | None = None,
) -> list[BudgetAlert]:
    """Active budgets whose live spend is over budget or at/above *threshold* percent.

    Sorted by utilization, highest first.
    """
    q = budget_spend_query(db).filter(Budget.status == "Active")
    if fiscal_year is not None:
        q = q.filter(Budget.fiscal_year == fiscal_year)

    alerts: list[BudgetAlert] = []
    for budget, account, spent, _count in q.all():
        allocated = float(budget.allocated_amount or 0)
        spent = float(spent or 0)
        pct = utilization_pct(spent, allocated)
        if spent > allocated:
            alert_type = "Over Budget"
        elif allocated > 0 and pct >= threshold:
            alert_type = "Near Limit"
        else:
            continue
        alerts.append(
            BudgetAlert(
                budget_id=budget.id,
                coa_id=account.id,
                coa_code=account.coa_code,
                coa_name=account.coa_name,
                department=budget.department,
                fiscal_year=budget.fiscal_year,
                allocated_amount=allocated,
                utilized_amount=spent,
                utilization_percentage=pct,
                alert_type=alert_type,
                utilization_level=utilization_level(pct),
            )
        )

    alerts.sort(key=lambda a: a.utilization_percentage, reverse=True)
    logger.debug("get_alerts: threshold=%.1f alerts=%d", threshold, len(alerts))
    return alerts


def get_statistics(db: Session, fiscal_year: int | None = None) -> BudgetStatistics:
    q = budget_spend_query(db)
    if fiscal_year is not None:
        q = q.filter(Budget.fiscal_year == fiscal_year)
    rows = q.all()

    total_allocated = 0.0
    total_spent = 0.0
    pct_sum = 0.0
    over_budget = 0
    near_limit = 0
    for budget, _account, spent, _count in rows:
        allocated = float(budget.allocated_amount or 0)
        spent = float(spent or 0)
        pct = utilization_pct(spent, allocated)
        total_allocated += allocated
        total_spent += spent
        pct_sum += pct
        if spent > allocated:
            over_budget += 1
        if allocated > 0 and pct >= LEVEL_CRITICAL_MIN:
            near_limit += 1

    return BudgetStatistics(
        fiscal_year=fiscal_year,
        total_budgets=len(rows),
        total_allocated=total_allocated,
        total_utilized=total_spent,
        total_remaining=total_allocated - total_spent,
        avg_utilization_percentage=round(pct_sum / len(rows), 2) if rows else 0.0,
        over_budget_count=over_budget,
        near_limit_count=near_limit,
    )


# ---------------------------------------------------------------------------
# Public service functions: write operations
# ---------------------------------------------------------------------------


def create_budget(db: Session, data: BudgetCreate, current_user: AppUser) -> Budget:
    """Create a budget for an account and fiscal year.

    Department and expense type default to the account's values.

    Raises:
        HTTPException 422: If ``coa_id`` does not exist.
        HTTPException 409: If the account already has a budget for the year.
    """
    account = _ensure_account(db, data.coa_id)
    _ensure_free_slot(db, data.coa_id, data.fiscal_year)

    values = data.model_dump()
    if values["department"] is None:
        values["department"] = account.department
    if values["expense_type"] is None:
        values["expense_type"] = account.expense_type

    budget = Budget(**values, created_by=current_user.id)
    db.add(budget)
    db.commit()
    db.refresh(budget)

    logger.info(
        "create_budget: id=%d coa=%s year=%d allocated=%.2f",
        budget.id, account.coa_code, budget.fiscal_year, float(budget.allocated_amount),
    )
    return budget


def update_budget(db: Session, budget_id: int, data: BudgetUpdate) -> Budget:
    """Apply a partial update to a budget.

    Raises:
        HTTPException 404: Budget not found.
        HTTPException 422: New ``coa_id`` does not exist.
        HTTPException 409: The new ``(coa_id, fiscal_year)`` slot is taken.
    """
    budget = _get_or_404(db, budget_id)
    update_data = data.model_dump(exclude_unset=True)

    if update_data.get("coa_id") is not None:
        _ensure_account(db, update_data["coa_id"])
    if "coa_id" in update_data or "fiscal_year" in update_data:
        _ensure_free_slot(
            db,
            update_data.get("coa_id") or budget.coa_id,
            update_data.get("fiscal_year") or budget.fiscal_year,
            exclude_id=budget_id,
        )

    for field, value in update_data.items():
        setattr(budget, field, value)

    if budget.start_date and budget.end_date and budget.end_date < budget.start_date:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_date must not be earlier than start_date.",
        )

    db.commit()
    db.refresh(budget)

    logger.info("update_budget: id=%d fields=%s", budget_id, list(update_data.keys()))
    return budget


def delete_budget(db: Session, budget_id: int) -> None:
    budget = _get_or_404(db, budget_id)
    db.delete(budget)
    db.commit()
    logger.info("delete_budget: id=%d", budget_id)


def recalculate_utilization(db: Session, budget_id: int) -> Budget:
    """Store the live PRF spend in ``utilized_amount``."""
    budget, _account, spent, _count = _spend_row(db, budget_id)
    budget.utilized_amount = spent or 0
    db.commit()
    db.refresh(budget)

    logger.info(
        "recalculate_utilization: id=%d utilized=%.2f",
        budget_id, float(budget.utilized_amount),
    )
    return budget
