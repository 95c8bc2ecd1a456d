"""
Budget router.

Mounts under ``/api/budgets`` (prefix set in ``main.py``).

All endpoints require a valid JWT token.  Create, update and utilization
recalculation require ``ADMIN`` or ``DOCCON``; delete requires ``ADMIN``.

Endpoints
---------
GET    /                                      — Paginated budget list.
GET    /cost-codes                            — Cost-code reconciliation summary.
GET    /prf/{prf_id}/cost-codes               — Budget position of a PRF's cost codes.
GET    /alerts                                — Budgets at or above the alert threshold.
GET    /statistics                            — Totals and counts.
GET    /utilization/department/{department}   — Utilization of a department's budgets.
GET    /utilization/summary/{fiscal_year}     — Yearly summary per department.
GET    /account/{coa_id}/year/{fiscal_year}   — Budget of an account in a year.
GET    /{id}                                  — Budget detail.
GET    /{id}/utilization                      — Live utilization of one budget.
POST   /                                      — Create (ADMIN | DOCCON).
PUT    /{id}                                  — Partial update (ADMIN | DOCCON).
POST   /{id}/update-utilization               — Persist recalculated spend (ADMIN | DOCCON).
DELETE /{id}                                  — Delete (ADMIN).
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session

from prf_monitor.config import get_settings
from prf_monitor.database import get_db
from prf_monitor.models.user import AppUser
from prf_monitor.schemas.budget import (
    BudgetAlert,
    BudgetCreate,
    BudgetFilterParams,
    BudgetResponse,
    BudgetStatistics,
    BudgetStatus,
    BudgetUpdate,
    BudgetUtilization,
    CostCodeBudgetResponse,
    CostCodeStatus,
    ExpenseType,
    PRFCostCodeBudget,
    BudgetPageResponse,
    YearlyUtilizationSummary,
)
from prf_monitor.schemas.common import MessageResponse, PaginationParams
from prf_monitor.services import budget_service, reconciliation_service
from prf_monitor.services.auth_service import get_current_user, require_role
from prf_monitor.utils.constants import EDITOR_ROLES

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Budgets"])

_FiscalYear = Annotated[
    int | None,
    Query(description="Fiscal year, e.g. 2025. Omit for all years.", ge=2000, le=2100),
]


# ---------------------------------------------------------------------------
# Shared dependencies: filter and pagination params
# ---------------------------------------------------------------------------


def _filter_params(
    fiscal_year: _FiscalYear = None,
    coa_id: Annotated[int | None, Query(ge=1)] = None,
    department: Annotated[str | None, Query(max_length=100)] = None,
    expense_type: Annotated[ExpenseType | None, Query()] = None,
    status: Annotated[BudgetStatus | None, Query()] = None,
    search: Annotated[
        str | None,
        Query(description="Matches account code or name and budget description.", max_length=200),
    ] = None,
) -> BudgetFilterParams:
    return BudgetFilterParams(
        fiscal_year=fiscal_year,
        coa_id=coa_id,
        department=department,
        expense_type=expense_type,
        status=status,
        search=search,
    )


def _pagination_params(
    page: Annotated[int, Query(description="Page (1-based).", ge=1)] = 1,
    page_size: Annotated[
        int, Query(description="Rows per page (max 200).", ge=1, le=200)
    ] = 20,
) -> PaginationParams:
    return PaginationParams(page=page, page_size=page_size)


# ---------------------------------------------------------------------------
# GET /
# ---------------------------------------------------------------------------


@router.get(
    "/",
    response_model=BudgetPageResponse,
    summary="List budgets",
    description="Paginated list of budgets, newest fiscal year first.",
    responses={
        200: {"description": "Page of budgets."},
        401: {"description": "Missing or invalid JWT."},
    },
)
def list_budgets(
    filters: Annotated[BudgetFilterParams, Depends(_filter_params)],
    pagination: Annotated[PaginationParams, Depends(_pagination_params)],
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> BudgetPageResponse:
    logger.debug(
        "GET /budgets filters=%s page=%d",
        filters.model_dump(exclude_none=True), pagination.page,
    )
    return budget_service.get_table(db, filters, pagination)


# ---------------------------------------------------------------------------
# Cost-code reconciliation
# ---------------------------------------------------------------------------


@router.get(
    "/cost-codes",
    response_model=CostCodeBudgetResponse,
    summary="Cost-code budget summary",
    description=(
        "One row per PRF purchase cost code with its matching account's "
        "allocation, requested/approved/actual totals, utilization and "
        "budget status, plus one ``NO_COST_CODE_<code>`` row per budgeted "
        "account that no PRF uses. Sorted by allocation, highest first."
    ),
    responses={
        200: {"description": "Cost-code rows and summary."},
        401: {"description": "Missing or invalid JWT."},
    },
)
def get_cost_codes(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
    fiscal_year: _FiscalYear = None,
    search: Annotated[str | None, Query(max_length=200)] = None,
    status: Annotated[CostCodeStatus | None, Query()] = None,
) -> CostCodeBudgetResponse:
    logger.debug(
        "GET /budgets/cost-codes fiscal_year=%s search=%s status=%s",
        fiscal_year, search, status,
    )
    return reconciliation_service.get_cost_code_summary(
        db, fiscal_year=fiscal_year, search=search, status_filter=status
    )


@router.get(
    "/prf/{prf_id}/cost-codes",
    response_model=list[PRFCostCodeBudget],
    summary="Budget position of a PRF's cost codes",
    responses={404: {"description": "PRF not found."}},
)
def get_prf_cost_codes(
    prf_id: int,
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> list[PRFCostCodeBudget]:
    return reconciliation_service.get_prf_cost_codes(db, prf_id)


# ---------------------------------------------------------------------------
# Alerts, statistics and utilization views
# ---------------------------------------------------------------------------


@router.get(
    "/alerts",
    response_model=list[BudgetAlert],
    summary="Budget alerts",
    description=(
        "Active budgets whose utilization is at or above ``threshold`` "
        "(default ``BUDGET_ALERT_THRESHOLD``). Over-allocated budgets are "
        "flagged ``Over Budget``; the rest ``Near Limit``."
    ),
)
def get_alerts(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
    threshold: Annotated[float | None, Query(ge=0, le=1000)] = None,
    fiscal_year: _FiscalYear = None,
) -> list[BudgetAlert]:
    effective = threshold if threshold is not None else get_settings().BUDGET_ALERT_THRESHOLD
    logger.debug("GET /budgets/alerts threshold=%.1f fiscal_year=%s", effective, fiscal_year)
    return budget_service.get_alerts(db, effective, fiscal_year)


@router.get(
    "/statistics",
    response_model=BudgetStatistics,
    summary="Budget statistics",
)
def get_statistics(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
    fiscal_year: _FiscalYear = None,
) -> BudgetStatistics:
    return budget_service.get_statistics(db, fiscal_year)


@router.get(
    "/utilization/department/{department}",
    response_model=list[BudgetUtilization],
    summary="Utilization of a department's budgets",
)
def get_department_utilization(
    department: str,
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
    fiscal_year: _FiscalYear = None,
) -> list[BudgetUtilization]:
    return budget_service.get_department_utilization(db, department, fiscal_year)


@router.get(
    "/utilization/summary/{fiscal_year}",
    response_model=YearlyUtilizationSummary,
    summary="Yearly utilization summary",
    description="Allocated, utilized and remaining amounts per department for one year.",
)
def get_yearly_summary(
    fiscal_year: Annotated[int, Path(ge=2000, le=2100)],
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> YearlyUtilizationSummary:
    return budget_service.get_yearly_summary(db, fiscal_year)


@router.get(
    "/account/{coa_id}/year/{fiscal_year}",
    response_model=BudgetResponse,
    summary="Budget of an account in a fiscal year",
    responses={404: {"description": "No budget for that account and year."}},
)
def get_by_account_year(
    coa_id: int,
    fiscal_year: Annotated[int, Path(ge=2000, le=2100)],
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> BudgetResponse:
    return budget_service.get_by_account_year(db, coa_id, fiscal_year)


# ---------------------------------------------------------------------------
# Single-budget endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/{budget_id}",
    response_model=BudgetResponse,
    summary="Budget detail",
    responses={
        200: {"description": "Budget found."},
        401: {"description": "Missing or invalid JWT."},
        404: {"description": "Budget not found."},
    },
)
def get_detail(
    budget_id: int,
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> BudgetResponse:
    logger.debug("GET /budgets/%d", budget_id)
    return budget_service.get_detail(db, budget_id)


@router.get(
    "/{budget_id}/utilization",
    response_model=BudgetUtilization,
    summary="Budget utilization",
    description=(
        "Live spend of one budget: approved or completed PRFs charged to its "
        "account in its fiscal year."
    ),
    responses={
        404: {"description": "Budget not found."},
        422: {"description": "The budget's account no longer exists."},
    },
)
def get_utilization(
    budget_id: int,
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> BudgetUtilization:
    return budget_service.get_utilization(db, budget_id)


@router.post(
    "/",
    response_model=BudgetResponse,
    status_code=201,
    summary="Create budget",
    description=(
        "Creates a budget for an account and fiscal year. Only one budget may "
        "exist per (account, fiscal year). Requires ADMIN or DOCCON."
    ),
    responses={
        201: {"description": "Budget created."},
        403: {"description": "Insufficient role."},
        409: {"description": "A budget already exists for that account and year."},
        422: {"description": "Unknown account or invalid payload."},
    },
)
def create_budget(
    data: BudgetCreate,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role(*EDITOR_ROLES))],
) -> BudgetResponse:
    """Create a new budget.

    Raises:
        HTTPException 409: If the (account, fiscal year) slot is taken.
        HTTPException 422: If ``coa_id`` does not exist.
    """
    logger.info(
        "POST /budgets coa_id=%d fiscal_year=%d allocated=%.2f user=%s",
        data.coa_id, data.fiscal_year, data.allocated_amount, current_user.username,
    )
    budget = budget_service.create_budget(db, data, current_user)
    return budget_service.get_detail(db, budget.id)


@router.put(
    "/{budget_id}",
    response_model=BudgetResponse,
    summary="Update budget",
    description="Partial update; only fields present in the body change. Requires ADMIN or DOCCON.",
    responses={
        403: {"description": "Insufficient role."},
        404: {"description": "Budget not found."},
        409: {"description": "Target (account, fiscal year) slot is taken."},
        422: {"description": "Unknown account or invalid payload."},
    },
)
def update_budget(
    budget_id: int,
    data: BudgetUpdate,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role(*EDITOR_ROLES))],
) -> BudgetResponse:
    logger.info("PUT /budgets/%d user=%s", budget_id, current_user.username)
    budget_service.update_budget(db, budget_id, data)
    return budget_service.get_detail(db, budget_id)


@router.post(
    "/{budget_id}/update-utilization",
    response_model=BudgetResponse,
    summary="Recalculate utilization",
    description=(
        "Recomputes the budget's spend from its PRFs and stores it in "
        "``utilized_amount``. Requires ADMIN or DOCCON."
    ),
    responses={
        403: {"description": "Insufficient role."},
        404: {"description": "Budget not found."},
        422: {"description": "The budget's account no longer exists."},
    },
)
def update_utilization(
    budget_id: int,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role(*EDITOR_ROLES))],
) -> BudgetResponse:
    logger.info("POST /budgets/%d/update-utilization user=%s", budget_id, current_user.username)
    budget_service.recalculate_utilization(db, budget_id)
    return budget_service.get_detail(db, budget_id)


@router.delete(
    "/{budget_id}",
    response_model=MessageResponse,
    summary="Delete budget",
    description="Requires ADMIN.",
    responses={
        403: {"description": "Insufficient role."},
        404: {"description": "Budget not found."},
    },
)
def delete_budget(
    budget_id: int,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role("ADMIN"))],
) -> MessageResponse:
    logger.info("DELETE /budgets/%d user=%s", budget_id, current_user.username)
    budget_service.delete_budget(db, budget_id)
    return MessageResponse(message=f"Budget {budget_id} deleted.")
