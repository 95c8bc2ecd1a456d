"""
Reports router.

Mounts under ``/api/reports`` (prefix set in ``main.py``).  Read-only;
every authenticated user may call it.  ``fiscal_year`` defaults to the
current year.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from prf_monitor.database import get_db
from prf_monitor.models.user import AppUser
from prf_monitor.schemas.reports import (
    DashboardResponse,
    UnallocatedBudgetResponse,
    UtilizationReportRow,
)
from prf_monitor.services import report_service
from prf_monitor.services.auth_service import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reports"])

_FiscalYear = Annotated[
    int | None,
    Query(description="Fiscal year; defaults to the current year.", ge=2000, le=2100),
]


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Dashboard metrics",
    description=(
        "Budget totals and utilization, PRF counts by state and an "
        "expense-type breakdown for one fiscal year."
    ),
    responses={
        200: {"description": "Dashboard metrics."},
        401: {"description": "Missing or invalid JWT."},
    },
)
def get_dashboard(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
    fiscal_year: _FiscalYear = None,
) -> DashboardResponse:
    logger.debug("GET /reports/dashboard fiscal_year=%s", fiscal_year)
    return report_service.get_dashboard(db, fiscal_year)


@router.get(
    "/utilization",
    response_model=list[UtilizationReportRow],
    summary="Utilization by category",
    description="Allocation, spend and utilization grouped by category and expense type.",
)
def get_utilization(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
    fiscal_year: _FiscalYear = None,
) -> list[UtilizationReportRow]:
    return report_service.get_utilization_report(db, fiscal_year)


@router.get(
    "/unallocated-budgets",
    response_model=UnallocatedBudgetResponse,
    summary="Budgets without a usable allocation",
    description=(
        "Budgets with a zero allocation (``Zero Allocation``) or owned by a "
        "department other than IT (``Non-IT Department``), with a summary."
    ),
)
def get_unallocated(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
    fiscal_year: _FiscalYear = None,
) -> UnallocatedBudgetResponse:
    return report_service.get_unallocated(db, fiscal_year)
