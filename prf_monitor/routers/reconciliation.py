"""
Data-quality router for budgets and cost codes.

Mounts under ``/api/reconciliation`` (prefix set in ``main.py``).

Endpoints
---------
GET  /report               — All checks in one response.
GET  /duplicate-budgets    — Budgets sharing an (account, fiscal year).
GET  /orphaned-budgets     — Budgets pointing at a missing account.
GET  /missing-cost-codes   — PRF cost codes with no matching account.
GET  /unused-accounts      — Active accounts with no budget and no PRF.
POST /dedupe-budgets       — Remove duplicate budgets (ADMIN).
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from prf_monitor.database import get_db
from prf_monitor.models.user import AppUser
from prf_monitor.schemas.reports import (
    DedupeResult,
    DuplicateBudgetGroup,
    MissingCostCode,
    OrphanedBudget,
    ReconciliationReport,
    UnusedAccount,
)
from prf_monitor.services import reconciliation_service
from prf_monitor.services.auth_service import get_current_user, require_role

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reconciliation"])


@router.get(
    "/report",
    response_model=ReconciliationReport,
    summary="Reconciliation report",
    description="Runs every data-quality check and returns the findings with an issue count.",
)
def get_report(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> ReconciliationReport:
    return reconciliation_service.get_reconciliation_report(db)


@router.get(
    "/duplicate-budgets",
    response_model=list[DuplicateBudgetGroup],
    summary="Duplicate budgets",
)
def get_duplicate_budgets(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> list[DuplicateBudgetGroup]:
    return reconciliation_service.find_duplicate_budgets(db)


@router.get(
    "/orphaned-budgets",
    response_model=list[OrphanedBudget],
    summary="Orphaned budgets",
)
def get_orphaned_budgets(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> list[OrphanedBudget]:
    return reconciliation_service.find_orphaned_budgets(db)


@router.get(
    "/missing-cost-codes",
    response_model=list[MissingCostCode],
    summary="PRF cost codes without an account",
)
def get_missing_cost_codes(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> list[MissingCostCode]:
    return reconciliation_service.find_missing_cost_codes(db)


@router.get(
    "/unused-accounts",
    response_model=list[UnusedAccount],
    summary="Unused accounts",
)
def get_unused_accounts(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> list[UnusedAccount]:
    return reconciliation_service.find_unused_accounts(db)


@router.post(
    "/dedupe-budgets",
    response_model=DedupeResult,
    summary="Remove duplicate budgets",
    description=(
        "Keeps one budget per (account, fiscal year) and deletes the rest. "
        "Runs as a dry run unless ``apply=true``. Requires ADMIN."
    ),
    responses={403: {"description": "Insufficient role."}},
)
def dedupe_budgets(
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role("ADMIN"))],
    apply: Annotated[bool, Query(description="Delete the duplicates.")] = False,
) -> DedupeResult:
    logger.info("POST /reconciliation/dedupe-budgets apply=%s user=%s", apply, current_user.username)
    return reconciliation_service.dedupe_budgets(db, dry_run=not apply)
