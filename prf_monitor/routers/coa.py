"""
Chart of Accounts router.

Mounts under ``/api/coa`` (prefix set in ``main.py``).

All endpoints require a valid JWT token (``get_current_user`` dependency).
Create and update operations require ``ADMIN`` or ``DOCCON``; deletes
require ``ADMIN``.

Endpoints
---------
GET    /                       — Paginated account list.
GET    /hierarchy              — Account tree built from parent links.
GET    /roots                  — Accounts without a parent.
GET    /statistics             — Totals by status, expense type and department.
GET    /code/{coa_code}        — Lookup by account code.
GET    /expense-type/{type}    — Active accounts of one expense type.
GET    /department/{dept}      — Active accounts of one department.
POST   /bulk/import            — Create many accounts (ADMIN | DOCCON).
PUT    /bulk/update            — Same partial update on many accounts (ADMIN | DOCCON).
POST   /bulk/delete            — Soft or hard delete many accounts (ADMIN).
GET    /{id}                   — Account detail.
GET    /{id}/children          — Direct children.
GET    /{id}/usage             — PRF and budget usage of the account.
POST   /                       — Create account (ADMIN | DOCCON).
PUT    /{id}                   — Partial update (ADMIN | DOCCON).
DELETE /{id}                   — Soft delete (ADMIN).
DELETE /{id}/hard              — Permanent delete (ADMIN).
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from prf_monitor.database import get_db
from prf_monitor.models.user import AppUser
from prf_monitor.schemas.coa import (
    COABulkDeleteRequest,
    COABulkImportRequest,
    COABulkImportResult,
    COABulkUpdateRequest,
    COACreate,
    COAFilterParams,
    COAHierarchyNode,
    COAResponse,
    COAStatistics,
    COAUpdate,
    COAUsage,
    ExpenseType,
    COAPageResponse,
)
from prf_monitor.schemas.common import BulkOperationResult, MessageResponse, PaginationParams
from prf_monitor.services import coa_service
from prf_monitor.services.auth_service import get_current_user, require_role
from prf_monitor.utils.constants import EDITOR_ROLES

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chart of Accounts"])


# ---------------------------------------------------------------------------
# Shared dependencies: filter and pagination params
# ---------------------------------------------------------------------------


def _filter_params(
    expense_type: Annotated[
        ExpenseType | None, Query(description="CAPEX or OPEX.")
    ] = None,
    department: Annotated[str | None, Query(max_length=100)] = None,
    is_active: Annotated[
        bool | None,
        Query(description="Active flag; defaults to active accounts only."),
    ] = True,
    parent_id: Annotated[int | None, Query(ge=1)] = None,
    search: Annotated[
        str | None,
        Query(description="Matches code, name or description.", max_length=200),
    ] = None,
) -> COAFilterParams:
    return COAFilterParams(
        expense_type=expense_type,
        department=department,
        is_active=is_active,
        parent_id=parent_id,
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
# Read endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/",
    response_model=COAPageResponse,
    summary="List accounts",
    description=(
        "Paginated list of accounts ordered by code. Inactive accounts are "
        "hidden unless ``is_active=false`` is passed."
    ),
    responses={
        200: {"description": "Page of accounts."},
        401: {"description": "Missing or invalid JWT."},
    },
)
def list_accounts(
    filters: Annotated[COAFilterParams, Depends(_filter_params)],
    pagination: Annotated[PaginationParams, Depends(_pagination_params)],
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> COAPageResponse:
    logger.debug(
        "GET /coa filters=%s page=%d", filters.model_dump(exclude_none=True), pagination.page
    )
    return coa_service.get_table(db, filters, pagination)


@router.get(
    "/hierarchy",
    response_model=list[COAHierarchyNode],
    summary="Account hierarchy",
    description="Active accounts as a tree; each node carries its level and path.",
)
def get_hierarchy(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> list[COAHierarchyNode]:
    return coa_service.get_hierarchy(db)


@router.get(
    "/roots",
    response_model=list[COAResponse],
    summary="Root accounts",
)
def list_roots(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> list[COAResponse]:
    return coa_service.list_roots(db)


@router.get(
    "/statistics",
    response_model=COAStatistics,
    summary="Account statistics",
    description="Totals, active/inactive counts and counts per expense type and department.",
)
def get_statistics(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> COAStatistics:
    return coa_service.get_statistics(db)


@router.get(
    "/code/{coa_code}",
    response_model=COAResponse,
    summary="Account by code",
    responses={404: {"description": "No account with that code."}},
)
def get_by_code(
    coa_code: str,
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> COAResponse:
    logger.debug("GET /coa/code/%s", coa_code)
    return coa_service.get_by_code(db, coa_code)


@router.get(
    "/expense-type/{expense_type}",
    response_model=list[COAResponse],
    summary="Accounts by expense type",
)
def list_by_expense_type(
    expense_type: ExpenseType,
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> list[COAResponse]:
    return coa_service.list_by_expense_type(db, expense_type)


@router.get(
    "/department/{department}",
    response_model=list[COAResponse],
    summary="Accounts by department",
)
def list_by_department(
    department: str,
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> list[COAResponse]:
    return coa_service.list_by_department(db, department)


# ---------------------------------------------------------------------------
# Bulk operations
# ---------------------------------------------------------------------------


@router.post(
    "/bulk/import",
    response_model=COABulkImportResult,
    summary="Bulk create accounts",
    description=(
        "Creates every account whose code does not exist yet; existing codes "
        "are skipped and reported. Requires ADMIN or DOCCON."
    ),
    responses={403: {"description": "Insufficient role."}},
)
def bulk_import(
    data: COABulkImportRequest,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role(*EDITOR_ROLES))],
) -> COABulkImportResult:
    logger.info(
        "POST /coa/bulk/import accounts=%d user=%s", len(data.accounts), current_user.username
    )
    return coa_service.bulk_import(db, data)


@router.put(
    "/bulk/update",
    response_model=BulkOperationResult,
    summary="Bulk update accounts",
    description=(
        "Applies the same partial update to every listed account. ``coa_code`` "
        "cannot be changed in bulk. Requires ADMIN or DOCCON."
    ),
    responses={
        400: {"description": "Empty id list, no fields, or a code change."},
        403: {"description": "Insufficient role."},
    },
)
def bulk_update(
    data: COABulkUpdateRequest,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role(*EDITOR_ROLES))],
) -> BulkOperationResult:
    logger.info("PUT /coa/bulk/update ids=%d user=%s", len(data.ids), current_user.username)
    return coa_service.bulk_update(db, data)


@router.post(
    "/bulk/delete",
    response_model=BulkOperationResult,
    summary="Bulk delete accounts",
    description="Soft-deletes (or, with ``hard=true``, removes) many accounts. Requires ADMIN.",
    responses={
        400: {"description": "Empty id list."},
        403: {"description": "Insufficient role."},
    },
)
def bulk_delete(
    data: COABulkDeleteRequest,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role("ADMIN"))],
) -> BulkOperationResult:
    logger.info(
        "POST /coa/bulk/delete ids=%d hard=%s user=%s",
        len(data.ids), data.hard, current_user.username,
    )
    return coa_service.bulk_delete(db, data)


# ---------------------------------------------------------------------------
# Single-account endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/{coa_id}",
    response_model=COAResponse,
    summary="Account detail",
    responses={
        200: {"description": "Account found."},
        401: {"description": "Missing or invalid JWT."},
        404: {"description": "Account not found."},
    },
)
def get_detail(
    coa_id: int,
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> COAResponse:
    logger.debug("GET /coa/%d", coa_id)
    return coa_service.get_detail(db, coa_id)


@router.get(
    "/{coa_id}/children",
    response_model=list[COAResponse],
    summary="Child accounts",
    responses={404: {"description": "Account not found."}},
)
def list_children(
    coa_id: int,
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> list[COAResponse]:
    return coa_service.list_children(db, coa_id)


@router.get(
    "/{coa_id}/usage",
    response_model=COAUsage,
    summary="Account usage",
    description=(
        "Number of PRFs charged to the account (by cost code, or by ``coa_id`` "
        "when the PRF has no cost code), their approved total, and the "
        "number and total of budgets."
    ),
    responses={404: {"description": "Account not found."}},
)
def get_usage(
    coa_id: int,
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> COAUsage:
    return coa_service.get_usage(db, coa_id)


@router.post(
    "/",
    response_model=COAResponse,
    status_code=201,
    summary="Create account",
    description="Creates an account. The code must be unique. Requires ADMIN or DOCCON.",
    responses={
        201: {"description": "Account created."},
        403: {"description": "Insufficient role."},
        409: {"description": "Account code already exists."},
        422: {"description": "Unknown parent or invalid payload."},
    },
)
def create_account(
    data: COACreate,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role(*EDITOR_ROLES))],
) -> COAResponse:
    """Create a new account.

    Raises:
        HTTPException 409: If ``coa_code`` is taken.
        HTTPException 422: If ``parent_coa_id`` does not exist.
    """
    logger.info("POST /coa code='%s' user=%s", data.coa_code, current_user.username)
    account = coa_service.create_account(db, data)
    return coa_service.get_detail(db, account.id)


@router.put(
    "/{coa_id}",
    response_model=COAResponse,
    summary="Update account",
    description="Partial update; only fields present in the body change. Requires ADMIN or DOCCON.",
    responses={
        403: {"description": "Insufficient role."},
        404: {"description": "Account not found."},
        409: {"description": "New code collides with another account."},
        422: {"description": "Invalid parent (unknown, self or cycle)."},
    },
)
def update_account(
    coa_id: int,
    data: COAUpdate,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role(*EDITOR_ROLES))],
) -> COAResponse:
    logger.info("PUT /coa/%d user=%s", coa_id, current_user.username)
    coa_service.update_account(db, coa_id, data)
    return coa_service.get_detail(db, coa_id)


@router.delete(
    "/{coa_id}",
    response_model=MessageResponse,
    summary="Deactivate account",
    description="Soft delete: sets ``is_active`` to false. Requires ADMIN.",
    responses={
        403: {"description": "Insufficient role."},
        404: {"description": "Account not found."},
    },
)
def deactivate_account(
    coa_id: int,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role("ADMIN"))],
) -> MessageResponse:
    logger.info("DELETE /coa/%d user=%s", coa_id, current_user.username)
    account = coa_service.deactivate_account(db, coa_id)
    return MessageResponse(message=f"Account '{account.coa_code}' deactivated.")


@router.delete(
    "/{coa_id}/hard",
    response_model=MessageResponse,
    summary="Delete account permanently",
    description=(
        "Removes the account row. Refused while budgets or PRFs reference it. "
        "Requires ADMIN."
    ),
    responses={
        403: {"description": "Insufficient role."},
        404: {"description": "Account not found."},
        409: {"description": "Account is still referenced."},
    },
)
def hard_delete_account(
    coa_id: int,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role("ADMIN"))],
) -> MessageResponse:
    logger.info("DELETE /coa/%d/hard user=%s", coa_id, current_user.username)
    coa_service.hard_delete_account(db, coa_id)
    return MessageResponse(message=f"Account {coa_id} deleted.")
