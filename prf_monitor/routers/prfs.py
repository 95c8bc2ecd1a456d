"""
PRF (purchase request) router.

Mounts under ``/api/prfs`` (prefix set in ``main.py``).

All endpoints require a valid JWT token.  Create and update operations
(PRFs and items) require ``ADMIN`` or ``DOCCON``; deletes require ``ADMIN``.

Endpoints
---------
GET    /                       — Paginated PRF list.
GET    /with-items             — Same list with items; search also covers items.
GET    /statistics             — Counts, totals and average processing time.
GET    /filters/status         — Distinct status values in use.
GET    /prfno/{prf_no}         — Lookup by PRF number.
DELETE /bulk                   — Delete many PRFs (ADMIN).
PUT    /items/{item_id}        — Update an item (ADMIN | DOCCON).
DELETE /items/{item_id}        — Delete an item (ADMIN).
GET    /{id}                   — PRF detail.
GET    /{id}/items             — Items of a PRF.
POST   /{id}/items             — Add items (ADMIN | DOCCON).
POST   /                       — Create PRF (ADMIN | DOCCON).
PUT    /{id}                   — Partial update with status cascade (ADMIN | DOCCON).
DELETE /{id}                   — Delete PRF and its items (ADMIN).
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from prf_monitor.database import get_db
from prf_monitor.models.user import AppUser
from prf_monitor.schemas.common import BulkIdsRequest, MessageResponse, PaginationParams
from prf_monitor.schemas.prf import (
    Priority,
    PRFBulkDeleteResult,
    PRFCreate,
    PRFFilterParams,
    PRFItemCreate,
    PRFItemResponse,
    PRFItemUpdate,
    PRFResponse,
    PRFStatistics,
    PRFUpdate,
    PRFPageResponse,
)
from prf_monitor.services import prf_service
from prf_monitor.services.auth_service import get_current_user, require_role
from prf_monitor.utils.constants import EDITOR_ROLES

logger = logging.getLogger(__name__)

router = APIRouter(tags=["PRFs"])


# ---------------------------------------------------------------------------
# Shared dependencies: filter and pagination params
# ---------------------------------------------------------------------------


def _filter_params(
    status: Annotated[str | None, Query(max_length=50)] = None,
    department: Annotated[str | None, Query(max_length=100)] = None,
    priority: Annotated[Priority | None, Query()] = None,
    requestor_id: Annotated[int | None, Query(ge=1)] = None,
    coa_id: Annotated[int | None, Query(ge=1)] = None,
    date_from: Annotated[date | None, Query(description="Earliest request date.")] = None,
    date_to: Annotated[date | None, Query(description="Latest request date.")] = None,
    search: Annotated[
        str | None,
        Query(
            description=(
                "Matches PRF number, title, summary, submitter or purpose."
            ),
            max_length=200,
        ),
    ] = None,
) -> PRFFilterParams:
    return PRFFilterParams(
        status=status,
        department=department,
        priority=priority,
        requestor_id=requestor_id,
        coa_id=coa_id,
        date_from=date_from,
        date_to=date_to,
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
# List endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/",
    response_model=PRFPageResponse,
    summary="List PRFs",
    description="Paginated PRF list ordered by request date, newest first.",
    responses={
        200: {"description": "Page of PRFs."},
        401: {"description": "Missing or invalid JWT."},
    },
)
def list_prfs(
    filters: Annotated[PRFFilterParams, Depends(_filter_params)],
    pagination: Annotated[PaginationParams, Depends(_pagination_params)],
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> PRFPageResponse:
    logger.debug(
        "GET /prfs filters=%s page=%d",
        filters.model_dump(exclude_none=True), pagination.page,
    )
    return prf_service.get_table(db, filters, pagination)


@router.get(
    "/with-items",
    response_model=PRFPageResponse,
    summary="List PRFs with items",
    description=(
        "Same as the PRF list but every row carries its items, and ``search`` "
        "also matches item names and descriptions."
    ),
)
def list_prfs_with_items(
    filters: Annotated[PRFFilterParams, Depends(_filter_params)],
    pagination: Annotated[PaginationParams, Depends(_pagination_params)],
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> PRFPageResponse:
    return prf_service.get_table(db, filters, pagination, with_items=True)


@router.get(
    "/statistics",
    response_model=PRFStatistics,
    summary="PRF statistics",
    description=(
        "Counts by workflow state, requested and approved totals and the "
        "average days from request to approval. Covers the last 365 days, "
        "or one fiscal year when ``fiscal_year`` is given."
    ),
)
def get_statistics(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
    fiscal_year: Annotated[int | None, Query(ge=2000, le=2100)] = None,
) -> PRFStatistics:
    return prf_service.get_statistics(db, fiscal_year)


@router.get(
    "/filters/status",
    response_model=list[str],
    summary="Status values in use",
)
def list_statuses(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> list[str]:
    return prf_service.list_statuses(db)


@router.get(
    "/prfno/{prf_no}",
    response_model=PRFResponse,
    summary="PRF by number",
    responses={404: {"description": "No PRF with that number."}},
)
def get_by_prf_no(
    prf_no: str,
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> PRFResponse:
    logger.debug("GET /prfs/prfno/%s", prf_no)
    return prf_service.get_by_prf_no(db, prf_no)


@router.delete(
    "/bulk",
    response_model=PRFBulkDeleteResult,
    summary="Bulk delete PRFs",
    description=(
        "Deletes every listed PRF together with its items. Unknown ids are "
        "reported in ``errors``. Requires ADMIN."
    ),
    responses={
        400: {"description": "Empty id list."},
        403: {"description": "Insufficient role."},
    },
)
def bulk_delete(
    data: BulkIdsRequest,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role("ADMIN"))],
) -> PRFBulkDeleteResult:
    logger.info("DELETE /prfs/bulk ids=%d user=%s", len(data.ids), current_user.username)
    return prf_service.bulk_delete(db, data.ids)


# ---------------------------------------------------------------------------
# Item endpoints addressed by item id
# ---------------------------------------------------------------------------


@router.put(
    "/items/{item_id}",
    response_model=PRFItemResponse,
    summary="Update PRF item",
    description=(
        "Partial item update. Setting ``status`` marks the item as manually "
        "overridden; ``status_overridden=false`` re-applies the PRF status. "
        "Requires ADMIN or DOCCON."
    ),
    responses={
        403: {"description": "Insufficient role."},
        404: {"description": "Item not found."},
    },
)
def update_item(
    item_id: int,
    data: PRFItemUpdate,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role(*EDITOR_ROLES))],
) -> PRFItemResponse:
    logger.info("PUT /prfs/items/%d user=%s", item_id, current_user.username)
    return prf_service.update_item(db, item_id, data)


@router.delete(
    "/items/{item_id}",
    response_model=MessageResponse,
    summary="Delete PRF item",
    description="Requires ADMIN.",
    responses={
        403: {"description": "Insufficient role."},
        404: {"description": "Item not found."},
    },
)
def delete_item(
    item_id: int,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role("ADMIN"))],
) -> MessageResponse:
    logger.info("DELETE /prfs/items/%d user=%s", item_id, current_user.username)
    prf_service.delete_item(db, item_id)
    return MessageResponse(message=f"Item {item_id} deleted.")


# ---------------------------------------------------------------------------
# Single-PRF endpoints
# ---------------------------------------------------------------------------


@router.get(
    "/{prf_id}",
    response_model=PRFResponse,
    summary="PRF detail",
    responses={
        200: {"description": "PRF found."},
        401: {"description": "Missing or invalid JWT."},
        404: {"description": "PRF not found."},
    },
)
def get_detail(
    prf_id: int,
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
    include_items: Annotated[bool, Query(description="Embed the PRF items.")] = True,
) -> PRFResponse:
    logger.debug("GET /prfs/%d include_items=%s", prf_id, include_items)
    return prf_service.get_detail(db, prf_id, with_items=include_items)


@router.get(
    "/{prf_id}/items",
    response_model=list[PRFItemResponse],
    summary="PRF items",
    responses={404: {"description": "PRF not found."}},
)
def get_items(
    prf_id: int,
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> list[PRFItemResponse]:
    return prf_service.get_items(db, prf_id)


@router.post(
    "/{prf_id}/items",
    response_model=list[PRFItemResponse],
    status_code=201,
    summary="Add PRF items",
    description=(
        "Appends items to a PRF. ``total_price`` is computed from quantity and "
        "unit price; the status follows the PRF's current status. "
        "Requires ADMIN or DOCCON."
    ),
    responses={
        400: {"description": "Empty item list."},
        403: {"description": "Insufficient role."},
        404: {"description": "PRF not found."},
    },
)
def add_items(
    prf_id: int,
    items: list[PRFItemCreate],
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role(*EDITOR_ROLES))],
) -> list[PRFItemResponse]:
    logger.info(
        "POST /prfs/%d/items count=%d user=%s", prf_id, len(items), current_user.username
    )
    return prf_service.add_items(db, prf_id, items)


@router.post(
    "/",
    response_model=PRFResponse,
    status_code=201,
    summary="Create PRF",
    description=(
        "Creates a PRF and, optionally, its items. ``prf_no`` is required and "
        "unique. The requestor defaults to the caller. Requires ADMIN or DOCCON."
    ),
    responses={
        201: {"description": "PRF created."},
        403: {"description": "Insufficient role."},
        409: {"description": "PRF number already exists."},
        422: {"description": "Unknown account or user, or invalid payload."},
    },
)
def create_prf(
    data: PRFCreate,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role(*EDITOR_ROLES))],
) -> PRFResponse:
    """Create a new PRF.

    Raises:
        HTTPException 409: If ``prf_no`` is taken.
        HTTPException 422: If ``coa_id`` or ``requestor_id`` does not exist.
    """
    logger.info(
        "POST /prfs prf_no='%s' amount=%.2f user=%s",
        data.prf_no, data.requested_amount, current_user.username,
    )
    prf = prf_service.create_prf(db, data, current_user)
    return prf_service.get_detail(db, prf.id)


@router.put(
    "/{prf_id}",
    response_model=PRFResponse,
    summary="Update PRF",
    description=(
        "Partial update. A status change is cascaded to every item whose "
        "status was not set by hand. Requires ADMIN or DOCCON."
    ),
    responses={
        403: {"description": "Insufficient role."},
        404: {"description": "PRF not found."},
        409: {"description": "New PRF number collides with another PRF."},
        422: {"description": "Unknown account or user, or invalid payload."},
    },
)
def update_prf(
    prf_id: int,
    data: PRFUpdate,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role(*EDITOR_ROLES))],
) -> PRFResponse:
    logger.info("PUT /prfs/%d user=%s", prf_id, current_user.username)
    prf_service.update_prf(db, prf_id, data, current_user)
    return prf_service.get_detail(db, prf_id)


@router.delete(
    "/{prf_id}",
    response_model=MessageResponse,
    summary="Delete PRF",
    description="Deletes the PRF and its items. Requires ADMIN.",
    responses={
        403: {"description": "Insufficient role."},
        404: {"description": "PRF not found."},
    },
)
def delete_prf(
    prf_id: int,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role("ADMIN"))],
) -> MessageResponse:
    logger.info("DELETE /prfs/%d user=%s", prf_id, current_user.username)
    prf_service.delete_prf(db, prf_id)
    return MessageResponse(message=f"PRF {prf_id} deleted.")
