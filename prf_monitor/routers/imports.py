"""
Bulk PRF import router.

Mounts under ``/api/import`` (prefix set in ``main.py``).

Rows are posted as JSON objects keyed by the spreadsheet column headers.
Validation and import require ``ADMIN`` or ``DOCCON``; the template and
the history are readable by every authenticated user.

Endpoints
---------
POST /prf/validate   — Validate rows without importing.
POST /prf/bulk       — Validate and import rows.
GET  /prf/template   — Headers, sample row and column instructions.
GET  /prf/history    — Paginated import audit log.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from prf_monitor.database import get_db
from prf_monitor.models.user import AppUser
from prf_monitor.schemas.common import PaginationParams
from prf_monitor.schemas.prf_import import (
    BulkPRFImportRequest,
    ImportHistoryResponse,
    ImportTemplate,
    ImportValidationReport,
    PRFImportResult,
)
from prf_monitor.services import import_service
from prf_monitor.services.auth_service import get_current_user, require_role
from prf_monitor.utils.constants import EDITOR_ROLES

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Import"])


# ---------------------------------------------------------------------------
# POST /prf/validate
# ---------------------------------------------------------------------------


@router.post(
    "/prf/validate",
    response_model=ImportValidationReport,
    summary="Validate PRF rows",
    description=(
        "Checks every PRF row (and optional budget row) and returns the "
        "errors and warnings found. Nothing is written. Row numbers follow "
        "the spreadsheet: the first data row is row 2."
    ),
    responses={
        200: {"description": "Validation report."},
        403: {"description": "Insufficient role."},
        422: {"description": "No rows supplied or malformed body."},
    },
)
def validate_prf_rows(
    data: BulkPRFImportRequest,
    current_user: Annotated[AppUser, Depends(require_role(*EDITOR_ROLES))],
) -> ImportValidationReport:
    logger.info(
        "POST /import/prf/validate rows=%d user='%s'", len(data.prf_data), current_user.username
    )
    try:
        return import_service.validate_rows(data)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc


# ---------------------------------------------------------------------------
# POST /prf/bulk
# ---------------------------------------------------------------------------


@router.post(
    "/prf/bulk",
    response_model=PRFImportResult,
    summary="Import PRF rows",
    description=(
        "Validates and imports historical PRF rows. Rows with validation "
        "problems are still imported with defaults; the fixes and issues are "
        "recorded in the PRF notes. Duplicate PRF numbers are skipped, "
        "updated or reported depending on ``skip_duplicates`` and "
        "``update_existing``. Every call is written to the import history."
    ),
    responses={
        200: {"description": "Import summary."},
        403: {"description": "Insufficient role."},
        422: {"description": "No rows supplied or malformed body."},
        500: {"description": "The import record could not be saved."},
    },
)
def import_prf_rows(
    data: BulkPRFImportRequest,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[AppUser, Depends(require_role(*EDITOR_ROLES))],
) -> PRFImportResult:
    """Import PRF rows sent by the spreadsheet upload dialog.

    Raises:
        HTTPException 422: If ``prf_data`` is empty.
        HTTPException 500: If the audit record cannot be committed.
    """
    logger.info(
        "POST /import/prf/bulk rows=%d validate_only=%s user='%s'",
        len(data.prf_data), data.validate_only, current_user.username,
    )
    try:
        return import_service.import_prfs(db, data, current_user)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc
    except RuntimeError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc


# ---------------------------------------------------------------------------
# GET /prf/template
# ---------------------------------------------------------------------------


@router.get(
    "/prf/template",
    response_model=ImportTemplate,
    summary="Import template",
)
def get_template(
    _current_user: Annotated[AppUser, Depends(get_current_user)],
) -> ImportTemplate:
    return import_service.get_template()


# ---------------------------------------------------------------------------
# GET /prf/history
# ---------------------------------------------------------------------------


@router.get(
    "/prf/history",
    response_model=ImportHistoryResponse,
    summary="Import history",
    description="Import audit records, most recent first.",
)
def get_history(
    db: Annotated[Session, Depends(get_db)],
    _current_user: Annotated[AppUser, Depends(get_current_user)],
    page: Annotated[int, Query(description="Page (1-based).", ge=1)] = 1,
    page_size: Annotated[
        int, Query(description="Rows per page (max 200).", ge=1, le=200)
    ] = 20,
    year: Annotated[int | None, Query(ge=2000, le=2100)] = None,
) -> ImportHistoryResponse:
    return import_service.get_history(
        db, PaginationParams(page=page, page_size=page_size), year=year
    )
