"""
PRF (purchase request) service layer.

All database access for the ``/api/prfs`` endpoints lives here.

Design notes
------------
- ``prf_no`` is unique; duplicates are refused with HTTP 409.
- A PRF status change cascades to every item whose status was not set by
  hand (``status_overridden = False``) using ``map_item_status``.  PRF
  statuses imported from legacy spreadsheets ("Req. Approved", "On order",
  ...) are mapped too; anything unknown becomes "Pending".
- Item ``total_price`` is always ``quantity * unit_price``; it is never
  taken from the client.
- Generated PRF numbers follow ``PRF-{year}-{seq:04d}`` so that they sort
  lexicographically.
"""

from __future__ import annotations

import datetime
import logging
from decimal import Decimal
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from prf_monitor.models.chart_of_accounts import ChartOfAccounts
from prf_monitor.models.prf import PRF
from prf_monitor.models.prf_item import PRFItem
from prf_monitor.models.user import AppUser
from prf_monitor.schemas.common import PaginationParams
from prf_monitor.schemas.prf import (
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
from prf_monitor.utils.constants import (
    DEFAULT_ITEM_STATUS,
    PENDING_STATUSES,
    PRF_TO_ITEM_STATUS,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Status cascade
# ---------------------------------------------------------------------------


def map_item_status(prf_status: str | None) -> str:
    """Translate a PRF status into the status its items should carry."""
    if not prf_status:
        return DEFAULT_ITEM_STATUS
    if prf_status.strip().lower().startswith("updated:"):
        return DEFAULT_ITEM_STATUS
    return PRF_TO_ITEM_STATUS.get(prf_status.strip(), DEFAULT_ITEM_STATUS)


def _cascade_status(prf: PRF) -> int:
    """Apply the PRF status to non-overridden items; return how many changed."""
    target = map_item_status(prf.status)
    changed = 0
    for item in prf.items:
        if not item.status_overridden and item.status != target:
            item.status = target
            changed += 1
    return changed


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _dec(value: float | int | None) -> Decimal:
    return Decimal(str(value or 0))


def _money(value: Any) -> float | None:
    return float(value) if value is not None else None


def _apply_prf_filters(query: Any, filters: PRFFilterParams, with_items: bool = False) -> Any:
    """Apply ``PRFFilterParams`` to a PRF query.

    When *with_items* is set the free-text search also matches item names
    and descriptions.
    """
    if filters.status is not None:
        query = query.filter(PRF.status == filters.status)
    if filters.department is not None:
        query = query.filter(PRF.department == filters.department)
    if filters.priority is not None:
        query = query.filter(PRF.priority == filters.priority)
    if filters.requestor_id is not None:
        query = query.filter(PRF.requestor_id == filters.requestor_id)
    if filters.coa_id is not None:
        query = query.filter(PRF.coa_id == filters.coa_id)
    if filters.date_from is not None:
        query = query.filter(PRF.request_date >= filters.date_from)
    if filters.date_to is not None:
        query = query.filter(PRF.request_date <= filters.date_to)
    if filters.search:
        pattern = f"%{filters.search.strip()}%"
        clauses = [
            PRF.prf_no.ilike(pattern),
            PRF.title.ilike(pattern),
            PRF.sum_description_requested.ilike(pattern),
            PRF.submit_by.ilike(pattern),
            PRF.required_for.ilike(pattern),
        ]
        if with_items:
            clauses.append(
                PRF.items.any(
                    or_(PRFItem.item_name.ilike(pattern), PRFItem.description.ilike(pattern))
                )
            )
        query = query.filter(or_(*clauses))
    return query


def _build_item_response(item: PRFItem) -> PRFItemResponse:
    return PRFItemResponse.model_validate(item)


def _build_response(row: PRF, include_items: bool = False) -> PRFResponse:
    """Construct a ``PRFResponse`` from a ``PRF`` ORM object.

    Resolves the requestor name and account labels through lazy-loaded
    relationships.
    """
    items = [_build_item_response(i) for i in row.items] if include_items else None
    return PRFResponse(
        id=row.id,
        prf_no=row.prf_no,
        title=row.title,
        description=row.description,
        requestor_id=row.requestor_id,
        requestor_name=(
            row.requestor.full_name or row.requestor.username
            if row.requestor is not None
            else None
        ),
        department=row.department,
        coa_id=row.coa_id,
        coa_code=row.account.coa_code if row.account is not None else None,
        coa_name=row.account.coa_name if row.account is not None else None,
        requested_amount=float(row.requested_amount or 0),
        approved_amount=_money(row.approved_amount),
        actual_amount=_money(row.actual_amount),
        priority=row.priority,
        status=row.status,
        request_date=row.request_date,
        required_date=row.required_date,
        approval_date=row.approval_date,
        completion_date=row.completion_date,
        approved_by=row.approved_by,
        justification=row.justification,
        vendor_name=row.vendor_name,
        vendor_contact=row.vendor_contact,
        notes=row.notes,
        date_submit=row.date_submit,
        submit_by=row.submit_by,
        sum_description_requested=row.sum_description_requested,
        purchase_cost_code=row.purchase_cost_code,
        required_for=row.required_for,
        budget_year=row.budget_year,
        created_at=row.created_at,
        updated_at=row.updated_at,
        items=items,
    )


def _get_or_404(db: Session, prf_id: int) -> PRF:
    prf: PRF | None = db.query(PRF).filter(PRF.id == prf_id).first()
    if prf is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"PRF with ID {prf_id} not found.",
        )
    return prf


def _get_item_or_404(db: Session, item_id: int) -> PRFItem:
    item: PRFItem | None = db.query(PRFItem).filter(PRFItem.id == item_id).first()
    if item is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"PRF item with ID {item_id} not found.",
        )
    return item


def _ensure_unique_prf_no(db: Session, prf_no: str, exclude_id: int | None = None) -> None:
    q = db.query(PRF.id).filter(PRF.prf_no == prf_no)
    if exclude_id is not None:
        q = q.filter(PRF.id != exclude_id)
    if q.first() is not None:
        logger.warning("Duplicate PRF number rejected: %s", prf_no)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"PRF number '{prf_no}' already exists.",
        )


def _ensure_references(
    db: Session, coa_id: int | None = None, user_ids: tuple[int | None, ...] = ()
) -> None:
    if coa_id is not None and not (
        db.query(ChartOfAccounts.id).filter(ChartOfAccounts.id == coa_id).first()
    ):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Account with ID {coa_id} does not exist.",
        )
    for user_id in user_ids:
        if user_id is not None and not db.query(AppUser.id).filter(AppUser.id == user_id).first():
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"User with ID {user_id} does not exist.",
            )


def _new_item(prf_status: str, data: PRFItemCreate) -> PRFItem:
    values = data.model_dump()
    return PRFItem(
        **values,
        total_price=_dec(data.unit_price) * data.quantity,
        status=map_item_status(prf_status),
        status_overridden=False,
    )


def next_prf_no(db: Session, year: int) -> str:
    """Return the next free ``PRF-{year}-{seq:04d}`` number."""
    prefix = f"PRF-{year}-"
    rows = db.query(PRF.prf_no).filter(PRF.prf_no.like(f"{prefix}%")).all()

    max_seq = 0
    for (prf_no,) in rows:
        tail = prf_no[len(prefix):]
        if tail.isdigit():
            max_seq = max(max_seq, int(tail))
    return f"{prefix}{max_seq + 1:04d}"


# ---------------------------------------------------------------------------
# Public service functions: read operations
# ---------------------------------------------------------------------------


def get_table(
    db: Session,
    filters: PRFFilterParams,
    pagination: PaginationParams,
    with_items: bool = False,
) -> PRFPageResponse:
    """Return a filtered, paginated PRF list, newest request first."""
    base_q = _apply_prf_filters(db.query(PRF), filters, with_items=with_items)
    base_q = base_q.order_by(PRF.request_date.desc(), PRF.id.desc())

    total: int = base_q.count()
    page_rows = base_q.offset(pagination.offset).limit(pagination.page_size).all()

    logger.debug(
        "prf get_table: page=%d size=%d total=%d with_items=%s",
        pagination.page, pagination.page_size, total, with_items,
    )
    return PRFPageResponse(
        rows=[_build_response(r, include_items=with_items) for r in page_rows],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


def get_detail(db: Session, prf_id: int, with_items: bool = True) -> PRFResponse:
    prf = _get_or_404(db, prf_id)
    logger.debug("prf get_detail: id=%d prf_no=%s", prf_id, prf.prf_no)
    return _build_response(prf, include_items=with_items)


def get_by_prf_no(db: Session, prf_no: str) -> PRFResponse:
    prf: PRF | None = db.query(PRF).filter(PRF.prf_no == prf_no.strip()).first()
    if prf is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"PRF number '{prf_no}' not found.",
        )
    return _build_response(prf, include_items=True)


def list_statuses(db: Session) -> list[str]:
    rows = (
        db.query(PRF.status)
        .filter(PRF.status.isnot(None), PRF.status != "")
        .distinct()
        .order_by(PRF.status)
        .all()
    )
    return [s for (s,) in rows]


def get_statistics(db: Session, fiscal_year: int | None = None) -> PRFStatistics:
    """Aggregate PRF counts and amounts.

    Covers the last 365 days of request dates, or the given fiscal year.
    Processing time runs from request to approval, or to today for PRFs
    not yet approved.
    """
    today = datetime.date.today()
    if fiscal_year is not None:
        start, end = datetime.date(fiscal_year, 1, 1), datetime.date(fiscal_year, 12, 31)
    else:
        start, end = today - datetime.timedelta(days=365), today

    prfs = (
        db.query(PRF)
        .filter(PRF.request_date >= start, PRF.request_date <= end)
        .all()
    )

    by_status: dict[str, int] = {}
    requested = 0.0
    approved = 0.0
    durations: list[int] = []
    for prf in prfs:
        by_status[prf.status] = by_status.get(prf.status, 0) + 1
        requested += float(prf.requested_amount or 0)
        approved += float(
            prf.approved_amount if prf.approved_amount is not None else prf.requested_amount or 0
        )
        durations.append(((prf.approval_date or today) - prf.request_date).days)

    return PRFStatistics(
        period_start=start,
        period_end=end,
        total_prfs=len(prfs),
        pending_prfs=sum(by_status.get(s, 0) for s in PENDING_STATUSES),
        approved_prfs=by_status.get("Approved", 0),
        rejected_prfs=by_status.get("Rejected", 0),
        completed_prfs=by_status.get("Completed", 0),
        total_requested_amount=requested,
        total_approved_amount=approved,
        avg_processing_days=round(sum(durations) / len(durations), 1) if durations else None,
    )


# ---------------------------------------------------------------------------
# Public service functions: write operations
# ---------------------------------------------------------------------------


def create_prf(db: Session, data: PRFCreate, current_user: AppUser) -> PRF:
    """Create a PRF and, optionally, its items.

    The requestor defaults to the caller and ``request_date`` to today.

    Raises:
        HTTPException 409: If ``prf_no`` is already taken.
        HTTPException 422: If ``coa_id`` or ``requestor_id`` does not exist.
    """
    _ensure_unique_prf_no(db, data.prf_no)
    _ensure_references(db, coa_id=data.coa_id, user_ids=(data.requestor_id,))

    values = data.model_dump(exclude={"items"})
    if values["requestor_id"] is None:
        values["requestor_id"] = current_user.id
    if values["request_date"] is None:
        values["request_date"] = datetime.date.today()

    prf = PRF(**values)
    prf.items = [_new_item(prf.status, item) for item in data.items]

    db.add(prf)
    db.commit()
    db.refresh(prf)

    logger.info(
        "create_prf: created %s (id=%d) items=%d", prf.prf_no, prf.id, len(data.items)
    )
    return prf


def update_prf(db: Session, prf_id: int, data: PRFUpdate, current_user: AppUser) -> PRF:
    """Apply a partial update to a PRF.

    A status change cascades to non-overridden items.  Moving to
    "Approved" fills ``approval_date`` and ``approved_by`` and moving to
    "Completed" fills ``completion_date`` when the payload leaves them out.

    Raises:
        HTTPException 404: PRF not found.
        HTTPException 409: New ``prf_no`` collides with another PRF.
        HTTPException 422: Referenced account or user does not exist.
    """
    prf = _get_or_404(db, prf_id)
    update_data = data.model_dump(exclude_unset=True)

    if "prf_no" in update_data:
        prf_no = (update_data["prf_no"] or "").strip()
        if not prf_no:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="prf_no is required.",
            )
        update_data["prf_no"] = prf_no
        _ensure_unique_prf_no(db, prf_no, exclude_id=prf_id)
    _ensure_references(
        db,
        coa_id=update_data.get("coa_id"),
        user_ids=(update_data.get("requestor_id"), update_data.get("approved_by")),
    )

    old_status = prf.status
    for field, value in update_data.items():
        if value is None and field in ("status", "priority", "requested_amount"):
            continue
        setattr(prf, field, value)

    cascaded = 0
    if prf.status != old_status:
        if prf.status == "Approved":
            if "approval_date" not in update_data and prf.approval_date is None:
                prf.approval_date = datetime.date.today()
            if "approved_by" not in update_data and prf.approved_by is None:
                prf.approved_by = current_user.id
        elif prf.status == "Completed":
            if "completion_date" not in update_data and prf.completion_date is None:
                prf.completion_date = datetime.date.today()
        cascaded = _cascade_status(prf)

    db.commit()
    db.refresh(prf)

    logger.info(
        "update_prf: id=%d fields=%s status=%s->%s cascaded_items=%d",
        prf_id, list(update_data.keys()), old_status, prf.status, cascaded,
    )
    return prf


def delete_prf(db: Session, prf_id: int) -> None:
    prf = _get_or_404(db, prf_id)
    prf_no = prf.prf_no
    db.delete(prf)
    db.commit()
    logger.info("delete_prf: id=%d prf_no=%s", prf_id, prf_no)


def bulk_delete(db: Session, ids: list[int]) -> PRFBulkDeleteResult:
    """Delete several PRFs (and their items), reporting ids that failed.

    Raises:
        HTTPException 400: If *ids* is empty.
    """
    if not ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one PRF ID is required.",
        )

    errors: list[str] = []
    deleted = 0
    for prf_id in ids:
        prf = db.query(PRF).filter(PRF.id == prf_id).first()
        if prf is None:
            errors.append(f"PRF with ID {prf_id} not found")
            continue
        db.delete(prf)
        deleted += 1
    db.commit()

    logger.info("prf bulk_delete: requested=%d deleted=%d", len(ids), deleted)
    return PRFBulkDeleteResult(
        deleted_count=deleted,
        total_requested=len(ids),
        errors=errors,
    )


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


def get_items(db: Session, prf_id: int) -> list[PRFItemResponse]:
    prf = _get_or_404(db, prf_id)
    return [_build_item_response(i) for i in prf.items]


def add_items(db: Session, prf_id: int, items: list[PRFItemCreate]) -> list[PRFItemResponse]:
    if not items:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one item is required.",
        )
    prf = _get_or_404(db, prf_id)
    new_items = [_new_item(prf.status, data) for data in items]
    prf.items.extend(new_items)
    db.commit()
    for item in new_items:
        db.refresh(item)

    logger.info("add_items: prf_id=%d added=%d", prf_id, len(new_items))
    return [_build_item_response(i) for i in new_items]


def update_item(db: Session, item_id: int, data: PRFItemUpdate) -> PRFItemResponse:
    """Apply a partial update to an item.

    Setting ``status`` marks the item as overridden so later PRF status
    changes leave it alone.  Sending ``status_overridden=false`` clears the
    override and re-applies the PRF's current status.
    """
    item = _get_item_or_404(db, item_id)
    update_data = data.model_dump(exclude_unset=True)

    reset_override = update_data.get("status_overridden") is False
    manual_status = update_data.get("status")

    for field, value in update_data.items():
        if field in ("status", "status_overridden"):
            continue
        if value is None and field in ("item_name", "quantity", "unit_price"):
            continue
        setattr(item, field, value)

    if reset_override:
        item.status_overridden = False
        item.status = map_item_status(item.prf.status)
    elif manual_status is not None:
        item.status = manual_status
        item.status_overridden = True
    elif update_data.get("status_overridden") is True:
        item.status_overridden = True

    item.total_price = _dec(item.unit_price) * item.quantity

    db.commit()
    db.refresh(item)

    logger.info(
        "update_item: id=%d fields=%s status=%s overridden=%s",
        item_id, list(update_data.keys()), item.status, item.status_overridden,
    )
    return _build_item_response(item)


def delete_item(db: Session, item_id: int) -> None:
    item = _get_item_or_404(db, item_id)
    prf_id = item.prf_id
    db.delete(item)
    db.commit()
    logger.info("delete_item: id=%d prf_id=%d", item_id, prf_id)
