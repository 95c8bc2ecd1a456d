"""
Chart of Accounts service layer.

All database access for the ``/api/coa`` endpoints lives here.  Functions
receive a SQLAlchemy ``Session`` and return schema instances or ORM
objects ready for serialisation by FastAPI.

Design notes
------------
- ``coa_code`` is unique.  Collisions are reported as HTTP 409 before the
  INSERT/UPDATE reaches the database so the error message names the code.
- Deleting is soft by default (``is_active = False``).  A hard delete is
  refused while budgets or PRFs still reference the account.
- The hierarchy is assembled in Python from ``parent_coa_id`` links; each
  node carries its depth and a ``" > "``-joined path of ancestor names.
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
    CountByKey,
    COAPageResponse,
)
from prf_monitor.schemas.common import BulkItemError, BulkOperationResult, PaginationParams
from prf_monitor.services.reconciliation_service import prf_matches_account, utilized_spend

logger = logging.getLogger(__name__)

_PATH_SEPARATOR = " > "


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _apply_coa_filters(query: Any, filters: COAFilterParams) -> Any:
    """Apply ``COAFilterParams`` constraints to a ChartOfAccounts query."""
    if filters.expense_type is not None:
        query = query.filter(ChartOfAccounts.expense_type == filters.expense_type)
    if filters.department is not None:
        query = query.filter(ChartOfAccounts.department == filters.department)
    if filters.is_active is not None:
        query = query.filter(ChartOfAccounts.is_active.is_(filters.is_active))
    if filters.parent_id is not None:
        query = query.filter(ChartOfAccounts.parent_coa_id == filters.parent_id)
    if filters.search:
        pattern = f"%{filters.search.strip()}%"
        query = query.filter(
            or_(
                ChartOfAccounts.coa_code.ilike(pattern),
                ChartOfAccounts.coa_name.ilike(pattern),
                ChartOfAccounts.description.ilike(pattern),
            )
        )
    return query


def _get_or_404(db: Session, coa_id: int) -> ChartOfAccounts:
    account: ChartOfAccounts | None = (
        db.query(ChartOfAccounts).filter(ChartOfAccounts.id == coa_id).first()
    )
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Account with ID {coa_id} not found.",
        )
    return account


def code_exists(db: Session, coa_code: str, exclude_id: int | None = None) -> bool:
    q = db.query(ChartOfAccounts.id).filter(ChartOfAccounts.coa_code == coa_code)
    if exclude_id is not None:
        q = q.filter(ChartOfAccounts.id != exclude_id)
    return q.first() is not None


def _ensure_unique_code(db: Session, coa_code: str, exclude_id: int | None = None) -> None:
    if code_exists(db, coa_code, exclude_id):
        logger.warning("Duplicate account code rejected: %s", coa_code)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Account code '{coa_code}' already exists.",
        )


def _ensure_parent(db: Session, parent_id: int | None, self_id: int | None = None) -> None:
    if parent_id is None:
        return
    if self_id is not None and parent_id == self_id:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="An account cannot be its own parent.",
        )
    if not db.query(ChartOfAccounts.id).filter(ChartOfAccounts.id == parent_id).first():
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Parent account with ID {parent_id} does not exist.",
        )
    if self_id is not None:
        # Walk up from the new parent; reaching self means a cycle
        seen: set[int] = set()
        current = parent_id
        while current is not None and current not in seen:
            if current == self_id:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Parent assignment would create a cycle.",
                )
            seen.add(current)
            current = (
                db.query(ChartOfAccounts.parent_coa_id)
                .filter(ChartOfAccounts.id == current)
                .scalar()
            )


def _references(db: Session, account: ChartOfAccounts) -> tuple[int, int]:
    budgets = db.query(func.count(Budget.id)).filter(Budget.coa_id == account.id).scalar()
    prfs = (
        db.query(func.count(PRF.id))
        .filter(or_(PRF.coa_id == account.id, PRF.purchase_cost_code == account.coa_code))
        .scalar()
    )
    return int(budgets or 0), int(prfs or 0)


# ---------------------------------------------------------------------------
# Public service functions: read operations
# ---------------------------------------------------------------------------


def get_table(
    db: Session,
    filters: COAFilterParams,
    pagination: PaginationParams,
) -> COAPageResponse:
    """Return a filtered, paginated account list ordered by code."""
    base_q = _apply_coa_filters(db.query(ChartOfAccounts), filters)
    base_q = base_q.order_by(ChartOfAccounts.coa_code)

    total: int = base_q.count()
    page_rows = base_q.offset(pagination.offset).limit(pagination.page_size).all()

    logger.debug(
        "coa get_table: page=%d size=%d total=%d",
        pagination.page, pagination.page_size, total,
    )
    return COAPageResponse(
        rows=[COAResponse.model_validate(r) for r in page_rows],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )


def get_detail(db: Session, coa_id: int) -> COAResponse:
    return COAResponse.model_validate(_get_or_404(db, coa_id))


def get_by_code(db: Session, coa_code: str) -> COAResponse:
    account: ChartOfAccounts | None = (
        db.query(ChartOfAccounts).filter(ChartOfAccounts.coa_code == coa_code).first()
    )
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Account with code '{coa_code}' not found.",
        )
    return COAResponse.model_validate(account)


def list_children(db: Session, coa_id: int) -> list[COAResponse]:
    _get_or_404(db, coa_id)
    rows = (
        db.query(ChartOfAccounts)
        .filter(ChartOfAccounts.parent_coa_id == coa_id, ChartOfAccounts.is_active.is_(True))
        .order_by(ChartOfAccounts.coa_code)
        .all()
    )
    return [COAResponse.model_validate(r) for r in rows]


def list_roots(db: Session) -> list[COAResponse]:
    rows = (
        db.query(ChartOfAccounts)
        .filter(ChartOfAccounts.parent_coa_id.is_(None), ChartOfAccounts.is_active.is_(True))
        .order_by(ChartOfAccounts.coa_code)
        .all()
    )
    return [COAResponse.model_validate(r) for r in rows]


def list_by_expense_type(db: Session, expense_type: str) -> list[COAResponse]:
    rows = (
        db.query(ChartOfAccounts)
        .filter(ChartOfAccounts.expense_type == expense_type, ChartOfAccounts.is_active.is_(True))
        .order_by(ChartOfAccounts.coa_code)
        .all()
    )
    return [COAResponse.model_validate(r) for r in rows]


def list_by_department(db: Session, department: str) -> list[COAResponse]:
    rows = (
        db.query(ChartOfAccounts)
        .filter(ChartOfAccounts.department == department, ChartOfAccounts.is_active.is_(True))
        .order_by(ChartOfAccounts.coa_code)
        .all()
    )
    return [COAResponse.model_validate(r) for r in rows]


def get_hierarchy(db: Session) -> list[COAHierarchyNode]:
    """Return active accounts as a forest rooted at parentless accounts.

    Accounts whose parent is inactive or missing are promoted to roots so
    that nothing disappears from the tree.
    """
    accounts = (
        db.query(ChartOfAccounts)
        .filter(ChartOfAccounts.is_active.is_(True))
        .order_by(ChartOfAccounts.coa_code)
        .all()
    )
    by_id = {a.id: a for a in accounts}
    children_of: dict[int | None, list[ChartOfAccounts]] = {}
    for acc in accounts:
        parent = acc.parent_coa_id if acc.parent_coa_id in by_id else None
        children_of.setdefault(parent, []).append(acc)

    def _build(acc: ChartOfAccounts, level: int, prefix: str, seen: frozenset[int]) -> COAHierarchyNode:
        path = f"{prefix}{_PATH_SEPARATOR}{acc.coa_name}" if prefix else acc.coa_name
        seen = seen | {acc.id}
        return COAHierarchyNode(
            id=acc.id,
            coa_code=acc.coa_code,
            coa_name=acc.coa_name,
            parent_coa_id=acc.parent_coa_id,
            level=level,
            path=path,
            children=[
                _build(child, level + 1, path, seen)
                for child in children_of.get(acc.id, [])
                if child.id not in seen
            ],
        )

    roots = [_build(acc, 0, "", frozenset()) for acc in children_of.get(None, [])]
    logger.debug("get_hierarchy: %d accounts, %d roots", len(accounts), len(roots))
    return roots


def get_usage(db: Session, coa_id: int) -> COAUsage:
    """PRF and budget usage of one account."""
    account = _get_or_404(db, coa_id)

    prf_count, prf_total = (
        db.query(func.count(PRF.id), func.coalesce(func.sum(utilized_spend()), 0))
        .select_from(PRF)
        .join(ChartOfAccounts, prf_matches_account())
        .filter(ChartOfAccounts.id == coa_id)
        .one()
    )
    budget_count, budget_total = (
        db.query(func.count(Budget.id), func.coalesce(func.sum(Budget.allocated_amount), 0))
        .filter(Budget.coa_id == coa_id)
        .one()
    )

    return COAUsage(
        coa_id=account.id,
        coa_code=account.coa_code,
        coa_name=account.coa_name,
        prf_count=int(prf_count),
        budget_count=int(budget_count),
        total_prf_amount=float(prf_total),
        total_budget_amount=float(budget_total),
    )


def get_statistics(db: Session) -> COAStatistics:
    total = db.query(func.count(ChartOfAccounts.id)).scalar() or 0
    active = (
        db.query(func.count(ChartOfAccounts.id))
        .filter(ChartOfAccounts.is_active.is_(True))
        .scalar()
        or 0
    )
    roots = (
        db.query(func.count(ChartOfAccounts.id))
        .filter(ChartOfAccounts.parent_coa_id.is_(None), ChartOfAccounts.is_active.is_(True))
        .scalar()
        or 0
    )

    def _count_by(column: Any) -> list[CountByKey]:
        rows = (
            db.query(column, func.count(ChartOfAccounts.id))
            .filter(ChartOfAccounts.is_active.is_(True))
            .group_by(column)
            .order_by(column)
            .all()
        )
        return [CountByKey(key=key or "Unassigned", count=count) for key, count in rows]

    return COAStatistics(
        total_accounts=total,
        active_accounts=active,
        inactive_accounts=total - active,
        root_accounts=roots,
        by_expense_type=_count_by(ChartOfAccounts.expense_type),
        by_department=_count_by(ChartOfAccounts.department),
    )


# ---------------------------------------------------------------------------
# Public service functions: write operations
# ---------------------------------------------------------------------------


def create_account(db: Session, data: COACreate) -> ChartOfAccounts:
    """Create a new account.

    Raises:
        HTTPException 409: If ``coa_code`` is already taken.
        HTTPException 422: If ``parent_coa_id`` does not exist.
    """
    _ensure_unique_code(db, data.coa_code)
    _ensure_parent(db, data.parent_coa_id)

    account = ChartOfAccounts(**data.model_dump())
    db.add(account)
    db.commit()
    db.refresh(account)

    logger.info("create_account: created %s (id=%d)", account.coa_code, account.id)
    return account


def update_account(db: Session, coa_id: int, data: COAUpdate) -> ChartOfAccounts:
    """Apply a partial update to an account.

    Raises:
        HTTPException 404: Account not found.
        HTTPException 409: New ``coa_code`` collides with another account.
        HTTPException 422: Invalid parent (missing, self, or cycle).
    """
    account = _get_or_404(db, coa_id)
    update_data = data.model_dump(exclude_unset=True)

    if "coa_code" in update_data:
        code = (update_data["coa_code"] or "").strip()
        if not code:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="coa_code must not be blank.",
            )
        update_data["coa_code"] = code
        _ensure_unique_code(db, code, exclude_id=coa_id)
    if "parent_coa_id" in update_data:
        _ensure_parent(db, update_data["parent_coa_id"], self_id=coa_id)

    for field, value in update_data.items():
        setattr(account, field, value)

    db.commit()
    db.refresh(account)

    logger.info("update_account: id=%d fields=%s", coa_id, list(update_data.keys()))
    return account


def deactivate_account(db: Session, coa_id: int) -> ChartOfAccounts:
    account = _get_or_404(db, coa_id)
    account.is_active = False
    db.commit()
    db.refresh(account)
    logger.info("deactivate_account: id=%d code=%s", coa_id, account.coa_code)
    return account


def hard_delete_account(db: Session, coa_id: int) -> None:
    """Remove an account row permanently.

    Raises:
        HTTPException 404: Account not found.
        HTTPException 409: Budgets or PRFs still reference the account.
    """
    account = _get_or_404(db, coa_id)
    budgets, prfs = _references(db, account)
    if budgets or prfs:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Account '{account.coa_code}' is referenced by {budgets} budget(s) "
                f"and {prfs} PRF(s); deactivate it instead."
            ),
        )

    # Children lose their parent instead of being deleted
    (
        db.query(ChartOfAccounts)
        .filter(ChartOfAccounts.parent_coa_id == coa_id)
        .update({ChartOfAccounts.parent_coa_id: None}, synchronize_session=False)
    )
    coa_code = account.coa_code
    db.delete(account)
    db.commit()
    logger.info("hard_delete_account: id=%d code=%s", coa_id, coa_code)


def bulk_import(db: Session, data: COABulkImportRequest) -> COABulkImportResult:
    """Create accounts in bulk, skipping codes that already exist."""
    created = 0
    skipped = 0
    errors: list[str] = []
    seen: set[str] = set()

    for index, item in enumerate(data.accounts, start=1):
        if item.coa_code in seen or code_exists(db, item.coa_code):
            skipped += 1
            continue
        if item.parent_coa_id is not None and not (
            db.query(ChartOfAccounts.id).filter(ChartOfAccounts.id == item.parent_coa_id).first()
        ):
            errors.append(f"Entry {index} ({item.coa_code}): parent {item.parent_coa_id} does not exist")
            continue
        db.add(ChartOfAccounts(**item.model_dump()))
        db.flush()
        seen.add(item.coa_code)
        created += 1

    db.commit()
    logger.info(
        "coa bulk_import: total=%d created=%d skipped=%d errors=%d",
        len(data.accounts), created, skipped, len(errors),
    )
    return COABulkImportResult(
        total=len(data.accounts),
        created=created,
        skipped=skipped,
        errors=errors,
    )


def _require_ids(ids: list[int]) -> None:
    if not ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="At least one account ID is required.",
        )


def bulk_update(db: Session, data: COABulkUpdateRequest) -> BulkOperationResult:
    """Apply the same partial update to many accounts.

    ``coa_code`` cannot be bulk-assigned since it must stay unique.
    """
    _require_ids(data.ids)
    update_data = data.updates.model_dump(exclude_unset=True)
    if "coa_code" in update_data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="coa_code cannot be changed in a bulk update.",
        )
    if not update_data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No fields to update.",
        )

    errors: list[BulkItemError] = []
    processed = 0
    for coa_id in data.ids:
        account = db.query(ChartOfAccounts).filter(ChartOfAccounts.id == coa_id).first()
        if account is None:
            errors.append(BulkItemError(id=coa_id, message="Account not found"))
            continue
        if "parent_coa_id" in update_data:
            try:
                _ensure_parent(db, update_data["parent_coa_id"], self_id=coa_id)
            except HTTPException as exc:
                errors.append(BulkItemError(id=coa_id, message=str(exc.detail)))
                continue
        for field, value in update_data.items():
            setattr(account, field, value)
        processed += 1

    db.commit()
    logger.info(
        "coa bulk_update: requested=%d updated=%d fields=%s",
        len(data.ids), processed, list(update_data.keys()),
    )
    return BulkOperationResult(
        processed_count=processed,
        total_requested=len(data.ids),
        errors=errors,
    )


def bulk_delete(db: Session, data: COABulkDeleteRequest) -> BulkOperationResult:
    _require_ids(data.ids)

    errors: list[BulkItemError] = []
    processed = 0
    for coa_id in data.ids:
        try:
            if data.hard:
                hard_delete_account(db, coa_id)
            else:
                deactivate_account(db, coa_id)
            processed += 1
        except HTTPException as exc:
            errors.append(BulkItemError(id=coa_id, message=str(exc.detail)))

    logger.info(
        "coa bulk_delete: requested=%d processed=%d hard=%s",
        len(data.ids), processed, data.hard,
    )
    return BulkOperationResult(
        processed_count=processed,
        total_requested=len(data.ids),
        errors=errors,
    )
