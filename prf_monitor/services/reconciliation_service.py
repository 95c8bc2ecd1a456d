"""
Budget / Chart of Accounts / PRF reconciliation.

All queries that join the three tables live here: live spend per budget,
the cost-code summary behind ``/api/budgets/cost-codes``, the per-PRF
cost-code breakdown, and the data-quality checks (duplicate budgets,
orphaned budgets, PRF cost codes with no account, unused accounts).

Design notes
------------
- PRFs reference accounts by free-text ``purchase_cost_code`` compared to
  ``ChartOfAccounts.coa_code`` with string equality.  A PRF without a
  cost code falls back to its ``coa_id`` link.
- Only PRFs in ``UTILIZING_STATUSES`` count as spend.  The spent value of
  a PRF is its approved amount, or its requested amount when it was never
  given one (historical imports carry only the requested amount).
- A PRF is charged to ``budget_year``; when that is empty the year of
  ``date_submit`` is used.
- Utilization percentages are not capped so that overspend stays visible.
- Aggregation happens in SQL; the UNION of PRF cost codes with budget-only
  codes is merged in Python to keep SQL portable across SQL Server and
  SQLite (test env).
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import and_, case, distinct, extract, func, or_
from sqlalchemy.orm import Session

from prf_monitor.models.budget import Budget
from prf_monitor.models.chart_of_accounts import ChartOfAccounts
from prf_monitor.models.prf import PRF
from prf_monitor.schemas.budget import (
    CostCodeBudget,
    CostCodeBudgetResponse,
    CostCodeSummary,
    PRFCostCodeBudget,
)
from prf_monitor.schemas.reports import (
    DedupeResult,
    DuplicateBudgetGroup,
    MissingCostCode,
    OrphanedBudget,
    ReconciliationReport,
    UnusedAccount,
)
from prf_monitor.utils.constants import (
    LEVEL_CRITICAL_MIN,
    LEVEL_HIGH_MIN,
    LEVEL_MEDIUM_MIN,
    NO_COST_CODE_PREFIX,
    UNDER_BUDGET_MAX,
    UTILIZING_STATUSES,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared SQL expressions and helpers
# ---------------------------------------------------------------------------


def spent_amount() -> Any:
    """SQL expression for the amount a PRF spends against its budget."""
    return func.coalesce(PRF.approved_amount, PRF.requested_amount, 0)


def utilized_spend() -> Any:
    """``spent_amount()`` for utilizing PRFs, 0 for every other status."""
    return case((PRF.status.in_(UTILIZING_STATUSES), spent_amount()), else_=0)


def prf_year() -> Any:
    """SQL expression for the fiscal year a PRF is charged to."""
    return func.coalesce(PRF.budget_year, extract("year", PRF.date_submit))


def prf_matches_account() -> Any:
    """Join condition linking a PRF to a ``ChartOfAccounts`` row."""
    return or_(
        PRF.purchase_cost_code == ChartOfAccounts.coa_code,
        and_(PRF.purchase_cost_code.is_(None), PRF.coa_id == ChartOfAccounts.id),
    )


def utilization_pct(spent: float, allocated: float) -> float:
    """Return spent / allocated × 100 rounded to 2 dp; 0.0 when nothing is allocated."""
    if not allocated or allocated <= 0:
        return 0.0
    return round(spent / allocated * 100, 2)


def utilization_level(pct: float) -> str:
    if pct >= LEVEL_CRITICAL_MIN:
        return "Critical"
    if pct >= LEVEL_HIGH_MIN:
        return "High"
    if pct >= LEVEL_MEDIUM_MIN:
        return "Medium"
    return "Low"


def cost_code_status(approved: float, allocated: float) -> str:
    if approved > allocated:
        return "Over Budget"
    if utilization_pct(approved, allocated) < UNDER_BUDGET_MAX:
        return "Under Budget"
    return "On Track"


def budget_spend_query(db: Session) -> Any:
    """Budgets with their account and live spend from matching PRFs.

    Each result row is ``(Budget, ChartOfAccounts, spent, prf_count)``.
    Callers append their own filters, ordering and pagination.
    """
    # Aggregate per budget id first; SQL Server rejects entity columns
    # that are not in the GROUP BY.
    spend_sq = (
        db.query(
            Budget.id.label("budget_id"),
            func.coalesce(func.sum(spent_amount()), 0).label("spent"),
            func.count(PRF.id).label("prf_count"),
        )
        .join(ChartOfAccounts, Budget.coa_id == ChartOfAccounts.id)
        .outerjoin(
            PRF,
            and_(
                prf_matches_account(),
                prf_year() == Budget.fiscal_year,
                PRF.status.in_(UTILIZING_STATUSES),
            ),
        )
        .group_by(Budget.id)
        .subquery()
    )
    return (
        db.query(Budget, ChartOfAccounts, spend_sq.c.spent, spend_sq.c.prf_count)
        .join(ChartOfAccounts, Budget.coa_id == ChartOfAccounts.id)
        .join(spend_sq, spend_sq.c.budget_id == Budget.id)
    )


# ---------------------------------------------------------------------------
# Cost-code summary
# ---------------------------------------------------------------------------


def _prf_cost_code_totals(db: Session, fiscal_year: int | None) -> dict[str, dict[str, Any]]:
    year_col = prf_year()
    q = (
        db.query(
            PRF.purchase_cost_code,
            func.coalesce(func.sum(PRF.requested_amount), 0),
            func.coalesce(func.sum(utilized_spend()), 0),
            func.coalesce(func.sum(PRF.actual_amount), 0),
            func.count(PRF.id),
            func.count(distinct(year_col)),
            func.min(year_col),
            func.max(year_col),
        )
        .filter(PRF.purchase_cost_code.isnot(None), PRF.purchase_cost_code != "")
    )
    if fiscal_year is not None:
        q = q.filter(year_col == fiscal_year)
    q = q.group_by(PRF.purchase_cost_code)

    totals: dict[str, dict[str, Any]] = {}
    for code, requested, approved, actual, count, years, first, last in q.all():
        totals[code] = {
            "requested": float(requested),
            "approved": float(approved),
            "actual": float(actual),
            "count": int(count),
            "years_active": int(years),
            "first_year": int(first) if first is not None else None,
            "last_year": int(last) if last is not None else None,
        }
    return totals


def _budget_totals_by_code(db: Session, fiscal_year: int | None) -> dict[str, dict[str, Any]]:
    q = (
        db.query(
            ChartOfAccounts.coa_code,
            func.coalesce(func.sum(Budget.allocated_amount), 0),
            func.count(distinct(Budget.fiscal_year)),
            func.min(Budget.fiscal_year),
            func.max(Budget.fiscal_year),
        )
        .join(Budget, Budget.coa_id == ChartOfAccounts.id)
    )
    if fiscal_year is not None:
        q = q.filter(Budget.fiscal_year == fiscal_year)
    q = q.group_by(ChartOfAccounts.coa_code)

    return {
        code: {
            "allocated": float(allocated),
            "years_active": int(years),
            "first_year": first,
            "last_year": last,
        }
        for code, allocated, years, first, last in q.all()
    }


def get_cost_code_summary(
    db: Session,
    fiscal_year: int | None = None,
    search: str | None = None,
    status_filter: str | None = None,
) -> CostCodeBudgetResponse:
    """Reconcile PRF cost codes against budget allocations.

    Produces one row per distinct PRF ``purchase_cost_code`` plus one row
    per budgeted account whose code no PRF uses in any year (reported
    under the synthetic code ``NO_COST_CODE_<coa_code>``).

    Args:
        db: Active SQLAlchemy session.
        fiscal_year: Restricts both PRFs and budgets to one year.
        search: Case-insensitive match on cost code, COA code or COA name.
        status_filter: Keep only rows with this ``budget_status``.

    Returns:
        A ``CostCodeBudgetResponse`` with rows sorted by allocation
        (descending) and a summary over the returned rows.
    """
    prf_totals = _prf_cost_code_totals(db, fiscal_year)
    budget_totals = _budget_totals_by_code(db, fiscal_year)
    # Any PRF use of a code, in any year, keeps it off the NO_COST_CODE_ rows.
    used_codes = {code for (code,) in db.query(distinct(PRF.purchase_cost_code)).all()}

    codes = set(prf_totals) | set(budget_totals)
    accounts: dict[str, ChartOfAccounts] = {}
    if codes:
        for acc in db.query(ChartOfAccounts).filter(ChartOfAccounts.coa_code.in_(codes)).all():
            accounts[acc.coa_code] = acc

    rows: list[CostCodeBudget] = []

    for code, prf in prf_totals.items():
        acc = accounts.get(code)
        allocated = budget_totals.get(code, {}).get("allocated", 0.0)
        rows.append(
            CostCodeBudget(
                purchase_cost_code=code,
                coa_code=acc.coa_code if acc is not None else None,
                coa_name=acc.coa_name if acc is not None else None,
                department=acc.department if acc is not None else None,
                expense_type=acc.expense_type if acc is not None else None,
                grand_total_allocated=allocated,
                grand_total_requested=prf["requested"],
                grand_total_approved=prf["approved"],
                grand_total_actual=prf["actual"],
                total_requests=prf["count"],
                years_active=prf["years_active"],
                first_year=prf["first_year"],
                last_year=prf["last_year"],
                utilization_percentage=utilization_pct(prf["approved"], allocated),
                approval_rate=utilization_pct(prf["approved"], prf["requested"]),
                budget_status=cost_code_status(prf["approved"], allocated),
            )
        )

    for code, bud in budget_totals.items():
        if code in used_codes:
            continue
        acc = accounts[code]
        rows.append(
            CostCodeBudget(
                purchase_cost_code=f"{NO_COST_CODE_PREFIX}{code}",
                coa_code=acc.coa_code,
                coa_name=acc.coa_name,
                department=acc.department,
                expense_type=acc.expense_type,
                grand_total_allocated=bud["allocated"],
                grand_total_requested=0.0,
                grand_total_approved=0.0,
                grand_total_actual=0.0,
                total_requests=0,
                years_active=bud["years_active"],
                first_year=bud["first_year"],
                last_year=bud["last_year"],
                utilization_percentage=0.0,
                approval_rate=0.0,
                budget_status=cost_code_status(0.0, bud["allocated"]),
            )
        )

    if search:
        needle = search.strip().lower()
        rows = [
            r for r in rows
            if needle in r.purchase_cost_code.lower()
            or needle in (r.coa_code or "").lower()
            or needle in (r.coa_name or "").lower()
        ]
    if status_filter:
        rows = [r for r in rows if r.budget_status == status_filter]

    rows.sort(key=lambda r: (-r.grand_total_allocated, r.purchase_cost_code))

    total_allocated = sum(r.grand_total_allocated for r in rows)
    total_requested = sum(r.grand_total_requested for r in rows)
    total_approved = sum(r.grand_total_approved for r in rows)
    total_actual = sum(r.grand_total_actual for r in rows)

    summary = CostCodeSummary(
        total_cost_codes=len(rows),
        total_budget_allocated=total_allocated,
        total_budget_requested=total_requested,
        total_budget_approved=total_approved,
        total_budget_actual=total_actual,
        overall_utilization=utilization_pct(total_approved, total_allocated),
        overall_approval_rate=utilization_pct(total_approved, total_requested),
    )

    logger.debug(
        "get_cost_code_summary: year=%s rows=%d (prf codes=%d, budget codes=%d)",
        fiscal_year, len(rows), len(prf_totals), len(budget_totals),
    )
    return CostCodeBudgetResponse(cost_codes=rows, summary=summary, fiscal_year=fiscal_year)


# ---------------------------------------------------------------------------
# Per-PRF cost-code breakdown
# ---------------------------------------------------------------------------


def get_prf_cost_codes(db: Session, prf_id: int) -> list[PRFCostCodeBudget]:
    """Budget position of every cost code used by one PRF.

    Items are grouped by their own cost code, falling back to the PRF's
    code.  A PRF without items is treated as a single line worth its
    spent amount.

    Raises:
        HTTPException 404: If the PRF does not exist.
    """
    prf: PRF | None = db.query(PRF).filter(PRF.id == prf_id).first()
    if prf is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"PRF with ID {prf_id} not found.",
        )

    year = prf.budget_year or (prf.date_submit.year if prf.date_submit else None)

    # code -> [item names, subtotal, item count]
    groups: dict[str, list[Any]] = {}
    for item in prf.items:
        code = item.purchase_cost_code or prf.purchase_cost_code
        if not code:
            continue
        bucket = groups.setdefault(code, [[], 0.0, 0])
        bucket[0].append(item.item_name)
        bucket[1] += float(item.total_price or 0)
        bucket[2] += 1
    if not prf.items and prf.purchase_cost_code:
        own = prf.approved_amount if prf.approved_amount is not None else prf.requested_amount
        groups[prf.purchase_cost_code] = [[], float(own or 0), 0]

    result: list[PRFCostCodeBudget] = []
    for code, (names, subtotal, count) in sorted(groups.items()):
        budget_q = (
            db.query(func.coalesce(func.sum(Budget.allocated_amount), 0))
            .join(ChartOfAccounts, Budget.coa_id == ChartOfAccounts.id)
            .filter(ChartOfAccounts.coa_code == code)
        )
        spent_q = (
            db.query(func.coalesce(func.sum(spent_amount()), 0))
            .filter(PRF.purchase_cost_code == code, PRF.status.in_(UTILIZING_STATUSES))
        )
        if year is not None:
            budget_q = budget_q.filter(Budget.fiscal_year == year)
            spent_q = spent_q.filter(prf_year() == year)

        total_budget = float(budget_q.scalar() or 0)
        total_spent = float(spent_q.scalar() or 0)
        coa_name = (
            db.query(ChartOfAccounts.coa_name)
            .filter(ChartOfAccounts.coa_code == code)
            .scalar()
        )

        result.append(
            PRFCostCodeBudget(
                cost_code=code,
                coa_name=coa_name,
                total_budget=total_budget,
                total_spent=total_spent,
                remaining_budget=total_budget - total_spent,
                prf_spent=subtotal,
                item_count=count,
                item_names=", ".join(names),
                utilization_percentage=utilization_pct(total_spent, total_budget),
            )
        )

    logger.debug("get_prf_cost_codes: prf_id=%d codes=%d", prf_id, len(result))
    return result


# ---------------------------------------------------------------------------
# Data-quality checks
# ---------------------------------------------------------------------------


def find_duplicate_budgets(db: Session) -> list[DuplicateBudgetGroup]:
    """Groups of budgets sharing the same ``(coa_id, fiscal_year)``.

    Within each group the row with the highest ``allocated_amount`` is
    marked as the one to keep; ties go to the most recently created row.
    """
    dup_keys = (
        db.query(Budget.coa_id, Budget.fiscal_year)
        .group_by(Budget.coa_id, Budget.fiscal_year)
        .having(func.count(Budget.id) > 1)
        .all()
    )

    groups: list[DuplicateBudgetGroup] = []
    for coa_id, fiscal_year in dup_keys:
        members = (
            db.query(Budget)
            .filter(Budget.coa_id == coa_id, Budget.fiscal_year == fiscal_year)
            .order_by(
                Budget.allocated_amount.desc(),
                Budget.created_at.desc(),
                Budget.id.desc(),
            )
            .all()
        )
        coa_code = (
            db.query(ChartOfAccounts.coa_code)
            .filter(ChartOfAccounts.id == coa_id)
            .scalar()
        )
        groups.append(
            DuplicateBudgetGroup(
                coa_id=coa_id,
                coa_code=coa_code,
                fiscal_year=fiscal_year,
                budget_ids=[b.id for b in members],
                keep_id=members[0].id,
            )
        )

    logger.debug("find_duplicate_budgets: %d groups", len(groups))
    return groups


def dedupe_budgets(db: Session, dry_run: bool = True) -> DedupeResult:
    """Delete all but one budget in every duplicate ``(coa_id, fiscal_year)`` group.

    Args:
        db: Active SQLAlchemy session.
        dry_run: When True nothing is deleted; the result lists what would be.

    Returns:
        A ``DedupeResult`` with the kept and removed budget ids.
    """
    groups = find_duplicate_budgets(db)
    kept_ids = [g.keep_id for g in groups]
    removed_ids = [bid for g in groups for bid in g.budget_ids if bid != g.keep_id]

    if removed_ids and not dry_run:
        (
            db.query(Budget)
            .filter(Budget.id.in_(removed_ids))
            .delete(synchronize_session=False)
        )
        db.commit()
        logger.info(
            "dedupe_budgets: removed %d duplicate budgets across %d groups",
            len(removed_ids), len(groups),
        )

    return DedupeResult(
        dry_run=dry_run,
        groups=len(groups),
        kept_ids=kept_ids,
        removed_ids=removed_ids,
    )


def find_orphaned_budgets(db: Session) -> list[OrphanedBudget]:
    """Budgets whose ``coa_id`` points at no account."""
    rows = (
        db.query(Budget)
        .outerjoin(ChartOfAccounts, Budget.coa_id == ChartOfAccounts.id)
        .filter(ChartOfAccounts.id.is_(None))
        .order_by(Budget.id)
        .all()
    )
    return [
        OrphanedBudget(
            budget_id=b.id,
            coa_id=b.coa_id,
            fiscal_year=b.fiscal_year,
            allocated_amount=float(b.allocated_amount or 0),
        )
        for b in rows
    ]


def find_missing_cost_codes(db: Session) -> list[MissingCostCode]:
    """PRF cost codes that match no account code."""
    rows = (
        db.query(
            PRF.purchase_cost_code,
            func.count(PRF.id),
            func.coalesce(func.sum(utilized_spend()), 0),
        )
        .outerjoin(ChartOfAccounts, PRF.purchase_cost_code == ChartOfAccounts.coa_code)
        .filter(
            PRF.purchase_cost_code.isnot(None),
            PRF.purchase_cost_code != "",
            ChartOfAccounts.id.is_(None),
        )
        .group_by(PRF.purchase_cost_code)
        .order_by(PRF.purchase_cost_code)
        .all()
    )
    return [
        MissingCostCode(
            purchase_cost_code=code,
            prf_count=int(count),
            total_spent=float(spent),
        )
        for code, count, spent in rows
    ]


def find_unused_accounts(db: Session) -> list[UnusedAccount]:
    """Active accounts referenced by neither a PRF cost code nor a budget."""
    used_by_prf = (
        db.query(PRF.id)
        .filter(PRF.purchase_cost_code == ChartOfAccounts.coa_code)
        .exists()
    )
    used_by_budget = (
        db.query(Budget.id)
        .filter(Budget.coa_id == ChartOfAccounts.id)
        .exists()
    )
    rows = (
        db.query(ChartOfAccounts)
        .filter(
            ChartOfAccounts.is_active.is_(True),
            ~used_by_prf,
            ~used_by_budget,
        )
        .order_by(ChartOfAccounts.coa_code)
        .all()
    )
    return [
        UnusedAccount(coa_id=a.id, coa_code=a.coa_code, coa_name=a.coa_name)
        for a in rows
    ]


def get_reconciliation_report(db: Session) -> ReconciliationReport:
    duplicates = find_duplicate_budgets(db)
    orphaned = find_orphaned_budgets(db)
    missing = find_missing_cost_codes(db)
    unused = find_unused_accounts(db)

    issue_count = len(duplicates) + len(orphaned) + len(missing) + len(unused)
    logger.debug(
        "get_reconciliation_report: duplicates=%d orphaned=%d missing=%d unused=%d",
        len(duplicates), len(orphaned), len(missing), len(unused),
    )
    return ReconciliationReport(
        duplicate_budget_groups=duplicates,
        orphaned_budgets=orphaned,
        missing_cost_codes=missing,
        unused_accounts=unused,
        issue_count=issue_count,
    )
