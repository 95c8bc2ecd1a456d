"""
Bulk PRF import service layer.

Handles historical PRF data sent as JSON rows keyed by spreadsheet headers:

1. Validate every row with ``PRFRowValidator`` / ``BudgetRowValidator``.
2. Unless ``validate_only`` is set, import *all* rows.  Missing or invalid
   values are replaced by defaults and every fix (plus the row's
   validation issues) is written to the PRF ``notes`` so records can be
   corrected later.
3. Write one ``ImportRecord`` audit row per call.
4. Return a ``PRFImportResult`` summary to the calling router.

Duplicate strategy
------------------
Duplicates are detected by ``prf_no`` against the database and against
rows already handled in the same request.

- ``skip_duplicates`` and ``update_existing``: the existing PRF is
  refreshed from the row.
- ``skip_duplicates`` only: the row is skipped with a warning.
- neither: the row is reported as an error and skipped.

Budget rows are validated only; budgets are maintained through
``/api/budgets``.
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from prf_monitor.models.chart_of_accounts import ChartOfAccounts
from prf_monitor.models.import_record import ImportRecord
from prf_monitor.models.prf import PRF
from prf_monitor.models.user import AppUser
from prf_monitor.parsers import BudgetRowValidator, PRFRowValidator, ValidationResult
from prf_monitor.schemas.common import PaginationParams
from prf_monitor.schemas.prf_import import (
    BulkPRFImportRequest,
    ImportHistoryItem,
    ImportHistoryResponse,
    ImportIssue,
    ImportTemplate,
    ImportValidationReport,
    ImportWarning,
    PRFImportResult,
    PRFImportRow,
)
from prf_monitor.services.prf_service import next_prf_no
from prf_monitor.utils.constants import (
    IMPORT_DEFAULT_DESCRIPTION,
    IMPORT_DEFAULT_SUBMITTER,
    IMPORT_DEPARTMENT,
    IMPORT_MAX_BUDGET_YEAR,
    IMPORT_MIN_BUDGET_YEAR,
    IMPORT_NOTES_PREFIX,
    IMPORT_STATUS,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Template
# ---------------------------------------------------------------------------

_TEMPLATE_INSTRUCTIONS: dict[str, str] = {
    "No": "Sequential row number",
    "Budget": "Budget year (e.g., 2024, 2025)",
    "Date Submit": "Date when PRF was submitted (YYYY-MM-DD)",
    "Submit By": "Name of person who submitted the PRF",
    "PRF No": "Unique PRF number",
    "Sum Description Requested": "Brief summary of what is being requested",
    "Description": "Detailed description of the request",
    "Purchase Cost Code": "Budget cost code for tracking",
    "Amount": "Requested amount in IDR",
    "Required for": "Purpose or department requiring the purchase",
}


def get_template() -> ImportTemplate:
    """Column headers, one sample row and per-column instructions."""
    sample: dict[str, Any] = {
        "No": 1,
        "Budget": datetime.date.today().year,
        "Date Submit": datetime.date.today().isoformat(),
        "Submit By": "John Doe",
        "PRF No": f"PRF-{datetime.date.today().year}-0001",
        "Sum Description Requested": "IT Equipment Purchase",
        "Description": "Laptop for development team",
        "Purchase Cost Code": "MTIRMRAD496001",
        "Amount": 15000000,
        "Required for": "Development Team",
    }
    return ImportTemplate(
        headers=list(sample.keys()),
        sample_data=[sample],
        instructions=dict(_TEMPLATE_INSTRUCTIONS),
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _to_report(result: ValidationResult) -> ImportValidationReport:
    return ImportValidationReport(
        valid=result.ok,
        total_records=result.total_records,
        valid_records=result.valid_records,
        errors=[ImportIssue(**e) for e in result.errors],
        warnings=[ImportWarning(**w) for w in result.warnings],
    )


def _run_validators(
    request: BulkPRFImportRequest,
) -> tuple[ValidationResult, ValidationResult]:
    """Return the PRF-row result and the combined PRF + budget result."""
    prf_result = PRFRowValidator().validate(request.prf_data)
    combined = prf_result
    if request.budget_data:
        combined = prf_result.merge(BudgetRowValidator().validate(request.budget_data))
    return prf_result, combined


def validate_rows(request: BulkPRFImportRequest) -> ImportValidationReport:
    """Validate PRF (and optional budget) rows without touching the database.

    Raises:
        ValueError: If no PRF rows were supplied.
    """
    if not request.prf_data:
        raise ValueError("No PRF rows supplied.")
    _prf_result, result = _run_validators(request)
    logger.info("validate_rows: %s", result.summary())
    return _to_report(result)


# ---------------------------------------------------------------------------
# Row → PRF mapping
# ---------------------------------------------------------------------------


def _row_to_values(
    row: PRFImportRow,
    row_errors: list[dict[str, Any]],
    prf_no: str,
    generated: bool,
) -> dict[str, Any]:
    """Apply import defaults and build the column values plus ``notes``."""
    notes = [IMPORT_NOTES_PREFIX]
    today = datetime.date.today()

    amount = row.amount
    if amount is None or amount <= 0:
        amount = 0
        notes.append("Amount was missing/invalid - set to 0")

    budget_year = row.budget
    if budget_year is None or not (
        IMPORT_MIN_BUDGET_YEAR <= budget_year <= IMPORT_MAX_BUDGET_YEAR
    ):
        budget_year = today.year
        notes.append(f"Budget year was invalid - set to {budget_year}")

    submit_by = row.submit_by
    if not submit_by:
        submit_by = IMPORT_DEFAULT_SUBMITTER
        notes.append(f"Submit By was missing - set to {IMPORT_DEFAULT_SUBMITTER}")

    if generated:
        notes.append("PRF No was missing - auto-generated")
    else:
        notes.append("PRF No preserved from Excel")

    description = row.description
    if not description:
        description = IMPORT_DEFAULT_DESCRIPTION
        notes.append("Description was missing - set default")

    date_submit = row.date_submit
    if date_submit is None:
        date_submit = today
        notes.append("Date Submit was missing - set to current date")

    if row_errors:
        notes.append(
            "Validation issues: "
            + "; ".join(f"{e['field']}: {e['message']}" for e in row_errors)
        )

    return {
        "prf_no": prf_no,
        "title": row.sum_description_requested or description,
        "description": description,
        "requested_amount": amount,
        "request_date": date_submit,
        "date_submit": date_submit,
        "submit_by": submit_by,
        "sum_description_requested": row.sum_description_requested,
        "purchase_cost_code": row.purchase_cost_code,
        "required_for": row.required_for,
        "budget_year": budget_year,
        "notes": "; ".join(notes),
    }


def _refresh_existing(prf: PRF, row: PRFImportRow) -> None:
    """Overwrite the spreadsheet-sourced columns of an existing PRF."""
    if row.date_submit is not None:
        prf.date_submit = row.date_submit
    if row.submit_by:
        prf.submit_by = row.submit_by
    if row.sum_description_requested:
        prf.sum_description_requested = row.sum_description_requested
    if row.purchase_cost_code:
        prf.purchase_cost_code = row.purchase_cost_code
    if row.required_for:
        prf.required_for = row.required_for
    if row.budget is not None and IMPORT_MIN_BUDGET_YEAR <= row.budget <= IMPORT_MAX_BUDGET_YEAR:
        prf.budget_year = row.budget


def _generate_prf_no(db: Session, year: int, taken: set[str]) -> str:
    candidate = next_prf_no(db, year)
    prefix = f"PRF-{year}-"
    seq = int(candidate[len(prefix):])
    while candidate in taken:
        seq += 1
        candidate = f"{prefix}{seq:04d}"
    return candidate


def _account_lookup(db: Session) -> tuple[dict[str, int], int | None]:
    """Return ``{coa_code: id}`` and the id of the first active account."""
    accounts = (
        db.query(ChartOfAccounts.id, ChartOfAccounts.coa_code, ChartOfAccounts.is_active)
        .order_by(ChartOfAccounts.id)
        .all()
    )
    by_code = {code: coa_id for coa_id, code, _active in accounts}
    default_id = next((coa_id for coa_id, _code, active in accounts if active), None)
    return by_code, default_id


# ---------------------------------------------------------------------------
# Audit log
# ---------------------------------------------------------------------------


def _write_audit_log(
    db: Session,
    *,
    source_name: str,
    user: AppUser,
    validate_only: bool,
    total: int,
    imported: int,
    skipped: int,
    errors: list[dict[str, Any]],
    warnings: list[dict[str, Any]],
) -> ImportRecord:
    """Persist an ``ImportRecord`` row as an import audit record."""
    if not errors:
        state = "SUCCESS"
    elif imported > 0:
        state = "PARTIAL"
    else:
        state = "FAILED"

    record = ImportRecord(
        import_type="PRF",
        source_name=source_name,
        imported_at=datetime.datetime.now(),
        user_id=user.id,
        username=user.username,
        validate_only=validate_only,
        total_records=total,
        imported_records=imported,
        skipped_records=skipped,
        error_count=len(errors),
        status=state,
        errors_json=json.dumps(errors, ensure_ascii=False, default=str) if errors else None,
        warnings_json=json.dumps(warnings, ensure_ascii=False, default=str) if warnings else None,
    )
    db.add(record)
    return record


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------


def import_prfs(
    db: Session, request: BulkPRFImportRequest, current_user: AppUser
) -> PRFImportResult:
    """Validate and import historical PRF rows end-to-end.

    Raises:
        ValueError: If no PRF rows were supplied.
        RuntimeError: If the audit record cannot be committed.
    """
    if not request.prf_data:
        raise ValueError("No PRF rows supplied.")

    prf_validation, validation = _run_validators(request)
    report = _to_report(validation)
    total = len(request.prf_data)

    logger.info(
        "import_prfs: rows=%d validate_only=%s skip_duplicates=%s update_existing=%s user='%s'",
        total, request.validate_only, request.skip_duplicates,
        request.update_existing, current_user.username,
    )

    if request.validate_only:
        record = _write_audit_log(
            db,
            source_name=request.source_name,
            user=current_user,
            validate_only=True,
            total=total,
            imported=0,
            skipped=0,
            errors=validation.errors,
            warnings=validation.warnings,
        )
        try:
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to write audit log for validation run")
            raise RuntimeError(f"Could not save the import record: {exc}") from exc
        return PRFImportResult(
            success=validation.ok,
            message="Validation completed",
            total_records=total,
            imported_records=0,
            skipped_records=0,
            validation=report,
            import_id=record.id,
        )

    coa_by_code, default_coa_id = _account_lookup(db)
    existing: dict[str, PRF] = {}
    taken: set[str] = set()
    errors: list[dict[str, Any]] = []
    warnings: list[dict[str, Any]] = []
    imported = 0
    skipped = 0

    for index, row in enumerate(request.prf_data):
        row_no = PRFRowValidator.row_number(index)
        row_data = row.model_dump(by_alias=True, mode="json")

        prf_no = row.prf_no.strip() if row.prf_no else ""
        if prf_no:
            duplicate = existing.get(prf_no)
            if duplicate is None:
                duplicate = db.query(PRF).filter(PRF.prf_no == prf_no).first()
            if duplicate is not None or prf_no in taken:
                if request.skip_duplicates and request.update_existing and duplicate is not None:
                    _refresh_existing(duplicate, row)
                    imported += 1
                    warnings.append(
                        {"row": row_no, "message": f"Duplicate PRF No: {prf_no} - updated", "data": row_data}
                    )
                elif request.skip_duplicates:
                    skipped += 1
                    warnings.append(
                        {"row": row_no, "message": f"Duplicate PRF No: {prf_no} - skipped", "data": row_data}
                    )
                else:
                    skipped += 1
                    errors.append(
                        {
                            "row": row_no,
                            "field": "PRF No",
                            "message": f"PRF No '{prf_no}' already exists",
                            "data": row_data,
                        }
                    )
                continue
            generated = False
        else:
            year = datetime.date.today().year
            if row.budget and IMPORT_MIN_BUDGET_YEAR <= row.budget <= IMPORT_MAX_BUDGET_YEAR:
                year = row.budget
            prf_no = _generate_prf_no(db, year, taken)
            generated = True

        values = _row_to_values(row, prf_validation.errors_for_row(row_no), prf_no, generated)
        prf = PRF(
            **values,
            requestor_id=current_user.id,
            department=IMPORT_DEPARTMENT,
            coa_id=coa_by_code.get(row.purchase_cost_code or "", default_coa_id),
            priority="Medium",
            status=IMPORT_STATUS,
        )
        db.add(prf)
        existing[prf_no] = prf
        taken.add(prf_no)
        imported += 1

    try:
        db.flush()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("DB insert failed for PRF import")
        errors.append(
            {"row": 0, "field": "general", "message": f"Database error: {exc}", "data": None}
        )
        skipped += imported
        imported = 0

    try:
        record = _write_audit_log(
            db,
            source_name=request.source_name,
            user=current_user,
            validate_only=False,
            total=total,
            imported=imported,
            skipped=skipped,
            errors=errors,
            warnings=warnings,
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Failed to write audit log for PRF import")
        raise RuntimeError(f"Could not save the import record: {exc}") from exc

    logger.info(
        "import_prfs: imported=%d skipped=%d errors=%d warnings=%d",
        imported, skipped, len(errors), len(warnings),
    )
    return PRFImportResult(
        success=not errors,
        message=f"Import completed. {imported} records imported successfully.",
        total_records=total,
        imported_records=imported,
        skipped_records=skipped,
        errors=[ImportIssue(**e) for e in errors],
        warnings=[ImportWarning(**w) for w in warnings],
        validation=report,
        import_id=record.id,
    )


# ---------------------------------------------------------------------------
# History query
# ---------------------------------------------------------------------------


def get_history(
    db: Session,
    pagination: PaginationParams,
    year: int | None = None,
) -> ImportHistoryResponse:
    """Return the import history list, most-recent first."""
    q = db.query(ImportRecord)
    if year is not None:
        q = q.filter(
            ImportRecord.imported_at >= datetime.datetime(year, 1, 1),
            ImportRecord.imported_at < datetime.datetime(year + 1, 1, 1),
        )

    total = q.count()
    records = (
        q.order_by(ImportRecord.imported_at.desc(), ImportRecord.id.desc())
        .offset(pagination.offset)
        .limit(pagination.page_size)
        .all()
    )

    logger.debug("get_history: %d of %d records returned", len(records), total)
    return ImportHistoryResponse(
        rows=[ImportHistoryItem.model_validate(r) for r in records],
        total=total,
        page=pagination.page,
        page_size=pagination.page_size,
    )
