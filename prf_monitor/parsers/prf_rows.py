"""Row rules for historical PRF and budget spreadsheet data."""

from __future__ import annotations

from prf_monitor.parsers.base_parser import BaseRowValidator
from prf_monitor.schemas.prf_import import BudgetImportRow, PRFImportRow
from prf_monitor.utils.constants import IMPORT_MAX_BUDGET_YEAR, IMPORT_MIN_BUDGET_YEAR


class PRFRowValidator(BaseRowValidator[PRFImportRow]):
    """Checks the ten PRF columns.

    Errors: ``No`` must be positive, ``Budget`` must be a year between
    2020 and 2030, ``Amount`` must be positive, and ``Date Submit``,
    ``Submit By``, ``PRF No`` and ``Description`` are required.
    Warnings: ``Sum Description Requested``, ``Purchase Cost Code`` and
    ``Required for`` are missing.
    """

    FORMAT_NAME = "PRF"

    def check_row(self, row_no: int, row: PRFImportRow) -> None:
        if row.no is None or row.no <= 0:
            self.add_error(row_no, "No", "Row number must be a positive integer", row)

        if row.budget is None or not (
            IMPORT_MIN_BUDGET_YEAR <= row.budget <= IMPORT_MAX_BUDGET_YEAR
        ):
            self.add_error(
                row_no,
                "Budget",
                f"Budget year must be between {IMPORT_MIN_BUDGET_YEAR} "
                f"and {IMPORT_MAX_BUDGET_YEAR}",
                row,
            )

        if row.date_submit is None:
            self.add_error(row_no, "Date Submit", "Date Submit is required", row)

        if not row.submit_by:
            self.add_error(row_no, "Submit By", "Submit By is required", row)

        if not row.prf_no:
            self.add_error(row_no, "PRF No", "PRF No is required", row)

        if row.amount is None or row.amount <= 0:
            self.add_error(row_no, "Amount", "Amount must be greater than 0", row)

        if not row.description:
            self.add_error(row_no, "Description", "Description is required", row)

        if not row.sum_description_requested:
            self.add_warning(row_no, "Sum Description Requested is empty", row)
        if not row.purchase_cost_code:
            self.add_warning(row_no, "Purchase Cost Code is empty", row)
        if not row.required_for:
            self.add_warning(row_no, "Required for is empty", row)


class BudgetRowValidator(BaseRowValidator[BudgetImportRow]):
    """Checks the four budget columns (COA, Category, Initial/Remaining Budget)."""

    FORMAT_NAME = "BUDGET"

    def check_row(self, row_no: int, row: BudgetImportRow) -> None:
        if not row.coa:
            self.add_error(row_no, "COA", "COA is required", row)
        if not row.category:
            self.add_error(row_no, "Category", "Category is required", row)
        if row.initial_budget is None or row.initial_budget <= 0:
            self.add_error(
                row_no, "Initial Budget", "Initial Budget must be greater than 0", row
            )
        if row.remaining_budget is not None and row.remaining_budget < 0:
            self.add_error(
                row_no, "Remaining Budget", "Remaining Budget cannot be negative", row
            )

        if (
            row.initial_budget is not None
            and row.remaining_budget is not None
            and row.remaining_budget > row.initial_budget
        ):
            self.add_warning(
                row_no, "Remaining Budget is greater than Initial Budget", row
            )
