"""
Pydantic v2 schemas for the bulk PRF import module.

Rows arrive as JSON objects keyed by the spreadsheet column headers
(``"PRF No"``, ``"Date Submit"``, ...).  Field values are deliberately
lenient: missing or out-of-range values are reported by the row
validator as errors/warnings instead of rejecting the whole request.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ---------------------------------------------------------------------------
# Input rows
# ---------------------------------------------------------------------------


class PRFImportRow(BaseModel):
    """One spreadsheet row of historical PRF data."""

    no: int | None = Field(default=None, alias="No")
    budget: int | None = Field(default=None, alias="Budget")
    date_submit: date | None = Field(default=None, alias="Date Submit")
    submit_by: str | None = Field(default=None, alias="Submit By")
    prf_no: str | None = Field(default=None, alias="PRF No")
    sum_description_requested: str | None = Field(
        default=None, alias="Sum Description Requested"
    )
    description: str | None = Field(default=None, alias="Description")
    purchase_cost_code: str | None = Field(default=None, alias="Purchase Cost Code")
    amount: float | None = Field(default=None, alias="Amount")
    required_for: str | None = Field(default=None, alias="Required for")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("submit_by", "prf_no", "purchase_cost_code", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        # Spreadsheet cells holding numbers arrive as int/float
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            if isinstance(value, float) and value.is_integer():
                value = int(value)
            return str(value)
        return _blank_to_none(value)

    @field_validator(
        "sum_description_requested", "description", "required_for", mode="before"
    )
    @classmethod
    def _blank_text(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("no", "budget", "amount", "date_submit", mode="before")
    @classmethod
    def _blank_scalar(cls, value: Any) -> Any:
        return _blank_to_none(value)


class BudgetImportRow(BaseModel):
    """One spreadsheet row of budget data accompanying a PRF import."""

    coa: str | None = Field(default=None, alias="COA")
    category: str | None = Field(default=None, alias="Category")
    initial_budget: float | None = Field(default=None, alias="Initial Budget")
    remaining_budget: float | None = Field(default=None, alias="Remaining Budget")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("coa", "category", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return _blank_to_none(value)

    @field_validator("initial_budget", "remaining_budget", mode="before")
    @classmethod
    def _blank_scalar(cls, value: Any) -> Any:
        return _blank_to_none(value)


class BulkPRFImportRequest(BaseModel):
    """Body of ``POST /api/import/prf/bulk`` and ``POST /api/import/prf/validate``."""

    prf_data: list[PRFImportRow] = Field(default_factory=list)
    budget_data: list[BudgetImportRow] = Field(default_factory=list)
    validate_only: bool = False
    skip_duplicates: bool = True
    update_existing: bool = False
    source_name: str = Field(
        default="api",
        max_length=500,
        description="Label of the data source recorded in the import history.",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "prf_data": [
                    {
                        "No": 1,
                        "Budget": 2024,
                        "Date Submit": "2024-03-11",
                        "Submit By": "John Doe",
                        "PRF No": "PRF-2024-0001",
                        "Sum Description Requested": "IT Equipment Purchase",
                        "Description": "Laptop for development team",
                        "Purchase Cost Code": "MTIRMRAD496001",
                        "Amount": 15000000,
                        "Required for": "Development Team",
                    }
                ],
                "skip_duplicates": True,
                "update_existing": False,
            }
        }
    )


# ---------------------------------------------------------------------------
# Validation and import results
# ---------------------------------------------------------------------------


class ImportIssue(BaseModel):
    row: int
    field: str
    message: str
    data: dict[str, Any] | None = None


class ImportWarning(BaseModel):
    row: int
    message: str
    data: dict[str, Any] | None = None


class ImportValidationReport(BaseModel):
    valid: bool
    total_records: int
    valid_records: int
    errors: list[ImportIssue] = Field(default_factory=list)
    warnings: list[ImportWarning] = Field(default_factory=list)


class PRFImportResult(BaseModel):
    success: bool
    message: str
    total_records: int
    imported_records: int
    skipped_records: int
    errors: list[ImportIssue] = Field(default_factory=list)
    warnings: list[ImportWarning] = Field(default_factory=list)
    validation: ImportValidationReport | None = None
    import_id: int | None = None


# ---------------------------------------------------------------------------
# Template and history
# ---------------------------------------------------------------------------


class ImportTemplate(BaseModel):
    headers: list[str]
    sample_data: list[dict[str, Any]]
    instructions: dict[str, str]


class ImportHistoryItem(BaseModel):
    id: int
    import_type: str
    source_name: str
    imported_at: datetime
    username: str
    validate_only: bool
    total_records: int
    imported_records: int
    skipped_records: int
    error_count: int
    status: str

    model_config = ConfigDict(from_attributes=True)


class ImportHistoryResponse(BaseModel):
    rows: list[ImportHistoryItem]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    page_size: int = Field(..., ge=1)
