"""Abstract base class for bulk-import row validators.

Provides the shared result container and the row loop (row numbering,
error/warning collection) so that each concrete validator only states
its per-row rules.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Generic, Sequence, TypeVar

from pydantic import BaseModel

from prf_monitor.utils.constants import IMPORT_FIRST_DATA_ROW

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT", bound=BaseModel)


# ---------------------------------------------------------------------------
# Result container
# ---------------------------------------------------------------------------


@dataclass
class ValidationResult:
    """Container returned by every validator after checking a batch of rows.

    Attributes:
        total_records: Number of rows received.
        errors: Row-level problems, each a dict with ``row``, ``field``,
            ``message`` and ``data`` keys.
        warnings: Non-fatal oddities, each a dict with ``row``,
            ``message`` and ``data`` keys.
        format_name: Identifier of the validator that produced the result.
    """

    total_records: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[dict[str, Any]] = field(default_factory=list)
    format_name: str = "UNKNOWN"

    # ------------------------------------------------------------------
    # Convenience helpers
    # ------------------------------------------------------------------

    @property
    def ok(self) -> bool:
        """True when no errors were collected."""
        return len(self.errors) == 0

    @property
    def invalid_rows(self) -> set[int]:
        return {err["row"] for err in self.errors}

    @property
    def valid_records(self) -> int:
        return self.total_records - len(self.invalid_rows)

    def errors_for_row(self, row: int) -> list[dict[str, Any]]:
        return [err for err in self.errors if err["row"] == row]

    def merge(self, other: ValidationResult) -> ValidationResult:
        """Return a new result combining *self* and *other*."""
        return ValidationResult(
            total_records=self.total_records + other.total_records,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
            format_name=f"{self.format_name}+{other.format_name}",
        )

    def summary(self) -> str:
        """One-line human-readable summary of the validation run."""
        status = "OK" if self.ok else "ERROR"
        return (
            f"[{status}] format={self.format_name} "
            f"records={self.total_records} "
            f"errors={len(self.errors)} "
            f"warnings={len(self.warnings)}"
        )


# ---------------------------------------------------------------------------
# Base validator
# ---------------------------------------------------------------------------


class BaseRowValidator(ABC, Generic[RowT]):
    """Abstract base for row validators.

    Subclasses implement ``check_row`` and report problems through
    ``add_error`` / ``add_warning``.  Row numbers follow the spreadsheet
    the data came from: the first data row is row 2 (row 1 holds headers).
    """

    FORMAT_NAME: str = "UNKNOWN"

    def __init__(self) -> None:
        self.result = ValidationResult(format_name=self.FORMAT_NAME)

    @staticmethod
    def row_number(index: int) -> int:
        return index + IMPORT_FIRST_DATA_ROW

    @staticmethod
    def _row_data(row: RowT) -> dict[str, Any]:
        return row.model_dump(by_alias=True, mode="json")

    def add_error(self, row_no: int, field_name: str, message: str, row: RowT) -> None:
        self.result.errors.append(
            {"row": row_no, "field": field_name, "message": message, "data": self._row_data(row)}
        )

    def add_warning(self, row_no: int, message: str, row: RowT) -> None:
        self.result.warnings.append(
            {"row": row_no, "message": message, "data": self._row_data(row)}
        )

    @abstractmethod
    def check_row(self, row_no: int, row: RowT) -> None:
        """Record errors and warnings for a single row."""

    def validate(self, rows: Sequence[RowT]) -> ValidationResult:
        self.result = ValidationResult(
            total_records=len(rows), format_name=self.FORMAT_NAME
        )
        for index, row in enumerate(rows):
            self.check_row(self.row_number(index), row)

        logger.debug("%s validation: %s", self.FORMAT_NAME, self.result.summary())
        return self.result
