"""Bulk-import row validators.

Public API
----------
BaseRowValidator  — Abstract base; inherit to validate a new row type.
ValidationResult  — Dataclass returned by every ``validator.validate()`` call.
PRFRowValidator   — Historical PRF rows.
BudgetRowValidator — Budget rows sent alongside PRF rows.

Usage example::

    from prf_monitor.parsers import PRFRowValidator

    result = PRFRowValidator().validate(rows)
    print(result.summary())
"""

from .base_parser import BaseRowValidator, ValidationResult
from .prf_rows import BudgetRowValidator, PRFRowValidator

__all__: list[str] = [
    "BaseRowValidator",
    "ValidationResult",
    "PRFRowValidator",
    "BudgetRowValidator",
]
