"""
Application-wide constants for the PRF & Budget Monitor.

Defines domain enumerations, business rule thresholds, and
lookup lists used across routers, services, and models.
"""

from typing import Final

# ---------------------------------------------------------------------------
# User roles
# ---------------------------------------------------------------------------

ROLES: Final[list[str]] = [
    "ADMIN",
    "DOCCON",
    "USER",
]

# Roles allowed to create and edit PRFs, budgets and accounts
EDITOR_ROLES: Final[tuple[str, ...]] = ("ADMIN", "DOCCON")

# ---------------------------------------------------------------------------
# Chart of Accounts
# ---------------------------------------------------------------------------

EXPENSE_TYPES: Final[list[str]] = [
    "CAPEX",
    "OPEX",
]

# ---------------------------------------------------------------------------
# PRF states
# ---------------------------------------------------------------------------

PRF_STATUSES: Final[list[str]] = [
    "Draft",
    "Submitted",
    "Under Review",
    "Approved",
    "Rejected",
    "Completed",
    "Cancelled",
]

PRF_PRIORITIES: Final[list[str]] = [
    "Low",
    "Medium",
    "High",
    "Critical",
]

# PRFs in these states count as budget spend
UTILIZING_STATUSES: Final[tuple[str, ...]] = ("Approved", "Completed")

# PRFs in these states are still awaiting a decision
PENDING_STATUSES: Final[tuple[str, ...]] = ("Draft", "Submitted", "Under Review")

# ---------------------------------------------------------------------------
# PRF item states and PRF -> item status cascade
# ---------------------------------------------------------------------------

ITEM_STATUSES: Final[list[str]] = [
    "Pending",
    "Approved",
    "Picked Up",
    "On Hold",
    "Cancelled",
]

PRF_TO_ITEM_STATUS: Final[dict[str, str]] = {
    "Approved": "Approved",
    "Req. Approved": "Approved",
    "Req. Approved 2": "Approved",
    "In transit": "Approved",
    "On order": "Approved",
    "Completed": "Picked Up",
    "Rejected": "Cancelled",
    "Cancelled": "Cancelled",
    "On Hold": "On Hold",
}

DEFAULT_ITEM_STATUS: Final[str] = "Pending"

# ---------------------------------------------------------------------------
# Budget
# ---------------------------------------------------------------------------

BUDGET_TYPES: Final[list[str]] = [
    "Annual",
    "Quarterly",
    "Monthly",
]

BUDGET_STATUSES: Final[list[str]] = [
    "Active",
    "Closed",
    "Frozen",
]

# Utilization levels (percent of allocation)
LEVEL_CRITICAL_MIN: Final[float] = 90.0
LEVEL_HIGH_MIN: Final[float] = 75.0
LEVEL_MEDIUM_MIN: Final[float] = 50.0

# Cost-code status: below this utilization a code is "Under Budget"
UNDER_BUDGET_MAX: Final[float] = 50.0

COST_CODE_STATUSES: Final[list[str]] = [
    "Over Budget",
    "Under Budget",
    "On Track",
]

# Prefix for budgets whose account code matches no PRF cost code
NO_COST_CODE_PREFIX: Final[str] = "NO_COST_CODE_"

# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

IT_DEPARTMENT: Final[str] = "IT"

UNALLOCATED_REASONS: Final[list[str]] = [
    "Zero Allocation",
    "Non-IT Department",
    "Other",
]

# ---------------------------------------------------------------------------
# Bulk PRF import
# ---------------------------------------------------------------------------

IMPORT_MIN_BUDGET_YEAR: Final[int] = 2020
IMPORT_MAX_BUDGET_YEAR: Final[int] = 2030
IMPORT_FIRST_DATA_ROW: Final[int] = 2  # row 1 of the sheet holds the headers
IMPORT_DEFAULT_SUBMITTER: Final[str] = "Unknown User"
IMPORT_DEFAULT_DESCRIPTION: Final[str] = "No description provided"
IMPORT_NOTES_PREFIX: Final[str] = "Imported from Excel"
IMPORT_STATUS: Final[str] = "Completed"
IMPORT_DEPARTMENT: Final[str] = IT_DEPARTMENT

IMPORT_STATES: Final[list[str]] = [
    "SUCCESS",
    "PARTIAL",
    "FAILED",
]
