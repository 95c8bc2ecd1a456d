"""SQLAlchemy models package for the PRF & Budget Monitor.

Importing all models here ensures that SQLAlchemy's mapper registry is
populated before ``Base.metadata.create_all()`` or Alembic migrations run.
The import order follows the foreign-key dependency graph so that parent
tables are always registered before their children.

Usage from other modules:
    from prf_monitor.models import PRF, ChartOfAccounts
"""

# Users (referenced by budgets and PRFs)
from prf_monitor.models.user import AppUser  # noqa: F401

# Cost-code registry
from prf_monitor.models.chart_of_accounts import ChartOfAccounts  # noqa: F401

# Allocations
from prf_monitor.models.budget import Budget  # noqa: F401

# Purchase requests
from prf_monitor.models.prf import PRF  # noqa: F401
from prf_monitor.models.prf_item import PRFItem  # noqa: F401

# Import audit log
from prf_monitor.models.import_record import ImportRecord  # noqa: F401

__all__ = [
    "AppUser",
    "ChartOfAccounts",
    "Budget",
    "PRF",
    "PRFItem",
    "ImportRecord",
]
