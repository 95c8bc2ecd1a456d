"""Budget model — allocation for one account and fiscal period."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from prf_monitor.database import Base


class Budget(Base):
    """Budget allocation keyed by account and fiscal period.

    At most one row per ``(coa_id, fiscal_year)`` is allowed.  The service
    layer enforces this on writes; legacy duplicates are found and removed
    by the reconciliation service.

    Attributes:
        id: Primary key.
        coa_id: FK to ChartOfAccounts.
        fiscal_year: Fiscal year, e.g. 2025.
        quarter: Optional quarter (1-4).
        month: Optional month (1-12).
        allocated_amount: Amount allocated for the period.
        utilized_amount: Stored spend, refreshed from PRFs on demand.
        department: Department that owns the allocation.
        budget_type: "Annual", "Quarterly" or "Monthly".
        expense_type: "CAPEX" or "OPEX".
        start_date: Period start.
        end_date: Period end.
        status: "Active", "Closed" or "Frozen".
        description: Short description.
        notes: Free-form notes.
        created_by: FK to the AppUser who created the row.
        created_at: Record creation timestamp.
        updated_at: Last modification timestamp.
    """

    __tablename__ = "budget"

    id = Column(Integer, primary_key=True, autoincrement=True)
    coa_id = Column(Integer, ForeignKey("chart_of_accounts.id"), nullable=False, index=True)
    fiscal_year = Column(Integer, nullable=False, index=True)
    quarter = Column(Integer, nullable=True)
    month = Column(Integer, nullable=True)
    allocated_amount = Column(Numeric(18, 2), default=0, nullable=False)
    utilized_amount = Column(Numeric(18, 2), default=0, nullable=False)
    department = Column(String(100), nullable=True)
    budget_type = Column(String(20), default="Annual", nullable=False)
    expense_type = Column(String(10), nullable=True)  # "CAPEX", "OPEX"
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    status = Column(String(20), default="Active", nullable=False)
    # "Active", "Closed", "Frozen"
    description = Column(String(500), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(Integer, ForeignKey("app_user.id"), nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    account = relationship("ChartOfAccounts", back_populates="budgets", lazy="select")
