"""ChartOfAccounts model — cost-code registry used to classify budgets and spend."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from prf_monitor.database import Base


class ChartOfAccounts(Base):
    """A single account (cost code) in the chart of accounts.

    PRFs do not reference accounts by foreign key: their free-text
    ``purchase_cost_code`` is matched against ``coa_code`` by string
    equality.  Budgets reference accounts by ``coa_id``.

    Attributes:
        id: Primary key.
        coa_code: Unique, stable account code, e.g. "MTIRMRAD496001".
        coa_name: Human-readable account name.
        category: Free-form classification label.
        expense_type: "CAPEX" or "OPEX".
        department: Owning department.
        parent_coa_id: Optional self-reference for the account hierarchy.
        description: Longer description.
        is_active: Soft-delete flag.
        created_at: Record creation timestamp.
        updated_at: Last modification timestamp.
    """

    __tablename__ = "chart_of_accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    coa_code = Column(String(50), unique=True, nullable=False, index=True)
    coa_name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=True)
    expense_type = Column(String(10), nullable=True)  # "CAPEX", "OPEX"
    department = Column(String(100), nullable=True)
    parent_coa_id = Column(Integer, ForeignKey("chart_of_accounts.id"), nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    parent = relationship(
        "ChartOfAccounts", remote_side=[id], back_populates="children", lazy="select"
    )
    children = relationship(
        "ChartOfAccounts", back_populates="parent", lazy="select"
    )
    budgets = relationship("Budget", back_populates="account", lazy="select")
    prfs = relationship("PRF", back_populates="account", lazy="select")
