"""PRF model — purchase request form."""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from prf_monitor.database import Base


class PRF(Base):
    """Purchase Request Form.

    ``purchase_cost_code`` is free text matched against
    ``ChartOfAccounts.coa_code``; ``coa_id`` is an optional direct link.

    Attributes:
        id: Primary key.
        prf_no: Unique PRF number, e.g. "PRF-2025-0001".
        title: Short title.
        description: Detailed description.
        requestor_id: FK to the requesting AppUser.
        department: Requesting department.
        coa_id: Optional FK to ChartOfAccounts.
        requested_amount: Amount requested.
        approved_amount: Amount approved.
        actual_amount: Amount actually spent.
        priority: "Low", "Medium", "High" or "Critical".
        status: Workflow state (see ``constants.PRF_STATUSES``); imported
            records may carry legacy values such as "Req. Approved".
        request_date: Date the request was raised.
        required_date: Date the goods are needed.
        approval_date: Date of approval.
        completion_date: Date of completion.
        approved_by: FK to the approving AppUser.
        justification: Business justification.
        vendor_name: Supplier name.
        vendor_contact: Supplier contact.
        notes: Free-form notes (import fixes are recorded here).
        date_submit: Submission date from the source spreadsheet.
        submit_by: Submitter name from the source spreadsheet.
        sum_description_requested: Summary of what is requested.
        purchase_cost_code: Cost code matched against COA codes.
        required_for: Purpose or requesting team.
        budget_year: Fiscal year the request is charged to.
        created_at: Record creation timestamp.
        updated_at: Last modification timestamp.
    """

    __tablename__ = "prf"

    id = Column(Integer, primary_key=True, autoincrement=True)
    prf_no = Column(String(50), unique=True, nullable=False, index=True)
    title = Column(String(500), nullable=True)
    description = Column(Text, nullable=True)
    requestor_id = Column(Integer, ForeignKey("app_user.id"), nullable=True)
    department = Column(String(100), nullable=True)
    coa_id = Column(Integer, ForeignKey("chart_of_accounts.id"), nullable=True)
    requested_amount = Column(Numeric(18, 2), default=0, nullable=False)
    approved_amount = Column(Numeric(18, 2), nullable=True)
    actual_amount = Column(Numeric(18, 2), nullable=True)
    priority = Column(String(20), default="Medium", nullable=False)
    status = Column(String(50), default="Draft", nullable=False)
    request_date = Column(Date, nullable=True)
    required_date = Column(Date, nullable=True)
    approval_date = Column(Date, nullable=True)
    completion_date = Column(Date, nullable=True)
    approved_by = Column(Integer, ForeignKey("app_user.id"), nullable=True)
    justification = Column(Text, nullable=True)
    vendor_name = Column(String(255), nullable=True)
    vendor_contact = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    date_submit = Column(Date, nullable=True)
    submit_by = Column(String(200), nullable=True)
    sum_description_requested = Column(String(1000), nullable=True)
    purchase_cost_code = Column(String(50), nullable=True, index=True)
    required_for = Column(String(500), nullable=True)
    budget_year = Column(Integer, nullable=True, index=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    account = relationship("ChartOfAccounts", back_populates="prfs", lazy="select")
    requestor = relationship("AppUser", foreign_keys=[requestor_id], lazy="select")
    approver = relationship("AppUser", foreign_keys=[approved_by], lazy="select")
    items = relationship(
        "PRFItem",
        back_populates="prf",
        order_by="PRFItem.id",
        lazy="select",
        cascade="all, delete-orphan",
    )
