"""PRFItem model — line item of a purchase request."""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from prf_monitor.database import Base


class PRFItem(Base):
    """Line item belonging to a PRF.

    The item status follows the parent PRF's status through a fixed
    mapping unless it was changed by hand (``status_overridden``).

    Attributes:
        id: Primary key.
        prf_id: FK to PRF.
        item_name: Item name.
        description: Item description.
        quantity: Units requested (>= 1).
        unit_price: Price per unit.
        total_price: ``quantity * unit_price``.
        specifications: Technical specifications.
        purchase_cost_code: Optional item-level cost code; falls back to
            the parent PRF's code when empty.
        status: "Pending", "Approved", "Picked Up", "On Hold" or "Cancelled".
        status_overridden: True when the status was set manually.
        picked_up_by: Person who collected the item.
        picked_up_date: Collection date.
        notes: Free-form notes.
        created_at: Record creation timestamp.
        updated_at: Last modification timestamp.
    """

    __tablename__ = "prf_item"

    id = Column(Integer, primary_key=True, autoincrement=True)
    prf_id = Column(Integer, ForeignKey("prf.id", ondelete="CASCADE"), nullable=False, index=True)
    item_name = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    unit_price = Column(Numeric(18, 2), default=0, nullable=False)
    total_price = Column(Numeric(18, 2), default=0, nullable=False)
    specifications = Column(Text, nullable=True)
    purchase_cost_code = Column(String(50), nullable=True)
    status = Column(String(20), default="Pending", nullable=False)
    status_overridden = Column(Boolean, default=False, nullable=False)
    picked_up_by = Column(String(200), nullable=True)
    picked_up_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    prf = relationship("PRF", back_populates="items", lazy="select")
