"""ImportRecord model — audit log of every bulk PRF import."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from prf_monitor.database import Base


class ImportRecord(Base):
    """Audit row written after each bulk import call.

    One row is written per request regardless of outcome so that
    administrators can review what was imported, by whom, and when.

    Attributes:
        id: Primary key.
        import_type: What was imported, currently always ``"PRF"``.
        source_name: Client-supplied label of the source (e.g. the
            spreadsheet name), or ``"api"``.
        imported_at: Timestamp of the import.
        user_id: ID of the AppUser who ran it.
        username: Snapshot of the username at import time.
        validate_only: True when the call only validated the rows.
        total_records: Rows received.
        imported_records: Rows inserted or updated.
        skipped_records: Rows skipped (duplicates or failures).
        error_count: Validation and persistence errors.
        status: ``"SUCCESS"``, ``"PARTIAL"`` or ``"FAILED"``.
        errors_json: JSON list of error entries.
        warnings_json: JSON list of warning entries.
    """

    __tablename__ = "import_record"

    id = Column(Integer, primary_key=True, autoincrement=True)
    import_type = Column(String(20), default="PRF", nullable=False)
    source_name = Column(String(500), nullable=False)
    imported_at = Column(DateTime, default=func.now(), nullable=False)
    user_id = Column(Integer, nullable=False)
    username = Column(String(100), nullable=False)
    validate_only = Column(Boolean, default=False, nullable=False)
    total_records = Column(Integer, default=0, nullable=False)
    imported_records = Column(Integer, default=0, nullable=False)
    skipped_records = Column(Integer, default=0, nullable=False)
    error_count = Column(Integer, default=0, nullable=False)
    status = Column(String(20), nullable=False)  # SUCCESS | PARTIAL | FAILED
    errors_json = Column(Text, nullable=True)
    warnings_json = Column(Text, nullable=True)
