"""Fee audit log: immutable change tracking for catalog, override, scholarship and invoice edits."""

from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String

from app.db.session import Base


class FeeAuditLog(Base):
    """Immutable audit trail for fee-related changes that are not money movements (those live in the ledger)."""

    __tablename__ = "fee_audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    reference_table = Column(String(50), nullable=False)
    reference_id = Column(Integer, nullable=False)
    action_type = Column(String(30), nullable=False)  # CREATE, UPDATE, DEACTIVATE, VOID
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    changed_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
