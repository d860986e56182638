"""Student fee override: per-student substitute amount for one fee type."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.session import Base


class StudentFeeOverride(Base):
    """Supersedes the matching FeeStructure amount for this student only. One row per (student, fee_type, year, term)."""

    __tablename__ = "student_fee_overrides"
    __table_args__ = (
        UniqueConstraint("student_id", "fee_type", "year", "term_key", name="uq_student_fee_override_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_type = Column(String(100), nullable=False)
    custom_amount = Column(Integer, nullable=False)
    term = Column(Integer, nullable=True)
    term_key = Column(Integer, nullable=False, default=0)
    year = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
