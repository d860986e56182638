"""Scholarship definitions and their per-student, per-term assignments."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.enums import ScholarshipAssignmentStatus
from app.db.session import Base


class Scholarship(Base):
    """Discount rule. fee_types empty means the discount applies to every fee type."""

    __tablename__ = "scholarships"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    discount_type = Column(String(20), nullable=False)  # percentage, fixed
    discount_value = Column(Integer, nullable=False)
    fee_types = Column(JSON, nullable=False, default=list)
    description = Column(Text, nullable=True)
    valid_from = Column(Date, nullable=True)
    valid_to = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    assignments = relationship("StudentScholarship", back_populates="scholarship")


class StudentScholarship(Base):
    """Assignment of a scholarship to a student for a year (and optionally one term). Only "active" rows apply."""

    __tablename__ = "student_scholarships"
    __table_args__ = (
        UniqueConstraint("student_id", "scholarship_id", "year", "term_key", name="uq_student_scholarship_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    scholarship_id = Column(Integer, ForeignKey("scholarships.id", ondelete="CASCADE"), nullable=False, index=True)
    term = Column(Integer, nullable=True)
    term_key = Column(Integer, nullable=False, default=0)
    year = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=ScholarshipAssignmentStatus.active.value)
    approved_by = Column(Integer, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    scholarship = relationship("Scholarship", back_populates="assignments")
    student = relationship("Student")
