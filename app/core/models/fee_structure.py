"""Fee structure: catalog price per class, fee type, term and year."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.enums import BoardingStatus
from app.db.session import Base


class FeeStructure(Base):
    """
    Baseline price for a fee type. term NULL means the row applies to every term of the year.
    boarding_status "all" applies to day and boarding students alike.
    """

    __tablename__ = "fee_structures"
    __table_args__ = (
        UniqueConstraint(
            "school_id",
            "class_level",
            "fee_type",
            "term_key",
            "year",
            "boarding_status",
            name="uq_fee_structure_class_type_term_year_boarding",
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    class_level = Column(String(50), nullable=False)
    fee_type = Column(String(100), nullable=False)
    amount = Column(Integer, nullable=False)
    term = Column(Integer, nullable=True)
    # term or 0; lets the unique constraint treat "all terms" as a single value
    term_key = Column(Integer, nullable=False, default=0)
    year = Column(Integer, nullable=False)
    boarding_status = Column(String(20), nullable=False, default=BoardingStatus.ALL.value)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school = relationship("School")
