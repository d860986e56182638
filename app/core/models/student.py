from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from app.core.enums import BoardingStatus
from app.db.session import Base


class Student(Base):
    """
    Student directory row. Managed by the student module; billing reads
    school_id, class_level and boarding_status and never writes here.
    """

    __tablename__ = "students"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    class_level = Column(String(50), nullable=False)
    stream = Column(String(50), nullable=True)
    boarding_status = Column(String(20), nullable=False, default=BoardingStatus.DAY.value)  # day, boarding
    parent_contact = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    school = relationship("School", back_populates="students")
