from sqlalchemy import Column, ForeignKey, Integer

from app.db.session import Base


class ReceiptCounter(Base):
    """Last issued receipt sequence per (school, year). Incremented in place under a row lock."""

    __tablename__ = "receipt_counters"

    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), primary_key=True)
    year = Column(Integer, primary_key=True)
    last_number = Column(Integer, nullable=False, default=0)
