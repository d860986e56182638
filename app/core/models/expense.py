from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text

from app.db.session import Base


class Expense(Base):
    """School expense. Maintained by the expenses module; billing reads it for the financial summary."""

    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    description = Column(Text, nullable=False)
    term = Column(Integer, nullable=True)
    year = Column(Integer, nullable=True)
    expense_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="pending")  # pending, approved, rejected, paid
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
