"""Finance transaction: append-only ledger row."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.db.session import Base


class FinanceTransaction(Base):
    """
    Ledger entry. debit = amount billed (raises what the student owes),
    credit = amount collected. Rows are inserted only; corrections append
    a compensating entry.
    """

    __tablename__ = "finance_transactions"
    __table_args__ = (
        CheckConstraint("transaction_type IN ('debit','credit')", name="chk_finance_transaction_type"),
        CheckConstraint("amount >= 0", name="chk_finance_transaction_amount"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_payment_id = Column(Integer, ForeignKey("fee_payments.id", ondelete="SET NULL"), nullable=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)
    transaction_type = Column(String(10), nullable=False)
    amount = Column(Integer, nullable=False)
    description = Column(Text, nullable=True)
    term = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    transaction_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    fee_payment = relationship("FeePayment")
