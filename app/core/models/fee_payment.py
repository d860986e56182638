"""Fee payment: immutable snapshot of a single payment event."""

from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.db.session import Base


class FeePayment(Base):
    """
    One payment event. amount_due and balance are snapshots taken when the payment was
    recorded. Corrections soft-delete (is_deleted) and never edit the amounts.
    idempotency_key marks rows synthesized by reconciliation so reruns detect them.
    """

    __tablename__ = "fee_payments"
    __table_args__ = (
        UniqueConstraint("school_id", "receipt_number", name="uq_fee_payment_school_receipt"),
        UniqueConstraint("school_id", "idempotency_key", name="uq_fee_payment_school_idempotency_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True, index=True)
    payment_plan_id = Column(Integer, ForeignKey("payment_plans.id", ondelete="SET NULL"), nullable=True)
    plan_installment_id = Column(Integer, ForeignKey("plan_installments.id", ondelete="SET NULL"), nullable=True, index=True)
    fee_type = Column(String(100), nullable=False)
    term = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    amount_due = Column(Integer, nullable=False)
    amount_paid = Column(Integer, nullable=False)
    balance = Column(Integer, nullable=False, default=0)
    payment_date = Column(Date, nullable=False)
    payment_method = Column(String(30), nullable=False)  # Cash, Bank Deposit, Cheque, Adjustment
    receipt_number = Column(String(32), nullable=True)
    received_by = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False)  # partial, paid
    notes = Column(Text, nullable=True)
    idempotency_key = Column(String(100), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)
    void_reason = Column(Text, nullable=True)
    voided_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student")
    invoice = relationship("Invoice")
    installment = relationship("PlanInstallment")
