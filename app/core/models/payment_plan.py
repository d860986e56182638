"""Payment plan and its installment schedule."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.enums import InstallmentStatus, PaymentPlanStatus
from app.db.session import Base


class PaymentPlan(Base):
    """
    Installment schedule for a student, optionally against one invoice.
    Installments are generated once at creation and never regenerated.
    term/year are copied from the linked invoice when there is one.
    """

    __tablename__ = "payment_plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)
    plan_name = Column(String(255), nullable=True)
    total_amount = Column(Integer, nullable=False)
    down_payment = Column(Integer, nullable=False, default=0)
    installment_count = Column(Integer, nullable=False)
    frequency = Column(String(20), nullable=False)  # weekly, monthly
    start_date = Column(Date, nullable=False)
    term = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=PaymentPlanStatus.active.value, index=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    invoice = relationship("Invoice")
    installments = relationship(
        "PlanInstallment",
        back_populates="plan",
        cascade="all, delete-orphan",
        order_by="PlanInstallment.installment_number",
    )


class PlanInstallment(Base):
    """amount is fixed at creation; paid_amount only grows and never exceeds amount."""

    __tablename__ = "plan_installments"
    __table_args__ = (
        UniqueConstraint("plan_id", "installment_number", name="uq_plan_installment_number"),
        CheckConstraint("paid_amount <= amount", name="chk_installment_paid_le_amount"),
        CheckConstraint("paid_amount >= 0", name="chk_installment_paid_non_negative"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    plan_id = Column(Integer, ForeignKey("payment_plans.id", ondelete="CASCADE"), nullable=False, index=True)
    installment_number = Column(Integer, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    paid_amount = Column(Integer, nullable=False, default=0)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), nullable=False, default=InstallmentStatus.pending.value)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    plan = relationship("PaymentPlan", back_populates="installments")
