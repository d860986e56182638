"""Invoice and its line items. One invoice per (school, student, term, year)."""

from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.enums import InvoiceStatus
from app.db.session import Base


class Invoice(Base):
    """
    Billing statement for one student for one term.
    total_amount is frozen at generation; amount_paid/balance/status move only through
    payment application. Never deleted; only notes, due_date and reminder fields are editable.
    """

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("school_id", "student_id", "term", "year", name="uq_invoice_student_term_year"),
        UniqueConstraint("school_id", "invoice_number", name="uq_invoice_school_number"),
        CheckConstraint("balance >= 0", name="chk_invoice_balance_non_negative"),
        CheckConstraint("status IN ('unpaid','partial','paid')", name="chk_invoice_status"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    school_id = Column(Integer, ForeignKey("schools.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_number = Column(String(64), nullable=False)
    term = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    total_amount = Column(Integer, nullable=False, default=0)
    amount_paid = Column(Integer, nullable=False, default=0)
    balance = Column(Integer, nullable=False, default=0)
    due_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=InvoiceStatus.unpaid.value, index=True)
    notes = Column(Text, nullable=True)
    reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    reminder_count = Column(Integer, nullable=False, default=0)
    last_reminder_type = Column(String(20), nullable=True)  # sms, email
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    fee_type = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    amount = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    invoice = relationship("Invoice", back_populates="items")
