"""Payment schemas."""

from datetime import date, datetime
from typing import Optional

from pydantic import Field

from app.core.schemas import CamelModel


class PaymentCreate(CamelModel):
    student_id: int
    fee_type: str = Field(..., min_length=1, max_length=100)
    amount_paid: int = Field(..., gt=0)
    term: int = Field(..., ge=1, le=3)
    year: int = Field(..., ge=2020, le=2100)
    payment_method: Optional[str] = Field(None, description="Cash, Bank Deposit or Cheque; anything else is recorded as Cash")
    receipt_number: Optional[str] = Field(None, max_length=32)
    payment_date: Optional[date] = None
    notes: Optional[str] = None


class PaymentResponse(CamelModel):
    id: int
    student_id: int
    invoice_id: Optional[int] = None
    payment_plan_id: Optional[int] = None
    plan_installment_id: Optional[int] = None
    fee_type: str
    term: int
    year: int
    amount_due: int
    amount_paid: int
    balance: int
    payment_date: date
    payment_method: str
    receipt_number: Optional[str] = None
    received_by: Optional[int] = None
    status: str
    notes: Optional[str] = None
    is_deleted: bool
    void_reason: Optional[str] = None
    voided_at: Optional[datetime] = None
    created_at: datetime


class VoidPaymentRequest(CamelModel):
    reason: str = Field(..., min_length=1, max_length=500)
