"""Payment plan schemas."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field, model_validator

from app.core.enums import PaymentFrequency
from app.core.schemas import CamelModel


class PaymentPlanCreate(CamelModel):
    student_id: int
    invoice_id: Optional[int] = None
    plan_name: Optional[str] = Field(None, max_length=255)
    total_amount: int = Field(..., gt=0)
    down_payment: int = Field(0, ge=0)
    installment_count: int = Field(..., ge=1, le=36)
    frequency: PaymentFrequency
    start_date: date
    term: Optional[int] = Field(None, ge=1, le=3, description="Used only when no invoice is linked")
    year: Optional[int] = Field(None, ge=2020, le=2100, description="Used only when no invoice is linked")
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_down_payment(self):
        if self.down_payment >= self.total_amount:
            raise ValueError("down payment must be less than the total amount")
        return self


class InstallmentResponse(CamelModel):
    id: int
    installment_number: int
    due_date: date
    amount: int
    paid_amount: int
    paid_at: Optional[datetime] = None
    status: str


class PaymentPlanResponse(CamelModel):
    id: int
    student_id: int
    invoice_id: Optional[int] = None
    plan_name: Optional[str] = None
    total_amount: int
    down_payment: int
    installment_count: int
    frequency: str
    start_date: date
    term: int
    year: int
    status: str
    notes: Optional[str] = None
    created_at: datetime
    installments: List[InstallmentResponse] = []


class PayInstallmentRequest(CamelModel):
    installment_id: int
    amount: int = Field(..., gt=0)
    payment_method: Optional[str] = None


class PayInstallmentResponse(CamelModel):
    success: bool = True
    receipt_number: str


class ReconcileResponse(CamelModel):
    synced: int
    skipped: int
