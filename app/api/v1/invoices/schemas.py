"""Invoice schemas."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from app.core.enums import ReminderType
from app.core.schemas import CamelModel


class GenerateInvoicesRequest(CamelModel):
    term: int = Field(..., ge=1, le=3)
    year: int = Field(..., ge=2020, le=2100)
    class_level: Optional[str] = Field(None, description="Restrict generation to one class")
    due_date: Optional[date] = None


class GenerateInvoicesResponse(CamelModel):
    invoices_created: int
    invoices_skipped: int
    message: str = ""


class InvoiceItemResponse(CamelModel):
    id: int
    fee_type: str
    description: Optional[str] = None
    amount: int


class InvoiceResponse(CamelModel):
    id: int
    student_id: int
    invoice_number: str
    term: int
    year: int
    total_amount: int
    amount_paid: int
    balance: int
    due_date: Optional[date] = None
    status: str
    notes: Optional[str] = None
    reminder_sent_at: Optional[datetime] = None
    reminder_count: int
    last_reminder_type: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class InvoiceDetailResponse(InvoiceResponse):
    items: List[InvoiceItemResponse] = []


class InvoiceUpdate(CamelModel):
    """Only notes and due date can change after generation."""

    notes: Optional[str] = None
    due_date: Optional[date] = None


class ReminderRequest(CamelModel):
    type: ReminderType = ReminderType.sms


class BulkReminderRequest(CamelModel):
    type: ReminderType = ReminderType.sms
    min_balance: int = Field(0, ge=0)


class ReminderResponse(CamelModel):
    success: bool = True
    count: int
    message: str
