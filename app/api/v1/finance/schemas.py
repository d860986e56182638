"""Finance reporting schemas."""

from datetime import date
from typing import List, Optional

from pydantic import Field

from app.core.schemas import CamelModel


class DebtorItem(CamelModel):
    invoice_id: int
    invoice_number: str
    student_id: int
    student_name: Optional[str] = None
    student_class: Optional[str] = None
    student_stream: Optional[str] = None
    parent_phone: Optional[str] = None
    term: int
    year: int
    total_amount: int
    amount_paid: int
    balance: int
    due_date: Optional[date] = None
    days_overdue: int
    aging_category: str


class DebtorSummary(CamelModel):
    total_debtors: int = 0
    total_outstanding: int = 0
    current: int = 0
    # fixed wire names; to_camel would emit days1To30
    days1to30: int = Field(0, alias="days1to30")
    days31to60: int = Field(0, alias="days31to60")
    days61to90: int = Field(0, alias="days61to90")
    days90plus: int = Field(0, alias="days90plus")


class DebtorsResponse(CamelModel):
    debtors: List[DebtorItem]
    summary: DebtorSummary
    total: int
    limit: int
    offset: int


class FinancialSummary(CamelModel):
    total_due: int
    total_collected: int
    total_outstanding: int
    total_expenses: int
    net_income: int
    collection_rate: int
    invoice_count: int
    payment_count: int
    expense_count: int
    total_debits: int
    total_credits: int
    ledger_outstanding: int


class LedgerEntry(CamelModel):
    id: int
    transaction_type: str
    amount: int
    description: Optional[str] = None
    term: int
    year: int
    transaction_date: date
    fee_payment_id: Optional[int] = None
    invoice_id: Optional[int] = None
    running_balance: int


class StudentLedgerResponse(CamelModel):
    student_id: int
    transactions: List[LedgerEntry]
    total_debits: int
    total_credits: int
    balance: int
