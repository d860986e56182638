"""Finance reports: debtor aging, financial summary, per-student ledger."""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.billing.pricing import round_half_up
from app.core.billing.scope import clamp_page, get_student_in_school
from app.core.enums import AgingCategory, TransactionType
from app.core.models import Expense, FeePayment, FinanceTransaction, Invoice, Student

from .schemas import (
    DebtorItem,
    DebtorSummary,
    DebtorsResponse,
    FinancialSummary,
    LedgerEntry,
    StudentLedgerResponse,
)

_SUMMARY_FIELD = {
    AgingCategory.CURRENT: "current",
    AgingCategory.DAYS_1_30: "days1to30",
    AgingCategory.DAYS_31_60: "days31to60",
    AgingCategory.DAYS_61_90: "days61to90",
    AgingCategory.DAYS_90_PLUS: "days90plus",
}


def aging_category(days_overdue: int) -> AgingCategory:
    if days_overdue > 90:
        return AgingCategory.DAYS_90_PLUS
    if days_overdue > 60:
        return AgingCategory.DAYS_61_90
    if days_overdue > 30:
        return AgingCategory.DAYS_31_60
    if days_overdue > 0:
        return AgingCategory.DAYS_1_30
    return AgingCategory.CURRENT


def days_overdue(due_date: Optional[date], created_on: date, as_of: date) -> int:
    effective = due_date if due_date is not None else created_on
    return max(0, (as_of - effective).days)


async def get_debtors(
    db: AsyncSession,
    school_id: int,
    term: Optional[int] = None,
    year: Optional[int] = None,
    class_level: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    as_of: Optional[date] = None,
) -> DebtorsResponse:
    """
    Invoices with an outstanding balance, largest first.
    The summary covers every matching invoice; only the debtor list is paged.
    """
    limit, offset = clamp_page(limit, offset)
    as_of = as_of or date.today()

    stmt = (
        select(Invoice, Student)
        .outerjoin(Student, Invoice.student_id == Student.id)
        .where(Invoice.school_id == school_id, Invoice.balance > 0)
    )
    if term is not None:
        stmt = stmt.where(Invoice.term == term)
    if year is not None:
        stmt = stmt.where(Invoice.year == year)
    if class_level:
        stmt = stmt.where(Student.class_level == class_level)
    rows = (await db.execute(stmt.order_by(Invoice.balance.desc(), Invoice.id))).all()

    debtors: List[DebtorItem] = []
    summary = DebtorSummary()
    for invoice, student in rows:
        overdue = days_overdue(invoice.due_date, invoice.created_at.date(), as_of)
        category = aging_category(overdue)
        field = _SUMMARY_FIELD[category]
        setattr(summary, field, getattr(summary, field) + invoice.balance)
        summary.total_outstanding += invoice.balance
        debtors.append(
            DebtorItem(
                invoice_id=invoice.id,
                invoice_number=invoice.invoice_number,
                student_id=invoice.student_id,
                student_name=student.name if student else None,
                student_class=student.class_level if student else None,
                student_stream=student.stream if student else None,
                parent_phone=student.parent_contact if student else None,
                term=invoice.term,
                year=invoice.year,
                total_amount=invoice.total_amount,
                amount_paid=invoice.amount_paid,
                balance=invoice.balance,
                due_date=invoice.due_date,
                days_overdue=overdue,
                aging_category=category.value,
            )
        )
    summary.total_debtors = len(debtors)

    return DebtorsResponse(
        debtors=debtors[offset:offset + limit],
        summary=summary,
        total=len(debtors),
        limit=limit,
        offset=offset,
    )


def _period_filters(column_term, column_year, term: Optional[int], year: Optional[int]) -> list:
    filters = []
    if term is not None:
        filters.append(column_term == term)
    if year is not None:
        filters.append(column_year == year)
    return filters


async def get_financial_summary(
    db: AsyncSession,
    school_id: int,
    term: Optional[int] = None,
    year: Optional[int] = None,
) -> FinancialSummary:
    total_due, total_outstanding, invoice_count = (
        await db.execute(
            select(
                func.coalesce(func.sum(Invoice.total_amount), 0),
                func.coalesce(func.sum(Invoice.balance), 0),
                func.count(Invoice.id),
            ).where(Invoice.school_id == school_id, *_period_filters(Invoice.term, Invoice.year, term, year))
        )
    ).one()

    total_collected, payment_count = (
        await db.execute(
            select(func.coalesce(func.sum(FeePayment.amount_paid), 0), func.count(FeePayment.id)).where(
                FeePayment.school_id == school_id,
                FeePayment.is_deleted.is_(False),
                *_period_filters(FeePayment.term, FeePayment.year, term, year),
            )
        )
    ).one()

    total_expenses, expense_count = (
        await db.execute(
            select(func.coalesce(func.sum(Expense.amount), 0), func.count(Expense.id)).where(
                Expense.school_id == school_id,
                *_period_filters(Expense.term, Expense.year, term, year),
            )
        )
    ).one()

    total_debits, total_credits = await _ledger_totals(
        db,
        FinanceTransaction.school_id == school_id,
        *_period_filters(FinanceTransaction.term, FinanceTransaction.year, term, year),
    )

    total_due = int(total_due)
    total_collected = int(total_collected)
    total_expenses = int(total_expenses)
    return FinancialSummary(
        total_due=total_due,
        total_collected=total_collected,
        total_outstanding=int(total_outstanding),
        total_expenses=total_expenses,
        net_income=total_collected - total_expenses,
        collection_rate=round_half_up(Decimal(100 * total_collected) / Decimal(total_due)) if total_due > 0 else 0,
        invoice_count=int(invoice_count),
        payment_count=int(payment_count),
        expense_count=int(expense_count),
        total_debits=total_debits,
        total_credits=total_credits,
        ledger_outstanding=total_debits - total_credits,
    )


async def _ledger_totals(db: AsyncSession, *filters) -> Tuple[int, int]:
    debits, credits = (
        await db.execute(
            select(
                func.coalesce(
                    func.sum(
                        case((FinanceTransaction.transaction_type == TransactionType.debit.value, FinanceTransaction.amount), else_=0)
                    ),
                    0,
                ),
                func.coalesce(
                    func.sum(
                        case((FinanceTransaction.transaction_type == TransactionType.credit.value, FinanceTransaction.amount), else_=0)
                    ),
                    0,
                ),
            ).where(*filters)
        )
    ).one()
    return int(debits), int(credits)


async def get_student_ledger(db: AsyncSession, school_id: int, student_id: int) -> StudentLedgerResponse:
    """Ledger rows in date order with the running amount owed (debits minus credits)."""
    await get_student_in_school(db, school_id, student_id)

    signed = case(
        (FinanceTransaction.transaction_type == TransactionType.debit.value, FinanceTransaction.amount),
        else_=-FinanceTransaction.amount,
    )
    running = func.sum(signed).over(
        order_by=(FinanceTransaction.transaction_date, FinanceTransaction.id)
    )
    rows = (
        await db.execute(
            select(FinanceTransaction, running.label("running_balance"))
            .where(
                FinanceTransaction.school_id == school_id,
                FinanceTransaction.student_id == student_id,
            )
            .order_by(FinanceTransaction.transaction_date, FinanceTransaction.id)
        )
    ).all()

    entries = [
        LedgerEntry(
            id=tx.id,
            transaction_type=tx.transaction_type,
            amount=tx.amount,
            description=tx.description,
            term=tx.term,
            year=tx.year,
            transaction_date=tx.transaction_date,
            fee_payment_id=tx.fee_payment_id,
            invoice_id=tx.invoice_id,
            running_balance=int(balance),
        )
        for tx, balance in rows
    ]
    total_debits, total_credits = await _ledger_totals(
        db,
        FinanceTransaction.school_id == school_id,
        FinanceTransaction.student_id == student_id,
    )
    return StudentLedgerResponse(
        student_id=student_id,
        transactions=entries,
        total_debits=total_debits,
        total_credits=total_credits,
        balance=total_debits - total_credits,
    )
