"""Append-only ledger. Rows are only ever inserted; nothing here updates or deletes."""

from datetime import date
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import TransactionType
from app.core.models import FinanceTransaction


async def _append(
    db: AsyncSession,
    transaction_type: TransactionType,
    *,
    school_id: int,
    student_id: int,
    amount: int,
    term: int,
    year: int,
    description: str,
    transaction_date: Optional[date] = None,
    fee_payment_id: Optional[int] = None,
    invoice_id: Optional[int] = None,
) -> FinanceTransaction:
    entry = FinanceTransaction(
        school_id=school_id,
        student_id=student_id,
        fee_payment_id=fee_payment_id,
        invoice_id=invoice_id,
        transaction_type=transaction_type.value,
        amount=amount,
        description=description,
        term=term,
        year=year,
        transaction_date=transaction_date or date.today(),
    )
    db.add(entry)
    return entry


async def record_credit(db: AsyncSession, **kwargs) -> FinanceTransaction:
    """Money collected from the student. Caller must commit."""
    return await _append(db, TransactionType.credit, **kwargs)


async def record_debit(db: AsyncSession, **kwargs) -> FinanceTransaction:
    """Money billed to the student, or a reversal of an earlier credit. Caller must commit."""
    return await _append(db, TransactionType.debit, **kwargs)
