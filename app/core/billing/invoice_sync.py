"""
Invoice balance updates expressed as single UPDATE statements.

The new amount_paid, balance and status are computed by the database from the row's
current values, so two payments committed against the same invoice both land.
"""

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import InvoiceStatus
from app.core.models import Invoice


def _clamped_balance(new_paid):
    remaining = Invoice.total_amount - new_paid
    return case((remaining > 0, remaining), else_=0)


async def apply_payment_to_invoice(db: AsyncSession, invoice_id: int, school_id: int, amount: int) -> None:
    """amount_paid += amount; balance = max(0, total - amount_paid); paid once amount_paid reaches total."""
    new_paid = Invoice.amount_paid + amount
    await db.execute(
        update(Invoice)
        .where(Invoice.id == invoice_id, Invoice.school_id == school_id)
        .values(
            amount_paid=new_paid,
            balance=_clamped_balance(new_paid),
            status=case(
                (new_paid >= Invoice.total_amount, InvoiceStatus.paid.value),
                else_=InvoiceStatus.partial.value,
            ),
        )
        .execution_options(synchronize_session=False)
    )


async def reverse_payment_on_invoice(db: AsyncSession, invoice_id: int, school_id: int, amount: int) -> None:
    """Undo a voided payment. amount_paid never drops below zero."""
    lowered = Invoice.amount_paid - amount
    new_paid = case((lowered > 0, lowered), else_=0)
    await db.execute(
        update(Invoice)
        .where(Invoice.id == invoice_id, Invoice.school_id == school_id)
        .values(
            amount_paid=new_paid,
            balance=_clamped_balance(new_paid),
            status=case(
                (lowered <= 0, InvoiceStatus.unpaid.value),
                (lowered >= Invoice.total_amount, InvoiceStatus.paid.value),
                else_=InvoiceStatus.partial.value,
            ),
        )
        .execution_options(synchronize_session=False)
    )
