"""Installment paid_amount updates as single guarded UPDATE statements."""

from datetime import datetime

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import InstallmentStatus
from app.core.models import PlanInstallment


async def apply_installment_payment(db: AsyncSession, installment_id: int, amount: int) -> bool:
    """
    paid_amount += amount, only while the result stays within the installment amount.
    Returns False when a concurrent payment already consumed the remaining balance.
    """
    new_paid = PlanInstallment.paid_amount + amount
    result = await db.execute(
        update(PlanInstallment)
        .where(PlanInstallment.id == installment_id, new_paid <= PlanInstallment.amount)
        .values(
            paid_amount=new_paid,
            paid_at=datetime.utcnow(),
            status=case(
                (new_paid >= PlanInstallment.amount, InstallmentStatus.paid.value),
                else_=InstallmentStatus.partial.value,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def reverse_installment_payment(db: AsyncSession, installment_id: int, amount: int) -> None:
    lowered = PlanInstallment.paid_amount - amount
    await db.execute(
        update(PlanInstallment)
        .where(PlanInstallment.id == installment_id)
        .values(
            paid_amount=case((lowered > 0, lowered), else_=0),
            status=case(
                (lowered <= 0, InstallmentStatus.pending.value),
                (lowered >= PlanInstallment.amount, InstallmentStatus.paid.value),
                else_=InstallmentStatus.partial.value,
            ),
        )
        .execution_options(synchronize_session=False)
    )
