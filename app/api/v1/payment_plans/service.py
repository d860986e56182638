"""
Payment plan service: installment schedules, installment payments and the
down-payment / installment ledger backfill.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.v1.payments.service import normalize_payment_method, post_payment
from app.core.billing.installments import apply_installment_payment
from app.core.billing.pricing import round_half_up
from app.core.billing.receipts import allocate_receipt_number
from app.core.billing.scope import clamp_page, get_student_in_school
from app.core.enums import InstallmentStatus, PaymentFrequency, PaymentMethod, PaymentPlanStatus
from app.core.exceptions import AccessDenied, NotFound, Overpayment, ValidationError
from app.core.models import FeePayment, Invoice, PaymentPlan, PlanInstallment
from app.core.schemas import Page
from app.db.session import unit_of_work

from .schemas import (
    PayInstallmentRequest,
    PayInstallmentResponse,
    PaymentPlanCreate,
    PaymentPlanResponse,
    ReconcileResponse,
)

logger = logging.getLogger(__name__)

PLAN_FEE_TYPE = "Tuition"


def installment_amount(total_amount: int, down_payment: int, installment_count: int) -> int:
    return round_half_up(Decimal(total_amount - down_payment) / Decimal(installment_count))


def installment_due_dates(start_date: date, frequency: str, installment_count: int) -> List[date]:
    """Due date of installment i is start + i weeks or start + i months (clamped to month end)."""
    if frequency == PaymentFrequency.weekly.value:
        return [start_date + timedelta(days=7 * i) for i in range(1, installment_count + 1)]
    return [start_date + relativedelta(months=i) for i in range(1, installment_count + 1)]


def down_payment_key(plan_id: int) -> str:
    return f"plan:{plan_id}:down-payment"


def installment_key(plan_id: int, installment_number: int) -> str:
    return f"plan:{plan_id}:installment:{installment_number}"


def _plan_label(plan: PaymentPlan) -> str:
    return plan.plan_name or f"Plan {plan.id}"


async def create_payment_plan(
    db: AsyncSession,
    school_id: int,
    payload: PaymentPlanCreate,
    created_by: Optional[int] = None,
) -> PaymentPlanResponse:
    await get_student_in_school(db, school_id, payload.student_id)

    if payload.invoice_id is not None:
        invoice = await db.get(Invoice, payload.invoice_id)
        if invoice is None or invoice.school_id != school_id:
            raise NotFound("Invoice not found")
        if invoice.student_id != payload.student_id:
            raise ValidationError("Invoice does not belong to this student")
        term, year = invoice.term, invoice.year
    elif payload.term is not None and payload.year is not None:
        term, year = payload.term, payload.year
    else:
        term, year = 1, date.today().year
        logger.warning(
            "Payment plan for student %s has no invoice and no term/year; attributing to term %s year %s",
            payload.student_id, term, year,
        )

    frequency = payload.frequency.value
    amount = installment_amount(payload.total_amount, payload.down_payment, payload.installment_count)
    if amount <= 0:
        raise ValidationError("Installment amount rounds to zero; use fewer installments")

    async with unit_of_work(db):
        plan = PaymentPlan(
            school_id=school_id,
            student_id=payload.student_id,
            invoice_id=payload.invoice_id,
            plan_name=payload.plan_name,
            total_amount=payload.total_amount,
            down_payment=payload.down_payment,
            installment_count=payload.installment_count,
            frequency=frequency,
            start_date=payload.start_date,
            term=term,
            year=year,
            status=PaymentPlanStatus.active.value,
            notes=payload.notes,
            installments=[
                PlanInstallment(
                    installment_number=i,
                    due_date=due,
                    amount=amount,
                    paid_amount=0,
                    status=InstallmentStatus.pending.value,
                )
                for i, due in enumerate(
                    installment_due_dates(payload.start_date, frequency, payload.installment_count), start=1
                )
            ],
        )
        db.add(plan)
        await db.flush()

    logger.info(
        "Created payment plan %s for student %s: %s x %s (%s) by user %s",
        plan.id, plan.student_id, plan.installment_count, amount, frequency, created_by,
    )
    return PaymentPlanResponse.model_validate(plan)


async def list_payment_plans(
    db: AsyncSession,
    school_id: int,
    student_id: Optional[int] = None,
    status: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> Page[PaymentPlanResponse]:
    limit, offset = clamp_page(limit, offset)
    filters = [PaymentPlan.school_id == school_id]
    if student_id is not None:
        filters.append(PaymentPlan.student_id == student_id)
    if status:
        filters.append(PaymentPlan.status == status)

    total = (await db.execute(select(func.count(PaymentPlan.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(PaymentPlan)
        .options(selectinload(PaymentPlan.installments))
        .where(*filters)
        .order_by(PaymentPlan.created_at.desc(), PaymentPlan.id.desc())
        .limit(limit)
        .offset(offset)
        .execution_options(populate_existing=True)
    )
    return Page[PaymentPlanResponse](
        items=[PaymentPlanResponse.model_validate(p) for p in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


async def get_payment_plan(db: AsyncSession, school_id: int, plan_id: int) -> PaymentPlanResponse:
    result = await db.execute(
        select(PaymentPlan)
        .options(selectinload(PaymentPlan.installments))
        .where(PaymentPlan.id == plan_id)
        .execution_options(populate_existing=True)
    )
    plan = result.scalar_one_or_none()
    if plan is None:
        raise NotFound("Payment plan not found")
    if plan.school_id != school_id:
        raise AccessDenied("Access denied to payment plan from another school")
    return PaymentPlanResponse.model_validate(plan)


async def _complete_plan_if_paid(db: AsyncSession, plan_id: int) -> bool:
    outstanding = (
        await db.execute(
            select(func.count(PlanInstallment.id)).where(
                PlanInstallment.plan_id == plan_id,
                PlanInstallment.status != InstallmentStatus.paid.value,
            )
        )
    ).scalar_one()
    if outstanding:
        return False
    await db.execute(
        update(PaymentPlan)
        .where(PaymentPlan.id == plan_id)
        .values(status=PaymentPlanStatus.completed.value)
        .execution_options(synchronize_session=False)
    )
    return True


async def pay_installment(
    db: AsyncSession,
    school_id: int,
    plan_id: int,
    payload: PayInstallmentRequest,
    received_by: Optional[int] = None,
) -> PayInstallmentResponse:
    amount = payload.amount
    async with unit_of_work(db):
        plan = (
            await db.execute(
                select(PaymentPlan)
                .where(PaymentPlan.id == plan_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if plan is None:
            raise NotFound("Payment plan not found")
        if plan.school_id != school_id:
            raise AccessDenied("Access denied to payment plan from another school")

        if plan.invoice_id is not None:
            # Lock order shared with record_payment: invoice row first, receipt counter second.
            await db.execute(select(Invoice.id).where(Invoice.id == plan.invoice_id).with_for_update())

        installment = (
            await db.execute(
                select(PlanInstallment)
                .where(PlanInstallment.id == payload.installment_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if installment is None or installment.plan_id != plan.id:
            raise NotFound("Installment not found")

        remaining = installment.amount - installment.paid_amount
        if amount > remaining:
            raise Overpayment(f"Amount exceeds remaining balance of {remaining}")

        receipt_number = await allocate_receipt_number(db, school_id, plan.year)
        if not await apply_installment_payment(db, installment.id, amount):
            raise Overpayment("Installment balance changed, please retry with the current balance")

        label = _plan_label(plan)
        await post_payment(
            db,
            school_id=school_id,
            student_id=plan.student_id,
            invoice_id=plan.invoice_id,
            fee_type=PLAN_FEE_TYPE,
            term=plan.term,
            year=plan.year,
            amount_due=remaining,
            amount=amount,
            payment_method=normalize_payment_method(payload.payment_method),
            receipt_number=receipt_number,
            ledger_description=f"Payment Plan: {label} (Inst #{installment.installment_number}) - {receipt_number}",
            received_by=received_by,
            notes=f"Installment #{installment.installment_number} - {label}",
            payment_plan_id=plan.id,
            plan_installment_id=installment.id,
        )
        completed = await _complete_plan_if_paid(db, plan.id)

    logger.info(
        "Recorded installment payment %s of %s on plan %s installment #%s%s",
        receipt_number, amount, plan_id, installment.installment_number,
        " (plan completed)" if completed else "",
    )
    return PayInstallmentResponse(success=True, receipt_number=receipt_number)


async def reconcile_plan_payments(db: AsyncSession, school_id: Optional[int] = None) -> ReconcileResponse:
    """
    Backfill FeePayment + credit + invoice increment for plan money recorded outside
    the payment path: down payments and installment paid amounts with no payment row.

    Existing rows are detected by idempotency key or installment foreign key, so
    running this repeatedly synthesizes each missing payment exactly once.
    """
    synced = 0
    skipped = 0
    async with unit_of_work(db):
        plan_filters = [PaymentPlan.down_payment > 0]
        if school_id is not None:
            plan_filters.append(PaymentPlan.school_id == school_id)
        plans = (
            await db.execute(
                select(PaymentPlan)
                .where(*plan_filters)
                .order_by(PaymentPlan.id)
                .execution_options(populate_existing=True)
            )
        ).scalars().all()

        for plan in plans:
            key = down_payment_key(plan.id)
            exists = (
                await db.execute(
                    select(FeePayment.id).where(
                        FeePayment.school_id == plan.school_id,
                        FeePayment.idempotency_key == key,
                    )
                )
            ).first()
            if exists:
                skipped += 1
                continue

            label = _plan_label(plan)
            await post_payment(
                db,
                school_id=plan.school_id,
                student_id=plan.student_id,
                invoice_id=plan.invoice_id,
                fee_type=PLAN_FEE_TYPE,
                term=plan.term,
                year=plan.year,
                amount_due=plan.total_amount,
                amount=plan.down_payment,
                payment_method=PaymentMethod.ADJUSTMENT.value,
                receipt_number=None,
                ledger_description=f"[Sync] Payment Plan: {label} (Down Payment)",
                notes=f"[Sync] Down Payment - {label}",
                payment_date=plan.start_date,
                payment_plan_id=plan.id,
                idempotency_key=key,
            )
            synced += 1

        inst_stmt = (
            select(PlanInstallment, PaymentPlan)
            .join(PaymentPlan, PlanInstallment.plan_id == PaymentPlan.id)
            .where(PlanInstallment.paid_amount > 0)
            .order_by(PlanInstallment.id)
            .execution_options(populate_existing=True)
        )
        if school_id is not None:
            inst_stmt = inst_stmt.where(PaymentPlan.school_id == school_id)

        for inst, plan in (await db.execute(inst_stmt)).all():
            key = installment_key(plan.id, inst.installment_number)
            exists = (
                await db.execute(
                    select(FeePayment.id).where(
                        FeePayment.school_id == plan.school_id,
                        or_(
                            FeePayment.plan_installment_id == inst.id,
                            FeePayment.idempotency_key == key,
                        ),
                    )
                )
            ).first()
            if exists:
                skipped += 1
                continue

            label = _plan_label(plan)
            await post_payment(
                db,
                school_id=plan.school_id,
                student_id=plan.student_id,
                invoice_id=plan.invoice_id,
                fee_type=PLAN_FEE_TYPE,
                term=plan.term,
                year=plan.year,
                amount_due=inst.amount,
                amount=inst.paid_amount,
                payment_method=PaymentMethod.ADJUSTMENT.value,
                receipt_number=None,
                ledger_description=f"[Sync] Payment Plan: {label} (Inst #{inst.installment_number})",
                notes=f"[Sync] Installment #{inst.installment_number} - {label}",
                payment_date=inst.paid_at.date() if inst.paid_at else None,
                payment_plan_id=plan.id,
                plan_installment_id=inst.id,
                idempotency_key=key,
            )
            synced += 1

    logger.info("Plan ledger reconciliation (school %s): synced=%s skipped=%s", school_id, synced, skipped)
    return ReconcileResponse(synced=synced, skipped=skipped)
