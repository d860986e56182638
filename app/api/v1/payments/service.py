"""
Payments service: direct fee payments, payment history and voids.

Every payment event writes three things in one transaction: the FeePayment
snapshot, a credit ledger entry and the invoice balance update.
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.billing.audit import log_fee_audit
from app.core.billing.installments import reverse_installment_payment
from app.core.billing.invoice_sync import apply_payment_to_invoice, reverse_payment_on_invoice
from app.core.billing.ledger import record_credit, record_debit
from app.core.billing.receipts import allocate_receipt_number, register_explicit_receipt
from app.core.billing.scope import clamp_page, get_student_in_school
from app.core.enums import InvoiceStatus, PaymentMethod, PaymentPlanStatus
from app.core.exceptions import Conflict, NotFound, Overpayment
from app.core.models import FeePayment, Invoice, PaymentPlan
from app.core.schemas import Page
from app.db.session import unit_of_work

from .schemas import PaymentCreate, PaymentResponse, VoidPaymentRequest

logger = logging.getLogger(__name__)

ACCEPTED_METHODS = (PaymentMethod.CASH.value, PaymentMethod.BANK_DEPOSIT.value, PaymentMethod.CHEQUE.value)


def normalize_payment_method(method: Optional[str]) -> str:
    if method and method.strip() in ACCEPTED_METHODS:
        return method.strip()
    return PaymentMethod.CASH.value


async def post_payment(
    db: AsyncSession,
    *,
    school_id: int,
    student_id: int,
    invoice_id: Optional[int],
    fee_type: str,
    term: int,
    year: int,
    amount_due: int,
    amount: int,
    payment_method: str,
    receipt_number: Optional[str],
    ledger_description: str,
    received_by: Optional[int] = None,
    notes: Optional[str] = None,
    payment_date: Optional[date] = None,
    payment_plan_id: Optional[int] = None,
    plan_installment_id: Optional[int] = None,
    idempotency_key: Optional[str] = None,
) -> FeePayment:
    """
    Write the FeePayment snapshot, its credit entry and the invoice increment.
    Runs inside the caller's unit of work; validation must already have passed.
    """
    balance_after = max(0, amount_due - amount)
    payment = FeePayment(
        school_id=school_id,
        student_id=student_id,
        invoice_id=invoice_id,
        payment_plan_id=payment_plan_id,
        plan_installment_id=plan_installment_id,
        fee_type=fee_type,
        term=term,
        year=year,
        amount_due=amount_due,
        amount_paid=amount,
        balance=balance_after,
        payment_date=payment_date or date.today(),
        payment_method=payment_method,
        receipt_number=receipt_number,
        received_by=received_by,
        status=InvoiceStatus.paid.value if balance_after <= 0 else InvoiceStatus.partial.value,
        notes=notes,
        idempotency_key=idempotency_key,
        is_deleted=False,
    )
    db.add(payment)
    await db.flush()

    await record_credit(
        db,
        school_id=school_id,
        student_id=student_id,
        amount=amount,
        term=term,
        year=year,
        description=ledger_description,
        fee_payment_id=payment.id,
        invoice_id=invoice_id,
    )
    if invoice_id is not None:
        await apply_payment_to_invoice(db, invoice_id, school_id, amount)
    return payment


async def record_payment(
    db: AsyncSession,
    school_id: int,
    payload: PaymentCreate,
    received_by: Optional[int] = None,
) -> PaymentResponse:
    await get_student_in_school(db, school_id, payload.student_id)
    amount = payload.amount_paid

    async with unit_of_work(db):
        invoice = (
            await db.execute(
                select(Invoice)
                .where(
                    Invoice.school_id == school_id,
                    Invoice.student_id == payload.student_id,
                    Invoice.term == payload.term,
                    Invoice.year == payload.year,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()

        amount_due = invoice.balance if invoice is not None else 0
        if invoice is not None and invoice.balance > 0 and amount > invoice.balance:
            raise Overpayment(f"Amount exceeds remaining balance of {invoice.balance}")

        if payload.receipt_number and payload.receipt_number.strip():
            receipt_number = payload.receipt_number.strip()
            await register_explicit_receipt(db, school_id, payload.year, receipt_number)
        else:
            receipt_number = await allocate_receipt_number(db, school_id, payload.year)

        payment = await post_payment(
            db,
            school_id=school_id,
            student_id=payload.student_id,
            invoice_id=invoice.id if invoice is not None else None,
            fee_type=payload.fee_type.strip(),
            term=payload.term,
            year=payload.year,
            amount_due=amount_due,
            amount=amount,
            payment_method=normalize_payment_method(payload.payment_method),
            receipt_number=receipt_number,
            ledger_description=f"Fee payment: {payload.fee_type.strip()} - {receipt_number}",
            received_by=received_by,
            notes=payload.notes,
            payment_date=payload.payment_date,
        )

    logger.info(
        "Recorded payment %s of %s for student %s (school %s, invoice %s)",
        receipt_number, amount, payload.student_id, school_id, payment.invoice_id,
    )
    return PaymentResponse.model_validate(payment)


async def list_payments(
    db: AsyncSession,
    school_id: int,
    term: Optional[int] = None,
    year: Optional[int] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> Page[PaymentResponse]:
    limit, offset = clamp_page(limit, offset)
    filters = [FeePayment.school_id == school_id, FeePayment.is_deleted.is_(False)]
    if term is not None:
        filters.append(FeePayment.term == term)
    if year is not None:
        filters.append(FeePayment.year == year)

    total = (await db.execute(select(func.count(FeePayment.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(FeePayment)
        .where(*filters)
        .order_by(FeePayment.payment_date.desc(), FeePayment.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return Page[PaymentResponse](
        items=[PaymentResponse.model_validate(p) for p in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


async def list_student_payments(
    db: AsyncSession,
    school_id: int,
    student_id: int,
    include_voided: bool = False,
) -> List[PaymentResponse]:
    await get_student_in_school(db, school_id, student_id)
    stmt = select(FeePayment).where(
        FeePayment.school_id == school_id,
        FeePayment.student_id == student_id,
    )
    if not include_voided:
        stmt = stmt.where(FeePayment.is_deleted.is_(False))
    result = await db.execute(stmt.order_by(FeePayment.payment_date.desc(), FeePayment.id.desc()))
    return [PaymentResponse.model_validate(p) for p in result.scalars().all()]


async def void_payment(
    db: AsyncSession,
    school_id: int,
    payment_id: int,
    payload: VoidPaymentRequest,
    voided_by: Optional[int] = None,
) -> PaymentResponse:
    """
    Soft-delete a payment and undo its effect.

    The original credit stays in the ledger; a compensating debit is appended. The
    linked invoice (and installment, for plan payments) is decremented in place.
    """
    async with unit_of_work(db):
        payment = (
            await db.execute(
                select(FeePayment)
                .where(FeePayment.id == payment_id, FeePayment.school_id == school_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if payment is None:
            raise NotFound("Payment not found")
        if payment.is_deleted:
            raise Conflict("Payment is already voided")

        payment.is_deleted = True
        payment.void_reason = payload.reason
        payment.voided_at = datetime.utcnow()

        await record_debit(
            db,
            school_id=school_id,
            student_id=payment.student_id,
            amount=payment.amount_paid,
            term=payment.term,
            year=payment.year,
            description=f"Void of {payment.receipt_number or payment.id}: {payload.reason}",
            fee_payment_id=payment.id,
            invoice_id=payment.invoice_id,
        )
        if payment.invoice_id is not None:
            await reverse_payment_on_invoice(db, payment.invoice_id, school_id, payment.amount_paid)
        if payment.plan_installment_id is not None:
            await reverse_installment_payment(db, payment.plan_installment_id, payment.amount_paid)
            await db.execute(
                update(PaymentPlan)
                .where(
                    PaymentPlan.id == payment.payment_plan_id,
                    PaymentPlan.status == PaymentPlanStatus.completed.value,
                )
                .values(status=PaymentPlanStatus.active.value)
                .execution_options(synchronize_session=False)
            )
        await log_fee_audit(
            db, school_id, "fee_payments", payment.id, "VOID",
            {"is_deleted": False}, {"is_deleted": True, "reason": payload.reason}, voided_by,
        )

    logger.info("Voided payment %s (%s) for school %s", payment.id, payment.receipt_number, school_id)
    return PaymentResponse.model_validate(payment)
