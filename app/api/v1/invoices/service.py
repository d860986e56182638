"""
Invoice service: per-term invoice generation from the fee catalog, student overrides
and scholarships; invoice reads; note/due-date edits; reminder bookkeeping.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.api.v1.fees import service as fees_service
from app.core.billing.audit import log_fee_audit
from app.core.billing.ledger import record_debit
from app.core.billing.pricing import price_student_items
from app.core.billing.scope import clamp_page
from app.core.config import settings
from app.core.enums import InvoiceStatus
from app.core.exceptions import NotFound, ValidationError
from app.core.models import Invoice, InvoiceItem, Student
from app.core.schemas import Page
from app.db.session import unit_of_work

from .schemas import (
    BulkReminderRequest,
    GenerateInvoicesRequest,
    GenerateInvoicesResponse,
    InvoiceDetailResponse,
    InvoiceResponse,
    InvoiceUpdate,
    ReminderRequest,
    ReminderResponse,
)

logger = logging.getLogger(__name__)


def format_invoice_number(school_id: int, student_id: int, term: int, year: int) -> str:
    return f"{settings.invoice_prefix}-{year}-T{term}-{school_id}-{student_id:05d}"


async def generate_invoices(
    db: AsyncSession,
    school_id: int,
    payload: GenerateInvoicesRequest,
    generated_by: Optional[int] = None,
) -> GenerateInvoicesResponse:
    """
    Create one invoice per active student for (term, year).

    Students that already have an invoice for the term are skipped and counted.
    Students with no applicable fee structure are skipped and not counted.
    The whole batch, including one debit ledger entry per invoice, commits together.
    """
    term, year = payload.term, payload.year

    structures = await fees_service.select_term_structures(db, school_id, term, year)
    if not structures:
        raise ValidationError("No active fee structures found for this term and year")

    stmt = select(Student).where(Student.school_id == school_id, Student.is_active.is_(True))
    if payload.class_level:
        stmt = stmt.where(Student.class_level == payload.class_level)
    students = list((await db.execute(stmt.order_by(Student.id))).scalars().all())
    if not students:
        raise ValidationError("No active students found")

    student_ids = [s.id for s in students]
    overrides = await fees_service.resolve_overrides(db, school_id, student_ids, term, year)
    discounts = await fees_service.resolve_discounts(db, school_id, student_ids, term, year)

    created = 0
    skipped = 0
    async with unit_of_work(db):
        invoiced = set(
            (
                await db.execute(
                    select(Invoice.student_id).where(
                        Invoice.school_id == school_id,
                        Invoice.term == term,
                        Invoice.year == year,
                        Invoice.student_id.in_(student_ids),
                    )
                )
            ).scalars().all()
        )

        for student in students:
            if student.id in invoiced:
                skipped += 1
                continue

            items = price_student_items(
                structures,
                student.class_level,
                student.boarding_status,
                overrides.get(student.id, {}),
                discounts.get(student.id, []),
            )
            if not items:
                continue

            total = sum(item.amount for item in items)
            invoice = Invoice(
                school_id=school_id,
                student_id=student.id,
                invoice_number=format_invoice_number(school_id, student.id, term, year),
                term=term,
                year=year,
                total_amount=total,
                amount_paid=0,
                balance=total,
                due_date=payload.due_date,
                status=InvoiceStatus.unpaid.value,
                items=[
                    InvoiceItem(fee_type=item.fee_type, description=item.description, amount=item.amount)
                    for item in items
                ],
            )
            db.add(invoice)
            await db.flush()

            await record_debit(
                db,
                school_id=school_id,
                student_id=student.id,
                amount=total,
                term=term,
                year=year,
                description=f"Invoice {invoice.invoice_number}",
                invoice_id=invoice.id,
            )
            created += 1

    logger.info(
        "Generated invoices for school %s term %s year %s by user %s: created=%s skipped=%s",
        school_id, term, year, generated_by, created, skipped,
    )
    return GenerateInvoicesResponse(
        invoices_created=created,
        invoices_skipped=skipped,
        message=f"Generated {created} invoices, skipped {skipped} existing",
    )


async def list_invoices(
    db: AsyncSession,
    school_id: int,
    student_id: Optional[int] = None,
    term: Optional[int] = None,
    year: Optional[int] = None,
    status: Optional[str] = None,
    limit: Optional[int] = None,
    offset: Optional[int] = None,
) -> Page[InvoiceResponse]:
    limit, offset = clamp_page(limit, offset)
    filters = [Invoice.school_id == school_id]
    if student_id is not None:
        filters.append(Invoice.student_id == student_id)
    if term is not None:
        filters.append(Invoice.term == term)
    if year is not None:
        filters.append(Invoice.year == year)
    if status:
        filters.append(Invoice.status == status)

    total = (await db.execute(select(func.count(Invoice.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(Invoice)
        .where(*filters)
        .order_by(Invoice.year.desc(), Invoice.term.desc(), Invoice.id.desc())
        .limit(limit)
        .offset(offset)
    )
    return Page[InvoiceResponse](
        items=[InvoiceResponse.model_validate(inv) for inv in result.scalars().all()],
        total=total,
        limit=limit,
        offset=offset,
    )


async def _load_invoice(db: AsyncSession, school_id: int, invoice_id: int) -> Invoice:
    result = await db.execute(
        select(Invoice)
        .options(selectinload(Invoice.items))
        .where(Invoice.id == invoice_id, Invoice.school_id == school_id)
        .execution_options(populate_existing=True)
    )
    invoice = result.scalar_one_or_none()
    if invoice is None:
        raise NotFound("Invoice not found")
    return invoice


async def get_invoice(db: AsyncSession, school_id: int, invoice_id: int) -> InvoiceDetailResponse:
    invoice = await _load_invoice(db, school_id, invoice_id)
    return InvoiceDetailResponse.model_validate(invoice)


async def update_invoice(
    db: AsyncSession,
    school_id: int,
    invoice_id: int,
    payload: InvoiceUpdate,
    changed_by: Optional[int] = None,
) -> InvoiceDetailResponse:
    fields = payload.model_fields_set
    async with unit_of_work(db):
        invoice = await _load_invoice(db, school_id, invoice_id)
        old = {"notes": invoice.notes, "due_date": invoice.due_date.isoformat() if invoice.due_date else None}
        if "notes" in fields:
            invoice.notes = payload.notes
        if "due_date" in fields:
            invoice.due_date = payload.due_date
        await db.flush()
        new = {"notes": invoice.notes, "due_date": invoice.due_date.isoformat() if invoice.due_date else None}
        await log_fee_audit(db, school_id, "invoices", invoice.id, "UPDATE", old, new, changed_by)
    return InvoiceDetailResponse.model_validate(invoice)


async def record_reminder(
    db: AsyncSession,
    school_id: int,
    invoice_id: int,
    payload: ReminderRequest,
) -> ReminderResponse:
    """Stamp reminder metadata. Delivery is handled by the messaging service."""
    async with unit_of_work(db):
        result = await db.execute(
            update(Invoice)
            .where(Invoice.id == invoice_id, Invoice.school_id == school_id)
            .values(
                reminder_count=Invoice.reminder_count + 1,
                reminder_sent_at=datetime.utcnow(),
                last_reminder_type=payload.type.value,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFound("Invoice not found")
    logger.info("Recorded %s reminder for invoice %s", payload.type.value, invoice_id)
    return ReminderResponse(count=1, message=f"{payload.type.value.upper()} reminder recorded")


async def record_bulk_reminders(
    db: AsyncSession,
    school_id: int,
    payload: BulkReminderRequest,
) -> ReminderResponse:
    async with unit_of_work(db):
        result = await db.execute(
            update(Invoice)
            .where(Invoice.school_id == school_id, Invoice.balance > payload.min_balance)
            .values(
                reminder_count=Invoice.reminder_count + 1,
                reminder_sent_at=datetime.utcnow(),
                last_reminder_type=payload.type.value,
            )
            .execution_options(synchronize_session=False)
        )
    count = result.rowcount
    logger.info("Recorded %s %s reminders for school %s", count, payload.type.value, school_id)
    return ReminderResponse(count=count, message=f"Recorded {count} reminders")
