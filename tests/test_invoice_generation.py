from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees import service as fees_service
from app.api.v1.fees.schemas import FeeOverrideUpsert, ScholarshipAssign, ScholarshipCreate
from app.api.v1.invoices import service as invoice_service
from app.api.v1.invoices.schemas import GenerateInvoicesRequest, InvoiceUpdate
from app.core.exceptions import ValidationError
from app.core.models import FinanceTransaction, Invoice, InvoiceItem


def _request(**overrides) -> GenerateInvoicesRequest:
    data = {"term": 1, "year": 2026}
    data.update(overrides)
    return GenerateInvoicesRequest(**data)


async def _invoice_for(db: AsyncSession, student_id: int) -> Invoice:
    result = await db.execute(select(Invoice).where(Invoice.student_id == student_id))
    return result.scalar_one()


async def test_generates_one_invoice_per_student(db_session: AsyncSession, school, make_student, make_structure) -> None:
    await make_structure(fee_type="Tuition", amount=1000)
    await make_structure(fee_type="Activity", amount=150, term=None)
    amina = await make_student()
    brian = await make_student(name="Brian Kamau")

    result = await invoice_service.generate_invoices(db_session, school.id, _request(due_date=date(2026, 2, 1)))

    assert result.invoices_created == 2
    assert result.invoices_skipped == 0
    invoice = await _invoice_for(db_session, amina.id)
    assert invoice.total_amount == 1150
    assert invoice.balance == 1150
    assert invoice.amount_paid == 0
    assert invoice.status == "unpaid"
    assert invoice.due_date == date(2026, 2, 1)
    assert invoice.invoice_number == f"INV-2026-T1-{school.id}-{amina.id:05d}"

    items_total = (
        await db_session.execute(select(func.sum(InvoiceItem.amount)).where(InvoiceItem.invoice_id == invoice.id))
    ).scalar_one()
    assert items_total == invoice.total_amount
    assert (await _invoice_for(db_session, brian.id)).total_amount == 1150


async def test_second_run_skips_every_invoiced_student(db_session: AsyncSession, school, make_student, make_structure) -> None:
    await make_structure()
    await make_student()
    await make_student(name="Brian Kamau")

    first = await invoice_service.generate_invoices(db_session, school.id, _request())
    second = await invoice_service.generate_invoices(db_session, school.id, _request())

    assert first.invoices_created == 2
    assert second.invoices_created == 0
    assert second.invoices_skipped == 2
    count = (await db_session.execute(select(func.count(Invoice.id)))).scalar_one()
    assert count == 2


async def test_override_and_scholarships_stack_in_assignment_order(
    db_session: AsyncSession, school, make_student, make_structure
) -> None:
    await make_structure(fee_type="Tuition", amount=1000)
    student = await make_student()
    await fees_service.upsert_fee_override(
        db_session, school.id,
        FeeOverrideUpsert(student_id=student.id, fee_type="Tuition", custom_amount=800, term=1, year=2026),
    )
    bursary = await fees_service.create_scholarship(
        db_session, school.id, ScholarshipCreate(name="Bursary", discount_type="percentage", discount_value=10)
    )
    sibling = await fees_service.create_scholarship(
        db_session, school.id, ScholarshipCreate(name="Sibling", discount_type="fixed", discount_value=50)
    )
    await fees_service.assign_scholarship(
        db_session, school.id, ScholarshipAssign(student_id=student.id, scholarship_id=bursary.id, year=2026)
    )
    await fees_service.assign_scholarship(
        db_session, school.id, ScholarshipAssign(student_id=student.id, scholarship_id=sibling.id, term=1, year=2026)
    )

    await invoice_service.generate_invoices(db_session, school.id, _request())

    invoice = await _invoice_for(db_session, student.id)
    assert invoice.total_amount == 670


async def test_revoked_scholarship_is_not_applied(db_session: AsyncSession, school, make_student, make_structure) -> None:
    await make_structure(amount=1000)
    student = await make_student()
    half = await fees_service.create_scholarship(
        db_session, school.id, ScholarshipCreate(name="Half", discount_type="percentage", discount_value=50)
    )
    assignment = await fees_service.assign_scholarship(
        db_session, school.id, ScholarshipAssign(student_id=student.id, scholarship_id=half.id, year=2026)
    )
    await fees_service.revoke_scholarship_assignment(db_session, school.id, assignment.id)

    await invoice_service.generate_invoices(db_session, school.id, _request())
    assert (await _invoice_for(db_session, student.id)).total_amount == 1000


async def test_override_upsert_replaces_amount(db_session: AsyncSession, school, make_student, make_structure) -> None:
    await make_structure(amount=1000)
    student = await make_student()
    payload = dict(student_id=student.id, fee_type="Tuition", term=1, year=2026)
    first = await fees_service.upsert_fee_override(db_session, school.id, FeeOverrideUpsert(custom_amount=900, **payload))
    second = await fees_service.upsert_fee_override(db_session, school.id, FeeOverrideUpsert(custom_amount=700, **payload))

    assert first.id == second.id
    assert second.custom_amount == 700
    await invoice_service.generate_invoices(db_session, school.id, _request())
    assert (await _invoice_for(db_session, student.id)).total_amount == 700


async def test_boarding_structures_only_bill_boarders(db_session: AsyncSession, school, make_student, make_structure) -> None:
    await make_structure(fee_type="Tuition", amount=1000)
    await make_structure(fee_type="Boarding", amount=600, boarding_status="boarding")
    day = await make_student(boarding_status="day")
    boarder = await make_student(name="Brian Kamau", boarding_status="boarding")

    await invoice_service.generate_invoices(db_session, school.id, _request())

    assert (await _invoice_for(db_session, day.id)).total_amount == 1000
    assert (await _invoice_for(db_session, boarder.id)).total_amount == 1600


async def test_competing_structures_bill_one_item_per_fee_type(
    db_session: AsyncSession, school, make_student, make_structure
) -> None:
    await make_structure(fee_type="Tuition", amount=1000, term=1)
    await make_structure(fee_type="Tuition", amount=900, term=None)
    await make_structure(fee_type="Meals", amount=300, boarding_status="all")
    await make_structure(fee_type="Meals", amount=500, boarding_status="boarding")
    boarder = await make_student(boarding_status="boarding")

    await invoice_service.generate_invoices(db_session, school.id, _request())

    invoice = await _invoice_for(db_session, boarder.id)
    items = (
        await db_session.execute(
            select(InvoiceItem.fee_type, InvoiceItem.amount)
            .where(InvoiceItem.invoice_id == invoice.id)
            .order_by(InvoiceItem.fee_type)
        )
    ).all()
    assert [tuple(row) for row in items] == [("Meals", 500), ("Tuition", 1000)]
    assert invoice.total_amount == 1500


async def test_students_without_matching_structures_are_not_invoiced(
    db_session: AsyncSession, school, make_student, make_structure
) -> None:
    await make_structure(class_level="Form 1")
    await make_student(class_level="Form 1")
    form_two = await make_student(name="Brian Kamau", class_level="Form 2")

    result = await invoice_service.generate_invoices(db_session, school.id, _request())

    assert result.invoices_created == 1
    assert result.invoices_skipped == 0
    missing = await db_session.execute(select(Invoice).where(Invoice.student_id == form_two.id))
    assert missing.scalar_one_or_none() is None


async def test_class_filter_limits_generation(db_session: AsyncSession, school, make_student, make_structure) -> None:
    await make_structure(class_level="Form 1")
    await make_structure(class_level="Form 2")
    await make_student(class_level="Form 1")
    await make_student(name="Brian Kamau", class_level="Form 2")

    result = await invoice_service.generate_invoices(db_session, school.id, _request(class_level="Form 2"))
    assert result.invoices_created == 1


async def test_each_invoice_is_debited_to_the_ledger(db_session: AsyncSession, school, make_student, make_structure) -> None:
    await make_structure(amount=1000)
    student = await make_student()

    await invoice_service.generate_invoices(db_session, school.id, _request())

    invoice = await _invoice_for(db_session, student.id)
    entries = (
        await db_session.execute(select(FinanceTransaction).where(FinanceTransaction.student_id == student.id))
    ).scalars().all()
    assert len(entries) == 1
    assert entries[0].transaction_type == "debit"
    assert entries[0].amount == 1000
    assert entries[0].invoice_id == invoice.id


async def test_generation_requires_fee_structures(db_session: AsyncSession, school, make_student) -> None:
    await make_student()
    with pytest.raises(ValidationError):
        await invoice_service.generate_invoices(db_session, school.id, _request())


async def test_generation_requires_students(db_session: AsyncSession, school, make_structure) -> None:
    await make_structure()
    with pytest.raises(ValidationError):
        await invoice_service.generate_invoices(db_session, school.id, _request())


async def test_invoice_edit_only_touches_notes_and_due_date(
    db_session: AsyncSession, school, make_student, make_structure
) -> None:
    await make_structure(amount=1000)
    student = await make_student()
    await invoice_service.generate_invoices(db_session, school.id, _request())
    invoice = await _invoice_for(db_session, student.id)

    updated = await invoice_service.update_invoice(
        db_session, school.id, invoice.id, InvoiceUpdate(notes="Parent will pay in March")
    )

    assert updated.notes == "Parent will pay in March"
    assert updated.total_amount == 1000
    assert updated.due_date is None
    assert [item.fee_type for item in updated.items] == ["Tuition"]
