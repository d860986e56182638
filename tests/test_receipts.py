import asyncio
from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.api.v1.payments import service as payment_service
from app.api.v1.payments.schemas import PaymentCreate

from app.core.billing.receipts import (
    allocate_receipt_number,
    format_receipt_number,
    parse_receipt_sequence,
    register_explicit_receipt,
)
from app.core.models import FeePayment, Invoice, ReceiptCounter, School, Student
from app.db.session import Base


def test_format_pads_and_grows_past_four_digits() -> None:
    assert format_receipt_number(2026, 7) == "REC-2026-0007"
    assert format_receipt_number(2026, 12345) == "REC-2026-12345"


def test_parse_receipt_sequence() -> None:
    assert parse_receipt_sequence("REC-2026-0042", 2026) == 42
    assert parse_receipt_sequence("REC-2025-0042", 2026) is None
    assert parse_receipt_sequence("MANUAL-1", 2026) is None
    assert parse_receipt_sequence(None, 2026) is None


async def test_allocation_is_sequential_per_school_and_year(db_session: AsyncSession, school, other_school) -> None:
    first = await allocate_receipt_number(db_session, school.id, 2026)
    second = await allocate_receipt_number(db_session, school.id, 2026)
    other = await allocate_receipt_number(db_session, other_school.id, 2026)
    next_year = await allocate_receipt_number(db_session, school.id, 2027)
    await db_session.commit()

    assert (first, second) == ("REC-2026-0001", "REC-2026-0002")
    assert other == "REC-2026-0001"
    assert next_year == "REC-2027-0001"


async def test_counter_seeds_from_existing_receipts(db_session: AsyncSession, school, make_student) -> None:
    student = await make_student()
    db_session.add(
        FeePayment(
            school_id=school.id,
            student_id=student.id,
            fee_type="Tuition",
            term=1,
            year=2026,
            amount_due=0,
            amount_paid=100,
            balance=0,
            payment_date=date(2026, 1, 10),
            payment_method="Cash",
            receipt_number="REC-2026-0041",
            status="paid",
        )
    )
    await db_session.commit()

    receipt = await allocate_receipt_number(db_session, school.id, 2026)
    await db_session.commit()
    assert receipt == "REC-2026-0042"


async def test_explicit_receipt_moves_counter_forward(db_session: AsyncSession, school) -> None:
    await allocate_receipt_number(db_session, school.id, 2026)
    await register_explicit_receipt(db_session, school.id, 2026, "REC-2026-0010")
    # lower explicit numbers never move the counter back
    await register_explicit_receipt(db_session, school.id, 2026, "REC-2026-0005")
    receipt = await allocate_receipt_number(db_session, school.id, 2026)
    await db_session.commit()

    assert receipt == "REC-2026-0011"
    counter = (
        await db_session.execute(
            select(ReceiptCounter.last_number).where(
                ReceiptCounter.school_id == school.id, ReceiptCounter.year == 2026
            )
        )
    ).scalar_one()
    assert counter == 11


async def test_explicit_receipt_creates_counter(db_session: AsyncSession, school) -> None:
    await register_explicit_receipt(db_session, school.id, 2026, "REC-2026-0003")
    receipt = await allocate_receipt_number(db_session, school.id, 2026)
    await db_session.commit()
    assert receipt == "REC-2026-0004"


@pytest.fixture()
async def file_sessions(tmp_path):
    """Sessions on separate connections to one file database, so transactions really interleave."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'billing.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


async def test_concurrent_payments_get_distinct_receipts(file_sessions) -> None:
    async with file_sessions() as db:
        school = School(name="Hillview Academy", is_active=True)
        db.add(school)
        await db.flush()
        student = Student(school_id=school.id, name="Amina Otieno", class_level="Form 1", boarding_status="day")
        db.add(student)
        await db.flush()
        invoice = Invoice(
            school_id=school.id,
            student_id=student.id,
            invoice_number=f"INV-2026-T1-{school.id}-{student.id:05d}",
            term=1,
            year=2026,
            total_amount=1000,
            amount_paid=0,
            balance=1000,
        )
        db.add(invoice)
        await db.commit()
        school_id, student_id, invoice_id = school.id, student.id, invoice.id

    async def pay(amount: int):
        async with file_sessions() as db:
            return await payment_service.record_payment(
                db,
                school_id,
                PaymentCreate(student_id=student_id, fee_type="Tuition", amount_paid=amount, term=1, year=2026),
            )

    amounts = [50, 60, 70, 80, 90]
    results = await asyncio.gather(*(pay(a) for a in amounts))

    assert sorted(r.receipt_number for r in results) == [f"REC-2026-{n:04d}" for n in range(1, 6)]
    async with file_sessions() as db:
        invoice = await db.get(Invoice, invoice_id)
        assert invoice.amount_paid == sum(amounts)
        assert invoice.balance == 1000 - sum(amounts)
        assert invoice.status == "partial"
        counter = (
            await db.execute(select(ReceiptCounter).where(ReceiptCounter.school_id == school_id))
        ).scalar_one()
        assert counter.last_number == 5
