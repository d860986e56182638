from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.finance import service as finance_service
from app.api.v1.finance.schemas import DebtorSummary
from app.api.v1.invoices import service as invoice_service
from app.api.v1.invoices.schemas import GenerateInvoicesRequest
from app.api.v1.payments import service as payment_service
from app.api.v1.payments.schemas import PaymentCreate, VoidPaymentRequest
from app.core.enums import AgingCategory
from app.core.exceptions import AccessDenied
from app.core.models import Expense, FeePayment

AS_OF = date(2026, 6, 1)


@pytest.mark.parametrize(
    "days, expected",
    [
        (0, AgingCategory.CURRENT),
        (1, AgingCategory.DAYS_1_30),
        (30, AgingCategory.DAYS_1_30),
        (31, AgingCategory.DAYS_31_60),
        (60, AgingCategory.DAYS_31_60),
        (61, AgingCategory.DAYS_61_90),
        (90, AgingCategory.DAYS_61_90),
        (91, AgingCategory.DAYS_90_PLUS),
    ],
)
def test_aging_category_boundaries(days: int, expected: AgingCategory) -> None:
    assert finance_service.aging_category(days) == expected


def test_debtor_summary_bucket_keys() -> None:
    summary = DebtorSummary(days1to30=5, days90plus=7)
    assert summary.model_dump(by_alias=True) == {
        "totalDebtors": 0,
        "totalOutstanding": 0,
        "current": 0,
        "days1to30": 5,
        "days31to60": 0,
        "days61to90": 0,
        "days90plus": 7,
    }


def test_days_overdue_falls_back_to_creation_date() -> None:
    assert finance_service.days_overdue(None, date(2026, 5, 1), AS_OF) == 31
    assert finance_service.days_overdue(date(2026, 7, 1), date(2026, 5, 1), AS_OF) == 0


@pytest.fixture()
async def billed(db_session: AsyncSession, school, make_student, make_structure):
    """Two Form 1 / Form 2 students invoiced for term 1 with a due date 45 days before AS_OF."""
    await make_structure(amount=300, class_level="Form 1")
    await make_structure(amount=800, class_level="Form 2")
    amina = await make_student(name="Amina Otieno", class_level="Form 1")
    brian = await make_student(name="Brian Kamau", class_level="Form 2")
    await invoice_service.generate_invoices(
        db_session, school.id, GenerateInvoicesRequest(term=1, year=2026, due_date=date(2026, 4, 17))
    )
    await payment_service.record_payment(
        db_session, school.id,
        PaymentCreate(student_id=brian.id, fee_type="Tuition", amount_paid=100, term=1, year=2026),
    )
    return amina, brian


async def test_debtors_are_aged_and_sorted_by_balance(db_session: AsyncSession, school, billed) -> None:
    amina, brian = billed

    report = await finance_service.get_debtors(db_session, school.id, as_of=AS_OF)

    assert [d.student_id for d in report.debtors] == [brian.id, amina.id]
    first = report.debtors[0]
    assert (first.balance, first.days_overdue, first.aging_category) == (700, 45, "31-60")
    assert first.student_name == "Brian Kamau"
    assert first.student_class == "Form 2"
    assert report.summary.total_debtors == 2
    assert report.summary.total_outstanding == 1000
    assert report.summary.days31to60 == 1000
    assert report.summary.current == 0


async def test_debtor_summary_ignores_paging(db_session: AsyncSession, school, billed) -> None:
    narrow = await finance_service.get_debtors(db_session, school.id, limit=1, as_of=AS_OF)
    wide = await finance_service.get_debtors(db_session, school.id, limit=200, as_of=AS_OF)

    assert len(narrow.debtors) == 1
    assert len(wide.debtors) == 2
    assert narrow.summary == wide.summary
    assert narrow.total == wide.total == 2


async def test_debtors_filtered_by_class(db_session: AsyncSession, school, billed) -> None:
    amina, _ = billed
    report = await finance_service.get_debtors(db_session, school.id, class_level="Form 1", as_of=AS_OF)

    assert [d.student_id for d in report.debtors] == [amina.id]
    assert report.summary.total_outstanding == 300


async def test_fully_paid_invoices_are_not_debtors(db_session: AsyncSession, school, billed) -> None:
    amina, _ = billed
    await payment_service.record_payment(
        db_session, school.id,
        PaymentCreate(student_id=amina.id, fee_type="Tuition", amount_paid=300, term=1, year=2026),
    )
    report = await finance_service.get_debtors(db_session, school.id, as_of=AS_OF)
    assert amina.id not in [d.student_id for d in report.debtors]


async def test_financial_summary(db_session: AsyncSession, school, billed) -> None:
    amina, _ = billed
    await payment_service.record_payment(
        db_session, school.id,
        PaymentCreate(student_id=amina.id, fee_type="Tuition", amount_paid=50, term=1, year=2026),
    )
    db_session.add(
        Expense(school_id=school.id, amount=40, description="Chalk", term=1, year=2026, expense_date=date(2026, 2, 1))
    )
    await db_session.commit()

    summary = await finance_service.get_financial_summary(db_session, school.id, term=1, year=2026)

    assert summary.total_due == 1100
    assert summary.total_collected == 150
    assert summary.total_outstanding == 950
    assert summary.total_expenses == 40
    assert summary.net_income == 110
    # 150 / 1100 = 13.6%
    assert summary.collection_rate == 14
    assert summary.invoice_count == 2
    assert (summary.payment_count, summary.expense_count) == (2, 1)
    assert (summary.total_debits, summary.total_credits, summary.ledger_outstanding) == (1100, 150, 950)


async def test_financial_summary_for_empty_period(db_session: AsyncSession, school, billed) -> None:
    summary = await finance_service.get_financial_summary(db_session, school.id, term=2, year=2026)
    assert summary.total_due == 0
    assert summary.collection_rate == 0
    assert (summary.payment_count, summary.expense_count) == (0, 0)


async def test_student_ledger_running_balance(db_session: AsyncSession, school, billed) -> None:
    _, brian = billed
    payment = (
        await db_session.execute(select(FeePayment).where(FeePayment.student_id == brian.id))
    ).scalar_one()
    await payment_service.void_payment(db_session, school.id, payment.id, VoidPaymentRequest(reason="Bounced cheque"))

    ledger = await finance_service.get_student_ledger(db_session, school.id, brian.id)

    assert [t.transaction_type for t in ledger.transactions] == ["debit", "credit", "debit"]
    assert [t.running_balance for t in ledger.transactions] == [800, 700, 800]
    assert (ledger.total_debits, ledger.total_credits, ledger.balance) == (900, 100, 800)


async def test_student_ledger_of_another_school_is_denied(
    db_session: AsyncSession, school, other_school, make_student
) -> None:
    outsider = await make_student(school_id=other_school.id)
    with pytest.raises(AccessDenied):
        await finance_service.get_student_ledger(db_session, school.id, outsider.id)
