"""
Receipt numbers: REC-{year}-{NNNN}, unique and strictly increasing per (school, year).

Allocation increments a ReceiptCounter row with a single UPDATE inside the caller's
transaction. The UPDATE takes a row lock, so a concurrent payment for the same school
and year waits until this transaction commits or rolls back and then sees the new value.
"""

import logging
import re
from typing import Optional

from sqlalchemy import case, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.models import FeePayment, ReceiptCounter

logger = logging.getLogger(__name__)


def format_receipt_number(year: int, number: int) -> str:
    return f"{settings.receipt_prefix}-{year}-{number:04d}"


def parse_receipt_sequence(receipt_number: Optional[str], year: int) -> Optional[int]:
    """Numeric suffix of a receipt issued for year, or None when it is not one of ours."""
    if not receipt_number:
        return None
    m = re.fullmatch(rf"{re.escape(settings.receipt_prefix)}-{year}-(\d+)", receipt_number.strip())
    return int(m.group(1)) if m else None


async def _highest_issued(db: AsyncSession, school_id: int, year: int) -> int:
    prefix = f"{settings.receipt_prefix}-{year}-"
    rows = (
        await db.execute(
            select(FeePayment.receipt_number).where(
                FeePayment.school_id == school_id,
                FeePayment.receipt_number.like(prefix + "%"),
            )
        )
    ).scalars().all()
    numbers = [n for n in (parse_receipt_sequence(r, year) for r in rows) if n is not None]
    return max(numbers, default=0)


async def _increment(db: AsyncSession, school_id: int, year: int) -> Optional[int]:
    result = await db.execute(
        update(ReceiptCounter)
        .where(ReceiptCounter.school_id == school_id, ReceiptCounter.year == year)
        .values(last_number=ReceiptCounter.last_number + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        return None
    return (
        await db.execute(
            select(ReceiptCounter.last_number).where(
                ReceiptCounter.school_id == school_id,
                ReceiptCounter.year == year,
            )
        )
    ).scalar_one()


async def allocate_receipt_number(db: AsyncSession, school_id: int, year: int) -> str:
    """Reserve the next receipt number. Must run inside the payment's transaction."""
    number = await _increment(db, school_id, year)
    if number is None:
        # First receipt for this school/year: seed from receipts issued before the counter existed.
        seed = await _highest_issued(db, school_id, year)
        try:
            async with db.begin_nested():
                db.add(ReceiptCounter(school_id=school_id, year=year, last_number=seed))
        except IntegrityError:
            logger.info("Receipt counter for school %s year %s created concurrently", school_id, year)
        number = await _increment(db, school_id, year)
    return format_receipt_number(year, number)


async def register_explicit_receipt(db: AsyncSession, school_id: int, year: int, receipt_number: str) -> None:
    """Keep the counter ahead of a caller-supplied REC-{year}-N so it is never reissued."""
    sequence = parse_receipt_sequence(receipt_number, year)
    if sequence is None:
        return
    stmt = (
        update(ReceiptCounter)
        .where(ReceiptCounter.school_id == school_id, ReceiptCounter.year == year)
        .values(
            last_number=case(
                (ReceiptCounter.last_number < sequence, sequence),
                else_=ReceiptCounter.last_number,
            )
        )
        .execution_options(synchronize_session=False)
    )
    result = await db.execute(stmt)
    if result.rowcount == 0:
        seed = max(sequence, await _highest_issued(db, school_id, year))
        try:
            async with db.begin_nested():
                db.add(ReceiptCounter(school_id=school_id, year=year, last_number=seed))
        except IntegrityError:
            # Lost the creation race; raise the winner's counter instead.
            await db.execute(stmt)
