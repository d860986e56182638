"""Fees service: fee catalog, per-student overrides, scholarships and their assignments. Changes are audited."""

from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.billing.audit import log_fee_audit
from app.core.billing.pricing import Discount, scholarship_in_window
from app.core.billing.scope import get_student_in_school
from app.core.enums import ScholarshipAssignmentStatus
from app.core.exceptions import NotFound, ValidationError
from app.core.models import FeeStructure, Scholarship, StudentFeeOverride, StudentScholarship
from app.db.session import unit_of_work
from app.db.upsert import upsert_statement

from .schemas import (
    FeeOverrideResponse,
    FeeOverrideUpsert,
    FeeStructureCreate,
    FeeStructureResponse,
    FeeStructureUpdate,
    ScholarshipAssign,
    ScholarshipCreate,
    ScholarshipResponse,
    StudentScholarshipResponse,
)


def _term_key(term: Optional[int]) -> int:
    return term or 0


# --- Fee Structure ---
def _structure_snapshot(fs: FeeStructure) -> dict:
    return {
        "class_level": fs.class_level,
        "fee_type": fs.fee_type,
        "amount": fs.amount,
        "term": fs.term,
        "year": fs.year,
        "boarding_status": fs.boarding_status,
    }


async def _get_structure(db: AsyncSession, school_id: int, structure_id: int) -> FeeStructure:
    fs = await db.get(FeeStructure, structure_id)
    if fs is None or fs.school_id != school_id:
        raise NotFound("Fee structure not found")
    return fs


async def create_fee_structure(
    db: AsyncSession,
    school_id: int,
    payload: FeeStructureCreate,
    changed_by: Optional[int] = None,
) -> FeeStructureResponse:
    async with unit_of_work(db):
        fs = FeeStructure(
            school_id=school_id,
            class_level=payload.class_level.strip(),
            fee_type=payload.fee_type.strip(),
            amount=payload.amount,
            term=payload.term,
            term_key=_term_key(payload.term),
            year=payload.year,
            boarding_status=payload.boarding_status.value,
            description=payload.description,
            is_active=True,
        )
        db.add(fs)
        await db.flush()
        await log_fee_audit(
            db, school_id, "fee_structures", fs.id, "CREATE", None, _structure_snapshot(fs), changed_by
        )
    return FeeStructureResponse.model_validate(fs)


async def list_fee_structures(
    db: AsyncSession,
    school_id: int,
    class_level: Optional[str] = None,
    year: Optional[int] = None,
    term: Optional[int] = None,
) -> List[FeeStructureResponse]:
    stmt = select(FeeStructure).where(
        FeeStructure.school_id == school_id,
        FeeStructure.is_active.is_(True),
    )
    if class_level:
        stmt = stmt.where(FeeStructure.class_level == class_level)
    if year is not None:
        stmt = stmt.where(FeeStructure.year == year)
    if term is not None:
        stmt = stmt.where(or_(FeeStructure.term == term, FeeStructure.term.is_(None)))
    stmt = stmt.order_by(FeeStructure.year, FeeStructure.class_level, FeeStructure.fee_type, FeeStructure.id)
    result = await db.execute(stmt)
    return [FeeStructureResponse.model_validate(fs) for fs in result.scalars().all()]


async def update_fee_structure(
    db: AsyncSession,
    school_id: int,
    structure_id: int,
    payload: FeeStructureUpdate,
    changed_by: Optional[int] = None,
) -> FeeStructureResponse:
    async with unit_of_work(db):
        fs = await _get_structure(db, school_id, structure_id)
        old = _structure_snapshot(fs)
        if payload.amount is not None:
            fs.amount = payload.amount
        if payload.boarding_status is not None:
            fs.boarding_status = payload.boarding_status.value
        if payload.description is not None:
            fs.description = payload.description
        await db.flush()
        await log_fee_audit(
            db, school_id, "fee_structures", fs.id, "UPDATE", old, _structure_snapshot(fs), changed_by
        )
    return FeeStructureResponse.model_validate(fs)


async def deactivate_fee_structure(
    db: AsyncSession,
    school_id: int,
    structure_id: int,
    changed_by: Optional[int] = None,
) -> None:
    async with unit_of_work(db):
        fs = await _get_structure(db, school_id, structure_id)
        if not fs.is_active:
            return
        fs.is_active = False
        await log_fee_audit(
            db, school_id, "fee_structures", fs.id, "DEACTIVATE",
            {"is_active": True}, {"is_active": False}, changed_by,
        )


async def select_term_structures(db: AsyncSession, school_id: int, term: int, year: int) -> List[FeeStructure]:
    """Active catalog rows for the year that apply to this term or to every term."""
    result = await db.execute(
        select(FeeStructure)
        .where(
            FeeStructure.school_id == school_id,
            FeeStructure.is_active.is_(True),
            FeeStructure.year == year,
            or_(FeeStructure.term == term, FeeStructure.term.is_(None)),
        )
        .order_by(FeeStructure.id)
    )
    return list(result.scalars().all())


# --- Student Fee Override ---
async def upsert_fee_override(
    db: AsyncSession,
    school_id: int,
    payload: FeeOverrideUpsert,
    changed_by: Optional[int] = None,
) -> FeeOverrideResponse:
    """Create or replace the override for (student, fee type, year, term) in one statement."""
    await get_student_in_school(db, school_id, payload.student_id)
    now = datetime.utcnow()
    async with unit_of_work(db):
        stmt = upsert_statement(
            db,
            StudentFeeOverride,
            values=dict(
                school_id=school_id,
                student_id=payload.student_id,
                fee_type=payload.fee_type.strip(),
                custom_amount=payload.custom_amount,
                term=payload.term,
                term_key=_term_key(payload.term),
                year=payload.year,
                reason=payload.reason,
                is_active=True,
                created_by=changed_by,
                created_at=now,
                updated_at=now,
            ),
            conflict_columns=["student_id", "fee_type", "year", "term_key"],
            update_columns=["custom_amount", "reason", "is_active", "updated_at"],
        )
        override_id = (await db.execute(stmt)).scalar_one()
        override = await db.get(StudentFeeOverride, override_id, populate_existing=True)
        await log_fee_audit(
            db, school_id, "student_fee_overrides", override_id, "UPSERT", None,
            {"fee_type": override.fee_type, "custom_amount": override.custom_amount,
             "term": override.term, "year": override.year},
            changed_by,
        )
    return FeeOverrideResponse.model_validate(override)


async def list_student_overrides(
    db: AsyncSession,
    school_id: int,
    student_id: int,
) -> List[FeeOverrideResponse]:
    await get_student_in_school(db, school_id, student_id)
    result = await db.execute(
        select(StudentFeeOverride)
        .where(
            StudentFeeOverride.school_id == school_id,
            StudentFeeOverride.student_id == student_id,
            StudentFeeOverride.is_active.is_(True),
        )
        .order_by(StudentFeeOverride.year.desc(), StudentFeeOverride.fee_type)
    )
    return [FeeOverrideResponse.model_validate(o) for o in result.scalars().all()]


async def deactivate_fee_override(
    db: AsyncSession,
    school_id: int,
    override_id: int,
    changed_by: Optional[int] = None,
) -> None:
    async with unit_of_work(db):
        override = await db.get(StudentFeeOverride, override_id)
        if override is None or override.school_id != school_id:
            raise NotFound("Fee override not found")
        if not override.is_active:
            return
        override.is_active = False
        await log_fee_audit(
            db, school_id, "student_fee_overrides", override.id, "DEACTIVATE",
            {"is_active": True}, {"is_active": False}, changed_by,
        )


async def resolve_overrides(
    db: AsyncSession,
    school_id: int,
    student_ids: Iterable[int],
    term: int,
    year: int,
) -> Dict[int, Dict[str, int]]:
    """
    student_id -> {fee_type: custom_amount} for overrides that apply to (term, year).
    A term-specific override beats an all-terms one for the same fee type.
    """
    ids = list(student_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(StudentFeeOverride)
        .where(
            StudentFeeOverride.school_id == school_id,
            StudentFeeOverride.student_id.in_(ids),
            StudentFeeOverride.is_active.is_(True),
            StudentFeeOverride.year == year,
            or_(StudentFeeOverride.term == term, StudentFeeOverride.term.is_(None)),
        )
        .order_by(StudentFeeOverride.id)
    )
    resolved: Dict[int, Dict[str, int]] = {}
    specific: Dict[int, set] = {}
    for o in result.scalars().all():
        per_student = resolved.setdefault(o.student_id, {})
        seen = specific.setdefault(o.student_id, set())
        if o.term is None and o.fee_type in seen:
            continue
        per_student[o.fee_type] = o.custom_amount
        if o.term is not None:
            seen.add(o.fee_type)
    return resolved


# --- Scholarship ---
async def create_scholarship(
    db: AsyncSession,
    school_id: int,
    payload: ScholarshipCreate,
    changed_by: Optional[int] = None,
) -> ScholarshipResponse:
    async with unit_of_work(db):
        sch = Scholarship(
            school_id=school_id,
            name=payload.name.strip(),
            discount_type=payload.discount_type.value,
            discount_value=payload.discount_value,
            fee_types=payload.fee_types,
            description=payload.description,
            valid_from=payload.valid_from,
            valid_to=payload.valid_to,
            is_active=True,
        )
        db.add(sch)
        await db.flush()
        await log_fee_audit(
            db, school_id, "scholarships", sch.id, "CREATE", None,
            {"name": sch.name, "discount_type": sch.discount_type,
             "discount_value": sch.discount_value, "fee_types": sch.fee_types},
            changed_by,
        )
    return ScholarshipResponse.model_validate(sch)


async def list_scholarships(
    db: AsyncSession,
    school_id: int,
    active_only: bool = True,
) -> List[ScholarshipResponse]:
    stmt = select(Scholarship).where(Scholarship.school_id == school_id)
    if active_only:
        stmt = stmt.where(Scholarship.is_active.is_(True))
    result = await db.execute(stmt.order_by(Scholarship.name, Scholarship.id))
    return [ScholarshipResponse.model_validate(s) for s in result.scalars().all()]


async def deactivate_scholarship(
    db: AsyncSession,
    school_id: int,
    scholarship_id: int,
    changed_by: Optional[int] = None,
) -> None:
    async with unit_of_work(db):
        sch = await db.get(Scholarship, scholarship_id)
        if sch is None or sch.school_id != school_id:
            raise NotFound("Scholarship not found")
        if not sch.is_active:
            return
        sch.is_active = False
        await log_fee_audit(
            db, school_id, "scholarships", sch.id, "DEACTIVATE",
            {"is_active": True}, {"is_active": False}, changed_by,
        )


def _assignment_to_response(ss: StudentScholarship, sch: Optional[Scholarship]) -> StudentScholarshipResponse:
    return StudentScholarshipResponse(
        id=ss.id,
        student_id=ss.student_id,
        scholarship_id=ss.scholarship_id,
        scholarship_name=sch.name if sch else None,
        discount_type=sch.discount_type if sch else None,
        discount_value=sch.discount_value if sch else None,
        term=ss.term,
        year=ss.year,
        status=ss.status,
        approved_by=ss.approved_by,
        approved_at=ss.approved_at,
        notes=ss.notes,
        created_at=ss.created_at,
    )


async def assign_scholarship(
    db: AsyncSession,
    school_id: int,
    payload: ScholarshipAssign,
    changed_by: Optional[int] = None,
) -> StudentScholarshipResponse:
    """Assign (or re-activate) a scholarship for a student's year/term in one statement."""
    await get_student_in_school(db, school_id, payload.student_id)
    sch = await db.get(Scholarship, payload.scholarship_id)
    if sch is None or sch.school_id != school_id:
        raise NotFound("Scholarship not found")
    if not sch.is_active:
        raise ValidationError("Scholarship is inactive")

    now = datetime.utcnow()
    async with unit_of_work(db):
        stmt = upsert_statement(
            db,
            StudentScholarship,
            values=dict(
                school_id=school_id,
                student_id=payload.student_id,
                scholarship_id=payload.scholarship_id,
                term=payload.term,
                term_key=_term_key(payload.term),
                year=payload.year,
                status=ScholarshipAssignmentStatus.active.value,
                approved_by=changed_by,
                approved_at=now,
                notes=payload.notes,
                created_at=now,
            ),
            conflict_columns=["student_id", "scholarship_id", "year", "term_key"],
            update_columns=["status", "approved_by", "approved_at", "notes"],
        )
        assignment_id = (await db.execute(stmt)).scalar_one()
        ss = await db.get(StudentScholarship, assignment_id, populate_existing=True)
        await log_fee_audit(
            db, school_id, "student_scholarships", assignment_id, "ASSIGN", None,
            {"scholarship_id": ss.scholarship_id, "term": ss.term, "year": ss.year}, changed_by,
        )
    return _assignment_to_response(ss, sch)


async def list_student_scholarships(
    db: AsyncSession,
    school_id: int,
    student_id: int,
) -> List[StudentScholarshipResponse]:
    await get_student_in_school(db, school_id, student_id)
    result = await db.execute(
        select(StudentScholarship, Scholarship)
        .join(Scholarship, StudentScholarship.scholarship_id == Scholarship.id)
        .where(
            StudentScholarship.school_id == school_id,
            StudentScholarship.student_id == student_id,
        )
        .order_by(StudentScholarship.id)
    )
    return [_assignment_to_response(ss, sch) for ss, sch in result.all()]


async def revoke_scholarship_assignment(
    db: AsyncSession,
    school_id: int,
    assignment_id: int,
    changed_by: Optional[int] = None,
) -> StudentScholarshipResponse:
    async with unit_of_work(db):
        ss = await db.get(StudentScholarship, assignment_id)
        if ss is None or ss.school_id != school_id:
            raise NotFound("Scholarship assignment not found")
        old_status = ss.status
        ss.status = ScholarshipAssignmentStatus.revoked.value
        await log_fee_audit(
            db, school_id, "student_scholarships", ss.id, "REVOKE",
            {"status": old_status}, {"status": ss.status}, changed_by,
        )
    sch = await db.get(Scholarship, ss.scholarship_id)
    return _assignment_to_response(ss, sch)


async def resolve_discounts(
    db: AsyncSession,
    school_id: int,
    student_ids: Iterable[int],
    term: int,
    year: int,
    as_of: Optional[date] = None,
) -> Dict[int, List[Discount]]:
    """
    student_id -> discounts to stack, in assignment order (ascending assignment id).
    Only active assignments of active scholarships valid on as_of are returned.
    """
    ids = list(student_ids)
    if not ids:
        return {}
    as_of = as_of or date.today()
    result = await db.execute(
        select(StudentScholarship, Scholarship)
        .join(Scholarship, StudentScholarship.scholarship_id == Scholarship.id)
        .where(
            StudentScholarship.school_id == school_id,
            StudentScholarship.student_id.in_(ids),
            StudentScholarship.status == ScholarshipAssignmentStatus.active.value,
            StudentScholarship.year == year,
            or_(StudentScholarship.term == term, StudentScholarship.term.is_(None)),
            Scholarship.is_active.is_(True),
        )
        .order_by(StudentScholarship.id)
    )
    discounts: Dict[int, List[Discount]] = {}
    for ss, sch in result.all():
        if not scholarship_in_window(sch.valid_from, sch.valid_to, as_of):
            continue
        discounts.setdefault(ss.student_id, []).append(
            Discount(
                discount_type=sch.discount_type,
                discount_value=sch.discount_value,
                fee_types=tuple(sch.fee_types or ()),
            )
        )
    return discounts
