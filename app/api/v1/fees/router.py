"""Fees router: fee catalog, student overrides, scholarships."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

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
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


# --- Fee Structure ---
@router.post(
    "/structures",
    response_model=FeeStructureResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("finance", "create"))],
)
async def create_fee_structure(
    payload: FeeStructureCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureResponse:
    try:
        return await service.create_fee_structure(
            db, current_user.school_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/structures",
    response_model=List[FeeStructureResponse],
    dependencies=[Depends(check_permission("finance", "read"))],
)
async def list_fee_structures(
    class_level: Optional[str] = Query(None, alias="classLevel"),
    year: Optional[int] = Query(None),
    term: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeStructureResponse]:
    return await service.list_fee_structures(
        db, current_user.school_id, class_level=class_level, year=year, term=term
    )


@router.patch(
    "/structures/{structure_id}",
    response_model=FeeStructureResponse,
    dependencies=[Depends(check_permission("finance", "update"))],
)
async def update_fee_structure(
    structure_id: int,
    payload: FeeStructureUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeStructureResponse:
    try:
        return await service.update_fee_structure(
            db, current_user.school_id, structure_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/structures/{structure_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("finance", "update"))],
)
async def deactivate_fee_structure(
    structure_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await service.deactivate_fee_structure(
            db, current_user.school_id, structure_id, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Student Fee Override ---
@router.post(
    "/overrides",
    response_model=FeeOverrideResponse,
    dependencies=[Depends(check_permission("finance", "update"))],
)
async def upsert_fee_override(
    payload: FeeOverrideUpsert,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FeeOverrideResponse:
    try:
        return await service.upsert_fee_override(
            db, current_user.school_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/overrides/student/{student_id}",
    response_model=List[FeeOverrideResponse],
    dependencies=[Depends(check_permission("finance", "read"))],
)
async def list_student_overrides(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[FeeOverrideResponse]:
    try:
        return await service.list_student_overrides(db, current_user.school_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/overrides/{override_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("finance", "update"))],
)
async def deactivate_fee_override(
    override_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await service.deactivate_fee_override(
            db, current_user.school_id, override_id, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


# --- Scholarship ---
@router.post(
    "/scholarships",
    response_model=ScholarshipResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("finance", "create"))],
)
async def create_scholarship(
    payload: ScholarshipCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ScholarshipResponse:
    try:
        return await service.create_scholarship(
            db, current_user.school_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/scholarships",
    response_model=List[ScholarshipResponse],
    dependencies=[Depends(check_permission("finance", "read"))],
)
async def list_scholarships(
    active_only: bool = Query(True, alias="activeOnly"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[ScholarshipResponse]:
    return await service.list_scholarships(db, current_user.school_id, active_only=active_only)


@router.delete(
    "/scholarships/{scholarship_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("finance", "update"))],
)
async def deactivate_scholarship(
    scholarship_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await service.deactivate_scholarship(
            db, current_user.school_id, scholarship_id, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/scholarships/assign",
    response_model=StudentScholarshipResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("finance", "create"))],
)
async def assign_scholarship(
    payload: ScholarshipAssign,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentScholarshipResponse:
    try:
        return await service.assign_scholarship(
            db, current_user.school_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/scholarships/student/{student_id}",
    response_model=List[StudentScholarshipResponse],
    dependencies=[Depends(check_permission("finance", "read"))],
)
async def list_student_scholarships(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[StudentScholarshipResponse]:
    try:
        return await service.list_student_scholarships(db, current_user.school_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/scholarships/assignments/{assignment_id}/revoke",
    response_model=StudentScholarshipResponse,
    dependencies=[Depends(check_permission("finance", "update"))],
)
async def revoke_scholarship_assignment(
    assignment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentScholarshipResponse:
    try:
        return await service.revoke_scholarship_assignment(
            db, current_user.school_id, assignment_id, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
