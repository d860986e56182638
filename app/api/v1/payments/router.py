"""Payments router: direct fee payments, history, voids."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.core.schemas import Page
from app.db.session import get_db

from .schemas import PaymentCreate, PaymentResponse, VoidPaymentRequest
from . import service

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("finance", "create"))],
)
async def record_payment(
    payload: PaymentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.record_payment(
            db, current_user.school_id, payload, received_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=Page[PaymentResponse],
    dependencies=[Depends(check_permission("finance", "read"))],
)
async def list_payments(
    term: Optional[int] = Query(None),
    year: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Page[PaymentResponse]:
    return await service.list_payments(
        db, current_user.school_id, term=term, year=year, limit=limit, offset=offset
    )


@router.get(
    "/student/{student_id}",
    response_model=List[PaymentResponse],
    dependencies=[Depends(check_permission("finance", "read"))],
)
async def list_student_payments(
    student_id: int,
    include_voided: bool = Query(False, alias="includeVoided"),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> List[PaymentResponse]:
    try:
        return await service.list_student_payments(
            db, current_user.school_id, student_id, include_voided=include_voided
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{payment_id}/void",
    response_model=PaymentResponse,
    dependencies=[Depends(check_permission("finance", "update"))],
)
async def void_payment(
    payment_id: int,
    payload: VoidPaymentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.void_payment(
            db, current_user.school_id, payment_id, payload, voided_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
