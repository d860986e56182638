"""Payment plans router: schedules, installment payments, ledger backfill."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.core.schemas import Page
from app.db.session import get_db

from .schemas import (
    PayInstallmentRequest,
    PayInstallmentResponse,
    PaymentPlanCreate,
    PaymentPlanResponse,
    ReconcileResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/payment-plans", tags=["payment-plans"])


@router.post(
    "",
    response_model=PaymentPlanResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("finance", "create"))],
)
async def create_payment_plan(
    payload: PaymentPlanCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentPlanResponse:
    try:
        return await service.create_payment_plan(
            db, current_user.school_id, payload, created_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=Page[PaymentPlanResponse],
    dependencies=[Depends(check_permission("finance", "read"))],
)
async def list_payment_plans(
    student_id: Optional[int] = Query(None, alias="studentId"),
    plan_status: Optional[str] = Query(None, alias="status"),
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Page[PaymentPlanResponse]:
    return await service.list_payment_plans(
        db,
        current_user.school_id,
        student_id=student_id,
        status=plan_status,
        limit=limit,
        offset=offset,
    )


@router.post(
    "/reconcile",
    response_model=ReconcileResponse,
    dependencies=[Depends(check_permission("finance", "update"))],
)
async def reconcile_plan_payments(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ReconcileResponse:
    try:
        return await service.reconcile_plan_payments(db, school_id=current_user.school_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{plan_id}",
    response_model=PaymentPlanResponse,
    dependencies=[Depends(check_permission("finance", "read"))],
)
async def get_payment_plan(
    plan_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentPlanResponse:
    try:
        return await service.get_payment_plan(db, current_user.school_id, plan_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{plan_id}/pay",
    response_model=PayInstallmentResponse,
    dependencies=[Depends(check_permission("finance", "create"))],
)
async def pay_installment(
    plan_id: int,
    payload: PayInstallmentRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> PayInstallmentResponse:
    try:
        return await service.pay_installment(
            db, current_user.school_id, plan_id, payload, received_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
