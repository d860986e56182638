"""Finance router: debtor aging, financial summary, student ledger."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import DebtorsResponse, FinancialSummary, StudentLedgerResponse
from . import service

router = APIRouter(prefix="/api/v1/finance", tags=["finance"])


@router.get(
    "/debtors",
    response_model=DebtorsResponse,
    dependencies=[Depends(check_permission("finance", "read"))],
)
async def get_debtors(
    term: Optional[int] = Query(None),
    year: Optional[int] = Query(None),
    class_level: Optional[str] = Query(None, alias="classLevel"),
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> DebtorsResponse:
    return await service.get_debtors(
        db,
        current_user.school_id,
        term=term,
        year=year,
        class_level=class_level,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/summary",
    response_model=FinancialSummary,
    dependencies=[Depends(check_permission("finance", "read"))],
)
async def get_financial_summary(
    term: Optional[int] = Query(None),
    year: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> FinancialSummary:
    return await service.get_financial_summary(db, current_user.school_id, term=term, year=year)


@router.get(
    "/transactions/student/{student_id}",
    response_model=StudentLedgerResponse,
    dependencies=[Depends(check_permission("finance", "read"))],
)
async def get_student_ledger(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentLedgerResponse:
    try:
        return await service.get_student_ledger(db, current_user.school_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
