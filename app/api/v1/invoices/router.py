"""Invoices router: generation, listing, soft edits, reminders."""

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
    BulkReminderRequest,
    GenerateInvoicesRequest,
    GenerateInvoicesResponse,
    InvoiceDetailResponse,
    InvoiceResponse,
    InvoiceUpdate,
    ReminderRequest,
    ReminderResponse,
)
from . import service

router = APIRouter(prefix="/api/v1/invoices", tags=["invoices"])


@router.post(
    "/generate",
    response_model=GenerateInvoicesResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("finance", "create"))],
)
async def generate_invoices(
    payload: GenerateInvoicesRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> GenerateInvoicesResponse:
    try:
        return await service.generate_invoices(
            db, current_user.school_id, payload, generated_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/reminders/bulk",
    response_model=ReminderResponse,
    dependencies=[Depends(check_permission("finance", "update"))],
)
async def send_bulk_reminders(
    payload: BulkReminderRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ReminderResponse:
    try:
        return await service.record_bulk_reminders(db, current_user.school_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=Page[InvoiceResponse],
    dependencies=[Depends(check_permission("finance", "read"))],
)
async def list_invoices(
    student_id: Optional[int] = Query(None, alias="studentId"),
    term: Optional[int] = Query(None),
    year: Optional[int] = Query(None),
    invoice_status: Optional[str] = Query(None, alias="status"),
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> Page[InvoiceResponse]:
    return await service.list_invoices(
        db,
        current_user.school_id,
        student_id=student_id,
        term=term,
        year=year,
        status=invoice_status,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{invoice_id}",
    response_model=InvoiceDetailResponse,
    dependencies=[Depends(check_permission("finance", "read"))],
)
async def get_invoice(
    invoice_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoiceDetailResponse:
    try:
        return await service.get_invoice(db, current_user.school_id, invoice_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.patch(
    "/{invoice_id}",
    response_model=InvoiceDetailResponse,
    dependencies=[Depends(check_permission("finance", "update"))],
)
async def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> InvoiceDetailResponse:
    try:
        return await service.update_invoice(
            db, current_user.school_id, invoice_id, payload, changed_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/{invoice_id}/reminder",
    response_model=ReminderResponse,
    dependencies=[Depends(check_permission("finance", "update"))],
)
async def send_reminder(
    invoice_id: int,
    payload: ReminderRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> ReminderResponse:
    try:
        return await service.record_reminder(db, current_user.school_id, invoice_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
