"""Payments router: ledger reads, upsert, update by id, delete."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from tutorledger.auth.dependencies import get_branch_scope, get_current_user
from tutorledger.auth.rbac import check_permission
from tutorledger.auth.schemas import CurrentUser
from tutorledger.core.enums import PaymentStatus, PaymentType
from tutorledger.core.exceptions import ServiceError
from tutorledger.db.session import get_db

from .schemas import PaymentFilter, PaymentResponse, PaymentUpdate, PaymentUpsert
from . import service

router = APIRouter(prefix="/api/v1/payments", tags=["payments"])


@router.get(
    "",
    response_model=List[PaymentResponse],
    dependencies=[Depends(check_permission("payments", "read"))],
)
async def list_payments(
    student_id: Optional[UUID] = Query(None, alias="studentId"),
    subject: Optional[str] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    payment_type: Optional[PaymentType] = Query(None, alias="paymentType"),
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    term: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
) -> List[PaymentResponse]:
    if student_id and subject and month is not None and year is not None:
        found = await service.find_by_key(db, branch_id, student_id, subject, month, year)
        if found is None:
            return []
        if payment_status is not None and found.status != payment_status:
            return []
        return [found]
    filters = PaymentFilter(
        student_id=student_id,
        status=payment_status,
        payment_type=payment_type,
        academic_year=academic_year,
        term=term,
        subject=subject,
        month=month,
        year=year,
    )
    return await service.list_payments(db, branch_id, filters)


@router.get(
    "/student/{student_id}",
    response_model=List[PaymentResponse],
    dependencies=[Depends(check_permission("payments", "read"))],
)
async def list_student_payments(
    student_id: UUID,
    subject: Optional[str] = Query(None),
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
) -> List[PaymentResponse]:
    return await service.list_by_student(
        db, branch_id, student_id, subject=subject, month=month, year=year
    )


@router.get(
    "/{payment_id}",
    response_model=PaymentResponse,
    dependencies=[Depends(check_permission("payments", "read"))],
)
async def get_payment(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
) -> PaymentResponse:
    try:
        return await service.get_payment(db, branch_id, payment_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("payments", "create"))],
)
async def record_payment(
    payload: PaymentUpsert,
    response: Response,
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    """Create the period's payment, or replace its amount when one already exists (200)."""
    try:
        result, created = await service.record_payment(
            db, branch_id, payload, recorded_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if not created:
        response.status_code = status.HTTP_200_OK
    return result


@router.put(
    "/{payment_id}",
    response_model=PaymentResponse,
    dependencies=[Depends(check_permission("payments", "update"))],
)
async def update_payment(
    payment_id: UUID,
    payload: PaymentUpdate,
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
    current_user: CurrentUser = Depends(get_current_user),
) -> PaymentResponse:
    try:
        return await service.update_payment(
            db, branch_id, payment_id, payload, recorded_by=current_user.id
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete(
    "/{payment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("payments", "delete"))],
)
async def delete_payment(
    payment_id: UUID,
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
    current_user: CurrentUser = Depends(get_current_user),
) -> None:
    try:
        await service.delete_payment(db, branch_id, payment_id, deleted_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
