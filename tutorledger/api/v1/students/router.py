from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tutorledger.api.v1.payments import service as payment_service
from tutorledger.auth.dependencies import get_branch_scope
from tutorledger.auth.rbac import check_permission
from tutorledger.core.enums import StudentStatus
from tutorledger.core.exceptions import ServiceError
from tutorledger.db.session import get_db

from .schemas import ExpectedAmountResponse, PaymentStatusResponse, StudentCreate, StudentResponse
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post(
    "",
    response_model=StudentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("students", "create"))],
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
) -> StudentResponse:
    # A founder has no home branch and must name one in the body
    target_branch = branch_id or payload.branch_id
    try:
        return await service.create_student(db, target_branch, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "",
    response_model=List[StudentResponse],
    dependencies=[Depends(check_permission("students", "read"))],
)
async def list_students(
    student_status: Optional[StudentStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
) -> List[StudentResponse]:
    return await service.list_students(
        db,
        branch_id,
        status_filter=student_status.value if student_status else None,
        search=search,
    )


@router.get(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(check_permission("students", "read"))],
)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
) -> StudentResponse:
    try:
        return await service.get_student(db, branch_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{student_id}/expected-amount",
    response_model=ExpectedAmountResponse,
    dependencies=[Depends(check_permission("students", "read"))],
)
async def get_expected_amount(
    student_id: UUID,
    subject: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
) -> ExpectedAmountResponse:
    try:
        return await service.get_expected_amount(db, branch_id, student_id, subject)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/{student_id}/payment-status",
    response_model=PaymentStatusResponse,
    dependencies=[Depends(check_permission("payments", "read"))],
)
async def get_payment_status(
    student_id: UUID,
    subject: str = Query(..., min_length=1),
    month: int = Query(..., ge=1, le=12),
    year: int = Query(...),
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
) -> PaymentStatusResponse:
    try:
        return await payment_service.get_payment_status(
            db, branch_id, student_id, subject, month, year
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
