"""Students service: the records the tariff resolver reads. The payment engine never writes them."""

from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tutorledger.core.exceptions import NotFoundError, ServiceError, ValidationError
from tutorledger.core.models import Branch, Student
from tutorledger.engine.tariffs import resolve_expected_amount

from .schemas import ExpectedAmountResponse, StudentCreate, StudentResponse


def _to_response(s: Student) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        branch_id=s.branch_id,
        student_code=s.student_code,
        name=s.name,
        email=s.email,
        phone=s.phone,
        status=s.status,
        subjects=list(s.subjects or []),
        subject_payments=s.subject_payments,
        per_class_prices=s.per_class_prices,
        payment_subjects=s.payment_subjects,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


def _tariff_list(items) -> Optional[list]:
    if items is None:
        return None
    # JSON columns cannot hold Decimal; keep the exact digits as text
    return [{"subject": t.subject.strip(), "amount": str(t.amount)} for t in items]


async def create_student(
    db: AsyncSession,
    branch_id: Optional[UUID],
    payload: StudentCreate,
) -> StudentResponse:
    if branch_id is None:
        raise ValidationError("branchId is required")
    branch = await db.get(Branch, branch_id)
    if not branch or not branch.is_active:
        raise ValidationError("Invalid branch")
    code = payload.student_code.strip()
    try:
        student = Student(
            branch_id=branch_id,
            student_code=code,
            name=payload.name.strip(),
            email=str(payload.email).lower() if payload.email else None,
            phone=(payload.phone or "").strip() or None,
            status=payload.status.value,
            subjects=[s.strip() for s in payload.subjects if s and s.strip()],
            subject_payments=_tariff_list(payload.subject_payments),
            per_class_prices=(
                {k: str(v) for k, v in payload.per_class_prices.items()}
                if payload.per_class_prices is not None
                else None
            ),
            payment_subjects=_tariff_list(payload.payment_subjects),
        )
        db.add(student)
        await db.commit()
        await db.refresh(student)
        return _to_response(student)
    except IntegrityError:
        await db.rollback()
        raise ServiceError(f"Student ID '{code}' already exists", status.HTTP_409_CONFLICT)


async def list_students(
    db: AsyncSession,
    branch_id: Optional[UUID],
    status_filter: Optional[str] = None,
    search: Optional[str] = None,
) -> List[StudentResponse]:
    stmt = select(Student)
    if branch_id is not None:
        stmt = stmt.where(Student.branch_id == branch_id)
    if status_filter:
        stmt = stmt.where(Student.status == status_filter)
    if search:
        term = f"%{search.strip().lower()}%"
        stmt = stmt.where(or_(Student.name.ilike(term), Student.student_code.ilike(term)))
    stmt = stmt.order_by(Student.name)
    result = await db.execute(stmt)
    return [_to_response(s) for s in result.scalars().all()]


async def get_student_row(
    db: AsyncSession,
    branch_id: Optional[UUID],
    student_id: UUID,
) -> Student:
    """Load a student inside the branch scope or raise NotFoundError."""
    student = await db.get(Student, student_id)
    if not student or (branch_id is not None and student.branch_id != branch_id):
        raise NotFoundError("Student not found")
    return student


async def get_student(
    db: AsyncSession,
    branch_id: Optional[UUID],
    student_id: UUID,
) -> StudentResponse:
    return _to_response(await get_student_row(db, branch_id, student_id))


async def get_expected_amount(
    db: AsyncSession,
    branch_id: Optional[UUID],
    student_id: UUID,
    subject: str,
) -> ExpectedAmountResponse:
    student = await get_student_row(db, branch_id, student_id)
    return ExpectedAmountResponse(
        student_id=student.id,
        subject=subject,
        expected_amount=resolve_expected_amount(student, subject),
    )
