"""
Payment ledger: one row per (student, subject, month, year).

A write stores the amount paid so far for the period and recomputes status
from the tariff resolved at write time. Every write and delete leaves an
audit row. Failed writes are surfaced to the caller and never retried,
except for the single conversion of a lost insert race into an update.
"""

import logging
import secrets
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tutorledger.api.v1.students.schemas import PaymentStatusResponse
from tutorledger.api.v1.students.service import get_student_row
from tutorledger.core.config import settings
from tutorledger.core.enums import PaymentMethod, PaymentStatus, PaymentType
from tutorledger.core.exceptions import ConflictError, NotFoundError, ServiceError, ValidationError
from tutorledger.core.models import PaymentAuditLog, PaymentTransaction, Student
from tutorledger.db.session import utcnow
from tutorledger.engine.periods import academic_year_for, due_date_for, term_for_month
from tutorledger.engine.status import classify
from tutorledger.engine.tariffs import normalize_subject, resolve_expected_amount

from .schemas import PaymentFilter, PaymentResponse, PaymentUpdate, PaymentUpsert

logger = logging.getLogger(__name__)

_MAX_AMOUNT = Decimal("10000000000")

_METHOD_ALIASES = {
    "cash": PaymentMethod.cash,
    "card": PaymentMethod.card,
    "bank": PaymentMethod.bank,
    "bank transfer": PaymentMethod.bank,
    "bank-transfer": PaymentMethod.bank,
    "online": PaymentMethod.online,
    "online payment": PaymentMethod.online,
}


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def normalize_payment_method(method: Any) -> PaymentMethod:
    """Map UI labels ("Bank Transfer", "Online Payment") and stored values onto PaymentMethod."""
    if method is None or method == "":
        return PaymentMethod.cash
    if isinstance(method, PaymentMethod):
        return method
    resolved = _METHOD_ALIASES.get(str(method).strip().lower())
    if resolved is None:
        raise ValidationError(f"Unknown payment method '{method}'")
    return resolved


def _parse_payment_type(value: Any) -> PaymentType:
    if value is None or value == "":
        return PaymentType.TUITION_FEE
    try:
        return PaymentType(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown payment type '{value}'")


def _parse_amount(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError("Amount is required")
    try:
        amount = _to_decimal(value)
    except (InvalidOperation, ValueError):
        raise ValidationError("Amount must be a number")
    if not amount.is_finite():
        raise ValidationError("Amount must be a number")
    if amount < 0:
        raise ValidationError("Amount cannot be negative")
    # Numeric(12, 2)
    if amount >= _MAX_AMOUNT:
        raise ValidationError("Amount is too large")
    if amount != amount.quantize(Decimal("0.01")):
        raise ValidationError("Amount cannot have more than 2 decimal places")
    return amount


def _validate_key(student_id, subject, month, year) -> Tuple[UUID, str, int, int]:
    if not student_id:
        raise ValidationError("Student ID is required")
    if not isinstance(subject, str) or not subject.strip():
        raise ValidationError("Subject is required")
    if month is None:
        raise ValidationError("Month is required")
    if year is None:
        raise ValidationError("Year is required")
    if isinstance(month, bool) or not isinstance(month, int) or not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12")
    if isinstance(year, bool) or not isinstance(year, int) or not 1900 <= year <= 9999:
        raise ValidationError("Year is invalid")
    if not isinstance(student_id, UUID):
        try:
            student_id = UUID(str(student_id))
        except ValueError:
            raise ValidationError("Student ID is invalid")
    return student_id, subject.strip(), month, year


def payment_to_response(pt: PaymentTransaction) -> PaymentResponse:
    pt_status = PaymentStatus(pt.status)
    return PaymentResponse(
        id=pt.id,
        branch_id=pt.branch_id,
        student_id=pt.student_id,
        subject=pt.subject,
        month=pt.month,
        year=pt.year,
        amount=_to_decimal(pt.amount),
        status=pt_status,
        status_label=pt_status.label,
        payment_method=pt.payment_method,
        payment_type=pt.payment_type,
        notes=pt.notes or "",
        due_date=pt.due_date,
        paid_date=pt.paid_date,
        academic_year=pt.academic_year,
        term=pt.term,
        receipt_number=pt.receipt_number,
        recorded_by=pt.recorded_by,
        created_at=pt.created_at,
        updated_at=pt.updated_at,
    )


# --- Audit helper ---
def _snapshot(pt: PaymentTransaction) -> dict:
    return {
        "amount": str(_to_decimal(pt.amount)),
        "status": pt.status,
        "payment_method": pt.payment_method,
        "payment_type": pt.payment_type,
        "notes": pt.notes,
    }


async def _log_payment_audit(
    db: AsyncSession,
    pt: PaymentTransaction,
    action: str,
    old_value: Optional[dict],
    new_value: Optional[dict],
    changed_by: Optional[UUID],
) -> None:
    log = PaymentAuditLog(
        branch_id=pt.branch_id,
        payment_id=pt.id,
        action=action,
        old_value=old_value,
        new_value=new_value,
        changed_by=changed_by,
    )
    db.add(log)


def _receipt_number(now: datetime) -> str:
    return f"{settings.receipt_prefix}-{int(now.timestamp() * 1000)}-{secrets.token_hex(4).upper()}"


def _warn_if_not_enrolled(student: Student, subject: str) -> None:
    enrolled = {normalize_subject(s) for s in (student.subjects or [])}
    if normalize_subject(subject) not in enrolled:
        # Dropped and legacy subjects are still billable
        logger.warning(
            "Recording payment for student %s in subject %r they are not enrolled in",
            student.id,
            subject,
        )


def _apply_payment(
    pt: PaymentTransaction,
    *,
    amount: Decimal,
    method: Optional[PaymentMethod],
    payment_type: Optional[PaymentType],
    notes: Optional[str],
    expected: Decimal,
    recorded_by: Optional[UUID],
    now: datetime,
) -> None:
    """Overwrite the period total and re-derive status; None leaves a field as it is."""
    previous = _to_decimal(pt.amount) if pt.amount is not None else None
    pt.amount = amount
    if method is not None:
        pt.payment_method = method.value
    if payment_type is not None:
        pt.payment_type = payment_type.value
    if notes is not None:
        pt.notes = notes.strip()
    new_status = classify(expected, amount)
    pt.status = new_status.value
    if amount <= 0:
        pt.paid_date = None
    elif pt.paid_date is None or previous != amount:
        pt.paid_date = now
    if new_status == PaymentStatus.paid and not pt.receipt_number:
        pt.receipt_number = _receipt_number(now)
    if recorded_by is not None:
        pt.recorded_by = recorded_by


async def _find_row(
    db: AsyncSession,
    student_id: UUID,
    subject: str,
    month: int,
    year: int,
) -> Optional[PaymentTransaction]:
    result = await db.execute(
        select(PaymentTransaction).where(
            PaymentTransaction.student_id == student_id,
            PaymentTransaction.subject == subject,
            PaymentTransaction.month == month,
            PaymentTransaction.year == year,
        )
    )
    return result.scalar_one_or_none()


async def _insert_row(db: AsyncSession, pt: PaymentTransaction) -> None:
    """Insert inside a SAVEPOINT so a unique-key race only undoes this row."""
    try:
        async with db.begin_nested():
            db.add(pt)
            await db.flush()
    except IntegrityError:
        raise ConflictError("A payment for this student, subject and period already exists")


async def _upsert(
    db: AsyncSession,
    branch_id: Optional[UUID],
    student_id: Any,
    subject: Any,
    month: Any,
    year: Any,
    amount: Any,
    method: Any = None,
    notes: Optional[str] = None,
    payment_type: Any = None,
    recorded_by: Optional[UUID] = None,
) -> Tuple[PaymentTransaction, bool]:
    student_id, subject, month, year = _validate_key(student_id, subject, month, year)
    amount = _parse_amount(amount)
    method = normalize_payment_method(method) if method not in (None, "") else None
    payment_type = _parse_payment_type(payment_type) if payment_type not in (None, "") else None

    student = await get_student_row(db, branch_id, student_id)
    _warn_if_not_enrolled(student, subject)
    # Re-resolved on every write: the tariff may have changed since the caller read it
    expected = resolve_expected_amount(student, subject)
    now = utcnow()

    async def _update(existing: PaymentTransaction) -> PaymentTransaction:
        old = _snapshot(existing)
        _apply_payment(
            existing,
            amount=amount,
            method=method,
            payment_type=payment_type,
            notes=notes,
            expected=expected,
            recorded_by=recorded_by,
            now=now,
        )
        new = _snapshot(existing)
        if new != old:
            await _log_payment_audit(db, existing, "UPDATE", old, new, recorded_by)
        return existing

    existing = await _find_row(db, student_id, subject, month, year)
    if existing is not None:
        pt = await _update(existing)
        created = False
    else:
        pt = PaymentTransaction(
            branch_id=student.branch_id,
            student_id=student_id,
            subject=subject,
            month=month,
            year=year,
            payment_method=(method or PaymentMethod.cash).value,
            payment_type=(payment_type or PaymentType.TUITION_FEE).value,
            notes="",
            due_date=due_date_for(month, year),
            academic_year=academic_year_for(year),
            term=term_for_month(month).value,
            created_at=now,
            updated_at=now,
        )
        _apply_payment(
            pt,
            amount=amount,
            method=method,
            payment_type=payment_type,
            notes=notes,
            expected=expected,
            recorded_by=recorded_by,
            now=now,
        )
        try:
            await _insert_row(db, pt)
            await _log_payment_audit(db, pt, "CREATE", None, _snapshot(pt), recorded_by)
            created = True
        except ConflictError:
            logger.info(
                "Concurrent insert for student %s %r %02d/%d; applying as update",
                student_id,
                subject,
                month,
                year,
            )
            existing = await _find_row(db, student_id, subject, month, year)
            if existing is None:
                await db.rollback()
                raise ServiceError("Payment could not be recorded", status.HTTP_500_INTERNAL_SERVER_ERROR)
            pt = await _update(existing)
            created = False

    await db.commit()
    await db.refresh(pt)
    logger.info(
        "%s payment %s: student=%s subject=%r period=%02d/%d amount=%s status=%s",
        "Created" if created else "Updated",
        pt.id,
        pt.student_id,
        pt.subject,
        pt.month,
        pt.year,
        pt.amount,
        pt.status,
    )
    return pt, created


async def upsert(
    db: AsyncSession,
    branch_id: Optional[UUID],
    student_id: Any,
    subject: Any,
    month: Any,
    year: Any,
    amount: Any,
    method: Any = PaymentMethod.cash,
    notes: Optional[str] = "",
    *,
    payment_type: Any = None,
    recorded_by: Optional[UUID] = None,
) -> PaymentResponse:
    """Create or replace the period total for (student, subject, month, year)."""
    pt, _ = await _upsert(
        db, branch_id, student_id, subject, month, year, amount,
        method=method, notes=notes, payment_type=payment_type, recorded_by=recorded_by,
    )
    return payment_to_response(pt)


async def record_payment(
    db: AsyncSession,
    branch_id: Optional[UUID],
    payload: PaymentUpsert,
    recorded_by: Optional[UUID] = None,
) -> Tuple[PaymentResponse, bool]:
    """Upsert from an API payload. Returns the row and whether it was newly created."""
    pt, created = await _upsert(
        db,
        branch_id,
        payload.student_id,
        payload.subject,
        payload.month,
        payload.year,
        payload.amount,
        method=payload.payment_method,
        notes=payload.notes if payload.notes is not None else "",
        payment_type=payload.payment_type,
        recorded_by=recorded_by,
    )
    return payment_to_response(pt), created


async def _get_row(
    db: AsyncSession,
    branch_id: Optional[UUID],
    payment_id: UUID,
) -> PaymentTransaction:
    pt = await db.get(PaymentTransaction, payment_id)
    if not pt or (branch_id is not None and pt.branch_id != branch_id):
        raise NotFoundError("Payment not found")
    return pt


async def get_payment(
    db: AsyncSession,
    branch_id: Optional[UUID],
    payment_id: UUID,
) -> PaymentResponse:
    return payment_to_response(await _get_row(db, branch_id, payment_id))


async def update_payment(
    db: AsyncSession,
    branch_id: Optional[UUID],
    payment_id: UUID,
    payload: PaymentUpdate,
    recorded_by: Optional[UUID] = None,
) -> PaymentResponse:
    """PUT by id. The period key is immutable; status is recomputed like any other write."""
    pt = await _get_row(db, branch_id, payment_id)
    amount = _parse_amount(payload.amount) if payload.amount is not None else _to_decimal(pt.amount)
    method = normalize_payment_method(payload.payment_method) if payload.payment_method else None
    payment_type = _parse_payment_type(payload.payment_type) if payload.payment_type else None

    student = await get_student_row(db, None, pt.student_id)
    expected = resolve_expected_amount(student, pt.subject)
    old = _snapshot(pt)
    _apply_payment(
        pt,
        amount=amount,
        method=method,
        payment_type=payment_type,
        notes=payload.notes,
        expected=expected,
        recorded_by=recorded_by,
        now=utcnow(),
    )
    new = _snapshot(pt)
    if new != old:
        await _log_payment_audit(db, pt, "UPDATE", old, new, recorded_by)
    await db.commit()
    await db.refresh(pt)
    logger.info("Updated payment %s: amount=%s status=%s", pt.id, pt.amount, pt.status)
    return payment_to_response(pt)


async def delete_payment(
    db: AsyncSession,
    branch_id: Optional[UUID],
    payment_id: UUID,
    deleted_by: Optional[UUID] = None,
) -> None:
    """Hard delete. The audit row keeps the last known values."""
    pt = await _get_row(db, branch_id, payment_id)
    await _log_payment_audit(db, pt, "DELETE", _snapshot(pt), None, deleted_by)
    await db.delete(pt)
    await db.commit()
    logger.info("Deleted payment %s (student=%s subject=%r)", payment_id, pt.student_id, pt.subject)


async def find_by_key(
    db: AsyncSession,
    branch_id: Optional[UUID],
    student_id: UUID,
    subject: str,
    month: int,
    year: int,
) -> Optional[PaymentResponse]:
    """The payment for one period, or None when nothing has been paid yet."""
    pt = await _find_row(db, student_id, (subject or "").strip(), month, year)
    if not pt or (branch_id is not None and pt.branch_id != branch_id):
        return None
    return payment_to_response(pt)


async def list_by_student(
    db: AsyncSession,
    branch_id: Optional[UUID],
    student_id: UUID,
    subject: Optional[str] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
) -> List[PaymentResponse]:
    stmt = select(PaymentTransaction).where(PaymentTransaction.student_id == student_id)
    if branch_id is not None:
        stmt = stmt.where(PaymentTransaction.branch_id == branch_id)
    if subject:
        stmt = stmt.where(PaymentTransaction.subject == subject.strip())
    if month is not None:
        stmt = stmt.where(PaymentTransaction.month == month)
    if year is not None:
        stmt = stmt.where(PaymentTransaction.year == year)
    stmt = stmt.order_by(
        PaymentTransaction.year.desc(),
        PaymentTransaction.month.desc(),
        PaymentTransaction.subject,
    )
    result = await db.execute(stmt)
    return [payment_to_response(pt) for pt in result.scalars().all()]


async def list_payments(
    db: AsyncSession,
    branch_id: Optional[UUID],
    filters: PaymentFilter,
) -> List[PaymentResponse]:
    stmt = select(PaymentTransaction)
    if branch_id is not None:
        stmt = stmt.where(PaymentTransaction.branch_id == branch_id)
    if filters.student_id is not None:
        stmt = stmt.where(PaymentTransaction.student_id == filters.student_id)
    if filters.status is not None:
        stmt = stmt.where(PaymentTransaction.status == filters.status.value)
    if filters.payment_type is not None:
        stmt = stmt.where(PaymentTransaction.payment_type == filters.payment_type.value)
    if filters.academic_year:
        stmt = stmt.where(PaymentTransaction.academic_year == filters.academic_year)
    if filters.term:
        stmt = stmt.where(PaymentTransaction.term == filters.term)
    if filters.subject:
        stmt = stmt.where(PaymentTransaction.subject == filters.subject.strip())
    if filters.month is not None:
        stmt = stmt.where(PaymentTransaction.month == filters.month)
    if filters.year is not None:
        stmt = stmt.where(PaymentTransaction.year == filters.year)
    stmt = stmt.order_by(PaymentTransaction.created_at.desc())
    result = await db.execute(stmt)
    return [payment_to_response(pt) for pt in result.scalars().all()]


async def get_payment_status(
    db: AsyncSession,
    branch_id: Optional[UUID],
    student_id: UUID,
    subject: str,
    month: int,
    year: int,
) -> PaymentStatusResponse:
    """Expected vs. paid for one period. No payment row means nothing paid yet."""
    student = await get_student_row(db, branch_id, student_id)
    expected = resolve_expected_amount(student, subject)
    pt = await _find_row(db, student.id, (subject or "").strip(), month, year)
    paid = _to_decimal(pt.amount) if pt else Decimal("0")
    pt_status = classify(expected, paid)
    return PaymentStatusResponse(
        student_id=student.id,
        subject=subject,
        month=month,
        year=year,
        expected_amount=expected,
        paid_amount=paid,
        balance=max(Decimal("0"), expected - paid),
        status=pt_status,
        status_label=pt_status.label,
        payment_id=pt.id if pt else None,
    )
