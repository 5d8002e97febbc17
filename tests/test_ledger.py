"""Service-level tests for the payment ledger."""

import logging
import re
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tutorledger.api.v1.payments import service
from tutorledger.api.v1.payments.schemas import PaymentFilter, PaymentUpdate
from tutorledger.core.enums import PaymentStatus
from tutorledger.core.exceptions import NotFoundError, ValidationError
from tutorledger.core.models import PaymentAuditLog, PaymentTransaction


async def _count_payments(db: AsyncSession) -> int:
    return (await db.execute(select(func.count()).select_from(PaymentTransaction))).scalar()


@pytest.mark.asyncio
async def test_upsert_twice_keeps_one_row(db_session: AsyncSession, make_student) -> None:
    student = await make_student()
    first = await service.upsert(db_session, None, student.id, "Math", 3, 2025, 100, "cash", "")
    second = await service.upsert(db_session, None, student.id, "Math", 3, 2025, 100, "cash", "")

    assert first.id == second.id
    assert second.amount == Decimal("100")
    assert await _count_payments(db_session) == 1


@pytest.mark.asyncio
async def test_second_payment_replaces_amount(db_session: AsyncSession, make_student) -> None:
    student = await make_student(subject_payments=[{"subject": "Math", "amount": "150"}])
    partial = await service.upsert(db_session, None, student.id, "Math", 3, 2025, 60, "cash", "")
    assert partial.status == PaymentStatus.partial
    assert partial.receipt_number is None

    paid = await service.upsert(db_session, None, student.id, "Math", 3, 2025, 150, "card", "settled")
    assert paid.id == partial.id
    assert paid.amount == Decimal("150")
    assert paid.status == PaymentStatus.paid
    assert paid.payment_method == "card"
    assert paid.notes == "settled"
    assert paid.receipt_number is not None
    assert paid.receipt_number.startswith("RCP-")
    assert await _count_payments(db_session) == 1


def test_receipt_numbers_do_not_repeat_within_a_millisecond() -> None:
    now = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)
    receipts = {service._receipt_number(now) for _ in range(500)}
    assert len(receipts) == 500
    millis = int(now.timestamp() * 1000)
    assert all(re.fullmatch(rf"RCP-{millis}-[0-9A-F]{{8}}", r) for r in receipts)


@pytest.mark.asyncio
async def test_new_row_derives_period_fields(db_session: AsyncSession, make_student) -> None:
    student = await make_student()
    pt = await service.upsert(db_session, None, student.id, "Mathematics", 6, 2025, 20, "online", "")

    assert pt.term == "2nd-term"
    assert pt.academic_year == "2025-2026"
    assert pt.due_date == date(2025, 6, 1)
    assert pt.branch_id == student.branch_id
    assert pt.payment_type == "tuition-fee"
    assert pt.paid_date is not None


@pytest.mark.asyncio
async def test_zero_amount_is_pending(db_session: AsyncSession, make_student) -> None:
    student = await make_student()
    pt = await service.upsert(db_session, None, student.id, "Mathematics", 1, 2025, 0, "cash", "")
    assert pt.status == PaymentStatus.pending
    assert pt.status_label == "Unpaid"
    assert pt.paid_date is None


@pytest.mark.asyncio
async def test_status_recomputed_from_tariff_at_write_time(db_session: AsyncSession, make_student) -> None:
    student = await make_student(per_class_prices={"Mathematics": "200"})
    pt = await service.upsert(db_session, None, student.id, "Mathematics", 4, 2025, 150, "cash", "")
    assert pt.status == PaymentStatus.partial

    student.per_class_prices = {"Mathematics": "150"}
    await db_session.commit()

    pt = await service.upsert(db_session, None, student.id, "Mathematics", 4, 2025, 150, "cash", "")
    assert pt.status == PaymentStatus.paid


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"amount": -1}, "negative"),
        ({"amount": "abc"}, "number"),
        ({"amount": None}, "required"),
        ({"amount": "10.005"}, "decimal places"),
        ({"month": 13}, "Month"),
        ({"month": None}, "Month is required"),
        ({"year": None}, "Year is required"),
        ({"subject": "  "}, "Subject is required"),
        ({"method": "cheque"}, "payment method"),
    ],
)
async def test_upsert_validation(db_session: AsyncSession, make_student, kwargs, message) -> None:
    student = await make_student()
    args = {"subject": "Mathematics", "month": 3, "year": 2025, "amount": 10, "method": "cash"}
    args.update(kwargs)
    with pytest.raises(ValidationError) as exc:
        await service.upsert(
            db_session, None, student.id, args["subject"], args["month"], args["year"], args["amount"], args["method"], ""
        )
    assert message in exc.value.message
    assert exc.value.status_code == 400
    assert await _count_payments(db_session) == 0


@pytest.mark.asyncio
async def test_missing_student_id_is_validation_error(db_session: AsyncSession) -> None:
    with pytest.raises(ValidationError):
        await service.upsert(db_session, None, None, "Mathematics", 3, 2025, 10)


@pytest.mark.asyncio
async def test_unknown_student_is_not_found(db_session: AsyncSession) -> None:
    with pytest.raises(NotFoundError):
        await service.upsert(db_session, None, uuid4(), "Mathematics", 3, 2025, 10)


@pytest.mark.asyncio
async def test_student_outside_branch_is_not_found(db_session: AsyncSession, make_student, other_branch) -> None:
    student = await make_student()
    with pytest.raises(NotFoundError):
        await service.upsert(db_session, other_branch.id, student.id, "Mathematics", 3, 2025, 10)


@pytest.mark.asyncio
async def test_not_enrolled_subject_only_warns(db_session: AsyncSession, make_student, caplog) -> None:
    student = await make_student(subjects=["Physics"])
    with caplog.at_level(logging.WARNING, logger="tutorledger.api.v1.payments.service"):
        pt = await service.upsert(db_session, None, student.id, "Chemistry", 3, 2025, 130, "cash", "")
    assert pt.status == PaymentStatus.paid
    assert any("not enrolled" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_method_labels_are_normalized(db_session: AsyncSession, make_student) -> None:
    student = await make_student()
    pt = await service.upsert(db_session, None, student.id, "Mathematics", 3, 2025, 10, "Bank Transfer", "")
    assert pt.payment_method == "bank"


@pytest.mark.asyncio
async def test_lost_insert_race_becomes_update(db_session: AsyncSession, make_student, monkeypatch) -> None:
    student = await make_student()
    original = await service.upsert(db_session, None, student.id, "Mathematics", 3, 2025, 50, "cash", "")

    real_find = service._find_row
    calls = {"n": 0}

    async def stale_find(*args, **kwargs):
        # First lookup misses, as if the other writer had not committed yet
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return await real_find(*args, **kwargs)

    monkeypatch.setattr(service, "_find_row", stale_find)

    result, created = await service.record_payment(
        db_session,
        None,
        service.PaymentUpsert(studentId=student.id, subject="Mathematics", month=3, year=2025, amount=Decimal("150")),
    )

    assert created is False
    assert result.id == original.id
    assert result.amount == Decimal("150")
    assert result.status == PaymentStatus.paid
    assert await _count_payments(db_session) == 1


@pytest.mark.asyncio
async def test_find_by_key_and_list_by_student(db_session: AsyncSession, make_student) -> None:
    student = await make_student(subjects=["Mathematics", "Physics"])
    await service.upsert(db_session, None, student.id, "Mathematics", 2, 2025, 150)
    await service.upsert(db_session, None, student.id, "Physics", 3, 2025, 70)
    await service.upsert(db_session, None, student.id, "Mathematics", 3, 2025, 150)

    assert await service.find_by_key(db_session, None, student.id, "Mathematics", 1, 2025) is None
    found = await service.find_by_key(db_session, None, student.id, "Physics", 3, 2025)
    assert found is not None and found.status == PaymentStatus.partial

    rows = await service.list_by_student(db_session, None, student.id)
    assert [(r.subject, r.month) for r in rows] == [("Mathematics", 3), ("Physics", 3), ("Mathematics", 2)]

    only_math = await service.list_by_student(db_session, None, student.id, subject="Mathematics")
    assert len(only_math) == 2


@pytest.mark.asyncio
async def test_list_payments_filters(db_session: AsyncSession, make_student) -> None:
    student = await make_student()
    await service.upsert(db_session, None, student.id, "Mathematics", 2, 2025, 150)
    await service.upsert(db_session, None, student.id, "Mathematics", 6, 2025, 10)

    paid = await service.list_payments(db_session, None, PaymentFilter(status=PaymentStatus.paid))
    assert [p.month for p in paid] == [2]
    second_term = await service.list_payments(db_session, None, PaymentFilter(term="2nd-term"))
    assert [p.month for p in second_term] == [6]


@pytest.mark.asyncio
async def test_update_by_id_recomputes_status(db_session: AsyncSession, make_student) -> None:
    student = await make_student()
    pt = await service.upsert(db_session, None, student.id, "Mathematics", 3, 2025, 50, "cash", "first")

    updated = await service.update_payment(db_session, None, pt.id, PaymentUpdate(amount=Decimal("150")))
    assert updated.status == PaymentStatus.paid
    assert updated.notes == "first"

    with pytest.raises(ValidationError):
        await service.update_payment(db_session, None, pt.id, PaymentUpdate(amount=Decimal("-1")))


@pytest.mark.asyncio
async def test_delete_is_hard_and_audited(db_session: AsyncSession, make_student) -> None:
    student = await make_student()
    pt = await service.upsert(db_session, None, student.id, "Mathematics", 3, 2025, 50)
    await service.upsert(db_session, None, student.id, "Mathematics", 3, 2025, 80)

    await service.delete_payment(db_session, None, pt.id)

    assert await _count_payments(db_session) == 0
    with pytest.raises(NotFoundError):
        await service.get_payment(db_session, None, pt.id)

    actions = (
        await db_session.execute(
            select(PaymentAuditLog.action)
            .where(PaymentAuditLog.payment_id == pt.id)
            .order_by(PaymentAuditLog.created_at)
        )
    ).scalars().all()
    assert sorted(actions) == ["CREATE", "DELETE", "UPDATE"]


@pytest.mark.asyncio
async def test_payment_status_scenario(db_session: AsyncSession, make_student) -> None:
    student = await make_student(subject_payments=[{"subject": "Mathematics", "amount": "150"}])

    before = await service.get_payment_status(db_session, None, student.id, "Mathematics", 3, 2025)
    assert before.status_label == "Unpaid"
    assert before.expected_amount == Decimal("150")
    assert before.payment_id is None

    await service.upsert(db_session, None, student.id, "Mathematics", 3, 2025, 150, "cash", "")

    found = await service.find_by_key(db_session, None, student.id, "Mathematics", 3, 2025)
    assert found.status == PaymentStatus.paid
    assert found.amount == Decimal("150")

    after = await service.get_payment_status(db_session, None, student.id, "Mathematics", 3, 2025)
    assert after.status_label == "Paid"
    assert after.balance == Decimal("0")
