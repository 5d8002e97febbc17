"""
Revenue aggregation over the payment ledger.

Every summary is a single pass over the matching rows with exact Decimal
sums. total_revenue counts every matching row whatever its status, so the
subject buckets always add up to it; pending rows normally carry 0.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy import Date, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tutorledger.api.v1.payments.service import payment_to_response
from tutorledger.core.enums import PaymentStatus
from tutorledger.core.models import PaymentTransaction
from tutorledger.engine.periods import period_key

from .schemas import PendingSummary, RevenueFilter, RevenueStats, RevenueSummary

ZERO = Decimal("0")


def _to_decimal(val) -> Decimal:
    if val is None:
        return ZERO
    return val if isinstance(val, Decimal) else Decimal(str(val))


def effective_date(pt: PaymentTransaction) -> date:
    """When the money came in; the due date stands in for rows with nothing paid."""
    if pt.paid_date is not None:
        return pt.paid_date.date() if isinstance(pt.paid_date, datetime) else pt.paid_date
    return pt.due_date


def _bump(bucket: dict, key, amount: Decimal) -> None:
    bucket[key] = bucket.get(key, ZERO) + amount


def aggregate(rows: Iterable[PaymentTransaction]) -> RevenueSummary:
    summary = RevenueSummary()
    for pt in rows:
        amount = _to_decimal(pt.amount)
        summary.total_transactions += 1
        summary.total_revenue += amount
        if pt.status == PaymentStatus.paid.value:
            summary.total_paid += amount
        else:
            summary.total_pending += amount
        _bump(summary.revenue_by_subject, pt.subject, amount)
        _bump(summary.revenue_by_method, pt.payment_method, amount)
        _bump(summary.revenue_by_type, pt.payment_type, amount)
        _bump(summary.revenue_by_year, pt.year, amount)
        _bump(summary.revenue_by_year_subject.setdefault(pt.year, {}), pt.subject, amount)
        _bump(summary.revenue_by_month, period_key(pt.month, pt.year), amount)
        _bump(summary.revenue_by_date, effective_date(pt).isoformat(), amount)
    return summary


def _effective_date_column():
    """SQL twin of effective_date: date() truncates the timestamp on PostgreSQL and SQLite alike."""
    return func.coalesce(func.date(PaymentTransaction.paid_date), PaymentTransaction.due_date, type_=Date)


async def _matching_rows(
    db: AsyncSession,
    branch_id: Optional[UUID],
    filters: RevenueFilter,
) -> List[PaymentTransaction]:
    stmt = select(PaymentTransaction)
    if branch_id is not None:
        stmt = stmt.where(PaymentTransaction.branch_id == branch_id)
    if filters.subject:
        stmt = stmt.where(PaymentTransaction.subject == filters.subject.strip())
    if filters.payment_method is not None:
        stmt = stmt.where(PaymentTransaction.payment_method == filters.payment_method.value)
    if filters.payment_type is not None:
        stmt = stmt.where(PaymentTransaction.payment_type == filters.payment_type.value)
    if filters.academic_year:
        stmt = stmt.where(PaymentTransaction.academic_year == filters.academic_year)
    if filters.term:
        stmt = stmt.where(PaymentTransaction.term == filters.term)
    if filters.start_date is not None:
        stmt = stmt.where(_effective_date_column() >= filters.start_date)
    if filters.end_date is not None:
        stmt = stmt.where(_effective_date_column() <= filters.end_date)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def summarize(
    db: AsyncSession,
    branch_id: Optional[UUID],
    filters: Optional[RevenueFilter] = None,
) -> RevenueSummary:
    """Filters run in SQL; the aggregation is one pass over the matching rows."""
    rows = await _matching_rows(db, branch_id, filters or RevenueFilter())
    return aggregate(rows)


async def pending_summary(
    db: AsyncSession,
    branch_id: Optional[UUID],
) -> PendingSummary:
    stmt = select(PaymentTransaction).where(
        PaymentTransaction.status.in_([PaymentStatus.pending.value, PaymentStatus.partial.value])
    )
    if branch_id is not None:
        stmt = stmt.where(PaymentTransaction.branch_id == branch_id)
    stmt = stmt.order_by(PaymentTransaction.due_date, PaymentTransaction.subject)
    rows = (await db.execute(stmt)).scalars().all()
    return PendingSummary(
        total_pending=sum((_to_decimal(pt.amount) for pt in rows), ZERO),
        count=len(rows),
        payments=[payment_to_response(pt) for pt in rows],
    )


async def stats(
    db: AsyncSession,
    branch_id: Optional[UUID],
    academic_year: Optional[str] = None,
    today: Optional[date] = None,
) -> RevenueStats:
    """Paid / pending / overdue totals. Overdue is any unpaid row past its due date."""
    today = today or date.today()
    stmt = select(PaymentTransaction)
    if branch_id is not None:
        stmt = stmt.where(PaymentTransaction.branch_id == branch_id)
    if academic_year:
        stmt = stmt.where(PaymentTransaction.academic_year == academic_year)
    rows = (await db.execute(stmt)).scalars().all()

    total_paid = total_pending = total_overdue = ZERO
    paid_count = pending_count = overdue_count = 0
    for pt in rows:
        amount = _to_decimal(pt.amount)
        if pt.status == PaymentStatus.paid.value:
            total_paid += amount
            paid_count += 1
            continue
        total_pending += amount
        pending_count += 1
        if pt.due_date < today:
            total_overdue += amount
            overdue_count += 1
    return RevenueStats(
        total_paid=total_paid,
        total_pending=total_pending,
        total_overdue=total_overdue,
        paid_count=paid_count,
        pending_count=pending_count,
        overdue_count=overdue_count,
    )
