"""Revenue router: summaries over the payment ledger."""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tutorledger.auth.dependencies import get_branch_scope
from tutorledger.auth.rbac import check_permission
from tutorledger.core.enums import PaymentMethod, PaymentType
from tutorledger.db.session import get_db

from .schemas import PendingSummary, RevenueFilter, RevenueStats, RevenueSummary
from . import service

router = APIRouter(prefix="/api/v1/revenue", tags=["revenue"])


@router.get(
    "",
    response_model=RevenueSummary,
    dependencies=[Depends(check_permission("revenue", "read"))],
)
async def get_revenue(
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    subject: Optional[str] = Query(None),
    payment_method: Optional[PaymentMethod] = Query(None, alias="paymentMethod"),
    payment_type: Optional[PaymentType] = Query(None, alias="paymentType"),
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    term: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
) -> RevenueSummary:
    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="startDate must not be after endDate",
        )
    filters = RevenueFilter(
        start_date=start_date,
        end_date=end_date,
        subject=subject,
        payment_method=payment_method,
        payment_type=payment_type,
        academic_year=academic_year,
        term=term,
    )
    return await service.summarize(db, branch_id, filters)


@router.get(
    "/pending",
    response_model=PendingSummary,
    dependencies=[Depends(check_permission("revenue", "read"))],
)
async def get_pending_payments(
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
) -> PendingSummary:
    return await service.pending_summary(db, branch_id)


@router.get(
    "/stats",
    response_model=RevenueStats,
    dependencies=[Depends(check_permission("revenue", "read"))],
)
async def get_revenue_stats(
    academic_year: Optional[str] = Query(None, alias="academicYear"),
    db: AsyncSession = Depends(get_db),
    branch_id: Optional[UUID] = Depends(get_branch_scope),
) -> RevenueStats:
    return await service.stats(db, branch_id, academic_year=academic_year)
