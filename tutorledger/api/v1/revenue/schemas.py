"""Revenue schemas: derived summaries, never persisted."""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from tutorledger.api.v1.payments.schemas import PaymentResponse
from tutorledger.core.enums import PaymentMethod, PaymentType


class RevenueFilter(BaseModel):
    """Optional restrictions for a summary. Dates apply to the payment date (due date when unpaid)."""

    start_date: Optional[date] = Field(None, alias="startDate")
    end_date: Optional[date] = Field(None, alias="endDate")
    subject: Optional[str] = None
    payment_method: Optional[PaymentMethod] = Field(None, alias="paymentMethod")
    payment_type: Optional[PaymentType] = Field(None, alias="paymentType")
    academic_year: Optional[str] = Field(None, alias="academicYear")
    term: Optional[str] = None

    class Config:
        populate_by_name = True


class RevenueSummary(BaseModel):
    total_revenue: Decimal = Field(Decimal("0"), alias="totalRevenue")
    total_paid: Decimal = Field(Decimal("0"), alias="totalPaid")
    total_pending: Decimal = Field(Decimal("0"), alias="totalPending")
    total_transactions: int = Field(0, alias="totalTransactions")
    revenue_by_subject: Dict[str, Decimal] = Field(default_factory=dict, alias="revenueBySubject")
    revenue_by_method: Dict[str, Decimal] = Field(default_factory=dict, alias="revenueByMethod")
    revenue_by_type: Dict[str, Decimal] = Field(default_factory=dict, alias="revenueByType")
    revenue_by_year: Dict[int, Decimal] = Field(default_factory=dict, alias="revenueByYear")
    revenue_by_year_subject: Dict[int, Dict[str, Decimal]] = Field(default_factory=dict, alias="revenueByYearSubject")
    revenue_by_month: Dict[str, Decimal] = Field(default_factory=dict, alias="revenueByMonth")
    revenue_by_date: Dict[str, Decimal] = Field(default_factory=dict, alias="revenueByDate")

    class Config:
        populate_by_name = True


class PendingSummary(BaseModel):
    total_pending: Decimal = Field(..., alias="totalPending")
    count: int
    payments: List[PaymentResponse]

    class Config:
        populate_by_name = True


class RevenueStats(BaseModel):
    total_paid: Decimal = Field(..., alias="totalPaid")
    total_pending: Decimal = Field(..., alias="totalPending")
    total_overdue: Decimal = Field(..., alias="totalOverdue")
    paid_count: int = Field(..., alias="paidCount")
    pending_count: int = Field(..., alias="pendingCount")
    overdue_count: int = Field(..., alias="overdueCount")

    class Config:
        populate_by_name = True
