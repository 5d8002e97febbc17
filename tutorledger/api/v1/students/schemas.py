"""Student schemas. Tariff fields keep their stored camelCase names on the wire."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from tutorledger.core.enums import PaymentStatus, StudentStatus


class SubjectTariff(BaseModel):
    subject: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(..., ge=0)


class StudentCreate(BaseModel):
    student_code: str = Field(..., alias="studentCode", min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    status: StudentStatus = StudentStatus.active
    subjects: List[str] = Field(default_factory=list)
    subject_payments: Optional[List[SubjectTariff]] = Field(None, alias="subjectPayments")
    per_class_prices: Optional[Dict[str, Decimal]] = Field(None, alias="perClassPrices")
    payment_subjects: Optional[List[SubjectTariff]] = Field(None, alias="paymentSubjects")
    branch_id: Optional[UUID] = Field(None, alias="branchId", description="Founders only; others use their own branch")

    class Config:
        populate_by_name = True


class StudentResponse(BaseModel):
    id: UUID
    branch_id: Optional[UUID] = Field(None, alias="branchId")
    student_code: str = Field(..., alias="studentCode")
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    status: str
    subjects: List[str] = Field(default_factory=list)
    # Stored documents pass through verbatim; legacy rows may hold odd shapes
    subject_payments: Optional[List[Any]] = Field(None, alias="subjectPayments")
    per_class_prices: Optional[Dict[str, Any]] = Field(None, alias="perClassPrices")
    payment_subjects: Optional[List[Any]] = Field(None, alias="paymentSubjects")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    class Config:
        from_attributes = True
        populate_by_name = True


class ExpectedAmountResponse(BaseModel):
    student_id: UUID = Field(..., alias="studentId")
    subject: str
    expected_amount: Decimal = Field(..., alias="expectedAmount")

    class Config:
        populate_by_name = True


class PaymentStatusResponse(BaseModel):
    """Reconciliation view of one (student, subject, period)."""

    student_id: UUID = Field(..., alias="studentId")
    subject: str
    month: int
    year: int
    expected_amount: Decimal = Field(..., alias="expectedAmount")
    paid_amount: Decimal = Field(..., alias="paidAmount")
    balance: Decimal
    status: PaymentStatus
    status_label: str = Field(..., alias="statusLabel")
    payment_id: Optional[UUID] = Field(None, alias="paymentId")

    class Config:
        populate_by_name = True
