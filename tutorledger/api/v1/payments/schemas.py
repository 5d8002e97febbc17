"""Payment schemas. Field names on the wire match the stored payment documents (camelCase)."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from tutorledger.core.enums import PaymentStatus, PaymentType


def _accept_method_alias(data: Any) -> Any:
    # Older clients send "method" instead of "paymentMethod"
    if isinstance(data, dict) and "method" in data and not data.get("paymentMethod") and not data.get("payment_method"):
        data = dict(data)
        data["paymentMethod"] = data.pop("method")
    return data


class PaymentUpsert(BaseModel):
    """
    Record the amount paid so far for one student, subject and period.

    Key fields are optional here so the ledger can report what is missing;
    status is never read from the client.
    """

    student_id: Optional[UUID] = Field(None, alias="studentId")
    subject: Optional[str] = Field(None, max_length=255)
    month: Optional[int] = None
    year: Optional[int] = None
    amount: Optional[Decimal] = None
    payment_method: Optional[str] = Field(None, alias="paymentMethod", description="cash, card, bank, online")
    payment_type: Optional[str] = Field(None, alias="paymentType")
    notes: Optional[str] = None

    class Config:
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def _method_alias(cls, data: Any) -> Any:
        return _accept_method_alias(data)


class PaymentUpdate(BaseModel):
    amount: Optional[Decimal] = None
    payment_method: Optional[str] = Field(None, alias="paymentMethod")
    payment_type: Optional[str] = Field(None, alias="paymentType")
    notes: Optional[str] = None

    class Config:
        populate_by_name = True

    @model_validator(mode="before")
    @classmethod
    def _method_alias(cls, data: Any) -> Any:
        return _accept_method_alias(data)


class PaymentFilter(BaseModel):
    student_id: Optional[UUID] = None
    status: Optional[PaymentStatus] = None
    payment_type: Optional[PaymentType] = None
    academic_year: Optional[str] = None
    term: Optional[str] = None
    subject: Optional[str] = None
    month: Optional[int] = Field(None, ge=1, le=12)
    year: Optional[int] = None


class PaymentResponse(BaseModel):
    id: UUID
    branch_id: Optional[UUID] = Field(None, alias="branchId")
    student_id: UUID = Field(..., alias="studentId")
    subject: str
    month: int
    year: int
    amount: Decimal
    status: PaymentStatus
    status_label: str = Field(..., alias="statusLabel")
    payment_method: str = Field(..., alias="paymentMethod")
    payment_type: str = Field(..., alias="paymentType")
    notes: str = ""
    due_date: date = Field(..., alias="dueDate")
    paid_date: Optional[datetime] = Field(None, alias="paidDate")
    academic_year: str = Field(..., alias="academicYear")
    term: str
    receipt_number: Optional[str] = Field(None, alias="receiptNumber")
    recorded_by: Optional[UUID] = Field(None, alias="recordedBy")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    class Config:
        from_attributes = True
        populate_by_name = True
