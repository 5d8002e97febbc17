"""Payment transaction: one row per student, subject and billing period."""

import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from tutorledger.core.enums import PaymentMethod, PaymentStatus, PaymentType
from tutorledger.db.session import Base, utcnow


class PaymentTransaction(Base):
    """
    Amount paid so far for (student, subject, month, year).

    amount is cumulative for the period: a later payment replaces it, it is never appended.
    status is a projection of amount vs. the expected tariff and is recomputed on every write.
    """

    __tablename__ = "payment_transactions"
    __table_args__ = (
        UniqueConstraint("student_id", "subject", "month", "year", name="uq_payment_student_subject_period"),
        CheckConstraint("month BETWEEN 1 AND 12", name="chk_payment_month"),
        CheckConstraint("amount >= 0", name="chk_payment_amount"),
        CheckConstraint(
            "status IN ('pending','partial','paid')",
            name="chk_payment_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id", ondelete="SET NULL"), nullable=True, index=True)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="RESTRICT"), nullable=False)
    subject = Column(String(255), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)

    amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=PaymentStatus.pending.value, index=True)
    payment_method = Column(String(20), nullable=False, default=PaymentMethod.cash.value)
    payment_type = Column(String(30), nullable=False, default=PaymentType.TUITION_FEE.value)
    notes = Column(Text, nullable=False, default="")

    due_date = Column(Date, nullable=False)
    paid_date = Column(DateTime(timezone=True), nullable=True)
    academic_year = Column(String(20), nullable=False)  # e.g. 2025-2026
    term = Column(String(10), nullable=False)  # 1st-term, 2nd-term, 3rd-term
    receipt_number = Column(String(50), unique=True, nullable=True)
    recorded_by = Column(UUID(as_uuid=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    student = relationship("Student", foreign_keys=[student_id])
