"""Student record. Read-only to the payment engine."""

import uuid

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, JSON, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from tutorledger.core.enums import StudentStatus
from tutorledger.db.session import Base, utcnow


class Student(Base):
    """
    Student with enrolled subjects and tariff data.

    Tariffs live in three coexisting legacy shapes, stored under their original
    column names so existing documents keep loading:
    - subjectPayments: [{"subject": str, "amount": number}]
    - perClassPrices: {subject: amount}
    - paymentSubjects: [{"subject": str, "amount": number}] (oldest shape)
    """

    __tablename__ = "students"
    __table_args__ = (
        CheckConstraint(
            "status IN ('active','inactive','graduated')",
            name="chk_student_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    branch_id = Column(UUID(as_uuid=True), ForeignKey("branches.id", ondelete="SET NULL"), nullable=True, index=True)
    student_code = Column(String(50), unique=True, nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    status = Column(String(20), nullable=False, default=StudentStatus.active.value)
    subjects = Column(JSON, nullable=False, default=list)

    subject_payments = Column("subjectPayments", JSON, nullable=True)
    per_class_prices = Column("perClassPrices", JSON, nullable=True)
    payment_subjects = Column("paymentSubjects", JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    branch = relationship("Branch", back_populates="students")
