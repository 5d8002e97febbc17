"""Branch: a tutoring-center location. Students and payments are scoped to one branch."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from tutorledger.db.session import Base, utcnow


class Branch(Base):
    __tablename__ = "branches"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    # Short public code (e.g. DWT-01); unique across the deployment
    code = Column(String(20), unique=True, nullable=False, index=True)
    address = Column(String(500), nullable=True)
    phone = Column(String(30), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    students = relationship("Student", back_populates="branch")
