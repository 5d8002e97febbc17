from tutorledger.core.models.branch import Branch
from tutorledger.core.models.student import Student
from tutorledger.core.models.payment_transaction import PaymentTransaction
from tutorledger.core.models.payment_audit_log import PaymentAuditLog

__all__ = [
    "Branch",
    "Student",
    "PaymentTransaction",
    "PaymentAuditLog",
]
