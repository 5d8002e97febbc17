from enum import Enum


class StudentStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    graduated = "graduated"


class PaymentStatus(str, Enum):
    pending = "pending"
    partial = "partial"
    paid = "paid"

    @property
    def label(self) -> str:
        """Name shown to users; a pending row reads as unpaid."""
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    PaymentStatus.pending: "Unpaid",
    PaymentStatus.partial: "Partial",
    PaymentStatus.paid: "Paid",
}


class PaymentMethod(str, Enum):
    cash = "cash"
    card = "card"
    bank = "bank"
    online = "online"


class PaymentType(str, Enum):
    TUITION_FEE = "tuition-fee"
    EXAM_FEE = "exam-fee"
    TRANSPORT_FEE = "transport-fee"
    LIBRARY_FEE = "library-fee"
    OTHER = "other"


class Term(str, Enum):
    FIRST = "1st-term"
    SECOND = "2nd-term"
    THIRD = "3rd-term"


class UserRole(str, Enum):
    FOUNDER = "founder"
    ADMIN = "admin"
    ACCOUNTANT = "accountant"
    TEACHER = "teacher"
