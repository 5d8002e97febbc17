"""Payment status classifier: expected tariff vs. amount paid so far."""

from decimal import Decimal

from tutorledger.core.enums import PaymentStatus


def classify(expected, paid_so_far) -> PaymentStatus:
    """
    Derive the status of a (student, subject, period).

    Comparisons are exact on Decimal values. A non-positive expected amount
    means any positive payment settles the period.
    """
    expected = _as_decimal(expected)
    paid = _as_decimal(paid_so_far)
    if paid <= 0:
        return PaymentStatus.pending
    if expected <= 0:
        return PaymentStatus.paid
    if paid < expected:
        return PaymentStatus.partial
    return PaymentStatus.paid


def _as_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))
