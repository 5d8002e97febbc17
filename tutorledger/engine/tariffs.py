"""
Tariff resolution: the expected amount a student owes for one subject per period.

Student records carry tariffs in up to three legacy shapes. They are tried as an
ordered chain of strategies; the first strategy that yields a positive amount
wins and later ones are never consulted. Reordering the chain changes what
students are charged.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Sequence

from tutorledger.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_TARIFF = Decimal("100")

# Last-resort prices keyed by normalized subject name
STATIC_SUBJECT_TARIFFS = {
    "mathematics": Decimal("150"),
    "physics": Decimal("140"),
    "chemistry": Decimal("130"),
    "biology": Decimal("130"),
    "english": Decimal("120"),
    "history": Decimal("110"),
    "geography": Decimal("110"),
    "computer science": Decimal("160"),
    "art": Decimal("100"),
    "music": Decimal("100"),
}


def normalize_subject(subject: Any) -> str:
    if not isinstance(subject, str):
        return ""
    return subject.strip().lower()


def positive_amount(value: Any) -> Optional[Decimal]:
    """Return value as a Decimal when it is a finite number above zero, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def read_field(student: Any, document_key: str, attribute: str) -> Any:
    """Read a tariff field from a stored document (camelCase) or an ORM row (snake_case)."""
    if student is None:
        return None
    if isinstance(student, Mapping):
        if document_key in student:
            return student[document_key]
        return student.get(attribute)
    return getattr(student, attribute, None)


class TariffStrategy:
    """One place a tariff may be stored. Returns None when it has no usable price."""

    name = "strategy"

    def lookup(self, student: Any, subject: str, normalized: str) -> Optional[Decimal]:
        raise NotImplementedError


class SubjectListStrategy(TariffStrategy):
    """A list of {"subject": ..., "amount": ...} entries; first name match decides."""

    def __init__(self, document_key: str, attribute: str) -> None:
        self.name = document_key
        self.document_key = document_key
        self.attribute = attribute

    def lookup(self, student: Any, subject: str, normalized: str) -> Optional[Decimal]:
        entries = read_field(student, self.document_key, self.attribute)
        if not isinstance(entries, (list, tuple)):
            return None
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            if normalize_subject(entry.get("subject")) == normalized:
                return positive_amount(entry.get("amount"))
        return None


class PriceMapStrategy(TariffStrategy):
    """A {subject: amount} mapping; exact key first, then a normalized key scan."""

    def __init__(self, document_key: str, attribute: str) -> None:
        self.name = document_key
        self.document_key = document_key
        self.attribute = attribute

    def lookup(self, student: Any, subject: str, normalized: str) -> Optional[Decimal]:
        prices = read_field(student, self.document_key, self.attribute)
        if not isinstance(prices, Mapping):
            return None
        if isinstance(subject, str) and subject in prices:
            exact = positive_amount(prices[subject])
            if exact is not None:
                return exact
        for key, value in prices.items():
            if normalize_subject(key) != normalized:
                continue
            amount = positive_amount(value)
            if amount is not None:
                return amount
        return None


class StaticTableStrategy(TariffStrategy):
    name = "static"

    def __init__(self, table: Optional[Mapping[str, Decimal]] = None) -> None:
        self.table = STATIC_SUBJECT_TARIFFS if table is None else table

    def lookup(self, student: Any, subject: str, normalized: str) -> Optional[Decimal]:
        return positive_amount(self.table.get(normalized))


DEFAULT_STRATEGIES: Sequence[TariffStrategy] = (
    SubjectListStrategy("subjectPayments", "subject_payments"),
    PriceMapStrategy("perClassPrices", "per_class_prices"),
    SubjectListStrategy("paymentSubjects", "payment_subjects"),
    StaticTableStrategy(),
)


class TariffResolver:
    """Walks the strategy chain in order and falls back to a default amount."""

    def __init__(
        self,
        strategies: Iterable[TariffStrategy] = DEFAULT_STRATEGIES,
        default_amount: Decimal = DEFAULT_TARIFF,
    ) -> None:
        self.strategies = tuple(strategies)
        self.default_amount = max(Decimal("0"), Decimal(str(default_amount)))

    def resolve(self, student: Any, subject: Any) -> Decimal:
        normalized = normalize_subject(subject)
        if normalized:
            for strategy in self.strategies:
                amount = strategy.lookup(student, subject, normalized)
                if amount is not None:
                    logger.debug("Tariff for %r resolved by %s: %s", subject, strategy.name, amount)
                    return amount
        return self.default_amount


def resolve_expected_amount(student: Any, subject: Any, resolver: Optional[TariffResolver] = None) -> Decimal:
    """Expected amount for one subject and period. Pure; never raises, never mutates student."""
    return (resolver or _default_resolver()).resolve(student, subject)


def _default_resolver() -> TariffResolver:
    return TariffResolver(default_amount=settings.default_tariff_amount)
