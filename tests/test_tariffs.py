"""Unit tests for tariff resolution across the legacy tariff shapes."""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from tutorledger.engine import tariffs
from tutorledger.engine.tariffs import (
    DEFAULT_TARIFF,
    PriceMapStrategy,
    StaticTableStrategy,
    TariffResolver,
    positive_amount,
    resolve_expected_amount,
)


def test_subject_payments_match_is_case_and_whitespace_insensitive() -> None:
    student = {"subjectPayments": [{"subject": "  Mathematics ", "amount": 175}]}
    assert resolve_expected_amount(student, "mathematics") == Decimal("175")
    assert resolve_expected_amount(student, " MATHEMATICS") == Decimal("175")


def test_subject_payments_win_over_every_other_shape() -> None:
    student = {
        "paymentSubjects": [{"subject": "Physics", "amount": 90}],
        "perClassPrices": {"Physics": 80},
        "subjectPayments": [{"subject": "physics", "amount": 70}],
    }
    assert resolve_expected_amount(student, "Physics") == Decimal("70")


def test_per_class_prices_win_over_payment_subjects() -> None:
    student = {
        "paymentSubjects": [{"subject": "Chemistry", "amount": 99}],
        "perClassPrices": {"chemistry ": 60},
    }
    assert resolve_expected_amount(student, "Chemistry") == Decimal("60")


def test_per_class_prices_exact_key_before_normalized_scan() -> None:
    student = {"perClassPrices": {"english": 10, "English": 20}}
    assert resolve_expected_amount(student, "English") == Decimal("20")
    assert resolve_expected_amount(student, "ENGLISH") == Decimal("10")


def test_payment_subjects_used_when_newer_shapes_missing() -> None:
    student = {"paymentSubjects": [{"subject": "Biology", "amount": "135.50"}]}
    assert resolve_expected_amount(student, "biology") == Decimal("135.50")


def test_non_positive_amount_falls_through_to_next_shape() -> None:
    student = {
        "subjectPayments": [{"subject": "Mathematics", "amount": 0}],
        "perClassPrices": {"Mathematics": -5},
        "paymentSubjects": [{"subject": "Mathematics", "amount": 120}],
    }
    assert resolve_expected_amount(student, "Mathematics") == Decimal("120")


@pytest.mark.parametrize(
    "subject, expected",
    [
        ("Mathematics", "150"),
        ("physics", "140"),
        ("Computer Science", "160"),
        (" music ", "100"),
        ("Geography", "110"),
    ],
)
def test_static_table_fallback(subject: str, expected: str) -> None:
    assert resolve_expected_amount({}, subject) == Decimal(expected)


def test_unknown_subject_gets_default() -> None:
    assert resolve_expected_amount({"subjectPayments": []}, "Astronomy") == Decimal("100")


def test_orm_style_attributes_are_read() -> None:
    student = SimpleNamespace(
        subject_payments=None,
        per_class_prices={"History": "95"},
        payment_subjects=None,
    )
    assert resolve_expected_amount(student, "history") == Decimal("95")


@pytest.mark.parametrize(
    "student",
    [
        None,
        {"subjectPayments": "not-a-list"},
        {"subjectPayments": [None, 3, {"amount": 50}]},
        {"perClassPrices": ["Mathematics", 12]},
        {"paymentSubjects": [{"subject": "Mathematics", "amount": "abc"}]},
        {"subjectPayments": [{"subject": "Mathematics", "amount": "NaN"}]},
    ],
)
def test_malformed_records_never_raise(student) -> None:
    assert resolve_expected_amount(student, "Mathematics") == Decimal("150")


def test_blank_or_missing_subject_returns_default() -> None:
    student = {"subjectPayments": [{"subject": "", "amount": 55}]}
    assert resolve_expected_amount(student, "") == DEFAULT_TARIFF
    assert resolve_expected_amount(student, None) == DEFAULT_TARIFF


def test_student_is_not_mutated() -> None:
    student = {
        "subjectPayments": [{"subject": "Art", "amount": 40}],
        "perClassPrices": {"Art": 30},
    }
    before = {
        "subjectPayments": [dict(e) for e in student["subjectPayments"]],
        "perClassPrices": dict(student["perClassPrices"]),
    }
    resolve_expected_amount(student, "art")
    assert student == before


def test_custom_chain_order_is_respected() -> None:
    resolver = TariffResolver(
        strategies=[PriceMapStrategy("perClassPrices", "per_class_prices"), StaticTableStrategy({"yoga": Decimal("25")})],
        default_amount=Decimal("5"),
    )
    assert resolver.resolve({"perClassPrices": {"Yoga": 30}}, "yoga") == Decimal("30")
    assert resolver.resolve({}, "Yoga") == Decimal("25")
    assert resolver.resolve({}, "Mathematics") == Decimal("5")


def test_positive_amount_parsing() -> None:
    assert positive_amount("12.5") == Decimal("12.5")
    assert positive_amount(0) is None
    assert positive_amount(True) is None
    assert positive_amount("Infinity") is None


def test_default_amount_follows_settings(monkeypatch) -> None:
    monkeypatch.setattr(tariffs.settings, "default_tariff_amount", Decimal("80"))
    assert resolve_expected_amount({}, "Astronomy") == Decimal("80")
    assert resolve_expected_amount({}, "Physics") == Decimal("140")
