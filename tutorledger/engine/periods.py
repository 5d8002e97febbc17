"""Billing period helpers: term, academic year and due date derived from (month, year)."""

from datetime import date

from tutorledger.core.enums import Term


def term_for_month(month: int) -> Term:
    """Months 1-4 are the 1st term, 5-8 the 2nd, 9-12 the 3rd."""
    if not 1 <= month <= 12:
        raise ValueError(f"month must be between 1 and 12, got {month}")
    if month <= 4:
        return Term.FIRST
    if month <= 8:
        return Term.SECOND
    return Term.THIRD


def academic_year_for(year: int) -> str:
    return f"{year}-{year + 1}"


def due_date_for(month: int, year: int) -> date:
    return date(year, month, 1)


def period_key(month: int, year: int) -> str:
    """Sortable YYYY-MM label for a billing period."""
    return f"{year:04d}-{month:02d}"
