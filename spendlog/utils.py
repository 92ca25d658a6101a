# spendlog/utils.py
from __future__ import annotations

from datetime import date

from spendlog.errors import ValidationError


def resolve_year_month(
    year: int | None,
    month: int | None,
    today: date | None = None,
) -> tuple[int, int]:
    """
    Return the (year, month) to query. Both values must be given to select a
    month explicitly; otherwise the current calendar month is used.
    """
    if year is None or month is None:
        today = today or date.today()
        return today.year, today.month
    if not 1 <= month <= 12:
        raise ValidationError(f"month must be between 1 and 12, got {month}")
    if not 1 <= year <= 9999:
        raise ValidationError(f"year must be between 1 and 9999, got {year}")
    return year, month


def format_year_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def like_pattern(term: str) -> str:
    """Build a case-folded ``LIKE`` pattern matching ``term`` anywhere, literally."""
    escaped = (
        term.casefold()
        .replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )
    return f"%{escaped}%"
