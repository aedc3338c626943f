from datetime import date

import pytest

from errors import ValidationError
from periods import DateRange, month_span, resolve_range


@pytest.mark.parametrize(
    "year, month, last_day",
    [(2024, 2, 29), (2023, 2, 28), (2024, 4, 30), (2024, 12, 31), (2000, 2, 29)],
)
def test_month_span_covers_whole_month(year: int, month: int, last_day: int) -> None:
    span = month_span(year, month)

    assert span.start == date(year, month, 1)
    assert span.end == date(year, month, last_day)


@pytest.mark.parametrize("month", [0, 13, -1])
def test_month_span_rejects_bad_month(month: int) -> None:
    with pytest.raises(ValidationError):
        month_span(2024, month)


@pytest.mark.parametrize("year, month", [(0, 1), (-1, 6), (9999, 12), (10_000, 1)])
def test_month_span_rejects_year_outside_calendar(year: int, month: int) -> None:
    with pytest.raises(ValidationError, match="Year"):
        month_span(year, month)


def test_resolve_range_allows_open_and_inverted_windows() -> None:
    assert resolve_range(None, None) == DateRange()
    assert resolve_range("2024-01-01", None) == DateRange(start=date(2024, 1, 1))

    inverted = resolve_range("2024-02-01", "2024-01-01")
    assert inverted.is_empty
    assert not DateRange(date(2024, 1, 1), date(2024, 1, 1)).is_empty


def test_resolve_range_rejects_bad_format() -> None:
    with pytest.raises(ValidationError):
        resolve_range("01/02/2024", None)


def test_contains_is_inclusive() -> None:
    window = DateRange(date(2024, 1, 1), date(2024, 1, 31))

    assert window.contains(date(2024, 1, 1))
    assert window.contains(date(2024, 1, 31))
    assert not window.contains(date(2024, 2, 1))
    assert DateRange().contains(date(1999, 5, 5))
