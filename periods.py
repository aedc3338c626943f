from dataclasses import dataclass
from datetime import date
from typing import Optional

from errors import ValidationError


@dataclass(frozen=True)
class DateRange:
    """Inclusive date window; a missing bound is unbounded on that side."""

    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def is_empty(self) -> bool:
        return self.start is not None and self.end is not None and self.start > self.end

    def contains(self, value: date) -> bool:
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True


def resolve_range(start: Optional[str], end: Optional[str]) -> DateRange:
    try:
        start_date = date.fromisoformat(start) if start else None
        end_date = date.fromisoformat(end) if end else None
    except ValueError as exc:
        raise ValidationError("Dates must be in YYYY-MM-DD format") from exc
    # an inverted window is allowed and simply matches nothing
    return DateRange(start_date, end_date)


def month_span(year: int, month: int) -> DateRange:
    if not 1 <= month <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month}")
    try:
        first = date(year, month, 1)
        if month == 12:
            next_month = date(year + 1, 1, 1)
        else:
            next_month = date(year, month + 1, 1)
    except (ValueError, OverflowError) as exc:
        raise ValidationError(f"Year out of range: {year}") from exc
    return DateRange(first, next_month - date.resolution)
