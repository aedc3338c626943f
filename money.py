from decimal import Decimal, ROUND_HALF_UP


def to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return part / whole * 100


def from_cents(cents: int) -> float:
    return cents / 100
