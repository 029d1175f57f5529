from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Number = Union[int, float, Decimal]

CENT = Decimal("0.01")


def round_cents(value: Number) -> int:
    """Round to whole cents, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount_cents: int, percent: Number) -> int:
    return round_cents(Decimal(amount_cents) * Decimal(str(percent)) / Decimal(100))


def dollars_to_cents(dollars: Number) -> int:
    return round_cents(Decimal(str(dollars)) * 100)


def quantize_dollars(value: Number) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def format_dollars(cents: int) -> str:
    return f"${(cents or 0) / 100:,.2f}"


def round_half_up(value: Number, places: int = 0) -> Union[int, float]:
    """Round like a till does: exact halves go up. Whole numbers come back as int."""
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if places == 0 else float(rounded)


def ratio_percent(part: Number, whole: Number, places: int = 0) -> Union[int, float]:
    """``part / whole`` as a percentage, rounded half up; 0 for an empty whole."""
    if not whole:
        return 0
    return round_half_up(Decimal(str(part)) * 100 / Decimal(str(whole)), places)
