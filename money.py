from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

AmountLike = Union[Decimal, int, str]


def to_decimal(value: Optional[AmountLike]) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc


def to_cents(amount: AmountLike) -> int:
    """Convert a decimal amount to integer cents, rounding half-up."""
    return int((to_decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: Optional[int]) -> Decimal:
    return (Decimal(int(cents or 0)) / 100).quantize(CENT)


def quantize_amount(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)
