"""Peso amounts.

The domain works in Decimal pesos; the database stores integer centavos so
conditional balance updates never round.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from kangga.core.exceptions import ValidationError

CENTAVO = Decimal("0.01")

# Any single amount; keeps centavo sums well inside a 64-bit INTEGER column
MAX_AMOUNT = Decimal("1000000000.00")

Amount = Decimal | int | float | str


def to_decimal(value: Amount) -> Decimal:
    """Normalize an amount to a two-place Decimal.

    Raises ValidationError for anything that is not a finite number within
    +/- MAX_AMOUNT.
    """
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValidationError(f"Not a valid amount: {value!r}", {"amount": str(value)}) from e
    if not amount.is_finite() or abs(amount) > MAX_AMOUNT:
        raise ValidationError(
            f"Amount must be within +/-{MAX_AMOUNT}", {"amount": str(value)}
        )
    return amount.quantize(CENTAVO, rounding=ROUND_HALF_UP)


def to_minor_units(value: Amount) -> int:
    return int(to_decimal(value) * 100)


def from_minor_units(units: int) -> Decimal:
    return (Decimal(units) / 100).quantize(CENTAVO)
