"""Fixed-point money arithmetic.

Every monetary computation in the checkout pipeline goes through these
functions. Amounts are exchanged as decimal strings with an explicit scale
(two places by default) and computed with ``decimal.Decimal`` using
round-half-up. Binary floats are rejected outright.
"""

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from checkout.errors import DivisionByZero

DEFAULT_SCALE = 2

Amount = str | int | Decimal


def to_decimal(value: Amount) -> Decimal:
    """Parse an amount into a Decimal, refusing binary floats."""
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Money amounts must be strings, ints or Decimals, got {type(value).__name__}")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid monetary amount: {value!r}") from exc


def _quantize(value: Decimal, scale: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-scale), rounding=ROUND_HALF_UP)


def _format(value: Decimal, scale: int) -> str:
    result = _quantize(value, scale)
    if result.is_zero():
        # Normalise "-0.00"
        result = abs(result)
    return format(result, "f")


def add(a: Amount, b: Amount, scale: int = DEFAULT_SCALE) -> str:
    return _format(to_decimal(a) + to_decimal(b), scale)


def subtract(a: Amount, b: Amount, scale: int = DEFAULT_SCALE) -> str:
    return _format(to_decimal(a) - to_decimal(b), scale)


def multiply(a: Amount, b: Amount, scale: int = DEFAULT_SCALE) -> str:
    return _format(to_decimal(a) * to_decimal(b), scale)


def divide(a: Amount, b: Amount, scale: int = DEFAULT_SCALE) -> str:
    divisor = to_decimal(b)
    if divisor.is_zero():
        raise DivisionByZero(f"Cannot divide {a} by zero")
    return _format(to_decimal(a) / divisor, scale)


def round_money(value: Amount, scale: int = DEFAULT_SCALE) -> str:
    """Round half-up to ``scale`` decimal places."""
    return _format(to_decimal(value), scale)


def percentage(amount: Amount, percent: Amount, scale: int = DEFAULT_SCALE) -> str:
    """Return ``percent`` % of ``amount``."""
    rate = divide(percent, 100, scale + 2)
    return multiply(amount, rate, scale)


def total(amounts: Iterable[Amount], scale: int = DEFAULT_SCALE) -> str:
    """Sum many amounts, accumulating at ``scale + 4`` and rounding once."""
    working_scale = scale + 4
    running = Decimal(0)
    for amount in amounts:
        running = _quantize(running + to_decimal(amount), working_scale)
    return _format(running, scale)


def compare(a: Amount, b: Amount, scale: int = DEFAULT_SCALE) -> int:
    """Return -1, 0 or 1 comparing both amounts at ``scale``."""
    left = _quantize(to_decimal(a), scale)
    right = _quantize(to_decimal(b), scale)
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def equals(a: Amount, b: Amount, scale: int = DEFAULT_SCALE) -> bool:
    return compare(a, b, scale) == 0


def greater_than(a: Amount, b: Amount, scale: int = DEFAULT_SCALE) -> bool:
    return compare(a, b, scale) > 0


def less_than(a: Amount, b: Amount, scale: int = DEFAULT_SCALE) -> bool:
    return compare(a, b, scale) < 0


def is_zero(value: Amount, scale: int = DEFAULT_SCALE) -> bool:
    return compare(value, 0, scale) == 0


def minimum(a: Amount, b: Amount, scale: int = DEFAULT_SCALE) -> str:
    return round_money(a, scale) if compare(a, b, scale) <= 0 else round_money(b, scale)


def negate(value: Amount, scale: int = DEFAULT_SCALE) -> str:
    return subtract(0, value, scale)


def to_cents(amount: Amount) -> int:
    """Convert an amount to integer sub-units (cents)."""
    return int(multiply(amount, 100, 0))


def from_cents(cents: int) -> str:
    return divide(cents, 100, 2)


def format_money(amount: Amount, scale: int = DEFAULT_SCALE) -> str:
    """Format for display with thousands separators, e.g. ``1,234.50``."""
    value = _quantize(to_decimal(amount), scale)
    if value.is_zero():
        value = abs(value)
    return f"{value:,.{scale}f}"
