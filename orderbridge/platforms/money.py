"""Fixed-point money helpers

Platforms send amounts either as integer minor units or as JSON floats in
major units. Payloads are decoded with ``parse_float=Decimal`` so the
float text is never rounded through binary floating point, and every
amount leaves the adapter as an ``int`` of minor units.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Union

Amount = Union[Decimal, int, str]


def to_minor_units(amount: Optional[Amount], exponent: int = 2) -> int:
    """Convert an amount to integer minor units.

    ``exponent`` is the number of decimal places the platform's unit carries:
    2 for major-unit amounts (12.50 -> 1250), 0 for amounts that are already
    minor units.
    """
    if amount is None:
        return 0
    if isinstance(amount, bool):
        raise ValueError("Boolean is not a monetary amount")
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid monetary amount: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"Invalid monetary amount: {amount!r}")

    minor = (value.scaleb(exponent)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    if minor < 0:
        raise ValueError(f"Negative monetary amount: {amount!r}")
    return int(minor)


def unit_price_from_line(line_total_cents: int, quantity: int) -> int:
    """Per-unit price for platforms that only send the line total (half-up)"""
    if quantity <= 0:
        raise ValueError(f"Quantity must be positive, got {quantity}")
    return (2 * line_total_cents + quantity) // (2 * quantity)
