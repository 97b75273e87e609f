"""
Currency helpers.

All currency values are Decimals rounded to cents with ROUND_HALF_UP,
which in the decimal module rounds halves away from zero.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Optional, Union

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Largest decimal exponent accepted as an amount (1e99)
MAX_EXPONENT = 99

Amount = Union[Decimal, int, float, str]


def round2(value: Amount) -> Decimal:
    """Round a currency value to 2 fractional digits, whatever its magnitude."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    with localcontext() as ctx:
        # Room for every integer digit plus the cents
        ctx.prec = max(ctx.prec, value.adjusted() + 3)
        return value.quantize(CENT, rounding=ROUND_HALF_UP)


def parse_amount(raw: object) -> Optional[Decimal]:
    """
    Parse raw user input into a finite Decimal.

    Floats go through str() so 10000.004 stays 10000.004 rather than
    its binary expansion. Returns None for anything that is not a finite
    number (bools, NaN, infinities, junk strings) and for magnitudes
    above 1e99.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, Decimal):
        value = raw
    elif isinstance(raw, (int, float, str)):
        try:
            value = Decimal(str(raw).strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not value.is_finite() or value.adjusted() > MAX_EXPONENT:
        return None
    return value


def format_money(value: Decimal) -> str:
    """Format as a dollar amount with 2 digits, e.g. $1,250.75."""
    return f"${round2(value):,.2f}"
