"""
Conversions between human decimal amounts and 18-decimal base units
"""

from decimal import Decimal, InvalidOperation, localcontext
from typing import Any

from eth_utils import from_wei, to_wei

from curvequote.core.bonding_curve import TOKEN_DECIMALS
from curvequote.core.errors import InvalidInputError


def parse_amount(value: Any, field: str) -> int:
    """
    Parse a decimal ETH / whole-token amount into base units

    Accepts strings ("0.5") and JSON numbers. Rejects negatives, booleans
    and amounts finer than 18 decimals.

    Raises:
        InvalidInputError
    """
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise InvalidInputError(f"{field} must be a decimal amount")

    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidInputError(f"{field} is not a number: {value!r}") from None

    if not amount.is_finite() or amount < 0:
        raise InvalidInputError(f"{field} must be a non-negative finite amount")

    with localcontext() as ctx:
        ctx.prec = 200
        scaled = amount * (10 ** TOKEN_DECIMALS)
        if scaled != scaled.to_integral_value():
            raise InvalidInputError(f"{field} has more than {TOKEN_DECIMALS} decimal places")

    if amount == 0:
        return 0

    try:
        return to_wei(amount, "ether")
    except ValueError as e:
        raise InvalidInputError(f"{field} out of range: {e}") from e


def format_amount(base_units: int) -> str:
    """Base units as a plain decimal string ("1.5", "0.000001")"""
    value = from_wei(base_units, "ether")
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"
