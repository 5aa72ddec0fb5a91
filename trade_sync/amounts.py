"""
Token amount parsing and normalization.

Raw amounts stay integers until the normalization boundary, where they are
converted to Decimal with enough precision for any uint256 value.
"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation, localcontext
from typing import Any, Optional


# Native-asset precision, also used when the provider omits decimals
DEFAULT_DECIMALS = 18

# uint256 has 78 significant digits; leave headroom for the scale
_NORMALIZATION_PRECISION = 100


def parse_decimals(raw_decimals: Any) -> int:
    """
    Parse token precision as reported by the provider.

    Accepts "0x12" (hex), "18" (decimal string), 18 (number) or
    None (defaults to 18).

    Raises:
        ValueError: If the value cannot be interpreted
    """
    if raw_decimals is None or raw_decimals == "":
        return DEFAULT_DECIMALS
    if isinstance(raw_decimals, bool):
        raise ValueError(f"Invalid decimals: {raw_decimals!r}")
    if isinstance(raw_decimals, int):
        decimals = raw_decimals
    elif isinstance(raw_decimals, float):
        if not raw_decimals.is_integer():
            raise ValueError(f"Invalid decimals: {raw_decimals!r}")
        decimals = int(raw_decimals)
    elif isinstance(raw_decimals, str):
        text = raw_decimals.strip()
        decimals = int(text, 16) if text.lower().startswith("0x") else int(text)
    else:
        raise ValueError(f"Invalid decimals: {raw_decimals!r}")

    if decimals < 0:
        raise ValueError(f"Negative decimals: {raw_decimals!r}")
    return decimals


def parse_raw_amount(value: Any) -> Optional[int]:
    """
    Parse an integer amount in the token's smallest unit.

    Hex strings ("0x...") and decimal integer strings are supported.
    Returns None when no value is present.

    Raises:
        ValueError: If the value is not an integer amount
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid raw amount: {value!r}")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str):
        text = value.strip()
        amount = int(text, 16) if text.lower().startswith("0x") else int(text)
    else:
        raise ValueError(f"Invalid raw amount: {value!r}")

    if amount < 0:
        raise ValueError(f"Negative raw amount: {value!r}")
    return amount


def parse_formatted_amount(value: Any, decimals: int) -> Optional[int]:
    """
    Convert a human-formatted amount (e.g. 1.5 ETH) to the smallest unit.

    Returns None when no value is present.

    Raises:
        ValueError: If the value is not numeric
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    try:
        # str() keeps floats at their shortest repr instead of binary noise
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e
    if not amount.is_finite() or amount < 0:
        raise ValueError(f"Invalid amount: {value!r}")

    with localcontext() as ctx:
        ctx.prec = _NORMALIZATION_PRECISION
        scaled = amount.scaleb(decimals)
        return int(scaled.to_integral_value(rounding=ROUND_HALF_EVEN))


def normalize_amount(raw_amount: int, decimals: int) -> Decimal:
    """Return raw_amount / 10**decimals without precision loss."""
    with localcontext() as ctx:
        ctx.prec = _NORMALIZATION_PRECISION
        return Decimal(raw_amount).scaleb(-decimals)


def to_raw_amount(normalized: Decimal, decimals: int) -> int:
    """Inverse of normalize_amount, rounded to the nearest unit."""
    with localcontext() as ctx:
        ctx.prec = _NORMALIZATION_PRECISION
        return int(Decimal(normalized).scaleb(decimals).to_integral_value(rounding=ROUND_HALF_EVEN))
