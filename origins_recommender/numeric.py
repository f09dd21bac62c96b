"""Fixed-precision decimal helpers shared by scoring, ranking and parsing."""
from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Context, Decimal, InvalidOperation
from typing import Any

# All scoring arithmetic runs in this context so results do not depend on
# the (thread-local) ambient decimal context.
DECIMAL_CONTEXT = Context(prec=28, rounding=ROUND_HALF_EVEN)

SCORE_PLACES = Decimal("1e-12")

ZERO = Decimal(0)
ONE = Decimal(1)

WEI_PER_ETHER = 18


def to_decimal(value: Any) -> Decimal:
    """Convert config/wire values to Decimal without going through binary floats.

    Floats are converted via ``str`` so ``0.9`` becomes ``Decimal("0.9")``.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Cannot convert boolean {value!r} to Decimal")
    if isinstance(value, (int, str)):
        return parse_decimal(str(value))
    if isinstance(value, float):
        return parse_decimal(repr(value))
    raise ValueError(f"Cannot convert {type(value).__name__} to Decimal")


def parse_decimal(text: str) -> Decimal:
    """Parse a decimal string, raising ``ValueError`` on garbage or non-finite values."""
    try:
        value = Decimal(text.strip())
    except InvalidOperation as e:
        raise ValueError(f"Failed to parse decimal '{text}'") from e
    if not value.is_finite():
        raise ValueError(f"Decimal '{text}' is not finite")
    return value


def clamp(value: Decimal, lower: Decimal = ZERO, upper: Decimal = ONE) -> Decimal:
    if value < lower:
        return lower
    if value > upper:
        return upper
    return value


def quantize_score(value: Decimal) -> Decimal:
    """Round a score to a fixed number of places for reproducible output."""
    return value.quantize(SCORE_PLACES, context=DECIMAL_CONTEXT)


def from_base_units(raw: int, decimals: int = WEI_PER_ETHER) -> Decimal:
    """Scale an integer on-chain amount (e.g. wei) into whole units."""
    return Decimal(raw).scaleb(-decimals, context=DECIMAL_CONTEXT)


def is_valid_address(address: str) -> bool:
    """Basic EVM address shape check: ``0x`` + 40 hex characters."""
    if not address.startswith("0x") or len(address) != 42:
        return False
    return all(c in "0123456789abcdefABCDEF" for c in address[2:])
