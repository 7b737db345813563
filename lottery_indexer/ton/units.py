"""
Smallest-unit <-> display-unit scaling.

Amounts are exact Decimals so that a purchase of A nanoton maps to A / 1e9
and back to A without float rounding.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from lottery_indexer.ton.constants import NATIVE_DECIMALS


def parse_raw_amount(raw: object) -> int:
    """Parse an integer smallest-unit amount; anything unparsable or negative is 0."""
    if raw is None or isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return max(raw, 0)
    try:
        value = int(str(raw).strip())
    except ValueError:
        return 0
    return max(value, 0)


def from_smallest_unit(raw: int, decimals: int = NATIVE_DECIMALS) -> Decimal:
    """Scale an integer amount down by 10**decimals, exactly."""
    return Decimal(raw).scaleb(-decimals)


def to_smallest_unit(amount: Decimal | int | str, decimals: int = NATIVE_DECIMALS) -> int:
    """Inverse of from_smallest_unit; raises ValueError on fractional smallest units."""
    try:
        scaled = Decimal(amount).scaleb(decimals)
    except InvalidOperation as e:
        raise ValueError(f"Not a decimal amount: {amount!r}") from e
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{amount} has more than {decimals} decimal places")
    return int(scaled)


def nano_to_ton(nano: int) -> Decimal:
    return from_smallest_unit(nano, NATIVE_DECIMALS)


def parse_decimals(raw: object, default: int) -> int:
    """Token precision from metadata; falls back to default for junk values."""
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = int(str(raw).strip())
    except ValueError:
        return default
    return value if 0 <= value <= 255 else default
