"""
TON address normalizer.

The same account has several valid textual encodings: raw ("0:<64 hex>"),
and user-friendly base64 (standard or url-safe alphabet, bounceable or not,
mainnet or testnet flag). All comparisons go through normalize_address(),
which maps every encoding to the raw form "<workchain>:<lowercase hex>".

Decoding and the CRC16 check are pytoniq_core's Address; this module only
fixes the accepted shapes and the InvalidAddress boundary.
"""

from __future__ import annotations

import re

from pytoniq_core import Address

from lottery_indexer.core.exceptions import InvalidAddress

_RAW_RE = re.compile(r"^(-?\d{1,3}):[0-9a-fA-F]{64}$")
_FRIENDLY_RE = re.compile(r"^[A-Za-z0-9+/_-]{48}$")


def parse_address(raw: object) -> Address:
    """
    Parse any accepted address encoding.

    Raises:
        InvalidAddress: if raw is not a string or cannot be parsed.
    """
    if not isinstance(raw, str):
        raise InvalidAddress(raw, "not a string")
    text = raw.strip()
    if not text:
        raise InvalidAddress(raw, "empty")
    if ":" in text:
        m = _RAW_RE.match(text)
        if m is None:
            raise InvalidAddress(text, "malformed raw address")
        if not -128 <= int(m.group(1)) <= 127:
            raise InvalidAddress(text, f"workchain {m.group(1)} out of range")
    elif _FRIENDLY_RE.match(text) is None:
        raise InvalidAddress(text, "not a 48-character user-friendly address")
    else:
        text = text.replace("-", "+").replace("_", "/")
    try:
        return Address(text)
    except Exception as e:
        raise InvalidAddress(raw, str(e) or type(e).__name__) from e


def normalize_address(raw: object) -> str:
    """Return the canonical comparison key ("wc:hex") or raise InvalidAddress."""
    return parse_address(raw).to_str(is_user_friendly=False)


def try_normalize_address(raw: object) -> str | None:
    """Like normalize_address, but None for missing or unparsable input."""
    if raw is None:
        return None
    try:
        return normalize_address(raw)
    except InvalidAddress:
        return None
