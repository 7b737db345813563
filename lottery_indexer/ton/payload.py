"""
Forward-payload decoder: base64 BOC blobs attached to jetton transfers.

Deserializes the bag-of-cells with pytoniq_core and reads the root cell's
leading 32-bit operation code plus, for the prize and referral codes, the
following 8-bit sub-field (payout tier code / referral percent). Payloads
are arbitrary user-supplied data, so every failure degrades to None.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

from pytoniq_core import Cell

from lottery_indexer.lottery_logging import get_logger
from lottery_indexer.ton.constants import OP_PRIZE, OP_REFERRAL

logger = get_logger(__name__)

OPCODE_BITS = 32
SUBFIELD_BITS = 8
# Opcodes followed by an 8-bit sub-field
_SUBFIELD_OPCODES = frozenset({OP_PRIZE, OP_REFERRAL})


@dataclass(frozen=True)
class PayloadOp:
    """Decoded payload head: opcode and optional 8-bit sub-field."""

    opcode: int
    subfield: int | None = None

    @property
    def is_prize(self) -> bool:
        return self.opcode == OP_PRIZE

    @property
    def is_referral(self) -> bool:
        return self.opcode == OP_REFERRAL


def read_root_cell(boc: bytes) -> Cell:
    """First root cell of a serialized bag-of-cells; raises on malformed input."""
    return Cell.one_from_boc(boc)


def decode_forward_payload(blob: object) -> PayloadOp | None:
    """
    Decode a base64 forward payload into PayloadOp, or None when the blob is
    missing, not base64, not a BOC, or shorter than an opcode.
    """
    if not isinstance(blob, str) or not blob.strip():
        return None
    try:
        boc = base64.b64decode(blob.strip(), validate=True)
    except (binascii.Error, ValueError):
        logger.debug("payload_not_base64", size=len(blob))
        return None

    try:
        cell = read_root_cell(boc)
        data_bits = len(cell.bits)
        if data_bits < OPCODE_BITS:
            return None
        body = cell.begin_parse()
        opcode = body.load_uint(OPCODE_BITS)
        subfield = None
        if opcode in _SUBFIELD_OPCODES and data_bits >= OPCODE_BITS + SUBFIELD_BITS:
            subfield = body.load_uint(SUBFIELD_BITS)
    except Exception as e:
        logger.debug("payload_decode_failed", error=str(e), error_type=type(e).__name__)
        return None
    return PayloadOp(opcode=opcode, subfield=subfield)
