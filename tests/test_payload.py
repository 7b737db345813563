"""
Tests for forward-payload decoding. Malformed input of any kind must come
back as None, never as an exception.
"""

from __future__ import annotations

import base64

import pytest
from pytoniq_core import begin_cell

from builders import payload_b64, payload_boc
from lottery_indexer.ton.constants import OP_PRIZE, OP_REFERRAL
from lottery_indexer.ton.payload import PayloadOp, decode_forward_payload, read_root_cell

JETTON_NOTIFY_OP = 0x7362D09C


def _b64(boc: bytes) -> str:
    return base64.b64encode(boc).decode("ascii")


def test_prize_opcode_with_tier():
    op = decode_forward_payload(payload_b64(OP_PRIZE, 3))
    assert op == PayloadOp(OP_PRIZE, 3)
    assert op.is_prize and not op.is_referral


def test_referral_opcode_with_percent():
    op = decode_forward_payload(payload_b64(OP_REFERRAL, 15))
    assert op.is_referral
    assert op.subfield == 15


def test_other_opcode_has_no_subfield():
    op = decode_forward_payload(payload_b64(JETTON_NOTIFY_OP, 9))
    assert op == PayloadOp(JETTON_NOTIFY_OP, None)


def test_prize_opcode_without_trailing_byte():
    assert decode_forward_payload(payload_b64(OP_PRIZE)) == PayloadOp(OP_PRIZE, None)


def test_partial_subfield_is_ignored():
    # 32-bit opcode plus 4 stray bits: too short for the 8-bit tier
    cell = begin_cell().store_uint(OP_PRIZE, 32).store_uint(0xF, 4).end_cell()
    assert decode_forward_payload(_b64(cell.to_boc())) == PayloadOp(OP_PRIZE, None)


def test_opcode_read_from_root_cell_with_refs():
    tail = begin_cell().store_uint(OP_REFERRAL, 32).end_cell()
    root = begin_cell().store_uint(OP_PRIZE, 32).store_uint(2, 8).store_ref(tail).end_cell()
    assert decode_forward_payload(_b64(root.to_boc())) == PayloadOp(OP_PRIZE, 2)


def test_read_root_cell_exposes_data_bits():
    assert len(read_root_cell(payload_boc(OP_PRIZE, 1)).bits) == 40


@pytest.mark.parametrize(
    "blob",
    [
        None,
        "",
        "   ",
        42,
        "not base64!!",
        _b64(b"hello world"),
        _b64(begin_cell().store_uint(0x0102, 16).end_cell().to_boc()),
        _b64(payload_boc(OP_PRIZE, 3)[:-3]),
    ],
)
def test_malformed_payloads_degrade_to_none(blob):
    assert decode_forward_payload(blob) is None
