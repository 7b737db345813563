"""
Builders for toncenter-shaped test data: raw traces, actions and BOC payloads.
"""

from __future__ import annotations

import base64
from typing import Any

from pytoniq_core import Address, begin_cell

from lottery_indexer.ton.models import Trace

CONTRACT = "0:" + "11" * 32
PARTICIPANT = "0:" + "22" * 32
REFERRER = "0:" + "33" * 32
JETTON_MASTER = "0:" + "44" * 32
NFT_ITEM = "0:" + "55" * 32
COLLECTION = "0:" + "66" * 32
STRANGER = "0:" + "77" * 32

ROOT_HASH = bytes(range(32))
ROOT_HASH_B64 = base64.b64encode(ROOT_HASH).decode("ascii")


def friendly(raw: str, *, bounceable: bool = True, testnet: bool = False, url_safe: bool = True) -> str:
    return Address(raw).to_str(
        is_user_friendly=True, is_url_safe=url_safe, is_bounceable=bounceable, is_test_only=testnet
    )


def payload_boc(opcode: int, subfield: int | None = None) -> bytes:
    builder = begin_cell().store_uint(opcode, 32)
    if subfield is not None:
        builder = builder.store_uint(subfield, 8)
    return builder.end_cell().to_boc()


def payload_b64(opcode: int, subfield: int | None = None) -> str:
    return base64.b64encode(payload_boc(opcode, subfield)).decode("ascii")


def ton_transfer(source: str, destination: str, value: int, comment: str | None = None, opcode: Any = None) -> dict:
    details: dict[str, Any] = {"source": source, "destination": destination, "value": str(value)}
    if comment is not None:
        details["comment"] = comment
    if opcode is not None:
        details["opcode"] = opcode
    return {"action_id": "a-ton", "type": "ton_transfer", "success": True, "details": details}


def call_contract(source: str, destination: str, value: int, opcode: Any) -> dict:
    return {
        "action_id": "a-call",
        "type": "call_contract",
        "success": True,
        "details": {"source": source, "destination": destination, "value": str(value), "opcode": opcode},
    }


def jetton_v3(
    sender: str,
    receiver: str,
    amount: int,
    *,
    asset: str = JETTON_MASTER,
    forward_payload: str | None = None,
    comment: str | None = None,
) -> dict:
    details: dict[str, Any] = {
        "asset": asset,
        "sender": sender,
        "receiver": receiver,
        "amount": str(amount),
        "sender_jetton_wallet": STRANGER,
        "receiver_jetton_wallet": STRANGER,
    }
    if forward_payload is not None:
        details["forward_payload"] = forward_payload
    if comment is not None:
        details["comment"] = comment
    return {"action_id": "a-jetton3", "type": "jetton_transfer", "success": True, "details": details}


def jetton_v2(
    source: str,
    destination: str,
    value: int,
    *,
    symbol: str = "LOT",
    decimals: Any = 9,
    master: str = JETTON_MASTER,
) -> dict:
    return {
        "action_id": "a-jetton2",
        "type": "jetton_transfer",
        "success": True,
        "details": {
            "source": source,
            "destination": destination,
            "value": str(value),
            "jetton": {"symbol": symbol, "decimals": decimals, "master": master},
        },
    }


def nft_mint(item: str | None = NFT_ITEM, collection: str | None = COLLECTION, index: Any = "7") -> dict:
    return {
        "action_id": "a-mint",
        "type": "nft_mint",
        "success": True,
        "details": {
            "owner": PARTICIPANT,
            "nft_item": item,
            "nft_collection": collection,
            "nft_item_index": index,
        },
    }


def raw_trace(
    actions: list[dict],
    *,
    participant: str | None = PARTICIPANT,
    start_lt: int = 1000,
    start_utime: int = 1_700_000_000,
    tx_hash: str | None = ROOT_HASH_B64,
    trace_id: str | None = "trace-1",
    metadata: dict | None = None,
) -> dict:
    in_msg: dict[str, Any] = {"destination": CONTRACT}
    if participant is not None:
        in_msg["source"] = participant
    root: dict[str, Any] = {"in_msg_hash": "aW4tbXNn"}
    if tx_hash is not None:
        root["tx_hash"] = tx_hash
    trace: dict[str, Any] = {
        "trace_id": trace_id,
        "start_lt": str(start_lt),
        "start_utime": start_utime,
        "trace": root,
        "transactions_order": ["tx-1"],
        "transactions": {
            "tx-1": {"account": CONTRACT, "lt": str(start_lt), "now": start_utime, "in_msg": in_msg},
        },
        "actions": actions,
    }
    if metadata is not None:
        trace["metadata"] = metadata
    return trace


def build_trace(actions: list[dict], **kwargs: Any) -> Trace:
    return Trace.from_api(raw_trace(actions, **kwargs))


def token_metadata(master: str = JETTON_MASTER, symbol: str = "LOT", decimals: Any = "6") -> dict:
    return {
        master: {
            "is_indexed": True,
            "token_info": [
                {"type": "jetton_masters", "valid": True, "symbol": symbol, "extra": {"decimals": decimals}},
            ],
        }
    }
