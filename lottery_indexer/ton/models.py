"""
Data models for toncenter v3 traces.

Responsibilities:
- Immutable Trace / Action / Transaction objects built from raw API dicts.
- Resolve action details into one of several independent shapes (tagged
  union) using a discriminating predicate on the action type and on which
  fields are present; the API has returned two generations of jetton
  transfer layouts.
- Project any detail shape to a uniform ActionFlow for direction/value checks.
- Token metadata side-table (asset -> symbol, decimals) used only to
  humanize amounts.

Purely structural: no classification or scoring logic.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Union

from lottery_indexer.ton.address import try_normalize_address
from lottery_indexer.ton.constants import DEFAULT_JETTON_DECIMALS, DEFAULT_JETTON_SYMBOL
from lottery_indexer.ton.units import parse_decimals, parse_raw_amount


class ActionType(str, Enum):
    COIN_TRANSFER = "ton_transfer"
    CONTRACT_CALL = "call_contract"
    JETTON_TRANSFER = "jetton_transfer"
    NFT_MINT = "nft_mint"
    CONTRACT_DEPLOY = "contract_deploy"
    OTHER = "other"

    @classmethod
    def from_raw(cls, raw: object) -> "ActionType":
        for member in cls:
            if member.value == raw:
                return member
        return cls.OTHER


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) and value.strip() else None


def _list_or_empty(value: Any) -> list[Any] | tuple[Any, ...]:
    return value if isinstance(value, (list, tuple)) else ()


def parse_opcode(raw: Any) -> int | None:
    """Opcode as unsigned 32-bit int; accepts ints, "0x..." and decimal strings."""
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        try:
            value = int(raw.strip(), 0)
        except ValueError:
            return None
    else:
        return None
    # Some API versions report opcodes as signed 32-bit
    if -(1 << 31) <= value < 0:
        value &= 0xFFFFFFFF
    if not 0 <= value <= 0xFFFFFFFF:
        return None
    return value


def parse_lt(raw: Any) -> int:
    """Logical time as int; 0 when missing or unparsable."""
    if raw is None or isinstance(raw, bool):
        return 0
    try:
        return int(str(raw).strip())
    except ValueError:
        return 0


# --- detail shapes (tagged union) ---


@dataclass(frozen=True)
class CoinTransfer:
    source: str | None
    destination: str | None
    value: int
    comment: str | None
    opcode: int | None = None


@dataclass(frozen=True)
class ContractCall:
    source: str | None
    destination: str | None
    value: int
    opcode: int | None


@dataclass(frozen=True)
class JettonTransferV2:
    """Older layout: source/destination/value plus a nested ``jetton`` info object."""

    source: str | None
    destination: str | None
    value: int
    symbol: str | None
    decimals: int | None
    master: str | None
    comment: str | None = None
    forward_payload: str | None = None


@dataclass(frozen=True)
class JettonTransferV3:
    """Newer layout: asset master plus owner-level sender/receiver and amount."""

    asset: str
    sender: str | None
    receiver: str | None
    amount: int
    comment: str | None = None
    forward_payload: str | None = None


@dataclass(frozen=True)
class NftMint:
    owner: str | None
    nft_item: str | None
    nft_collection: str | None
    nft_item_index: Any


@dataclass(frozen=True)
class OtherDetails:
    source: str | None = None
    destination: str | None = None
    value: int = 0
    comment: str | None = None
    opcode: int | None = None


ActionDetails = Union[
    CoinTransfer, ContractCall, JettonTransferV2, JettonTransferV3, NftMint, OtherDetails
]


def is_jetton_v3(details: Mapping[str, Any]) -> bool:
    return isinstance(details.get("asset"), str) and (
        isinstance(details.get("sender"), str) or isinstance(details.get("receiver"), str)
    )


def is_jetton_v2(details: Mapping[str, Any]) -> bool:
    return isinstance(details.get("jetton"), dict)


def resolve_details(action_type: ActionType, details: Mapping[str, Any]) -> ActionDetails:
    """Pick the detail shape for one action; V3 wins when both jetton markers are present."""
    source = _str_or_none(details.get("source"))
    destination = _str_or_none(details.get("destination"))
    value = parse_raw_amount(details.get("value"))
    comment = details.get("comment") if isinstance(details.get("comment"), str) else None

    if action_type is ActionType.COIN_TRANSFER:
        return CoinTransfer(source, destination, value, comment, parse_opcode(details.get("opcode")))
    if action_type is ActionType.CONTRACT_CALL:
        return ContractCall(source, destination, value, parse_opcode(details.get("opcode")))
    if action_type is ActionType.JETTON_TRANSFER:
        payload = _str_or_none(details.get("forward_payload"))
        if is_jetton_v3(details):
            return JettonTransferV3(
                asset=details["asset"],
                sender=_str_or_none(details.get("sender")),
                receiver=_str_or_none(details.get("receiver")),
                amount=parse_raw_amount(details.get("amount")),
                comment=comment,
                forward_payload=payload,
            )
        if is_jetton_v2(details):
            info = details["jetton"]
            decimals = info.get("decimals")
            return JettonTransferV2(
                source=source,
                destination=destination,
                value=value,
                symbol=_str_or_none(info.get("symbol")),
                decimals=parse_decimals(decimals, DEFAULT_JETTON_DECIMALS) if decimals is not None else None,
                master=_str_or_none(info.get("master")),
                comment=comment,
                forward_payload=payload,
            )
    if action_type is ActionType.NFT_MINT:
        return NftMint(
            owner=_str_or_none(details.get("owner")),
            nft_item=_str_or_none(details.get("nft_item")),
            nft_collection=_str_or_none(details.get("nft_collection")),
            nft_item_index=details.get("nft_item_index"),
        )
    return OtherDetails(source, destination, value, comment, parse_opcode(details.get("opcode")))


@dataclass(frozen=True)
class ActionFlow:
    """Direction/value view of any action, addresses still in their raw encoding."""

    source: str | None
    destination: str | None
    amount: int
    comment: str | None = None
    opcode: int | None = None
    asset: str | None = None
    forward_payload: str | None = None


def flow_of(details: ActionDetails) -> ActionFlow:
    if isinstance(details, JettonTransferV3):
        return ActionFlow(
            details.sender, details.receiver, details.amount, details.comment,
            asset=details.asset, forward_payload=details.forward_payload,
        )
    if isinstance(details, JettonTransferV2):
        return ActionFlow(
            details.source, details.destination, details.value, details.comment,
            asset=details.master, forward_payload=details.forward_payload,
        )
    if isinstance(details, NftMint):
        return ActionFlow(None, details.owner, 0)
    if isinstance(details, ContractCall):
        return ActionFlow(details.source, details.destination, details.value, opcode=details.opcode)
    return ActionFlow(details.source, details.destination, details.value, details.comment, details.opcode)


@dataclass(frozen=True)
class Action:
    """One typed event inside a trace."""

    action_id: str | None
    type: ActionType
    raw_type: str | None
    details: ActionDetails
    success: bool | None = None

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "Action":
        raw_type = raw.get("type") if isinstance(raw.get("type"), str) else None
        action_type = ActionType.from_raw(raw_type)
        details = raw.get("details")
        if not isinstance(details, Mapping):
            details = {}
        success = raw.get("success")
        return cls(
            action_id=_str_or_none(raw.get("action_id")),
            type=action_type,
            raw_type=raw_type,
            details=resolve_details(action_type, details),
            success=success if isinstance(success, bool) else None,
        )

    def flow(self) -> ActionFlow:
        return flow_of(self.details)


@dataclass(frozen=True)
class Transaction:
    hash: str
    account: str | None
    lt: int
    now: int | None
    in_msg_source: str | None

    @classmethod
    def from_api(cls, tx_hash: str, raw: Mapping[str, Any]) -> "Transaction":
        in_msg = raw.get("in_msg") if isinstance(raw.get("in_msg"), Mapping) else {}
        now = raw.get("now")
        return cls(
            hash=tx_hash,
            account=_str_or_none(raw.get("account")),
            lt=parse_lt(raw.get("lt")),
            now=now if isinstance(now, int) else None,
            in_msg_source=_str_or_none(in_msg.get("source")),
        )


def b64_to_hex(value: str) -> str | None:
    """Hex form of a base64 hash; None when the value does not decode."""
    std = value.strip().replace("-", "+").replace("_", "/")
    try:
        raw = base64.b64decode(std, validate=True)
    except (binascii.Error, ValueError):
        return None
    return raw.hex() if raw else None


@dataclass(frozen=True)
class Trace:
    """
    One root-level interaction: ordered actions, transactions keyed by hash,
    the transaction ordering, start logical time / wall time and the root
    transaction pointer. Produced by the source; never mutated.
    """

    trace_id: str | None
    actions: tuple[Action, ...]
    transactions: Mapping[str, Transaction]
    transactions_order: tuple[str, ...]
    start_lt: int
    start_utime: int | None
    root_tx_hash: str | None
    root_in_msg_source: str | None = None

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "Trace":
        """Build from one item of toncenter ``/traces`` (with include_actions)."""
        if not isinstance(raw, Mapping):
            raise ValueError(f"trace must be an object, got {type(raw).__name__}")
        actions = tuple(
            Action.from_api(a) for a in _list_or_empty(raw.get("actions")) if isinstance(a, Mapping)
        )
        txs_raw = raw.get("transactions") if isinstance(raw.get("transactions"), Mapping) else {}
        transactions = {
            h: Transaction.from_api(h, tx) for h, tx in txs_raw.items() if isinstance(tx, Mapping)
        }
        order = tuple(h for h in _list_or_empty(raw.get("transactions_order")) if isinstance(h, str))
        root = raw.get("trace") if isinstance(raw.get("trace"), Mapping) else {}
        root_in_msg = root.get("in_msg") if isinstance(root.get("in_msg"), Mapping) else {}
        start_utime = raw.get("start_utime")
        return cls(
            trace_id=_str_or_none(raw.get("trace_id")),
            actions=actions,
            transactions=transactions,
            transactions_order=order,
            start_lt=parse_lt(raw.get("start_lt")),
            start_utime=start_utime if isinstance(start_utime, int) else None,
            root_tx_hash=_str_or_none(root.get("tx_hash")) or _str_or_none(raw.get("trace_id")),
            root_in_msg_source=_str_or_none(root_in_msg.get("source")),
        )

    def first_transaction(self) -> Transaction | None:
        if not self.transactions_order:
            return None
        return self.transactions.get(self.transactions_order[0])


# --- token metadata side-table ---


@dataclass(frozen=True)
class TokenInfo:
    symbol: str = DEFAULT_JETTON_SYMBOL
    decimals: int = DEFAULT_JETTON_DECIMALS


@dataclass
class TokenRegistry:
    """Asset master (normalized) -> TokenInfo, merged from every page's metadata."""

    _tokens: dict[str, TokenInfo] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self._tokens)

    def merge_metadata(self, metadata: Any) -> int:
        """
        Merge a toncenter ``metadata`` block:
        {master: {"is_indexed": bool, "token_info": [{"type": "jetton_masters", "symbol": .., "extra": {"decimals": ..}}]}}
        Returns the number of assets added or updated. Junk entries are ignored.
        """
        if not isinstance(metadata, Mapping):
            return 0
        merged = 0
        for master, entry in metadata.items():
            key = try_normalize_address(master)
            if key is None or not isinstance(entry, Mapping):
                continue
            infos = [i for i in _list_or_empty(entry.get("token_info")) if isinstance(i, Mapping)]
            if not infos:
                continue
            info = next((i for i in infos if i.get("type") == "jetton_masters"), infos[0])
            extra = info.get("extra") if isinstance(info.get("extra"), Mapping) else {}
            self._tokens[key] = TokenInfo(
                symbol=_str_or_none(info.get("symbol")) or DEFAULT_JETTON_SYMBOL,
                decimals=parse_decimals(extra.get("decimals"), DEFAULT_JETTON_DECIMALS),
            )
            merged += 1
        return merged

    def lookup(self, asset: str | None) -> TokenInfo | None:
        key = try_normalize_address(asset)
        if key is None:
            return None
        return self._tokens.get(key)
