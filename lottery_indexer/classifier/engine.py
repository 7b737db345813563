"""
Trace classifier: turns one toncenter trace into a lottery transaction record.

Responsibilities:
- Resolve the participant (root transaction's inbound source, else its account)
  and the root transaction hash; both are trace-fatal when missing.
- Single left-to-right scan over actions accumulating purchase, prize,
  referral and mint sub-events. First purchase wins; payout legs accumulate.
- Every address comparison goes through normalize_address. Unparsable
  addresses inside an action only drop that sub-signal; an unparsable
  participant or a non-numeric mint index drops the whole trace.
- Deterministic: output depends only on the trace and token metadata.

The validator verdict is computed elsewhere and attached with attach_verdict().
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from lottery_indexer.config.settings import ReferralPolicy
from lottery_indexer.core.exceptions import TraceSkipped
from lottery_indexer.lottery_logging import get_logger
from lottery_indexer.lottery_logging.logger import short
from lottery_indexer.ton.address import normalize_address, try_normalize_address
from lottery_indexer.ton.constants import (
    DEFAULT_JETTON_DECIMALS,
    DEFAULT_JETTON_SYMBOL,
    NATIVE_SYMBOL,
    OP_PRIZE,
    OP_REFERRAL,
    PRIZE_MAP,
    REFERRAL_COMMENT,
    TON_PRIZE_TAG,
)
from lottery_indexer.ton.models import (
    CoinTransfer,
    ContractCall,
    JettonTransferV2,
    JettonTransferV3,
    NftMint,
    TokenRegistry,
    Trace,
    b64_to_hex,
)
from lottery_indexer.ton.payload import decode_forward_payload
from lottery_indexer.ton.units import from_smallest_unit, nano_to_ton

logger = get_logger(__name__)

# Flat record columns, in persisted order
CSV_FIELDS: tuple[str, ...] = (
    "participant",
    "nft_address",
    "collection_address",
    "nft_index",
    "timestamp",
    "tx_hash",
    "lt",
    "is_win",
    "win_comment",
    "win_multiplier",
    "win_ton_amount",
    "win_jetton_amount",
    "win_jetton_symbol",
    "prize_code",
    "referral_amount",
    "referral_currency",
    "referral_percent",
    "referral_address",
    "buy_amount",
    "buy_currency",
    "buy_master_address",
    "text_comment",
    "is_fake",
    "fake_reason",
    "validation_score",
)

# Comments a participant would only send to impersonate a payout
_PAYOUT_CLAIM_PATTERNS = (
    re.compile(r"^x\d+$"),
    re.compile(r"^jp$"),
    re.compile(r"^jackpot$"),
    re.compile(r"^win"),
    re.compile(r"^prize"),
)


def normalize_comment(comment: str | None) -> str:
    return comment.strip().lower() if isinstance(comment, str) else ""


def is_payout_claim(comment: str | None) -> bool:
    """True for comments matching the reserved payout patterns (x20, jp, win..., prize...)."""
    text = normalize_comment(comment)
    return bool(text) and any(p.search(text) for p in _PAYOUT_CLAIM_PATTERNS)


def payout_tier(comment: str | None) -> str | None:
    """Known payout tier code for a comment, or None."""
    text = normalize_comment(comment)
    return text if text in PRIZE_MAP else None


def format_decimal(value: Decimal) -> str:
    """Plain (non-exponent) decimal text without trailing zeros."""
    return format(value.normalize(), "f")


@dataclass(frozen=True)
class Purchase:
    amount: Decimal
    currency: str
    master_address: str | None = None
    comment: str | None = None


@dataclass(frozen=True)
class Prize:
    ton_amount: Decimal | None
    jetton_amount: Decimal | None
    jetton_symbol: str | None
    tag: str
    multiplier: int | None = None
    code: int | None = None


@dataclass(frozen=True)
class Referral:
    amount: Decimal
    currency: str
    recipient: str | None
    percent: Decimal | None = None


@dataclass(frozen=True)
class Mint:
    nft_address: str
    collection_address: str
    index: int


@dataclass
class LotteryTransaction:
    """One classified trace; at least one of purchase / prize / referral / mint is set."""

    participant: str
    tx_hash: str
    lt: int
    timestamp: int | None
    purchase: Purchase | None = None
    prize: Prize | None = None
    referral: Referral | None = None
    mint: Mint | None = None
    verdict: Any = None

    @property
    def is_win(self) -> bool:
        return self.prize is not None

    def attach_verdict(self, verdict: Any) -> "LotteryTransaction":
        self.verdict = verdict
        return self

    def to_row(self) -> dict[str, Any]:
        """Flat row keyed by CSV_FIELDS; absent values are None."""
        purchase, prize, referral, mint = self.purchase, self.prize, self.referral, self.mint
        row: dict[str, Any] = {
            "participant": self.participant,
            "nft_address": mint.nft_address if mint else None,
            "collection_address": mint.collection_address if mint else None,
            "nft_index": mint.index if mint else None,
            "timestamp": self.timestamp,
            "tx_hash": self.tx_hash,
            "lt": self.lt,
            "is_win": self.is_win,
            "win_comment": prize.tag if prize else None,
            "win_multiplier": prize.multiplier if prize else None,
            "win_ton_amount": prize.ton_amount if prize else None,
            "win_jetton_amount": prize.jetton_amount if prize else None,
            "win_jetton_symbol": prize.jetton_symbol if prize else None,
            "prize_code": prize.code if prize else None,
            "referral_amount": referral.amount if referral else None,
            "referral_currency": referral.currency if referral else None,
            "referral_percent": referral.percent if referral else None,
            "referral_address": referral.recipient if referral else None,
            "buy_amount": purchase.amount if purchase else None,
            "buy_currency": purchase.currency if purchase else None,
            "buy_master_address": purchase.master_address if purchase else None,
            "text_comment": purchase.comment if purchase else None,
            "is_fake": None,
            "fake_reason": None,
            "validation_score": None,
        }
        if self.verdict is not None:
            row["is_fake"] = self.verdict.is_fake
            row["fake_reason"] = self.verdict.fake_reason
            row["validation_score"] = self.verdict.validation_score
        return row


@dataclass(frozen=True)
class _JettonLeg:
    sender: str
    receiver: str
    raw_amount: int
    amount: Decimal
    symbol: str
    master: str | None
    comment: str | None
    forward_payload: str | None


@dataclass
class _ScanState:
    purchase: Purchase | None = None
    ton_prize_nano: int = 0
    ton_prize_tag: str | None = None
    tier: str | None = None
    jetton_prize: Decimal | None = None
    jetton_prize_symbol: str | None = None
    prize_code: int | None = None
    native_referral_nano: int = 0
    native_referral_to: str | None = None
    token_referral: Decimal | None = None
    token_referral_symbol: str | None = None
    token_referral_to: str | None = None
    token_referral_percent: int | None = None
    mint: Mint | None = None
    mint_seen: bool = False
    degraded: list[str] = field(default_factory=list)


class TraceClassifier:
    """
    Classify traces for one lottery contract.

    comment_signals enables the native-coin conventions (payout tier and
    referral comments on contract-originated coin transfers); the opcode and
    payload signals are always recognised.
    """

    def __init__(
        self,
        contract_address: str,
        *,
        comment_signals: bool = False,
        referral_policy: ReferralPolicy = ReferralPolicy.PREFER_TOKEN,
    ) -> None:
        self.contract = normalize_address(contract_address)
        self.comment_signals = comment_signals
        self.referral_policy = referral_policy

    # --- trace-level fields ---

    def participant_of(self, trace: Trace) -> str:
        """Normalized participant address; raises TraceSkipped when missing or invalid."""
        first = trace.first_transaction()
        raw = None
        if first is not None:
            raw = first.in_msg_source or first.account
        if raw is None:
            raw = trace.root_in_msg_source
        if raw is None:
            raise TraceSkipped(trace.trace_id, "no participant source")
        participant = try_normalize_address(raw)
        if participant is None:
            logger.warning("classifier_invalid_participant", trace_id=trace.trace_id, raw=str(raw)[:64])
            raise TraceSkipped(trace.trace_id, "invalid participant address")
        return participant

    @staticmethod
    def root_hash_of(trace: Trace) -> str:
        if not trace.root_tx_hash:
            raise TraceSkipped(trace.trace_id, "no root transaction hash")
        return b64_to_hex(trace.root_tx_hash) or trace.root_tx_hash

    # --- public ---

    def classify(self, trace: Trace, tokens: TokenRegistry | None = None) -> LotteryTransaction | None:
        """Return the lottery record for trace, or None for noise / structurally invalid traces."""
        try:
            return self._classify(trace, tokens or TokenRegistry())
        except TraceSkipped as e:
            logger.debug("classifier_trace_skipped", trace_id=e.trace_id, reason=e.reason)
            return None

    def _classify(self, trace: Trace, tokens: TokenRegistry) -> LotteryTransaction | None:
        participant = self.participant_of(trace)
        tx_hash = self.root_hash_of(trace)
        state = _ScanState()

        for action in trace.actions:
            details = action.details
            if isinstance(details, (CoinTransfer, ContractCall)):
                self._scan_native(details, participant, state)
            elif isinstance(details, (JettonTransferV2, JettonTransferV3)):
                leg = self._jetton_leg(details, tokens)
                if leg is None:
                    state.degraded.append("jetton_address")
                    continue
                self._scan_jetton(leg, participant, state)
            elif isinstance(details, NftMint) and not state.mint_seen:
                self._scan_mint(details, trace, state)

        if state.degraded:
            logger.debug("classifier_signals_degraded", trace_id=trace.trace_id, signals=state.degraded)

        prize = self._build_prize(state)
        referral = self._build_referral(state, trace)
        if state.purchase is None and prize is None and referral is None and state.mint is None:
            return None
        return LotteryTransaction(
            participant=participant,
            tx_hash=tx_hash,
            lt=trace.start_lt,
            timestamp=trace.start_utime,
            purchase=state.purchase,
            prize=prize,
            referral=referral,
            mint=state.mint,
        )

    # --- action scanners ---

    def _scan_native(self, details: CoinTransfer | ContractCall, participant: str, state: _ScanState) -> None:
        source = try_normalize_address(details.source)
        destination = try_normalize_address(details.destination)
        comment = details.comment if isinstance(details, CoinTransfer) else None

        if (
            state.purchase is None
            and source == participant
            and destination == self.contract
            and details.value > 0
            and not is_payout_claim(comment)
        ):
            state.purchase = Purchase(nano_to_ton(details.value), NATIVE_SYMBOL, None, comment)
            return
        if details.opcode == OP_PRIZE:
            state.ton_prize_nano += details.value
            state.ton_prize_tag = TON_PRIZE_TAG
            return
        if details.opcode == OP_REFERRAL:
            state.native_referral_nano += details.value
            if state.native_referral_to is None:
                state.native_referral_to = destination
            return
        if self.comment_signals and isinstance(details, CoinTransfer) and source == self.contract:
            self._scan_payout_comment(details, destination, participant, state)

    def _scan_payout_comment(
        self, details: CoinTransfer, destination: str | None, participant: str, state: _ScanState
    ) -> None:
        if details.value <= 0 or destination is None:
            return
        tier = payout_tier(details.comment)
        if tier is not None and destination == participant:
            state.ton_prize_nano += details.value
            if state.tier is None:
                state.tier = tier
            return
        if normalize_comment(details.comment) == REFERRAL_COMMENT:
            state.native_referral_nano += details.value
            if state.native_referral_to is None:
                state.native_referral_to = destination

    def _jetton_leg(self, details: JettonTransferV2 | JettonTransferV3, tokens: TokenRegistry) -> _JettonLeg | None:
        if isinstance(details, JettonTransferV3):
            sender, receiver, raw_amount = details.sender, details.receiver, details.amount
            master = try_normalize_address(details.asset)
            info = tokens.lookup(details.asset)
            symbol = info.symbol if info else DEFAULT_JETTON_SYMBOL
            decimals = info.decimals if info else DEFAULT_JETTON_DECIMALS
        else:
            sender, receiver, raw_amount = details.source, details.destination, details.value
            master = try_normalize_address(details.master)
            info = tokens.lookup(details.master)
            symbol = (info.symbol if info else None) or details.symbol or DEFAULT_JETTON_SYMBOL
            if info is not None:
                decimals = info.decimals
            elif details.decimals is not None:
                decimals = details.decimals
            else:
                decimals = DEFAULT_JETTON_DECIMALS
        sender_n = try_normalize_address(sender)
        receiver_n = try_normalize_address(receiver)
        if sender_n is None or receiver_n is None:
            return None
        return _JettonLeg(
            sender=sender_n,
            receiver=receiver_n,
            raw_amount=raw_amount,
            amount=from_smallest_unit(raw_amount, decimals),
            symbol=symbol,
            master=master,
            comment=details.comment,
            forward_payload=details.forward_payload,
        )

    def _scan_jetton(self, leg: _JettonLeg, participant: str, state: _ScanState) -> None:
        if (
            state.purchase is None
            and leg.sender == participant
            and leg.receiver == self.contract
            and leg.raw_amount > 0
            and not is_payout_claim(leg.comment)
        ):
            state.purchase = Purchase(leg.amount, leg.symbol, leg.master, leg.comment)
            return
        if leg.sender != self.contract:
            return
        op = decode_forward_payload(leg.forward_payload)
        if op is None:
            return
        if op.is_prize and leg.receiver == participant:
            state.jetton_prize = (state.jetton_prize or Decimal(0)) + leg.amount
            state.jetton_prize_symbol = leg.symbol
            if state.prize_code is None:
                state.prize_code = op.subfield
        elif op.is_referral:
            state.token_referral = (state.token_referral or Decimal(0)) + leg.amount
            state.token_referral_symbol = leg.symbol
            if state.token_referral_to is None:
                state.token_referral_to = leg.receiver
            if state.token_referral_percent is None:
                state.token_referral_percent = op.subfield

    def _scan_mint(self, details: NftMint, trace: Trace, state: _ScanState) -> None:
        index_raw = details.nft_item_index
        if details.nft_item is None or details.nft_collection is None or index_raw is None:
            return
        state.mint_seen = True
        try:
            if isinstance(index_raw, bool):
                raise ValueError("boolean index")
            index = index_raw if isinstance(index_raw, int) else int(str(index_raw).strip())
        except ValueError as e:
            logger.warning("classifier_invalid_mint_index", trace_id=trace.trace_id, index=str(index_raw)[:32])
            raise TraceSkipped(trace.trace_id, "non-numeric mint index") from e
        nft_address = try_normalize_address(details.nft_item)
        collection_address = try_normalize_address(details.nft_collection)
        if nft_address is None or collection_address is None:
            state.degraded.append("mint_address")
            return
        state.mint = Mint(nft_address, collection_address, index)

    # --- record assembly ---

    def _build_prize(self, state: _ScanState) -> Prize | None:
        has_jetton = state.jetton_prize is not None and state.jetton_prize > 0
        if state.ton_prize_nano <= 0 and not has_jetton:
            return None
        if has_jetton:
            tag = f"{format_decimal(state.jetton_prize)} {state.jetton_prize_symbol}"
        elif state.tier is not None:
            tag = state.tier
        else:
            tag = state.ton_prize_tag or TON_PRIZE_TAG
        return Prize(
            ton_amount=nano_to_ton(state.ton_prize_nano) if state.ton_prize_nano > 0 else None,
            jetton_amount=state.jetton_prize if has_jetton else None,
            jetton_symbol=state.jetton_prize_symbol if has_jetton else None,
            tag=tag,
            multiplier=PRIZE_MAP.get(state.tier) if state.tier else None,
            code=state.prize_code,
        )

    def _build_referral(self, state: _ScanState, trace: Trace) -> Referral | None:
        token = None
        if state.token_referral is not None and state.token_referral > 0:
            percent = Decimal(state.token_referral_percent) if state.token_referral_percent is not None else None
            token = Referral(
                state.token_referral, state.token_referral_symbol or DEFAULT_JETTON_SYMBOL,
                state.token_referral_to, percent,
            )
        native = None
        if state.native_referral_nano > 0:
            amount = nano_to_ton(state.native_referral_nano)
            native = Referral(amount, NATIVE_SYMBOL, state.native_referral_to, self._native_percent(amount, state))
        if token is not None and native is not None:
            keep = native if self.referral_policy is ReferralPolicy.PREFER_NATIVE else token
            logger.warning(
                "classifier_referral_conflict",
                trace_id=trace.trace_id,
                policy=self.referral_policy.value,
                kept=keep.currency,
                recipient=short(keep.recipient),
            )
            return keep
        return token or native

    @staticmethod
    def _native_percent(amount: Decimal, state: _ScanState) -> Decimal | None:
        purchase = state.purchase
        if purchase is None or purchase.currency != NATIVE_SYMBOL or purchase.amount <= 0:
            return None
        try:
            return (amount / purchase.amount * 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        except InvalidOperation:
            # ratio wider than the decimal context; keep the referral, drop the percent
            logger.warning("classifier_referral_percent_overflow", amount=format_decimal(amount))
            return None
