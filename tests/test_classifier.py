"""
Tests for the trace classifier: purchase / prize / referral / mint extraction,
trace-fatal failures and determinism.
"""

from __future__ import annotations

import json
from decimal import Decimal
from unittest.mock import patch

from builders import (
    COLLECTION,
    CONTRACT,
    JETTON_MASTER,
    NFT_ITEM,
    PARTICIPANT,
    REFERRER,
    ROOT_HASH,
    STRANGER,
    build_trace,
    call_contract,
    friendly,
    jetton_v2,
    jetton_v3,
    nft_mint,
    payload_b64,
    token_metadata,
    ton_transfer,
)
from lottery_indexer.classifier.engine import (
    CSV_FIELDS,
    TraceClassifier,
    is_payout_claim,
    payout_tier,
)
from lottery_indexer.config.settings import ReferralPolicy
from lottery_indexer.ton.constants import OP_PRIZE, OP_REFERRAL
from lottery_indexer.ton.models import TokenRegistry
from lottery_indexer.ton.units import to_smallest_unit

ONE_TON = 1_000_000_000


def test_plain_purchase(native_classifier):
    trace = build_trace([ton_transfer(PARTICIPANT, CONTRACT, ONE_TON)], start_lt=4242)
    record = native_classifier.classify(trace)
    assert record is not None
    assert record.participant == PARTICIPANT
    assert record.tx_hash == ROOT_HASH.hex()
    assert record.lt == 4242
    assert record.purchase.amount == Decimal("1")
    assert record.purchase.currency == "TON"
    assert record.prize is None
    assert record.mint is None
    assert record.is_win is False


def test_purchase_amount_round_trips(native_classifier):
    amount = 123_456_789_012
    record = native_classifier.classify(build_trace([ton_transfer(PARTICIPANT, CONTRACT, amount)]))
    assert record.purchase.amount == Decimal("123.456789012")
    assert to_smallest_unit(record.purchase.amount) == amount


def test_addresses_compared_after_normalization(native_classifier):
    trace = build_trace(
        [ton_transfer(friendly(PARTICIPANT, bounceable=False), friendly(CONTRACT, url_safe=False), ONE_TON)],
        participant=friendly(PARTICIPANT, testnet=True),
    )
    record = native_classifier.classify(trace)
    assert record.participant == PARTICIPANT
    assert record.purchase is not None


def test_first_purchase_wins(native_classifier):
    trace = build_trace([
        ton_transfer(PARTICIPANT, CONTRACT, ONE_TON),
        ton_transfer(PARTICIPANT, CONTRACT, 2 * ONE_TON),
    ])
    assert native_classifier.classify(trace).purchase.amount == Decimal("1")


def test_forged_payout_comment_is_not_a_purchase(native_classifier):
    trace = build_trace([ton_transfer(PARTICIPANT, CONTRACT, ONE_TON, comment="x20")])
    assert native_classifier.classify(trace) is None


def test_noise_trace_returns_none(native_classifier):
    trace = build_trace([
        ton_transfer(STRANGER, REFERRER, ONE_TON),
        {"type": "contract_deploy", "details": {"source": PARTICIPANT}},
    ])
    assert native_classifier.classify(trace) is None
    assert native_classifier.classify(build_trace([])) is None


def test_non_numeric_mint_index_drops_trace(native_classifier):
    trace = build_trace([
        ton_transfer(PARTICIPANT, CONTRACT, ONE_TON),
        nft_mint(index="abc"),
    ])
    assert native_classifier.classify(trace) is None


def test_mint_is_recorded(native_classifier):
    trace = build_trace([ton_transfer(PARTICIPANT, CONTRACT, ONE_TON), nft_mint(index="7")])
    mint = native_classifier.classify(trace).mint
    assert (mint.nft_address, mint.collection_address, mint.index) == (NFT_ITEM, COLLECTION, 7)


def test_mint_with_bad_address_only_drops_mint(native_classifier):
    trace = build_trace([ton_transfer(PARTICIPANT, CONTRACT, ONE_TON), nft_mint(item="not-an-address")])
    record = native_classifier.classify(trace)
    assert record.mint is None
    assert record.purchase is not None


def test_unparsable_action_address_only_drops_signal(native_classifier):
    trace = build_trace([ton_transfer(PARTICIPANT, "???", ONE_TON), nft_mint()])
    record = native_classifier.classify(trace)
    assert record.purchase is None
    assert record.mint is not None


def test_invalid_participant_drops_trace(native_classifier):
    trace = build_trace([ton_transfer(PARTICIPANT, CONTRACT, ONE_TON)], participant="garbage")
    assert native_classifier.classify(trace) is None


def test_missing_root_hash_drops_trace(native_classifier):
    trace = build_trace([ton_transfer(PARTICIPANT, CONTRACT, ONE_TON)], tx_hash=None, trace_id=None)
    assert native_classifier.classify(trace) is None


def test_native_opcode_prizes_accumulate(jetton_classifier):
    trace = build_trace([
        call_contract(CONTRACT, PARTICIPANT, ONE_TON // 2, OP_PRIZE),
        call_contract(CONTRACT, PARTICIPANT, ONE_TON // 2, "0x5052495a"),
    ])
    record = jetton_classifier.classify(trace)
    assert record.is_win
    assert record.prize.ton_amount == Decimal("1")
    assert record.prize.tag == "TON PRIZE"


def test_comment_prize_on_native_contract(native_classifier, jetton_classifier):
    trace = build_trace([
        ton_transfer(PARTICIPANT, CONTRACT, ONE_TON),
        ton_transfer(CONTRACT, PARTICIPANT, 7 * ONE_TON, comment=" X7 "),
    ])
    prize = native_classifier.classify(trace).prize
    assert prize.tag == "x7"
    assert prize.multiplier == 7
    assert prize.ton_amount == Decimal("7")
    # Comment payouts are a native-contract convention only
    assert jetton_classifier.classify(trace).prize is None


def test_token_prize_uses_payload_and_metadata(jetton_classifier):
    tokens = TokenRegistry()
    tokens.merge_metadata(token_metadata(decimals="6", symbol="LOT"))
    trace = build_trace([
        jetton_v3(CONTRACT, PARTICIPANT, 5_000_000, forward_payload=payload_b64(OP_PRIZE, 3)),
        jetton_v3(CONTRACT, PARTICIPANT, 2_500_000, forward_payload=payload_b64(OP_PRIZE, 4)),
    ])
    prize = jetton_classifier.classify(trace, tokens).prize
    assert prize.jetton_amount == Decimal("7.5")
    assert prize.jetton_symbol == "LOT"
    assert prize.code == 3
    assert prize.tag == "7.5 LOT"
    assert prize.ton_amount is None


def test_token_payout_to_someone_else_is_not_a_prize(jetton_classifier):
    trace = build_trace([jetton_v3(CONTRACT, STRANGER, 5, forward_payload=payload_b64(OP_PRIZE, 1))])
    assert jetton_classifier.classify(trace) is None


def test_malformed_payload_does_not_abort_trace(jetton_classifier):
    trace = build_trace([
        jetton_v3(CONTRACT, PARTICIPANT, 5, forward_payload="!!garbage!!"),
        jetton_v3(PARTICIPANT, CONTRACT, 10),
    ])
    record = jetton_classifier.classify(trace)
    assert record.prize is None
    assert record.purchase is not None


def test_jetton_purchase_v2_layout(jetton_classifier):
    trace = build_trace([jetton_v2(PARTICIPANT, CONTRACT, 3 * ONE_TON, symbol="LOT", decimals=9)])
    purchase = jetton_classifier.classify(trace).purchase
    assert purchase.amount == Decimal("3")
    assert purchase.currency == "LOT"
    assert purchase.master_address == JETTON_MASTER


def _referral_trace():
    return build_trace([
        ton_transfer(PARTICIPANT, CONTRACT, ONE_TON),
        jetton_v3(CONTRACT, REFERRER, 100_000_000, forward_payload=payload_b64(OP_REFERRAL, 10)),
        call_contract(CONTRACT, REFERRER, ONE_TON // 10, OP_REFERRAL),
    ])


def test_token_referral_preferred_by_default():
    classifier = TraceClassifier(CONTRACT)
    referral = classifier.classify(_referral_trace()).referral
    assert referral.currency == "JETTON"
    assert referral.amount == Decimal("0.1")
    assert referral.percent == Decimal(10)
    assert referral.recipient == REFERRER


def test_native_referral_policy():
    classifier = TraceClassifier(CONTRACT, referral_policy=ReferralPolicy.PREFER_NATIVE)
    referral = classifier.classify(_referral_trace()).referral
    assert referral.currency == "TON"
    assert referral.amount == Decimal("0.1")
    assert referral.percent == Decimal("10.00")


def test_referral_conflict_is_logged_as_warning():
    with patch("lottery_indexer.classifier.engine.logger") as log:
        TraceClassifier(CONTRACT).classify(_referral_trace())
    events = [c.args[0] for c in log.warning.call_args_list]
    assert "classifier_referral_conflict" in events


def test_oversized_referral_keeps_amount_without_percent(native_classifier):
    trace = build_trace([
        ton_transfer(PARTICIPANT, CONTRACT, 1),
        call_contract(CONTRACT, PARTICIPANT, 10**40, OP_REFERRAL),
    ])
    record = native_classifier.classify(trace)
    assert record is not None
    assert record.referral.currency == "TON"
    assert record.referral.amount == Decimal(10**40).scaleb(-9)
    assert record.referral.percent is None
    assert record.to_row()["referral_amount"]


def test_referral_comment_on_native_contract(native_classifier):
    trace = build_trace([ton_transfer(CONTRACT, REFERRER, ONE_TON // 20, comment="referral")])
    referral = native_classifier.classify(trace).referral
    assert referral.recipient == REFERRER
    assert referral.percent is None


def test_classification_is_deterministic(native_classifier):
    trace = build_trace([
        ton_transfer(PARTICIPANT, CONTRACT, ONE_TON),
        ton_transfer(CONTRACT, PARTICIPANT, 3 * ONE_TON, comment="x3"),
        nft_mint(),
    ])
    first = json.dumps(native_classifier.classify(trace).to_row(), default=str)
    second = json.dumps(native_classifier.classify(trace).to_row(), default=str)
    assert first == second


def test_row_columns_follow_csv_order(native_classifier):
    record = native_classifier.classify(build_trace([ton_transfer(PARTICIPANT, CONTRACT, ONE_TON)]))
    row = record.to_row()
    assert tuple(row) == CSV_FIELDS
    assert row["is_fake"] is None


def test_payout_claim_patterns():
    for comment in ("x20", "X1", " jp ", "JACKPOT", "win now", "Prize!", "x200"):
        assert is_payout_claim(comment), comment
    for comment in (None, "", "hello", "good luck", "x", "jpx", "referral"):
        assert not is_payout_claim(comment), comment
    assert payout_tier("JP") == "jp"
    assert payout_tier("x5") is None
