"""
Fraud validator: heuristic forgery detection over a classified trace.

Runs independently of the classifier on the same trace and participant.
Conclusive forgery evidence:
- a coin transfer participant -> contract whose comment looks like a payout
  (x20, jp, jackpot, win..., prize...); real payouts only flow contract -> participant
- a contract call participant -> contract carrying a protected opcode
  (prize or referral), which only the contract itself may send

Otherwise the score starts at 100 and genuine signals add bounded bonuses
(purchase +10, payout +20, mint +10), capped at 100. The uncapped sum is kept
as raw_score so callers can rank traces that all sit at the cap.

This is pattern matching, not proof: it cannot verify contract-side logic,
and a user comment that happens to match a tier code is flagged on purpose.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from lottery_indexer.classifier.engine import is_payout_claim, normalize_comment, payout_tier
from lottery_indexer.lottery_logging import get_logger
from lottery_indexer.ton.address import normalize_address, try_normalize_address
from lottery_indexer.ton.constants import OP_PRIZE, OP_REFERRAL, PROTECTED_OPCODES, REFERRAL_COMMENT
from lottery_indexer.ton.models import ActionType, Trace
from lottery_indexer.ton.payload import decode_forward_payload

logger = get_logger(__name__)

BASELINE_SCORE = 100
MAX_SCORE = 100
PURCHASE_BONUS = 10
PAYOUT_BONUS = 20
MINT_BONUS = 10


@dataclass
class ValidationChecks:
    has_real_purchase: bool = False
    has_win_payment_from_contract: bool = False
    has_referral_from_contract: bool = False
    has_legitimate_nft_mint: bool = False
    has_fake_win_comment: bool = False
    has_protected_opcode_from_user: bool = False

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)


@dataclass
class ValidationResult:
    """Verdict for one trace; validation_score is in [0, 100]."""

    is_fake: bool
    fake_reason: str | None
    validation_score: int
    raw_score: int
    checks: ValidationChecks = field(default_factory=ValidationChecks)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_fake": self.is_fake,
            "fake_reason": self.fake_reason,
            "validation_score": self.validation_score,
            "raw_score": self.raw_score,
            "checks": self.checks.to_dict(),
        }


def is_win_comment(comment: str | None) -> bool:
    return payout_tier(comment) is not None


def validate_win_claim(user_comment: str | None, contract_payment: int, contract_comment: str | None) -> bool:
    """A win is plausible only if the user did not claim it and the contract paid a known tier."""
    if is_payout_claim(user_comment):
        return False
    return contract_payment > 0 and is_win_comment(contract_comment)


class TransactionValidator:
    """Evaluates every action of a trace against one lottery contract."""

    def __init__(self, contract_address: str) -> None:
        self.contract = normalize_address(contract_address)

    def validate_trace(self, trace: Trace, participant: str | None) -> ValidationResult:
        checks = ValidationChecks()
        participant_n = try_normalize_address(participant)
        if participant_n is None:
            return ValidationResult(True, "Invalid participant address", 0, 0, checks)

        comment_reason: str | None = None
        opcode_reason: str | None = None

        for action in trace.actions:
            flow = action.flow()
            source = try_normalize_address(flow.source)
            destination = try_normalize_address(flow.destination)
            from_user = source == participant_n and destination == self.contract
            from_contract = source == self.contract
            comment = flow.comment.strip() if isinstance(flow.comment, str) else None

            if action.type is ActionType.COIN_TRANSFER and from_user and is_payout_claim(comment):
                checks.has_fake_win_comment = True
                if comment_reason is None:
                    comment_reason = (
                        f'User sent suspicious comment "{comment}" to contract - possible exploitation attempt'
                    )

            if (
                action.type is ActionType.CONTRACT_CALL
                and from_user
                and flow.opcode in PROTECTED_OPCODES
            ):
                checks.has_protected_opcode_from_user = True
                if opcode_reason is None:
                    opcode_reason = f"User sent system opcode 0x{flow.opcode:08x} - exploitation attempt"

            if from_user and flow.amount > 0 and not is_payout_claim(comment):
                checks.has_real_purchase = True

            if from_contract and destination == participant_n and flow.amount > 0:
                op = decode_forward_payload(flow.forward_payload)
                if is_win_comment(comment) or flow.opcode == OP_PRIZE or (op is not None and op.is_prize):
                    checks.has_win_payment_from_contract = True

            if from_contract and flow.amount > 0:
                op = decode_forward_payload(flow.forward_payload)
                if (
                    flow.opcode == OP_REFERRAL
                    or (op is not None and op.is_referral)
                    or normalize_comment(comment) == REFERRAL_COMMENT
                ):
                    checks.has_referral_from_contract = True

            if action.type is ActionType.NFT_MINT:
                checks.has_legitimate_nft_mint = True

        reason = comment_reason or opcode_reason
        if reason is not None:
            logger.warning(
                "validator_forgery_detected",
                trace_id=trace.trace_id,
                reason=reason,
                fake_comment=checks.has_fake_win_comment,
                protected_opcode=checks.has_protected_opcode_from_user,
            )
            return ValidationResult(True, reason, 0, 0, checks)

        raw = BASELINE_SCORE
        if checks.has_real_purchase:
            raw += PURCHASE_BONUS
        if checks.has_win_payment_from_contract:
            raw += PAYOUT_BONUS
        if checks.has_legitimate_nft_mint:
            raw += MINT_BONUS
        score = max(0, min(MAX_SCORE, raw))
        return ValidationResult(False, None, score, raw, checks)

    def has_legit_purchase(self, trace: Trace, participant: str | None) -> bool:
        """Participant -> contract transfer with positive value and a non-forged comment."""
        participant_n = try_normalize_address(participant)
        if participant_n is None:
            return False
        for action in trace.actions:
            flow = action.flow()
            if (
                try_normalize_address(flow.source) == participant_n
                and try_normalize_address(flow.destination) == self.contract
                and flow.amount > 0
                and not is_payout_claim(flow.comment)
            ):
                return True
        return False

    validate_win_claim = staticmethod(validate_win_claim)
