"""Jetton lottery: payouts and referrals are token transfers with an opcode forward payload."""

from __future__ import annotations

from lottery_indexer.adapters.base import ContractAdapter
from lottery_indexer.config.settings import ContractVariant


class JettonAdapter(ContractAdapter):
    variant = ContractVariant.JETTON
    comment_signals = False
