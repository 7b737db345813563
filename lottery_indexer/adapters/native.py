"""Native-coin lottery: payouts and referrals are TON transfers with text comments."""

from __future__ import annotations

from lottery_indexer.adapters.base import ContractAdapter
from lottery_indexer.config.settings import ContractVariant


class NativeCoinAdapter(ContractAdapter):
    variant = ContractVariant.TON
    comment_signals = True
