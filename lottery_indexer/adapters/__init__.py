"""
Contract adapters: toncenter paging client and the per-variant classify binding.
"""

from lottery_indexer.adapters.base import ContractAdapter
from lottery_indexer.adapters.client import ToncenterClient, TracePage
from lottery_indexer.adapters.factory import ADAPTERS, create_adapter
from lottery_indexer.adapters.jetton import JettonAdapter
from lottery_indexer.adapters.native import NativeCoinAdapter

__all__ = [
    "ADAPTERS",
    "ContractAdapter",
    "JettonAdapter",
    "NativeCoinAdapter",
    "ToncenterClient",
    "TracePage",
    "create_adapter",
]
