"""
Adapter factory: pick the contract adapter from configuration.

The registry maps each ContractVariant to its adapter class; there is no
fallback and no detection from on-chain data.
"""

from __future__ import annotations

from lottery_indexer.adapters.base import ContractAdapter
from lottery_indexer.adapters.client import ToncenterClient
from lottery_indexer.adapters.jetton import JettonAdapter
from lottery_indexer.adapters.native import NativeCoinAdapter
from lottery_indexer.config.settings import ContractVariant, Settings
from lottery_indexer.core.exceptions import ConfigurationError
from lottery_indexer.lottery_logging import get_logger

logger = get_logger(__name__)

ADAPTERS: dict[ContractVariant, type[ContractAdapter]] = {
    ContractVariant.TON: NativeCoinAdapter,
    ContractVariant.JETTON: JettonAdapter,
}


def create_adapter(settings: Settings, client: ToncenterClient | None = None) -> ContractAdapter:
    """Build the adapter for settings.contract_variant; ConfigurationError if unregistered."""
    adapter_cls = ADAPTERS.get(settings.contract_variant)
    if adapter_cls is None:
        raise ConfigurationError(f"No adapter registered for variant {settings.contract_variant!r}")
    adapter = adapter_cls(settings, client)
    logger.info("adapter_created", **adapter.describe())
    return adapter
