"""
Configuration management for the lottery indexer.

Loads and validates settings from environment variables and an optional
.env file. Exposes a single source of truth for contract, paging and
storage configuration.
"""

from lottery_indexer.config.settings import (  # noqa: F401
    ContractVariant,
    ReferralPolicy,
    Settings,
    get_settings,
)

__all__ = ["ContractVariant", "ReferralPolicy", "Settings", "get_settings"]
