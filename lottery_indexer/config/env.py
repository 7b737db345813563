"""
Environment variable loading for the lottery indexer.

- TONCENTER_API_URL: toncenter v3 endpoint (default: testnet)
- TONCENTER_API_KEY: optional API key
- TON_CONTRACT_ADDRESS: lottery contract account
- CONTRACT_TYPE: ton | jetton
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is lottery_indexer/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"

TESTNET_API_URL = "https://testnet.toncenter.com/api/v3"
MAINNET_API_URL = "https://toncenter.com/api/v3"

_TRUTHY = ("1", "true", "yes", "on")


def load_lottery_env() -> None:
    """Load .env from project root. Safe to call multiple times; real env vars win."""
    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH, override=False)


def env_str(name: str, default: str | None = None) -> str | None:
    """Return a stripped env value, or default when unset or blank."""
    raw = (os.getenv(name) or "").strip()
    return raw or default


def env_flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in _TRUTHY


def get_api_endpoint() -> str:
    """
    Resolve toncenter API URL.
    Order: TONCENTER_API_URL > TON_NETWORK=mainnet > testnet default.
    """
    load_lottery_env()
    url = env_str("TONCENTER_API_URL")
    if url:
        return url.rstrip("/")
    network = (env_str("TON_NETWORK", "testnet") or "testnet").lower()
    return MAINNET_API_URL if network == "mainnet" else TESTNET_API_URL


def mask_api_key(key: str | None) -> str:
    if not key:
        return ""
    return key[:4] + "***" if len(key) > 4 else "***"
