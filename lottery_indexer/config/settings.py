"""
Application settings and environment configuration.

Responsibilities:
- Load configuration from environment variables and .env files.
- Validate required settings (contract account, contract variant) and provide
  defaults for optional ones.
- Expose typed settings for the adapter, coordinator and storage layers.

The contract variant is never inferred from data: picking the wrong adapter
silently classifies nothing, so it must be configured explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from lottery_indexer.config.env import (
    env_str,
    get_api_endpoint,
    load_lottery_env,
    mask_api_key,
)
from lottery_indexer.core.exceptions import ConfigurationError, InvalidAddress
from lottery_indexer.ton.address import normalize_address

DEFAULT_PAGE_LIMIT = 50
MAX_PAGE_LIMIT = 1000
DEFAULT_PAGE_DELAY_SEC = 1.0
DEFAULT_REQUEST_TIMEOUT_SEC = 10.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_DATA_DIR = "data"


class ContractVariant(str, Enum):
    """Which lottery contract flavour the configured account runs."""

    TON = "ton"
    JETTON = "jetton"

    @classmethod
    def parse(cls, raw: str | None) -> "ContractVariant":
        value = (raw or "").strip().lower()
        if not value:
            raise ConfigurationError("CONTRACT_TYPE is required (ton | jetton)")
        # Accept the upper-case spelling used by older deployments
        for member in cls:
            if member.value == value:
                return member
        raise ConfigurationError(f"Unknown CONTRACT_TYPE {raw!r}; expected ton | jetton")


class ReferralPolicy(str, Enum):
    """
    Which referral wins when a trace carries both a native-coin and a token referral.
    """

    PREFER_TOKEN = "prefer_token"
    PREFER_NATIVE = "prefer_native"

    @classmethod
    def parse(cls, raw: str | None) -> "ReferralPolicy":
        value = (raw or cls.PREFER_TOKEN.value).strip().lower()
        for member in cls:
            if member.value == value:
                return member
        raise ConfigurationError(
            f"Unknown REFERRAL_POLICY {raw!r}; expected prefer_token | prefer_native"
        )


def _parse_int(name: str, raw: str | None, default: int, *, low: int, high: int | None = None) -> int:
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e
    if value < low or (high is not None and value > high):
        bound = f"between {low} and {high}" if high is not None else f">= {low}"
        raise ConfigurationError(f"{name} must be {bound}, got {value}")
    return value


def _parse_float(name: str, raw: str | None, default: float, *, low: float = 0.0) -> float:
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e
    if value < low:
        raise ConfigurationError(f"{name} must be >= {low}, got {value}")
    return value


@dataclass(frozen=True)
class Settings:
    """Validated configuration for one indexer run."""

    api_endpoint: str
    contract_address: str
    contract_variant: ContractVariant
    api_key: str | None = None
    page_limit: int = DEFAULT_PAGE_LIMIT
    page_delay_sec: float = DEFAULT_PAGE_DELAY_SEC
    request_timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC
    max_retries: int = DEFAULT_MAX_RETRIES
    referral_policy: ReferralPolicy = ReferralPolicy.PREFER_TOKEN
    data_dir: Path = Path(DEFAULT_DATA_DIR)
    csv_path: Path = Path(DEFAULT_DATA_DIR) / "lottery.csv"
    state_path: Path = Path(DEFAULT_DATA_DIR) / "state.json"

    def __post_init__(self) -> None:
        try:
            normalize_address(self.contract_address)
        except InvalidAddress as e:
            raise ConfigurationError(f"TON_CONTRACT_ADDRESS is not a valid address: {e.reason}") from e
        if not (1 <= self.page_limit <= MAX_PAGE_LIMIT):
            raise ConfigurationError(f"page_limit must be between 1 and {MAX_PAGE_LIMIT}")
        if self.page_delay_sec < 0:
            raise ConfigurationError("page_delay_sec must be >= 0")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment (after loading .env)."""
        load_lottery_env()
        contract = env_str("TON_CONTRACT_ADDRESS")
        if not contract:
            raise ConfigurationError("TON_CONTRACT_ADDRESS is required")
        data_dir = Path(env_str("DATA_DIR", DEFAULT_DATA_DIR) or DEFAULT_DATA_DIR)
        return cls(
            api_endpoint=get_api_endpoint(),
            api_key=env_str("TONCENTER_API_KEY"),
            contract_address=contract,
            contract_variant=ContractVariant.parse(env_str("CONTRACT_TYPE")),
            page_limit=_parse_int(
                "PAGE_LIMIT", env_str("PAGE_LIMIT"), DEFAULT_PAGE_LIMIT, low=1, high=MAX_PAGE_LIMIT
            ),
            page_delay_sec=_parse_float(
                "PAGE_DELAY_SEC", env_str("PAGE_DELAY_SEC"), DEFAULT_PAGE_DELAY_SEC
            ),
            request_timeout_sec=_parse_float(
                "REQUEST_TIMEOUT_SEC", env_str("REQUEST_TIMEOUT_SEC"), DEFAULT_REQUEST_TIMEOUT_SEC, low=0.1
            ),
            max_retries=_parse_int("MAX_RETRIES", env_str("MAX_RETRIES"), DEFAULT_MAX_RETRIES, low=1),
            referral_policy=ReferralPolicy.parse(env_str("REFERRAL_POLICY")),
            data_dir=data_dir,
            csv_path=Path(env_str("CSV_PATH") or data_dir / "lottery.csv"),
            state_path=Path(env_str("STATE_PATH") or data_dir / "state.json"),
        )

    def to_log_dict(self) -> dict[str, Any]:
        """Settings as log fields with the API key masked."""
        return {
            "api_endpoint": self.api_endpoint,
            "api_key": mask_api_key(self.api_key),
            "contract_address": self.contract_address,
            "contract_variant": self.contract_variant.value,
            "page_limit": self.page_limit,
            "page_delay_sec": self.page_delay_sec,
            "referral_policy": self.referral_policy.value,
            "csv_path": str(self.csv_path),
            "state_path": str(self.state_path),
        }


def get_settings() -> Settings:
    """
    Return the current application settings.

    Raises:
        ConfigurationError: when required values are missing or invalid.
    """
    return Settings.from_env()
