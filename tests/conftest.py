"""
Pytest fixtures for lottery indexer tests: settings for a test contract,
a clean environment, and classifier / validator instances.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from structlog.testing import LogCapture

from builders import CONTRACT
from lottery_indexer.classifier.engine import TraceClassifier
from lottery_indexer.classifier.validator import TransactionValidator
from lottery_indexer.config.settings import ContractVariant, Settings
from lottery_indexer.lottery_logging.logger import configure_structlog

_ENV_VARS = (
    "TONCENTER_API_URL",
    "TONCENTER_API_KEY",
    "TON_NETWORK",
    "TON_CONTRACT_ADDRESS",
    "CONTRACT_TYPE",
    "PAGE_LIMIT",
    "PAGE_DELAY_SEC",
    "REQUEST_TIMEOUT_SEC",
    "MAX_RETRIES",
    "REFERRAL_POLICY",
    "DATA_DIR",
    "CSV_PATH",
    "STATE_PATH",
)

MISSING_ENV_FILE = Path("/nonexistent/lottery-indexer/.env")


@pytest.fixture
def clean_env(monkeypatch):
    """Unset every variable the settings layer reads, and skip the project .env file."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("lottery_indexer.config.env._ENV_PATH", MISSING_ENV_FILE)
    return monkeypatch


@pytest.fixture
def settings(tmp_path):
    return Settings(
        api_endpoint="https://toncenter.test/api/v3",
        contract_address=CONTRACT,
        contract_variant=ContractVariant.TON,
        page_limit=2,
        page_delay_sec=0.0,
        max_retries=2,
        data_dir=tmp_path,
        csv_path=tmp_path / "lottery.csv",
        state_path=tmp_path / "state.json",
    )


@pytest.fixture
def native_classifier():
    return TraceClassifier(CONTRACT, comment_signals=True)


@pytest.fixture
def jetton_classifier():
    return TraceClassifier(CONTRACT, comment_signals=False)


@pytest.fixture
def validator():
    return TransactionValidator(CONTRACT)


@pytest.fixture
def captured_logs():
    """Route every structlog event into a list for the duration of the test."""
    capture = LogCapture()
    configure_structlog(renderer=capture)
    yield capture.entries
    configure_structlog()
