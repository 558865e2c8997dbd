"""Pytest configuration shared by the investor-identity tests.

Settings are read from the process environment, so every test starts from
an environment with none of the pipeline's variables set.
"""
from __future__ import annotations

import pytest

_SETTINGS_ENV = (
    "INVESTOR_ID",
    "BTC_WALLET_ADDRESS",
    "ETH_WALLET_ADDRESS",
    "SOL_WALLET_ADDRESS",
    "ION_NODE_ENDPOINT",
    "FIREBLOCKS_API_KEY",
    "FIREBLOCKS_SECRET_KEY_PATH",
    "FIREBLOCKS_BASE_URL",
    "VAULT_ACCOUNT_ID",
    "SETTLEMENT_ASSET_ID",
    "SETTLEMENT_AMOUNT",
    "POLL_INTERVAL_SECONDS",
    "MAX_WAIT_SECONDS",
    "HTTP_TIMEOUT_SECONDS",
    "EXPLORER_TX_URL",
    "DATA_DIR",
)


@pytest.fixture(autouse=True)
def clean_settings_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
