"""Process-wide configuration for the investor identity pipeline.

Settings are read from the environment and, when present, a ``.env`` file
in the working directory. Variable names match the ones the wallet
extraction and DID scripts already write (``INVESTOR_ID``,
``BTC_WALLET_ADDRESS`` ...), so no prefix is applied.

The pipeline consumes configuration but never owns it: missing values are
reported up front by :meth:`Settings.require_identifier_inputs` and
:meth:`Settings.require_anchoring_inputs` before any stage runs.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from investor_identity.errors import ValidationError

DEFAULT_ION_NODE_ENDPOINT = "https://beta.ion.msidentity.com"
DEFAULT_FIREBLOCKS_BASE_URL = "https://sandbox-api.fireblocks.io"

OptionalStr = Annotated[Optional[str], Field(default=None)]


class Settings(BaseSettings):
    """Pipeline settings parsed from the environment."""

    # Investor and wallets
    investor_id: OptionalStr
    btc_wallet_address: OptionalStr
    eth_wallet_address: OptionalStr
    sol_wallet_address: OptionalStr

    # Anchoring network
    ion_node_endpoint: str = DEFAULT_ION_NODE_ENDPOINT

    # Custodial signing service
    fireblocks_api_key: Annotated[
        Optional[SecretStr],
        Field(default=None, description="Custodial API key, redacted from logs"),
    ]
    fireblocks_secret_key_path: Optional[Path] = None
    fireblocks_base_url: str = DEFAULT_FIREBLOCKS_BASE_URL
    vault_account_id: OptionalStr

    # Settlement and polling policy
    settlement_asset_id: str = "BTC_TEST"
    settlement_amount: str = "0.00001"
    poll_interval_seconds: Annotated[float, Field(default=30.0, gt=0)]
    max_wait_seconds: Annotated[float, Field(default=600.0, gt=0)]
    http_timeout_seconds: Annotated[float, Field(default=30.0, gt=0)]
    explorer_tx_url: str = "https://blockstream.info/testnet/tx/"

    # Checkpoints
    data_dir: Path = Path("./data")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
    )

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def challenge_endpoint(self) -> str:
        """Proof-of-work challenge endpoint of the ION node."""
        return f"{self.ion_node_endpoint.rstrip('/')}/api/v1.0/proof-of-work-challenge"

    @property
    def solution_endpoint(self) -> str:
        """Operation submission endpoint of the ION node."""
        return f"{self.ion_node_endpoint.rstrip('/')}/api/v1.0/operations"

    def wallet_addresses(self) -> dict[str, str | None]:
        """Return the configured wallet addresses keyed by chain."""
        return {
            "bitcoin": self.btc_wallet_address,
            "ethereum": self.eth_wallet_address,
            "solana": self.sol_wallet_address,
        }

    # ------------------------------------------------------------------
    # Precondition checks
    # ------------------------------------------------------------------

    def require_identifier_inputs(self) -> None:
        """Raise ValidationError unless an investor id is configured."""
        _require({"INVESTOR_ID": self.investor_id})

    def require_anchoring_inputs(self) -> None:
        """Raise ValidationError naming every value the anchoring stages need."""
        api_key = self.fireblocks_api_key.get_secret_value() if self.fireblocks_api_key else ""
        _require(
            {
                "INVESTOR_ID": self.investor_id,
                "BTC_WALLET_ADDRESS": self.btc_wallet_address,
                "FIREBLOCKS_API_KEY": api_key,
                "FIREBLOCKS_SECRET_KEY_PATH": str(self.fireblocks_secret_key_path or ""),
                "VAULT_ACCOUNT_ID": self.vault_account_id,
            }
        )


def _require(values: dict[str, str | None]) -> None:
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ValidationError(
            f"Missing required configuration: {', '.join(missing)}.",
            missing=missing,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings singleton."""
    return Settings()


__all__ = [
    "DEFAULT_FIREBLOCKS_BASE_URL",
    "DEFAULT_ION_NODE_ENDPOINT",
    "Settings",
    "get_settings",
]
