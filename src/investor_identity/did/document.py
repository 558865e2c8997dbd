"""IdentifierDocument — the initial document content of an investor's ``did:ion``.

The document carries exactly one authentication key and one
``InvestorProfile`` service whose endpoint embeds the investor id and the
three wallet addresses verbatim::

    {
      "publicKeys": [{"id": "auth-key-1",
                      "type": "EcdsaSecp256k1VerificationKey2019",
                      "publicKeyJwk": {...},
                      "purposes": ["authentication"]}],
      "services": [{"id": "investor-profile",
                    "type": "InvestorProfile",
                    "serviceEndpoint": {"id": "inv-1", "btc": "tb1...",
                                        "eth": "0x...", "sol": "..."}}]
    }

Specification reference
-----------------------
Sidetree document content model:
https://identity.foundation/sidetree/spec/#add-public-keys
"""
from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, Field, model_validator

AUTH_KEY_ID: str = "auth-key-1"
AUTH_KEY_TYPE: str = "EcdsaSecp256k1VerificationKey2019"
INVESTOR_SERVICE_ID: str = "investor-profile"
INVESTOR_SERVICE_TYPE: str = "InvestorProfile"

_ALLOWED_PURPOSES = frozenset(
    {"authentication", "assertionMethod", "capabilityInvocation", "capabilityDelegation", "keyAgreement"}
)

NETWORK_LABELS: dict[str, str] = {
    "bitcoin": "Bitcoin Testnet",
    "ethereum": "Ethereum Sepolia",
    "solana": "Solana Devnet",
}


# ------------------------------------------------------------------
# Wallet addresses
# ------------------------------------------------------------------


@dataclass(frozen=True)
class WalletAddresses:
    """The investor's wallet addresses on the three bound chains.

    Values are taken as given; :mod:`investor_identity.did.builder` decides
    which ones are missing and which look unusual.
    """

    bitcoin: str | None = None
    ethereum: str | None = None
    solana: str | None = None

    def items(self) -> list[tuple[str, str | None]]:
        """Return ``(chain, address)`` pairs in a fixed order."""
        return [
            ("bitcoin", self.bitcoin),
            ("ethereum", self.ethereum),
            ("solana", self.solana),
        ]

    def to_dict(self) -> dict[str, str | None]:
        return dict(self.items())

    @classmethod
    def from_dict(cls, data: dict[str, str | None]) -> WalletAddresses:
        return cls(
            bitcoin=data.get("bitcoin"),
            ethereum=data.get("ethereum"),
            solana=data.get("solana"),
        )


# ------------------------------------------------------------------
# Public key entry
# ------------------------------------------------------------------


@dataclass(frozen=True)
class PublicKeyEntry:
    """A public key published in the document.

    Parameters
    ----------
    id:
        Fragment identifier of the key (e.g. ``auth-key-1``).
    type:
        Verification method type.
    public_key:
        Public JWK.
    purposes:
        Verification relationships the key is authorized for.
    """

    id: str
    type: str
    public_key: dict[str, str]
    purposes: tuple[str, ...] = ("authentication",)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("PublicKeyEntry.id must not be empty.")
        if not self.public_key:
            raise ValueError("PublicKeyEntry.public_key must not be empty.")
        unknown = set(self.purposes) - _ALLOWED_PURPOSES
        if unknown:
            raise ValueError(f"Unsupported key purposes: {sorted(unknown)}")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "type": self.type,
            "publicKeyJwk": dict(self.public_key),
            "purposes": list(self.purposes),
        }


# ------------------------------------------------------------------
# Service entry
# ------------------------------------------------------------------


@dataclass(frozen=True)
class ServiceEntry:
    """A service advertised in the document."""

    id: str
    type: str
    endpoint: dict[str, str | None] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("ServiceEntry.id must not be empty.")
        if not self.type:
            raise ValueError("ServiceEntry.type must not be empty.")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "type": self.type,
            "serviceEndpoint": dict(self.endpoint),
        }


# ------------------------------------------------------------------
# Identifier document (Pydantic v2)
# ------------------------------------------------------------------


class IdentifierDocument(BaseModel):
    """Initial document content for a ``did:ion`` create operation.

    Parameters
    ----------
    public_keys:
        Keys published in the document. Exactly one must carry the
        ``authentication`` purpose.
    services:
        Service endpoints published in the document.
    """

    public_keys: list[PublicKeyEntry] = Field(default_factory=list)
    services: list[ServiceEntry] = Field(default_factory=list)

    @model_validator(mode="after")
    def _exactly_one_authentication_key(self) -> "IdentifierDocument":
        auth_keys = [k for k in self.public_keys if "authentication" in k.purposes]
        if len(auth_keys) != 1:
            raise ValueError(
                f"IdentifierDocument requires exactly one authentication key, "
                f"got {len(auth_keys)}."
            )
        return self

    @classmethod
    def for_investor(
        cls,
        investor_id: str,
        wallets: WalletAddresses,
        authentication_key: dict[str, str],
    ) -> "IdentifierDocument":
        """Assemble the standard investor document."""
        return cls(
            public_keys=[
                PublicKeyEntry(
                    id=AUTH_KEY_ID,
                    type=AUTH_KEY_TYPE,
                    public_key=authentication_key,
                    purposes=("authentication",),
                )
            ],
            services=[
                ServiceEntry(
                    id=INVESTOR_SERVICE_ID,
                    type=INVESTOR_SERVICE_TYPE,
                    endpoint={
                        "id": investor_id,
                        "btc": wallets.bitcoin,
                        "eth": wallets.ethereum,
                        "sol": wallets.solana,
                    },
                )
            ],
        )

    def to_content(self) -> dict[str, object]:
        """Serialize to Sidetree document content (camelCase keys)."""
        return {
            "publicKeys": [k.to_dict() for k in self.public_keys],
            "services": [s.to_dict() for s in self.services],
        }


__all__ = [
    "AUTH_KEY_ID",
    "AUTH_KEY_TYPE",
    "INVESTOR_SERVICE_ID",
    "INVESTOR_SERVICE_TYPE",
    "NETWORK_LABELS",
    "IdentifierDocument",
    "PublicKeyEntry",
    "ServiceEntry",
    "WalletAddresses",
]
