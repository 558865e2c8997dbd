"""investor_identity.crypto — key material and Sidetree encoding helpers."""
from __future__ import annotations

from investor_identity.crypto.encoding import (
    base64url_decode,
    base64url_encode,
    canonical_json_bytes,
)
from investor_identity.crypto.keys import (
    CryptoCapability,
    KeyMaterialProvider,
    KeyPair,
    KeyRole,
    KeySet,
    Secp256k1Crypto,
)

__all__ = [
    "CryptoCapability",
    "KeyMaterialProvider",
    "KeyPair",
    "KeyRole",
    "KeySet",
    "Secp256k1Crypto",
    "base64url_decode",
    "base64url_encode",
    "canonical_json_bytes",
]
