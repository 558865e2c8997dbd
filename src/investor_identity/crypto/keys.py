"""Key material for the three ION key roles.

:class:`Secp256k1Crypto` is the default cryptographic capability: it
generates secp256k1 key pairs as JSON Web Keys and computes SHA-256 hex
digests, using the ``cryptography`` package. :class:`KeyMaterialProvider`
calls a capability once per role and validates its output; it never
persists anything.

Example
-------
::

    provider = KeyMaterialProvider(Secp256k1Crypto())
    keys = provider.generate_all()
    keys.update.public_key["crv"]   # "secp256k1"
"""
from __future__ import annotations

import enum
import hashlib
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from cryptography.hazmat.primitives.asymmetric import ec

from investor_identity.crypto.encoding import base64url_encode
from investor_identity.errors import KeyGenerationError

logger = logging.getLogger(__name__)

_COORDINATE_BYTES = 32


class KeyRole(str, enum.Enum):
    """The role a key pair plays in the ION operation set."""

    AUTHENTICATION = "authentication"
    UPDATE = "update"
    RECOVERY = "recovery"


@runtime_checkable
class CryptoCapability(Protocol):
    """Key generation and hashing primitives consumed by the pipeline."""

    def generate_key_pair(self) -> dict[str, dict[str, str]]:
        """Return ``{"publicKey": <jwk>, "privateKey": <jwk>}``."""
        ...

    def digest(self, data: bytes) -> str:
        """Return the hex digest of *data*."""
        ...


class Secp256k1Crypto:
    """secp256k1 JWK key generation and SHA-256 digests."""

    def generate_key_pair(self) -> dict[str, dict[str, str]]:
        private_key = ec.generate_private_key(ec.SECP256K1())
        numbers = private_key.private_numbers()
        public_jwk = {
            "kty": "EC",
            "crv": "secp256k1",
            "x": _encode_int(numbers.public_numbers.x),
            "y": _encode_int(numbers.public_numbers.y),
        }
        private_jwk = dict(public_jwk, d=_encode_int(numbers.private_value))
        return {"publicKey": public_jwk, "privateKey": private_jwk}

    def digest(self, data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()


def _encode_int(value: int) -> str:
    return base64url_encode(value.to_bytes(_COORDINATE_BYTES, "big"))


@dataclass(frozen=True)
class KeyPair:
    """A JWK key pair bound to a role.

    Parameters
    ----------
    role:
        Which ION role the pair serves.
    public_key:
        Public JWK. Safe to publish.
    private_key:
        Private JWK. Must be persisted apart from shareable data.
    """

    role: KeyRole
    public_key: dict[str, str]
    private_key: dict[str, str]

    def to_dict(self, include_private: bool = True) -> dict[str, object]:
        """Serialize to a plain dictionary; private material only on request."""
        data: dict[str, object] = {"role": self.role.value, "publicKeyJwk": self.public_key}
        if include_private:
            data["privateKeyJwk"] = self.private_key
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> KeyPair:
        """Rebuild a key pair from :meth:`to_dict` output."""
        return cls(
            role=KeyRole(str(data["role"])),
            public_key=dict(data["publicKeyJwk"]),  # type: ignore[arg-type]
            private_key=dict(data.get("privateKeyJwk") or {}),  # type: ignore[arg-type]
        )


@dataclass(frozen=True)
class KeySet:
    """The authentication, update and recovery key pairs of one identifier."""

    authentication: KeyPair
    update: KeyPair
    recovery: KeyPair

    def __iter__(self) -> Iterator[KeyPair]:
        return iter((self.authentication, self.update, self.recovery))

    def to_dict(self, include_private: bool = True) -> dict[str, object]:
        return {pair.role.value: pair.to_dict(include_private) for pair in self}

    def public_keys(self) -> dict[str, dict[str, str]]:
        """Return the public JWK of each role."""
        return {pair.role.value: pair.public_key for pair in self}

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> KeySet:
        pairs = {role: KeyPair.from_dict(data[role.value]) for role in KeyRole}  # type: ignore[arg-type]
        return cls(
            authentication=pairs[KeyRole.AUTHENTICATION],
            update=pairs[KeyRole.UPDATE],
            recovery=pairs[KeyRole.RECOVERY],
        )


class KeyMaterialProvider:
    """Produce validated key pairs through an injected capability.

    Parameters
    ----------
    crypto:
        The capability used for key generation. Defaults to
        :class:`Secp256k1Crypto`.
    """

    def __init__(self, crypto: CryptoCapability | None = None) -> None:
        self._crypto: CryptoCapability = crypto or Secp256k1Crypto()

    def generate(self, role: KeyRole) -> KeyPair:
        """Generate one key pair for *role*.

        Raises
        ------
        KeyGenerationError
            If the capability raises or returns a pair without both a
            non-empty public and private key.
        """
        try:
            raw = self._crypto.generate_key_pair()
        except Exception as exc:
            raise KeyGenerationError(
                f"Key generation failed for role {role.value!r}: {exc}"
            ) from exc

        public_key = raw.get("publicKey") if isinstance(raw, dict) else None
        private_key = raw.get("privateKey") if isinstance(raw, dict) else None
        if not public_key or not private_key:
            raise KeyGenerationError(
                f"Cryptographic capability returned a malformed key pair for role "
                f"{role.value!r}: publicKey and privateKey are both required."
            )

        logger.debug("Generated %s key pair (kty=%s)", role.value, public_key.get("kty"))
        return KeyPair(role=role, public_key=dict(public_key), private_key=dict(private_key))

    def generate_all(self) -> KeySet:
        """Generate the authentication, update and recovery key pairs."""
        return KeySet(
            authentication=self.generate(KeyRole.AUTHENTICATION),
            update=self.generate(KeyRole.UPDATE),
            recovery=self.generate(KeyRole.RECOVERY),
        )


__all__ = [
    "CryptoCapability",
    "KeyMaterialProvider",
    "KeyPair",
    "KeyRole",
    "KeySet",
    "Secp256k1Crypto",
]
