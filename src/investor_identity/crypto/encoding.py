"""Canonical JSON, multihash and base64url helpers used by Sidetree operations.

All hashing in the ION method is SHA-256 wrapped as a multihash
(``0x12`` algorithm code, ``0x20`` digest length) and rendered as
unpadded base64url. JSON is canonicalized with RFC 8785 (JCS) before
hashing so that the same content always yields the same digest.
"""
from __future__ import annotations

import base64
import hashlib

import rfc8785

_SHA256_MULTIHASH_PREFIX: bytes = b"\x12\x20"


def canonical_json_bytes(value: object) -> bytes:
    """Serialize *value* with RFC 8785 JSON canonicalization."""
    return rfc8785.dumps(value)


def base64url_encode(data: bytes) -> str:
    """Encode *data* as base64url without ``=`` padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def base64url_decode(encoded: str) -> bytes:
    """Decode an unpadded base64url string."""
    padding = "=" * (-len(encoded) % 4)
    return base64.urlsafe_b64decode(encoded + padding)


def sha256_multihash(data: bytes) -> bytes:
    """Return the SHA-256 multihash of *data* (34 bytes)."""
    return _SHA256_MULTIHASH_PREFIX + hashlib.sha256(data).digest()


def hash_then_encode(data: bytes) -> str:
    """Multihash *data* and base64url-encode the result."""
    return base64url_encode(sha256_multihash(data))


def canonicalize_then_hash_then_encode(value: object) -> str:
    """JCS-canonicalize *value*, multihash it, and base64url-encode the result."""
    return hash_then_encode(canonical_json_bytes(value))


def canonicalize_then_double_hash_then_encode(value: object) -> str:
    """Compute a Sidetree commitment for *value*.

    The canonical bytes are hashed once with plain SHA-256 and the raw
    digest is then multihashed and encoded.
    """
    intermediate = hashlib.sha256(canonical_json_bytes(value)).digest()
    return hash_then_encode(intermediate)


__all__ = [
    "base64url_decode",
    "base64url_encode",
    "canonical_json_bytes",
    "canonicalize_then_double_hash_then_encode",
    "canonicalize_then_hash_then_encode",
    "hash_then_encode",
    "sha256_multihash",
]
