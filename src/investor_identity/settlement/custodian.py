"""Custodial signing service client (Fireblocks REST API).

Every request is authenticated with two headers:

``X-API-Key``
    The API key.
``Authorization: Bearer <jwt>``
    An RS256 JWT signed with the API user's private key, carrying::

        {"uri": "/v1/transactions", "nonce": "<uuid4>", "iat": 1700000000,
         "exp": 1700000055, "sub": "<api key>", "bodyHash": "<sha256 hex>"}

The body hash covers the exact bytes sent (the empty string for GET).

Example
-------
::

    client = FireblocksClient.from_settings(get_settings())
    created = await client.create_transaction({...})
    current = await client.get_transaction(created["id"])
"""
from __future__ import annotations

import hashlib
import json
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Any, Callable, Protocol, runtime_checkable

import httpx
import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from investor_identity.config import Settings
from investor_identity.errors import SigningServiceError, ValidationError

logger = logging.getLogger(__name__)

TOKEN_LIFETIME_SECONDS = 55

_VERSION_SUFFIX = re.compile(r"/v\d+$")


@runtime_checkable
class CustodialClient(Protocol):
    """The remote transaction API consumed by the settlement manager."""

    async def get_vault_account(self, vault_account_id: str) -> dict[str, Any]:
        """Return the vault account record; fails on bad credentials or vault id."""
        ...

    async def create_transaction(self, request: dict[str, Any]) -> dict[str, Any]:
        """Create a transaction and return ``{"id": ..., "status": ...}``."""
        ...

    async def get_transaction(self, transaction_id: str) -> dict[str, Any]:
        """Return the current transaction record."""
        ...


class FireblocksClient:
    """Minimal async client for the Fireblocks transaction API.

    Parameters
    ----------
    api_key:
        Fireblocks API key.
    private_key_pem:
        PEM-encoded RSA private key of the API user.
    base_url:
        API base URL (sandbox or production). A trailing API version such
        as ``/v1`` is dropped; request paths carry it.
    timeout:
        Per-request timeout in seconds.
    clock:
        Wall clock used for token ``iat`` claims.
    """

    def __init__(
        self,
        api_key: str,
        private_key_pem: bytes | str,
        base_url: str = "https://sandbox-api.fireblocks.io",
        timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not api_key:
            raise ValidationError("Custodial API key is required.", missing=["FIREBLOCKS_API_KEY"])
        self._api_key = api_key
        self._private_key = _load_signing_key(private_key_pem)
        self._base_url = _VERSION_SUFFIX.sub("", base_url.rstrip("/"))
        self._timeout = timeout
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> FireblocksClient:
        """Build a client from settings, reading the secret key file.

        Raises
        ------
        ValidationError
            If the API key or secret key path is not configured.
        SigningServiceError
            If the secret key file cannot be read or is not an RSA private key.
        """
        settings.require_anchoring_inputs()
        key_path = Path(settings.fireblocks_secret_key_path)  # type: ignore[arg-type]
        try:
            private_key_pem = key_path.read_bytes()
        except OSError as exc:
            raise SigningServiceError(
                f"Cannot read custodial secret key {str(key_path)!r}: {exc}"
            ) from exc
        return cls(
            api_key=settings.fireblocks_api_key.get_secret_value(),  # type: ignore[union-attr]
            private_key_pem=private_key_pem,
            base_url=settings.fireblocks_base_url,
            timeout=settings.http_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------

    async def get_vault_account(self, vault_account_id: str) -> dict[str, Any]:
        """Fetch a vault account; used as a connectivity and credentials check."""
        return await self._request("GET", f"/v1/vault/accounts/{vault_account_id}")

    async def create_transaction(self, request: dict[str, Any]) -> dict[str, Any]:
        return await self._request("POST", "/v1/transactions", request)

    async def get_transaction(self, transaction_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/v1/transactions/{transaction_id}")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def sign_request(self, path: str, body: bytes = b"") -> str:
        """Return the bearer token for a request to *path* with *body*."""
        issued_at = int(self._clock())
        claims = {
            "uri": path,
            "nonce": str(uuid.uuid4()),
            "iat": issued_at,
            "exp": issued_at + TOKEN_LIFETIME_SECONDS,
            "sub": self._api_key,
            "bodyHash": hashlib.sha256(body).hexdigest(),
        }
        try:
            return jwt.encode(claims, self._private_key, algorithm="RS256")
        except (jwt.PyJWTError, ValueError, TypeError) as exc:
            raise SigningServiceError(f"Could not sign custodial request: {exc}") from exc

    async def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        body = json.dumps(payload).encode("utf-8") if payload is not None else b""
        headers = {
            "X-API-Key": self._api_key,
            "Authorization": f"Bearer {self.sign_request(path, body)}",
        }
        if payload is not None:
            headers["Content-Type"] = "application/json"

        logger.debug("%s %s", method, path)
        try:
            async with httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout) as client:
                response = await client.request(method, path, content=body or None, headers=headers)
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SigningServiceError(
                f"Custodial service rejected {method} {path}: "
                f"HTTP {exc.response.status_code} {exc.response.text[:200]}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.TransportError as exc:
            raise SigningServiceError(f"Custodial service unreachable: {exc}") from exc

        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise SigningServiceError(f"Custodial service returned non-JSON for {path}.") from exc
        if not isinstance(data, dict):
            raise SigningServiceError(f"Unexpected response shape for {path}.")
        return data


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _load_signing_key(private_key_pem: bytes | str) -> rsa.RSAPrivateKey:
    data = private_key_pem.encode("utf-8") if isinstance(private_key_pem, str) else private_key_pem
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise SigningServiceError(
            f"Custodial secret key is not a usable PEM private key: {exc}"
        ) from exc
    if not isinstance(key, rsa.RSAPrivateKey):
        raise SigningServiceError("Custodial secret key must be an RSA private key.")
    return key


__all__ = ["TOKEN_LIFETIME_SECONDS", "CustodialClient", "FireblocksClient"]
