"""Tests for investor_identity.settlement.custodian — FireblocksClient."""
from __future__ import annotations

import hashlib
import json
from pathlib import Path

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from pytest_httpx import HTTPXMock

from investor_identity.config import Settings
from investor_identity.errors import SigningServiceError, ValidationError
from investor_identity.settlement.custodian import CustodialClient, FireblocksClient

BASE_URL = "https://custody.example.test"
API_KEY = "api-key-123"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="module")
def private_pem(rsa_key: rsa.RSAPrivateKey) -> bytes:
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="module")
def public_pem(rsa_key: rsa.RSAPrivateKey) -> bytes:
    return rsa_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@pytest.fixture()
def client(private_pem: bytes) -> FireblocksClient:
    return FireblocksClient(API_KEY, private_pem, base_url=BASE_URL)


def _claims(request: httpx.Request, public_pem: bytes) -> dict[str, object]:
    token = request.headers["Authorization"].removeprefix("Bearer ")
    return jwt.decode(token, public_pem, algorithms=["RS256"])


# ---------------------------------------------------------------------------
# Request signing
# ---------------------------------------------------------------------------


class TestRequestSigning:
    def test_satisfies_custodial_protocol(self, client: FireblocksClient) -> None:
        assert isinstance(client, CustodialClient)

    def test_empty_api_key_is_rejected(self, private_pem: bytes) -> None:
        with pytest.raises(ValidationError):
            FireblocksClient("", private_pem)

    def test_token_claims(self, private_pem: bytes, public_pem: bytes) -> None:
        client = FireblocksClient(API_KEY, private_pem, clock=lambda: 1_700_000_000.0)
        token = client.sign_request("/v1/transactions", b'{"a":1}')
        claims = jwt.decode(
            token, public_pem, algorithms=["RS256"], options={"verify_exp": False}
        )
        assert claims["uri"] == "/v1/transactions"
        assert claims["sub"] == API_KEY
        assert claims["iat"] == 1_700_000_000
        assert claims["exp"] == 1_700_000_055
        assert claims["bodyHash"] == hashlib.sha256(b'{"a":1}').hexdigest()

    def test_nonce_differs_per_token(self, client: FireblocksClient, public_pem: bytes) -> None:
        first = jwt.decode(client.sign_request("/x"), public_pem, algorithms=["RS256"])
        second = jwt.decode(client.sign_request("/x"), public_pem, algorithms=["RS256"])
        assert first["nonce"] != second["nonce"]

    def test_non_pem_key_is_signing_error(self) -> None:
        with pytest.raises(SigningServiceError, match="PEM private key"):
            FireblocksClient(API_KEY, b"not a pem key")

    def test_public_key_is_signing_error(self, public_pem: bytes) -> None:
        with pytest.raises(SigningServiceError):
            FireblocksClient(API_KEY, public_pem)

    def test_non_rsa_key_is_signing_error(self) -> None:
        ec_pem = ec.generate_private_key(ec.SECP256R1()).private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        with pytest.raises(SigningServiceError, match="RSA"):
            FireblocksClient(API_KEY, ec_pem)

    def test_accepts_text_pem(self, private_pem: bytes) -> None:
        client = FireblocksClient(API_KEY, private_pem.decode("ascii"))
        assert client.sign_request("/x")


# ---------------------------------------------------------------------------
# API calls
# ---------------------------------------------------------------------------


class TestTransactions:
    @pytest.mark.asyncio
    async def test_create_transaction_posts_signed_body(
        self, client: FireblocksClient, public_pem: bytes, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/v1/transactions",
            json={"id": "tx-1", "status": "SUBMITTED"},
        )

        created = await client.create_transaction({"assetId": "BTC_TEST", "amount": "0.00001"})

        assert created == {"id": "tx-1", "status": "SUBMITTED"}
        request = httpx_mock.get_request()
        assert request is not None
        assert request.headers["X-API-Key"] == API_KEY
        assert json.loads(request.content)["assetId"] == "BTC_TEST"
        claims = _claims(request, public_pem)
        assert claims["uri"] == "/v1/transactions"
        assert claims["bodyHash"] == hashlib.sha256(request.content).hexdigest()

    @pytest.mark.asyncio
    async def test_get_transaction_signs_empty_body(
        self, client: FireblocksClient, public_pem: bytes, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="GET",
            url=f"{BASE_URL}/v1/transactions/tx-1",
            json={"id": "tx-1", "status": "COMPLETED", "txHash": "ab" * 32},
        )

        current = await client.get_transaction("tx-1")

        assert current["txHash"] == "ab" * 32
        request = httpx_mock.get_request()
        assert request is not None
        assert _claims(request, public_pem)["bodyHash"] == hashlib.sha256(b"").hexdigest()

    @pytest.mark.asyncio
    async def test_vault_account_lookup(
        self, client: FireblocksClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="GET",
            url=f"{BASE_URL}/v1/vault/accounts/0",
            json={"id": "0", "name": "Treasury"},
        )
        assert (await client.get_vault_account("0"))["name"] == "Treasury"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("suffix", ["/v1", "/v1/"])
    async def test_versioned_base_url_is_not_doubled(
        self, private_pem: bytes, public_pem: bytes, httpx_mock: HTTPXMock, suffix: str
    ) -> None:
        client = FireblocksClient(API_KEY, private_pem, base_url=BASE_URL + suffix)
        httpx_mock.add_response(
            method="GET",
            url=f"{BASE_URL}/v1/transactions/t",
            json={"id": "t", "status": "PENDING_SIGNATURE"},
        )

        await client.get_transaction("t")

        request = httpx_mock.get_request()
        assert request is not None
        assert str(request.url) == f"{BASE_URL}/v1/transactions/t"
        assert _claims(request, public_pem)["uri"] == "/v1/transactions/t"

    @pytest.mark.asyncio
    async def test_rejection_carries_status_code(
        self, client: FireblocksClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="POST",
            url=f"{BASE_URL}/v1/transactions",
            status_code=401,
            json={"message": "Unauthorized"},
        )
        with pytest.raises(SigningServiceError) as excinfo:
            await client.create_transaction({})
        assert excinfo.value.status_code == 401

    @pytest.mark.asyncio
    async def test_unreachable_service(
        self, client: FireblocksClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_exception(httpx.ConnectError("refused"))
        with pytest.raises(SigningServiceError, match="unreachable"):
            await client.get_transaction("tx-1")


# ---------------------------------------------------------------------------
# from_settings
# ---------------------------------------------------------------------------


class TestFromSettings:
    def _settings(self, **overrides: object) -> Settings:
        values: dict[str, object] = {
            "investor_id": "inv-1",
            "btc_wallet_address": "tb1qexample",
            "fireblocks_api_key": API_KEY,
            "vault_account_id": "0",
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)  # type: ignore[arg-type]

    def test_reads_secret_key_file(self, tmp_path: Path, private_pem: bytes) -> None:
        key_path = tmp_path / "fireblocks.key"
        key_path.write_bytes(private_pem)
        client = FireblocksClient.from_settings(self._settings(fireblocks_secret_key_path=key_path))
        assert client.sign_request("/x")

    def test_key_file_that_is_not_pem(self, tmp_path: Path) -> None:
        key_path = tmp_path / "fireblocks.key"
        key_path.write_text("not a pem key", encoding="utf-8")
        settings = self._settings(fireblocks_secret_key_path=key_path)
        with pytest.raises(SigningServiceError, match="secret key"):
            FireblocksClient.from_settings(settings)

    def test_unreadable_key_file(self, tmp_path: Path) -> None:
        settings = self._settings(fireblocks_secret_key_path=tmp_path / "missing.key")
        with pytest.raises(SigningServiceError, match="secret key"):
            FireblocksClient.from_settings(settings)

    def test_missing_configuration_is_named(self) -> None:
        with pytest.raises(ValidationError) as excinfo:
            FireblocksClient.from_settings(self._settings(fireblocks_api_key=None))
        assert "FIREBLOCKS_API_KEY" in excinfo.value.missing
        assert "FIREBLOCKS_SECRET_KEY_PATH" in excinfo.value.missing
