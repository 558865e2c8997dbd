"""Tests for investor_identity.settlement.transaction — status, merge and manager."""
from __future__ import annotations

import hashlib
from typing import Any

import pytest

from investor_identity.crypto.encoding import canonical_json_bytes
from investor_identity.errors import SigningServiceError
from investor_identity.settlement.transaction import (
    AnchoringMetadata,
    SettlementTransaction,
    SettlementTransactionManager,
    TransactionStatus,
    normalize_status,
)

OPERATION = {"type": "create", "suffixData": {"deltaHash": "a"}, "delta": {"patches": []}}
BTC = "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeCustodian:
    """Custodial client returning canned responses and recording requests."""

    def __init__(
        self,
        created: dict[str, Any] | None = None,
        current: dict[str, Any] | None = None,
        error: Exception | None = None,
        vault_error: Exception | None = None,
    ) -> None:
        self.created = created or {"id": "tx-1", "status": "SUBMITTED"}
        self.current = current or {"id": "tx-1", "status": "PENDING_SIGNATURE"}
        self.error = error
        self.vault_error = vault_error
        self.requests: list[dict[str, Any]] = []
        self.vault_lookups: list[str] = []

    async def get_vault_account(self, vault_account_id: str) -> dict[str, Any]:
        self.vault_lookups.append(vault_account_id)
        if self.vault_error is not None:
            raise self.vault_error
        return {"id": vault_account_id, "name": "Treasury"}

    async def create_transaction(self, request: dict[str, Any]) -> dict[str, Any]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.created

    async def get_transaction(self, transaction_id: str) -> dict[str, Any]:
        return self.current


def _tx(status: TransactionStatus, tx_hash: str | None = None) -> SettlementTransaction:
    return SettlementTransaction(
        id="tx-1", status=status, amount="0.00001", asset_id="BTC_TEST", tx_hash=tx_hash
    )


@pytest.fixture()
def metadata() -> AnchoringMetadata:
    return AnchoringMetadata(investor_id="inv-1", short_form="did:ion:EiAbc", operation=OPERATION)


# ---------------------------------------------------------------------------
# Status normalization
# ---------------------------------------------------------------------------


class TestNormalizeStatus:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("COMPLETED", TransactionStatus.COMPLETED),
            ("FAILED", TransactionStatus.FAILED),
            ("CANCELLED", TransactionStatus.FAILED),
            ("BLOCKED", TransactionStatus.FAILED),
            ("TIMEOUT", TransactionStatus.FAILED),
            ("REJECTED", TransactionStatus.REJECTED),
            ("SUBMITTED", TransactionStatus.SUBMITTED),
            ("BROADCASTING", TransactionStatus.PENDING),
            ("CONFIRMING", TransactionStatus.PENDING),
            (None, TransactionStatus.PENDING),
        ],
    )
    def test_mapping(self, raw: str | None, expected: TransactionStatus) -> None:
        assert normalize_status(raw) is expected

    def test_terminal_states(self) -> None:
        assert TransactionStatus.COMPLETED.is_terminal
        assert TransactionStatus.REJECTED.is_failure
        assert not TransactionStatus.PENDING.is_terminal


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


class TestMerge:
    def test_status_moves_forward(self) -> None:
        merged = _tx(TransactionStatus.SUBMITTED).merge(_tx(TransactionStatus.PENDING))
        assert merged.status is TransactionStatus.PENDING

    def test_status_never_moves_backward(self) -> None:
        merged = _tx(TransactionStatus.PENDING).merge(_tx(TransactionStatus.SUBMITTED))
        assert merged.status is TransactionStatus.PENDING

    def test_terminal_status_is_final(self) -> None:
        merged = _tx(TransactionStatus.COMPLETED).merge(_tx(TransactionStatus.FAILED))
        assert merged.status is TransactionStatus.COMPLETED

    def test_hash_arrives_after_creation(self) -> None:
        merged = _tx(TransactionStatus.SUBMITTED).merge(_tx(TransactionStatus.PENDING, "abc"))
        assert merged.tx_hash == "abc"

    def test_empty_hash_never_overwrites(self) -> None:
        merged = _tx(TransactionStatus.PENDING, "abc").merge(_tx(TransactionStatus.PENDING, None))
        assert merged.tx_hash == "abc"

    def test_known_hash_never_changes(self) -> None:
        merged = _tx(TransactionStatus.PENDING, "abc").merge(
            _tx(TransactionStatus.COMPLETED, "def")
        )
        assert merged.tx_hash == "abc"
        assert merged.status is TransactionStatus.COMPLETED

    def test_other_transaction_is_rejected(self) -> None:
        other = SettlementTransaction("tx-2", TransactionStatus.PENDING, "1", "BTC_TEST")
        with pytest.raises(ValueError):
            _tx(TransactionStatus.PENDING).merge(other)

    def test_explorer_url_requires_hash(self) -> None:
        assert _tx(TransactionStatus.PENDING).explorer_url() is None
        assert _tx(TransactionStatus.PENDING, "abc").explorer_url() == (
            "https://blockstream.info/testnet/tx/abc"
        )

    def test_round_trips_through_dict(self) -> None:
        original = _tx(TransactionStatus.COMPLETED, "abc")
        assert SettlementTransaction.from_dict(original.to_dict()) == original


# ---------------------------------------------------------------------------
# SettlementTransactionManager
# ---------------------------------------------------------------------------


class TestSettlementTransactionManager:
    @pytest.mark.asyncio
    async def test_create_transaction_builds_dust_self_transfer(
        self, metadata: AnchoringMetadata
    ) -> None:
        custodian = FakeCustodian()
        manager = SettlementTransactionManager(custodian, "7", clock_ms=lambda: 1234)

        transaction = await manager.create_transaction(BTC, metadata)

        assert transaction.id == "tx-1"
        assert transaction.status is TransactionStatus.SUBMITTED
        request = custodian.requests[0]
        assert request["amount"] == "0.00001"
        assert request["assetId"] == "BTC_TEST"
        assert request["source"] == {"type": "VAULT_ACCOUNT", "id": "7"}
        assert request["destination"]["oneTimeAddress"]["address"] == BTC
        assert request["note"] == "ION DID Anchoring for inv-1"
        assert request["externalTxId"] == "ion-anchor-1234"

    @pytest.mark.asyncio
    async def test_note_carries_operation_digest(self, metadata: AnchoringMetadata) -> None:
        custodian = FakeCustodian()
        manager = SettlementTransactionManager(custodian, "7")
        await manager.create_transaction(BTC, metadata)

        digest = hashlib.sha256(canonical_json_bytes(OPERATION)).hexdigest()
        note = custodian.requests[0]["extraParameters"]["note"]
        assert "did:ion:EiAbc" in note
        assert digest[:16] in note
        assert manager.operation_digest(OPERATION) == digest

    @pytest.mark.asyncio
    async def test_rejection_propagates(self, metadata: AnchoringMetadata) -> None:
        custodian = FakeCustodian(error=SigningServiceError("vault mismatch", status_code=400))
        manager = SettlementTransactionManager(custodian, "7")
        with pytest.raises(SigningServiceError):
            await manager.create_transaction(BTC, metadata)

    @pytest.mark.asyncio
    async def test_missing_source_address(self, metadata: AnchoringMetadata) -> None:
        manager = SettlementTransactionManager(FakeCustodian(), "7")
        with pytest.raises(SigningServiceError):
            await manager.create_transaction("", metadata)

    @pytest.mark.asyncio
    async def test_get_status_keeps_raw_status(self) -> None:
        manager = SettlementTransactionManager(FakeCustodian(), "7")
        transaction = await manager.get_status("tx-1")
        assert transaction.status is TransactionStatus.PENDING
        assert transaction.raw_status == "PENDING_SIGNATURE"

    @pytest.mark.asyncio
    async def test_check_vault_looks_up_source_account(self) -> None:
        custodian = FakeCustodian()
        manager = SettlementTransactionManager(custodian, "7")
        account = await manager.check_vault()
        assert custodian.vault_lookups == ["7"]
        assert account["name"] == "Treasury"

    @pytest.mark.asyncio
    async def test_check_vault_failure_propagates(self) -> None:
        custodian = FakeCustodian(vault_error=SigningServiceError("unknown vault", status_code=404))
        manager = SettlementTransactionManager(custodian, "7")
        with pytest.raises(SigningServiceError):
            await manager.check_vault()
