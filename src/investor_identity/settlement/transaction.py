"""Settlement transactions carrying anchoring metadata.

The settlement transaction is a dust-amount self-transfer from the
investor's vault to its own Bitcoin address. Its purpose is to carry a
note referencing the identifier and a digest of the create operation,
not to move value.

Lifecycle::

    SUBMITTED -> PENDING -> COMPLETED
                         -> FAILED | REJECTED

Status only moves forward, and once a transaction hash is known it never
changes for the same transaction id.
"""
from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Callable

from investor_identity.crypto.encoding import canonical_json_bytes
from investor_identity.crypto.keys import CryptoCapability, Secp256k1Crypto
from investor_identity.errors import SigningServiceError
from investor_identity.settlement.custodian import CustodialClient

logger = logging.getLogger(__name__)

DEFAULT_ASSET_ID = "BTC_TEST"
DEFAULT_AMOUNT = "0.00001"
DEFAULT_EXPLORER_TX_URL = "https://blockstream.info/testnet/tx/"

_FAILURE_STATUSES = frozenset({"FAILED", "CANCELLED", "BLOCKED", "TIMEOUT"})


class TransactionStatus(str, enum.Enum):
    """Normalized settlement transaction status."""

    SUBMITTED = "SUBMITTED"
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self in (
            TransactionStatus.COMPLETED,
            TransactionStatus.FAILED,
            TransactionStatus.REJECTED,
        )

    @property
    def is_failure(self) -> bool:
        return self in (TransactionStatus.FAILED, TransactionStatus.REJECTED)

    @property
    def rank(self) -> int:
        if self is TransactionStatus.SUBMITTED:
            return 0
        if self is TransactionStatus.PENDING:
            return 1
        return 2


def normalize_status(raw_status: str | None) -> TransactionStatus:
    """Map a custodial service status onto :class:`TransactionStatus`."""
    value = (raw_status or "").upper()
    if value == "COMPLETED":
        return TransactionStatus.COMPLETED
    if value == "REJECTED":
        return TransactionStatus.REJECTED
    if value in _FAILURE_STATUSES:
        return TransactionStatus.FAILED
    if value == "SUBMITTED":
        return TransactionStatus.SUBMITTED
    return TransactionStatus.PENDING


# ------------------------------------------------------------------
# Transaction record
# ------------------------------------------------------------------


@dataclass(frozen=True)
class SettlementTransaction:
    """A settlement transaction as tracked by the pipeline.

    Parameters
    ----------
    id:
        Custodial transaction id.
    status:
        Normalized status.
    amount:
        Amount as a decimal string.
    asset_id:
        Custodial asset identifier (e.g. ``BTC_TEST``).
    tx_hash:
        Ledger transaction hash, once broadcast.
    raw_status:
        Status exactly as the custodial service reported it.
    """

    id: str
    status: TransactionStatus
    amount: str
    asset_id: str
    tx_hash: str | None = None
    raw_status: str = ""

    @classmethod
    def from_response(
        cls,
        data: dict[str, Any],
        amount: str = DEFAULT_AMOUNT,
        asset_id: str = DEFAULT_ASSET_ID,
    ) -> SettlementTransaction:
        """Build a record from a custodial create or get response."""
        transaction_id = data.get("id")
        if not transaction_id:
            raise SigningServiceError("Custodial response has no transaction id.")
        raw_status = str(data.get("status") or "")
        return cls(
            id=str(transaction_id),
            status=normalize_status(raw_status),
            amount=str(data.get("amount") or amount),
            asset_id=str(data.get("assetId") or asset_id),
            tx_hash=data.get("txHash") or None,
            raw_status=raw_status,
        )

    def merge(self, observed: SettlementTransaction) -> SettlementTransaction:
        """Fold a newer observation of the same transaction into this record.

        Status never moves backward and never leaves a terminal state. A
        known hash is never replaced: an empty observed hash is ignored and
        a different one is logged and ignored.
        """
        if observed.id != self.id:
            raise ValueError(f"Cannot merge transaction {observed.id!r} into {self.id!r}.")

        status, raw_status = self.status, self.raw_status
        if not self.status.is_terminal and observed.status.rank >= self.status.rank:
            status, raw_status = observed.status, observed.raw_status

        tx_hash = self.tx_hash
        if not tx_hash:
            tx_hash = observed.tx_hash or None
        elif observed.tx_hash and observed.tx_hash != tx_hash:
            logger.warning(
                "Transaction %s reported hash %s after %s; keeping the first",
                self.id,
                observed.tx_hash,
                tx_hash,
            )
        return replace(self, status=status, raw_status=raw_status, tx_hash=tx_hash)

    def explorer_url(self, base_url: str = DEFAULT_EXPLORER_TX_URL) -> str | None:
        if not self.tx_hash:
            return None
        return f"{base_url}{self.tx_hash}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "rawStatus": self.raw_status,
            "txHash": self.tx_hash,
            "amount": self.amount,
            "assetId": self.asset_id,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SettlementTransaction:
        return cls(
            id=str(data["id"]),
            status=TransactionStatus(data["status"]),
            amount=str(data["amount"]),
            asset_id=str(data["assetId"]),
            tx_hash=data.get("txHash") or None,
            raw_status=str(data.get("rawStatus") or ""),
        )


@dataclass(frozen=True)
class AnchoringMetadata:
    """What the settlement transaction's note refers to."""

    investor_id: str
    short_form: str
    operation: dict[str, Any]


# ------------------------------------------------------------------
# Manager
# ------------------------------------------------------------------


class SettlementTransactionManager:
    """Create and query settlement transactions through a custodial client.

    Parameters
    ----------
    client:
        The custodial transaction API.
    vault_account_id:
        Source vault account.
    crypto:
        Digest capability used for the operation hash in the note.
    asset_id:
        Asset to transfer.
    amount:
        Dust amount to transfer.
    clock_ms:
        Millisecond clock used for the external transaction id.
    """

    def __init__(
        self,
        client: CustodialClient,
        vault_account_id: str,
        crypto: CryptoCapability | None = None,
        asset_id: str = DEFAULT_ASSET_ID,
        amount: str = DEFAULT_AMOUNT,
        clock_ms: Callable[[], int] | None = None,
    ) -> None:
        self._client = client
        self._vault_account_id = vault_account_id
        self._crypto: CryptoCapability = crypto or Secp256k1Crypto()
        self._asset_id = asset_id
        self._amount = amount
        self._clock_ms = clock_ms or (lambda: int(time.time() * 1000))

    async def check_vault(self) -> dict[str, Any]:
        """Look up the source vault account before anything is submitted.

        Raises
        ------
        SigningServiceError
            If the credentials are rejected or the vault account is unknown.
        """
        account = await self._client.get_vault_account(self._vault_account_id)
        logger.info(
            "Custodial vault %s reachable (%s)",
            self._vault_account_id,
            account.get("name") or "unnamed",
        )
        return account

    def operation_digest(self, operation: dict[str, Any]) -> str:
        """Hex digest of the canonical create operation (informational only)."""
        return self._crypto.digest(canonical_json_bytes(operation))

    def build_request(self, from_address: str, metadata: AnchoringMetadata) -> dict[str, Any]:
        digest = self.operation_digest(metadata.operation)
        return {
            "assetId": self._asset_id,
            "source": {"type": "VAULT_ACCOUNT", "id": self._vault_account_id},
            "destination": {
                "type": "ONE_TIME_ADDRESS",
                "oneTimeAddress": {"address": from_address},
            },
            "amount": self._amount,
            "note": f"ION DID Anchoring for {metadata.investor_id}",
            "externalTxId": f"ion-anchor-{self._clock_ms()}",
            "extraParameters": {
                "note": f"ION DID: {metadata.short_form[:50]} op:{digest[:16]}",
            },
        }

    async def create_transaction(
        self, from_address: str, metadata: AnchoringMetadata
    ) -> SettlementTransaction:
        """Create the settlement transaction.

        Raises
        ------
        SigningServiceError
            If the custodial service is unreachable or rejects the request.
        """
        if not from_address:
            raise SigningServiceError("A source Bitcoin address is required.")
        request = self.build_request(from_address, metadata)
        response = await self._client.create_transaction(request)
        transaction = SettlementTransaction.from_response(
            response, amount=self._amount, asset_id=self._asset_id
        )
        logger.info(
            "Created settlement transaction %s (%s %s, status=%s)",
            transaction.id,
            transaction.amount,
            transaction.asset_id,
            transaction.status.value,
        )
        return transaction

    async def get_status(self, transaction_id: str) -> SettlementTransaction:
        """Return the current state of *transaction_id*."""
        response = dict(await self._client.get_transaction(transaction_id))
        response.setdefault("id", transaction_id)
        return SettlementTransaction.from_response(
            response, amount=self._amount, asset_id=self._asset_id
        )


__all__ = [
    "DEFAULT_AMOUNT",
    "DEFAULT_ASSET_ID",
    "DEFAULT_EXPLORER_TX_URL",
    "AnchoringMetadata",
    "SettlementTransaction",
    "SettlementTransactionManager",
    "TransactionStatus",
    "normalize_status",
]
