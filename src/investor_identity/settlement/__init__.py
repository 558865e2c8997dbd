"""investor_identity.settlement — dust settlement transactions and confirmation polling."""
from __future__ import annotations

from investor_identity.settlement.custodian import CustodialClient, FireblocksClient
from investor_identity.settlement.poller import ConfirmationPoller, PollOutcome, PollState
from investor_identity.settlement.transaction import (
    AnchoringMetadata,
    SettlementTransaction,
    SettlementTransactionManager,
    TransactionStatus,
    normalize_status,
)

__all__ = [
    "AnchoringMetadata",
    "ConfirmationPoller",
    "CustodialClient",
    "FireblocksClient",
    "PollOutcome",
    "PollState",
    "SettlementTransaction",
    "SettlementTransactionManager",
    "TransactionStatus",
    "normalize_status",
]
