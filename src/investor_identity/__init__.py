"""investor-identity — investor did:ion creation, Bitcoin anchoring and settlement tracking.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import investor_identity
>>> investor_identity.__version__
'0.1.0'

Quick start
-----------
::

    import asyncio
    from investor_identity import DIDLifecyclePipeline, get_settings

    pipeline = DIDLifecyclePipeline(get_settings())
    context = asyncio.run(pipeline.run())
    print(pipeline.summarize(context).model_dump_json(indent=2))
"""
from __future__ import annotations

__version__: str = "0.1.0"

from investor_identity.convenience import InvestorIdentity

# ------------------------------------------------------------------
# Configuration and errors
# ------------------------------------------------------------------
from investor_identity.config import Settings, get_settings
from investor_identity.errors import (
    CheckpointNotFoundError,
    IdentityPipelineError,
    KeyGenerationError,
    MalformedOperationError,
    PersistenceError,
    PollTimeout,
    SigningServiceError,
    SubmissionError,
    ValidationError,
)

# ------------------------------------------------------------------
# Key material and identifiers
# ------------------------------------------------------------------
from investor_identity.crypto.keys import KeyMaterialProvider, KeyPair, KeyRole, KeySet
from investor_identity.did.builder import DIDIdentity, IdentifierBuilder
from investor_identity.did.document import IdentifierDocument, WalletAddresses
from investor_identity.did.ion import IonDid

# ------------------------------------------------------------------
# Anchoring and settlement
# ------------------------------------------------------------------
from investor_identity.anchoring.submitter import AnchoringSubmitter, SubmissionResult
from investor_identity.settlement.poller import ConfirmationPoller, PollState
from investor_identity.settlement.transaction import (
    SettlementTransaction,
    SettlementTransactionManager,
    TransactionStatus,
)

# ------------------------------------------------------------------
# Checkpoints and pipeline
# ------------------------------------------------------------------
from investor_identity.checkpoints.store import CheckpointStore, FilesystemCheckpointStore
from investor_identity.pipeline import DIDLifecyclePipeline, EventLog, PipelineContext, RunSummary

__all__ = [
    "__version__",
    # Convenience
    "InvestorIdentity",
    # Configuration and errors
    "CheckpointNotFoundError",
    "IdentityPipelineError",
    "KeyGenerationError",
    "MalformedOperationError",
    "PersistenceError",
    "PollTimeout",
    "Settings",
    "SigningServiceError",
    "SubmissionError",
    "ValidationError",
    "get_settings",
    # Key material and identifiers
    "DIDIdentity",
    "IdentifierBuilder",
    "IdentifierDocument",
    "IonDid",
    "KeyMaterialProvider",
    "KeyPair",
    "KeyRole",
    "KeySet",
    "WalletAddresses",
    # Anchoring and settlement
    "AnchoringSubmitter",
    "ConfirmationPoller",
    "PollState",
    "SettlementTransaction",
    "SettlementTransactionManager",
    "SubmissionResult",
    "TransactionStatus",
    # Checkpoints and pipeline
    "CheckpointStore",
    "DIDLifecyclePipeline",
    "EventLog",
    "FilesystemCheckpointStore",
    "PipelineContext",
    "RunSummary",
]
