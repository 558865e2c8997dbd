"""investor_identity.anchoring — submit create operations to an ION node.

Submodules
----------
transport
    AnchorTransport protocol and the httpx-backed default.
pow
    Argon2id proof-of-work solver.
client
    IonAnchorClient (challenge/solution and direct POST).
submitter
    AnchoringSubmitter and the SubmissionResult variants.
"""
from __future__ import annotations

from investor_identity.anchoring.client import AnchorNetwork, IonAnchorClient
from investor_identity.anchoring.submitter import (
    AnchoringSubmitter,
    DegradedSubmission,
    DirectSubmission,
    PrimarySubmission,
    SubmissionResult,
    SubmissionTier,
    submission_from_dict,
)
from investor_identity.anchoring.transport import AnchorTransport, HttpxTransport

__all__ = [
    "AnchorNetwork",
    "AnchorTransport",
    "AnchoringSubmitter",
    "DegradedSubmission",
    "DirectSubmission",
    "HttpxTransport",
    "IonAnchorClient",
    "PrimarySubmission",
    "SubmissionResult",
    "SubmissionTier",
    "submission_from_dict",
]
