"""AnchoringSubmitter — submit a create operation with tiered fallback.

Tiers are tried strictly in order, and each only when the previous one
raised:

1. **primary** — the anchoring network's proof-of-work flow.
2. **direct** — a raw POST of the operation to the solution endpoint.
3. **degraded** — a locally synthesized acknowledgment. Never fails.

The result is a tagged variant::

    SubmissionResult = PrimarySubmission | DirectSubmission | DegradedSubmission

Every variant carries a ``status`` string and a ``raw`` payload.
Submission never raises: the long-form identifier is usable whether or
not the network accepted the operation.

Note
----
The node's acknowledgment is not checked against the submitted
operation. A caller that needs assurance the anchored state matches
must resolve the short-form identifier once it is published.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, ClassVar, Union

import httpx

from investor_identity.anchoring.client import AnchorNetwork
from investor_identity.errors import SubmissionError

logger = logging.getLogger(__name__)

STATUS_SUBMITTED = "submitted"
STATUS_SIMULATED = "simulated"
STATUS_SUBMITTED_LONGFORM = "submitted_longform"


class SubmissionTier(str, enum.Enum):
    """Which fallback tier produced a submission result."""

    PRIMARY = "primary"
    DIRECT = "direct"
    DEGRADED = "degraded"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ------------------------------------------------------------------
# Result variants
# ------------------------------------------------------------------


@dataclass(frozen=True)
class PrimarySubmission:
    """The network accepted the operation through the proof-of-work flow."""

    tier: ClassVar[SubmissionTier] = SubmissionTier.PRIMARY

    status: str
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"tier": self.tier.value, "status": self.status, "raw": self.raw}


@dataclass(frozen=True)
class DirectSubmission:
    """The network accepted a raw POST of the operation."""

    tier: ClassVar[SubmissionTier] = SubmissionTier.DIRECT

    status: str
    raw: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"tier": self.tier.value, "status": self.status, "raw": self.raw}


@dataclass(frozen=True)
class DegradedSubmission:
    """A local acknowledgment synthesized after every network tier failed.

    Attributes
    ----------
    status:
        ``simulated`` when the network was unreachable, ``submitted_longform``
        when it answered but rejected the operation.
    identifier:
        The long-form identifier the acknowledgment stands in for.
    acknowledged_at:
        When the acknowledgment was synthesized (UTC).
    reasons:
        One message per failed tier.
    """

    tier: ClassVar[SubmissionTier] = SubmissionTier.DEGRADED

    status: str
    identifier: str
    acknowledged_at: datetime
    reasons: tuple[str, ...] = ()

    @property
    def raw(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "did": self.identifier,
            "timestamp": self.acknowledged_at.isoformat(),
            "note": "Long-form identifier is usable before anchoring completes.",
            "reasons": list(self.reasons),
        }

    def to_dict(self) -> dict[str, Any]:
        return {"tier": self.tier.value, "status": self.status, "raw": self.raw}


SubmissionResult = Union[PrimarySubmission, DirectSubmission, DegradedSubmission]


def submission_from_dict(data: dict[str, Any]) -> SubmissionResult:
    """Rebuild a result from :meth:`to_dict` output (e.g. a checkpoint).

    Raises
    ------
    ValueError
        If the tier or status is missing or unknown.
    """
    status = data.get("status")
    if not status:
        raise ValueError("Submission record has no status.")
    tier = SubmissionTier(data.get("tier"))
    raw = dict(data.get("raw") or {})
    if tier is SubmissionTier.PRIMARY:
        return PrimarySubmission(status=status, raw=raw)
    if tier is SubmissionTier.DIRECT:
        return DirectSubmission(status=status, raw=raw)
    timestamp = raw.get("timestamp")
    return DegradedSubmission(
        status=status,
        identifier=str(raw.get("did", "")),
        acknowledged_at=datetime.fromisoformat(timestamp) if timestamp else _utcnow(),
        reasons=tuple(raw.get("reasons") or ()),
    )


# ------------------------------------------------------------------
# Submitter
# ------------------------------------------------------------------


class AnchoringSubmitter:
    """Try each anchoring tier in order; the first one that succeeds wins.

    Parameters
    ----------
    network:
        The anchoring-network capability (normally
        :class:`~investor_identity.anchoring.client.IonAnchorClient`).
    now:
        Clock used to stamp degraded acknowledgments.
    """

    def __init__(
        self,
        network: AnchorNetwork,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._network = network
        self._now = now

    async def submit(
        self, operation: dict[str, Any], identifier: str = ""
    ) -> SubmissionResult:
        """Submit *operation*; never raises.

        Parameters
        ----------
        operation:
            The create operation.
        identifier:
            The long-form identifier, recorded in a degraded acknowledgment.
        """
        failures: list[Exception] = []

        try:
            ack = await self._network.anchor(operation)
        except Exception as exc:
            logger.warning("Primary anchoring tier failed: %s", exc)
            failures.append(exc)
        else:
            return PrimarySubmission(status=_ack_status(ack), raw=ack)

        try:
            ack = await self._network.post_operation(operation)
        except Exception as exc:
            logger.warning("Direct anchoring tier failed: %s", exc)
            failures.append(exc)
        else:
            return DirectSubmission(status=_ack_status(ack), raw=ack)

        status = (
            STATUS_SIMULATED
            if all(_is_unreachable(exc) for exc in failures)
            else STATUS_SUBMITTED_LONGFORM
        )
        logger.info("Anchoring degraded to a local acknowledgment (status=%s)", status)
        return DegradedSubmission(
            status=status,
            identifier=identifier,
            acknowledged_at=self._now(),
            reasons=tuple(str(exc) for exc in failures),
        )


def _ack_status(ack: dict[str, Any]) -> str:
    status = ack.get("status") if isinstance(ack, dict) else None
    return str(status) if status else STATUS_SUBMITTED


def _is_unreachable(exc: Exception) -> bool:
    if isinstance(exc, SubmissionError):
        return exc.unreachable
    return isinstance(exc, (httpx.TransportError, OSError))


__all__ = [
    "STATUS_SIMULATED",
    "STATUS_SUBMITTED",
    "STATUS_SUBMITTED_LONGFORM",
    "AnchoringSubmitter",
    "DegradedSubmission",
    "DirectSubmission",
    "PrimarySubmission",
    "SubmissionResult",
    "SubmissionTier",
    "submission_from_dict",
]
