"""PipelineContext and RunSummary.

:class:`PipelineContext` is the explicit record threaded through the
stages. It is immutable: each stage returns a new context built with
:func:`dataclasses.replace` or one of the ``with_*`` helpers.

:class:`RunSummary` is the reportable view of a finished context.
"""
from __future__ import annotations

import datetime
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from pydantic import BaseModel, Field

from investor_identity.anchoring.submitter import SubmissionResult
from investor_identity.crypto.keys import KeySet
from investor_identity.did.builder import BuiltIdentifier
from investor_identity.did.document import WalletAddresses
from investor_identity.settlement.poller import PollOutcome
from investor_identity.settlement.transaction import SettlementTransaction


@dataclass(frozen=True)
class StageError:
    """One error recorded against a stage."""

    stage: str
    error_type: str
    message: str

    @classmethod
    def from_exception(cls, stage: str, exc: BaseException) -> StageError:
        return cls(stage=stage, error_type=type(exc).__name__, message=str(exc))

    def to_dict(self) -> dict[str, str]:
        return {"stage": self.stage, "type": self.error_type, "message": self.message}


@dataclass(frozen=True)
class PipelineContext:
    """Everything one pipeline run has produced so far.

    Parameters
    ----------
    investor_id:
        The investor the run is for.
    wallets:
        The investor's wallet addresses.
    keys:
        Generated or resumed key material.
    identifier:
        Document, identity and create operation.
    submission:
        Anchoring submission result.
    transaction:
        Latest known settlement transaction.
    confirmation:
        Result of confirmation polling.
    errors:
        Errors recorded by stage, in order.
    advisories:
        Non-blocking notices (format warnings, poll timeout).
    artifacts:
        Checkpoint paths written, by stage.
    """

    investor_id: str
    wallets: WalletAddresses
    keys: Optional[KeySet] = None
    identifier: Optional[BuiltIdentifier] = None
    submission: Optional[SubmissionResult] = None
    transaction: Optional[SettlementTransaction] = None
    confirmation: Optional[PollOutcome] = None
    errors: tuple[StageError, ...] = ()
    advisories: tuple[str, ...] = ()
    artifacts: tuple[tuple[str, str], ...] = ()
    started_at: datetime.datetime = field(
        default_factory=lambda: datetime.datetime.now(datetime.timezone.utc)
    )

    def with_error(self, stage: str, exc: BaseException) -> PipelineContext:
        return replace(self, errors=self.errors + (StageError.from_exception(stage, exc),))

    def with_advisory(self, message: str) -> PipelineContext:
        return replace(self, advisories=self.advisories + (message,))

    def with_artifact(self, stage: str, path: object) -> PipelineContext:
        return replace(self, artifacts=self.artifacts + ((stage, str(path)),))

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def long_form(self) -> str | None:
        return self.identifier.identity.long_form if self.identifier else None

    @property
    def short_form(self) -> str | None:
        return self.identifier.identity.short_form if self.identifier else None

    @property
    def success(self) -> bool:
        return self.error_count == 0 and bool(self.long_form)


class RunSummary(BaseModel):
    """Final report of a pipeline run."""

    success: bool
    investor_id: str
    long_form: Optional[str] = None
    short_form: Optional[str] = None
    submission_status: Optional[str] = None
    submission_tier: Optional[str] = None
    transaction: Optional[dict[str, Any]] = None
    explorer_url: Optional[str] = None
    confirmation: Optional[str] = None
    advisories: list[str] = Field(default_factory=list)
    error_count: int = 0
    errors: list[dict[str, str]] = Field(default_factory=list)
    wallets: dict[str, Optional[str]] = Field(default_factory=dict)
    artifacts: dict[str, list[str]] = Field(default_factory=dict)

    @classmethod
    def from_context(
        cls, context: PipelineContext, explorer_tx_url: str | None = None
    ) -> RunSummary:
        artifacts: dict[str, list[str]] = {}
        for stage, path in context.artifacts:
            artifacts.setdefault(stage, []).append(path)

        transaction = context.transaction
        explorer_url = None
        if transaction is not None:
            explorer_url = (
                transaction.explorer_url(explorer_tx_url)
                if explorer_tx_url
                else transaction.explorer_url()
            )
        return cls(
            success=context.success,
            investor_id=context.investor_id,
            long_form=context.long_form,
            short_form=context.short_form,
            submission_status=context.submission.status if context.submission else None,
            submission_tier=context.submission.tier.value if context.submission else None,
            transaction=transaction.to_dict() if transaction else None,
            explorer_url=explorer_url,
            confirmation=context.confirmation.state.value if context.confirmation else None,
            advisories=list(context.advisories),
            error_count=context.error_count,
            errors=[e.to_dict() for e in context.errors],
            wallets=context.wallets.to_dict(),
            artifacts=artifacts,
        )


__all__ = ["PipelineContext", "RunSummary", "StageError"]
