"""DIDLifecyclePipeline — drive one investor identifier from keys to settlement.

Stages run strictly in sequence, each taking the current
:class:`~investor_identity.pipeline.context.PipelineContext` and returning
a new one:

1. ``keys``          generate authentication, update and recovery keys
2. ``identifier``    build document, long/short form and create operation
3. ``submission``    anchor the create operation (never fails)
4. ``transaction``   create the dust settlement transaction
5. ``confirmation``  poll the transaction to a terminal state or timeout

Every stage checkpoints its output. Stages 3-5 read their latest checkpoint
first and reuse it when it belongs to the same identifier, so an
interrupted run resumes instead of starting over. The identifier checkpoint
itself is reused only while its investor and wallets match the settings.

Anchoring starts by looking up the custodial vault account, so rejected
credentials stop the run before anything reaches the anchoring network.

Errors are recorded in the context by stage. A failure that blocks every
later stage raises :class:`~investor_identity.errors.PipelineHalted`
internally; the public entry points catch it and return the context as it
stood, so callers always get the full error collection and partial results.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, TypeVar

from investor_identity.anchoring.client import IonAnchorClient
from investor_identity.anchoring.submitter import AnchoringSubmitter, submission_from_dict
from investor_identity.anchoring.transport import HttpxTransport
from investor_identity.checkpoints.store import CheckpointStore, FilesystemCheckpointStore, Stage
from investor_identity.config import Settings
from investor_identity.crypto.keys import KeyMaterialProvider, KeySet
from investor_identity.did.builder import (
    BuiltIdentifier,
    DIDIdentity,
    IdentifierBuilder,
    require_wallets,
)
from investor_identity.did.document import AUTH_KEY_ID, IdentifierDocument, WalletAddresses
from investor_identity.envfile import update_env_file
from investor_identity.errors import (
    CheckpointNotFoundError,
    IdentityPipelineError,
    KeyGenerationError,
    MalformedOperationError,
    PersistenceError,
    PipelineHalted,
    SigningServiceError,
    ValidationError,
)
from investor_identity.pipeline.context import PipelineContext, RunSummary
from investor_identity.pipeline.events import EventLog
from investor_identity.settlement.custodian import FireblocksClient
from investor_identity.settlement.poller import ConfirmationPoller, PollOutcome, PollState
from investor_identity.settlement.transaction import (
    AnchoringMetadata,
    SettlementTransaction,
    SettlementTransactionManager,
    TransactionStatus,
)

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

PREFLIGHT = "preflight"
ENV_UPDATE = "env_update"
PIPELINE = "pipeline"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _produced(value: _T | None, stage: str) -> _T:
    """Return the output of *stage*, failing if that stage has not run."""
    if value is None:
        raise IdentityPipelineError(f"The {stage!r} stage has not produced a result yet.")
    return value


def _identifier_mismatch(
    context: PipelineContext, recorded_investor: object, recorded_wallets: WalletAddresses
) -> str | None:
    """Describe why a checkpointed identifier does not fit *context*, or return None.

    Only configured wallets are compared, so ``anchor`` may run with just
    the Bitcoin address set.
    """
    if recorded_investor is not None and recorded_investor != context.investor_id:
        return (
            f"Identifier checkpoint belongs to investor {recorded_investor!r}, "
            f"not {context.investor_id!r}; it was not reused."
        )
    changed = [
        chain
        for (chain, configured), (_, recorded) in zip(
            context.wallets.items(), recorded_wallets.items()
        )
        if configured and configured != recorded
    ]
    if changed:
        return (
            f"Configured {', '.join(changed)} wallet differs from the identifier "
            "checkpoint; the checkpointed identifier was not reused."
        )
    return None


class DIDLifecyclePipeline:
    """Orchestrate identifier creation, anchoring and settlement for one investor.

    Collaborators not passed in are built from *settings* on first use, so
    a run that never reaches settlement never needs custodial credentials
    to be readable.

    Parameters
    ----------
    settings:
        Process configuration.
    store:
        Checkpoint store. Defaults to a filesystem store under ``data_dir``.
    events:
        Event log. Defaults to an in-memory log.
    key_provider:
        Key material provider.
    builder:
        Identifier builder.
    submitter:
        Anchoring submitter.
    settlement:
        Settlement transaction manager.
    poller:
        Confirmation poller.
    env_file:
        Env file to write results into; None disables the update.
    now:
        UTC clock.
    """

    def __init__(
        self,
        settings: Settings,
        store: CheckpointStore | None = None,
        events: EventLog | None = None,
        key_provider: KeyMaterialProvider | None = None,
        builder: IdentifierBuilder | None = None,
        submitter: AnchoringSubmitter | None = None,
        settlement: SettlementTransactionManager | None = None,
        poller: ConfirmationPoller | None = None,
        env_file: Path | None = None,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self.store: CheckpointStore = store or FilesystemCheckpointStore(settings.data_dir)
        self.events = events or EventLog()
        self._key_provider = key_provider or KeyMaterialProvider()
        self._builder = builder or IdentifierBuilder()
        self._submitter = submitter
        self._settlement = settlement
        self._poller = poller
        self._env_file = env_file
        self._now = now

    # ------------------------------------------------------------------
    # Lazily built collaborators
    # ------------------------------------------------------------------

    @property
    def submitter(self) -> AnchoringSubmitter:
        if self._submitter is None:
            client = IonAnchorClient(
                self.settings.challenge_endpoint,
                self.settings.solution_endpoint,
                transport=HttpxTransport(self.settings.http_timeout_seconds),
            )
            self._submitter = AnchoringSubmitter(client, now=self._now)
        return self._submitter

    @property
    def settlement(self) -> SettlementTransactionManager:
        if self._settlement is None:
            self._settlement = SettlementTransactionManager(
                FireblocksClient.from_settings(self.settings),
                vault_account_id=str(self.settings.vault_account_id),
                asset_id=self.settings.settlement_asset_id,
                amount=self.settings.settlement_amount,
            )
        return self._settlement

    @property
    def poller(self) -> ConfirmationPoller:
        if self._poller is None:
            self._poller = ConfirmationPoller(
                self.settlement.get_status,
                interval_seconds=self.settings.poll_interval_seconds,
                max_wait_seconds=self.settings.max_wait_seconds,
            )
        return self._poller

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def create(self, resume: bool = False) -> PipelineContext:
        """Run stages 1-2: keys and identifier."""
        try:
            context = self._preflight(identify=True, anchoring=False)
            context = await self._identify(context, resume)
        except PipelineHalted as halted:
            context = halted.context  # type: ignore[assignment]
        return self._finish(context)

    async def anchor(self, resume: bool = True) -> PipelineContext:
        """Run stages 3-5 against the latest identifier checkpoint."""
        try:
            context = self._preflight(identify=False, anchoring=True)
            context = self._restore_identifier(context)
            if context.identifier is None:
                raise self._halt(
                    context,
                    Stage.IDENTIFIER,
                    CheckpointNotFoundError(
                        Stage.IDENTIFIER,
                        context.investor_id,
                        hint="Run `investor-identity create` first.",
                    ),
                )
            context = await self._anchor(context, resume)
        except PipelineHalted as halted:
            context = halted.context  # type: ignore[assignment]
        return self._finish(context)

    async def run(self, resume: bool = True) -> PipelineContext:
        """Run every stage, reusing checkpoints when *resume* is set."""
        try:
            context = self._preflight(identify=True, anchoring=True)
            context = await self._identify(context, resume)
            context = await self._anchor(context, resume)
        except PipelineHalted as halted:
            context = halted.context  # type: ignore[assignment]
        return self._finish(context)

    def summarize(self, context: PipelineContext) -> RunSummary:
        return RunSummary.from_context(context, self.settings.explorer_tx_url)

    # ------------------------------------------------------------------
    # Preflight
    # ------------------------------------------------------------------

    def _preflight(self, identify: bool, anchoring: bool) -> PipelineContext:
        """Check every required input before any stage runs."""
        context = PipelineContext(
            investor_id=self.settings.investor_id or "",
            wallets=WalletAddresses.from_dict(self.settings.wallet_addresses()),
            started_at=self._now(),
        )
        self.events.stage_start(PREFLIGHT, investor_id=context.investor_id, anchoring=anchoring)

        checks: list[Callable[[], None]] = []
        if identify:
            checks.append(self.settings.require_identifier_inputs)
            checks.append(lambda: require_wallets(context.wallets))
        if anchoring:
            checks.append(self.settings.require_anchoring_inputs)

        missing: list[str] = []
        for check in checks:
            try:
                check()
            except ValidationError as exc:
                missing.extend(name for name in exc.missing if name not in missing)
        if missing:
            raise self._halt(
                context,
                PREFLIGHT,
                ValidationError(f"Missing required inputs: {', '.join(missing)}.", missing=missing),
            )
        return context

    # ------------------------------------------------------------------
    # Stages 1-2
    # ------------------------------------------------------------------

    async def _identify(self, context: PipelineContext, resume: bool) -> PipelineContext:
        if resume:
            context = self._restore_identifier(context)
            if context.identifier is not None:
                return context
        context = self._generate_keys(context)
        context = self._build_identifier(context)
        return self._update_env(context, self._identifier_env(context))

    def _generate_keys(self, context: PipelineContext) -> PipelineContext:
        self.events.stage_start(Stage.KEYS)
        try:
            keys = self._key_provider.generate_all()
        except KeyGenerationError as exc:
            raise self._halt(context, Stage.KEYS, exc) from exc
        self.events.stage_result(Stage.KEYS, roles=[pair.role.value for pair in keys])
        return replace(context, keys=keys)

    def _build_identifier(self, context: PipelineContext) -> PipelineContext:
        keys = _produced(context.keys, Stage.KEYS)
        self.events.stage_start(Stage.IDENTIFIER)
        try:
            built = self._builder.build(context.investor_id, context.wallets, keys)
        except (ValidationError, MalformedOperationError) as exc:
            raise self._halt(context, Stage.IDENTIFIER, exc) from exc

        context = replace(context, identifier=built)
        for warning in built.warnings:
            self.events.advisory(Stage.IDENTIFIER, warning)
            context = context.with_advisory(warning)
        self.events.stage_result(
            Stage.IDENTIFIER,
            short_form=built.identity.short_form,
            long_form_length=len(built.identity.long_form),
        )

        created = self._now().isoformat()
        metadata = {
            "created": created,
            "investorId": context.investor_id,
            "didIdentifier": built.identity.suffix,
            "wallets": context.wallets.to_dict(),
        }
        operations = {
            "createRequest": built.create_operation,
            "allOperations": built.all_operations,
        }
        context = self._checkpoint(
            context,
            Stage.IDENTIFIER,
            {
                "metadata": metadata,
                "did": built.identity.to_dict(),
                "document": built.document.to_content(),
                "keys": keys.to_dict(include_private=True),
                "operations": operations,
            },
        )
        context = self._checkpoint(
            context, Stage.KEYS, keys.to_dict(include_private=True)
        )
        return self._checkpoint(
            context,
            Stage.PUBLIC,
            {
                "metadata": metadata,
                "did": built.identity.to_dict(),
                "publicKeys": keys.public_keys(),
                "createRequest": built.create_operation,
            },
        )

    def _restore_identifier(self, context: PipelineContext) -> PipelineContext:
        """Put the latest identifier checkpoint into *context*.

        The returned context has no identifier when there is no checkpoint
        or when the checkpoint was built for other wallets or another
        investor. The second case is recorded as an advisory.
        """
        payload = self._load(Stage.IDENTIFIER, context)
        if payload is None:
            return context
        try:
            metadata = payload["metadata"]
            wallets = WalletAddresses.from_dict(metadata["wallets"])
            mismatch = _identifier_mismatch(context, metadata.get("investorId"), wallets)
            if mismatch is None:
                keys = KeySet.from_dict(payload["keys"])
                identity = DIDIdentity.from_dict(payload["did"])
                operations = payload["operations"]
                built = BuiltIdentifier(
                    document=IdentifierDocument.for_investor(
                        context.investor_id, wallets, keys.authentication.public_key
                    ),
                    identity=identity,
                    create_operation=operations["createRequest"],
                    all_operations=list(operations.get("allOperations") or []),
                )
        except (KeyError, TypeError, ValueError, AttributeError, IdentityPipelineError) as exc:
            raise self._halt(
                context,
                Stage.IDENTIFIER,
                PersistenceError(f"Identifier checkpoint is unreadable: {exc}"),
            ) from exc

        if mismatch is not None:
            self.events.advisory(Stage.IDENTIFIER, mismatch)
            return context.with_advisory(mismatch)

        self.events.stage_result(
            Stage.IDENTIFIER, short_form=identity.short_form, resumed=True
        )
        return replace(context, wallets=wallets, keys=keys, identifier=built)

    # ------------------------------------------------------------------
    # Stages 3-5
    # ------------------------------------------------------------------

    async def _anchor(self, context: PipelineContext, resume: bool) -> PipelineContext:
        await self._check_vault(context)
        context = await self._submit(context, resume)
        context = await self._settle(context, resume)
        context = await self._confirm(context)
        context = self._record_anchoring(context)
        return self._update_env(context, self._anchoring_env(context))

    async def _check_vault(self, context: PipelineContext) -> None:
        """Reach the custodial vault before anything is sent to the anchoring network."""
        try:
            await self.settlement.check_vault()
        except (SigningServiceError, ValidationError) as exc:
            raise self._halt(context, Stage.TRANSACTION, exc) from exc

    async def _submit(self, context: PipelineContext, resume: bool) -> PipelineContext:
        built = _produced(context.identifier, Stage.IDENTIFIER)
        identity = built.identity
        self.events.stage_start(Stage.SUBMISSION, short_form=identity.short_form)

        submission = None
        if resume:
            payload = self._load_for_identity(Stage.SUBMISSION, context)
            if payload is not None:
                try:
                    submission = submission_from_dict(payload["submission"])
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning("Ignoring unreadable submission checkpoint: %s", exc)

        resumed = submission is not None
        if submission is None:
            submission = await self.submitter.submit(
                built.create_operation, identity.long_form
            )

        context = replace(context, submission=submission)
        self.events.stage_result(
            Stage.SUBMISSION,
            tier=submission.tier.value,
            status=submission.status,
            resumed=resumed,
        )
        if resumed:
            return context
        return self._checkpoint(
            context,
            Stage.SUBMISSION,
            {"shortForm": identity.short_form, "submission": submission.to_dict()},
        )

    async def _settle(self, context: PipelineContext, resume: bool) -> PipelineContext:
        built = _produced(context.identifier, Stage.IDENTIFIER)
        self.events.stage_start(Stage.TRANSACTION, vault_account=self.settings.vault_account_id)

        transaction = None
        if resume:
            payload = self._load_for_identity(Stage.TRANSACTION, context)
            if payload is not None:
                try:
                    transaction = SettlementTransaction.from_dict(payload["transaction"])
                except (KeyError, TypeError, ValueError) as exc:
                    logger.warning("Ignoring unreadable transaction checkpoint: %s", exc)
                if transaction is not None and transaction.status.is_failure:
                    logger.info(
                        "Previous transaction %s ended %s; creating a new one",
                        transaction.id,
                        transaction.status.value,
                    )
                    transaction = None

        resumed = transaction is not None
        if transaction is None:
            metadata = AnchoringMetadata(
                investor_id=context.investor_id,
                short_form=built.identity.short_form,
                operation=built.create_operation,
            )
            try:
                transaction = await self.settlement.create_transaction(
                    str(context.wallets.bitcoin or ""), metadata
                )
            except (SigningServiceError, ValidationError) as exc:
                raise self._halt(context, Stage.TRANSACTION, exc) from exc

        context = replace(context, transaction=transaction)
        self.events.stage_result(
            Stage.TRANSACTION,
            transaction_id=transaction.id,
            status=transaction.status.value,
            resumed=resumed,
        )
        if resumed:
            return context
        return self._save_transaction(context)

    async def _confirm(self, context: PipelineContext) -> PipelineContext:
        transaction = _produced(context.transaction, Stage.TRANSACTION)
        self.events.stage_start(Stage.CONFIRMATION, transaction_id=transaction.id)

        if transaction.status is TransactionStatus.COMPLETED:
            outcome = PollOutcome(PollState.CONFIRMED, transaction, 0, 0.0)
        else:
            try:
                poller = self.poller
            except (SigningServiceError, ValidationError) as exc:
                raise self._halt(context, Stage.CONFIRMATION, exc) from exc
            outcome = await poller.poll(transaction)

        context = replace(context, transaction=outcome.transaction, confirmation=outcome)
        self.events.stage_result(
            Stage.CONFIRMATION,
            state=outcome.state.value,
            ticks=outcome.ticks,
            tx_hash=outcome.transaction.tx_hash,
        )

        if outcome.state is PollState.FAILED:
            failure = SigningServiceError(
                f"Settlement transaction {transaction.id} ended "
                f"{outcome.transaction.raw_status or outcome.transaction.status.value}."
            )
            self.events.error(Stage.CONFIRMATION, str(failure), error_type="SigningServiceError")
            context = context.with_error(Stage.CONFIRMATION, failure)
        elif outcome.advisory is not None:
            message = str(outcome.advisory)
            self.events.advisory(Stage.CONFIRMATION, message)
            context = context.with_advisory(message)

        context = self._save_transaction(context)
        return self._checkpoint(
            context,
            Stage.CONFIRMATION,
            {"shortForm": context.short_form, "confirmation": outcome.to_dict()},
        )

    def _record_anchoring(self, context: PipelineContext) -> PipelineContext:
        identity = _produced(context.identifier, Stage.IDENTIFIER).identity
        submission = _produced(context.submission, Stage.SUBMISSION)
        transaction = context.transaction
        anchored_at = self._now().isoformat()
        return self._checkpoint(
            context,
            Stage.ANCHORING,
            {
                "metadata": {
                    "investorId": context.investor_id,
                    "didIdentifier": identity.suffix,
                    "anchoredAt": anchored_at,
                },
                "did": identity.to_dict(),
                "anchoring": {
                    "submission": submission.to_dict(),
                    "transaction": transaction.to_dict() if transaction else None,
                    "confirmation": (
                        context.confirmation.state.value if context.confirmation else None
                    ),
                    "ionNodeEndpoint": self.settings.ion_node_endpoint,
                    "anchoredAt": anchored_at,
                },
                "verification": {
                    "btcAddress": context.wallets.bitcoin,
                    "vaultAccount": self.settings.vault_account_id,
                    "txHash": transaction.tx_hash if transaction else None,
                    "explorerUrl": (
                        transaction.explorer_url(self.settings.explorer_tx_url)
                        if transaction
                        else None
                    ),
                },
            },
        )

    # ------------------------------------------------------------------
    # Environment file
    # ------------------------------------------------------------------

    def _identifier_env(self, context: PipelineContext) -> dict[str, str]:
        identity = _produced(context.identifier, Stage.IDENTIFIER).identity
        return {
            "DID_LONG_FORM": identity.long_form,
            "DID_SHORT_FORM": identity.short_form,
            "DID_IDENTIFIER": identity.suffix,
            "DID_CREATED_AT": self._now().isoformat(),
            "DID_AUTH_KEY_ID": AUTH_KEY_ID,
        }

    def _anchoring_env(self, context: PipelineContext) -> dict[str, str]:
        transaction = context.transaction
        return {
            "DID_ANCHORED": "true",
            "DID_ANCHORED_AT": self._now().isoformat(),
            "BITCOIN_TX_HASH": (transaction.tx_hash if transaction else None) or "pending",
            "ION_NODE_ENDPOINT": self.settings.ion_node_endpoint,
            "ANCHOR_STATUS": (
                (transaction.raw_status or transaction.status.value) if transaction else "submitted"
            ),
        }

    def _update_env(self, context: PipelineContext, values: dict[str, str]) -> PipelineContext:
        if self._env_file is None:
            return context
        try:
            update_env_file(self._env_file, values)
        except PersistenceError as exc:
            self.events.error(ENV_UPDATE, str(exc), error_type=type(exc).__name__)
            return context.with_error(ENV_UPDATE, exc)
        self.events.stage_result(ENV_UPDATE, keys=sorted(values))
        return context

    # ------------------------------------------------------------------
    # Checkpoint helpers
    # ------------------------------------------------------------------

    def _checkpoint(
        self, context: PipelineContext, stage: str, payload: dict[str, Any]
    ) -> PipelineContext:
        try:
            path = self.store.save(stage, context.investor_id, payload)
        except PersistenceError as exc:
            self.events.error(stage, str(exc), error_type=type(exc).__name__)
            return context.with_error(stage, exc)
        return context.with_artifact(stage, path)

    def _save_transaction(self, context: PipelineContext) -> PipelineContext:
        transaction = _produced(context.transaction, Stage.TRANSACTION)
        return self._checkpoint(
            context,
            Stage.TRANSACTION,
            {"shortForm": context.short_form, "transaction": transaction.to_dict()},
        )

    def _load(self, stage: str, context: PipelineContext) -> dict[str, Any] | None:
        try:
            return self.store.load_latest(stage, context.investor_id)
        except CheckpointNotFoundError:
            return None
        except PersistenceError as exc:
            self.events.advisory(stage, f"Ignoring unreadable checkpoint: {exc}")
            return None

    def _load_for_identity(self, stage: str, context: PipelineContext) -> dict[str, Any] | None:
        """Load the latest checkpoint of *stage* if it belongs to the current identifier."""
        payload = self._load(stage, context)
        if payload is None or payload.get("shortForm") != context.short_form:
            return None
        return payload

    # ------------------------------------------------------------------
    # Error helpers
    # ------------------------------------------------------------------

    def _halt(
        self, context: PipelineContext, stage: str, exc: IdentityPipelineError
    ) -> PipelineHalted:
        self.events.error(stage, str(exc), error_type=type(exc).__name__)
        return PipelineHalted(context.with_error(stage, exc), exc)

    def _finish(self, context: PipelineContext) -> PipelineContext:
        self.events.stage_result(
            PIPELINE,
            success=context.success,
            error_count=context.error_count,
            short_form=context.short_form,
        )
        return context


__all__ = ["DIDLifecyclePipeline"]
