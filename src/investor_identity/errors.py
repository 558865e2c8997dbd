"""Exception hierarchy for the investor DID lifecycle pipeline.

Every error raised by this package derives from :class:`IdentityPipelineError`.
The orchestrator decides per stage whether an error blocks later stages;
the classes themselves carry only the data needed to report them.
"""
from __future__ import annotations


class IdentityPipelineError(Exception):
    """Base class for all pipeline errors."""


class ValidationError(IdentityPipelineError):
    """Raised when required input is missing or malformed.

    Parameters
    ----------
    message:
        Human-readable description.
    missing:
        Names of every missing input (not just the first one found).
    """

    def __init__(self, message: str, missing: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing: list[str] = list(missing or [])


class KeyGenerationError(IdentityPipelineError):
    """Raised when the cryptographic capability fails or returns malformed keys."""


class MalformedOperationError(IdentityPipelineError):
    """Raised when a generated create operation or identifier is malformed."""


class SubmissionError(IdentityPipelineError):
    """Raised by a single anchoring tier when it cannot submit the operation.

    Never escapes :class:`~investor_identity.anchoring.submitter.AnchoringSubmitter`.

    Parameters
    ----------
    message:
        Human-readable description.
    unreachable:
        True when the network could not be reached at all (connection or
        timeout failure), False when it answered with a rejection.
    """

    def __init__(self, message: str, unreachable: bool = False) -> None:
        super().__init__(message)
        self.unreachable = unreachable


class SigningServiceError(IdentityPipelineError):
    """Raised when the custodial signing service is unreachable or rejects a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PollTimeout(IdentityPipelineError):
    """Advisory: the settlement transaction did not reach a terminal state in time."""

    def __init__(self, transaction_id: str, elapsed_seconds: float) -> None:
        super().__init__(
            f"Transaction {transaction_id!r} not confirmed after "
            f"{elapsed_seconds:.0f}s; settlement is still in flight, check its status later."
        )
        self.transaction_id = transaction_id
        self.elapsed_seconds = elapsed_seconds


class PersistenceError(IdentityPipelineError):
    """Raised when a checkpoint or artifact cannot be written."""


class PipelineHalted(IdentityPipelineError):
    """Raised inside the orchestrator when a failure blocks every later stage.

    Carries the run context as it stood when the stage failed, with the
    failure already recorded in its error collection.
    """

    def __init__(self, context: object, cause: Exception) -> None:
        super().__init__(str(cause))
        self.context = context
        self.cause = cause


class CheckpointNotFoundError(IdentityPipelineError, LookupError):
    """Raised when no checkpoint exists for a stage and investor."""

    def __init__(self, stage: str, investor_id: str, hint: str = "") -> None:
        message = f"No {stage!r} checkpoint found for investor {investor_id!r}."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)
        self.stage = stage
        self.investor_id = investor_id


__all__ = [
    "CheckpointNotFoundError",
    "IdentityPipelineError",
    "KeyGenerationError",
    "MalformedOperationError",
    "PersistenceError",
    "PipelineHalted",
    "PollTimeout",
    "SigningServiceError",
    "SubmissionError",
    "ValidationError",
]
