"""ConfirmationPoller — wait for a settlement transaction to settle.

State machine::

    Pending --COMPLETED--------> Confirmed
    Pending --FAILED/REJECTED--> Failed
    Pending --budget spent-----> TimedOut

The poller queries status once per tick, sleeping a fixed interval
between ticks. The budget is ``max_wait // interval`` ticks, also bounded
by wall-clock time. A query that fails transiently is logged and counts
as a tick that observed nothing. Timing out is not an error: the outcome
carries an advisory that settlement is still in flight.
"""
from __future__ import annotations

import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx

from investor_identity.errors import PollTimeout, SigningServiceError
from investor_identity.settlement.transaction import SettlementTransaction, TransactionStatus

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30.0
DEFAULT_MAX_WAIT_SECONDS = 600.0

StatusSource = Callable[[str], Awaitable[SettlementTransaction]]


class PollState(str, enum.Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"


@dataclass(frozen=True)
class PollOutcome:
    """Where polling ended.

    Attributes
    ----------
    state:
        Final poll state; never ``Pending``.
    transaction:
        The tracked transaction with every observation merged in.
    ticks:
        Number of status queries made.
    elapsed_seconds:
        Wall-clock time spent polling.
    errors:
        Messages of transient query failures.
    """

    state: PollState
    transaction: SettlementTransaction
    ticks: int
    elapsed_seconds: float
    errors: tuple[str, ...] = ()

    @property
    def advisory(self) -> PollTimeout | None:
        if self.state is not PollState.TIMED_OUT:
            return None
        return PollTimeout(self.transaction.id, self.elapsed_seconds)

    def to_dict(self) -> dict[str, object]:
        return {
            "state": self.state.value,
            "transaction": self.transaction.to_dict(),
            "ticks": self.ticks,
            "elapsedSeconds": self.elapsed_seconds,
            "errors": list(self.errors),
        }


class ConfirmationPoller:
    """Poll a status source until a terminal state or the budget runs out.

    Parameters
    ----------
    status_source:
        Coroutine function returning the current transaction for an id,
        normally :meth:`SettlementTransactionManager.get_status`.
    interval_seconds:
        Pause between ticks.
    max_wait_seconds:
        Total polling budget.
    sleep:
        Awaitable sleep, replaceable in tests.
    clock:
        Monotonic clock used for the wall-clock bound.
    """

    def __init__(
        self,
        status_source: StatusSource,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        max_wait_seconds: float = DEFAULT_MAX_WAIT_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if interval_seconds <= 0 or max_wait_seconds <= 0:
            raise ValueError("Poll interval and budget must be positive.")
        self._status_source = status_source
        self._interval = interval_seconds
        self._max_wait = max_wait_seconds
        self._sleep = sleep
        self._clock = clock

    @property
    def max_ticks(self) -> int:
        return max(1, int(self._max_wait // self._interval))

    async def poll(self, transaction: SettlementTransaction) -> PollOutcome:
        """Poll *transaction* to a terminal state or timeout; never raises on timeout."""
        started = self._clock()
        tracked = transaction
        errors: list[str] = []

        state = _state_for(tracked.status)
        if state is not PollState.PENDING:
            return PollOutcome(state, tracked, 0, 0.0)

        ticks = 0
        while True:
            ticks += 1
            try:
                observed = await self._status_source(tracked.id)
            except (SigningServiceError, httpx.HTTPError, OSError) as exc:
                logger.warning("Status check %d for %s failed: %s", ticks, tracked.id, exc)
                errors.append(str(exc))
            else:
                tracked = tracked.merge(observed)
                logger.info(
                    "Tick %d/%d: transaction %s is %s",
                    ticks,
                    self.max_ticks,
                    tracked.id,
                    tracked.raw_status or tracked.status.value,
                )
                state = _state_for(tracked.status)
                if state is not PollState.PENDING:
                    break

            elapsed = self._clock() - started
            if ticks >= self.max_ticks or elapsed >= self._max_wait:
                state = PollState.TIMED_OUT
                break
            await self._sleep(self._interval)

        elapsed = self._clock() - started
        if state is PollState.TIMED_OUT:
            logger.warning(
                "Transaction %s still in flight after %d tick(s)", tracked.id, ticks
            )
        return PollOutcome(state, tracked, ticks, elapsed, tuple(errors))


def _state_for(status: TransactionStatus) -> PollState:
    if status is TransactionStatus.COMPLETED:
        return PollState.CONFIRMED
    if status.is_failure:
        return PollState.FAILED
    return PollState.PENDING


__all__ = [
    "DEFAULT_INTERVAL_SECONDS",
    "DEFAULT_MAX_WAIT_SECONDS",
    "ConfirmationPoller",
    "PollOutcome",
    "PollState",
    "StatusSource",
]
