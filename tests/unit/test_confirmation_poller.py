"""Tests for investor_identity.settlement.poller — ConfirmationPoller state machine."""
from __future__ import annotations

import pytest

from investor_identity.errors import PollTimeout, SigningServiceError
from investor_identity.settlement.poller import ConfirmationPoller, PollState
from investor_identity.settlement.transaction import SettlementTransaction, TransactionStatus


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClock:
    """Monotonic clock advanced only by FakeSleep."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class FakeSleep:
    def __init__(self, clock: FakeClock) -> None:
        self._clock = clock
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self._clock.now += seconds


class ScriptedStatus:
    """Status source replaying a scripted sequence of observations."""

    def __init__(self, script: list[object]) -> None:
        self._script = list(script)
        self.queries = 0

    async def __call__(self, transaction_id: str) -> SettlementTransaction:
        self.queries += 1
        step = self._script.pop(0) if self._script else "PENDING"
        if isinstance(step, Exception):
            raise step
        status, _, tx_hash = str(step).partition(":")
        return SettlementTransaction(
            id=transaction_id,
            status=TransactionStatus(status),
            amount="0.00001",
            asset_id="BTC_TEST",
            tx_hash=tx_hash or None,
            raw_status=status,
        )


def _submitted() -> SettlementTransaction:
    return SettlementTransaction("tx-1", TransactionStatus.SUBMITTED, "0.00001", "BTC_TEST")


def _poller(source: ScriptedStatus, ticks: int = 3) -> tuple[ConfirmationPoller, FakeSleep]:
    clock = FakeClock()
    sleep = FakeSleep(clock)
    poller = ConfirmationPoller(
        source,
        interval_seconds=30,
        max_wait_seconds=30 * ticks,
        sleep=sleep,
        clock=clock,
    )
    return poller, sleep


# ---------------------------------------------------------------------------
# Terminal states
# ---------------------------------------------------------------------------


class TestTerminalStates:
    @pytest.mark.asyncio
    async def test_confirmed_on_third_tick(self) -> None:
        source = ScriptedStatus(["PENDING", "PENDING", "COMPLETED"])
        poller, sleep = _poller(source, ticks=3)

        outcome = await poller.poll(_submitted())

        assert outcome.state is PollState.CONFIRMED
        assert outcome.ticks == 3
        assert sleep.calls == [30, 30]
        assert outcome.advisory is None

    @pytest.mark.asyncio
    async def test_all_pending_times_out_without_raising(self) -> None:
        source = ScriptedStatus(["PENDING", "PENDING", "PENDING"])
        poller, sleep = _poller(source, ticks=3)

        outcome = await poller.poll(_submitted())

        assert outcome.state is PollState.TIMED_OUT
        assert outcome.ticks == 3
        assert source.queries == 3
        assert len(sleep.calls) == 2
        assert isinstance(outcome.advisory, PollTimeout)
        assert outcome.advisory.transaction_id == "tx-1"

    @pytest.mark.asyncio
    async def test_rejection_fails_and_stops(self) -> None:
        source = ScriptedStatus(["PENDING", "REJECTED", "COMPLETED"])
        poller, _ = _poller(source, ticks=5)

        outcome = await poller.poll(_submitted())

        assert outcome.state is PollState.FAILED
        assert outcome.ticks == 2
        assert source.queries == 2

    @pytest.mark.asyncio
    async def test_already_completed_needs_no_query(self) -> None:
        source = ScriptedStatus([])
        poller, _ = _poller(source)
        completed = SettlementTransaction("tx-1", TransactionStatus.COMPLETED, "1", "BTC_TEST")

        outcome = await poller.poll(completed)

        assert outcome.state is PollState.CONFIRMED
        assert source.queries == 0


# ---------------------------------------------------------------------------
# Transient errors and hash tracking
# ---------------------------------------------------------------------------


class TestTicks:
    @pytest.mark.asyncio
    async def test_transient_error_is_a_no_op_tick(self) -> None:
        source = ScriptedStatus(["PENDING", SigningServiceError("502"), "COMPLETED"])
        poller, _ = _poller(source, ticks=3)

        outcome = await poller.poll(_submitted())

        assert outcome.state is PollState.CONFIRMED
        assert outcome.ticks == 3
        assert outcome.errors == ("502",)

    @pytest.mark.asyncio
    async def test_errors_do_not_reset_budget(self) -> None:
        source = ScriptedStatus([SigningServiceError("down")] * 4)
        poller, _ = _poller(source, ticks=2)

        outcome = await poller.poll(_submitted())

        assert outcome.state is PollState.TIMED_OUT
        assert outcome.ticks == 2

    @pytest.mark.asyncio
    async def test_hash_is_kept_once_observed(self) -> None:
        source = ScriptedStatus(["PENDING:abc", "PENDING", "COMPLETED:"])
        poller, _ = _poller(source, ticks=3)

        outcome = await poller.poll(_submitted())

        assert outcome.transaction.tx_hash == "abc"
        assert outcome.transaction.status is TransactionStatus.COMPLETED

    def test_budget_is_wait_divided_by_interval(self) -> None:
        poller = ConfirmationPoller(ScriptedStatus([]))
        assert poller.max_ticks == 20

    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError):
            ConfirmationPoller(ScriptedStatus([]), interval_seconds=0)
