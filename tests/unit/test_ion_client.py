"""Tests for investor_identity.anchoring.client and .pow against a mocked ION node."""
from __future__ import annotations

import json

import httpx
import pytest
from pytest_httpx import HTTPXMock

from investor_identity.anchoring.client import IonAnchorClient, serialize_operation
from investor_identity.anchoring.pow import Challenge, answer_hash, solve
from investor_identity.errors import SubmissionError

NODE = "https://ion.example.test"
CHALLENGE_URL = f"{NODE}/api/v1.0/proof-of-work-challenge"
SOLUTION_URL = f"{NODE}/api/v1.0/operations"
OPERATION = {"type": "create", "suffixData": {"deltaHash": "a"}, "delta": {"patches": []}}
CHALLENGE_NONCE = "a1" * 16
EASY_CHALLENGE = {
    "challengeNonce": CHALLENGE_NONCE,
    "largestAllowedHash": "f" * 64,
    "validDurationInMinutes": 1,
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def client() -> IonAnchorClient:
    return IonAnchorClient(CHALLENGE_URL, SOLUTION_URL)


# ---------------------------------------------------------------------------
# Proof of work
# ---------------------------------------------------------------------------


class TestProofOfWork:
    def test_challenge_parses_node_response(self) -> None:
        challenge = Challenge.from_response(EASY_CHALLENGE)
        assert challenge.challenge_nonce == CHALLENGE_NONCE
        assert challenge.valid_duration_minutes == 1.0

    def test_challenge_missing_field_is_rejected(self) -> None:
        with pytest.raises(SubmissionError):
            Challenge.from_response({"challengeNonce": CHALLENGE_NONCE})

    def test_challenge_non_hex_nonce_is_rejected(self) -> None:
        with pytest.raises(SubmissionError):
            Challenge.from_response(dict(EASY_CHALLENGE, challengeNonce="not-hex"))

    def test_answer_hash_is_32_bytes_hex(self) -> None:
        digest = answer_hash("00" * 8, b"{}", CHALLENGE_NONCE)
        assert len(digest) == 64
        int(digest, 16)

    def test_solve_returns_answer_under_target(self) -> None:
        challenge = Challenge.from_response(EASY_CHALLENGE)
        body = serialize_operation(OPERATION)
        nonce = solve(challenge, body)
        assert int(answer_hash(nonce, body, CHALLENGE_NONCE), 16) <= int("f" * 64, 16)

    def test_solve_gives_up_after_valid_duration(self) -> None:
        challenge = Challenge.from_response(dict(EASY_CHALLENGE, largestAllowedHash="0" * 64))
        ticks = iter([0.0, 61.0])
        with pytest.raises(SubmissionError, match="expired"):
            solve(challenge, b"{}", clock=lambda: next(ticks))


# ---------------------------------------------------------------------------
# Primary flow
# ---------------------------------------------------------------------------


class TestAnchor:
    @pytest.mark.asyncio
    async def test_posts_solution_with_nonce_headers(
        self, client: IonAnchorClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(method="GET", url=CHALLENGE_URL, json=EASY_CHALLENGE)
        httpx_mock.add_response(method="POST", url=SOLUTION_URL, json={"status": "pending"})

        ack = await client.anchor(OPERATION)

        assert ack == {"status": "pending"}
        request = httpx_mock.get_request(method="POST")
        assert request is not None
        assert request.headers["Challenge-Nonce"] == CHALLENGE_NONCE
        assert request.headers["Answer-Nonce"]
        assert json.loads(request.content) == OPERATION

    @pytest.mark.asyncio
    async def test_unreachable_node_is_flagged(
        self, client: IonAnchorClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_exception(httpx.ConnectError("refused"), url=CHALLENGE_URL)
        with pytest.raises(SubmissionError) as excinfo:
            await client.anchor(OPERATION)
        assert excinfo.value.unreachable is True

    @pytest.mark.asyncio
    async def test_rejected_solution_is_not_unreachable(
        self, client: IonAnchorClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(method="GET", url=CHALLENGE_URL, json=EASY_CHALLENGE)
        httpx_mock.add_response(method="POST", url=SOLUTION_URL, status_code=429, text="slow down")
        with pytest.raises(SubmissionError, match="429") as excinfo:
            await client.anchor(OPERATION)
        assert excinfo.value.unreachable is False


# ---------------------------------------------------------------------------
# Direct flow
# ---------------------------------------------------------------------------


class TestPostOperation:
    @pytest.mark.asyncio
    async def test_posts_raw_operation(
        self, client: IonAnchorClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(method="POST", url=SOLUTION_URL, json={"didDocument": {}})
        ack = await client.post_operation(OPERATION)
        assert ack == {"didDocument": {}}
        request = httpx_mock.get_request()
        assert request is not None
        assert "Answer-Nonce" not in request.headers

    @pytest.mark.asyncio
    async def test_non_2xx_fails_the_tier(
        self, client: IonAnchorClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(method="POST", url=SOLUTION_URL, status_code=400, text="bad op")
        with pytest.raises(SubmissionError, match="400"):
            await client.post_operation(OPERATION)

    @pytest.mark.asyncio
    async def test_empty_body_is_empty_ack(
        self, client: IonAnchorClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(method="POST", url=SOLUTION_URL, status_code=200)
        assert await client.post_operation(OPERATION) == {}
